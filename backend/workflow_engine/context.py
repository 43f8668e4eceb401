"""
Shared execution context passed to node executors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from .data_store import WorkflowDataStore
from .planner import ExecutionPlan
from .schema import Graph
from .state import ExecutionState


class ModelLoader(Protocol):
    def load_model(self, model_id: Any) -> Dict[str, Any]:
        """Return ``{'model': ..., 'elements': [...]}`` or raise ModelNotFoundError."""


class SpecValidator(Protocol):
    def parse(self, content: str) -> Any:
        ...

    def validate(self, elements: List[Dict[str, Any]], document: Any) -> Dict[str, Any]:
        """Return a report carrying at least ``complianceRate``."""


class ClassificationService(Protocol):
    def find_class(self, element_type: str) -> Optional[Dict[str, Any]]:
        ...

    def enrich(self, element: Dict[str, Any], classification: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass
class WorkflowExecutionContext:
    workflow_id: str
    execution_id: str
    graph: Graph
    plan: ExecutionPlan
    state: ExecutionState
    model_loader: Optional[ModelLoader] = None
    spec_validator: Optional[SpecValidator] = None
    classifier: Optional[ClassificationService] = None
    buffers: WorkflowDataStore = field(default_factory=WorkflowDataStore)
