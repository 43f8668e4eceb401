"""
Workflow execution package
==========================

Provides the core building blocks for the workflow runtime:

- Graph model, parsing and structural validation
- Deterministic execution planning (topological order)
- Shared execution context/state containers
- Node executor registry for the individual node types
"""

from .constants import NodeType, NodeStatus, RunStatus  # noqa: F401
from .errors import (  # noqa: F401
    WorkflowError,
    GraphFormatError,
    WorkflowValidationError,
    NodeExecutionError,
)
from .schema import Graph, Node, Edge, GraphValidator  # noqa: F401
from .planner import ExecutionPlan, PlanBuilder  # noqa: F401
from .state import ExecutionResult, ProgressEvent  # noqa: F401
