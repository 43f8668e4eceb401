"""
Execution state tracking for workflow runs.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .constants import NodeStatus, RunStatus
from .data_store import WorkflowDataStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    node_id: str
    status: NodeStatus
    progress: int
    message: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'nodeId': self.node_id,
            'status': self.status.value,
            'progress': self.progress,
            'message': self.message,
        }
        if self.error is not None:
            payload['error'] = self.error
        return payload


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class NodeError:
    node_id: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {'nodeId': self.node_id, 'error': self.error}


@dataclass
class ExecutionSummary:
    total_nodes: int
    completed_nodes: int
    failed_nodes: int
    output_data: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalNodes': self.total_nodes,
            'completedNodes': self.completed_nodes,
            'failedNodes': self.failed_nodes,
            'outputData': self.output_data,
        }


@dataclass
class ExecutionResult:
    """Structured outcome handed back to the caller of a workflow run."""

    workflow_id: str
    execution_id: str
    status: RunStatus
    started_at: datetime
    completed_at: datetime
    duration_ms: int
    node_outputs: Dict[str, Any]
    errors: List[NodeError]
    summary: ExecutionSummary
    node_statuses: Dict[str, NodeStatus] = field(default_factory=dict)

    def results_payload(self) -> Dict[str, Any]:
        """The blob persisted with the execution record."""
        return {
            'perNodeOutputs': self.node_outputs,
            'errors': [e.to_dict() for e in self.errors],
            'summary': self.summary.to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'workflowId': self.workflow_id,
            'executionId': self.execution_id,
            'status': self.status.value,
            'startedAt': self.started_at.isoformat(),
            'completedAt': self.completed_at.isoformat(),
            'durationMs': self.duration_ms,
            'nodeStatuses': {k: v.value for k, v in self.node_statuses.items()},
        }
        payload.update(self.results_payload())
        return payload


class ExecutionState:
    """
    Per-run tracker for node statuses and progress events.

    Events go to the sink synchronously, one per status transition. A sink
    that raises is logged and otherwise ignored.
    """

    def __init__(self, node_ids: List[str], progress_callback: Optional[ProgressCallback] = None):
        self.progress_callback = progress_callback
        self.start_time = time.monotonic()
        self.node_statuses: Dict[str, NodeStatus] = {
            node_id: NodeStatus.PENDING for node_id in node_ids
        }
        self.errors: List[NodeError] = []
        self.completed = 0

    def mark_running(self, node_id: str, label: str) -> None:
        self._transition(node_id, NodeStatus.RUNNING, 0, f"Executing {label}...")

    def mark_completed(self, node_id: str, label: str) -> None:
        self.completed += 1
        self._transition(node_id, NodeStatus.COMPLETED, 100, f"Completed {label}")

    def mark_failed(self, node_id: str, label: str, error: str) -> None:
        self.errors.append(NodeError(node_id=node_id, error=error))
        self._transition(node_id, NodeStatus.ERROR, 0, f"Error in {label}", error=error)

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.start_time) * 1000)

    def final_status(self) -> RunStatus:
        if not self.errors:
            return RunStatus.SUCCESS
        if self.completed > 0:
            return RunStatus.PARTIAL
        return RunStatus.ERROR

    def build_summary(self, ordered_nodes: List[str], buffers: WorkflowDataStore) -> ExecutionSummary:
        # Last node in run order stands in for the whole workflow's output
        output_data = buffers.get_output(ordered_nodes[-1]) if ordered_nodes else None
        return ExecutionSummary(
            total_nodes=len(self.node_statuses),
            completed_nodes=self.completed,
            failed_nodes=self.failed,
            output_data=output_data,
        )

    def _transition(
        self, node_id: str, status: NodeStatus, progress: int, message: str,
        error: Optional[str] = None
    ) -> None:
        self.node_statuses[node_id] = status
        if not self.progress_callback:
            return

        event = ProgressEvent(
            node_id=node_id, status=status, progress=progress, message=message, error=error
        )
        try:
            self.progress_callback(event)
        except Exception:
            logger.exception("Progress callback failed for node %s", node_id)
