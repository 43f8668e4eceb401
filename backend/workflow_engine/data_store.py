"""
Simple in-memory store for node outputs during a workflow run.
"""

from typing import Any, Dict, Optional


class WorkflowDataStore:
    """
    Stores each completed node's output keyed by node id.

    Failed nodes never get an entry, which is how dependents detect that
    their input is unavailable.
    """

    def __init__(self):
        self._storage: Dict[str, Any] = {}

    def set_output(self, node_id: str, value: Any) -> None:
        self._storage[node_id] = value

    def get_output(self, node_id: str) -> Optional[Any]:
        return self._storage.get(node_id)

    def has_output(self, node_id: str) -> bool:
        return node_id in self._storage

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._storage)

    def __len__(self) -> int:
        return len(self._storage)
