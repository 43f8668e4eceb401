"""
Constants shared across the workflow runtime.
"""

from enum import Enum


class NodeType(str, Enum):
    LOADER = "loader"
    FILTER_CLASS = "filter-class"
    FILTER_PROPERTY = "filter-property"
    IDS_VALIDATOR = "ids-validator"
    BSDD_MAPPER = "bsdd-mapper"
    QUALITY_SCORE = "quality-score"
    EXPORT_CSV = "export-csv"
    EXPORT_JSON = "export-json"


# Node types that need no upstream input
ENTRY_NODE_TYPES = frozenset({NodeType.LOADER.value})


class NodeStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class RunStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"
