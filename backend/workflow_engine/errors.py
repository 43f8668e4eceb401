"""
Exception hierarchy for the workflow runtime.

Structural errors abort a run before any node executes. Node errors are
caught by the executor loop and recorded against the failing node.
"""

from typing import List


class WorkflowError(Exception):
    """Base class for all workflow runtime errors."""


class GraphFormatError(WorkflowError, ValueError):
    """Raised when a submitted graph payload cannot be parsed."""


class WorkflowValidationError(WorkflowError, ValueError):
    """Raised when a graph violates one or more structural invariants."""

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__(f"Workflow validation failed: {', '.join(self.violations)}")


class PlanningError(WorkflowError):
    """Raised when no complete topological order exists."""


class NodeExecutionError(WorkflowError):
    """Base class for failures local to a single node."""


class UnknownNodeTypeError(NodeExecutionError, ValueError):
    """Raised when no executor is registered for a node type."""


class MissingInputError(NodeExecutionError):
    """Raised when a node's upstream node produced no output."""


class NodeConfigError(NodeExecutionError, ValueError):
    """Raised when a node's configuration lacks a required value."""
