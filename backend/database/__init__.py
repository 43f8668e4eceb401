"""
Database package for workflow execution records and BIM model data.

- ExecutionManager: two-write persistence of workflow runs
- ModelRepository: models and elements consumed by loader nodes

Usage:
    from database import ExecutionManager, ModelRepository

    exec_manager = ExecutionManager()
    execution_id = exec_manager.create_execution(workflow_id)
"""

from .execution_manager import ExecutionManager, ExecutionStoreError
from .model_repository import ModelRepository, ModelNotFoundError

__all__ = ['ExecutionManager', 'ExecutionStoreError', 'ModelRepository', 'ModelNotFoundError']
