"""
Execution Manager - Persistence layer for workflow execution records.

Each run is written exactly twice: once when it starts (status ``running``)
and once when it ends with its final status and serialized results. There
are no intermediate writes, so a crash mid-run leaves the record in
``running``.
"""

import duckdb
import uuid
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, List, Any

from config import EXECUTIONS_DATABASE_PATH

logger = logging.getLogger(__name__)


class ExecutionStoreError(RuntimeError):
    """Raised when an execution record cannot be written or read."""


class ExecutionManager:
    """Manages workflow execution records in DuckDB."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else EXECUTIONS_DATABASE_PATH
        self._init_database()
        logger.info("Execution manager initialized with database: %s", self.db_path)

    def _init_database(self) -> None:
        """Create workflow_executions table if not exists."""
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS workflow_executions (
                    execution_id TEXT PRIMARY KEY,
                    workflow_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    results_json TEXT,
                    error TEXT,
                    started_at TIMESTAMP NOT NULL,
                    completed_at TIMESTAMP
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Get new database connection.

        DuckDB handles concurrency internally, each connection
        should be used from a single thread.
        """
        try:
            return duckdb.connect(str(self.db_path), read_only=False)
        except duckdb.Error as e:
            raise ExecutionStoreError(f"Cannot open execution database {self.db_path}: {e}") from e

    def create_execution(self, workflow_id: str, started_at: Optional[datetime] = None) -> str:
        """
        Create a new execution record in ``running`` state.

        Args:
            workflow_id: Workflow the run belongs to
            started_at: Run start time (defaults to now)

        Returns:
            execution_id: Unique identifier of this run
        """
        execution_id = str(uuid.uuid4())
        started_at = started_at or datetime.now()
        conn = self._get_connection()
        try:
            conn.execute("""
                INSERT INTO workflow_executions
                (execution_id, workflow_id, status, results_json, started_at)
                VALUES (?, ?, ?, ?, ?)
            """, (execution_id, str(workflow_id), 'running', json.dumps({}), started_at))
            conn.commit()
            logger.info("Created execution %s for workflow %s", execution_id, workflow_id)
            return execution_id
        except duckdb.Error as e:
            logger.error("Failed to create execution for workflow %s: %s", workflow_id, e)
            raise ExecutionStoreError(f"Failed to create execution record: {e}") from e
        finally:
            conn.close()

    def complete_execution(
        self,
        execution_id: str,
        status: str,
        completed_at: datetime,
        results: Dict[str, Any],
        error: Optional[str] = None
    ) -> None:
        """
        Write the final status and serialized results of a run.

        Args:
            execution_id: Execution identifier
            status: Final status ('success', 'partial', 'error')
            completed_at: Run end time
            results: Per-node outputs, errors and summary
            error: Run-level failure message, if the run aborted
        """
        results_json = json.dumps(results, default=str)
        conn = self._get_connection()
        try:
            conn.execute("""
                UPDATE workflow_executions
                SET status = ?, completed_at = ?, results_json = ?, error = ?
                WHERE execution_id = ?
            """, (status, completed_at, results_json, error, execution_id))
            conn.commit()
            logger.info("Execution %s finished with status %s", execution_id, status)
        except duckdb.Error as e:
            logger.error("Failed to update execution %s: %s", execution_id, e)
            raise ExecutionStoreError(f"Failed to update execution record: {e}") from e
        finally:
            conn.close()

    def get_execution(self, execution_id: str) -> Optional[Dict[str, Any]]:
        """
        Get an execution record by ID.

        Returns:
            Record dict or None if not found
        """
        conn = self._get_connection()
        try:
            row = conn.execute("""
                SELECT execution_id, workflow_id, status, results_json, error,
                       started_at, completed_at
                FROM workflow_executions WHERE execution_id = ?
            """, (execution_id,)).fetchone()
        except duckdb.Error as e:
            raise ExecutionStoreError(f"Failed to read execution {execution_id}: {e}") from e
        finally:
            conn.close()

        return self._row_to_record(row) if row else None

    def list_executions(self, workflow_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """
        List executions of a workflow, newest first.
        """
        conn = self._get_connection()
        try:
            rows = conn.execute("""
                SELECT execution_id, workflow_id, status, results_json, error,
                       started_at, completed_at
                FROM workflow_executions
                WHERE workflow_id = ?
                ORDER BY started_at DESC
                LIMIT ?
            """, (str(workflow_id), limit)).fetchall()
        except duckdb.Error as e:
            raise ExecutionStoreError(f"Failed to list executions: {e}") from e
        finally:
            conn.close()

        return [self._row_to_record(row) for row in rows]

    def delete_execution(self, execution_id: str) -> bool:
        """
        Delete an execution record.

        Returns:
            True if a record was deleted
        """
        conn = self._get_connection()
        try:
            existing = conn.execute(
                "SELECT 1 FROM workflow_executions WHERE execution_id = ?", (execution_id,)
            ).fetchone()
            if not existing:
                return False
            conn.execute("DELETE FROM workflow_executions WHERE execution_id = ?", (execution_id,))
            conn.commit()
            logger.info("Deleted execution %s", execution_id)
            return True
        except duckdb.Error as e:
            raise ExecutionStoreError(f"Failed to delete execution {execution_id}: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row) -> Dict[str, Any]:
        results = json.loads(row[3]) if row[3] else {}
        return {
            'executionId': row[0],
            'workflowId': row[1],
            'status': row[2],
            'perNodeOutputs': results.get('perNodeOutputs', {}),
            'errors': results.get('errors', []),
            'summary': results.get('summary'),
            'error': row[4],
            'startedAt': row[5].isoformat() if row[5] else None,
            'completedAt': row[6].isoformat() if row[6] else None,
        }
