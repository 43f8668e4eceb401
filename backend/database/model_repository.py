"""
Model Repository - DuckDB store for BIM models and their elements.

Serves as the model loader for ``loader`` nodes. Upload and parsing of model
files happen elsewhere; this store only holds the extracted metadata and
element rows.
"""

import duckdb
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, List, Any, Iterable

from config import DATABASE_PATH

logger = logging.getLogger(__name__)


class ModelNotFoundError(LookupError):
    """Raised when a model identifier is unknown."""


class ModelRepository:
    """Reads and writes BIM models and elements."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else DATABASE_PATH
        self._init_database()
        logger.info("Model repository initialized with database: %s", self.db_path)

    def _init_database(self) -> None:
        conn = self._get_connection()
        try:
            conn.execute("CREATE SEQUENCE IF NOT EXISTS ifc_models_seq START 1")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ifc_models (
                    model_id BIGINT PRIMARY KEY DEFAULT nextval('ifc_models_seq'),
                    name TEXT NOT NULL,
                    project_id TEXT,
                    schema_version TEXT,
                    file_name TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ifc_elements (
                    model_id BIGINT NOT NULL,
                    express_id BIGINT NOT NULL,
                    ifc_type TEXT NOT NULL,
                    name TEXT,
                    global_id TEXT,
                    properties_json TEXT,
                    PRIMARY KEY (model_id, express_id)
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path), read_only=False)

    def add_model(
        self,
        name: str,
        project_id: Optional[str] = None,
        schema_version: Optional[str] = None,
        file_name: Optional[str] = None
    ) -> int:
        """
        Register a model and return its id.
        """
        conn = self._get_connection()
        try:
            row = conn.execute("""
                INSERT INTO ifc_models (name, project_id, schema_version, file_name)
                VALUES (?, ?, ?, ?)
                RETURNING model_id
            """, (name, project_id, schema_version, file_name)).fetchone()
            conn.commit()
            logger.info("Registered model %s (%s)", row[0], name)
            return int(row[0])
        finally:
            conn.close()

    def add_elements(self, model_id: int, elements: Iterable[Dict[str, Any]]) -> int:
        """
        Store extracted elements for a model.

        Each element needs ``expressId`` and ``type``; ``name``, ``guid`` and
        ``properties`` are optional.

        Returns:
            Number of elements stored
        """
        rows = [
            (
                model_id,
                int(el['expressId']),
                el['type'],
                el.get('name'),
                el.get('guid'),
                json.dumps(el.get('properties') or {}),
            )
            for el in elements
        ]
        if not rows:
            return 0

        conn = self._get_connection()
        try:
            conn.executemany("""
                INSERT INTO ifc_elements
                (model_id, express_id, ifc_type, name, global_id, properties_json)
                VALUES (?, ?, ?, ?, ?, ?)
            """, rows)
            conn.commit()
            logger.info("Stored %d elements for model %s", len(rows), model_id)
            return len(rows)
        finally:
            conn.close()

    def get_model(self, model_id: Any) -> Optional[Dict[str, Any]]:
        try:
            model_key = int(model_id)
        except (TypeError, ValueError):
            return None

        conn = self._get_connection()
        try:
            row = conn.execute("""
                SELECT model_id, name, project_id, schema_version, file_name, created_at
                FROM ifc_models WHERE model_id = ?
            """, (model_key,)).fetchone()
        finally:
            conn.close()

        if not row:
            return None
        return {
            'id': row[0],
            'name': row[1],
            'projectId': row[2],
            'schemaVersion': row[3],
            'fileName': row[4],
            'createdAt': row[5].isoformat() if isinstance(row[5], datetime) else row[5],
        }

    def get_elements(self, model_id: int) -> List[Dict[str, Any]]:
        conn = self._get_connection()
        try:
            rows = conn.execute("""
                SELECT express_id, ifc_type, name, global_id, properties_json
                FROM ifc_elements WHERE model_id = ?
                ORDER BY express_id
            """, (int(model_id),)).fetchall()
        finally:
            conn.close()

        return [
            {
                'id': f"{model_id}:{row[0]}",
                'expressId': row[0],
                'type': row[1],
                'name': row[2],
                'guid': row[3],
                'properties': json.loads(row[4]) if row[4] else {},
            }
            for row in rows
        ]

    def load_model(self, model_id: Any) -> Dict[str, Any]:
        """
        Load a model's metadata and element collection.

        Raises:
            ModelNotFoundError: If the model does not exist
        """
        model = self.get_model(model_id)
        if not model:
            raise ModelNotFoundError(f"IFC Loader: Model {model_id} not found")
        return {'model': model, 'elements': self.get_elements(model['id'])}
