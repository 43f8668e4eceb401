"""
Shared fixtures: temporary DuckDB stores and in-memory collaborators.
"""

import pytest

from database import ExecutionManager, ModelNotFoundError
from workflow_executor import WorkflowExecutor

ELEMENT_TYPES = ['IfcWall'] * 4 + ['IfcDoor'] * 3 + ['IfcWindow'] * 2 + ['IfcSlab']


def make_elements():
    elements = []
    for index, ifc_type in enumerate(ELEMENT_TYPES, start=1):
        elements.append({
            'id': f"1:{index}",
            'expressId': index,
            'type': ifc_type,
            'name': f"{ifc_type} {index}",
            'guid': f"guid-{index}" if index % 2 else None,
            'properties': {'FireRating': 'EI60'} if ifc_type == 'IfcWall' else {},
        })
    return elements


class FakeModelLoader:
    def __init__(self, models=None):
        self.models = models if models is not None else {'1': make_elements()}
        self.calls = []

    def load_model(self, model_id):
        self.calls.append(model_id)
        key = str(model_id)
        if key not in self.models:
            raise ModelNotFoundError(f"IFC Loader: Model {model_id} not found")
        return {'model': {'id': key, 'name': f"Model {key}"}, 'elements': list(self.models[key])}


class FakeClassifier:
    """Knows walls and doors only."""

    KNOWN = {
        'IfcWall': {'uri': 'https://bsdd/wall', 'code': 'WALL', 'name': 'Wall'},
        'IfcDoor': {'uri': 'https://bsdd/door', 'code': 'DOOR', 'name': 'Door'},
    }

    def find_class(self, element_type):
        return self.KNOWN.get(element_type)

    def enrich(self, element, classification):
        return {**element, 'bsddEnriched': True, 'bsddClass': dict(classification)}


class FakeSpecValidator:
    def parse(self, content):
        return {'content': content}

    def validate(self, elements, document):
        return {'totalElements': len(elements), 'complianceRate': 75.0, 'elementResults': []}


def node(node_id, node_type, **config):
    return {'id': node_id, 'type': node_type, 'label': node_id, 'config': config}


def edge(source, target):
    return {'id': f"{source}-{target}", 'source': source, 'target': target}


@pytest.fixture
def execution_manager(tmp_path):
    return ExecutionManager(tmp_path / "executions.duckdb")


@pytest.fixture
def model_loader():
    return FakeModelLoader()


@pytest.fixture
def workflow_executor(execution_manager, model_loader):
    return WorkflowExecutor(
        execution_manager,
        model_loader=model_loader,
        spec_validator=FakeSpecValidator(),
        classifier=FakeClassifier(),
    )


@pytest.fixture
def wall_export_graph():
    """Loader -> FilterClass("Wall") -> ExportJson."""
    return {
        'nodes': [
            node('loader', 'loader', modelId='1'),
            node('walls', 'filter-class', ifcClass='Wall'),
            node('export', 'export-json'),
        ],
        'edges': [edge('loader', 'walls'), edge('walls', 'export')],
    }
