"""
Registered node executors for the workflow runtime.

Each executor implements one node type. ``run`` receives the resolved input
(the upstream node's output, or ``None`` for entry nodes), the node's config
and the shared context, and returns the node's output. Outputs are plain
dicts that extend the input, so later nodes still see the loaded model.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from utils.async_helpers import run_in_thread

from .constants import NodeType
from .context import WorkflowExecutionContext
from .errors import NodeConfigError, UnknownNodeTypeError

logger = logging.getLogger(__name__)


def element_properties(element: Mapping[str, Any]) -> Dict[str, Any]:
    """Properties of an element, decoding the JSON text form stored in the database."""
    props = element.get('properties')
    if isinstance(props, str):
        try:
            props = json.loads(props)
        except ValueError:
            return {}
    return props if isinstance(props, dict) else {}


class BaseNodeExecutor:
    """Base class for all node executors with shared functionality."""
    node_type: NodeType
    display_name: str = "Node"

    async def run(
        self, input_data: Optional[Dict], config: Mapping[str, Any], ctx: WorkflowExecutionContext
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def _require_elements(self, input_data: Optional[Dict]) -> List[Dict[str, Any]]:
        if not input_data or input_data.get('elements') is None:
            raise ValueError(f"{self.display_name}: No input elements")
        return list(input_data['elements'])

    def _require_collaborator(self, collaborator, description: str):
        if collaborator is None:
            raise NodeConfigError(f"{self.display_name}: No {description} configured")
        return collaborator


class LoaderNodeExecutor(BaseNodeExecutor):
    node_type = NodeType.LOADER
    display_name = "IFC Loader"

    async def run(self, input_data, config, ctx):
        model_id = config.get('modelId')
        if model_id in (None, ''):
            raise NodeConfigError(f"{self.display_name}: No model ID specified")

        loader = self._require_collaborator(ctx.model_loader, "model loader")
        loaded = await run_in_thread(loader.load_model, model_id)
        elements = list(loaded.get('elements') or [])

        logger.info("Loaded model %s with %d elements", model_id, len(elements))
        return {
            'model': loaded.get('model'),
            'elements': elements,
            'elementCount': len(elements),
        }


class FilterClassNodeExecutor(BaseNodeExecutor):
    node_type = NodeType.FILTER_CLASS
    display_name = "Filter Class"

    async def run(self, input_data, config, ctx):
        elements = self._require_elements(input_data)
        class_filter = str(config.get('ifcClass') or '')
        needle = class_filter.lower()

        filtered = [el for el in elements if needle in str(el.get('type', '')).lower()]
        return {
            **input_data,
            'elements': filtered,
            'elementCount': len(filtered),
            'filterApplied': f"Class: {class_filter}",
        }


class FilterPropertyNodeExecutor(BaseNodeExecutor):
    node_type = NodeType.FILTER_PROPERTY
    display_name = "Filter Property"

    async def run(self, input_data, config, ctx):
        elements = self._require_elements(input_data)
        name = config.get('propertyName') or ''
        value = config.get('propertyValue', '')

        filtered = [
            el for el in elements
            if name in element_properties(el) and element_properties(el)[name] == value
        ]
        return {
            **input_data,
            'elements': filtered,
            'elementCount': len(filtered),
            'filterApplied': f"Property: {name} = {value}",
        }


class IdsValidatorNodeExecutor(BaseNodeExecutor):
    node_type = NodeType.IDS_VALIDATOR
    display_name = "IDS Validator"

    async def run(self, input_data, config, ctx):
        ids_content = config.get('idsContent')
        if not ids_content:
            raise NodeConfigError(f"{self.display_name}: No IDS specification provided")

        elements = self._require_elements(input_data)
        validator = self._require_collaborator(ctx.spec_validator, "specification validator")

        document = await run_in_thread(validator.parse, ids_content)
        report = await run_in_thread(validator.validate, elements, document)

        return {
            **input_data,
            'validation': report,
            'complianceRate': report.get('complianceRate') or 0,
        }


class BsddMapperNodeExecutor(BaseNodeExecutor):
    node_type = NodeType.BSDD_MAPPER
    display_name = "bSDD Mapper"

    async def run(self, input_data, config, ctx):
        elements = self._require_elements(input_data)
        classifier = self._require_collaborator(ctx.classifier, "classification service")

        enriched_elements = []
        for element in elements:
            enriched_elements.append(await self._enrich_element(element, classifier))

        enriched_count = sum(1 for el in enriched_elements if el.get('bsddEnriched'))
        return {
            **input_data,
            'elements': enriched_elements,
            'enrichmentRate': enriched_count / len(enriched_elements) if enriched_elements else 0.0,
        }

    @staticmethod
    async def _enrich_element(element: Dict[str, Any], classifier) -> Dict[str, Any]:
        # Lookups are best effort: a failed element passes through unchanged
        try:
            classification = await run_in_thread(classifier.find_class, element.get('type', ''))
            if not classification:
                return element
            return await run_in_thread(classifier.enrich, element, classification)
        except Exception as e:
            logger.warning("bSDD enrichment skipped for element %s: %s", element.get('id'), e)
            return element


class QualityScoreNodeExecutor(BaseNodeExecutor):
    """Scores elements on the four FAIR axes, each as a 0-100 share."""
    node_type = NodeType.QUALITY_SCORE
    display_name = "Quality Score"

    async def run(self, input_data, config, ctx):
        elements = self._require_elements(input_data)
        scores = self.compute_scores(elements)
        return {
            **input_data,
            'qualityScores': scores,
            'overallQuality': sum(scores.values()) / len(scores),
        }

    @staticmethod
    def compute_scores(elements: List[Dict[str, Any]]) -> Dict[str, float]:
        total = len(elements)

        def share(predicate) -> float:
            if not total:
                return 0.0
            return sum(1 for el in elements if predicate(el)) / total * 100

        return {
            'findability': share(lambda el: bool(el.get('guid'))),
            'accessibility': share(lambda el: bool(element_properties(el))),
            'interoperability': share(lambda el: str(el.get('type', '')).startswith('Ifc')),
            'reusability': share(lambda el: bool(el.get('bsddEnriched'))),
        }


class ExportNodeExecutor(BaseNodeExecutor):
    """Marks data as ready for export; writing the file is left to the caller."""
    display_name = "Export"
    export_format = "json"

    async def run(self, input_data, config, ctx):
        if not input_data:
            raise ValueError(f"{self.display_name}: No input data")
        return {
            **input_data,
            'exportFormat': self.export_format,
            'exportReady': True,
        }


class ExportCsvNodeExecutor(ExportNodeExecutor):
    node_type = NodeType.EXPORT_CSV
    export_format = "csv"


class ExportJsonNodeExecutor(ExportNodeExecutor):
    node_type = NodeType.EXPORT_JSON
    export_format = "json"


class NodeExecutorRegistry:
    """
    Lightweight registry so WorkflowExecutor can stay generic.
    """

    def __init__(self):
        self._executors: Dict[str, BaseNodeExecutor] = {}
        for cls in (
            LoaderNodeExecutor,
            FilterClassNodeExecutor,
            FilterPropertyNodeExecutor,
            IdsValidatorNodeExecutor,
            BsddMapperNodeExecutor,
            QualityScoreNodeExecutor,
            ExportCsvNodeExecutor,
            ExportJsonNodeExecutor,
        ):
            self.register(cls())

    def register(self, executor: BaseNodeExecutor) -> None:
        self._executors[NodeType(executor.node_type).value] = executor

    def get(self, node_type: str) -> BaseNodeExecutor:
        if node_type not in self._executors:
            raise UnknownNodeTypeError(f"Unknown node type: {node_type}")
        return self._executors[node_type]

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._executors
