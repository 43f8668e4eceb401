"""
Workflow routes: validate a graph, run it and read back execution records.
"""
import asyncio
import logging
from flask import Blueprint

from app.utils.route_decorators import handle_route_errors
from app.utils.request_validators import (
    RequestField,
    extract_json_fields,
    extract_query_params,
    is_dict,
    positive_int,
)
from utils.logging_utils import compact_json

logger = logging.getLogger(__name__)

GRAPH_FIELD = RequestField(
    'graph', required=True, validator=is_dict, error_message="No workflow graph provided"
)


def init_routes(workflow_executor, execution_manager):
    """Initialize routes with dependencies."""
    bp = Blueprint('workflows', __name__)

    @bp.route('/workflows/validate', methods=['POST'])
    @handle_route_errors("validating workflow")
    def validate_workflow():
        """Check a graph against the structural rules without running it."""
        graph = extract_json_fields(GRAPH_FIELD)['graph']
        violations = workflow_executor.validate(graph)
        return {"valid": not violations, "errors": violations}

    @bp.route('/workflows/<workflow_id>/execute', methods=['POST'])
    @handle_route_errors("executing workflow")
    def execute_workflow(workflow_id):
        """
        Run a workflow to completion and return its result.

        The response carries the progress events emitted during the run under
        ``progress`` in addition to the execution result.
        """
        graph = extract_json_fields(GRAPH_FIELD)['graph']
        events = []

        def on_progress(event):
            events.append(event.to_dict())
            logger.debug("Workflow %s progress: %s", workflow_id, compact_json(event.to_dict()))

        result = asyncio.run(workflow_executor.execute(workflow_id, graph, on_progress))

        payload = result.to_dict()
        payload['progress'] = events
        return payload

    @bp.route('/workflows/<workflow_id>/executions', methods=['GET'])
    @handle_route_errors("listing executions")
    def list_executions(workflow_id):
        params = extract_query_params(
            RequestField('limit', default=50, transform=int, validator=positive_int)
        )
        return execution_manager.list_executions(workflow_id, params['limit'])

    @bp.route('/executions/<execution_id>', methods=['GET'])
    @handle_route_errors("getting execution")
    def get_execution(execution_id):
        record = execution_manager.get_execution(execution_id)
        if not record:
            return {"error": f"Execution {execution_id} not found"}, 404
        return record

    @bp.route('/executions/<execution_id>', methods=['DELETE'])
    @handle_route_errors("deleting execution")
    def delete_execution(execution_id):
        if not execution_manager.delete_execution(execution_id):
            return {"error": f"Execution {execution_id} not found"}, 404
        return {"success": True}

    @bp.route('/health', methods=['GET'])
    def health():
        return {"status": "ok"}

    return bp
