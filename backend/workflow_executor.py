"""
Workflow Executor - runs a validated workflow graph node by node.

Architecture:
- The graph is validated up front; structural problems abort before any work
- Nodes run one at a time in deterministic topological order
- Each node reads the output of its first declared predecessor
- A failing node is recorded and skipped; independent branches keep running
- The run is persisted twice: at start (running) and at the end (final status)
"""

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

from database import ExecutionManager
from utils.async_helpers import run_in_thread
from workflow_engine.context import (
    ClassificationService,
    ModelLoader,
    SpecValidator,
    WorkflowExecutionContext,
)
from workflow_engine.errors import MissingInputError, WorkflowValidationError
from workflow_engine.node_executors import NodeExecutorRegistry
from workflow_engine.planner import PlanBuilder
from workflow_engine.schema import Graph, GraphValidator, Node
from workflow_engine.state import ExecutionResult, ExecutionState, ProgressCallback

logger = logging.getLogger(__name__)


class WorkflowExecutor:
    """
    Sequential DAG runner.

    Collaborators are injected so the same executor can run against the real
    database and services or against in-memory fakes.
    """

    def __init__(
        self,
        exec_manager: ExecutionManager,
        model_loader: Optional[ModelLoader] = None,
        spec_validator: Optional[SpecValidator] = None,
        classifier: Optional[ClassificationService] = None,
        registry: Optional[NodeExecutorRegistry] = None,
        validator: Optional[GraphValidator] = None,
        planner: Optional[PlanBuilder] = None,
    ):
        self.exec_manager = exec_manager
        self.model_loader = model_loader
        self.spec_validator = spec_validator
        self.classifier = classifier
        self.registry = registry or NodeExecutorRegistry()
        self.validator = validator or GraphValidator()
        self.planner = planner or PlanBuilder()

    async def execute(
        self,
        workflow_id: Any,
        graph: Union[Graph, Mapping[str, Any]],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ExecutionResult:
        """
        Run a workflow once from start to finish.

        Raises:
            GraphFormatError: The payload could not be parsed
            WorkflowValidationError: The graph violates a structural invariant
            ExecutionStoreError: The execution record could not be written
        """
        if not isinstance(graph, Graph):
            graph = Graph.from_dict(graph)
        workflow_id = str(workflow_id)

        violations = self.validator.validate(graph)
        if violations:
            logger.warning("Workflow %s rejected: %s", workflow_id, "; ".join(violations))
            raise WorkflowValidationError(violations)

        started_at = datetime.now()
        execution_id = await run_in_thread(self.exec_manager.create_execution, workflow_id, started_at)

        try:
            plan = self.planner.build(graph)
            ctx = WorkflowExecutionContext(
                workflow_id=workflow_id,
                execution_id=execution_id,
                graph=graph,
                plan=plan,
                state=ExecutionState([node.id for node in graph.nodes], progress_callback),
                model_loader=self.model_loader,
                spec_validator=self.spec_validator,
                classifier=self.classifier,
            )
            logger.info(
                "Executing workflow %s (execution %s): %d nodes, order %s",
                workflow_id, execution_id, len(plan.ordered_nodes), plan.ordered_nodes
            )

            for node_id in plan.ordered_nodes:
                await self._execute_node(graph.get_node(node_id), ctx)

            result = self._build_result(ctx, started_at)
            await run_in_thread(
                self.exec_manager.complete_execution,
                execution_id,
                result.status.value,
                result.completed_at,
                result.results_payload(),
            )
        except Exception as e:
            logger.exception("Execution %s of workflow %s failed: %s", execution_id, workflow_id, e)
            await self._mark_aborted(execution_id, e)
            raise

        logger.info(
            "Execution %s finished with status %s: %d/%d nodes completed in %d ms",
            execution_id, result.status.value, result.summary.completed_nodes,
            result.summary.total_nodes, result.duration_ms
        )
        return result

    def validate(self, graph: Union[Graph, Mapping[str, Any]]):
        """Return the list of structural violations for a graph (empty when valid)."""
        if not isinstance(graph, Graph):
            graph = Graph.from_dict(graph)
        return self.validator.validate(graph)

    async def _execute_node(self, node: Node, ctx: WorkflowExecutionContext) -> None:
        """
        Run a single node and record its outcome.

        Any exception is confined to this node: it is logged, reported to the
        tracker and the loop moves on to the next node.
        """
        ctx.state.mark_running(node.id, node.display_name)
        logger.info("Executing node: %s (%s)", node.type, node.id)

        try:
            executor = self.registry.get(node.type)
            input_data = self._resolve_input(node, ctx)
            output = await executor.run(input_data, node.config, ctx)
        except Exception as e:
            logger.warning("Node %s (%s) failed: %s", node.display_name, node.id, e)
            ctx.state.mark_failed(node.id, node.display_name, str(e))
            return

        ctx.buffers.set_output(node.id, output)
        ctx.state.mark_completed(node.id, node.display_name)

    @staticmethod
    def _resolve_input(node: Node, ctx: WorkflowExecutionContext) -> Optional[Dict[str, Any]]:
        # Only the first declared incoming edge feeds the node
        incoming = ctx.plan.upstream.get(node.id) or []
        if not incoming:
            return None

        source_id = incoming[0].source
        if not ctx.buffers.has_output(source_id):
            raise MissingInputError(f"No input available from upstream node {source_id}")
        return ctx.buffers.get_output(source_id)

    @staticmethod
    def _build_result(ctx: WorkflowExecutionContext, started_at: datetime) -> ExecutionResult:
        completed_at = datetime.now()
        return ExecutionResult(
            workflow_id=ctx.workflow_id,
            execution_id=ctx.execution_id,
            status=ctx.state.final_status(),
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=ctx.state.elapsed_ms,
            node_outputs=ctx.buffers.as_dict(),
            errors=list(ctx.state.errors),
            summary=ctx.state.build_summary(ctx.plan.ordered_nodes, ctx.buffers),
            node_statuses=dict(ctx.state.node_statuses),
        )

    async def _mark_aborted(self, execution_id: str, error: Exception) -> None:
        """Best-effort final update after an infrastructure failure."""
        try:
            await run_in_thread(
                self.exec_manager.complete_execution,
                execution_id,
                'error',
                datetime.now(),
                {'errors': [], 'error': str(error)},
                str(error),
            )
        except Exception as update_error:
            logger.error("Could not mark execution %s as failed: %s", execution_id, update_error)


async def execute_workflow(
    exec_manager: ExecutionManager,
    workflow_id: Any,
    graph: Union[Graph, Mapping[str, Any]],
    progress_callback: Optional[ProgressCallback] = None,
    **collaborators,
) -> ExecutionResult:
    """Execute a workflow by ID with a one-off executor."""
    executor = WorkflowExecutor(exec_manager, **collaborators)
    return await executor.execute(workflow_id, graph, progress_callback)
