"""
ChatFlow Workflow Orchestrator - Detect, run and track multi-step workflows

The orchestrator ties the engine together:
1. TriggerMatcher picks a workflow for a message
2. DependencyResolver orders its steps
3. StepExecutor runs each step (conditions, retries, output propagation)
4. ExecutionRegistry keeps every run for lookup and cancellation

Steps run strictly one at a time in dependency order. With
``EngineConfig.parallel_branches`` the steps of one dependency level run
concurrently instead.

Example:
    orchestrator = WorkflowOrchestrator(workflows, triggers, invoker=capabilities)

    trigger = orchestrator.detect_trigger("weekly review please")
    if trigger:
        workflow = orchestrator.get_workflow(trigger.workflow_id)
        execution = await orchestrator.run(workflow, "weekly review please")
        print(execution.status, execution.final_outputs)
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .catalog import TriggerCatalog, WorkflowCatalog
from .config import EngineConfig
from .executor import CapabilityInvokerProtocol, StepExecutor
from .extractor import ParameterExtractor
from .models import (
    ConversationContext,
    ExecutionContext,
    SkipReason,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowStep,
    WorkflowStepStatus,
    WorkflowTrigger,
)
from .registry import ExecutionRegistry
from .resolver import DependencyResolver
from .triggers import TriggerMatcher

logger = logging.getLogger(__name__)


_HALTING_STATUSES = (WorkflowExecutionStatus.FAILED, WorkflowExecutionStatus.CANCELLED)


class WorkflowOrchestrator:
    """Top-level driver of workflow runs"""

    def __init__(
        self,
        workflow_catalog: WorkflowCatalog,
        trigger_catalog: TriggerCatalog,
        invoker: CapabilityInvokerProtocol,
        config: Optional[EngineConfig] = None,
        registry: Optional[ExecutionRegistry] = None,
        extractor: Optional[ParameterExtractor] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Args:
            workflow_catalog: Read-only workflow definitions
            trigger_catalog: Read-only triggers
            invoker: Calls capabilities (usually a CapabilityRegistry)
            config: Engine configuration
            registry: Execution store, created from config when omitted
            extractor: Seeds run contexts with emails / dates / times
            sleep: Async sleep used for retry backoff (injectable for tests)
        """
        self.config = config or EngineConfig()
        self.workflows = workflow_catalog
        self.triggers = trigger_catalog
        self.matcher = TriggerMatcher(trigger_catalog)
        self.resolver = DependencyResolver()
        self.extractor = extractor or ParameterExtractor()
        self.registry = registry or ExecutionRegistry(
            retention_seconds=self.config.retention_seconds,
            max_executions=self.config.max_executions,
        )
        self.executor = StepExecutor(invoker, config=self.config, sleep=sleep, registry=self.registry)

    # ------------------------------------------------------------------
    # Detection and lookup
    # ------------------------------------------------------------------

    def detect_trigger(
        self,
        message: str,
        context: Optional[ConversationContext] = None,
    ) -> WorkflowTrigger:
        """Best matching trigger for a message, or the falsy NO_TRIGGER"""
        return self.matcher.match(message, context)

    def get_available_workflows(self) -> List[WorkflowDefinition]:
        return self.workflows.active()

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self.workflows.get(workflow_id)

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        return self.registry.get(execution_id)

    def list_executions(
        self,
        user_id: Optional[str] = None,
        status: Optional[WorkflowExecutionStatus] = None,
    ) -> List[WorkflowExecution]:
        return self.registry.list(user_id=user_id, status=status)

    def cancel(self, execution_id: str) -> bool:
        """
        Request cancellation of a run.

        Cooperative: the step in flight finishes, no further step starts.
        Returns False for unknown ids.
        """
        return self.registry.cancel(execution_id)

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def handle_message(
        self,
        message: str,
        context: Optional[ConversationContext] = None,
    ) -> Optional[WorkflowExecution]:
        """Detect a trigger and run its workflow. None when nothing matches."""
        trigger = self.detect_trigger(message, context)
        if not trigger:
            return None

        workflow = self.workflows.get(trigger.workflow_id)
        if workflow is None or not workflow.is_active:
            logger.warning(
                f"Trigger '{trigger.id}' points at unavailable workflow '{trigger.workflow_id}'"
            )
            return None

        return await self.run(workflow, message, context)

    async def handle_event(
        self,
        source: str,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[WorkflowExecution]:
        """Run every workflow whose event trigger accepts the event.

        The event payload seeds the run context. Runs happen one after the
        other, highest trigger priority first.
        """
        executions = []
        for trigger in self.matcher.match_event(source, event_type, data):
            workflow = self.workflows.get(trigger.workflow_id)
            if workflow is None or not workflow.is_active:
                continue
            execution = await self.run(
                workflow,
                f"{source}:{event_type}",
                parameters=dict(data or {}),
            )
            executions.append(execution)
        return executions

    async def run(
        self,
        workflow: WorkflowDefinition,
        message: str,
        context: Optional[ConversationContext] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> WorkflowExecution:
        """
        Execute ``workflow`` to completion and return its execution record.

        ``parameters`` override the workflow defaults in the run context.

        Raises:
            CircularDependencyError: If the steps depend on each other in a
                cycle. Raised before any step runs; nothing is registered.
        """
        if self.config.parallel_branches:
            plan = self.resolver.levels(workflow.steps)
        else:
            plan = [[step] for step in self.resolver.sort(workflow.steps)]

        started_at = datetime.now(timezone.utc)
        execution = WorkflowExecution(
            workflow_id=workflow.id,
            user_id=context.user_id if context else "",
            session_id=context.session_id if context else "",
            status=WorkflowExecutionStatus.RUNNING,
            started_at=started_at,
            trigger_message=message,
            context=self._seed_context(workflow, message, started_at, parameters),
        )
        self.registry.add(execution)

        logger.info(
            f"Starting workflow '{workflow.name}' ({workflow.id}), "
            f"execution {execution.id}, {len(workflow.steps)} step(s)"
        )

        try:
            for level in plan:
                if execution.status in _HALTING_STATUSES:
                    break
                if len(level) == 1:
                    await self.executor.execute(execution, level[0])
                else:
                    await self._execute_level(execution, level)

            self._finalize(execution)

        except Exception as e:
            logger.exception(f"Workflow '{workflow.name}' execution {execution.id} crashed")
            self.registry.transition(execution, WorkflowExecutionStatus.FAILED, error=str(e))

        if execution.status != WorkflowExecutionStatus.CANCELLED or execution.completed_at is None:
            execution.completed_at = datetime.now(timezone.utc)

        logger.info(
            f"Workflow '{workflow.name}' execution {execution.id} finished: "
            f"{execution.status.value} in {execution.duration_seconds:.3f}s"
        )
        return execution

    def _seed_context(
        self,
        workflow: WorkflowDefinition,
        message: str,
        timestamp: datetime,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> ExecutionContext:
        context = ExecutionContext(workflow.default_parameters)
        context.update(parameters or {})
        context["user_message"] = message
        context["timestamp"] = timestamp
        context.update(self.extractor.extract(message, reference=timestamp))
        return context

    async def _execute_level(self, execution: WorkflowExecution, level: List[WorkflowStep]) -> None:
        """Run the independent steps of one dependency level concurrently"""
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def _run_step(step: WorkflowStep):
            async with semaphore:
                if execution.status in _HALTING_STATUSES:
                    return None
                return await self.executor.execute(execution, step)

        logger.debug(
            f"Execution {execution.id}: running {len(level)} step(s) concurrently "
            f"[{', '.join(s.id for s in level)}]"
        )
        await asyncio.gather(*[_run_step(step) for step in level])

    def _finalize(self, execution: WorkflowExecution) -> None:
        """Derive the final status of a run that was not halted"""
        failed = execution.steps_with_status(WorkflowStepStatus.FAILED)
        # optional steps that ran out of retries only downgrade to partial
        optional_failed = [
            record for record in execution.step_executions
            if record.skip_reason == SkipReason.OPTIONAL_STEP_FAILED
        ]
        completed = execution.steps_with_status(WorkflowStepStatus.COMPLETED)

        error = None
        if (failed or optional_failed) and completed:
            status = WorkflowExecutionStatus.PARTIALLY_COMPLETED
        elif failed:
            status = WorkflowExecutionStatus.FAILED
            error = f"Step '{failed[0].step_name}' failed: {failed[0].error}"
        else:
            status = WorkflowExecutionStatus.COMPLETED

        if self.registry.transition(execution, status, only_from=WorkflowExecutionStatus.RUNNING) and error:
            execution.error = error
