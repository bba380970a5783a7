"""
ChatFlow Step Executor - Execute a single workflow step

For each step the executor:
1. Checks that every dependency completed in this run (else skipped)
2. Evaluates the step condition against the execution context (else skipped)
3. Resolves {{key}} placeholders in the step parameters
4. Invokes the capability with retries and exponential backoff
5. Parses the result and copies mapped outputs into the execution context
6. Records timestamps and elapsed time whatever the outcome
"""

import asyncio
import json
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from .config import EngineConfig
from .models import (
    ConditionOperator,
    ExecutionContext,
    SkipReason,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowStep,
    WorkflowStepCondition,
    WorkflowStepExecution,
    WorkflowStepStatus,
    parse_number,
)
from .registry import ExecutionRegistry

logger = logging.getLogger(__name__)


PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


class StepExecutionError(Exception):
    """Raised when a capability invocation fails during a step attempt"""

    def __init__(self, step: WorkflowStep, cause: BaseException):
        self.step = step
        self.cause = cause
        message = str(cause) or cause.__class__.__name__
        super().__init__(message)


class CapabilityInvokerProtocol(Protocol):
    """Anything that can call a named plugin function (see CapabilityRegistry)"""

    async def invoke(
        self,
        plugin_name: str,
        function_name: str,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> Any:
        ...


def resolve_placeholders(value: str, context: ExecutionContext) -> str:
    """Replace each {{key}} with the context value's string form.

    Tokens whose key is absent from the context are left verbatim.
    """
    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in context:
            return ExecutionContext.format_value(context[key])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, value)


def evaluate_condition(condition: WorkflowStepCondition, context: ExecutionContext) -> bool:
    """
    Decide whether a step's condition passes.

    A field missing from the context never passes. ``equals``/``contains``
    compare string forms; ``greater``/``less`` compare as floats and treat
    unparsable values as equal. Unknown operators always pass.
    """
    if condition.field not in context:
        return False

    actual = context[condition.field]
    operator = ConditionOperator(condition.operator)

    if operator == ConditionOperator.EQUALS:
        return ExecutionContext.format_value(actual) == ExecutionContext.format_value(condition.expected_value)
    if operator == ConditionOperator.CONTAINS:
        return ExecutionContext.format_value(condition.expected_value) in ExecutionContext.format_value(actual)
    if operator == ConditionOperator.GREATER:
        return compare_numeric(actual, condition.expected_value) > 0
    if operator == ConditionOperator.LESS:
        return compare_numeric(actual, condition.expected_value) < 0
    return True


def compare_numeric(left: Any, right: Any) -> int:
    """-1/0/1 comparison of two values as floats; 0 if either is not numeric"""
    a = parse_number(left)
    b = parse_number(right)
    if a is None or b is None:
        return 0
    return (a > b) - (a < b)


def parse_step_output(result: Any) -> Dict[str, Any]:
    """
    Wrap a capability result into the step output envelope.

    The envelope always has ``result``, ``success`` and ``timestamp``. A JSON
    object (given as text or as a dict) is merged over the envelope; any
    other result only appears under ``result``.
    """
    output: Dict[str, Any] = {
        "result": result,
        "success": True,
        "timestamp": datetime.now(timezone.utc),
    }

    parsed: Any = None
    if isinstance(result, dict):
        parsed = result
    elif isinstance(result, str) and result.lstrip().startswith(("{", "[")):
        try:
            parsed = json.loads(result)
        except ValueError:
            logger.debug("Step result looked like JSON but did not parse, keeping raw text")

    if isinstance(parsed, dict):
        output.update(parsed)

    return output


class StepExecutor:
    """
    Executes one workflow step against a running execution.

    The executor mutates the execution in place: it appends the step record,
    merges mapped outputs into the context and, when a required step
    exhausts its retries, marks the whole execution failed.

    Example:
        executor = StepExecutor(invoker=capability_registry)
        record = await executor.execute(execution, step)
    """

    def __init__(
        self,
        invoker: CapabilityInvokerProtocol,
        config: Optional[EngineConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        registry: Optional[ExecutionRegistry] = None,
    ):
        """
        Args:
            invoker: Calls the capability a step names
            config: Engine configuration (backoff, timeouts)
            sleep: Async sleep used between retries (defaults to asyncio.sleep)
            registry: Execution store whose lock guards status changes
        """
        self.invoker = invoker
        self.config = config or EngineConfig()
        self._sleep = sleep or asyncio.sleep
        self.registry = registry or ExecutionRegistry()

    async def execute(
        self,
        execution: WorkflowExecution,
        step: WorkflowStep,
    ) -> WorkflowStepExecution:
        record = WorkflowStepExecution(
            step_id=step.id,
            step_name=step.name,
            status=WorkflowStepStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
        )
        execution.step_executions.append(record)

        try:
            if not self._dependencies_satisfied(execution, step):
                self._skip(record, SkipReason.DEPENDENCY_NOT_SATISFIED)
                logger.info(f"Skipping step '{step.name}': dependencies not completed")
                return record

            if step.condition is not None and not evaluate_condition(step.condition, execution.context):
                self._skip(record, SkipReason.CONDITION_NOT_MET)
                logger.info(f"Skipping step '{step.name}': condition on '{step.condition.field}' not met")
                return record

            record.inputs = self.prepare_inputs(execution.context, step)
            await self._run_with_retries(execution, step, record)

        except Exception as e:
            logger.exception(f"Unexpected error in step '{step.name}'")
            record.status = WorkflowStepStatus.FAILED
            record.error = str(e)
            if not step.is_optional:
                self._fail_execution(execution, step, str(e))
        finally:
            record.completed_at = datetime.now(timezone.utc)

        return record

    def prepare_inputs(self, context: ExecutionContext, step: WorkflowStep) -> Dict[str, Any]:
        """Copy the step parameters, resolving placeholders in string values"""
        inputs: Dict[str, Any] = {}
        for key, value in step.parameters.items():
            if isinstance(value, str):
                inputs[key] = resolve_placeholders(value, context)
            else:
                inputs[key] = value
        return inputs

    async def _run_with_retries(
        self,
        execution: WorkflowExecution,
        step: WorkflowStep,
        record: WorkflowStepExecution,
    ) -> None:
        attempts = step.max_retries + 1

        for attempt in range(attempts):
            record.retry_count = attempt
            record.status = WorkflowStepStatus.RUNNING
            started = time.perf_counter()

            try:
                result = await self._invoke(step, record.inputs)
            except Exception as e:
                record.execution_time = time.perf_counter() - started
                error = StepExecutionError(step, e)

                if attempt == attempts - 1:
                    record.error = str(error)
                    if step.is_optional:
                        record.status = WorkflowStepStatus.SKIPPED
                        record.skip_reason = SkipReason.OPTIONAL_STEP_FAILED
                        logger.warning(
                            f"Optional step '{step.name}' failed after {attempts} attempt(s), skipping: {error}"
                        )
                    else:
                        record.status = WorkflowStepStatus.FAILED
                        self._fail_execution(execution, step, str(error))
                        logger.error(f"Step '{step.name}' failed after {attempts} attempt(s): {error}")
                    return

                delay = self.config.backoff_delay(attempt)
                record.status = WorkflowStepStatus.RETRYING
                record.error = str(error)
                logger.warning(
                    f"Step '{step.name}' attempt {attempt + 1}/{attempts} failed: {error}. "
                    f"Retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            record.execution_time = time.perf_counter() - started
            record.outputs = parse_step_output(result)
            record.status = WorkflowStepStatus.COMPLETED
            record.error = None
            self._apply_output_mappings(execution, step, record.outputs)
            logger.info(
                f"Step '{step.name}' completed in {record.execution_time:.3f}s "
                f"(attempt {attempt + 1}/{attempts})"
            )
            return

    async def _invoke(self, step: WorkflowStep, inputs: Dict[str, Any]) -> Any:
        call = self.invoker.invoke(step.plugin_name, step.function_name, dict(inputs))
        if self.config.enforce_step_timeouts and step.timeout_seconds:
            try:
                return await asyncio.wait_for(call, timeout=step.timeout_seconds)
            except asyncio.TimeoutError:
                raise TimeoutError(f"Step timed out after {step.timeout_seconds}s")
        return await call

    def _dependencies_satisfied(self, execution: WorkflowExecution, step: WorkflowStep) -> bool:
        for dependency_id in step.depends_on:
            dependency = execution.get_step_execution(dependency_id)
            if dependency is None or dependency.status != WorkflowStepStatus.COMPLETED:
                return False
        return True

    def _apply_output_mappings(
        self,
        execution: WorkflowExecution,
        step: WorkflowStep,
        outputs: Dict[str, Any],
    ) -> None:
        for output_key, context_key in step.output_mappings.items():
            if output_key in outputs:
                execution.context[context_key] = outputs[output_key]
                execution.final_outputs[context_key] = outputs[output_key]

    def _skip(self, record: WorkflowStepExecution, reason: SkipReason) -> None:
        record.status = WorkflowStepStatus.SKIPPED
        record.skip_reason = reason

    def _fail_execution(self, execution: WorkflowExecution, step: WorkflowStep, error: str) -> None:
        # A cancel request that arrived mid-step stays the final word.
        self.registry.transition(
            execution,
            WorkflowExecutionStatus.FAILED,
            error=f"Step '{step.name}' failed: {error}",
        )
