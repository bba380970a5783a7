"""
ChatFlow Application - Single entry point for conversational workflows.

Usage:
    from chatflow import ChatFlow

    flow = ChatFlow("config.yaml")

    @flow.capabilities.capability("CalendarPlugin", "FindNextAvailableSlot")
    async def find_slot(duration_minutes: int = 30) -> str:
        return "2025-03-14T10:00:00"

    execution = await flow.handle_message("plan project: website relaunch")
    print(execution.status, execution.final_outputs)

Config file:
    engine:
      backoff_base_seconds: 1.0
      parallel_branches: false
      retention_seconds: 3600
      catalog_paths: [workflows/]     # relative to the config file
    workflows: {...}                  # optional inline catalog
    triggers: [...]
"""

import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .capabilities import CapabilityRegistry
from .workflow.config import ConfigError, EngineConfig
from .workflow.loader import WorkflowLoader
from .workflow.models import (
    ConversationContext,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowTrigger,
)
from .workflow.orchestrator import WorkflowOrchestrator
from .workflow.builtin import BUILTIN_CATALOG

logger = logging.getLogger(__name__)


class WorkflowNotFound(LookupError):
    """Raised when a run is requested for an unknown or inactive workflow"""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


def _load_config(path: Union[str, Path]) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    # Replace ${VAR} with environment variable values
    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)\}", _replace_env, raw)
    try:
        data = yaml.safe_load(resolved)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file '{path}': {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping")
    return data


class ChatFlow:
    """
    ChatFlow application entry point.

    Reads configuration, loads the workflow catalogs and wires the
    orchestrator to a capability registry.

    Args:
        config: Path to a YAML config file, an already parsed config dict,
            or None for defaults (built-in workflows only).
        capabilities: Registry of plugin functions. A fresh, empty one is
            created when omitted.
        sleep: Async sleep used for retry backoff.

    Example:
        flow = ChatFlow("config.yaml", capabilities=my_registry)
        trigger = flow.detect_trigger("weekly review")
        execution = await flow.run(trigger.workflow_id, "weekly review")
    """

    def __init__(
        self,
        config: Union[str, Path, Dict[str, Any], None] = None,
        capabilities: Optional[CapabilityRegistry] = None,
        sleep=None,
    ):
        base_dir = Path.cwd()
        if isinstance(config, (str, Path)):
            base_dir = Path(config).resolve().parent
            raw = _load_config(config)
        else:
            raw = dict(config or {})

        unknown = sorted(set(raw) - {"engine", "workflows", "triggers"})
        if unknown:
            raise ConfigError(f"Unknown config sections: {', '.join(unknown)}")

        self._config = EngineConfig.from_dict(raw.get("engine"))
        logging.getLogger("chatflow").setLevel(self._config.log_level.upper())
        self._capabilities = capabilities or CapabilityRegistry()

        loader = WorkflowLoader()
        if self._config.include_builtin_catalog:
            loader.load_from_dict(BUILTIN_CATALOG, source="<builtin>")
        for path in self._config.catalog_paths:
            catalog_path = Path(path)
            if not catalog_path.is_absolute():
                catalog_path = base_dir / catalog_path
            loader.load_path(catalog_path)
        if raw.get("workflows") or raw.get("triggers"):
            loader.load_from_dict(
                {"workflows": raw.get("workflows"), "triggers": raw.get("triggers")},
                source="<config>",
            )
        workflows, triggers = loader.build()

        self._orchestrator = WorkflowOrchestrator(
            workflows,
            triggers,
            invoker=self._capabilities,
            config=self._config,
            sleep=sleep,
        )
        logger.info(
            f"ChatFlow ready: {len(workflows)} workflow(s), {len(triggers)} trigger(s), "
            f"{len(self._capabilities)} capability(ies)"
        )

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def capabilities(self) -> CapabilityRegistry:
        return self._capabilities

    @property
    def orchestrator(self) -> WorkflowOrchestrator:
        return self._orchestrator

    def detect_trigger(
        self,
        message: str,
        context: Optional[ConversationContext] = None,
    ) -> WorkflowTrigger:
        return self._orchestrator.detect_trigger(message, context)

    async def run(
        self,
        workflow: Union[str, WorkflowDefinition],
        message: str,
        context: Optional[ConversationContext] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> WorkflowExecution:
        """
        Run a workflow given by id or definition.

        Raises:
            WorkflowNotFound: If the id is unknown or the workflow is inactive
            CircularDependencyError: If the workflow's steps form a cycle
        """
        if isinstance(workflow, str):
            definition = self._orchestrator.get_workflow(workflow)
            if definition is None or not definition.is_active:
                raise WorkflowNotFound(workflow)
            workflow = definition
        return await self._orchestrator.run(workflow, message, context, parameters)

    async def handle_message(
        self,
        message: str,
        context: Optional[ConversationContext] = None,
    ) -> Optional[WorkflowExecution]:
        return await self._orchestrator.handle_message(message, context)

    async def handle_event(
        self,
        source: str,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[WorkflowExecution]:
        return await self._orchestrator.handle_event(source, event_type, data)

    async def run_due_schedules(
        self,
        now: datetime,
        last_runs: Dict[str, datetime],
    ) -> List[WorkflowExecution]:
        """
        Run workflows whose schedule triggers fired since their last run.

        ``last_runs`` (trigger id -> time) is updated in place, so a caller
        ticking once a minute can keep passing the same dict.
        """
        executions = []
        for trigger in self._orchestrator.matcher.due_schedules(now, last_runs):
            last_runs[trigger.id] = now
            workflow = self._orchestrator.get_workflow(trigger.workflow_id)
            if workflow is None or not workflow.is_active:
                continue
            logger.info(f"Schedule trigger '{trigger.id}' fired for workflow '{workflow.id}'")
            executions.append(await self._orchestrator.run(workflow, f"schedule:{trigger.id}"))
        return executions

    def get_available_workflows(self) -> List[WorkflowDefinition]:
        return self._orchestrator.get_available_workflows()

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self._orchestrator.get_workflow(workflow_id)

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        return self._orchestrator.get_execution(execution_id)

    def list_executions(
        self,
        user_id: Optional[str] = None,
        status: Optional[WorkflowExecutionStatus] = None,
    ) -> List[WorkflowExecution]:
        return self._orchestrator.list_executions(user_id=user_id, status=status)

    def cancel(self, execution_id: str) -> bool:
        return self._orchestrator.cancel(execution_id)
