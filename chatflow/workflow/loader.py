"""
ChatFlow Workflow Loader - Load and validate workflow and trigger catalogs

This module handles:
1. Loading catalogs from YAML files, directories or plain dictionaries
2. Parsing step, condition and trigger definitions
3. Validating structure (ids, dependencies, cycles, regexes, cron expressions)
4. Building the read-only WorkflowCatalog and TriggerCatalog

Catalog format:

    workflows:
      meeting-follow-up:
        name: Meeting Follow-up
        description: Summarize meeting and send follow-up email
        default_parameters: {selected_meeting_id: ""}
        steps:
          - id: get-meeting-transcript
            order: 1
            name: Get Meeting Transcript
            plugin: MeetingPlugin
            function: GetMeetingTranscript
            parameters: {meeting_id: "{{selected_meeting_id}}"}
            outputs: {result: transcript}
          - id: send-follow-up
            order: 2
            plugin: MailPlugin
            function: SendEmail
            depends_on: [get-meeting-transcript]
            condition: {field: attendee_email, operator: contains, expected: "@"}
            optional: true
            max_retries: 2

    triggers:
      - workflow: meeting-follow-up
        type: keyword
        keywords: [meeting recap, send meeting summary]
        priority: 9
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from croniter import croniter

from .builtin import BUILTIN_CATALOG
from .catalog import TriggerCatalog, WorkflowCatalog
from .models import (
    ConditionOperator,
    ConditionType,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowStepCondition,
    WorkflowTrigger,
    WorkflowTriggerType,
)
from .resolver import CircularDependencyError, DependencyResolver

logger = logging.getLogger(__name__)


class WorkflowLoadError(Exception):
    """Raised when a catalog file cannot be read or parsed"""
    pass


class WorkflowValidationError(Exception):
    """Raised when a workflow or trigger definition is invalid"""
    pass


class WorkflowLoader:
    """
    Collects workflow and trigger definitions and builds the catalogs.

    Example usage:
        loader = WorkflowLoader()
        loader.load_from_dict(BUILTIN_CATALOG)
        loader.load_from_file("config/workflows.yaml")
        workflows, triggers = loader.build()
    """

    def __init__(self):
        self._workflows: Dict[str, WorkflowDefinition] = {}
        self._triggers: List[WorkflowTrigger] = []
        self._resolver = DependencyResolver()

    def load_from_file(self, file_path: Union[str, Path]) -> List[WorkflowDefinition]:
        """
        Load a catalog from a YAML file.

        Raises:
            WorkflowLoadError: If the file cannot be read or parsed
            WorkflowValidationError: If a definition is invalid
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise WorkflowLoadError(f"Workflow file not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise WorkflowLoadError(f"Invalid YAML in {file_path}: {e}")

        if not data:
            return []

        if not isinstance(data, dict):
            raise WorkflowLoadError(f"Catalog root must be a mapping in {file_path}")

        return self.load_from_dict(data, source=str(file_path))

    def load_from_directory(self, dir_path: Union[str, Path]) -> List[WorkflowDefinition]:
        """Load every .yaml / .yml file in a directory, in name order"""
        dir_path = Path(dir_path)

        if not dir_path.exists():
            raise WorkflowLoadError(f"Workflow directory not found: {dir_path}")

        if not dir_path.is_dir():
            raise WorkflowLoadError(f"Not a directory: {dir_path}")

        workflows = []
        for file_path in sorted(dir_path.glob("*.yaml")) + sorted(dir_path.glob("*.yml")):
            workflows.extend(self.load_from_file(file_path))

        return workflows

    def load_path(self, path: Union[str, Path]) -> List[WorkflowDefinition]:
        """Load a file or a directory"""
        if Path(path).is_dir():
            return self.load_from_directory(path)
        return self.load_from_file(path)

    def load_from_dict(
        self,
        data: Dict[str, Any],
        source: str = "<dict>"
    ) -> List[WorkflowDefinition]:
        """Load workflows (``workflows`` key) and triggers (``triggers`` key)"""
        loaded = []

        for workflow_id, workflow_data in (data.get("workflows") or {}).items():
            try:
                workflow = self._parse_workflow(workflow_id, workflow_data or {})
            except WorkflowValidationError as e:
                raise WorkflowValidationError(
                    f"Error loading workflow '{workflow_id}' from {source}: {e}"
                )
            if workflow.id in self._workflows:
                raise WorkflowValidationError(
                    f"Duplicate workflow '{workflow.id}' in {source}"
                )
            self._workflows[workflow.id] = workflow
            loaded.append(workflow)

        for index, trigger_data in enumerate(data.get("triggers") or []):
            try:
                trigger = self._parse_trigger(trigger_data or {}, index)
            except WorkflowValidationError as e:
                raise WorkflowValidationError(f"Error loading trigger #{index} from {source}: {e}")
            self._triggers.append(trigger)

        logger.info(
            f"Loaded {len(loaded)} workflow(s) and "
            f"{len(data.get('triggers') or [])} trigger(s) from {source}"
        )
        return loaded

    def build(self) -> Tuple[WorkflowCatalog, TriggerCatalog]:
        """
        Validate cross references and freeze everything loaded so far.

        Raises:
            WorkflowValidationError: If a trigger targets an unknown workflow
                or two triggers share an id
        """
        seen_ids = set()
        for trigger in self._triggers:
            if trigger.workflow_id not in self._workflows:
                raise WorkflowValidationError(
                    f"Trigger '{trigger.id}' targets unknown workflow '{trigger.workflow_id}'"
                )
            if trigger.id in seen_ids:
                raise WorkflowValidationError(f"Duplicate trigger id '{trigger.id}'")
            seen_ids.add(trigger.id)

        return WorkflowCatalog(self._workflows.values()), TriggerCatalog(self._triggers)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _parse_workflow(self, workflow_id: str, data: Dict[str, Any]) -> WorkflowDefinition:
        steps_data = data.get("steps") or []
        if not steps_data:
            raise WorkflowValidationError("Workflow must define at least one step")

        steps = tuple(
            self._parse_step(step_data or {}, index)
            for index, step_data in enumerate(steps_data)
        )

        errors = self._validate_steps(steps)
        if errors:
            raise WorkflowValidationError("; ".join(errors))

        return WorkflowDefinition(
            id=workflow_id,
            name=data.get("name", workflow_id),
            description=data.get("description", ""),
            steps=steps,
            default_parameters=dict(data.get("default_parameters") or {}),
            is_active=bool(data.get("active", True)),
            created_by=data.get("created_by", ""),
        )

    def _parse_step(self, data: Dict[str, Any], index: int) -> WorkflowStep:
        step_id = data.get("id")
        plugin = data.get("plugin")
        function = data.get("function")
        if not step_id:
            raise WorkflowValidationError(f"Step #{index} is missing 'id'")
        if not plugin or not function:
            raise WorkflowValidationError(f"Step '{step_id}' must define 'plugin' and 'function'")

        depends_on = data.get("depends_on") or []
        if isinstance(depends_on, str):
            depends_on = [depends_on]

        max_retries = data.get("max_retries", 0)
        if not isinstance(max_retries, int) or max_retries < 0:
            raise WorkflowValidationError(f"Step '{step_id}' max_retries must be a non-negative integer")

        condition = None
        if data.get("condition"):
            condition = self._parse_condition(step_id, data["condition"])

        return WorkflowStep(
            id=step_id,
            order=int(data.get("order", index + 1)),
            name=data.get("name", step_id),
            description=data.get("description", ""),
            plugin_name=plugin,
            function_name=function,
            parameters=dict(data.get("parameters") or {}),
            depends_on=tuple(depends_on),
            output_mappings=dict(data.get("outputs") or {}),
            condition=condition,
            is_optional=bool(data.get("optional", False)),
            max_retries=max_retries,
            timeout_seconds=float(data.get("timeout_seconds", 300)),
        )

    def _parse_condition(self, step_id: str, data: Dict[str, Any]) -> WorkflowStepCondition:
        if not data.get("field"):
            raise WorkflowValidationError(f"Step '{step_id}' condition must name a 'field'")

        type_str = data.get("type", "equals")
        try:
            condition_type = ConditionType(type_str)
        except ValueError:
            raise WorkflowValidationError(
                f"Invalid condition type: {type_str}. "
                f"Must be one of: {[t.value for t in ConditionType]}"
            )

        operator = ConditionOperator(data.get("operator", "equals"))
        if operator == ConditionOperator.UNKNOWN:
            logger.warning(
                f"Step '{step_id}' uses unknown condition operator "
                f"'{data.get('operator')}'; it will always pass"
            )

        return WorkflowStepCondition(
            field=data["field"],
            expected_value=data.get("expected"),
            type=condition_type,
            operator=operator,
        )

    def _validate_steps(self, steps: Tuple[WorkflowStep, ...]) -> List[str]:
        errors = []
        ids = [s.id for s in steps]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            errors.append(f"Duplicate step ids: {', '.join(duplicates)}")

        known = set(ids)
        for step in steps:
            missing = [d for d in step.depends_on if d not in known]
            if missing:
                errors.append(f"Step '{step.id}' depends on unknown step(s): {', '.join(missing)}")

        if not errors:
            try:
                self._resolver.sort(steps)
            except CircularDependencyError as e:
                errors.append(str(e))

        return errors

    def _parse_trigger(self, data: Dict[str, Any], index: int) -> WorkflowTrigger:
        workflow_id = data.get("workflow")
        if not workflow_id:
            raise WorkflowValidationError("Trigger must name a 'workflow'")

        type_str = data.get("type", "keyword")
        try:
            trigger_type = WorkflowTriggerType(type_str)
        except ValueError:
            raise WorkflowValidationError(
                f"Invalid trigger type: {type_str}. "
                f"Must be one of: {[t.value for t in WorkflowTriggerType]}"
            )

        keywords = data.get("keywords") or []
        if isinstance(keywords, str):
            keywords = [keywords]
        pattern = data.get("pattern") or ""
        conditions = dict(data.get("conditions") or {})

        if trigger_type in (WorkflowTriggerType.KEYWORD, WorkflowTriggerType.INTENT) and not keywords:
            raise WorkflowValidationError(f"{trigger_type.value} trigger needs 'keywords'")

        if trigger_type == WorkflowTriggerType.PATTERN:
            if not pattern:
                raise WorkflowValidationError("pattern trigger needs 'pattern'")
            try:
                re.compile(pattern)
            except re.error as e:
                raise WorkflowValidationError(f"Invalid pattern '{pattern}': {e}")

        if trigger_type == WorkflowTriggerType.SCHEDULE:
            cron = conditions.get("cron")
            if not cron or not croniter.is_valid(cron):
                raise WorkflowValidationError(f"schedule trigger needs a valid 'cron' condition, got {cron!r}")

        return WorkflowTrigger(
            id=data.get("id") or f"{workflow_id}-{trigger_type.value}-{index}",
            workflow_id=workflow_id,
            type=trigger_type,
            keywords=tuple(k.lower() for k in keywords),
            pattern=pattern,
            conditions=conditions,
            is_active=bool(data.get("active", True)),
            priority=int(data.get("priority", 0)),
        )


def load_catalogs(
    include_builtin: bool = True,
    paths: Optional[List[Union[str, Path]]] = None,
) -> Tuple[WorkflowCatalog, TriggerCatalog]:
    """Build catalogs from the built-in definitions plus any extra files"""
    loader = WorkflowLoader()
    if include_builtin:
        loader.load_from_dict(BUILTIN_CATALOG, source="<builtin>")
    for path in paths or []:
        loader.load_path(path)
    return loader.build()
