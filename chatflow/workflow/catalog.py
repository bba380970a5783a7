"""Read-only workflow and trigger catalogs, assembled once at startup."""

import re
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Pattern, Tuple

from .models import WorkflowDefinition, WorkflowTrigger, WorkflowTriggerType


class WorkflowCatalog:
    """
    Immutable map of workflow id -> WorkflowDefinition.

    Example:
        catalog = WorkflowCatalog(definitions)
        workflow = catalog.get("meeting-to-tasks")
        active = catalog.active()
    """

    def __init__(self, definitions: Iterable[WorkflowDefinition] = ()):
        workflows: Dict[str, WorkflowDefinition] = {}
        for definition in definitions:
            if definition.id in workflows:
                raise ValueError(f"Duplicate workflow id: {definition.id}")
            workflows[definition.id] = definition
        self._workflows: Mapping[str, WorkflowDefinition] = MappingProxyType(workflows)

    def get(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return self._workflows.get(workflow_id)

    def all(self) -> List[WorkflowDefinition]:
        return list(self._workflows.values())

    def active(self) -> List[WorkflowDefinition]:
        return [w for w in self._workflows.values() if w.is_active]

    def __len__(self) -> int:
        return len(self._workflows)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._workflows

    def __iter__(self) -> Iterator[WorkflowDefinition]:
        return iter(self._workflows.values())


class TriggerCatalog:
    """
    Immutable, ordered list of triggers.

    Catalog order is the tie-breaker between equal priorities. Regex patterns
    are compiled here, once.
    """

    def __init__(self, triggers: Iterable[WorkflowTrigger] = ()):
        self._triggers: Tuple[WorkflowTrigger, ...] = tuple(triggers)
        seen = set()
        for trigger in self._triggers:
            if trigger.id in seen:
                raise ValueError(f"Duplicate trigger id: {trigger.id}")
            seen.add(trigger.id)

        self._patterns: Mapping[str, Pattern[str]] = MappingProxyType({
            t.id: re.compile(t.pattern, re.IGNORECASE)
            for t in self._triggers
            if t.type == WorkflowTriggerType.PATTERN and t.pattern
        })

    def all(self) -> List[WorkflowTrigger]:
        return list(self._triggers)

    def active(self) -> List[WorkflowTrigger]:
        return [t for t in self._triggers if t.is_active]

    def of_type(self, trigger_type: WorkflowTriggerType) -> List[WorkflowTrigger]:
        return [t for t in self._triggers if t.is_active and t.type == trigger_type]

    def for_workflow(self, workflow_id: str) -> List[WorkflowTrigger]:
        return [t for t in self._triggers if t.workflow_id == workflow_id]

    def pattern(self, trigger: WorkflowTrigger) -> Optional[Pattern[str]]:
        return self._patterns.get(trigger.id)

    def __len__(self) -> int:
        return len(self._triggers)

    def __iter__(self) -> Iterator[WorkflowTrigger]:
        return iter(self._triggers)
