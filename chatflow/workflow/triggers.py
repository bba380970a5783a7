"""
ChatFlow Trigger Matcher - Decide which workflow a message, event or clock tick starts

Message triggers:
    KEYWORD  any keyword is a substring of the lower-cased message
    PATTERN  case-insensitive regex search on the message
    INTENT   keyword match AND every condition equals the conversation state

Non-message triggers:
    EVENT     source + event type + filter match (match_event)
    SCHEDULE  cron expression in conditions["cron"] (due_schedules)

Example:
    matcher = TriggerMatcher(trigger_catalog)
    trigger = matcher.match("can you send meeting summary to the team?")
    if trigger:
        workflow = workflow_catalog.get(trigger.workflow_id)
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from croniter import croniter

from .catalog import TriggerCatalog
from .models import (
    NO_TRIGGER,
    ConversationContext,
    WorkflowTrigger,
    WorkflowTriggerType,
)

logger = logging.getLogger(__name__)


_MESSAGE_TRIGGER_TYPES = (
    WorkflowTriggerType.KEYWORD,
    WorkflowTriggerType.PATTERN,
    WorkflowTriggerType.INTENT,
)


class TriggerMatcher:
    """Matches user messages, system events and schedules against a TriggerCatalog"""

    def __init__(self, catalog: TriggerCatalog):
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def match(
        self,
        message: str,
        conversation_context: Optional[ConversationContext] = None,
    ) -> WorkflowTrigger:
        """
        Return the highest-priority active trigger matching ``message``.

        Ties keep catalog order. Returns NO_TRIGGER (falsy) when nothing
        matches.
        """
        matches = self.match_all(message, conversation_context)
        if not matches:
            logger.debug("No workflow trigger matched message")
            return NO_TRIGGER

        trigger = matches[0]
        logger.info(
            f"Detected workflow trigger '{trigger.id}' ({trigger.type.value}) "
            f"for workflow '{trigger.workflow_id}'"
        )
        return trigger

    def match_all(
        self,
        message: str,
        conversation_context: Optional[ConversationContext] = None,
    ) -> List[WorkflowTrigger]:
        """Every matching message trigger, highest priority first"""
        text = (message or "").lower()
        matches = [
            trigger for trigger in self.catalog.active()
            if trigger.type in _MESSAGE_TRIGGER_TYPES
            and self._matches_message(trigger, text, conversation_context)
        ]
        # sorted() is stable, so equal priorities keep catalog order
        return sorted(matches, key=lambda t: t.priority, reverse=True)

    def _matches_message(
        self,
        trigger: WorkflowTrigger,
        text: str,
        conversation_context: Optional[ConversationContext],
    ) -> bool:
        if trigger.type == WorkflowTriggerType.KEYWORD:
            return self._matches_keywords(trigger, text)

        if trigger.type == WorkflowTriggerType.PATTERN:
            pattern = self.catalog.pattern(trigger)
            return pattern is not None and pattern.search(text) is not None

        if trigger.type == WorkflowTriggerType.INTENT:
            return (
                self._matches_keywords(trigger, text)
                and self._matches_conditions(trigger, conversation_context)
            )

        return False

    @staticmethod
    def _matches_keywords(trigger: WorkflowTrigger, text: str) -> bool:
        return any(keyword.lower() in text for keyword in trigger.keywords)

    @staticmethod
    def _matches_conditions(
        trigger: WorkflowTrigger,
        conversation_context: Optional[ConversationContext],
    ) -> bool:
        if not trigger.conditions:
            return True
        if conversation_context is None:
            return False
        for key, expected in trigger.conditions.items():
            actual = conversation_context.lookup(key)
            if actual is None or str(actual).lower() != str(expected).lower():
                return False
        return True

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def match_event(
        self,
        source: str,
        event_type: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[WorkflowTrigger]:
        """
        Event triggers accepting an incoming event, highest priority first.

        A trigger's conditions may carry ``source``, ``event_type`` and
        ``filters``; an empty source or type accepts anything. String filters
        match as case-insensitive substrings, other values by equality.
        """
        matches = [
            trigger for trigger in self.catalog.of_type(WorkflowTriggerType.EVENT)
            if matches_event(trigger.conditions, source, event_type, data)
        ]
        if matches:
            logger.info(
                f"Event {source}/{event_type} matched {len(matches)} trigger(s): "
                f"{', '.join(t.id for t in matches)}"
            )
        return sorted(matches, key=lambda t: t.priority, reverse=True)

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    def due_schedules(
        self,
        now: datetime,
        last_runs: Optional[Mapping[str, datetime]] = None,
    ) -> List[WorkflowTrigger]:
        """
        Schedule triggers that fired in ``(last_run, now]``.

        Triggers never run before are checked against the previous minute,
        so a scheduler ticking once a minute picks them up exactly once.
        """
        last_runs = last_runs or {}
        due = []
        for trigger in self.catalog.of_type(WorkflowTriggerType.SCHEDULE):
            cron = trigger.conditions.get("cron")
            if not cron:
                continue
            # start one second past now so a fire time equal to now counts
            previous = croniter(cron, now + timedelta(seconds=1)).get_prev(datetime)
            last_run = last_runs.get(trigger.id)
            if last_run is None:
                if (now - previous).total_seconds() < 60:
                    due.append(trigger)
            elif last_run < previous <= now:
                due.append(trigger)

        return sorted(due, key=lambda t: t.priority, reverse=True)

    @staticmethod
    def next_fire_time(trigger: WorkflowTrigger, after: datetime) -> Optional[datetime]:
        """Next time a schedule trigger fires after ``after``, None for other types"""
        cron = trigger.conditions.get("cron")
        if trigger.type != WorkflowTriggerType.SCHEDULE or not cron:
            return None
        return croniter(cron, after).get_next(datetime)


def matches_event(
    conditions: Mapping[str, Any],
    event_source: str,
    event_type: str,
    event_data: Optional[Dict[str, Any]] = None,
) -> bool:
    """Check an incoming event against one trigger's conditions"""
    expected_source = conditions.get("source", "")
    if expected_source and expected_source != event_source:
        return False

    expected_type = conditions.get("event_type", "")
    if expected_type and expected_type != event_type:
        return False

    filters = conditions.get("filters") or {}
    if filters:
        event_data = event_data or {}
        for key, expected_value in filters.items():
            actual_value = event_data.get(key)
            if actual_value is None:
                return False
            if isinstance(expected_value, str) and isinstance(actual_value, str):
                if expected_value.lower() not in actual_value.lower():
                    return False
            elif actual_value != expected_value:
                return False

    return True
