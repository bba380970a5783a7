"""Tests for chatflow.workflow.models

Tests cover:
- ExecutionContext typed reads and placeholder formatting
- ConditionOperator parsing of unknown operators
- WorkflowTrigger truthiness / NO_TRIGGER
- ConversationContext lookups
- WorkflowExecution helpers and to_dict()
"""

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from chatflow.workflow.models import (
    NO_TRIGGER,
    ConditionOperator,
    ConversationContext,
    ConversationWorkflow,
    ExecutionContext,
    SkipReason,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowState,
    WorkflowStep,
    WorkflowStepExecution,
    WorkflowStepStatus,
    WorkflowTrigger,
    parse_number,
)


# ── ExecutionContext ──


class TestExecutionContext:
    def test_mapping_access(self):
        ctx = ExecutionContext({"a": 1})
        ctx["b"] = "two"
        ctx.set("c", [3])

        assert "a" in ctx and "b" in ctx and "c" in ctx
        assert ctx["b"] == "two"
        assert ctx.get("missing", "default") == "default"
        assert len(ctx) == 3
        assert sorted(ctx.keys()) == ["a", "b", "c"]

    def test_initial_values_are_copied(self):
        defaults = {"x": 1}
        ctx = ExecutionContext(defaults)
        ctx["x"] = 2
        assert defaults == {"x": 1}

    def test_get_text(self):
        ctx = ExecutionContext({"n": 42, "none": None})
        assert ctx.get_text("n") == "42"
        assert ctx.get_text("none") == ""
        assert ctx.get_text("missing") == ""
        assert ctx.get_text("missing", "fallback") == "fallback"

    def test_get_number(self):
        ctx = ExecutionContext({"int": 3, "text": " 2.5 ", "word": "many", "flag": True})
        assert ctx.get_number("int") == 3.0
        assert ctx.get_number("text") == 2.5
        assert ctx.get_number("word") is None
        assert ctx.get_number("flag") is None
        assert ctx.get_number("missing") is None

    def test_get_datetime(self):
        now = datetime(2024, 5, 1, 9, 30)
        ctx = ExecutionContext({
            "dt": now,
            "d": date(2024, 5, 2),
            "iso": "2024-05-03T10:00:00",
            "junk": "not a date",
        })
        assert ctx.get_datetime("dt") == now
        assert ctx.get_datetime("d") == datetime(2024, 5, 2)
        assert ctx.get_datetime("iso") == datetime(2024, 5, 3, 10, 0)
        assert ctx.get_datetime("junk") is None
        assert ctx.get_datetime("missing") is None

    def test_format_value(self):
        assert ExecutionContext.format_value(None) == ""
        assert ExecutionContext.format_value("text") == "text"
        assert ExecutionContext.format_value(7) == "7"
        assert ExecutionContext.format_value(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05"
        assert json.loads(ExecutionContext.format_value({"k": [1, 2]})) == {"k": [1, 2]}
        assert ExecutionContext.format_value([1, "a"]) == '[1, "a"]'

    def test_to_dict_is_json_friendly(self):
        ctx = ExecutionContext({"when": datetime(2024, 1, 1), "items": (1, 2)})
        snapshot = ctx.to_dict()
        assert snapshot == {"when": "2024-01-01T00:00:00", "items": [1, 2]}
        json.dumps(snapshot)


class TestParseNumber:
    @pytest.mark.parametrize("value,expected", [
        (1, 1.0),
        (2.5, 2.5),
        ("10", 10.0),
        ("-3.5", -3.5),
        ("abc", None),
        (None, None),
        (False, None),
    ])
    def test_parse_number(self, value, expected):
        assert parse_number(value) == expected


# ── Enums ──


class TestConditionOperator:
    def test_known_operators(self):
        assert ConditionOperator("equals") == ConditionOperator.EQUALS
        assert ConditionOperator("greater") == ConditionOperator.GREATER

    def test_case_insensitive(self):
        assert ConditionOperator("Contains") == ConditionOperator.CONTAINS
        assert ConditionOperator("LESS") == ConditionOperator.LESS

    def test_unknown_operator_maps_to_unknown(self):
        assert ConditionOperator("between") == ConditionOperator.UNKNOWN


# ── Triggers ──


class TestWorkflowTrigger:
    def test_no_trigger_is_falsy(self):
        assert not NO_TRIGGER
        assert NO_TRIGGER.workflow_id == ""

    def test_trigger_with_workflow_is_truthy(self):
        trigger = WorkflowTrigger(id="t", workflow_id="weekly-review", keywords=("weekly review",))
        assert trigger

    def test_to_dict(self):
        trigger = WorkflowTrigger(id="t", workflow_id="w", keywords=("a", "b"), priority=3)
        data = trigger.to_dict()
        assert data["type"] == "keyword"
        assert data["keywords"] == ["a", "b"]
        assert data["priority"] == 3


# ── Conversation context ──


class TestConversationContext:
    def test_lookup_workflow_state(self):
        ctx = ConversationContext(
            current_workflow=ConversationWorkflow(current_state=WorkflowState.CREATING_TASKS),
        )
        assert ctx.lookup("workflow_state") == "creating_tasks"

    def test_lookup_collected_data(self):
        ctx = ConversationContext(
            current_workflow=ConversationWorkflow(collected_data={"meeting_id": "m-1"}),
        )
        assert ctx.lookup("meeting_id") == "m-1"
        assert ctx.lookup("missing") is None


# ── Definitions ──


class TestWorkflowDefinition:
    def test_get_step_and_to_dict(self):
        step = WorkflowStep(
            id="a", order=1, name="A", plugin_name="P", function_name="F",
            depends_on=(), max_retries=2,
        )
        workflow = WorkflowDefinition(id="w", name="W", steps=(step,))

        assert workflow.get_step("a") is step
        assert workflow.get_step("zzz") is None
        assert step.capability == "P.F"

        data = workflow.to_dict()
        assert data["steps"][0]["capability"] == "P.F"
        assert data["steps"][0]["max_retries"] == 2

    def test_definitions_are_frozen(self):
        workflow = WorkflowDefinition(id="w", name="W")
        with pytest.raises(AttributeError):
            workflow.name = "changed"


# ── Execution tracking ──


class TestWorkflowExecution:
    def test_defaults(self):
        execution = WorkflowExecution(workflow_id="w")
        assert execution.status == WorkflowExecutionStatus.NOT_STARTED
        assert execution.id
        assert not execution.is_terminal
        assert execution.duration_seconds is None

    def test_terminal_statuses(self):
        execution = WorkflowExecution(workflow_id="w")
        for status in (
            WorkflowExecutionStatus.COMPLETED,
            WorkflowExecutionStatus.FAILED,
            WorkflowExecutionStatus.CANCELLED,
            WorkflowExecutionStatus.PARTIALLY_COMPLETED,
        ):
            execution.status = status
            assert execution.is_terminal

    def test_duration(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        execution = WorkflowExecution(
            workflow_id="w",
            started_at=start,
            completed_at=start + timedelta(seconds=2.5),
        )
        assert execution.duration_seconds == 2.5

    def test_step_helpers(self):
        execution = WorkflowExecution(workflow_id="w")
        execution.step_executions.append(
            WorkflowStepExecution(step_id="a", step_name="A", status=WorkflowStepStatus.COMPLETED)
        )
        execution.step_executions.append(
            WorkflowStepExecution(
                step_id="b", step_name="B",
                status=WorkflowStepStatus.SKIPPED,
                skip_reason=SkipReason.CONDITION_NOT_MET,
            )
        )

        assert execution.get_step_execution("b").step_name == "B"
        assert execution.get_step_execution("c") is None
        assert [s.step_id for s in execution.steps_with_status(WorkflowStepStatus.COMPLETED)] == ["a"]

    def test_to_dict(self):
        execution = WorkflowExecution(workflow_id="w", user_id="u1")
        execution.context["timestamp"] = datetime(2024, 1, 1)
        execution.step_executions.append(
            WorkflowStepExecution(
                step_id="b", step_name="B",
                status=WorkflowStepStatus.SKIPPED,
                skip_reason=SkipReason.DEPENDENCY_NOT_SATISFIED,
            )
        )

        data = execution.to_dict()
        assert data["workflow_id"] == "w"
        assert data["user_id"] == "u1"
        assert data["status"] == "not_started"
        assert data["context"]["timestamp"] == "2024-01-01T00:00:00"
        assert data["step_executions"][0]["skip_reason"] == "dependency_not_satisfied"
        json.dumps(data)
