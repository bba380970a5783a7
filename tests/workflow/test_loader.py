"""Tests for chatflow.workflow.loader and chatflow.workflow.catalog

Tests cover:
- Parsing workflows, steps, conditions and triggers from dicts and YAML
- Validation errors (ids, dependencies, cycles, regex, cron)
- The built-in catalog
- WorkflowCatalog / TriggerCatalog behaviour
"""

import pytest

from chatflow.workflow.builtin import BUILTIN_CATALOG
from chatflow.workflow.catalog import TriggerCatalog, WorkflowCatalog
from chatflow.workflow.loader import (
    WorkflowLoader,
    WorkflowLoadError,
    WorkflowValidationError,
    load_catalogs,
)
from chatflow.workflow.models import (
    ConditionOperator,
    WorkflowDefinition,
    WorkflowTrigger,
    WorkflowTriggerType,
)


def _catalog(**overrides):
    data = {
        "workflows": {
            "follow-up": {
                "name": "Follow-up",
                "default_parameters": {"meeting_id": ""},
                "steps": [
                    {
                        "id": "fetch",
                        "order": 1,
                        "plugin": "MeetingPlugin",
                        "function": "GetMeetingTranscript",
                        "parameters": {"meeting_id": "{{meeting_id}}"},
                        "outputs": {"result": "transcript"},
                    },
                    {
                        "id": "send",
                        "order": 2,
                        "plugin": "MailPlugin",
                        "function": "SendEmail",
                        "depends_on": ["fetch"],
                        "condition": {"field": "attendee_email", "operator": "contains", "expected": "@"},
                        "optional": True,
                        "max_retries": 2,
                    },
                ],
            },
        },
        "triggers": [
            {"workflow": "follow-up", "type": "keyword", "keywords": ["Meeting Recap"], "priority": 5},
        ],
    }
    data.update(overrides)
    return data


# ── Parsing ──


class TestLoadFromDict:
    def test_parses_workflow_and_steps(self):
        loader = WorkflowLoader()
        loaded = loader.load_from_dict(_catalog())
        workflows, triggers = loader.build()

        assert [w.id for w in loaded] == ["follow-up"]
        workflow = workflows.get("follow-up")
        assert workflow.name == "Follow-up"
        assert workflow.default_parameters == {"meeting_id": ""}

        fetch, send = workflow.steps
        assert fetch.capability == "MeetingPlugin.GetMeetingTranscript"
        assert fetch.name == "fetch"
        assert fetch.output_mappings == {"result": "transcript"}
        assert send.depends_on == ("fetch",)
        assert send.is_optional
        assert send.max_retries == 2
        assert send.condition.operator == ConditionOperator.CONTAINS
        assert send.condition.expected_value == "@"

    def test_parses_triggers(self):
        loader = WorkflowLoader()
        loader.load_from_dict(_catalog())
        _, triggers = loader.build()

        (trigger,) = triggers.all()
        assert trigger.workflow_id == "follow-up"
        assert trigger.type == WorkflowTriggerType.KEYWORD
        assert trigger.keywords == ("meeting recap",)
        assert trigger.priority == 5
        assert trigger.id == "follow-up-keyword-0"

    def test_unknown_operator_is_accepted(self):
        data = _catalog()
        data["workflows"]["follow-up"]["steps"][1]["condition"]["operator"] = "between"
        loader = WorkflowLoader()
        loader.load_from_dict(data)
        workflows, _ = loader.build()
        assert workflows.get("follow-up").steps[1].condition.operator == ConditionOperator.UNKNOWN


class TestValidation:
    def test_workflow_without_steps(self):
        with pytest.raises(WorkflowValidationError, match="at least one step"):
            WorkflowLoader().load_from_dict({"workflows": {"empty": {"steps": []}}})

    def test_step_without_capability(self):
        data = {"workflows": {"w": {"steps": [{"id": "a", "plugin": "P"}]}}}
        with pytest.raises(WorkflowValidationError, match="plugin' and 'function"):
            WorkflowLoader().load_from_dict(data)

    def test_duplicate_step_ids(self):
        step = {"id": "a", "plugin": "P", "function": "F"}
        with pytest.raises(WorkflowValidationError, match="Duplicate step ids: a"):
            WorkflowLoader().load_from_dict({"workflows": {"w": {"steps": [step, dict(step)]}}})

    def test_dangling_dependency(self):
        step = {"id": "a", "plugin": "P", "function": "F", "depends_on": ["ghost"]}
        with pytest.raises(WorkflowValidationError, match="unknown step"):
            WorkflowLoader().load_from_dict({"workflows": {"w": {"steps": [step]}}})

    def test_cycle(self):
        steps = [
            {"id": "a", "plugin": "P", "function": "F", "depends_on": ["b"]},
            {"id": "b", "plugin": "P", "function": "F", "depends_on": ["a"]},
        ]
        with pytest.raises(WorkflowValidationError, match="Circular dependency"):
            WorkflowLoader().load_from_dict({"workflows": {"w": {"steps": steps}}})

    def test_negative_retries(self):
        step = {"id": "a", "plugin": "P", "function": "F", "max_retries": -1}
        with pytest.raises(WorkflowValidationError, match="max_retries"):
            WorkflowLoader().load_from_dict({"workflows": {"w": {"steps": [step]}}})

    def test_duplicate_workflow_across_sources(self):
        loader = WorkflowLoader()
        loader.load_from_dict(_catalog(triggers=[]))
        with pytest.raises(WorkflowValidationError, match="Duplicate workflow 'follow-up'"):
            loader.load_from_dict(_catalog(triggers=[]))

    def test_trigger_for_unknown_workflow(self):
        loader = WorkflowLoader()
        loader.load_from_dict(_catalog(triggers=[{"workflow": "ghost", "keywords": ["x"]}]))
        with pytest.raises(WorkflowValidationError, match="unknown workflow 'ghost'"):
            loader.build()

    def test_duplicate_trigger_ids(self):
        triggers = [
            {"id": "t", "workflow": "follow-up", "keywords": ["a"]},
            {"id": "t", "workflow": "follow-up", "keywords": ["b"]},
        ]
        loader = WorkflowLoader()
        loader.load_from_dict(_catalog(triggers=triggers))
        with pytest.raises(WorkflowValidationError, match="Duplicate trigger id 't'"):
            loader.build()

    def test_invalid_trigger_type(self):
        with pytest.raises(WorkflowValidationError, match="Invalid trigger type"):
            WorkflowLoader().load_from_dict(_catalog(triggers=[{"workflow": "follow-up", "type": "telepathy"}]))

    def test_keyword_trigger_needs_keywords(self):
        with pytest.raises(WorkflowValidationError, match="needs 'keywords'"):
            WorkflowLoader().load_from_dict(_catalog(triggers=[{"workflow": "follow-up"}]))

    def test_invalid_regex(self):
        trigger = {"workflow": "follow-up", "type": "pattern", "pattern": "meeting(("}
        with pytest.raises(WorkflowValidationError, match="Invalid pattern"):
            WorkflowLoader().load_from_dict(_catalog(triggers=[trigger]))

    def test_invalid_cron(self):
        trigger = {"workflow": "follow-up", "type": "schedule", "conditions": {"cron": "every friday"}}
        with pytest.raises(WorkflowValidationError, match="cron"):
            WorkflowLoader().load_from_dict(_catalog(triggers=[trigger]))


# ── Files ──


class TestLoadFromFiles:
    YAML = """
workflows:
  recap:
    name: Recap
    steps:
      - id: summarize
        plugin: MeetingPlugin
        function: SummarizeMeeting
triggers:
  - workflow: recap
    type: pattern
    pattern: "recap (of|for) .+"
    priority: 4
"""

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "recap.yaml"
        path.write_text(self.YAML)

        loader = WorkflowLoader()
        loaded = loader.load_from_file(path)
        workflows, triggers = loader.build()

        assert [w.id for w in loaded] == ["recap"]
        assert workflows.get("recap").steps[0].order == 1
        assert triggers.all()[0].type == WorkflowTriggerType.PATTERN

    def test_load_from_directory(self, tmp_path):
        (tmp_path / "a.yaml").write_text(self.YAML)
        (tmp_path / "b.yml").write_text(
            "workflows:\n  other:\n    steps:\n      - {id: x, plugin: P, function: F}\n"
        )
        (tmp_path / "notes.txt").write_text("ignored")

        loader = WorkflowLoader()
        loaded = loader.load_from_directory(tmp_path)
        assert sorted(w.id for w in loaded) == ["other", "recap"]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert WorkflowLoader().load_from_file(path) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(WorkflowLoadError, match="not found"):
            WorkflowLoader().load_from_file(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("workflows: [unclosed\n")
        with pytest.raises(WorkflowLoadError, match="Invalid YAML"):
            WorkflowLoader().load_from_file(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(WorkflowLoadError, match="mapping"):
            WorkflowLoader().load_from_file(path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(WorkflowLoadError, match="not found"):
            WorkflowLoader().load_from_directory(tmp_path / "nope")


# ── Built-in catalog ──


class TestBuiltinCatalog:
    def test_loads_all_predefined_workflows(self):
        workflows, triggers = load_catalogs()

        assert sorted(w.id for w in workflows) == [
            "email-to-calendar",
            "meeting-follow-up",
            "meeting-to-tasks",
            "project-planning",
            "weekly-review",
        ]
        assert len(triggers.of_type(WorkflowTriggerType.SCHEDULE)) == 1

    def test_meeting_follow_up_shape(self):
        workflows, _ = load_catalogs()
        workflow = workflows.get("meeting-follow-up")
        send = workflow.get_step("send-follow-up")
        assert send.depends_on == ("summarize-meeting", "extract-decisions")
        assert send.output_mappings == {"result": "email_sent"}

    def test_without_builtin(self, tmp_path):
        workflows, triggers = load_catalogs(include_builtin=False)
        assert len(workflows) == 0
        assert len(triggers) == 0

    def test_extra_paths(self, tmp_path):
        path = tmp_path / "extra.yaml"
        path.write_text("workflows:\n  extra:\n    steps:\n      - {id: x, plugin: P, function: F}\n")
        workflows, _ = load_catalogs(paths=[path])
        assert "extra" in workflows
        assert "weekly-review" in workflows

    def test_builtin_data_is_not_mutated(self):
        before = len(BUILTIN_CATALOG["triggers"])
        load_catalogs()
        assert len(BUILTIN_CATALOG["triggers"]) == before


# ── Catalogs ──


class TestCatalogs:
    def test_workflow_catalog(self):
        active = WorkflowDefinition(id="a", name="A")
        inactive = WorkflowDefinition(id="b", name="B", is_active=False)
        catalog = WorkflowCatalog([active, inactive])

        assert catalog.get("a") is active
        assert catalog.get("zzz") is None
        assert catalog.all() == [active, inactive]
        assert catalog.active() == [active]
        assert "b" in catalog
        assert list(catalog) == [active, inactive]

    def test_workflow_catalog_rejects_duplicates(self):
        with pytest.raises(ValueError, match="Duplicate workflow id"):
            WorkflowCatalog([WorkflowDefinition(id="a", name="A"), WorkflowDefinition(id="a", name="A2")])

    def test_trigger_catalog(self):
        keyword = WorkflowTrigger(id="k", workflow_id="a", keywords=("x",))
        pattern = WorkflowTrigger(id="p", workflow_id="b", type=WorkflowTriggerType.PATTERN, pattern="Recap")
        off = WorkflowTrigger(id="o", workflow_id="a", keywords=("y",), is_active=False)
        catalog = TriggerCatalog([keyword, pattern, off])

        assert catalog.active() == [keyword, pattern]
        assert catalog.of_type(WorkflowTriggerType.KEYWORD) == [keyword]
        assert catalog.for_workflow("a") == [keyword, off]
        assert catalog.pattern(pattern).search("weekly recap")
        assert catalog.pattern(keyword) is None

    def test_trigger_catalog_rejects_duplicates(self):
        trigger = WorkflowTrigger(id="t", workflow_id="a", keywords=("x",))
        with pytest.raises(ValueError, match="Duplicate trigger id"):
            TriggerCatalog([trigger, trigger])
