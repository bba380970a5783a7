"""
ChatFlow Workflow Models - Data structures for conversational workflow orchestration

Definitions (immutable, loaded once at startup):
- WorkflowDefinition: a named DAG of WorkflowSteps
- WorkflowStep: one capability invocation with parameters, dependencies,
  output mappings, an optional condition and a retry budget
- WorkflowTrigger: maps a user message (keyword / pattern / intent),
  a schedule or an event to a workflow

Execution tracking (mutable, owned by one run):
- WorkflowExecution: status, step records and the shared ExecutionContext
- WorkflowStepExecution: one record per step, retries counted in place

Conversation state supplied by the caller:
- ConversationContext: session/user identity plus the current workflow state
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class WorkflowExecutionStatus(str, Enum):
    """Lifecycle of a workflow run"""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PARTIALLY_COMPLETED = "partially_completed"


TERMINAL_EXECUTION_STATUSES = frozenset({
    WorkflowExecutionStatus.COMPLETED,
    WorkflowExecutionStatus.FAILED,
    WorkflowExecutionStatus.CANCELLED,
    WorkflowExecutionStatus.PARTIALLY_COMPLETED,
})


class WorkflowStepStatus(str, Enum):
    """Lifecycle of a single step within a run"""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    RETRYING = "retrying"


class SkipReason(str, Enum):
    """Why a step ended up skipped. None of these fail the run."""
    DEPENDENCY_NOT_SATISFIED = "dependency_not_satisfied"
    CONDITION_NOT_MET = "condition_not_met"
    OPTIONAL_STEP_FAILED = "optional_step_failed"


class WorkflowTriggerType(str, Enum):
    """How a trigger is matched"""
    KEYWORD = "keyword"      # any keyword is a substring of the message
    PATTERN = "pattern"      # regex search on the message
    INTENT = "intent"        # keywords plus conversation-state conditions
    SCHEDULE = "schedule"    # cron expression, see TriggerMatcher.due_schedules
    EVENT = "event"          # system event, see TriggerMatcher.match_event


class ConditionType(str, Enum):
    SUCCESS = "success"
    CONTAINS = "contains"
    EQUALS = "equals"
    CUSTOM = "custom"


class ConditionOperator(str, Enum):
    """Comparison applied by a step condition.

    Any operator string outside the four known values maps to UNKNOWN,
    which always evaluates to true.
    """
    EQUALS = "equals"
    CONTAINS = "contains"
    GREATER = "greater"
    LESS = "less"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNKNOWN


class WorkflowState(str, Enum):
    """Conversation-level workflow the user is currently in"""
    NONE = "none"
    SCHEDULING_MEETING = "scheduling_meeting"
    CREATING_NOTE = "creating_note"
    SEARCHING_EMAILS = "searching_emails"
    PROCESSING_MEETING_TRANSCRIPT = "processing_meeting_transcript"
    CREATING_TASKS = "creating_tasks"
    BROWSING_FILES = "browsing_files"
    SENDING_EMAIL = "sending_email"


# ============================================================================
# Definitions
# ============================================================================

@dataclass(frozen=True)
class WorkflowStepCondition:
    """
    Gate evaluated against the execution context before a step runs.

    Example:
        WorkflowStepCondition(
            type=ConditionType.EQUALS,
            field="meeting_count",
            expected_value=0,
            operator=ConditionOperator.GREATER,
        )
    """
    field: str
    expected_value: Any = None
    type: ConditionType = ConditionType.EQUALS
    operator: ConditionOperator = ConditionOperator.EQUALS


@dataclass(frozen=True)
class WorkflowStep:
    """
    One unit of work: a single capability invocation.

    Parameter values may contain {{key}} placeholders, resolved against the
    execution context just before the step runs. Output mappings copy keys of
    the parsed step output into the context for later steps.

    Example:
        WorkflowStep(
            id="propose-tasks",
            order=2,
            name="Propose Tasks from Meeting",
            plugin_name="MeetingPlugin",
            function_name="ProposeTasksFromMeeting",
            parameters={"meeting_id": "{{selected_meeting_id}}"},
            depends_on=("get-transcripts",),
            output_mappings={"result": "task_proposals"},
        )
    """
    id: str
    order: int
    name: str
    plugin_name: str
    function_name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)
    depends_on: Tuple[str, ...] = ()
    output_mappings: Dict[str, str] = field(default_factory=dict)
    condition: Optional[WorkflowStepCondition] = None
    is_optional: bool = False
    max_retries: int = 0
    timeout_seconds: float = 300.0

    @property
    def capability(self) -> str:
        """Qualified capability name, e.g. ``MailPlugin.SendEmail``"""
        return f"{self.plugin_name}.{self.function_name}"


@dataclass(frozen=True)
class WorkflowDefinition:
    """A named, fixed-shape DAG of steps. Never mutated after registration."""
    id: str
    name: str
    description: str = ""
    steps: Tuple[WorkflowStep, ...] = ()
    default_parameters: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    created_by: str = ""

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "default_parameters": dict(self.default_parameters),
            "steps": [
                {
                    "id": s.id,
                    "order": s.order,
                    "name": s.name,
                    "capability": s.capability,
                    "depends_on": list(s.depends_on),
                    "is_optional": s.is_optional,
                    "max_retries": s.max_retries,
                }
                for s in self.steps
            ],
        }


@dataclass(frozen=True)
class WorkflowTrigger:
    """
    Rule mapping a message (or schedule / event) to a workflow.

    Higher priority wins when several triggers match. A trigger without a
    workflow_id is the "no trigger" sentinel and is falsy.
    """
    id: str = ""
    workflow_id: str = ""
    type: WorkflowTriggerType = WorkflowTriggerType.KEYWORD
    keywords: Tuple[str, ...] = ()
    pattern: str = ""
    conditions: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    priority: int = 0

    def __bool__(self) -> bool:
        return bool(self.workflow_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "type": self.type.value,
            "keywords": list(self.keywords),
            "pattern": self.pattern,
            "conditions": dict(self.conditions),
            "is_active": self.is_active,
            "priority": self.priority,
        }


NO_TRIGGER = WorkflowTrigger()


# ============================================================================
# Conversation state
# ============================================================================

@dataclass
class ConversationWorkflow:
    """Workflow progress tracked by the chat layer for one conversation"""
    current_state: WorkflowState = WorkflowState.NONE
    collected_data: Dict[str, Any] = field(default_factory=dict)
    current_workflow_id: str = ""
    step_number: int = 0
    is_complete: bool = False


@dataclass
class ConversationContext:
    """Caller-supplied conversation state used for intent matching"""
    session_id: str = ""
    user_id: str = ""
    current_workflow: ConversationWorkflow = field(default_factory=ConversationWorkflow)
    user_preferences: Dict[str, Any] = field(default_factory=dict)

    def lookup(self, key: str) -> Any:
        """Current value of a named condition key.

        ``workflow_state`` reads the current workflow state; any other key
        reads the conversation's collected data.
        """
        if key == "workflow_state":
            return self.current_workflow.current_state.value
        return self.current_workflow.collected_data.get(key)


# ============================================================================
# Execution context
# ============================================================================

class ExecutionContext:
    """
    Execution-scoped, string-keyed store shared between steps.

    Values are JSON-like: str, int, float, bool, datetime/date, list, dict.
    Reads come in typed flavours so steps and conditions do not have to guess
    what a previous step wrote:

        ctx.get_text("summary")        # always a string ("" when absent)
        ctx.get_number("count")        # float or None
        ctx.get_datetime("timestamp")  # datetime or None
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(values or {})

    # -- mapping protocol ---------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._values[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"<ExecutionContext keys={sorted(self._values)}>"

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def update(self, values: Dict[str, Any]) -> None:
        self._values.update(values)

    def keys(self):
        return self._values.keys()

    def items(self):
        return self._values.items()

    # -- typed reads --------------------------------------------------------

    def get_text(self, key: str, default: str = "") -> str:
        if key not in self._values:
            return default
        return self.format_value(self._values[key])

    def get_number(self, key: str) -> Optional[float]:
        return parse_number(self._values.get(key))

    def get_datetime(self, key: str) -> Optional[datetime]:
        value = self._values.get(key)
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value)
            except ValueError:
                return None
        return None

    @staticmethod
    def format_value(value: Any) -> str:
        """Render a context value the way placeholders see it"""
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value, default=_json_default)
        return str(value)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly snapshot"""
        return json.loads(json.dumps(self._values, default=_json_default))


def parse_number(value: Any) -> Optional[float]:
    """Parse a value as float, None when it is not numeric"""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return None
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


# ============================================================================
# Execution tracking
# ============================================================================

def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class WorkflowStepExecution:
    """Record of one step in one run. Retries update this record in place."""
    step_id: str
    step_name: str
    id: str = field(default_factory=_new_id)
    status: WorkflowStepStatus = WorkflowStepStatus.NOT_STARTED
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    inputs: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    retry_count: int = 0
    execution_time: Optional[float] = None  # seconds, last attempt
    skip_reason: Optional[SkipReason] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "step_id": self.step_id,
            "step_name": self.step_name,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "inputs": json.loads(json.dumps(self.inputs, default=_json_default)),
            "outputs": json.loads(json.dumps(self.outputs, default=_json_default)),
            "error": self.error,
            "retry_count": self.retry_count,
            "execution_time": self.execution_time,
            "skip_reason": self.skip_reason.value if self.skip_reason else None,
        }


@dataclass
class WorkflowExecution:
    """
    One concrete run of a workflow.

    Created when a trigger fires, mutated by the orchestrator and the step
    executor, and kept in the ExecutionRegistry afterwards for lookup.
    """
    workflow_id: str
    id: str = field(default_factory=_new_id)
    user_id: str = ""
    session_id: str = ""
    status: WorkflowExecutionStatus = WorkflowExecutionStatus.NOT_STARTED
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    step_executions: List[WorkflowStepExecution] = field(default_factory=list)
    context: ExecutionContext = field(default_factory=ExecutionContext)
    error: Optional[str] = None
    final_outputs: Dict[str, Any] = field(default_factory=dict)
    trigger_message: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_EXECUTION_STATUSES

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def get_step_execution(self, step_id: str) -> Optional[WorkflowStepExecution]:
        for record in self.step_executions:
            if record.step_id == step_id:
                return record
        return None

    def steps_with_status(self, status: WorkflowStepStatus) -> List[WorkflowStepExecution]:
        return [s for s in self.step_executions if s.status == status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "step_executions": [s.to_dict() for s in self.step_executions],
            "context": self.context.to_dict(),
            "error": self.error,
            "final_outputs": json.loads(json.dumps(self.final_outputs, default=_json_default)),
            "trigger_message": self.trigger_message,
        }
