"""
ChatFlow Workflow Engine - Conversational multi-step workflow orchestration

Pipeline:
- TriggerMatcher: message -> trigger (keyword / pattern / intent), plus
  schedule and event triggers
- WorkflowCatalog / TriggerCatalog: read-only definitions loaded at startup
- DependencyResolver: dependency-ordered steps, cycle detection
- StepExecutor: conditions, {{placeholder}} inputs, retries with backoff,
  output propagation into the shared ExecutionContext
- WorkflowOrchestrator: drives runs and keeps them in an ExecutionRegistry

Example usage:
    from chatflow.workflow import WorkflowOrchestrator, load_catalogs

    workflows, triggers = load_catalogs(paths=["workflows.yaml"])
    orchestrator = WorkflowOrchestrator(workflows, triggers, invoker=capabilities)

    execution = await orchestrator.handle_message("send meeting summary")
"""

# Models
from .models import (
    # Enums
    WorkflowExecutionStatus,
    WorkflowStepStatus,
    SkipReason,
    WorkflowTriggerType,
    ConditionType,
    ConditionOperator,
    WorkflowState,
    # Definitions
    WorkflowStepCondition,
    WorkflowStep,
    WorkflowDefinition,
    WorkflowTrigger,
    NO_TRIGGER,
    # Conversation state
    ConversationWorkflow,
    ConversationContext,
    # Execution tracking
    ExecutionContext,
    WorkflowStepExecution,
    WorkflowExecution,
)

# Configuration
from .config import EngineConfig, ConfigError

# Catalogs
from .catalog import WorkflowCatalog, TriggerCatalog
from .loader import (
    WorkflowLoader,
    WorkflowLoadError,
    WorkflowValidationError,
    load_catalogs,
)
from .builtin import BUILTIN_CATALOG

# Engine
from .extractor import ParameterExtractor
from .triggers import TriggerMatcher
from .resolver import DependencyResolver, CircularDependencyError
from .executor import (
    StepExecutor,
    StepExecutionError,
    CapabilityInvokerProtocol,
)
from .registry import ExecutionRegistry
from .orchestrator import WorkflowOrchestrator

__all__ = [
    # Enums
    "WorkflowExecutionStatus",
    "WorkflowStepStatus",
    "SkipReason",
    "WorkflowTriggerType",
    "ConditionType",
    "ConditionOperator",
    "WorkflowState",
    # Definitions
    "WorkflowStepCondition",
    "WorkflowStep",
    "WorkflowDefinition",
    "WorkflowTrigger",
    "NO_TRIGGER",
    # Conversation state
    "ConversationWorkflow",
    "ConversationContext",
    # Execution tracking
    "ExecutionContext",
    "WorkflowStepExecution",
    "WorkflowExecution",
    # Configuration
    "EngineConfig",
    "ConfigError",
    # Catalogs
    "WorkflowCatalog",
    "TriggerCatalog",
    "WorkflowLoader",
    "WorkflowLoadError",
    "WorkflowValidationError",
    "load_catalogs",
    "BUILTIN_CATALOG",
    # Engine
    "ParameterExtractor",
    "TriggerMatcher",
    "DependencyResolver",
    "CircularDependencyError",
    "StepExecutor",
    "StepExecutionError",
    "CapabilityInvokerProtocol",
    "ExecutionRegistry",
    "WorkflowOrchestrator",
]
