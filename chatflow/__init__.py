"""
ChatFlow - Conversational workflow orchestration

ChatFlow maps a user's chat message to a multi-step, cross-service workflow
and runs it: dependency-ordered capability calls with retries, conditional
steps and a shared context that carries data from one step to the next.

Key Features:
- Keyword, regex and intent triggers, plus cron schedules and events
- Workflows as YAML (or dict) catalogs, validated at startup
- Retries with exponential backoff, optional steps, step conditions
- {{placeholder}} parameters resolved from earlier step outputs
- Execution tracking, lookup and cancellation
- FastAPI server (chatflow-server)

Quick Start:
    from chatflow import ChatFlow

    flow = ChatFlow()

    @flow.capabilities.capability("ToDoPlugin", "CreateNote")
    async def create_note(note_content: str, details: str = "", priority: str = "normal"):
        return {"note_id": "n-1"}

    execution = await flow.handle_message("weekly review")
"""

__version__ = "0.1.0"

from .app import ChatFlow, WorkflowNotFound
from .capabilities import Capability, CapabilityNotFound, CapabilityRegistry
from .workflow import (
    ConversationContext,
    ConversationWorkflow,
    EngineConfig,
    ConfigError,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowState,
    WorkflowStep,
    WorkflowStepStatus,
    WorkflowTrigger,
    WorkflowOrchestrator,
    CircularDependencyError,
)

__all__ = [
    "__version__",
    # Application
    "ChatFlow",
    "WorkflowNotFound",
    # Capabilities
    "Capability",
    "CapabilityNotFound",
    "CapabilityRegistry",
    # Workflow engine
    "ConversationContext",
    "ConversationWorkflow",
    "EngineConfig",
    "ConfigError",
    "WorkflowDefinition",
    "WorkflowExecution",
    "WorkflowExecutionStatus",
    "WorkflowState",
    "WorkflowStep",
    "WorkflowStepStatus",
    "WorkflowTrigger",
    "WorkflowOrchestrator",
    "CircularDependencyError",
]
