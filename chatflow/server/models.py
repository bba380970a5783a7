"""Pydantic request/response models for the ChatFlow API."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..workflow.models import ConversationContext, ConversationWorkflow, WorkflowState


class ConversationContextModel(BaseModel):
    session_id: str = ""
    user_id: str = ""
    workflow_state: WorkflowState = WorkflowState.NONE
    collected_data: Dict[str, Any] = Field(default_factory=dict)

    def to_context(self) -> ConversationContext:
        return ConversationContext(
            session_id=self.session_id,
            user_id=self.user_id,
            current_workflow=ConversationWorkflow(
                current_state=self.workflow_state,
                collected_data=dict(self.collected_data),
            ),
        )


class DetectRequest(BaseModel):
    message: str
    context: Optional[ConversationContextModel] = None


class RunRequest(BaseModel):
    message: str = ""
    workflow_id: Optional[str] = None  # detect from the message when omitted
    parameters: Dict[str, Any] = Field(default_factory=dict)
    context: Optional[ConversationContextModel] = None


class EventRequest(BaseModel):
    source: str
    event_type: str
    data: Dict[str, Any] = Field(default_factory=dict)
