"""Execution lookup and cancellation routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ...workflow.models import WorkflowExecutionStatus
from ..app import require_flow, verify_api_key

router = APIRouter()


@router.get("/api/executions", dependencies=[Depends(verify_api_key)])
async def list_executions(
    user_id: Optional[str] = None,
    status: Optional[WorkflowExecutionStatus] = None,
):
    """List tracked executions, optionally for one user or status."""
    flow = require_flow()
    return [e.to_dict() for e in flow.list_executions(user_id=user_id, status=status)]


@router.get("/api/executions/{execution_id}", dependencies=[Depends(verify_api_key)])
async def get_execution(execution_id: str):
    flow = require_flow()
    execution = flow.get_execution(execution_id)
    if execution is None:
        raise HTTPException(404, "Execution not found")
    return execution.to_dict()


@router.post("/api/executions/{execution_id}/cancel", dependencies=[Depends(verify_api_key)])
async def cancel_execution(execution_id: str):
    """Cancel an execution. Steps already running finish first."""
    flow = require_flow()
    if not flow.cancel(execution_id):
        raise HTTPException(404, "Execution not found")
    return flow.get_execution(execution_id).to_dict()
