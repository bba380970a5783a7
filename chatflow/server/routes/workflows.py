"""Workflow catalog, trigger detection and run routes."""

from fastapi import APIRouter, Depends, HTTPException

from ...app import WorkflowNotFound
from ...workflow.resolver import CircularDependencyError
from ..app import require_flow, verify_api_key
from ..models import DetectRequest, RunRequest

router = APIRouter()


@router.get("/api/workflows", dependencies=[Depends(verify_api_key)])
async def list_workflows():
    """List active workflows."""
    flow = require_flow()
    return [w.to_dict() for w in flow.get_available_workflows()]


@router.get("/api/workflows/{workflow_id}", dependencies=[Depends(verify_api_key)])
async def get_workflow(workflow_id: str):
    """Get one workflow definition."""
    flow = require_flow()
    workflow = flow.get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(404, "Workflow not found")
    return workflow.to_dict()


@router.post("/api/workflows/detect", dependencies=[Depends(verify_api_key)])
async def detect_trigger(req: DetectRequest):
    """Detect which workflow a message would start."""
    flow = require_flow()
    context = req.context.to_context() if req.context else None
    trigger = flow.detect_trigger(req.message, context)
    return {
        "matched": bool(trigger),
        "trigger": trigger.to_dict() if trigger else None,
    }


@router.post("/api/workflows/run", dependencies=[Depends(verify_api_key)])
async def run_workflow(req: RunRequest):
    """Run a workflow by id, or the one the message triggers."""
    flow = require_flow()
    context = req.context.to_context() if req.context else None

    workflow_id = req.workflow_id
    if not workflow_id:
        trigger = flow.detect_trigger(req.message, context)
        if not trigger:
            raise HTTPException(404, "No workflow matched the message")
        workflow_id = trigger.workflow_id

    try:
        execution = await flow.run(workflow_id, req.message, context, req.parameters)
    except WorkflowNotFound:
        raise HTTPException(404, "Workflow not found")
    except CircularDependencyError as e:
        raise HTTPException(422, str(e))
    return execution.to_dict()
