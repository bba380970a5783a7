"""System event ingestion routes."""

from fastapi import APIRouter, Depends

from ..app import require_flow, verify_api_key
from ..models import EventRequest

router = APIRouter()


@router.post("/api/events", dependencies=[Depends(verify_api_key)])
async def ingest_event(req: EventRequest):
    """Run the workflows whose event triggers accept this event."""
    flow = require_flow()
    executions = await flow.handle_event(req.source, req.event_type, req.data)
    return {
        "matched": len(executions),
        "executions": [e.to_dict() for e in executions],
    }
