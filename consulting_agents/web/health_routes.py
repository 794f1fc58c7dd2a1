from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz(req: Request):
    return {"ok": True, "agent": req.app.state.agent_name}


@router.get("/readyz")
def readyz(req: Request):
    broker = getattr(req.app.state, "broker", None)
    ready = broker is not None and broker.is_connected
    return ORJSONResponse({"ready": ready}, status_code=200 if ready else 503)
