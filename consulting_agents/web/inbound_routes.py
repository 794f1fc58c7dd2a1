from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

router = APIRouter(prefix="/gmail", tags=["client-communication"])


class InboundEmail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: Optional[str] = Field(default=None, alias="from")
    subject: str = ""
    body: Optional[str] = None


@router.post("/inbound")
async def gmail_inbound(req: Request, email: InboundEmail):
    if not email.sender or not email.body:
        raise HTTPException(status_code=400, detail="Missing from/body")

    client_id = await req.app.state.client_communication.receive_inbound_email(
        sender=email.sender,
        subject=email.subject,
        body=email.body,
    )
    if client_id is None:
        raise HTTPException(status_code=400, detail="Client not found")
    return {"status": "received", "clientId": client_id}
