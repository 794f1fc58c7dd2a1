from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

router = APIRouter(tags=["client-portal"])


class SubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_email: Optional[str] = Field(default=None, alias="clientEmail")
    project_title: Optional[str] = Field(default=None, alias="projectTitle")
    project_description: Optional[str] = Field(default=None, alias="projectDescription")


@router.post("/submit-request")
async def submit_request(req: Request, body: SubmitRequest):
    if not (body.client_email and body.project_title and body.project_description):
        raise HTTPException(status_code=400, detail="All fields are required.")

    project_id = await req.app.state.portal.submit_request(
        client_email=body.client_email,
        title=body.project_title,
        description=body.project_description,
    )
    return {"message": "Project request submitted successfully.", "projectId": project_id}
