# backend-server/app/api/v1/endpoints/templates.py
from fastapi import APIRouter, Depends, HTTPException, status

from app.db import models
from app.core import security
from app.core.errors import TemplateError
from app.schemas import report as report_schema
from app.services.templates import load_template

router = APIRouter()

@router.get("/parameters", response_model=report_schema.TemplateParameters)
async def read_template_parameters(
    template: str,
    current_user: models.User = Depends(security.get_current_user)
):
    """ Lists the parameters a template declares, in order of first appearance. """
    try:
        loaded = await load_template(template)
    except TemplateError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    return report_schema.TemplateParameters(template=template, kind=loaded.kind, parameters=loaded.parameters())
