from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from singlebrief.database import get_db
from singlebrief.schemas import TemplateCreate, TemplateRead, TemplateUpdate
from singlebrief.services import templates as svc
from singlebrief.utils import require_authenticated_user

router = APIRouter(prefix="/api/templates", tags=["templates"])


@router.get("", response_model=list[TemplateRead])
async def list_templates(
    q: Optional[str] = Query(default=None),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.list_templates(db, user.id, q)


@router.post("", response_model=TemplateRead, status_code=201)
async def create_template(
    payload: TemplateCreate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.create_template(db, user.id, payload.name, payload.description, payload.prompt)


@router.put("/{template_id}", response_model=TemplateRead)
async def update_template(
    template_id: int,
    payload: TemplateUpdate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    tpl, forked = await svc.update_template(
        db, user.id, template_id, payload.name, payload.description, payload.prompt
    )
    if forked:
        # editing a system template yields a new private copy
        return JSONResponse(
            TemplateRead.model_validate(tpl).model_dump(mode="json"),
            status_code=201,
            headers={"X-Template-Forked": "true"},
        )
    return tpl


@router.post("/{template_id}/fork", response_model=TemplateRead, status_code=201)
async def fork_template(template_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    return await svc.fork_template(db, user.id, template_id)


@router.delete("/{template_id}", status_code=204)
async def delete_template(template_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    await svc.delete_template(db, user.id, template_id)


__all__ = ["router"]
