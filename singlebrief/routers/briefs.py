from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from singlebrief.database import get_db
from singlebrief.schemas import (
    BriefActionResult,
    BriefCreate,
    BriefDetail,
    BriefRead,
    DashboardRead,
    SynthesisUpdate,
)
from singlebrief.services import briefs as svc
from singlebrief.utils import require_authenticated_user

router = APIRouter(prefix="/api/briefs", tags=["briefs"])


@router.get("", response_model=list[BriefRead])
async def list_briefs(
    q: Optional[str] = Query(default=None),
    status: str = Query(default="all"),
    date: str = Query(default="all"),
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.list_briefs(db, user.id, search=q, status=status, date_range=date)


@router.post("", response_model=BriefDetail, status_code=201)
async def create_brief(
    payload: BriefCreate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.create_brief(db, user, payload)


@router.get("/dashboard", response_model=DashboardRead)
async def dashboard(user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    return await svc.dashboard(db, user.id)


@router.get("/{brief_id}", response_model=BriefDetail)
async def get_brief(brief_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    return await svc.get_brief(db, user.id, brief_id)


@router.post("/{brief_id}/send", response_model=BriefActionResult)
async def send_brief(brief_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    brief, report = await svc.send_brief(db, user, brief_id)
    return {"brief": brief, "delivery": report}


@router.post("/{brief_id}/archive")
async def archive_brief(brief_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    brief, cancellation = await svc.archive_brief(db, user.id, brief_id)
    return {"brief": BriefRead.model_validate(brief), "cancellation": cancellation}


@router.delete("/{brief_id}")
async def delete_brief(brief_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    cancellation = await svc.delete_brief(db, user.id, brief_id)
    return {"deleted": brief_id, "cancellation": cancellation}


@router.put("/{brief_id}/synthesis", response_model=BriefRead)
async def set_synthesis(
    brief_id: int,
    payload: SynthesisUpdate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.set_synthesis(db, user.id, brief_id, payload.result)


__all__ = ["router"]
