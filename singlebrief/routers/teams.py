from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from singlebrief.database import get_db
from singlebrief.schemas import TeamCreate, TeamRead, TeamUpdate
from singlebrief.services import teams as svc
from singlebrief.utils import require_authenticated_user

router = APIRouter(prefix="/api/teams", tags=["teams"])


@router.get("", response_model=list[TeamRead])
async def list_teams(user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    return await svc.list_teams(db, user.id)


@router.post("", response_model=TeamRead, status_code=201)
async def create_team(payload: TeamCreate, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    return await svc.create_team(db, user.id, payload.name, payload.description, payload.members, payload.member_details)


@router.get("/{team_id}", response_model=TeamRead)
async def get_team(team_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    return await svc.get_team(db, user.id, team_id)


@router.put("/{team_id}", response_model=TeamRead)
async def update_team(
    team_id: int,
    payload: TeamUpdate,
    user=Depends(require_authenticated_user),
    db: AsyncSession = Depends(get_db),
):
    return await svc.update_team(
        db, user.id, team_id, payload.name, payload.description, payload.members, payload.member_details
    )


@router.delete("/{team_id}", status_code=204)
async def delete_team(team_id: int, user=Depends(require_authenticated_user), db: AsyncSession = Depends(get_db)):
    await svc.delete_team(db, user.id, team_id)


__all__ = ["router"]
