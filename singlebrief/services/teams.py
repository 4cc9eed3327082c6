# services/teams.py
import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from singlebrief.models import Team
from singlebrief.utils import is_valid_email, normalize_email, split_emails

logger = logging.getLogger(__name__)


def reconcile_members(members, member_details) -> tuple[list[str], list[dict]]:
    """
    Keep the legacy `members` list and the richer `member_details` in step.
    Details win when present; otherwise they are derived from the plain emails.
    """
    details: list[dict] = []
    seen: set[str] = set()

    source = []
    for d in member_details or []:
        source.append(d.model_dump() if hasattr(d, "model_dump") else dict(d))
    if not source:
        source = [{"email": e} for e in split_emails(members)]

    for d in source:
        email = normalize_email(d.get("email"))
        if not email or email in seen:
            continue
        if not is_valid_email(email):
            raise HTTPException(400, f"Invalid member email: {email}")
        seen.add(email)
        details.append({
            "name": (d.get("name") or "").strip(),
            "email": email,
            "designation": (d.get("designation") or "").strip(),
            "topics": [t.strip() for t in (d.get("topics") or []) if t and t.strip()],
        })
    return [d["email"] for d in details], details


async def list_teams(db: AsyncSession, user_id: int) -> list[Team]:
    rows = await db.execute(
        select(Team).where(Team.user_id == user_id).order_by(Team.created_at.desc(), Team.id.desc())
    )
    return list(rows.scalars().all())


async def get_team(db: AsyncSession, user_id: int, team_id: int) -> Team:
    team = (await db.execute(
        select(Team).where(Team.id == team_id, Team.user_id == user_id)
    )).scalars().first()
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


async def get_teams(db: AsyncSession, user_id: int, team_ids) -> list[Team]:
    """Owned teams in the order requested; unknown ids are a 404."""
    ids = list(dict.fromkeys(team_ids or []))
    if not ids:
        return []
    rows = (await db.execute(
        select(Team).where(Team.user_id == user_id, Team.id.in_(ids))
    )).scalars().all()
    by_id = {t.id: t for t in rows}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise HTTPException(status_code=404, detail=f"Team(s) not found: {missing}")
    return [by_id[i] for i in ids]


async def create_team(db: AsyncSession, user_id: int, name: str, description: str | None,
                      members, member_details) -> Team:
    emails, details = reconcile_members(members, member_details)
    team = Team(
        user_id=user_id,
        name=name.strip(),
        description=(description or "").strip() or None,
        members=emails,
        member_details=details,
    )
    db.add(team)
    await db.commit()
    logger.info("Team %s created by user %s with %d members", team.id, user_id, len(emails))
    return team


async def update_team(db: AsyncSession, user_id: int, team_id: int, name: str, description: str | None,
                      members, member_details) -> Team:
    team = await get_team(db, user_id, team_id)
    emails, details = reconcile_members(members, member_details)
    team.name = name.strip()
    team.description = (description or "").strip() or None
    team.members = emails
    team.member_details = details
    await db.commit()
    return team


async def delete_team(db: AsyncSession, user_id: int, team_id: int) -> None:
    team = await get_team(db, user_id, team_id)
    await db.delete(team)
    await db.commit()
    logger.info("Team %s deleted by user %s", team_id, user_id)
