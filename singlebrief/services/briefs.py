# services/briefs.py
import asyncio
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from singlebrief.background import notify
from singlebrief.models import Brief, BriefStatus, Profile, Response, ResponseStatus, User
from singlebrief.schemas import BriefCreate
from singlebrief.services.cancellation import send_brief_cancellation
from singlebrief.services.mailer import EmailDeliveryError, render_email, send_email
from singlebrief.services.profiles import preferences_of
from singlebrief.services.recipients import resolve_recipients
from singlebrief.services.teams import get_teams
from singlebrief.services.templates import get_visible_template
from singlebrief.settings.config import settings
from singlebrief.utils import as_aware, utc_now

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (BriefStatus.sent, BriefStatus.in_progress)
OPEN_RESPONSE_STATUSES = (ResponseStatus.pending, ResponseStatus.in_progress)
DATE_RANGES = {"week": timedelta(days=7), "month": timedelta(days=30)}
RECENT_LIMIT = 5


def new_secure_token() -> str:
    return secrets.token_urlsafe(32)


def response_url(token: str) -> str:
    return f"{(settings.BASE_URL or '').rstrip('/')}/r/{token}"


def brief_url(brief_id: int) -> str:
    return f"{(settings.BASE_URL or '').rstrip('/')}/briefs/{brief_id}"


def _to_utc(value: datetime | None) -> datetime | None:
    value = as_aware(value)
    return value.astimezone(timezone.utc) if value else None


def _fmt_deadline(value: datetime | None) -> str:
    value = as_aware(value)
    return value.strftime("%b %d, %Y %H:%M UTC") if value else ""


# ---------------------------
# Owner side
# ---------------------------
async def create_brief(db: AsyncSession, user: User, data: BriefCreate, now: datetime | None = None) -> Brief:
    """
    Insert a draft brief and one response per resolved recipient, each with
    its own token. Everything lands in a single commit.
    """
    now = now or utc_now()
    owner_id = user.id
    title = (data.title or "").strip()
    prompt = (data.prompt or "").strip()

    if data.template_id is not None:
        tpl = await get_visible_template(db, owner_id, data.template_id)
        title = title or tpl.name
        prompt = prompt or tpl.prompt

    if not title or not prompt:
        raise HTTPException(400, "Title and prompt are required")

    deadline = _to_utc(data.deadline)
    if deadline and deadline <= now:
        raise HTTPException(400, "Deadline must be in the future")

    teams = await get_teams(db, owner_id, data.team_ids)
    recipients = resolve_recipients(teams, data.selected_members, data.manual_members, data.recipients)

    brief = Brief(
        user_id=owner_id,
        title=title,
        prompt=prompt,
        recipients=recipients,
        deadline=deadline,
        status=BriefStatus.draft,
        response_count=0,
        total_recipients=len(recipients),
    )
    for email in recipients:
        brief.responses.append(Response(
            recipient_email=email,
            secure_token=new_secure_token(),
            conversation=[],
            status=ResponseStatus.pending,
        ))
    db.add(brief)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.exception("Brief insert failed for user %s", owner_id)
        raise HTTPException(409, "Could not create brief; please try again")

    logger.info("Brief %s created by user %s for %d recipients", brief.id, owner_id, len(recipients))
    return brief


async def list_briefs(db: AsyncSession, user_id: int, search: str | None = None, status: str | None = None,
                      date_range: str | None = None, now: datetime | None = None) -> list[Brief]:
    stmt = select(Brief).where(Brief.user_id == user_id)

    if search and search.strip():
        stmt = stmt.where(Brief.title.ilike(f"%{search.strip()}%"))

    status = (status or "all").strip().lower()
    if status == "active":
        stmt = stmt.where(Brief.status.in_(ACTIVE_STATUSES))
    elif status != "all":
        try:
            stmt = stmt.where(Brief.status == BriefStatus(status))
        except ValueError:
            raise HTTPException(400, f"Unknown status filter: {status}")

    date_range = (date_range or "all").strip().lower()
    if date_range != "all":
        now = now or utc_now()
        if date_range == "today":
            since = now.replace(hour=0, minute=0, second=0, microsecond=0)
        elif date_range in DATE_RANGES:
            since = now - DATE_RANGES[date_range]
        else:
            raise HTTPException(400, f"Unknown date filter: {date_range}")
        stmt = stmt.where(Brief.created_at >= since)

    stmt = stmt.order_by(Brief.created_at.desc(), Brief.id.desc())
    return list((await db.execute(stmt)).scalars().all())


async def dashboard(db: AsyncSession, user_id: int) -> dict[str, Any]:
    counts = dict((await db.execute(
        select(Brief.status, func.count(Brief.id)).where(Brief.user_id == user_id).group_by(Brief.status)
    )).all())
    recent = (await db.execute(
        select(Brief).where(Brief.user_id == user_id)
        .order_by(Brief.created_at.desc(), Brief.id.desc()).limit(RECENT_LIMIT)
    )).scalars().all()
    return {
        "total": sum(counts.values()),
        "active": sum(counts.get(s, 0) for s in ACTIVE_STATUSES),
        "completed": counts.get(BriefStatus.completed, 0),
        "recent": list(recent),
    }


async def get_brief(db: AsyncSession, user_id: int, brief_id: int) -> Brief:
    brief = (await db.execute(
        select(Brief).where(Brief.id == brief_id, Brief.user_id == user_id)
    )).scalars().first()
    if not brief:
        raise HTTPException(status_code=404, detail="Brief not found")
    return brief


async def _sender_name(db: AsyncSession, user: User) -> str:
    prof = (await db.execute(select(Profile).where(Profile.user_id == user.id))).scalars().first()
    return (prof.name if prof and prof.name else user.email)


async def send_brief(db: AsyncSession, user: User, brief_id: int) -> tuple[Brief, dict[str, int]]:
    """Mark the brief sent and email each pending recipient their personal link."""
    brief = await get_brief(db, user.id, brief_id)
    brief.status = BriefStatus.sent
    await db.commit()

    sender = await _sender_name(db, user)
    pending = [r for r in brief.responses if r.status == ResponseStatus.pending]
    subject = f"{sender} requested your input: {brief.title}"

    async def _invite(email: str, token: str) -> dict[str, Any]:
        html, text = render_email("brief_invitation", {
            "sender_name": sender,
            "brief_title": brief.title,
            "brief_prompt": brief.prompt,
            "deadline": _fmt_deadline(brief.deadline),
            "response_url": response_url(token),
        })
        try:
            await send_email(email, subject, text, html)
        except EmailDeliveryError as e:
            logger.warning("Invitation to %s for brief %s failed: %s", email, brief.id, e)
            return {"email": email, "success": False, "error": str(e)}
        return {"email": email, "success": True}

    # one link per recipient, so each invitation renders separately
    results = await asyncio.gather(*(_invite(r.recipient_email, r.secure_token) for r in pending))

    successful = sum(1 for r in results if r["success"])
    report = {"total": len(results), "successful": successful, "failed": len(results) - successful}
    logger.info("Brief %s sent: %d invitations delivered, %d failed",
                brief.id, report["successful"], report["failed"])
    return brief, report


async def _notify_cancellation(brief: Brief) -> dict[str, Any]:
    try:
        return await send_brief_cancellation(brief.id, brief.title, list(brief.recipients or []))
    except Exception as e:  # noqa: BLE001
        logger.exception("Cancellation emails for brief %s failed", brief.id)
        return {"success": False, "error": str(e)}


async def archive_brief(db: AsyncSession, user_id: int, brief_id: int) -> tuple[Brief, dict[str, Any]]:
    """Notify recipients, then archive whatever the email outcome was."""
    brief = await get_brief(db, user_id, brief_id)
    result = await _notify_cancellation(brief)

    brief.status = BriefStatus.archived
    for resp in brief.responses:
        if resp.status in OPEN_RESPONSE_STATUSES:
            resp.status = ResponseStatus.expired
    await db.commit()
    logger.info("Brief %s archived by user %s", brief_id, user_id)
    return brief, result


async def delete_brief(db: AsyncSession, user_id: int, brief_id: int) -> dict[str, Any]:
    """Notify recipients, then delete the brief and its responses."""
    brief = await get_brief(db, user_id, brief_id)
    result = await _notify_cancellation(brief)

    await db.delete(brief)
    await db.commit()
    logger.info("Brief %s deleted by user %s", brief_id, user_id)
    return result


async def set_synthesis(db: AsyncSession, user_id: int, brief_id: int, result: Any) -> Brief:
    brief = await get_brief(db, user_id, brief_id)
    brief.synthesis_result = result
    await db.commit()
    return brief


# ---------------------------
# Respondent side (token links)
# ---------------------------
def _is_expired(resp: Response, now: datetime) -> bool:
    if resp.status == ResponseStatus.expired:
        return True
    if resp.status == ResponseStatus.completed:
        return False
    brief = resp.brief
    if brief.status == BriefStatus.archived:
        return True
    deadline = as_aware(brief.deadline)
    return bool(deadline and deadline < now)


async def _load_by_token(db: AsyncSession, token: str) -> Response:
    resp = (await db.execute(
        select(Response)
        .options(selectinload(Response.brief).selectinload(Brief.responses))
        .where(Response.secure_token == token)
    )).scalars().first()
    if not resp:
        raise HTTPException(status_code=404, detail="Response not found")
    return resp


async def get_by_token(db: AsyncSession, token: str, now: datetime | None = None) -> Response:
    """Load a response for its recipient; lapsed ones are persisted as expired."""
    resp = await _load_by_token(db, token)
    if resp.status != ResponseStatus.expired and _is_expired(resp, now or utc_now()):
        resp.status = ResponseStatus.expired
        await db.commit()
    return resp


async def _open_response(db: AsyncSession, token: str, now: datetime) -> Response:
    resp = await get_by_token(db, token, now)
    if resp.status == ResponseStatus.expired:
        raise HTTPException(status_code=410, detail="This brief is no longer accepting responses")
    return resp


async def append_message(db: AsyncSession, token: str, role: str, content: str,
                         now: datetime | None = None) -> Response:
    now = now or utc_now()
    resp = await _open_response(db, token, now)
    if resp.status == ResponseStatus.completed:
        raise HTTPException(status_code=409, detail="Response already completed")

    resp.conversation.append({"role": role, "content": content, "at": now.isoformat()})
    if resp.status == ResponseStatus.pending:
        resp.status = ResponseStatus.in_progress
        resp.started_at = now
    if resp.brief.status == BriefStatus.sent:
        resp.brief.status = BriefStatus.in_progress
    await db.commit()
    return resp


async def complete_response(db: AsyncSession, token: str, now: datetime | None = None) -> Response:
    """
    Mark a response completed and bump the brief's counter. Repeated calls
    return the already-completed response unchanged.
    """
    now = now or utc_now()
    resp = await _open_response(db, token, now)
    if resp.status == ResponseStatus.completed:
        return resp

    brief = resp.brief
    resp.status = ResponseStatus.completed
    resp.completed_at = now
    if resp.started_at is None:
        resp.started_at = now
    await db.flush()

    # counter and completion are computed in SQL; other sessions may be completing siblings
    await db.execute(
        update(Brief).where(Brief.id == brief.id)
        .values(response_count=Brief.response_count + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    remaining = (await db.execute(
        select(func.count(Response.id))
        .where(Response.brief_id == brief.id, Response.status != ResponseStatus.completed)
    )).scalar_one()
    if remaining == 0:
        await db.execute(
            update(Brief).where(Brief.id == brief.id)
            .values(status=BriefStatus.completed)
            .execution_options(synchronize_session=False)
        )
    await db.commit()
    await db.refresh(brief, ["response_count", "status", "updated_at"])
    logger.info("Response %s completed for brief %s (%d/%d)",
                resp.id, brief.id, brief.response_count, brief.total_recipients)

    owner = (await db.execute(select(Profile).where(Profile.user_id == brief.user_id))).scalars().first()
    if owner and preferences_of(owner).get("response_alerts"):
        notify(
            notify_owner_of_completion(
                owner.email, owner.name, resp.recipient_email, brief.id, brief.title,
                brief.response_count, brief.total_recipients,
            ),
            label=f"completion alert for response {resp.id}",
        )
    return resp


async def notify_owner_of_completion(owner_email: str, owner_name: str, recipient_email: str, brief_id: int,
                                     brief_title: str, response_count: int, total_recipients: int) -> None:
    html, text = render_email("response_completed", {
        "owner_name": owner_name or owner_email,
        "recipient_email": recipient_email,
        "brief_title": brief_title,
        "response_count": response_count,
        "total_recipients": total_recipients,
        "brief_url": brief_url(brief_id),
    })
    try:
        await send_email(owner_email, f"New response: {brief_title}", text, html)
    except EmailDeliveryError:
        logger.warning("Completion alert to %s for brief %s failed", owner_email, brief_id)


# ---------------------------
# Periodic jobs
# ---------------------------
async def expire_overdue(db: AsyncSession, now: datetime | None = None) -> int:
    """Expire open responses of briefs whose deadline has passed."""
    now = now or utc_now()
    overdue = select(Brief.id).where(Brief.deadline.isnot(None), Brief.deadline < now)
    result = await db.execute(
        update(Response)
        .where(Response.status.in_(OPEN_RESPONSE_STATUSES), Response.brief_id.in_(overdue))
        .values(status=ResponseStatus.expired, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount or 0


async def briefs_due_soon(db: AsyncSession, now: datetime | None = None,
                          within: timedelta = timedelta(hours=24)) -> list[Brief]:
    now = now or utc_now()
    rows = await db.execute(
        select(Brief).where(
            Brief.status.in_(ACTIVE_STATUSES),
            Brief.deadline.isnot(None),
            Brief.deadline > now,
            Brief.deadline <= now + within,
        ).order_by(Brief.user_id, Brief.deadline)
    )
    return list(rows.scalars().all())


async def send_deadline_reminders(db: AsyncSession, now: datetime | None = None) -> int:
    """Email each opted-in owner a digest of their briefs due within a day."""
    by_owner: dict[int, list[Brief]] = {}
    for b in await briefs_due_soon(db, now):
        by_owner.setdefault(b.user_id, []).append(b)
    if not by_owner:
        return 0

    profiles = (await db.execute(
        select(Profile).where(Profile.user_id.in_(list(by_owner)))
    )).scalars().all()

    sent = 0
    for prof in profiles:
        if not preferences_of(prof).get("deadline_reminders"):
            continue
        briefs = [
            {
                "title": b.title,
                "deadline": _fmt_deadline(b.deadline),
                "response_count": b.response_count,
                "total_recipients": b.total_recipients,
            }
            for b in by_owner[prof.user_id]
        ]
        html, text = render_email("deadline_reminder", {"owner_name": prof.name, "briefs": briefs})
        try:
            await send_email(prof.email, "Briefs due within 24 hours", text, html)
            sent += 1
        except EmailDeliveryError:
            logger.warning("Deadline reminder to %s failed", prof.email)
    return sent


__all__ = [
    "create_brief", "list_briefs", "dashboard", "get_brief", "send_brief", "archive_brief",
    "delete_brief", "set_synthesis", "get_by_token", "append_message", "complete_response",
    "expire_overdue", "send_deadline_reminders", "new_secure_token",
]
