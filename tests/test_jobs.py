from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from singlebrief.models import Brief, BriefStatus, Profile, Response, ResponseStatus
from singlebrief.schemas import BriefCreate
from singlebrief.services import briefs as svc


async def _brief(db, user, title, deadline, status=BriefStatus.sent, recipients="a@x.com, b@x.com"):
    brief = await svc.create_brief(db, user, BriefCreate(title=title, prompt="p", recipients=recipients))
    brief.deadline = deadline
    brief.status = status
    await db.commit()
    return brief.id


async def test_expire_overdue_only_touches_open_responses(db, user):
    now = datetime.now(timezone.utc)
    late = await _brief(db, user, "Late", now - timedelta(hours=1))
    on_time = await _brief(db, user, "On time", now + timedelta(days=2))

    rows = (await db.execute(
        select(Response).where(Response.brief_id == late).order_by(Response.id)
    )).scalars().all()
    rows[0].status = ResponseStatus.completed
    await db.commit()

    assert await svc.expire_overdue(db, now) == 1

    db.expire_all()
    statuses = {
        (r.brief_id, r.recipient_email): r.status
        for r in (await db.execute(select(Response))).scalars().all()
    }
    assert statuses[(late, "a@x.com")] == ResponseStatus.completed
    assert statuses[(late, "b@x.com")] == ResponseStatus.expired
    assert statuses[(on_time, "a@x.com")] == ResponseStatus.pending


async def test_deadline_reminders_respect_preference(db, user, make_user, monkeypatch):
    sent = []

    async def _capture(to_email, subject, text_body, html_body=None, from_addr=None):
        sent.append((to_email, text_body))
        return {"id": "captured"}

    monkeypatch.setattr(svc, "send_email", _capture)
    now = datetime.now(timezone.utc)
    await _brief(db, user, "Due soon", now + timedelta(hours=5))
    await _brief(db, user, "Due later", now + timedelta(days=3))
    await _brief(db, user, "Draft due soon", now + timedelta(hours=5), status=BriefStatus.draft)

    quiet = await make_user("quiet@example.com", name="Quinn")
    quiet_id = quiet.id
    await _brief(db, quiet, "Quiet brief", now + timedelta(hours=2))
    prof = (await db.execute(select(Profile).where(Profile.user_id == quiet_id))).scalars().first()
    prof.notification_preferences = {"weekly_summary": False, "response_alerts": True, "deadline_reminders": False}
    await db.commit()

    assert await svc.send_deadline_reminders(db, now) == 1
    assert len(sent) == 1
    to_email, body = sent[0]
    assert to_email == "owner@example.com"
    assert "Due soon" in body
    assert "Due later" not in body
    assert "Draft due soon" not in body


async def test_no_reminders_when_nothing_is_due(db, user):
    assert await svc.send_deadline_reminders(db) == 0
    assert (await db.execute(select(Brief))).scalars().first() is None
