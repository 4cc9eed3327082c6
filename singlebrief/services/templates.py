# services/templates.py
import json
import logging
import os

from fastapi import HTTPException
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from singlebrief.models import BriefTemplate

logger = logging.getLogger(__name__)

SYSTEM_TEMPLATES_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "system_templates.json")


def _visible_to(user_id: int):
    return or_(
        BriefTemplate.user_id == user_id,
        BriefTemplate.is_system.is_(True),
        BriefTemplate.is_public.is_(True),
    )


async def list_templates(db: AsyncSession, user_id: int, search: str | None = None) -> list[BriefTemplate]:
    stmt = (
        select(BriefTemplate)
        .where(_visible_to(user_id))
        .order_by(BriefTemplate.is_system.desc(), BriefTemplate.created_at.desc(), BriefTemplate.id.desc())
    )
    if search:
        like = f"%{search.strip()}%"
        stmt = stmt.where(or_(
            BriefTemplate.name.ilike(like),
            BriefTemplate.description.ilike(like),
            BriefTemplate.prompt.ilike(like),
        ))
    return list((await db.execute(stmt)).scalars().all())


async def get_visible_template(db: AsyncSession, user_id: int, template_id: int) -> BriefTemplate:
    tpl = (await db.execute(
        select(BriefTemplate).where(BriefTemplate.id == template_id, _visible_to(user_id))
    )).scalars().first()
    if not tpl:
        raise HTTPException(status_code=404, detail="Template not found")
    return tpl


async def create_template(db: AsyncSession, user_id: int, name: str, description: str | None,
                          prompt: str) -> BriefTemplate:
    tpl = BriefTemplate(
        user_id=user_id,
        name=name.strip(),
        description=(description or "").strip() or None,
        prompt=prompt.strip(),
        is_system=False,
        is_public=False,
    )
    db.add(tpl)
    await db.commit()
    return tpl


async def fork_template(db: AsyncSession, user_id: int, template_id: int,
                        name: str | None = None, description: str | None = None,
                        prompt: str | None = None) -> BriefTemplate:
    """Copy a visible template into a new private one owned by the user."""
    src = await get_visible_template(db, user_id, template_id)
    copy = await create_template(
        db,
        user_id,
        name or src.name,
        description if description is not None else src.description,
        prompt or src.prompt,
    )
    logger.info("Template %s forked into %s for user %s", src.id, copy.id, user_id)
    return copy


async def update_template(db: AsyncSession, user_id: int, template_id: int, name: str,
                          description: str | None, prompt: str) -> tuple[BriefTemplate, bool]:
    """
    Update an owned template. System templates are never mutated; the edit
    lands on a fresh copy instead. Returns (template, forked).
    """
    tpl = await get_visible_template(db, user_id, template_id)
    if tpl.is_system:
        return await fork_template(db, user_id, template_id, name, description, prompt), True
    if tpl.user_id != user_id:
        raise HTTPException(status_code=403, detail="You can only edit your own templates")
    tpl.name = name.strip()
    tpl.description = (description or "").strip() or None
    tpl.prompt = prompt.strip()
    await db.commit()
    return tpl, False


async def delete_template(db: AsyncSession, user_id: int, template_id: int) -> None:
    tpl = await get_visible_template(db, user_id, template_id)
    if tpl.is_system:
        raise HTTPException(status_code=403, detail="System templates cannot be deleted")
    if tpl.user_id != user_id:
        raise HTTPException(status_code=403, detail="You can only delete your own templates")
    await db.delete(tpl)
    await db.commit()


async def seed_system_templates(db: AsyncSession, path: str = SYSTEM_TEMPLATES_PATH) -> dict:
    """
    Upsert system templates from JSON: [{"name", "description", "prompt"}, ...].
    Matching is by name among system rows, so reruns are no-ops.
    """
    with open(path, "r", encoding="utf-8") as f:
        items = json.load(f)

    inserted = updated = skipped = 0
    existing = {
        t.name: t
        for t in (await db.execute(
            select(BriefTemplate).where(BriefTemplate.is_system.is_(True))
        )).scalars().all()
    }
    for it in items:
        name = (it.get("name") or "").strip()
        prompt = (it.get("prompt") or "").strip()
        if not name or not prompt:
            continue
        description = (it.get("description") or "").strip() or None
        row = existing.get(name)
        if row:
            if row.prompt != prompt or row.description != description:
                row.prompt = prompt
                row.description = description
                updated += 1
            else:
                skipped += 1
            continue
        db.add(BriefTemplate(
            user_id=None, name=name, description=description, prompt=prompt,
            is_system=True, is_public=True,
        ))
        inserted += 1

    await db.commit()
    return {"inserted": inserted, "updated": updated, "skipped": skipped}
