from fastapi import Depends, HTTPException, status
from fastapi_users import models
import logging
import re
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from .users import fastapi_users

logger = logging.getLogger(__name__)

_SPLIT_RE = re.compile(r"[,;\n]+")


# Dependency to enforce authentication
async def require_authenticated_user(
    user: models.UP = Depends(fastapi_users.current_user(active=True)),
):
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (sqlite, legacy rows) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()


def split_emails(raw: str | list[str] | None) -> list[str]:
    """Accept 'a@x.com, b@x.com' (commas, semicolons or newlines) or a list."""
    if not raw:
        return []
    if isinstance(raw, str):
        parts = _SPLIT_RE.split(raw)
    else:
        parts = []
        for item in raw:
            parts.extend(_SPLIT_RE.split(item or ""))
    return [p.strip() for p in parts if p and p.strip()]


def is_valid_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def dedupe_emails(emails) -> list[str]:
    """Normalise and drop duplicates, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for e in emails:
        norm = normalize_email(e)
        if not norm or norm in seen:
            continue
        seen.add(norm)
        out.append(norm)
    return out

