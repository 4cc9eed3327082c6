# services/profiles.py
import base64
import hashlib
import hmac
import logging
import os
import secrets
import shutil
import struct
import time
from pathlib import Path
from urllib.parse import quote

from fastapi import HTTPException, UploadFile
from fastapi_users import InvalidPasswordException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from singlebrief.models import Profile, User, default_notification_preferences
from singlebrief.schemas import UserUpdate
from singlebrief.settings.config import settings
from singlebrief.utils import is_valid_email, normalize_email

logger = logging.getLogger(__name__)

AVATAR_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
TOTP_STEP = 30
TOTP_DIGITS = 6
TOTP_ISSUER = "SingleBrief"


# ---------------------------
# Profile
# ---------------------------
async def ensure_profile(db: AsyncSession, user: User, name: str | None = None) -> Profile:
    """Return the user's profile, creating it with sign-up defaults when missing."""
    prof = (await db.execute(select(Profile).where(Profile.user_id == user.id))).scalars().first()
    if prof:
        return prof
    prof = Profile(
        user_id=user.id,
        name=(name or "").strip() or user.email,
        email=user.email,
        notification_preferences=default_notification_preferences(),
        two_factor_enabled=False,
    )
    db.add(prof)
    await db.flush()
    return prof


def preferences_of(prof: Profile) -> dict:
    prefs = default_notification_preferences()
    raw = prof.notification_preferences
    if isinstance(raw, dict):
        for key in prefs:
            if key in raw:
                prefs[key] = bool(raw[key])
    return prefs


def profile_payload(prof: Profile) -> dict:
    return {
        "user_id": prof.user_id,
        "name": prof.name,
        "email": prof.email,
        "avatar_url": prof.avatar_url,
        "notification_preferences": preferences_of(prof),
        "two_factor_enabled": bool(prof.two_factor_enabled),
        "updated_at": prof.updated_at,
    }


async def update_profile(db: AsyncSession, user: User, name: str | None = None, email: str | None = None,
                         avatar_url: str | None = None, notification_preferences: dict | None = None) -> Profile:
    prof = await ensure_profile(db, user)
    if name is not None:
        prof.name = name.strip() or user.email
    if email is not None:
        email = normalize_email(email)
        if not is_valid_email(email):
            raise HTTPException(status_code=400, detail="Invalid email address")
        prof.email = email
    if avatar_url is not None:
        prof.avatar_url = avatar_url.strip() or None
    if notification_preferences is not None:
        merged = preferences_of(prof)
        for key in merged:
            if key in notification_preferences:
                merged[key] = bool(notification_preferences[key])
        prof.notification_preferences = merged
    await db.commit()
    return prof


async def upload_avatar(db: AsyncSession, user: User, avatar: UploadFile) -> Profile:
    _, ext = os.path.splitext(avatar.filename or "")
    ext = (ext or "").lower()
    if ext not in AVATAR_EXTS:
        raise HTTPException(status_code=400, detail="Avatar must be a jpg, png, webp or gif image")

    abs_dir = Path(settings.AVATAR_DIR) / str(user.id)
    os.makedirs(abs_dir, exist_ok=True)
    # one avatar per user; drop any previous extension
    for old in abs_dir.glob("avatar.*"):
        old.unlink(missing_ok=True)

    abs_path = abs_dir / f"avatar{ext}"
    with open(abs_path, "wb") as buffer:
        shutil.copyfileobj(avatar.file, buffer)

    prof = await ensure_profile(db, user)
    base = (settings.BASE_URL or "").rstrip("/")
    prof.avatar_url = f"{base}/static/avatars/{user.id}/avatar{ext}"
    await db.commit()
    logger.info("Avatar updated for user %s", user.id)
    return prof


# ---------------------------
# Two-factor (TOTP, RFC 6238)
# ---------------------------
def new_totp_secret() -> str:
    return base64.b32encode(secrets.token_bytes(20)).decode().rstrip("=")


def totp_uri(secret: str, account: str) -> str:
    label = quote(f"{TOTP_ISSUER}:{account}")
    return f"otpauth://totp/{label}?secret={secret}&issuer={TOTP_ISSUER}"


def totp_code(secret: str, counter: int) -> str:
    key = base64.b32decode(secret.upper() + "=" * (-len(secret) % 8))
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    value = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(value % (10 ** TOTP_DIGITS)).zfill(TOTP_DIGITS)


def verify_totp(secret: str, code: str, at: float | None = None, window: int = 1) -> bool:
    code = (code or "").strip()
    if len(code) != TOTP_DIGITS or not code.isdigit():
        return False
    counter = int((time.time() if at is None else at) // TOTP_STEP)
    try:
        return any(
            hmac.compare_digest(totp_code(secret, counter + drift), code)
            for drift in range(-window, window + 1)
        )
    except (ValueError, TypeError):
        return False


def begin_two_factor(user: User) -> dict:
    secret = new_totp_secret()
    return {"secret": secret, "otpauth_uri": totp_uri(secret, user.email)}


async def enable_two_factor(db: AsyncSession, user: User, secret: str, code: str) -> Profile:
    if len((code or "").strip()) != TOTP_DIGITS:
        raise HTTPException(status_code=400, detail="Please enter a 6-digit verification code")
    if not verify_totp(secret, code):
        raise HTTPException(status_code=400, detail="Invalid verification code")
    prof = await ensure_profile(db, user)
    prof.two_factor_enabled = True
    prof.two_factor_secret = secret
    await db.commit()
    logger.info("Two-factor authentication enabled for user %s", user.id)
    return prof


async def disable_two_factor(db: AsyncSession, user: User) -> Profile:
    prof = await ensure_profile(db, user)
    prof.two_factor_enabled = False
    prof.two_factor_secret = None
    await db.commit()
    return prof


# ---------------------------
# Account
# ---------------------------
async def change_password(user_manager, user: User, current_password: str, new_password: str,
                          confirm_password: str | None = None) -> None:
    if confirm_password is not None and confirm_password != new_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    verified, _ = user_manager.password_helper.verify_and_update(current_password, user.hashed_password)
    if not verified:
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    try:
        await user_manager.update(UserUpdate(password=new_password), user, safe=True)
    except InvalidPasswordException as e:
        raise HTTPException(status_code=400, detail=e.reason)
    logger.info("Password changed for user %s", user.id)


async def delete_account(user_manager, user: User) -> None:
    """Remove the user; profile, teams, templates and briefs go with it."""
    avatar_dir = Path(settings.AVATAR_DIR) / str(user.id)
    await user_manager.delete(user)
    shutil.rmtree(avatar_dir, ignore_errors=True)
