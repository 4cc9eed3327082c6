import time

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from singlebrief.models import Profile, Team, User
from singlebrief.services.profiles import totp_code, update_profile, verify_totp

PASSWORD = "secret123"  # set by the make_user fixture


async def test_profile_created_with_defaults(client):
    r = await client.get("/api/settings/profile")
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Olivia Owner"
    assert body["notification_preferences"] == {
        "weekly_summary": False, "response_alerts": True, "deadline_reminders": True,
    }
    assert body["two_factor_enabled"] is False


async def test_preferences_merge_and_ignore_unknown_keys(client):
    r = await client.put("/api/settings/profile", json={
        "name": "Liv",
        "notification_preferences": {"weekly_summary": True, "carrier_pigeon": True},
    })
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Liv"
    assert body["notification_preferences"] == {
        "weekly_summary": True, "response_alerts": True, "deadline_reminders": True,
    }


async def test_avatar_upload(client):
    r = await client.post("/api/settings/avatar", files={"avatar": ("me.PNG", b"\x89PNG fake", "image/png")})
    assert r.status_code == 200
    assert r.json()["avatar_url"].endswith("/static/avatars/1/avatar.png")

    bad = await client.post("/api/settings/avatar", files={"avatar": ("me.exe", b"MZ", "application/octet-stream")})
    assert bad.status_code == 400


def test_totp_matches_rfc6238_vector():
    # RFC 6238 appendix B, SHA1 seed "12345678901234567890", T=59s
    secret = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
    assert totp_code(secret, 1) == "287082"
    assert verify_totp(secret, "287082", at=59)
    assert verify_totp(secret, "287082", at=59 + 30)  # one step of drift
    assert not verify_totp(secret, "287082", at=59 + 90)
    assert not verify_totp(secret, "28708")


async def test_two_factor_setup_enable_disable(client):
    setup = (await client.post("/api/settings/2fa/setup")).json()
    assert setup["otpauth_uri"].startswith("otpauth://totp/SingleBrief%3Aowner%40example.com?secret=")
    assert "issuer=SingleBrief" in setup["otpauth_uri"]

    # nothing persisted until a code is verified
    assert (await client.get("/api/settings/profile")).json()["two_factor_enabled"] is False

    bad = await client.post("/api/settings/2fa/enable", json={"secret": setup["secret"], "code": "12345"})
    assert bad.status_code == 400

    code = totp_code(setup["secret"], int(time.time() // 30))
    ok = await client.post("/api/settings/2fa/enable", json={"secret": setup["secret"], "code": code})
    assert ok.status_code == 200
    assert ok.json()["two_factor_enabled"] is True

    off = await client.post("/api/settings/2fa/disable")
    assert off.json()["two_factor_enabled"] is False


async def test_change_password(client):
    wrong = await client.post("/api/settings/password", json={"current_password": "nope", "new_password": "abcdef"})
    assert wrong.status_code == 400

    short = await client.post("/api/settings/password", json={"current_password": PASSWORD, "new_password": "abc"})
    assert short.status_code == 400

    ok = await client.post("/api/settings/password", json={"current_password": PASSWORD, "new_password": "abcdef"})
    assert ok.status_code == 200

    again = await client.post("/api/settings/password", json={"current_password": "abcdef", "new_password": "ghijkl"})
    assert again.status_code == 200


async def test_delete_account_cascades(client, db):
    await client.post("/api/teams", json={"name": "Eng", "members": "e@x.com"})
    r = await client.delete("/api/settings/account")
    assert r.status_code == 204
    for model in (User, Profile, Team):
        assert (await db.execute(select(func.count(model.id)))).scalar_one() == 0


async def test_register_creates_profile(anon_client, db):
    r = await anon_client.post("/auth/register", json={
        "email": "new@example.com", "password": "hunter22", "name": "Nia New",
    })
    assert r.status_code == 201, r.text
    prof = (await db.execute(select(Profile).where(Profile.email == "new@example.com"))).scalars().first()
    assert prof is not None
    assert prof.name == "Nia New"


async def test_profile_email_must_be_valid(db, user):
    with pytest.raises(HTTPException) as exc:
        await update_profile(db, user, email="not-an-email")
    assert exc.value.status_code == 400

    prof = await update_profile(db, user, email="  Liv@Example.COM ")
    assert prof.email == "liv@example.com"
