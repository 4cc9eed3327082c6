from sqlalchemy import select

from singlebrief.models import Brief, Profile, Response, Team


async def test_json_columns_accept_lists_and_dicts(db, user):
    user_id = user.id
    team = Team(user_id=user_id, name="Eng", members=["a@x.com"], member_details=[{"email": "a@x.com"}])
    brief = Brief(user_id=user_id, title="t", prompt="p", recipients=["a@x.com"], total_recipients=1,
                  synthesis_result={"themes": ["speed"]})
    brief.responses.append(Response(recipient_email="a@x.com", secure_token="tok-1", conversation=[]))
    db.add_all([team, brief])
    await db.commit()
    team_id, brief_id = team.id, brief.id

    db.expire_all()
    team = await db.get(Team, team_id)
    brief = await db.get(Brief, brief_id)
    assert team.members == ["a@x.com"]
    assert team.member_details == [{"email": "a@x.com"}]
    assert brief.recipients == ["a@x.com"]
    assert brief.synthesis_result == {"themes": ["speed"]}


async def test_in_place_changes_are_persisted(db, user):
    user_id = user.id
    brief = Brief(user_id=user_id, title="t", prompt="p", recipients=[], total_recipients=1)
    brief.responses.append(Response(recipient_email="a@x.com", secure_token="tok-2", conversation=[]))
    db.add(brief)
    await db.commit()
    response_id = brief.responses[0].id

    resp = await db.get(Response, response_id)
    resp.conversation.append({"role": "user", "content": "hello"})
    prof = (await db.execute(select(Profile).where(Profile.user_id == user_id))).scalars().first()
    prof.notification_preferences["weekly_summary"] = True
    await db.commit()
    profile_id = prof.id

    db.expire_all()
    resp = await db.get(Response, response_id)
    assert resp.conversation == [{"role": "user", "content": "hello"}]
    prof = await db.get(Profile, profile_id)
    assert prof.notification_preferences["weekly_summary"] is True
