from sqlalchemy import func, select

from singlebrief.models import BriefTemplate
from singlebrief.services.templates import seed_system_templates


async def _system(db):
    await seed_system_templates(db)
    return (await db.execute(
        select(BriefTemplate).where(BriefTemplate.is_system.is_(True)).order_by(BriefTemplate.id)
    )).scalars().first()


async def test_seed_is_idempotent(db):
    first = await seed_system_templates(db)
    second = await seed_system_templates(db)
    assert first["inserted"] == 5
    assert second == {"inserted": 0, "updated": 0, "skipped": 5}
    count = (await db.execute(select(func.count(BriefTemplate.id)).where(BriefTemplate.is_system.is_(True))))
    assert count.scalar_one() == 5


async def test_list_puts_system_templates_first(client, db):
    await seed_system_templates(db)
    await client.post("/api/templates", json={"name": "Mine", "prompt": "p"})
    rows = (await client.get("/api/templates")).json()
    assert len(rows) == 6
    assert all(r["is_system"] for r in rows[:5])
    assert rows[-1]["name"] == "Mine"
    assert rows[-1]["is_system"] is False and rows[-1]["is_public"] is False


async def test_search(client):
    await client.post("/api/templates", json={"name": "Retro", "prompt": "What slowed us down?"})
    await client.post("/api/templates", json={"name": "Kickoff", "prompt": "Goals?"})
    rows = (await client.get("/api/templates", params={"q": "slowed"})).json()
    assert [r["name"] for r in rows] == ["Retro"]


async def test_editing_system_template_forks_it(client, db):
    system = await _system(db)
    system_id, original_prompt = system.id, system.prompt
    r = await client.put(
        f"/api/templates/{system.id}",
        json={"name": "My version", "description": "tweaked", "prompt": "Shorter prompt"},
    )
    assert r.status_code == 201
    assert r.headers["X-Template-Forked"] == "true"
    copy = r.json()
    assert copy["id"] != system.id
    assert copy["is_system"] is False
    assert copy["prompt"] == "Shorter prompt"

    db.expire_all()
    untouched = await db.get(BriefTemplate, system_id)
    assert untouched.prompt == original_prompt


async def test_update_own_template_in_place(client):
    tpl = (await client.post("/api/templates", json={"name": "Mine", "prompt": "p"})).json()
    r = await client.put(f"/api/templates/{tpl['id']}", json={"name": "Renamed", "prompt": "p2"})
    assert r.status_code == 200
    assert r.json()["id"] == tpl["id"]
    assert r.json()["name"] == "Renamed"


async def test_fork_copies_into_private_template(client, db):
    system = await _system(db)
    r = await client.post(f"/api/templates/{system.id}/fork")
    assert r.status_code == 201
    assert r.json()["name"] == system.name
    assert r.json()["is_public"] is False


async def test_system_templates_cannot_be_deleted(client, db):
    system = await _system(db)
    assert (await client.delete(f"/api/templates/{system.id}")).status_code == 403


async def test_delete_own_template(client):
    tpl = (await client.post("/api/templates", json={"name": "Mine", "prompt": "p"})).json()
    assert (await client.delete(f"/api/templates/{tpl['id']}")).status_code == 204
    assert (await client.delete(f"/api/templates/{tpl['id']}")).status_code == 404


async def test_other_users_private_template_is_invisible(client, db, make_user):
    other = await make_user("other@example.com")
    db.add(BriefTemplate(user_id=other.id, name="Secret", prompt="p"))
    await db.commit()
    names = [r["name"] for r in (await client.get("/api/templates")).json()]
    assert "Secret" not in names


async def test_public_template_of_another_user_is_read_only(client, db, make_user):
    other = await make_user("other@example.com")
    tpl = BriefTemplate(user_id=other.id, name="Shared retro", prompt="p", is_public=True)
    db.add(tpl)
    await db.commit()
    tpl_id = tpl.id

    names = [r["name"] for r in (await client.get("/api/templates")).json()]
    assert "Shared retro" in names

    r = await client.put(f"/api/templates/{tpl_id}", json={"name": "Hijacked", "prompt": "p2"})
    assert r.status_code == 403
    assert (await client.delete(f"/api/templates/{tpl_id}")).status_code == 403

    db.expire_all()
    row = await db.get(BriefTemplate, tpl_id)
    assert row is not None
    assert row.name == "Shared retro"
