async def test_create_from_plain_member_list(client):
    r = await client.post("/api/teams", json={"name": "Design", "members": "Ann@x.com, bob@x.com, ann@x.com"})
    assert r.status_code == 201
    team = r.json()
    assert team["members"] == ["ann@x.com", "bob@x.com"]
    assert team["member_details"][1] == {"name": "", "email": "bob@x.com", "designation": "", "topics": []}


async def test_update_replaces_members_from_details(client):
    team = (await client.post("/api/teams", json={"name": "Ops", "members": ["old@x.com"]})).json()
    r = await client.put(f"/api/teams/{team['id']}", json={
        "name": "Ops",
        "members": ["old@x.com"],
        "member_details": [{"name": "Cy", "email": "cy@x.com", "designation": "SRE", "topics": ["oncall"]}],
    })
    assert r.status_code == 200
    assert r.json()["members"] == ["cy@x.com"]


async def test_invalid_member_rejected(client):
    r = await client.post("/api/teams", json={"name": "Bad", "members": "nope"})
    assert r.status_code == 400


async def test_crud_roundtrip(client):
    team = (await client.post("/api/teams", json={"name": "QA", "members": "q@x.com"})).json()
    assert [t["name"] for t in (await client.get("/api/teams")).json()] == ["QA"]
    assert (await client.get(f"/api/teams/{team['id']}")).json()["name"] == "QA"
    assert (await client.delete(f"/api/teams/{team['id']}")).status_code == 204
    assert (await client.get(f"/api/teams/{team['id']}")).status_code == 404


async def test_brief_with_unknown_team_is_404(client):
    r = await client.post("/api/briefs", json={"title": "t", "prompt": "p", "team_ids": [999]})
    assert r.status_code == 404
