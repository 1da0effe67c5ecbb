from services import chat_assistant, storage


NEW_PROJECT = {
    "name": "Marina Vista",
    "developer": "Emaar",
    "location": "Dubai Marina",
    "priceFrom": "1250000",
    "propertyType": "apartment",
}


def test_create_requires_admin(editor_client):
    assert editor_client.post("/api/projects", json=NEW_PROJECT).status_code == 403


def test_create_assigns_unique_slug(admin_client):
    first = admin_client.post("/api/projects", json=NEW_PROJECT)
    assert first.status_code == 201
    data = first.get_json()["data"]
    assert data["slug"] == "marina-vista"
    assert data["status"] == "active"
    assert data["priceFrom"] == 1250000

    second = admin_client.post("/api/projects", json=NEW_PROJECT).get_json()["data"]
    assert second["slug"] == "marina-vista-2"


def test_create_validation_error_shape(admin_client):
    resp = admin_client.post("/api/projects", json={"name": "x"})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert body["error"] == "שדות חובה חסרים"
    assert "שם היזם הוא שדה חובה" in body["message"]


def test_public_sees_only_active(client):
    storage.projects.create({"name": "A", "slug": "a", "status": "active"})
    storage.projects.create({"name": "B", "slug": "b", "status": "draft"})
    storage.projects.create({"name": "Legacy", "slug": "legacy"})
    names = {p["name"] for p in client.get("/api/projects").get_json()["data"]}
    assert names == {"A", "Legacy"}
    assert client.get("/api/projects/slug/b").status_code == 404
    body = client.get("/api/projects/slug/a").get_json()
    assert body["success"] is True and body["data"]["name"] == "A"


def test_admin_sees_drafts(admin_client):
    storage.projects.create({"name": "B", "slug": "b", "status": "draft"})
    assert admin_client.get("/api/projects/slug/b").status_code == 200
    drafts = admin_client.get("/api/projects/drafts").get_json()["data"]
    assert [p["name"] for p in drafts] == ["B"]


def test_search_filters(client):
    storage.projects.create({"name": "Cheap", "priceFrom": 700000, "location": "JVC", "propertyType": "apartment"})
    storage.projects.create({"name": "Villa", "priceFrom": 5000000, "location": "Palm Jumeirah", "propertyType": "villa"})
    storage.projects.create({"name": "Mid", "priceFrom": 1500000, "location": "Dubai Marina", "propertyType": "apartment"})

    def names(qs):
        return sorted(p["name"] for p in client.get("/api/projects/search?" + qs).get_json()["data"])

    assert names("priceMin=1000000") == ["Mid", "Villa"]
    assert names("priceMax=2000000&propertyType=APARTMENT") == ["Cheap", "Mid"]
    assert names("location=palm") == ["Villa"]


def test_featured(client):
    storage.projects.create({"name": "Star", "featured": True})
    storage.projects.create({"name": "Plain"})
    assert [p["name"] for p in client.get("/api/projects/featured").get_json()["data"]] == ["Star"]


def test_update_and_delete_invalidate_chat_context(admin_client):
    project = admin_client.post("/api/projects", json=NEW_PROJECT).get_json()["data"]
    assert "Marina Vista" in chat_assistant.get_project_context()

    resp = admin_client.put(f"/api/projects/{project['id']}", json={"name": "Marina Vista II", "slug": "Vista II"})
    assert resp.get_json()["data"]["slug"] == "vista-ii"
    assert "Marina Vista II" in chat_assistant.get_project_context()

    assert admin_client.put(f"/api/projects/{project['id']}", json={"constructionProgress": 150}).status_code == 400

    assert admin_client.delete(f"/api/projects/{project['id']}").status_code == 200
    assert chat_assistant.get_project_context() == chat_assistant.NO_ACTIVE_PROJECTS
    assert admin_client.delete(f"/api/projects/{project['id']}").status_code == 404


def test_script_tags_stripped_on_create(admin_client):
    body = dict(NEW_PROJECT, description="<script>alert(1)</script>נוף לים")
    data = admin_client.post("/api/projects", json=body).get_json()["data"]
    assert data["description"] == "נוף לים"


def test_pagination(client):
    for i in range(25):
        storage.projects.create({"name": f"P{i}"})
    body = client.get("/api/projects?page=2&limit=10").get_json()
    assert body["page"] == 2 and body["pages"] == 3 and body["total"] == 25
    assert len(body["data"]) == 10
