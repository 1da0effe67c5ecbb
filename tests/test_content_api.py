from services import content_blocks, storage


# ------------------------------
# בלוקי תוכן
# ------------------------------
def test_content_blocks_public_vs_admin(client, make_user):
    content_blocks.create_block({"section": "hero", "blockKey": "cta", "value": "התחל"})
    content_blocks.create_block({"section": "hero", "blockKey": "old", "value": "x", "isActive": False})

    public = client.get("/api/content-blocks?all=1").get_json()
    assert [b["blockKey"] for b in public] == ["cta"]

    from conftest import login_as

    login_as(client, make_user("editor", role="editor"))
    everything = client.get("/api/content-blocks?all=1").get_json()
    assert {b["blockKey"] for b in everything} == {"cta", "old"}


def test_content_block_crud(editor_client):
    resp = editor_client.post("/api/content-blocks", json={"section": "about", "blockKey": "title", "value": "מי"})
    assert resp.status_code == 201
    block = resp.get_json()
    assert editor_client.post("/api/content-blocks", json={"section": "about", "blockKey": "title"}).status_code == 400

    updated = editor_client.put(f"/api/content-blocks/{block['id']}", json={"value": "מי אנחנו"}).get_json()
    assert updated["value"] == "מי אנחנו"
    section = editor_client.get("/api/content-blocks/section/about").get_json()
    assert [b["value"] for b in section] == ["מי אנחנו"]

    assert editor_client.delete(f"/api/content-blocks/{block['id']}").status_code == 200
    assert editor_client.get(f"/api/content-blocks/{block['id']}").status_code == 404


def test_bulk_upsert_endpoint(editor_client):
    resp = editor_client.post("/api/content-blocks/bulk-upsert", json={"blocks": [
        {"section": "footer", "blockKey": "copyright", "value": "©"},
        {"section": "footer", "blockKey": "phone", "value": "050"},
    ]})
    assert resp.get_json()["count"] == 2
    assert editor_client.post("/api/content-blocks/bulk-upsert", json={"blocks": "nope"}).status_code == 400


def test_content_writes_require_login(client):
    assert client.post("/api/content-blocks", json={"section": "a", "blockKey": "b"}).status_code == 401


# ------------------------------
# הגדרות
# ------------------------------
def test_site_settings_key_value(admin_client):
    created = admin_client.put("/api/site-settings/phone", json={"value": "050-1234567", "category": "contact"})
    assert created.status_code == 201
    again = admin_client.put("/api/site-settings/phone", json={"value": "052"})
    assert again.status_code == 200
    assert again.get_json()["category"] == "contact"

    assert admin_client.get("/api/site-settings/key/phone").get_json()["value"] == "052"
    assert [s["key"] for s in admin_client.get("/api/site-settings/category/contact").get_json()] == ["phone"]

    bulk = admin_client.post("/api/site-settings/bulk-update", json={"settings": [
        {"key": "email", "value": "a@b.co"}, {"value": "no key"},
    ]}).get_json()
    assert bulk["count"] == 1
    assert storage.settings.find_one(key="email")["category"] == "general"

    assert admin_client.delete("/api/site-settings/phone").status_code == 200
    assert admin_client.get("/api/site-settings/key/phone").status_code == 404


def test_site_settings_admin_only(editor_client):
    assert editor_client.put("/api/site-settings/phone", json={"value": "1"}).status_code == 403


def test_settings_object(admin_client):
    empty = admin_client.get("/api/settings").get_json()["data"]
    assert set(empty) == set(storage.SITE_SETTINGS_FIELDS)
    saved = admin_client.put("/api/settings", json={"brandName": "PropLine", "rogue": 1}).get_json()["data"]
    assert saved["brandName"] == "PropLine"
    assert "rogue" not in saved


def test_site_content_groups_sections(client):
    content_blocks.create_block({"section": "hero", "blockKey": "cta", "value": "התחל", "valueEn": "Start"})
    storage.site_stats.create({"label": "Investors", "value": "500+", "sortOrder": 1})
    storage.projects.create({"name": "Star", "featured": True, "status": "active"})

    body = client.get("/api/site-content?lang=en").get_json()
    assert body["dir"] == "ltr"
    assert body["sections"] == {"hero": {"cta": "Start"}}
    assert [s["label"] for s in body["stats"]] == ["Investors"]
    assert [p["name"] for p in body["featuredProjects"]] == ["Star"]


# ------------------------------
# מיני-סייטים
# ------------------------------
def test_mini_site_views_and_crud(editor_client):
    site = editor_client.post("/api/mini-sites", json={"name": "Palm Offer"}).get_json()["data"]
    assert site["slug"] == "palm-offer" and site["status"] == "draft" and site["views"] == 0

    assert editor_client.get("/api/mini-sites/slug/palm-offer").get_json()["views"] == 1
    assert editor_client.get("/api/mini-sites/slug/palm-offer").get_json()["views"] == 2
    # views לא ניתן לעריכה ידנית
    updated = editor_client.put(f"/api/mini-sites/{site['id']}", json={"views": 999, "status": "active"}).get_json()
    assert updated["views"] == 2 and updated["status"] == "active"
    assert editor_client.delete(f"/api/mini-sites/{site['id']}").status_code == 200


def test_mini_site_import(admin_client):
    storage.mini_sites.create({"name": "Existing", "slug": "existing", "views": 7})
    payload = {"miniSites": [
        {"name": "Existing v2", "slug": "existing"},
        {"name": "Fresh", "slug": "fresh", "id": "forged", "views": 50},
        {"slug": "no-name"},
    ]}
    results = admin_client.post("/api/mini-sites/admin/import", json=payload).get_json()["results"]
    assert (results["imported"], results["skipped"], results["updated"]) == (1, 1, 0)
    assert len(results["errors"]) == 1
    fresh = storage.mini_sites.find_one(slug="fresh")
    assert fresh["id"] != "forged" and fresh["views"] == 0

    payload["overwrite"] = True
    results = admin_client.post("/api/mini-sites/admin/import", json=payload).get_json()["results"]
    assert results["updated"] == 2
    existing = storage.mini_sites.find_one(slug="existing")
    assert existing["name"] == "Existing v2" and existing["views"] == 7

    export = admin_client.get("/api/mini-sites/admin/export").get_json()
    assert export["count"] == 2


# ------------------------------
# אוספים פשוטים
# ------------------------------
def test_investment_zones_public_list_hides_inactive(client, make_user):
    storage.investment_zones.create({"name": "Marina", "sortOrder": 2})
    storage.investment_zones.create({"name": "Hidden", "isActive": False})
    storage.investment_zones.create({"name": "Creek", "sortOrder": 1})
    assert [z["name"] for z in client.get("/api/investment-zones").get_json()] == ["Creek", "Marina"]
    assert client.get("/api/investment-zones/all").status_code == 401

    from conftest import login_as

    login_as(client, make_user("editor", role="editor"))
    assert len(client.get("/api/investment-zones/all").get_json()) == 3


def test_languages_active_route(client):
    storage.languages.create({"code": "he"})
    storage.languages.create({"code": "fr", "isActive": False})
    assert [lang["code"] for lang in client.get("/api/languages/active").get_json()] == ["he"]
    assert len(client.get("/api/languages").get_json()) == 2


def test_templates_crud_and_type(editor_client):
    tpl = editor_client.post("/api/templates", json={"name": "Launch", "type": "mini-site"})
    assert tpl.status_code == 201
    tpl_id = tpl.get_json()["id"]
    assert [t["name"] for t in editor_client.get("/api/templates/type/mini-site").get_json()] == ["Launch"]
    assert editor_client.put(f"/api/templates/{tpl_id}", json={"name": "Launch 2"}).get_json()["name"] == "Launch 2"
    assert editor_client.delete(f"/api/templates/{tpl_id}").status_code == 200
    assert editor_client.get(f"/api/templates/{tpl_id}").status_code == 404


# ------------------------------
# תרגומים + משתמשים
# ------------------------------
def test_translation_override(admin_client):
    admin_client.put("/api/translations/hero.cta", json={"he": "בואו נתחיל", "en": "Let's go"})
    rows = {r["key"]: r for r in admin_client.get("/api/translations").get_json()["data"]}
    assert rows["hero.cta"]["en"] == "Let's go"
    assert content_blocks.cms_text("hero", "cta", lang="en") == "Let's go"


def test_user_management(admin_client):
    created = admin_client.post("/api/users", json={"username": "noa", "password": "Secret123", "role": "viewer"})
    assert created.status_code == 201
    user = created.get_json()
    assert "password" not in user
    assert admin_client.post("/api/users", json={"username": "noa", "password": "Secret123"}).status_code == 400
    assert admin_client.put(f"/api/users/{user['id']}", json={"role": "root"}).status_code == 400
    assert admin_client.delete(f"/api/users/{user['id']}").status_code == 200

    me = admin_client.get("/api/auth/me").get_json()["user"]
    assert admin_client.delete(f"/api/users/{me['id']}").status_code == 400
