import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# לפני import של app: בלי rate limit, ותיקיית נתונים זמנית לאתחול
os.environ["RATELIMIT_ENABLED"] = "0"
os.environ.setdefault("DATA_FOLDER", tempfile.mkdtemp(prefix="propline-tests-"))
os.environ.setdefault("ADMIN_PASSWORD", "Bootstrap123")
for _var in ("GOOGLE_API_KEY", "MAPBOX_ACCESS_TOKEN", "EMAIL_ADDRESS", "EMAIL_PASSWORD"):
    os.environ.pop(_var, None)


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """כל בדיקה מקבלת DATA_FOLDER נקי ו-cache-ים מאופסים."""
    folder = tmp_path / "data"
    folder.mkdir()
    monkeypatch.setenv("DATA_FOLDER", str(folder))
    for var in ("GOOGLE_API_KEY", "MAPBOX_ACCESS_TOKEN", "EMAIL_ADDRESS", "EMAIL_PASSWORD"):
        monkeypatch.delenv(var, raising=False)

    from services import auth, chat_assistant, content_blocks, geocoding, i18n

    content_blocks.CACHE.clear()
    chat_assistant.invalidate_project_context()
    auth.THROTTLE.reset()
    i18n.clear_bundle_cache()
    geocoding.reset_default_geocoder()
    yield folder
    content_blocks.CACHE.clear()
    geocoding.reset_default_geocoder()


@pytest.fixture()
def flask_app(data_dir, tmp_path, monkeypatch):
    import app as app_module

    flask_app = app_module.app
    monkeypatch.setitem(flask_app.config, "DATA_FOLDER", str(data_dir))
    monkeypatch.setitem(flask_app.config, "TESTING", True)
    monkeypatch.setitem(flask_app.config, "WTF_CSRF_ENABLED", False)
    static = tmp_path / "static"
    static.mkdir()
    monkeypatch.setattr(flask_app, "static_folder", str(static))
    monkeypatch.setattr(app_module.limiter, "enabled", False)
    return flask_app


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_user():
    from services import auth, storage

    def _make(username="admin", role="admin", password="Secret123", **extra):
        data = {
            "username": username,
            "email": f"{username}@example.com",
            "password": auth.hash_password(password),
            "role": role,
            "isActive": True,
        }
        data.update(extra)
        return storage.users.create(data)

    return _make


def login_as(client, user):
    with client.session_transaction() as sess:
        sess["user_id"] = user["id"]


@pytest.fixture()
def admin_client(client, make_user):
    login_as(client, make_user())
    return client


@pytest.fixture()
def editor_client(client, make_user):
    login_as(client, make_user("editor", role="editor"))
    return client
