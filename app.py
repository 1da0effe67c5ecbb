# === Imports ===
import os
import time
import logging
import secrets
from datetime import timedelta
from urllib.parse import urlparse

from flask import Flask, request, g, jsonify, session, Response, stream_with_context
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from dotenv import load_dotenv
from flask_wtf.csrf import CSRFProtect, CSRFError, generate_csrf
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from services import (
    ai_assist, ai_client, analytics, auth, chat_assistant, content_blocks,
    geocoding, i18n, lead_scoring, mailer, media, proximity, seo, storage,
)
from services.json_store import StorageError
from services.sanitize import sanitize_object
from services.validators import (
    HONEYPOT_FIELDS, LEAD_ADMIN_FIELDS, ValidationError, pick_public_lead_fields,
    validate_due_date, validate_lead, validate_new_project, validate_project_update,
)


load_dotenv()

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
LOGGER = logging.getLogger("propline")


# ------------------------------
# קבועים ותיקיות
# ------------------------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
STATIC_DIR = os.path.join(BASE_DIR, "static")

# תיקיית הנתונים – בתוך הפרויקט (data), אפשר לדרוס עם DATA_FOLDER
DATA_FOLDER = os.environ.get("DATA_FOLDER") or os.path.join(BASE_DIR, "data")

IS_PRODUCTION = os.environ.get("FLASK_ENV") == "production" or os.environ.get("ENV") == "production"

# מגבלות קצב
LEADS_RATE_LIMIT = "5 per minute"
LOGIN_RATE_LIMIT = "10 per minute"
CHAT_RATE_LIMIT = "20 per minute"
API_RATE_LIMIT = "100 per minute"
RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")

TOO_MANY_REQUESTS = "יותר מדי בקשות. נסה שוב בעוד דקה."
TOO_MANY_LOGINS = "יותר מדי ניסיונות התחברות. נסה שוב בעוד דקה."


# ------------------------------
# Flask App
# ------------------------------
app = Flask(__name__, static_folder=STATIC_DIR)
# JSON יפה בעברית
app.config["JSON_AS_ASCII"] = False
app.config["JSON_SORT_KEYS"] = False
app.json.ensure_ascii = False
app.json.sort_keys = False

app.config["DATA_FOLDER"] = DATA_FOLDER
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-change-me")
app.permanent_session_lifetime = timedelta(days=7)
app.config["SESSION_COOKIE_HTTPONLY"] = True
app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
app.config["SESSION_COOKIE_SECURE"] = IS_PRODUCTION
app.config["MAX_CONTENT_LENGTH"] = media.MAX_UPLOAD_BYTES  # 50MB

csrf = CSRFProtect(app)
app.config["WTF_CSRF_TIME_LIMIT"] = 60 * 60 * 2
app.config["WTF_CSRF_HEADERS"] = ["X-CSRF-Token", "X-CSRFToken"]

app.config["RATELIMIT_ENABLED"] = os.environ.get("RATELIMIT_ENABLED", "1").lower() not in ("0", "false", "no")
limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    default_limits=[API_RATE_LIMIT],
    default_limits_exempt_when=lambda: not (request.path or "").startswith("/api"),
    storage_uri=RATELIMIT_STORAGE_URI,
)

app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)
app.config["PREFERRED_URL_SCHEME"] = "https"


# ------------------------------
# עזרים
# ------------------------------
def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _not_found(message: str, success_flag: bool = False):
    payload = {"success": False, "error": message} if success_flag else {"error": message}
    return jsonify(payload), 404


def _is_public_project(p: dict) -> bool:
    # רשומות ישנות בלי status נחשבות פעילות
    return p.get("status") in (None, "", "active")


def _visible_projects():
    items = storage.projects.all()
    if not auth.is_admin():
        items = [p for p in items if _is_public_project(p)]
    return sorted(items, key=lambda p: p.get("createdAt") or "", reverse=True)


def _to_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _extract_path_from_referer(ref: str) -> str:
    if not ref:
        return ""
    p = urlparse(ref)
    path = p.path or ""
    if p.query:
        path += "?" + p.query
    return path


# ------------------------------
# hooks
# ------------------------------
@app.before_request
def set_language():
    lang = request.args.get("lang") or request.cookies.get("lang")
    if not lang:
        path_parts = request.path.strip("/").split("/")
        if path_parts and path_parts[0] in i18n.SUPPORTED_LANGS:
            lang = path_parts[0]
    g.current_lang = i18n.normalize_lang(lang or i18n.DEFAULT_LANG)

    # --- מזהה סשן אנונימי (למניעת ספירה כפולה של צפיות) ---
    if "sid" not in session:
        session["sid"] = secrets.token_hex(16)


@app.before_request
def start_timer():
    g.request_started = time.perf_counter()


@app.after_request
def log_api_request(resp):
    path = request.path or ""
    started = g.get("request_started")
    if path.startswith("/api") and started is not None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        LOGGER.info("%s %s %s in %dms", request.method, path, resp.status_code, elapsed_ms)
    return resp


@app.after_request
def add_security_headers(resp):
    resp.headers["X-Content-Type-Options"] = "nosniff"
    resp.headers["X-Frame-Options"] = "DENY"
    resp.headers["X-XSS-Protection"] = "1; mode=block"
    resp.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return resp


@app.after_request
def add_noindex_header(resp):
    path = request.path or ""
    if path.startswith("/admin") or path.startswith("/api"):
        resp.headers["X-Robots-Tag"] = "noindex, nofollow, noarchive"
    if path.startswith("/admin") or path.startswith("/api/auth"):
        resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        resp.headers["Pragma"] = "no-cache"
    return resp


# ------------------------------
# Error handlers
# ------------------------------
@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({"success": False, "error": e.title, "message": e.message}), 400


@app.errorhandler(ai_client.AINotConfigured)
def handle_ai_not_configured(e):
    return jsonify({"error": "AI not configured"}), 503


@app.errorhandler(StorageError)
def handle_storage_error(e):
    LOGGER.error("storage error on %s: %s", request.path, e)
    return jsonify({"success": False, "error": "Internal server error"}), 500


@app.errorhandler(CSRFError)
def handle_csrf_error(e):
    LOGGER.warning("CSRF rejected %s %s: %s", request.method, request.path, e.description)
    return jsonify({"error": "CSRF token validation failed", "code": "CSRF_INVALID"}), 403


@app.errorhandler(404)
def not_found(e):
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(405)
def method_not_allowed(e):
    return jsonify({"error": "Method not allowed"}), 405


@app.errorhandler(413)
def request_too_large(e):
    return jsonify({"error": "File too large. Maximum size is 50MB"}), 413


@app.errorhandler(429)
def too_many_requests(e):
    message = e.description if isinstance(e.description, str) and not e.description[:1].isdigit() else TOO_MANY_REQUESTS
    return jsonify({"error": message}), 429


@app.errorhandler(500)
def internal_server_error(e):
    return jsonify({"error": "Internal server error"}), 500


@app.errorhandler(Exception)
def unhandled_exception(e):
    if isinstance(e, HTTPException):
        return e
    LOGGER.exception("unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": "Internal server error"}), 500


# ------------------------------
# בדיקת הגדרות בהפעלה
# ------------------------------
def log_integrations():
    LOGGER.info("AI assistant: %s", "configured" if ai_client.is_configured() else "not configured (GOOGLE_API_KEY)")
    LOGGER.info("Mapbox: %s", "configured" if geocoding.mapbox_token() else "not configured (MAPBOX_ACCESS_TOKEN)")
    LOGGER.info("Lead e-mail: %s", "configured" if mailer.is_configured() else "not configured (EMAIL_ADDRESS/EMAIL_PASSWORD)")
    if app.secret_key == "dev-change-me":
        LOGGER.warning("FLASK_SECRET_KEY not set; using the development key")
    if IS_PRODUCTION and not os.environ.get("ADMIN_PASSWORD"):
        LOGGER.error("ADMIN_PASSWORD is required in production")


def init_app_data():
    os.makedirs(app.config["DATA_FOLDER"], exist_ok=True)
    with app.app_context():
        auth.ensure_admin_user()


# ------------------------------
# בריאות + CSRF
# ------------------------------
@app.get("/api/health")
def api_health():
    return jsonify({"status": "ok", "timestamp": storage.now_iso()})


@app.get("/api/csrf-token")
def api_csrf_token():
    return jsonify({"token": generate_csrf()})


# ------------------------------
# התחברות
# ------------------------------
@csrf.exempt
@app.post("/api/auth/login")
@limiter.limit(LOGIN_RATE_LIMIT, error_message=TOO_MANY_LOGINS)
def api_login():
    data = _body()
    ip = auth.client_ip()
    allowed, retry_after = auth.THROTTLE.check(ip)
    if not allowed:
        resp = jsonify({"success": False, "error": TOO_MANY_LOGINS})
        resp.headers["Retry-After"] = str(retry_after)
        return resp, 429

    identifier = (data.get("username") or data.get("email") or "").strip()
    user = auth.authenticate(identifier, data.get("password") or "")
    if not user:
        auth.THROTTLE.record_failure(ip)
        LOGGER.warning("failed login for %r from %s", identifier, ip)
        return jsonify({"success": False, "error": auth.INVALID_CREDENTIALS}), 401

    auth.THROTTLE.clear(ip)
    auth.login_user(user)
    return jsonify({"success": True, "user": auth.session_user(user)})


@app.post("/api/auth/logout")
def api_logout():
    auth.logout_user()
    return jsonify({"success": True})


@app.get("/api/auth/me")
def api_me():
    user = auth.current_user()
    if not user:
        return jsonify({"authenticated": False})
    return jsonify({"authenticated": True, "user": auth.session_user(user)})


@app.post("/api/auth/change-password")
@auth.login_required
def api_change_password():
    data = _body()
    ok, status, message = auth.change_password(
        auth.current_user()["id"], data.get("currentPassword") or "", data.get("newPassword") or ""
    )
    if not ok:
        return jsonify({"success": False, "error": message}), status
    return jsonify({"success": True, "message": message})


# ------------------------------
# פרויקטים
# ------------------------------
@app.get("/api/projects")
def api_projects():
    return jsonify(storage.paginate(_visible_projects(), request.args.get("page"), request.args.get("limit")))


@app.get("/api/projects/featured")
def api_projects_featured():
    items = [p for p in _visible_projects() if p.get("featured")]
    return jsonify({"success": True, "data": items})


@app.get("/api/projects/search")
def api_projects_search():
    args = request.args
    items = _visible_projects()

    price_min = _to_float(args.get("priceMin"))
    if price_min is not None:
        items = [p for p in items if (_to_float(p.get("priceFrom")) or 0) >= price_min]
    price_max = _to_float(args.get("priceMax"))
    if price_max is not None:
        items = [p for p in items if (_to_float(p.get("priceFrom")) or float("inf")) <= price_max]

    location = (args.get("location") or "").strip().lower()
    if location:
        items = [p for p in items if location in (p.get("location") or "").lower()]
    prop_type = (args.get("propertyType") or "").strip().lower()
    if prop_type:
        items = [p for p in items if (p.get("propertyType") or "").lower() == prop_type]

    status = args.get("status")
    if status and auth.is_admin():
        items = [p for p in items if p.get("status") == status]

    return jsonify(storage.paginate(items, args.get("page"), args.get("limit")))


@app.get("/api/projects/drafts")
@auth.login_required
def api_projects_drafts():
    drafts = storage.projects.filter(lambda p: p.get("status") == "draft")
    drafts.sort(key=lambda p: p.get("updatedAt") or "", reverse=True)
    return jsonify({"success": True, "data": drafts})


@app.get("/api/projects/slug/<slug>")
def api_project_by_slug(slug):
    project = storage.projects.find_one(slug=slug)
    if not project or (not _is_public_project(project) and not auth.is_admin()):
        return _not_found("Project not found", success_flag=True)
    return jsonify({"success": True, "data": project})


@app.get("/api/projects/<project_id>")
def api_project(project_id):
    project = storage.projects.get(project_id)
    if not project or (not _is_public_project(project) and not auth.is_admin()):
        return _not_found("Project not found", success_flag=True)
    return jsonify({"success": True, "data": project})


@app.post("/api/projects")
@auth.admin_required
def api_project_create():
    data = validate_new_project(sanitize_object(_body()))
    base_slug = storage.slugify(data.get("slug") or data.get("name")) or secrets.token_hex(4)
    data["slug"] = storage.unique_slug(storage.projects, base_slug)
    data.setdefault("status", "active")
    project = storage.projects.create(data)
    chat_assistant.invalidate_project_context()
    LOGGER.info("project created %s (%s)", project["id"], project["slug"])
    return jsonify({"success": True, "data": project, "message": "Project created successfully"}), 201


@app.put("/api/projects/<project_id>")
@auth.admin_required
def api_project_update(project_id):
    if not storage.projects.get(project_id):
        return _not_found("Project not found", success_flag=True)
    changes = validate_project_update(sanitize_object(_body()))
    if changes.get("slug"):
        changes["slug"] = storage.unique_slug(storage.projects, storage.slugify(changes["slug"]), exclude_id=project_id)
    project = storage.projects.update(project_id, changes)
    chat_assistant.invalidate_project_context()
    return jsonify({"success": True, "data": project})


@app.delete("/api/projects/<project_id>")
@auth.admin_required
def api_project_delete(project_id):
    if not storage.projects.delete(project_id):
        return _not_found("Project not found", success_flag=True)
    chat_assistant.invalidate_project_context()
    return jsonify({"success": True, "message": "Project deleted successfully"})


# ------------------------------
# לידים
# ------------------------------
@csrf.exempt
@app.post("/api/leads")
@limiter.limit(LEADS_RATE_LIMIT, error_message=TOO_MANY_REQUESTS)
def api_lead_create():
    raw = _body()
    # honeypot: בוט מילא שדה נסתר – מחזירים הצלחה בלי לשמור
    if any(raw.get(f) for f in HONEYPOT_FIELDS):
        LOGGER.info("honeypot triggered from %s", auth.client_ip())
        return jsonify({"success": True, "data": {"id": "ok"}, "message": "Lead created successfully"}), 201

    try:
        data = validate_lead(pick_public_lead_fields(sanitize_object(raw)))
    except ValidationError as e:
        return jsonify({"success": False, "error": e.message}), 400

    project_id = data.get("interestedProjectId")
    if project_id and not storage.projects.get(project_id):
        return jsonify({"success": False, "error": "פרויקט לא נמצא"}), 400

    data.update(lead_scoring.score_lead(data))
    data.setdefault("status", "new")
    data.setdefault("priority", "medium")
    lead = storage.leads.create(data)
    LOGGER.info("lead created %s (score %s)", lead["id"], lead.get("score"))
    mailer.notify_new_lead(lead)
    return jsonify({"success": True, "data": {"id": lead["id"]}, "message": "Lead created successfully"}), 201


@app.get("/api/leads")
@auth.login_required
def api_leads():
    items = storage.leads.all()
    status = request.args.get("status")
    if status:
        items = [lead for lead in items if lead.get("status") == status]
    items.sort(key=lambda lead: lead.get("createdAt") or "", reverse=True)
    return jsonify(storage.paginate(items, request.args.get("page"), request.args.get("limit")))


@app.post("/api/leads/rescore")
@auth.admin_required
def api_leads_rescore():
    updated = 0
    for lead in storage.leads.all():
        scored = lead_scoring.score_lead(lead)
        if scored["score"] != lead.get("score") or scored["temperature"] != lead.get("temperature"):
            storage.leads.update(lead["id"], scored)
            updated += 1
    return jsonify({"success": True, "updated": updated})


@app.get("/api/leads/<lead_id>")
@auth.login_required
def api_lead(lead_id):
    lead = storage.leads.get(lead_id)
    if not lead:
        return _not_found("Lead not found", success_flag=True)
    return jsonify({"success": True, "data": lead})


@app.put("/api/leads/<lead_id>")
@auth.login_required
def api_lead_update(lead_id):
    if not storage.leads.get(lead_id):
        return _not_found("Lead not found", success_flag=True)
    raw = sanitize_object(_body())
    changes = validate_lead({k: raw[k] for k in LEAD_ADMIN_FIELDS if k in raw}, partial=True)
    project_id = changes.get("interestedProjectId")
    if project_id and not storage.projects.get(project_id):
        return jsonify({"success": False, "error": "פרויקט לא נמצא"}), 400
    lead = storage.leads.update(lead_id, changes)
    lead = storage.leads.update(lead_id, lead_scoring.score_lead(lead))
    return jsonify({"success": True, "data": lead})


@app.delete("/api/leads/<lead_id>")
@auth.login_required
def api_lead_delete(lead_id):
    if not storage.leads.delete(lead_id):
        return _not_found("Lead not found", success_flag=True)
    storage.lead_notes.delete_where(lambda n: n.get("leadId") == lead_id)
    storage.lead_reminders.delete_where(lambda r: r.get("leadId") == lead_id)
    return jsonify({"success": True, "message": "Lead deleted successfully"})


# --- הערות ---
@app.get("/api/leads/<lead_id>/notes")
@auth.login_required
def api_lead_notes(lead_id):
    notes = storage.lead_notes.filter(lambda n: n.get("leadId") == lead_id)
    notes.sort(key=lambda n: n.get("createdAt") or "", reverse=True)
    return jsonify({"success": True, "data": notes})


@app.post("/api/leads/<lead_id>/notes")
@auth.login_required
def api_lead_note_create(lead_id):
    if not storage.leads.get(lead_id):
        return _not_found("Lead not found", success_flag=True)
    data = sanitize_object(_body())
    content = (data.get("content") or "").strip() if isinstance(data.get("content"), str) else ""
    if not content:
        return jsonify({"success": False, "error": "content is required"}), 400
    note = storage.lead_notes.create({
        "leadId": lead_id,
        "content": content,
        "author": data.get("author") or auth.current_user().get("username"),
    })
    return jsonify({"success": True, "data": note, "message": "Note created successfully"}), 201


@app.delete("/api/leads/<lead_id>/notes/<note_id>")
@auth.login_required
def api_lead_note_delete(lead_id, note_id):
    note = storage.lead_notes.get(note_id)
    if not note or note.get("leadId") != lead_id or not storage.lead_notes.delete(note_id):
        return _not_found("Note not found", success_flag=True)
    return jsonify({"success": True, "message": "Note deleted successfully"})


# --- תזכורות ---
def _lead_reminder(lead_id, reminder_id):
    # תזכורת של ליד אחר נחשבת כלא קיימת
    reminder = storage.lead_reminders.get(reminder_id)
    if reminder and reminder.get("leadId") == lead_id:
        return reminder
    return None


@app.get("/api/leads/<lead_id>/reminders")
@auth.login_required
def api_lead_reminders(lead_id):
    reminders = storage.lead_reminders.filter(lambda r: r.get("leadId") == lead_id)
    reminders.sort(key=lambda r: r.get("dueDate") or "")
    return jsonify({"success": True, "data": reminders})


@app.get("/api/reminders/pending")
@auth.login_required
def api_reminders_pending():
    reminders = storage.lead_reminders.filter(lambda r: not r.get("completed"))
    reminders.sort(key=lambda r: r.get("dueDate") or "")
    return jsonify({"success": True, "data": reminders})


@app.post("/api/leads/<lead_id>/reminders")
@auth.login_required
def api_lead_reminder_create(lead_id):
    if not storage.leads.get(lead_id):
        return _not_found("Lead not found", success_flag=True)
    data = sanitize_object(_body())
    try:
        due = validate_due_date(data.get("dueDate"))
    except ValidationError as e:
        return jsonify({"success": False, "error": e.title}), 400
    reminder = storage.lead_reminders.create({
        "leadId": lead_id,
        "dueDate": due,
        "note": data.get("note") or "",
        "completed": bool(data.get("completed", False)),
    })
    return jsonify({"success": True, "data": reminder, "message": "Reminder created successfully"}), 201


@app.put("/api/leads/<lead_id>/reminders/<reminder_id>")
@auth.login_required
def api_lead_reminder_update(lead_id, reminder_id):
    if not _lead_reminder(lead_id, reminder_id):
        return _not_found("Reminder not found", success_flag=True)
    data = sanitize_object(_body())
    changes = {k: data[k] for k in ("dueDate", "note", "completed") if k in data}
    if changes.get("dueDate"):
        try:
            changes["dueDate"] = validate_due_date(changes["dueDate"])
        except ValidationError as e:
            return jsonify({"success": False, "error": e.title}), 400
    reminder = storage.lead_reminders.update(reminder_id, changes)
    if not reminder:
        return _not_found("Reminder not found", success_flag=True)
    return jsonify({"success": True, "data": reminder})


@app.delete("/api/leads/<lead_id>/reminders/<reminder_id>")
@auth.login_required
def api_lead_reminder_delete(lead_id, reminder_id):
    if not _lead_reminder(lead_id, reminder_id) or not storage.lead_reminders.delete(reminder_id):
        return _not_found("Reminder not found", success_flag=True)
    return jsonify({"success": True, "message": "Reminder deleted successfully"})


# ------------------------------
# תרגומים
# ------------------------------
@app.get("/api/translations")
def api_translations():
    return jsonify({"success": True, "data": i18n.all_translations()})


@app.put("/api/translations/<key>")
@auth.admin_required
def api_translation_update(key):
    data = sanitize_object(_body())
    return jsonify(i18n.set_translation(key, data.get("he"), data.get("en")))


# ------------------------------
# הגדרות ציבוריות
# ------------------------------
@app.get("/api/config/mapbox")
def api_config_mapbox():
    token = geocoding.mapbox_token()
    if not token:
        return jsonify({"error": "Mapbox token not configured"}), 500
    return jsonify({"token": token})


@app.get("/api/geocode")
def api_geocode():
    try:
        results = geocoding.default_geocoder().search(request.args.get("q"))
    except geocoding.GeocodingNotConfigured:
        return jsonify({"error": "Mapbox token not configured"}), 503
    except geocoding.GeocodingError as e:
        LOGGER.warning("geocode failed: %s", e)
        return jsonify({"error": "Geocoding failed"}), 502
    return jsonify({"success": True, "data": [r.to_dict() for r in results]})


# ------------------------------
# עמודים
# ------------------------------
@app.get("/api/pages")
def api_pages():
    return jsonify({"success": True, "data": storage.pages.all()})


@app.get("/api/pages/<page_id>")
def api_page(page_id):
    page = storage.pages.get(page_id) or storage.pages.find_one(slug=page_id)
    if not page:
        return _not_found("Page not found")
    return jsonify(page)


@app.post("/api/pages")
@auth.login_required
def api_page_create():
    data = sanitize_object(_body())
    if not data.get("title"):
        raise ValidationError(["title is required"])
    data["slug"] = storage.unique_slug(storage.pages, storage.slugify(data.get("slug") or data["title"]) or secrets.token_hex(4))
    return jsonify({"success": True, "data": storage.pages.create(data)}), 201


@app.put("/api/pages/<page_id>")
@auth.login_required
def api_page_update(page_id):
    changes = sanitize_object(_body())
    if changes.get("slug"):
        changes["slug"] = storage.unique_slug(storage.pages, storage.slugify(changes["slug"]), exclude_id=page_id)
    page = storage.pages.update(page_id, changes)
    if not page:
        return _not_found("Page not found")
    return jsonify(page)


@app.delete("/api/pages/<page_id>")
@auth.login_required
def api_page_delete(page_id):
    if not storage.pages.delete(page_id):
        return _not_found("Page not found")
    return jsonify({"success": True})


# ------------------------------
# מדיה
# ------------------------------
@app.get("/api/media")
@auth.login_required
def api_media():
    items = sorted(storage.media.all(), key=lambda m: m.get("createdAt") or "", reverse=True)
    return jsonify({"success": True, "data": items})


@app.get("/api/media/status")
@auth.login_required
def api_media_status():
    return jsonify({
        "storage": "local",
        "folders": list(media.FOLDERS),
        "maxSizeMB": media.MAX_UPLOAD_BYTES // (1024 * 1024),
        "allowedTypes": list(media.ALLOWED_MIMETYPES),
    })


@app.get("/api/media/folder/<folder>")
@auth.login_required
def api_media_folder(folder):
    return jsonify(storage.media.filter(lambda m: m.get("folder") == folder))


@app.get("/api/media/<media_id>")
@auth.login_required
def api_media_item(media_id):
    item = storage.media.get(media_id)
    if not item:
        return _not_found("Media not found")
    return jsonify(item)


@app.post("/api/media")
@auth.login_required
def api_media_create():
    data = sanitize_object(_body())
    if not data.get("url"):
        raise ValidationError(["url is required"])
    data.setdefault("folder", "general")
    return jsonify({"success": True, "data": storage.media.create(data)}), 201


@app.post("/api/media/upload-optimized")
@auth.login_required
def api_media_upload():
    file = request.files.get("file")
    if not file or not file.filename:
        return jsonify({"error": "No file provided"}), 400
    data = file.read()
    try:
        record = media.save_upload(
            app.static_folder,
            file.filename,
            data,
            mimetype=file.mimetype,
            folder=request.form.get("folder") or "general",
            preset=request.form.get("preset") or None,
            alt_text=request.form.get("altText"),
            alt_text_en=request.form.get("altTextEn") or "",
        )
    except media.MediaError as e:
        message = str(e)
        if message.startswith("File type not allowed"):
            message = "Invalid file type. Allowed: JPEG, PNG, GIF, WebP, PDF"
        elif message.startswith("File too large"):
            message = "File too large. Maximum size is 50MB"
        return jsonify({"error": message}), 400
    return jsonify({"success": True, "data": record}), 201


@app.put("/api/media/<media_id>")
@auth.login_required
def api_media_update(media_id):
    data = sanitize_object(_body())
    changes = {k: data[k] for k in ("name", "altText", "altTextEn", "folder") if k in data}
    item = storage.media.update(media_id, changes)
    if not item:
        return _not_found("Media not found")
    return jsonify(item)


@app.delete("/api/media/<media_id>")
@auth.login_required
def api_media_delete(media_id):
    try:
        deleted = media.delete_media(app.static_folder, media_id)
    except media.MediaError as e:
        LOGGER.error("media delete failed: %s", e)
        return jsonify({"error": "Failed to delete media"}), 500
    if not deleted:
        return _not_found("Media not found")
    return jsonify({"success": True})


# ------------------------------
# מיני-סייטים
# ------------------------------
MINI_SITE_IMPORT_FIELDS = (
    "name", "hero", "about", "features", "gallery", "pricing", "location", "contact", "faq", "seo", "status",
)


@app.get("/api/mini-sites")
@auth.login_required
def api_mini_sites():
    return jsonify({"success": True, "data": storage.mini_sites.all()})


@app.get("/api/mini-sites/slug/<slug>")
def api_mini_site_by_slug(slug):
    site = storage.mini_sites.find_one(slug=slug)
    if not site:
        return _not_found("Mini-site not found")
    site = storage.mini_sites.increment(site["id"], "views")
    if not site:
        return _not_found("Mini-site not found")
    return jsonify(site)


@app.get("/api/mini-sites/admin/export")
@auth.admin_required
def api_mini_sites_export():
    items = storage.mini_sites.all()
    return jsonify({"exportedAt": storage.now_iso(), "count": len(items), "miniSites": items})


@app.post("/api/mini-sites/admin/import")
@auth.admin_required
def api_mini_sites_import():
    data = _body()
    items = data.get("miniSites")
    if not isinstance(items, list):
        return jsonify({"error": "miniSites must be an array"}), 400
    overwrite = bool(data.get("overwrite"))
    results = {"imported": 0, "skipped": 0, "updated": 0, "errors": []}

    for item in items:
        if not isinstance(item, dict) or not item.get("slug") or not item.get("name"):
            results["errors"].append("Invalid mini-site entry (slug and name are required)")
            continue
        item = sanitize_object(item)
        existing = storage.mini_sites.find_one(slug=item["slug"])
        if existing:
            if not overwrite:
                results["skipped"] += 1
                continue
            storage.mini_sites.update(existing["id"], {k: item[k] for k in MINI_SITE_IMPORT_FIELDS if k in item})
            results["updated"] += 1
        else:
            fields = {k: v for k, v in item.items() if k not in ("id", "createdAt", "updatedAt", "views")}
            fields.setdefault("status", "draft")
            fields["views"] = 0
            storage.mini_sites.create(fields)
            results["imported"] += 1

    LOGGER.info("mini-sites import: %s", {k: v for k, v in results.items() if k != "errors"})
    return jsonify({"success": True, "results": results})


@app.get("/api/mini-sites/<site_id>")
@auth.login_required
def api_mini_site(site_id):
    site = storage.mini_sites.get(site_id)
    if not site:
        return _not_found("Mini-site not found")
    return jsonify(site)


@app.post("/api/mini-sites")
@auth.login_required
def api_mini_site_create():
    data = sanitize_object(_body())
    if not data.get("name"):
        raise ValidationError(["name is required"])
    data["slug"] = storage.unique_slug(storage.mini_sites, storage.slugify(data.get("slug") or data["name"]) or secrets.token_hex(4))
    data.setdefault("status", "draft")
    data["views"] = 0
    return jsonify({"success": True, "data": storage.mini_sites.create(data)}), 201


@app.put("/api/mini-sites/<site_id>")
@auth.login_required
def api_mini_site_update(site_id):
    changes = sanitize_object(_body())
    changes.pop("views", None)
    if changes.get("slug"):
        changes["slug"] = storage.unique_slug(storage.mini_sites, storage.slugify(changes["slug"]), exclude_id=site_id)
    site = storage.mini_sites.update(site_id, changes)
    if not site:
        return _not_found("Mini-site not found")
    return jsonify(site)


@app.delete("/api/mini-sites/<site_id>")
@auth.login_required
def api_mini_site_delete(site_id):
    if not storage.mini_sites.delete(site_id):
        return _not_found("Mini-site not found")
    return jsonify({"success": True})


# ------------------------------
# משתמשים (admin)
# ------------------------------
@app.get("/api/users")
@auth.admin_required
def api_users():
    return jsonify([auth.public_user(u) for u in storage.users.all()])


@app.get("/api/users/<user_id>")
@auth.admin_required
def api_user(user_id):
    user = storage.users.get(user_id)
    if not user:
        return _not_found("User not found")
    return jsonify(auth.public_user(user))


@app.post("/api/users")
@auth.admin_required
def api_user_create():
    return jsonify(auth.create_user(_body())), 201


@app.put("/api/users/<user_id>")
@auth.admin_required
def api_user_update(user_id):
    user = auth.update_user(user_id, _body())
    if not user:
        return _not_found("User not found")
    return jsonify(user)


@app.delete("/api/users/<user_id>")
@auth.admin_required
def api_user_delete(user_id):
    if user_id == auth.current_user()["id"]:
        return jsonify({"error": "Cannot delete your own user"}), 400
    if not storage.users.delete(user_id):
        return _not_found("User not found")
    return jsonify({"success": True})


# ------------------------------
# אוספים פשוטים (templates, languages, site-stats, investment-zones, case-studies)
# ------------------------------
def register_simple_crud(prefix, collection, label, public_list=True, active_list=None):
    """
    רושם list/get/create/update/delete שמחזירים את הרשומות כמו שהן.
    active_list: נתיב "/active" או רשימה ציבורית של פעילים בלבד (+"/all" לאדמין).
    """
    endpoint = prefix.strip("/").replace("/", "_").replace("-", "_")
    not_found_msg = f"{label} not found"

    def _sorted(items):
        return sorted(items, key=lambda r: (r.get("sortOrder") or 0, r.get("createdAt") or ""))

    def list_items():
        items = collection.all()
        if active_list == "public":
            items = [r for r in items if r.get("isActive", True)]
        return jsonify(_sorted(items))

    def list_all():
        return jsonify(_sorted(collection.all()))

    def list_active():
        return jsonify(_sorted(r for r in collection.all() if r.get("isActive", True)))

    def get_item(item_id):
        item = collection.get(item_id)
        if not item:
            return _not_found(not_found_msg)
        return jsonify(item)

    def create_item():
        return jsonify(collection.create(sanitize_object(_body()))), 201

    def update_item(item_id):
        item = collection.update(item_id, sanitize_object(_body()))
        if not item:
            return _not_found(not_found_msg)
        return jsonify(item)

    def delete_item(item_id):
        if not collection.delete(item_id):
            return _not_found(not_found_msg)
        return jsonify({"success": True})

    list_view = list_items if public_list else auth.login_required(list_items)
    app.add_url_rule(prefix, f"{endpoint}_list", list_view, methods=["GET"])
    if active_list == "public":
        app.add_url_rule(f"{prefix}/all", f"{endpoint}_all", auth.login_required(list_all), methods=["GET"])
    elif active_list == "route":
        app.add_url_rule(f"{prefix}/active", f"{endpoint}_active", list_active, methods=["GET"])
    app.add_url_rule(f"{prefix}/<item_id>", f"{endpoint}_get", get_item, methods=["GET"])
    app.add_url_rule(prefix, f"{endpoint}_create", auth.login_required(create_item), methods=["POST"])
    app.add_url_rule(f"{prefix}/<item_id>", f"{endpoint}_update", auth.login_required(update_item), methods=["PUT"])
    app.add_url_rule(f"{prefix}/<item_id>", f"{endpoint}_delete", auth.login_required(delete_item), methods=["DELETE"])


@app.get("/api/templates/type/<template_type>")
def api_templates_by_type(template_type):
    return jsonify(storage.templates.filter(lambda r: r.get("type") == template_type))


register_simple_crud("/api/templates", storage.templates, "Template")
register_simple_crud("/api/languages", storage.languages, "Language", active_list="route")
register_simple_crud("/api/site-stats", storage.site_stats, "Stat")
register_simple_crud("/api/investment-zones", storage.investment_zones, "Investment zone", active_list="public")
register_simple_crud("/api/case-studies", storage.case_studies, "Case study", active_list="public")


# ------------------------------
# בלוקי תוכן (CMS)
# ------------------------------
def _wants_all_blocks() -> bool:
    # אדמין יכול לבקש גם בלוקים מושבתים
    return request.args.get("all") in ("1", "true") and auth.current_user() is not None


@app.get("/api/content-blocks")
def api_content_blocks():
    return jsonify(content_blocks.all_blocks(active_only=not _wants_all_blocks()))


@app.get("/api/content-blocks/section/<section>")
def api_content_blocks_section(section):
    return jsonify(content_blocks.section_blocks(section, active_only=not _wants_all_blocks()))


@app.get("/api/content-blocks/<block_id>")
def api_content_block(block_id):
    block = storage.content_blocks.get(block_id)
    if not block or (block.get("isActive") is False and auth.current_user() is None):
        return _not_found("Content block not found")
    return jsonify(block)


@app.post("/api/content-blocks")
@auth.login_required
def api_content_block_create():
    return jsonify(content_blocks.create_block(sanitize_object(_body()))), 201


@app.post("/api/content-blocks/bulk-upsert")
@auth.login_required
def api_content_blocks_bulk():
    blocks = _body().get("blocks")
    if not isinstance(blocks, list):
        return jsonify({"error": "blocks must be an array"}), 400
    saved = content_blocks.bulk_upsert(sanitize_object(blocks))
    return jsonify({"success": True, "count": len(saved), "blocks": saved})


@app.put("/api/content-blocks/<block_id>")
@auth.login_required
def api_content_block_update(block_id):
    block = content_blocks.update_block(block_id, sanitize_object(_body()))
    if not block:
        return _not_found("Content block not found")
    return jsonify(block)


@app.delete("/api/content-blocks/<block_id>")
@auth.login_required
def api_content_block_delete(block_id):
    if not content_blocks.delete_block(block_id):
        return _not_found("Content block not found")
    return jsonify({"success": True})


# ------------------------------
# הגדרות (key/value)
# ------------------------------
@app.get("/api/site-settings")
def api_site_settings_list():
    return jsonify(storage.settings.all())


@app.get("/api/site-settings/category/<category>")
def api_site_settings_category(category):
    return jsonify(storage.settings.filter(lambda s: s.get("category") == category))


@app.get("/api/site-settings/key/<key>")
def api_site_setting(key):
    setting = storage.settings.find_one(key=key)
    if not setting:
        return _not_found("Setting not found")
    return jsonify(setting)


@app.post("/api/site-settings/bulk-update")
@auth.admin_required
def api_site_settings_bulk():
    items = _body().get("settings")
    if not isinstance(items, list):
        return jsonify({"error": "settings must be an array"}), 400
    saved = []
    for item in sanitize_object(items):
        if not isinstance(item, dict) or not item.get("key"):
            continue
        fields = {k: item[k] for k in ("value", "category", "label", "labelEn") if k in item}
        record, _ = storage.settings.upsert({"key": item["key"]}, fields, defaults={"category": "general"})
        saved.append(record)
    return jsonify({"success": True, "count": len(saved), "settings": saved})


@app.put("/api/site-settings/<key>")
@auth.admin_required
def api_site_setting_put(key):
    data = sanitize_object(_body())
    fields = {k: data[k] for k in ("value", "category", "label", "labelEn") if k in data}
    record, created = storage.settings.upsert({"key": key}, fields, defaults={"category": "general"})
    return jsonify(record), (201 if created else 200)


@app.delete("/api/site-settings/<key>")
@auth.admin_required
def api_site_setting_delete(key):
    if not storage.settings.delete_where(lambda s: s.get("key") == key):
        return _not_found("Setting not found")
    return jsonify({"success": True})


# ------------------------------
# הגדרות אתר (אובייקט יחיד)
# ------------------------------
@app.get("/api/settings")
def api_settings():
    data = storage.get_site_settings() or {f: None for f in storage.SITE_SETTINGS_FIELDS}
    return jsonify({"success": True, "data": data})


@app.put("/api/settings")
@auth.admin_required
def api_settings_update():
    data = storage.update_site_settings(sanitize_object(_body()))
    return jsonify({"success": True, "data": data, "message": "Settings updated successfully"})


# ------------------------------
# תוכן לעמוד הבית (מקובץ)
# ------------------------------
@app.get("/api/site-content")
def api_site_content():
    lang = g.current_lang
    sections = {name: content_blocks.section_map(name, lang) for name in content_blocks.sections()}
    stats = sorted(storage.site_stats.all(), key=lambda s: s.get("sortOrder") or 0)
    featured = [p for p in storage.projects.all() if _is_public_project(p) and p.get("featured")]
    return jsonify({
        "success": True,
        "lang": lang,
        "dir": i18n.text_direction(lang),
        "sections": sections,
        "stats": stats,
        "featuredProjects": featured,
        "settings": storage.get_site_settings() or {},
    })


# ------------------------------
# צ'אט AI
# ------------------------------
@csrf.exempt
@app.post("/api/chat")
@limiter.limit(CHAT_RATE_LIMIT, error_message=TOO_MANY_REQUESTS)
def api_chat():
    raw = _body().get("messages")
    if not isinstance(raw, list):
        return jsonify({"error": "messages array is required"}), 400
    if not ai_client.is_configured():
        return jsonify({"error": "AI not configured"}), 503
    messages = chat_assistant.normalize_messages(raw)
    if not messages:
        return jsonify({"error": "messages array is required"}), 400

    if request.args.get("stream") == "0":
        try:
            text = chat_assistant.reply(messages)
        except ai_client.AIError as e:
            LOGGER.error("[chat] %s", e)
            return jsonify({"error": "Internal server error"}), 500
        return jsonify({"reply": text})

    try:
        chunks = chat_assistant.stream_reply(messages)
    except ai_client.AIError as e:
        LOGGER.error("[chat] %s", e)
        return jsonify({"error": "Internal server error"}), 500
    events = chat_assistant.sse_events(chunks)
    resp = Response(stream_with_context(events), mimetype="text/event-stream")
    resp.headers["Cache-Control"] = "no-cache"
    resp.headers["X-Accel-Buffering"] = "no"
    return resp


# ------------------------------
# כלי AI לאדמין
# ------------------------------
@app.get("/api/ai/status")
@auth.login_required
def api_ai_status():
    return jsonify(ai_assist.status())


@app.post("/api/ai/<action>")
@auth.login_required
def api_ai_action(action):
    entry = ai_assist.ACTIONS.get(action)
    if not entry:
        return jsonify({"error": "Unknown action"}), 404
    func, failure = entry
    try:
        return jsonify(func(_body()))
    except ValidationError as e:
        return jsonify({"error": e.message}), 400
    except ai_client.AINotConfigured:
        return jsonify({"error": "AI not configured"}), 503
    except ai_client.AIError as e:
        LOGGER.error("[ai] %s failed: %s", action, e)
        return jsonify({"error": failure}), 500


# ------------------------------
# קרבה לציוני דרך
# ------------------------------
@app.get("/api/proximity/areas")
def api_proximity_areas():
    return jsonify({"success": True, "data": proximity.all_areas()})


@app.get("/api/proximity")
def api_proximity():
    area = proximity.area_proximity(request.args.get("area") or "")
    if not area:
        return _not_found("Area not found", success_flag=True)
    landmarks = area["landmarks"]
    category = request.args.get("category")
    if category:
        landmarks = [lm for lm in landmarks if lm["category"] == category]
    lang = g.current_lang
    data = {
        "area": area["area"],
        "areaNameHe": area["areaNameHe"],
        "landmarks": [dict(lm, categoryLabel=proximity.category_label(lm["category"], lang)) for lm in landmarks],
    }
    return jsonify({"success": True, "data": data})


# ------------------------------
# SEO
# ------------------------------
@app.get("/api/seo/meta")
def api_seo_meta():
    path = request.args.get("path") or "/"
    lang = g.current_lang
    if path.startswith("/project/"):
        project = storage.projects.find_one(slug=path[len("/project/"):].strip("/"))
        if project and _is_public_project(project):
            return jsonify(seo.project_meta(project, lang))
    noindex = path.startswith("/admin")
    return jsonify(seo.page_meta(path, lang, noindex=noindex))


@app.post("/api/seo/analyze")
@auth.login_required
def api_seo_analyze():
    data = _body()
    text = data.get("text") or ""
    if not text.strip():
        return jsonify({"error": "text is required"}), 400
    meta = seo.auto_seo(text, data.get("title") or "", data.get("type") or "page", data.get("locale") or "he")
    return jsonify({"success": True, "data": meta, "quality": seo.analyze_seo_quality(meta)})


@app.get("/sitemap.xml")
def sitemap_xml():
    xml = seo.render_sitemap(seo.sitemap_entries(storage.projects.all()))
    return Response(xml, mimetype="application/xml")


@app.get("/robots.txt")
def robots_txt():
    return Response("\n".join(seo.robots_lines()) + "\n", mimetype="text/plain; charset=utf-8")


# ------------------------------
# אנליטיקה
# ------------------------------
@csrf.exempt
@app.post("/api/track")
def api_track():
    data = _body()
    event = (data.get("event") or "").strip()
    target_id = str(data.get("target_id") or data.get("projectId") or "").strip()
    if event not in analytics.EVENTS or not target_id:
        return jsonify({"ok": False, "error": "bad_request"}), 400

    page_path = (data.get("path") or "").strip()
    if not page_path:
        page_path = _extract_path_from_referer(request.headers.get("Referer", "")) or "/"

    logged = analytics.log_event(event, target_id, page_path=page_path)
    return jsonify({"ok": True, "logged": bool(logged)})


@app.get("/api/analytics/summary")
@auth.login_required
def api_analytics_summary():
    return jsonify(analytics.month_summary(request.args.get("month")))


log_integrations()
init_app_data()


# ------------------------------ #
# הפעלת האפליקציה
# ------------------------------ #
if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", "5000")), debug=not IS_PRODUCTION)
