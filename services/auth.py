# -*- coding: utf-8 -*-
"""
Auth – משתמשי אדמין, סיסמאות (werkzeug), סשן והגבלת ניסיונות התחברות.
"""

from __future__ import annotations

import logging
import os
import secrets
import threading
import time
from functools import wraps
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from flask import g, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from . import storage
from .validators import ValidationError, is_valid_email, validate_password_strength

LOGGER = logging.getLogger(__name__)

ROLES = ("admin", "editor", "viewer")
ALL_PERMISSIONS = ("projects", "leads", "pages", "media", "miniSites", "prospects", "users", "settings")

MAX_LOGIN_ATTEMPTS = 5
LOGIN_WINDOW_SECONDS = 15 * 60

INVALID_CREDENTIALS = "שם משתמש או סיסמה שגויים"


# ------------------------------
# הגבלת ניסיונות התחברות (לפי IP)
# ------------------------------
class LoginThrottle:
    def __init__(self, max_attempts: int = MAX_LOGIN_ATTEMPTS, window: float = LOGIN_WINDOW_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.max_attempts = max_attempts
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[int, float]] = {}  # ip -> (attempts, first_attempt)

    def check(self, ip: str) -> Tuple[bool, int]:
        """(allowed, retry_after_seconds)"""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(ip)
            if not entry:
                return True, 0
            attempts, first = entry
            if now - first > self.window:
                self._entries.pop(ip, None)
                return True, 0
            if attempts >= self.max_attempts:
                retry = int(-(-(self.window - (now - first)) // 1))
                return False, max(1, retry)
            return True, 0

    def record_failure(self, ip: str) -> None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(ip)
            if not entry or now - entry[1] > self.window:
                self._entries[ip] = (1, now)
            else:
                self._entries[ip] = (entry[0] + 1, entry[1])

    def clear(self, ip: str) -> None:
        with self._lock:
            self._entries.pop(ip, None)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


THROTTLE = LoginThrottle()


def client_ip() -> str:
    # ProxyFix already rewrote remote_addr from X-Forwarded-For
    return request.remote_addr or "unknown"


# ------------------------------
# סיסמאות ומשתמשים
# ------------------------------
def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed or not password:
        return False
    try:
        return check_password_hash(hashed, password)
    except ValueError:
        LOGGER.warning("stored password hash has an unknown format")
        return False


def public_user(user: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k != "password"}


def session_user(user: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": user.get("id"),
        "username": user.get("username"),
        "email": user.get("email"),
        "role": user.get("role"),
    }


def find_user(identifier: str) -> Optional[Dict[str, Any]]:
    ident = (identifier or "").strip()
    if not ident:
        return None
    lowered = ident.lower()
    for user in storage.users.all():
        if user.get("username") == ident or (user.get("email") or "").lower() == lowered:
            return user
    return None


def authenticate(identifier: str, password: str) -> Optional[Dict[str, Any]]:
    user = find_user(identifier)
    if not user or user.get("isActive") is False:
        return None
    if not verify_password(password, user.get("password")):
        return None
    return user


def login_user(user: Mapping[str, Any]) -> None:
    # סשן חדש בכל התחברות (מונע session fixation)
    session.clear()
    session.permanent = True
    session["user_id"] = user["id"]
    storage.users.update(user["id"], {"lastLogin": storage.now_iso()})


def logout_user() -> None:
    session.clear()


def current_user() -> Optional[Dict[str, Any]]:
    if "current_user" in g:
        return g.current_user
    user_id = session.get("user_id")
    user = storage.users.get(user_id) if user_id else None
    if user is not None and user.get("isActive") is False:
        user = None
    g.current_user = user
    return user


def is_admin() -> bool:
    user = current_user()
    return bool(user and user.get("role") == "admin")


# ------------------------------
# דקורטורים
# ------------------------------
def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_user() is None:
            return jsonify({"error": "Authentication required"}), 401
        return view(*args, **kwargs)
    return wrapper


def role_required(*roles: str):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = current_user()
            if user is None:
                return jsonify({"error": "Authentication required"}), 401
            if user.get("role") not in roles:
                return jsonify({"error": "Insufficient permissions"}), 403
            return view(*args, **kwargs)
        return wrapper
    return decorator


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        user = current_user()
        if user is None:
            return jsonify({"error": "Authentication required"}), 401
        if user.get("role") != "admin":
            return jsonify({"error": "Admin access required"}), 403
        return view(*args, **kwargs)
    return wrapper


# ------------------------------
# ניהול משתמשים
# ------------------------------
def _check_user_fields(data: Mapping[str, Any], existing_id: Optional[str] = None) -> None:
    errors = []
    username = data.get("username")
    if username is not None:
        if not isinstance(username, str) or len(username.strip()) < 3:
            errors.append("שם משתמש חייב להכיל לפחות 3 תווים")
        else:
            clash = storage.users.find_one(username=username.strip())
            if clash and clash["id"] != existing_id:
                errors.append("שם המשתמש כבר קיים")
    email = data.get("email")
    if email and not is_valid_email(email):
        errors.append("כתובת אימייל לא תקינה")
    role = data.get("role")
    if role is not None and role not in ROLES:
        errors.append("תפקיד לא תקין")
    password = data.get("password")
    if password is not None:
        problem = validate_password_strength(password)
        if problem:
            errors.append(problem)
    if errors:
        raise ValidationError(errors)


def create_user(data: Mapping[str, Any]) -> Dict[str, Any]:
    fields = {k: data[k] for k in ("username", "email", "password", "role", "permissions", "isActive") if k in data}
    if not fields.get("username") or not fields.get("password"):
        raise ValidationError(["username ו-password הם שדות חובה"])
    _check_user_fields(fields)
    fields["username"] = fields["username"].strip()
    fields["password"] = hash_password(fields["password"])
    fields.setdefault("role", "editor")
    fields.setdefault("permissions", {})
    fields.setdefault("isActive", True)
    return public_user(storage.users.create(fields))


def update_user(user_id: str, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    if not storage.users.get(user_id):
        return None
    fields = {k: data[k] for k in ("username", "email", "password", "role", "permissions", "isActive") if k in data}
    if not fields.get("password"):
        fields.pop("password", None)
    _check_user_fields(fields, existing_id=user_id)
    if "username" in fields:
        fields["username"] = fields["username"].strip()
    if "password" in fields:
        fields["password"] = hash_password(fields["password"])
    updated = storage.users.update(user_id, fields)
    return public_user(updated) if updated else None


def change_password(user_id: str, current: str, new: str) -> Tuple[bool, int, str]:
    """(ok, http_status, message)"""
    if not current or not new:
        return False, 400, "Current and new password are required"
    problem = validate_password_strength(new)
    if problem:
        return False, 400, problem
    user = storage.users.get(user_id)
    if not user:
        return False, 404, "User not found"
    if not verify_password(current, user.get("password")):
        return False, 401, "Current password is incorrect"
    storage.users.update(user_id, {"password": hash_password(new)})
    return True, 200, "Password changed successfully"


def ensure_admin_user() -> Optional[str]:
    """Create the default admin when missing. Returns the generated password, if one was generated."""
    if storage.users.find_one(username="admin"):
        return None
    LOGGER.info("Creating default admin user...")
    password = os.environ.get("ADMIN_PASSWORD")
    generated = None
    if not password:
        generated = password = secrets.token_urlsafe(16)
        LOGGER.warning("ADMIN_PASSWORD not set; generated a random admin password. "
                       "Set ADMIN_PASSWORD for consistent access.")
    storage.users.create({
        "username": "admin",
        "email": os.environ.get("ADMIN_EMAIL", "admin@propline.co.il"),
        "password": hash_password(password),
        "role": "admin",
        "permissions": {p: True for p in ALL_PERMISSIONS},
        "isActive": True,
    })
    LOGGER.info("Default admin user created (username: admin)")
    return generated
