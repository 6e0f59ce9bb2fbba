"""
HTTP routes: authentication, connection profiles and health.

Handlers stay thin: they parse the request, call one service operation and
render the result. Failures are ExplorerError subclasses rendered by the
application's error handlers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import wraps
from typing import TYPE_CHECKING, Any

from flask import Blueprint, current_app, g, jsonify, request

from s3explorer.core.errors import AuthError, ValidationError
from s3explorer.security.constants import SESSION_COOKIE_NAME

if TYPE_CHECKING:
    from s3explorer.web.app import ExplorerServices

EXTENSION_KEY = "s3explorer"

system_bp = Blueprint("system", __name__, url_prefix="/api")
auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
connections_bp = Blueprint("connections", __name__, url_prefix="/api/connections")


# ============================================================
# HELPERS
# ============================================================

def services() -> ExplorerServices:
    return current_app.extensions[EXTENSION_KEY]


def client_ip() -> str:
    """Source address; X-Forwarded-For is honoured only behind a trusted proxy."""
    if services().config.security.trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        if forwarded.strip():
            return forwarded.split(",")[0].strip()
    return request.remote_addr or "unknown"


def json_body() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def require_fields(body: dict[str, Any], *names: str) -> None:
    if not all(body.get(name) for name in names):
        raise ValidationError(f"{', '.join(names)} required")


def require_auth(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        sessions = services().sessions
        session = sessions.lookup(request.cookies.get(SESSION_COOKIE_NAME))
        if not sessions.validate(session):
            raise AuthError("Authentication required")
        g.session = session
        return f(*args, **kwargs)
    return wrapper


# ============================================================
# HEALTH CHECK
# ============================================================

@system_bp.route("/health", methods=["GET"])
def health():
    return jsonify({
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


# ============================================================
# AUTHENTICATION ROUTES
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    body = json_body()
    password = body.get("password")
    remember_me = body.get("rememberMe") is True

    token, session = services().login.login(
        client_ip(),
        password if isinstance(password, str) else None,
        remember_me=remember_me,
    )

    ttl = services().sessions.ttl_for(remember_me)
    response = jsonify({"success": True})
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=int(ttl.total_seconds()),
        httponly=True,
        samesite="Strict",
        secure=services().config.app.is_production,
        path="/",
    )
    return response


@auth_bp.route("/logout", methods=["POST"])
def logout():
    services().sessions.destroy(request.cookies.get(SESSION_COOKIE_NAME))
    response = jsonify({"success": True})
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="Strict",
        secure=services().config.app.is_production,
    )
    return response


@auth_bp.route("/status", methods=["GET"])
def status():
    sessions = services().sessions
    session = sessions.lookup(request.cookies.get(SESSION_COOKIE_NAME))
    return jsonify(sessions.status(session))


# ============================================================
# CONNECTION ROUTES
# ============================================================

@connections_bp.route("", methods=["GET"])
@require_auth
def list_connections():
    return jsonify({"connections": services().connections.list_profiles()})


@connections_bp.route("/active", methods=["GET"])
@require_auth
def active_connection():
    return jsonify({"active": services().connections.get_active()})


@connections_bp.route("", methods=["POST"])
@require_auth
def create_connection():
    body = json_body()
    require_fields(body, "name", "endpoint", "accessKey", "secretKey")

    result = services().connections.create(
        name=body["name"],
        endpoint=body["endpoint"],
        access_key=body["accessKey"],
        secret_key=body["secretKey"],
        region=body.get("region"),
        force_path_style=body.get("forcePathStyle"),
    )
    return jsonify({"success": True, "id": result.id, "verified": result.verified})


@connections_bp.route("/<int:profile_id>", methods=["PUT"])
@require_auth
def update_connection(profile_id: int):
    body = json_body()
    result = services().connections.update(
        profile_id,
        name=body.get("name"),
        endpoint=body.get("endpoint"),
        access_key=body.get("accessKey"),
        secret_key=body.get("secretKey"),
        region=body.get("region"),
        force_path_style=body.get("forcePathStyle"),
    )
    return jsonify({"success": True, "verified": result.verified})


@connections_bp.route("/<int:profile_id>", methods=["DELETE"])
@require_auth
def delete_connection(profile_id: int):
    services().connections.delete(profile_id)
    return jsonify({"success": True})


@connections_bp.route("/<int:profile_id>/activate", methods=["POST"])
@require_auth
def activate_connection(profile_id: int):
    services().connections.activate(profile_id)
    return jsonify({"success": True})


@connections_bp.route("/disconnect", methods=["POST"])
@require_auth
def disconnect():
    services().connections.deactivate()
    return jsonify({"success": True})


@connections_bp.route("/test", methods=["POST"])
@require_auth
def test_connection():
    body = json_body()
    require_fields(body, "endpoint", "accessKey", "secretKey")

    bucket_count = services().connections.test(
        endpoint=body["endpoint"],
        access_key=body["accessKey"],
        secret_key=body["secretKey"],
        region=body.get("region"),
        force_path_style=body.get("forcePathStyle"),
    )
    return jsonify({"success": True, "bucketCount": bucket_count})
