# Overview: Flask API routes for auth operations; login, logout, profile and password change.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..responses import success
from ..services import auth_service, session_service
from ..validation import json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.post("/login")
def login_route():
    """
    Exchange email/password for a bearer token.

    Self-registration is disabled; accounts are created with
    `flask users create`.
    """
    data = json_body()
    user = auth_service.verify_credentials(data.get("email"), data.get("password"))

    session, token = session_service.issue_token(
        user,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    current_app.logger.info("User %s logged in", user.email)

    return success(
        {"token": token, "user": user.to_dict(), "session": session.to_dict()},
        message="Login successful",
    )


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_token(g.token, reason="User logout")
    return success(None, message="Logged out")


@auth_bp.get("/me")
@require_auth
def me_route():
    return success({"user": g.current_user.to_dict()})


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    data = json_body()
    auth_service.change_password(
        g.current_user,
        data.get("current_password"),
        data.get("new_password"),
    )
    revoked = session_service.revoke_all_user_sessions(g.current_user.id, reason="Password changed")
    current_app.logger.info(
        "Password changed for %s; %s sessions revoked", g.current_user.email, revoked
    )
    return success(None, message="Password changed. Please log in again.")
