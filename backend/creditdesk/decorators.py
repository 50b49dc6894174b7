# Overview: Request and role decorators for API routes.

from functools import wraps

from flask import g, request

from .errors import AuthError
from .responses import error
from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _is_authenticated() -> bool:
    return hasattr(g, "current_user") and hasattr(g, "session_context")


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext (role and station at login)
    - g.token: The plaintext bearer token (for logout)

    Returns 401 if the header is missing, or the token is invalid, expired,
    revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return error("Authentication required.", 401)

        try:
            context = session_service.validate_token(token)
        except AuthError as e:
            return error(e.client_message(), 401)

        g.current_user = context.user
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Allow only the given roles. Must be applied after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error("Authentication required.", 401)

            if g.session_context.role not in roles:
                return error("You do not have permission to perform this action.", 403)

            return f(*args, **kwargs)

        return decorated_function
    return decorator
