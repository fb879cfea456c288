"""
Auth utilities for Flask routes.

Verifies bearer tokens issued by the identity provider:
  - RS256 via the provider's JWKS endpoint when AUTH0_DOMAIN is set
  - HS256 with JWT_SECRET otherwise (local development and tests)

With neither configured every token is rejected. Permissions come from the
token's "permissions" claim.
"""

import functools

import jwt
from flask import request, jsonify, g

from cryptic_config import get_setting

DEFAULT_AUDIENCE = "cryptic_api_id"

_jwks_client = None


def _get_jwks_client(domain):
    """Lazy-init the JWKS client (it caches signing keys between requests)."""
    global _jwks_client
    if _jwks_client is None:
        _jwks_client = jwt.PyJWKClient(f"https://{domain}/.well-known/jwks.json")
    return _jwks_client


def decode_token(token):
    """
    Verify a token and return its claims.
    Raises jwt.InvalidTokenError when the token cannot be trusted.
    """
    audience = get_setting("AUTH0_AUDIENCE", DEFAULT_AUDIENCE)
    domain = get_setting("AUTH0_DOMAIN", "")

    if domain:
        signing_key = _get_jwks_client(domain).get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=audience,
            issuer=f"https://{domain}/",
        )

    secret = get_setting("JWT_SECRET", "")
    if not secret:
        raise jwt.InvalidTokenError("No token verification configured")

    return jwt.decode(token, secret, algorithms=["HS256"], audience=audience)


def get_current_user():
    """
    Extract and verify the JWT from Authorization header.
    Returns dict with {id, permissions} or None if no valid token.
    Caches result in flask.g for the duration of the request.
    """
    if hasattr(g, "_current_user"):
        return g._current_user

    g._current_user = None

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None

    token = auth_header[7:]

    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        print("[Auth] Rejected expired token")
        return None
    except jwt.PyJWKClientError as e:
        print(f"[Auth] Could not fetch signing key: {e}")
        return None
    except jwt.InvalidTokenError as e:
        print(f"[Auth] Rejected token: {e}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    permissions = payload.get("permissions") or []
    if not isinstance(permissions, list):
        permissions = []

    g._current_user = {"id": user_id, "permissions": permissions}
    return g._current_user


def require_auth(f):
    """Decorator: require any valid JWT. Returns 401 otherwise."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if get_current_user() is None:
            return jsonify({"error": "Authentication required"}), 401
        return f(*args, **kwargs)
    return decorated


def require_permissions_any(required):
    """
    Decorator: require a valid JWT carrying at least one of the permissions.
    Returns 401 if no valid token, 403 if none of the permissions match.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = get_current_user()
            if user is None:
                return jsonify({"error": "Authentication required"}), 401
            if not any(p in user["permissions"] for p in required):
                return jsonify({"error": "Forbidden: Insufficient permissions"}), 403
            return f(*args, **kwargs)
        return decorated
    return decorator
