"""
Operator authentication for the worklist API.

There is a single operator password (OPERATOR_PASSWORD). A successful login
returns a JWT scoped to the worklist API; routes decorated with
require_auth accept only that token.
"""
import hmac
import os
import sys
import time
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from flask import g, jsonify, request

from core.logger import logger

JWT_ALGORITHM = 'HS256'
TOKEN_SUBJECT = 'operator'
TOKEN_SCOPE = 'worklist'
DEFAULT_TOKEN_HOURS = 12  # One working day

MAX_LOGIN_ATTEMPTS = 5
LOGIN_WINDOW_SECONDS = 300  # 5 minutes

_dev_secret = None


def _is_dev() -> bool:
    return '--dev' in sys.argv or os.getenv('FLASK_ENV') == 'development'


def get_jwt_secret() -> str:
    """
    Return the JWT signing secret.

    JWT_SECRET_KEY is required in production. In development mode a random
    key is generated once per process, so tokens do not survive a restart.
    """
    global _dev_secret
    secret = os.getenv('JWT_SECRET_KEY')
    if secret:
        return secret
    if not _is_dev():
        raise ValueError("JWT_SECRET_KEY environment variable must be set in production")
    if _dev_secret is None:
        _dev_secret = os.urandom(32).hex()
        logger.warning("JWT_SECRET_KEY not set. Using random key for development. Set JWT_SECRET_KEY in production!")
    return _dev_secret


def token_lifetime() -> timedelta:
    raw = os.getenv('JWT_EXPIRATION_HOURS', '')
    try:
        hours = float(raw) if raw else DEFAULT_TOKEN_HOURS
    except ValueError:
        logger.warning(f"Ignoring invalid JWT_EXPIRATION_HOURS={raw!r}")
        hours = DEFAULT_TOKEN_HOURS
    return timedelta(hours=hours)


def get_operator_password() -> str:
    # ADMIN_PASSWORD is the older name
    return os.getenv('OPERATOR_PASSWORD') or os.getenv('ADMIN_PASSWORD') or ''


def verify_password(password: Any) -> bool:
    """True when password matches the configured operator password."""
    expected = get_operator_password()
    if not expected or not isinstance(password, str):
        return False
    return hmac.compare_digest(password.encode('utf-8'), expected.encode('utf-8'))


def get_client_ip() -> str:
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr or 'unknown'


class LoginThrottle:
    """Failed login attempts per client IP within a sliding window."""

    def __init__(self, max_attempts: int = MAX_LOGIN_ATTEMPTS, window_seconds: int = LOGIN_WINDOW_SECONDS):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.attempts: Dict[str, Dict[str, float]] = {}  # {ip: {count, reset_time}}

    def _entry(self, ip: str, now: float) -> Dict[str, float]:
        entry = self.attempts.get(ip)
        if entry is None or now > entry['reset_time']:
            entry = {'count': 0, 'reset_time': now + self.window_seconds}
            self.attempts[ip] = entry
        return entry

    def allow(self, ip: str) -> bool:
        return self._entry(ip, time.time())['count'] < self.max_attempts

    def record_failure(self, ip: str) -> int:
        entry = self._entry(ip, time.time())
        entry['count'] += 1
        return int(entry['count'])

    def clear(self, ip: str) -> None:
        self.attempts.pop(ip, None)

    def reset(self) -> None:
        self.attempts.clear()


login_throttle = LoginThrottle()


def create_jwt_token() -> str:
    """Token for the operator, valid for token_lifetime()."""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': TOKEN_SUBJECT,
        'scope': TOKEN_SCOPE,
        'iat': now,
        'exp': now + token_lifetime(),
    }
    return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)


def verify_jwt_token(token: str) -> Optional[Dict[str, Any]]:
    """Decoded payload of a valid worklist token, else None."""
    try:
        payload = jwt.decode(
            token,
            get_jwt_secret(),
            algorithms=[JWT_ALGORITHM],
            options={'require': ['exp', 'sub']},
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired operator token")
        return None
    except jwt.InvalidTokenError:
        return None
    if payload.get('scope') != TOKEN_SCOPE:
        return None
    return payload


def require_auth(f):
    """Require a worklist bearer token; the payload is kept on g.operator_token."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get('Authorization')
        if not auth_header:
            return jsonify({'error': 'Authorization header required'}), 401

        scheme, _, token = auth_header.partition(' ')
        if scheme != 'Bearer' or not token:
            return jsonify({'error': 'Invalid authorization format. Expected "Bearer <token>"'}), 401

        payload = verify_jwt_token(token.strip())
        if not payload:
            logger.warning(f"Invalid or expired token from IP: {get_client_ip()}")
            return jsonify({'error': 'Invalid or expired token'}), 401

        g.operator_token = payload
        return f(*args, **kwargs)

    return decorated_function
