from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from flask import Flask, g, jsonify

from core import auth


@pytest.fixture()
def guarded_app():
    app = Flask(__name__)

    @app.route("/secret")
    @auth.require_auth
    def secret():
        return jsonify({"operator": g.operator_token["sub"]})

    return app


def test_token_round_trip():
    payload = auth.verify_jwt_token(auth.create_jwt_token())
    assert payload["sub"] == "operator"
    assert payload["scope"] == "worklist"


def test_token_lifetime_from_env(monkeypatch):
    monkeypatch.setenv("JWT_EXPIRATION_HOURS", "2")
    assert auth.token_lifetime() == timedelta(hours=2)
    monkeypatch.setenv("JWT_EXPIRATION_HOURS", "soon")
    assert auth.token_lifetime() == timedelta(hours=auth.DEFAULT_TOKEN_HOURS)


def test_foreign_tokens_are_rejected():
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    forged = jwt.encode({"sub": "operator", "scope": "worklist", "exp": exp}, "other-key", algorithm=auth.JWT_ALGORITHM)
    assert auth.verify_jwt_token(forged) is None

    secret = auth.get_jwt_secret()
    other_scope = jwt.encode({"sub": "operator", "scope": "courses", "exp": exp}, secret, algorithm=auth.JWT_ALGORITHM)
    assert auth.verify_jwt_token(other_scope) is None

    no_expiry = jwt.encode({"sub": "operator", "scope": "worklist"}, secret, algorithm=auth.JWT_ALGORITHM)
    assert auth.verify_jwt_token(no_expiry) is None

    expired = jwt.encode(
        {"sub": "operator", "scope": "worklist", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        secret,
        algorithm=auth.JWT_ALGORITHM,
    )
    assert auth.verify_jwt_token(expired) is None


def test_verify_password_requires_configured_password(monkeypatch):
    monkeypatch.setenv("OPERATOR_PASSWORD", "pw")
    assert auth.verify_password("pw")
    assert not auth.verify_password("nope")
    assert not auth.verify_password(None)
    monkeypatch.delenv("OPERATOR_PASSWORD")
    monkeypatch.setenv("ADMIN_PASSWORD", "legacy")
    assert auth.verify_password("legacy")
    monkeypatch.delenv("ADMIN_PASSWORD")
    assert not auth.verify_password("")


def test_missing_secret_outside_dev_mode(monkeypatch):
    monkeypatch.delenv("JWT_SECRET_KEY")
    monkeypatch.delenv("FLASK_ENV", raising=False)
    with pytest.raises(ValueError):
        auth.get_jwt_secret()


def test_login_throttle_window(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(auth.time, "time", lambda: now[0])
    throttle = auth.LoginThrottle(max_attempts=2, window_seconds=60)

    assert throttle.allow("1.2.3.4")
    throttle.record_failure("1.2.3.4")
    assert throttle.record_failure("1.2.3.4") == 2
    assert not throttle.allow("1.2.3.4")
    assert throttle.allow("5.6.7.8")

    now[0] += 61
    assert throttle.allow("1.2.3.4")

    throttle.record_failure("1.2.3.4")
    throttle.clear("1.2.3.4")
    assert "1.2.3.4" not in throttle.attempts


def test_require_auth(guarded_app):
    client = guarded_app.test_client()
    assert client.get("/secret").status_code == 401
    assert client.get("/secret", headers={"Authorization": "Token abc"}).status_code == 401
    assert client.get("/secret", headers={"Authorization": "Bearer garbage"}).status_code == 401

    token = auth.create_jwt_token()
    response = client.get("/secret", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.get_json() == {"operator": "operator"}
