"""
Operator session routes: password login and token check.
"""
from datetime import datetime, timezone

from flask import Blueprint, g, jsonify, request

from core.auth import create_jwt_token, get_client_ip, login_throttle, require_auth, verify_password
from core.logger import logger


def register_admin_core_routes(api: Blueprint) -> None:
    """Register the operator session routes on the given blueprint."""

    @api.route("/admin/login", methods=["POST"])
    def admin_login():
        """Exchange the operator password for a worklist token."""
        ip = get_client_ip()
        try:
            if not login_throttle.allow(ip):
                logger.warning(f"Login throttled for IP: {ip}")
                return jsonify({"success": False, "error": "Too many login attempts. Please try again later."}), 429

            data = request.get_json(silent=True) or {}
            if not verify_password(data.get("password", "")):
                failures = login_throttle.record_failure(ip)
                logger.warning(f"Failed login attempt {failures} from IP: {ip}")
                return jsonify({"success": False, "error": "Invalid password"}), 401

            login_throttle.clear(ip)
            logger.info(f"Operator login from IP: {ip}")
            return jsonify({"success": True, "token": create_jwt_token()}), 200
        except Exception as e:  # pragma: no cover
            logger.error(f"Error in operator login: {str(e)}", exc_info=True)
            return jsonify({"error": "Internal server error"}), 500

    @api.route("/admin/session", methods=["GET"])
    @require_auth
    def admin_session():
        """Report when the caller's token expires."""
        expires = datetime.fromtimestamp(g.operator_token["exp"], tz=timezone.utc)
        return jsonify({"success": True, "operator": g.operator_token["sub"], "expiresAt": expires.isoformat()}), 200
