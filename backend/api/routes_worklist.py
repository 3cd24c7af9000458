"""
Worklist routes: Load, Move and queue inspection per subject.
"""
from typing import Optional

from flask import Blueprint, jsonify

from core.auth import require_auth
from core.logger import logger
from core.validators import ValidationError, validate_subject
from worklist import MissingColumnsError, WorklistError, WorklistService


def worklist_error_response(e: WorklistError):
    """JSON body and status for a failed Load/Move."""
    status = 409 if isinstance(e, MissingColumnsError) else 500
    return jsonify({"success": False, **e.to_dict()}), status


def register_worklist_routes(api: Blueprint, service: Optional[WorklistService]) -> None:
    """Register Load/Move routes on the given blueprint."""

    def not_configured():
        return jsonify({"error": "Google Sheets store not configured"}), 500

    @api.route("/worklist/load", methods=["POST"])
    @require_auth
    def load_all_subjects():
        """Load every subject; failures are reported per subject."""
        try:
            if not service:
                return not_configured()

            results = service.load_all()
            body = {}
            failed = False
            for subject, result in results.items():
                if isinstance(result, WorklistError):
                    failed = True
                    body[subject] = {"success": False, **result.to_dict()}
                else:
                    body[subject] = {"success": True, **result.to_dict()}
            return jsonify({"success": not failed, "subjects": body}), (500 if failed else 200)
        except Exception as e:  # pragma: no cover
            logger.error(f"Error loading worklists: {str(e)}", exc_info=True)
            return jsonify({"error": str(e)}), 500

    @api.route("/worklist/<subject>/load", methods=["POST"])
    @require_auth
    def load_subject(subject):
        """Rebuild one subject's queue."""
        try:
            if not service:
                return not_configured()

            subject = validate_subject(subject, service.subjects)
            result = service.load_subject(subject)
            return jsonify({"success": True, **result.to_dict()}), 200
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except WorklistError as e:
            return worklist_error_response(e)
        except Exception as e:  # pragma: no cover
            logger.error(f"Error loading {subject} worklist: {str(e)}", exc_info=True)
            return jsonify({"error": str(e)}), 500

    @api.route("/worklist/<subject>/move", methods=["POST"])
    @require_auth
    def move_subject(subject):
        """Move classified queue rows into the logs."""
        try:
            if not service:
                return not_configured()

            subject = validate_subject(subject, service.subjects)
            result = service.move_subject(subject)
            return jsonify({"success": True, **result.to_dict()}), 200
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except WorklistError as e:
            return worklist_error_response(e)
        except Exception as e:  # pragma: no cover
            logger.error(f"Error moving {subject} worklist: {str(e)}", exc_info=True)
            return jsonify({"error": str(e)}), 500

    @api.route("/worklist/<subject>", methods=["GET"])
    @require_auth
    def get_queue(subject):
        """Current queue rows for a subject."""
        try:
            if not service:
                return not_configured()

            subject = validate_subject(subject, service.subjects)
            rows = [{"row": identity, **row.to_record()} for identity, row in service.read_queue(subject)]
            return jsonify({"success": True, "subject": subject, "rows": rows}), 200
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        except WorklistError as e:
            return worklist_error_response(e)
        except Exception as e:  # pragma: no cover
            logger.error(f"Error reading {subject} queue: {str(e)}", exc_info=True)
            return jsonify({"error": str(e)}), 500
