"""
Drive import routes.
"""
from typing import Optional

from flask import Blueprint, jsonify

from core.auth import require_auth
from core.config import Settings
from core.logger import logger
from imports.csv_import import import_from_drive


def register_import_routes(api: Blueprint, drive: Optional[object], store: Optional[object], settings: Settings) -> None:
    """Register Drive import routes on the given blueprint."""

    @api.route("/imports/drive", methods=["POST"])
    @require_auth
    def import_drive_csvs():
        """Import the newest CSV per subject into its Data tab."""
        try:
            if not drive or not store:
                return jsonify({"error": "Google Drive / Sheets clients not configured"}), 500

            outcomes = import_from_drive(drive, store, settings)
            success = all(o.ok for o in outcomes)
            return (
                jsonify({
                    "success": success,
                    "results": [o.to_dict() for o in outcomes],
                    "message": "\n".join(o.message for o in outcomes),
                }),
                200 if success else 500,
            )
        except Exception as e:  # pragma: no cover
            logger.error(f"Error importing from Drive: {str(e)}", exc_info=True)
            return jsonify({"error": str(e)}), 500

    @api.route("/imports/folder", methods=["POST"])
    @require_auth
    def ensure_import_folder():
        """Create the import folder (and Archive) if missing and return its link."""
        try:
            if not drive:
                return jsonify({"error": "Google Drive client not configured"}), 500

            folders = drive.ensure_import_folders(
                settings.import_parent_folder_id,
                settings.import_folder_name,
                settings.archive_folder_name,
            )
            return jsonify({
                "success": True,
                "folderId": folders["import"]["id"],
                "archiveFolderId": folders["archive"]["id"],
                "url": drive.folder_url(folders["import"]),
            }), 200
        except Exception as e:  # pragma: no cover
            logger.error(f"Error creating import folder: {str(e)}", exc_info=True)
            return jsonify({"error": str(e)}), 500
