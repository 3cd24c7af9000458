from typing import Optional

from flask import Blueprint

from api.routes_admin_core import register_admin_core_routes
from api.routes_imports import register_import_routes
from api.routes_worklist import register_worklist_routes
from core.config import Settings, load_settings
from core.logger import logger
from worklist import WorklistService


def init_store(settings: Settings):
    """Google Sheets store, or None when credentials/config are missing."""
    try:
        from sheets.google_sheets_manager import GoogleSheetsStore

        return GoogleSheetsStore(settings.spreadsheet_id or None)
    except Exception as e:  # pragma: no cover
        logger.warning(f"Google Sheets store not initialized: {type(e).__name__}: {e}")
        return None


def init_drive():
    """Google Drive client, or None when credentials are missing."""
    try:
        from google_drive import GoogleDriveClient

        return GoogleDriveClient()
    except Exception as e:  # pragma: no cover
        logger.warning(f"Google Drive client not initialized: {type(e).__name__}: {e}")
        return None


def create_api(store, drive, settings: Optional[Settings] = None) -> Blueprint:
    """Build the /api blueprint around the given clients; either may be None."""
    settings = settings or load_settings()

    service = WorklistService(store, settings) if store is not None else None

    api = Blueprint("api", __name__)

    # Register route groups on the shared blueprint
    register_admin_core_routes(api)
    register_worklist_routes(api, service)
    register_import_routes(api, drive, store, settings)
    return api
