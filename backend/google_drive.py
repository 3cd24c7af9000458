import io
from typing import Any, Dict, Optional

from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseDownload

from core.logger import get_logger
from sheets.google_sheets_manager import load_credentials

logger = get_logger('drive')

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'
CSV_MIME_TYPE = 'text/csv'


def _quote(value: str) -> str:
    """Escape a literal for a Drive files.list query."""
    return value.replace('\\', '\\\\').replace("'", "\\'")


class GoogleDriveClient:
    """Drive v3 access for the CSV import folder."""

    def __init__(self, service=None):
        if service is None:
            service = build('drive', 'v3', credentials=load_credentials(), cache_discovery=False)
        self.service = service

    def find_child_folder(self, parent_id: str, name: str) -> Optional[Dict[str, Any]]:
        query = (
            f"'{_quote(parent_id)}' in parents and name = '{_quote(name)}' "
            f"and mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"
        )
        response = self.service.files().list(
            q=query,
            fields='files(id, name, webViewLink)',
            pageSize=1,
        ).execute()
        files = response.get('files', [])
        return files[0] if files else None

    def create_folder(self, parent_id: str, name: str) -> Dict[str, Any]:
        metadata = {'name': name, 'mimeType': FOLDER_MIME_TYPE, 'parents': [parent_id]}
        folder = self.service.files().create(body=metadata, fields='id, name, webViewLink').execute()
        logger.info(f"Created Drive folder '{name}' ({folder['id']})")
        return folder

    def get_or_create_folder(self, parent_id: str, name: str) -> Dict[str, Any]:
        return self.find_child_folder(parent_id, name) or self.create_folder(parent_id, name)

    def ensure_import_folders(self, parent_id: str, folder_name: str, archive_name: str) -> Dict[str, Dict[str, Any]]:
        """Get or create the import folder and its archive subfolder."""
        import_folder = self.get_or_create_folder(parent_id, folder_name)
        archive_folder = self.get_or_create_folder(import_folder['id'], archive_name)
        return {'import': import_folder, 'archive': archive_folder}

    def find_latest_csv(self, folder_id: str, subject: str) -> Optional[Dict[str, Any]]:
        """
        Most recently modified CSV directly in folder_id whose name contains subject.

        Matching is case-insensitive, e.g. "Study Analysis_US WEST_Math_Feb 2026.csv"
        for subject "Math".
        """
        query = f"'{_quote(folder_id)}' in parents and mimeType = '{CSV_MIME_TYPE}' and trashed = false"
        subject_lower = subject.lower()
        page_token = None
        while True:
            response = self.service.files().list(
                q=query,
                orderBy='modifiedTime desc',
                fields='nextPageToken, files(id, name, modifiedTime)',
                pageToken=page_token,
            ).execute()
            for file in response.get('files', []):
                if subject_lower in file.get('name', '').lower():
                    return file
            page_token = response.get('nextPageToken')
            if not page_token:
                return None

    def download_text(self, file_id: str) -> str:
        """Download a file's content as text."""
        request = self.service.files().get_media(fileId=file_id)
        file_content = io.BytesIO()
        downloader = MediaIoBaseDownload(file_content, request)
        done = False
        while done is False:
            status, done = downloader.next_chunk()

        file_content.seek(0)
        # Exports from Windows tools often start with a BOM
        return file_content.read().decode('utf-8-sig')

    def move_to_folder(self, file_id: str, folder_id: str) -> None:
        """Move a file out of its current parents into folder_id."""
        file = self.service.files().get(fileId=file_id, fields='parents').execute()
        previous_parents = ','.join(file.get('parents', []))
        self.service.files().update(
            fileId=file_id,
            addParents=folder_id,
            removeParents=previous_parents,
            fields='id, parents',
        ).execute()

    @staticmethod
    def folder_url(folder: Dict[str, Any]) -> str:
        return folder.get('webViewLink') or f"https://drive.google.com/drive/folders/{folder['id']}"
