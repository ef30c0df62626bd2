"""Google Drive implementation of the cloud storage provider.

Backups live in the application data folder (``appDataFolder``), which
is private to this app and hidden from the user's normal Drive listing.
"""

import io
import logging
import os
from pathlib import Path
from typing import Any, Optional

import httplib2
import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from ..config import get_config
from ..errors import ProviderError
from .provider import FileQuery, RemoteFileDescriptor

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive.appdata"]
FILE_FIELDS = "id, name, modifiedTime, size"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"

# Failures a Drive API call can raise below the HTTP status layer
API_ERRORS = (HttpError, httplib2.HttpLib2Error, GoogleAuthError, OSError)


class GoogleDriveProvider:
    """Cloud storage provider backed by the Google Drive v3 API."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        api_key: Optional[str] = None,
        token_path: Optional[Path] = None,
    ):
        """Initialize Drive provider.

        Missing credentials are not an error here; the first network
        call fails instead.

        Args:
            client_id: OAuth client ID (uses config if not provided)
            client_secret: OAuth client secret (uses config if not provided)
            api_key: API key sent with requests (uses config if not provided)
            token_path: Where the OAuth token is cached (uses config if not provided)
        """
        config = get_config()

        self.client_id = client_id or config.google_client_id
        self.client_secret = client_secret or config.google_client_secret
        self.api_key = api_key or config.google_api_key
        self.token_path = Path(token_path or config.google_token_path)

        self._credentials: Optional[Credentials] = None
        self._service: Any = None

    # ========================================================================
    # Authentication
    # ========================================================================

    def initialize(self) -> bool:
        """Load cached credentials, refreshing them if expired."""
        if not self.token_path.exists():
            return False

        try:
            creds = Credentials.from_authorized_user_file(str(self.token_path), SCOPES)
            if creds.expired and creds.refresh_token:
                creds.refresh(Request())
                self._save_credentials(creds)
        except (GoogleAuthError, OSError, ValueError) as e:
            logger.warning("Ignoring unusable Google Drive token %s: %s", self.token_path, e)
            return False

        self._credentials = creds
        self._service = None
        return bool(creds.valid)

    def sign_in(self) -> None:
        """Run the browser OAuth flow and cache the resulting token."""
        if not self.client_id or not self.client_secret:
            raise ProviderError(
                "Google Drive is not configured: set GOOGLE_DRIVE_CLIENT_ID "
                "and GOOGLE_DRIVE_CLIENT_SECRET"
            )

        client_config = {
            "installed": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
                "redirect_uris": ["http://localhost"],
            }
        }

        try:
            flow = InstalledAppFlow.from_client_config(client_config, SCOPES)
            creds = flow.run_local_server(port=0)
            self._save_credentials(creds)
        except (GoogleAuthError, OAuth2Error, OSError, ValueError) as e:
            raise ProviderError(f"Google sign-in failed: {e}") from e

        self._credentials = creds
        self._service = None
        logger.info("Signed in to Google Drive")

    def sign_out(self) -> None:
        """Revoke the token and remove it from disk."""
        if self._credentials is not None and self._credentials.token:
            try:
                requests.post(
                    REVOKE_URL,
                    params={"token": self._credentials.token},
                    headers={"content-type": "application/x-www-form-urlencoded"},
                    timeout=10,
                )
            except requests.RequestException as e:
                logger.warning("Could not revoke Google token: %s", e)

        try:
            self.token_path.unlink(missing_ok=True)
        except OSError as e:
            raise ProviderError(f"Could not remove token file {self.token_path}: {e}") from e

        self._credentials = None
        self._service = None

    def _save_credentials(self, creds: Credentials) -> None:
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(creds.to_json())
        os.chmod(self.token_path, 0o600)

    def _get_service(self) -> Any:
        if self._service is not None:
            return self._service
        if self._credentials is None:
            raise ProviderError("Not signed in to Google Drive")

        self._service = build(
            "drive",
            "v3",
            credentials=self._credentials,
            developerKey=self.api_key,
            cache_discovery=False,
        )
        return self._service

    def _api_error(self, action: str, e: Exception) -> ProviderError:
        if isinstance(e, HttpError):
            return ProviderError(f"Google Drive {action} failed: {e.reason}", status=e.resp.status)
        return ProviderError(f"Google Drive {action} failed: {e}")

    # ========================================================================
    # File Operations
    # ========================================================================

    def list_files(self, query: FileQuery) -> list[RemoteFileDescriptor]:
        """List files matching a query, following pagination unless capped."""
        service = self._get_service()
        files: list[RemoteFileDescriptor] = []
        page_token = None

        while True:
            params: dict[str, Any] = {
                "spaces": query.space,
                "q": query.to_drive_query(),
                "fields": f"nextPageToken, files({FILE_FIELDS})",
            }
            if query.order_by:
                params["orderBy"] = query.order_by
            if query.page_size:
                params["pageSize"] = query.page_size
            if page_token:
                params["pageToken"] = page_token

            try:
                response = service.files().list(**params).execute()
            except API_ERRORS as e:
                raise self._api_error("file listing", e) from e

            for file in response.get("files", []):
                files.append(RemoteFileDescriptor.from_api_response(file))

            page_token = response.get("nextPageToken")
            if query.page_size or not page_token:
                break

        return files

    def create_file(
        self, name: str, content: str, mime_type: str, parents: list[str]
    ) -> RemoteFileDescriptor:
        """Upload a new file."""
        service = self._get_service()
        body = {"name": name, "mimeType": mime_type, "parents": parents}

        try:
            response = (
                service.files()
                .create(body=body, media_body=self._media(content, mime_type), fields=FILE_FIELDS)
                .execute()
            )
        except API_ERRORS as e:
            raise self._api_error("file creation", e) from e

        logger.info("Created Drive file %s (%s)", name, response.get("id"))
        return RemoteFileDescriptor.from_api_response(response)

    def update_file(self, file_id: str, content: str, mime_type: str) -> RemoteFileDescriptor:
        """Replace the content of an existing file."""
        service = self._get_service()

        try:
            response = (
                service.files()
                .update(fileId=file_id, media_body=self._media(content, mime_type), fields=FILE_FIELDS)
                .execute()
            )
        except API_ERRORS as e:
            raise self._api_error("file update", e) from e

        logger.info("Updated Drive file %s", file_id)
        return RemoteFileDescriptor.from_api_response(response)

    def get_file_content(self, file_id: str) -> str:
        """Download a file's content as text."""
        service = self._get_service()

        try:
            data = service.files().get_media(fileId=file_id).execute()
        except API_ERRORS as e:
            raise self._api_error("download", e) from e

        if isinstance(data, bytes):
            return data.decode("utf-8")
        return data

    def delete_file(self, file_id: str) -> None:
        """Delete a file permanently."""
        service = self._get_service()

        try:
            service.files().delete(fileId=file_id).execute()
        except API_ERRORS as e:
            raise self._api_error("file deletion", e) from e

        logger.info("Deleted Drive file %s", file_id)

    @staticmethod
    def _media(content: str, mime_type: str) -> MediaIoBaseUpload:
        return MediaIoBaseUpload(io.BytesIO(content.encode("utf-8")), mimetype=mime_type)
