import platform
import threading
from typing import Optional
from urllib.parse import quote

import requests

from backup_service import BackupService
from db import SettingsRepository
from errors import ConfigurationError, InvalidArgument, NetworkError, NotFound
from logger import setup_logger

logger = setup_logger(__name__)

FIRESTORE_URL = "https://firestore.googleapis.com/v1"
BACKUP_COLLECTION = "backups"


def check_identifier(identifier: Optional[str]) -> str:
    identifier = (identifier or "").strip()
    if not identifier:
        raise InvalidArgument("User ID cannot be empty")
    if "/" in identifier:
        raise InvalidArgument("User ID must not contain '/'")
    return identifier


class FirestoreClient:
    """Minimal Firestore REST client for documents in one collection."""

    def __init__(
        self,
        settings: SettingsRepository,
        session: requests.Session | None = None,
        base_url: str = FIRESTORE_URL,
        timeout: float = 30.0,
        collection: str = BACKUP_COLLECTION,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.collection = collection

    def credentials(self) -> dict:
        creds = self.settings.firebase_credentials()
        missing = [k for k, v in creds.items() if not v]
        if missing:
            raise ConfigurationError(
                "Firebase is not configured. Please enter credentials in Settings."
            )
        return creds

    def is_configured(self) -> bool:
        return all(self.settings.firebase_credentials().values())

    def _database(self, project_id: str) -> str:
        return f"projects/{project_id}/databases/(default)/documents"

    def document_name(self, project_id: str, identifier: str) -> str:
        return f"{self._database(project_id)}/{self.collection}/{identifier}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise NetworkError(f"request to Firestore failed: {e}") from e
        return resp

    def set_document(self, identifier: str, fields: dict) -> None:
        """Overwrite a document with string fields and a server timestamp."""
        creds = self.credentials()
        project = creds["firebase_project_id"]
        body = {
            "writes": [
                {
                    "update": {
                        "name": self.document_name(project, identifier),
                        "fields": {k: {"stringValue": v} for k, v in fields.items()},
                    },
                    "updateTransforms": [
                        {"fieldPath": "timestamp", "setToServerValue": "REQUEST_TIME"}
                    ],
                }
            ]
        }
        url = f"{self.base_url}/{self._database(project)}:commit"
        resp = self._request(
            "POST", url, params={"key": creds["firebase_api_key"]}, json=body
        )
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise NetworkError(f"Firestore commit failed: {e}") from e

    def get_document(self, identifier: str) -> dict | None:
        """Return the document's fields or ``None`` when it does not exist."""
        creds = self.credentials()
        name = self.document_name(
            creds["firebase_project_id"], quote(identifier, safe="")
        )
        resp = self._request(
            "GET", f"{self.base_url}/{name}", params={"key": creds["firebase_api_key"]}
        )
        if resp.status_code == 404:
            return None
        try:
            resp.raise_for_status()
            return resp.json().get("fields", {})
        except requests.HTTPError as e:
            raise NetworkError(f"Firestore read failed: {e}") from e
        except ValueError as e:
            raise NetworkError(f"malformed Firestore response: {e}") from e


class CloudBackupService:
    """Upload and download whole-store backups keyed by a user identifier."""

    def __init__(
        self,
        client: FirestoreClient,
        settings: SettingsRepository,
        backup: BackupService,
        device_model: str | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.backup_service = backup
        self.device_model = device_model or platform.node() or "unknown"
        self._lock = threading.Lock()

    def is_configured(self) -> bool:
        return self.client.is_configured()

    def saved_identifier(self) -> str:
        return self.settings.get_text("backup_identifier", "")

    def upload(self, document: str, identifier: str) -> None:
        self.client.credentials()
        identifier = check_identifier(identifier)
        with self._lock:
            self.client.set_document(
                identifier,
                {"workoutData": document, "deviceModel": self.device_model},
            )
        self.settings.set_text("backup_identifier", identifier)
        self.settings.mark_clean()
        logger.info("uploaded backup for %s", identifier)

    def download(self, identifier: str) -> str:
        self.client.credentials()
        identifier = check_identifier(identifier)
        with self._lock:
            fields = self.client.get_document(identifier)
        data = (fields or {}).get("workoutData", {}).get("stringValue")
        if data is None:
            raise NotFound("No backup found for this ID")
        logger.info("downloaded backup for %s", identifier)
        return data

    def backup(self, identifier: str | None = None) -> None:
        """Export the local store and upload it."""
        self.upload(self.backup_service.export(), identifier or self.saved_identifier())

    def restore_from_cloud(self, identifier: str | None = None) -> int:
        """Download a backup and replace the local store with it."""
        document = self.download(identifier or self.saved_identifier())
        return self.backup_service.restore(document)
