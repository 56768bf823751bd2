"""
File storage collaborators for attachment bytes.

Attachment rows only keep an opaque locator; the bytes live behind one of:

  LocalFileStorage  /uploads/<scope>/<uuid><ext>  under UPLOAD_FOLDER
  DriveFileStorage  drive:<item id>                in the owner's OneDrive

Selected with STORAGE_PROVIDER = local | drive (see ``build_file_storage``).
"""

from __future__ import annotations

import logging
import os
import uuid
from abc import ABC, abstractmethod

from flask import current_app

from app.integrations.graph_gateway import GraphGatewayError, graph_gateway

logger = logging.getLogger(__name__)

LOCAL_PREFIX = "/uploads/"
DRIVE_PREFIX = "drive:"
DRIVE_FOLDER = "Nexus Project Hub"


class StorageError(Exception):
    """Bytes could not be stored, fetched or deleted."""


class StoredFileNotFoundError(StorageError):
    """The locator no longer points at any bytes."""


class FileStorage(ABC):
    """Store / fetch / delete bytes addressed by an opaque locator."""

    @abstractmethod
    def store(self, content: bytes, file_name: str, scope_id: str, owner_id: str | None = None,
              mime_type: str | None = None) -> str:
        """Persist *content*; return its locator."""

    @abstractmethod
    def fetch(self, locator: str, owner_id: str | None = None) -> bytes:
        """Return the bytes behind *locator* (StoredFileNotFoundError if gone)."""

    @abstractmethod
    def delete(self, locator: str, owner_id: str | None = None) -> None:
        """Remove the bytes behind *locator*. Missing bytes are not an error."""


class LocalFileStorage(FileStorage):
    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)

    def _path_for(self, locator: str) -> str:
        if not locator.startswith(LOCAL_PREFIX):
            raise StorageError(f"Not a local storage locator: {locator!r}")
        relative = locator[len(LOCAL_PREFIX):]
        path = os.path.abspath(os.path.join(self.root, relative))
        if os.path.commonpath([self.root, path]) != self.root:
            raise StorageError(f"Locator escapes the upload folder: {locator!r}")
        return path

    def store(self, content, file_name, scope_id, owner_id=None, mime_type=None):
        _, ext = os.path.splitext(file_name or "")
        scope = "".join(ch for ch in str(scope_id) if ch.isalnum() or ch in "-_") or "misc"
        locator = f"{LOCAL_PREFIX}{scope}/{uuid.uuid4().hex}{ext.lower()}"
        path = self._path_for(locator)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as fh:
                fh.write(content)
        except OSError as exc:
            raise StorageError(f"Could not write {locator}: {exc}") from exc
        return locator

    def fetch(self, locator, owner_id=None):
        path = self._path_for(locator)
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except FileNotFoundError as exc:
            raise StoredFileNotFoundError(locator) from exc
        except OSError as exc:
            raise StorageError(f"Could not read {locator}: {exc}") from exc

    def delete(self, locator, owner_id=None):
        path = self._path_for(locator)
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(f"Could not delete {locator}: {exc}") from exc


class DriveFileStorage(FileStorage):
    """OneDrive-backed storage; every call acts on behalf of *owner_id*."""

    def __init__(self, gateway=None) -> None:
        self.gateway = gateway or graph_gateway

    @staticmethod
    def _require_owner(owner_id):
        if not owner_id:
            raise StorageError("Drive storage requires the owner's identity")
        return owner_id

    @staticmethod
    def _item_id(locator: str) -> str:
        if not locator.startswith(DRIVE_PREFIX):
            raise StorageError(f"Not a drive storage locator: {locator!r}")
        return locator[len(DRIVE_PREFIX):]

    def store(self, content, file_name, scope_id, owner_id=None, mime_type=None):
        owner = self._require_owner(owner_id)
        path = f"{DRIVE_FOLDER}/{scope_id}/{uuid.uuid4().hex[:8]}_{os.path.basename(file_name)}"
        try:
            item_id = self.gateway.upload_drive_file(owner, path, content, mime_type)
        except GraphGatewayError as exc:
            raise StorageError(str(exc)) from exc
        if not item_id:
            raise StorageError("Drive upload returned no item id")
        return f"{DRIVE_PREFIX}{item_id}"

    def fetch(self, locator, owner_id=None):
        owner = self._require_owner(owner_id)
        try:
            content = self.gateway.download_drive_file(owner, self._item_id(locator))
        except GraphGatewayError as exc:
            raise StorageError(str(exc)) from exc
        if content is None:
            raise StoredFileNotFoundError(locator)
        return content

    def delete(self, locator, owner_id=None):
        owner = self._require_owner(owner_id)
        try:
            self.gateway.delete_drive_file(owner, self._item_id(locator))
        except GraphGatewayError as exc:
            raise StorageError(str(exc)) from exc


def build_file_storage(app=None) -> FileStorage:
    """Instantiate the provider named by STORAGE_PROVIDER."""
    cfg = (app or current_app).config
    provider = (cfg.get("STORAGE_PROVIDER") or "local").lower()
    if provider == "drive":
        return DriveFileStorage()
    if provider == "local":
        return LocalFileStorage(cfg["UPLOAD_FOLDER"])
    raise ValueError(f"Unknown STORAGE_PROVIDER: {provider!r}")


def get_file_storage() -> FileStorage:
    """Per-app storage instance, created on first use."""
    ext = current_app.extensions
    if "file_storage" not in ext:
        ext["file_storage"] = build_file_storage()
    return ext["file_storage"]
