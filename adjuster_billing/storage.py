"""Snapshot storage - local JSON file with an optional Google Sheets mirror"""
import json
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from config import DEFAULT_DATA_DIR, SHEET_ID, STORAGE_FILE_NAME
from .exceptions import StorageError

logger = logging.getLogger(__name__)


class PersistenceAdapter(Protocol):
    """Durable storage for the ledger snapshot."""

    def load(self) -> Dict[str, Any]:
        ...

    def save(self, snapshot: Dict[str, Any]) -> None:
        ...


def _use_google_sheets() -> bool:
    """Determine if we should mirror to Google Sheets"""
    # Check for environment variable to force local storage
    if os.environ.get('USE_LOCAL_STORAGE', '').lower() == 'true':
        return False

    if not SHEET_ID:
        return False

    # Check if we have Google credentials available
    try:
        import streamlit as st
        if hasattr(st, 'secrets') and 'gcp_service_account' in st.secrets:
            return True
    except Exception:
        # st.secrets raises when no secrets file exists
        pass

    if os.environ.get('GOOGLE_CREDENTIALS_JSON'):
        return True

    secrets_path = Path(__file__).parent.parent / "secrets" / "google_credentials.json"
    if secrets_path.exists():
        return True

    return False


class JsonFileStore:
    """Local JSON document holding the whole snapshot; the authoritative copy."""

    def __init__(self, data_dir: str = DEFAULT_DATA_DIR):
        self.data_dir = Path(data_dir)
        self.data_file = self.data_dir / STORAGE_FILE_NAME
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def load(self) -> Dict[str, Any]:
        """
        Read the snapshot.

        Returns an empty snapshot when no file exists yet.

        Raises:
            StorageError: the file exists but is not a valid snapshot
        """
        try:
            with open(self.data_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            raise StorageError(f"Could not read {self.data_file}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Unexpected snapshot format in {self.data_file}")
        return data

    def save(self, snapshot: Dict[str, Any]) -> None:
        """Write the snapshot to a temporary file and swap it into place."""
        temp_file = self.data_file.with_name(self.data_file.name + '.tmp')
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump(snapshot, f, indent=2, ensure_ascii=False)
            os.replace(temp_file, self.data_file)
        except Exception:
            temp_file.unlink(missing_ok=True)
            raise


class MirroredStore:
    """
    Local store plus a best-effort remote mirror.

    The local write happens on the caller's thread and is authoritative.
    The mirror write is handed to a single background worker; a failed
    mirror write is logged and never affects the local copy or the caller.
    """

    def __init__(self, local: PersistenceAdapter, mirror: PersistenceAdapter,
                 executor: Optional[ThreadPoolExecutor] = None):
        self.local = local
        self.mirror = mirror
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix='billing-mirror')

    def load(self) -> Dict[str, Any]:
        return self.local.load()

    def save(self, snapshot: Dict[str, Any]) -> None:
        self.local.save(snapshot)
        future = self._executor.submit(self.mirror.save, snapshot)
        future.add_done_callback(self._log_mirror_failure)

    @staticmethod
    def _log_mirror_failure(future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.warning("Mirror sync failed: %s", error)

    def push(self) -> None:
        """Copy the local snapshot to the mirror and wait for it."""
        self.mirror.save(self.local.load())

    def close(self) -> None:
        self._executor.shutdown(wait=True)


def build_store(data_dir: str = DEFAULT_DATA_DIR) -> PersistenceAdapter:
    """
    Local JSON storage, mirrored to Google Sheets when credentials are
    available. Falls back to local-only storage if the mirror cannot connect.
    """
    local = JsonFileStore(data_dir)
    if not _use_google_sheets():
        logger.info("Using local storage at %s", local.data_file)
        return local

    try:
        from .sheets_storage import get_sheets_client
        mirror = get_sheets_client()
    except Exception as e:
        logger.warning("Failed to connect to Google Sheets (%s); falling back to local storage", e)
        return local

    logger.info("Using local storage mirrored to Google Sheets")
    return MirroredStore(local, mirror)
