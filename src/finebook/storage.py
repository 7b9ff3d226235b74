# ABOUTME: Ledger persistence backend for Finebook
# ABOUTME: Stores data.json in a GitHub repository via the contents API, with a local file fallback

import base64
import datetime as dt
import json
import logging
import os
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel

from finebook.exceptions import PersistenceUnavailableError
from finebook.types import Ledger

logger = logging.getLogger(__name__)

# Local storage location
DATA_DIR = Path.home() / ".finebook"
DEFAULT_DATA_FILE = DATA_DIR / "data.json"
DEFAULT_BACKUP_FILE = DATA_DIR / "backup.json"

# GitHub contents API
API_BASE_URL = "https://api.github.com"
REMOTE_FILE_PATH = "data.json"
USER_AGENT = "Finebook"


class StorageSettings(BaseModel):
    """Where the ledger lives. GitHub is used only when owner, repo and token are all set."""

    github_owner: str | None = None
    github_repo: str | None = None
    github_token: str | None = None
    github_branch: str = "main"
    data_file: Path = DEFAULT_DATA_FILE
    backup_file: Path = DEFAULT_BACKUP_FILE

    @property
    def github_configured(self) -> bool:
        return bool(self.github_owner and self.github_repo and self.github_token)

    @classmethod
    def from_env(cls) -> "StorageSettings":
        """Read storage settings from environment variables."""
        return cls(
            github_owner=os.environ.get("GITHUB_OWNER"),
            github_repo=os.environ.get("GITHUB_REPO"),
            github_token=os.environ.get("GITHUB_TOKEN"),
            github_branch=os.environ.get("GITHUB_BRANCH", "main"),
            data_file=Path(os.environ.get("FINEBOOK_DATA_FILE", DEFAULT_DATA_FILE)),
            backup_file=Path(os.environ.get("FINEBOOK_BACKUP_FILE", DEFAULT_BACKUP_FILE)),
        )


def default_ledger_data() -> dict:
    """The persisted shape of an empty ledger: no members, only the ICS category."""
    return Ledger().to_json()


class LedgerStorage:
    """
    Reads and writes the ledger JSON document.

    The local file is always written first as a backup; GitHub is the
    durable store when configured. Reads prefer GitHub and fall back to
    the local file.
    """

    def __init__(
        self,
        settings: StorageSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or StorageSettings.from_env()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._current_sha: str | None = None

        if not self.settings.github_configured:
            logger.warning("GitHub storage not configured, using local file fallback")

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the authenticated GitHub API client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=API_BASE_URL,
                timeout=30.0,
                transport=self._transport,
                headers={
                    "Authorization": f"token {self.settings.github_token}",
                    "Accept": "application/vnd.github.v3+json",
                    "User-Agent": USER_AGENT,
                },
            )
        return self._client

    @property
    def _contents_path(self) -> str:
        return f"/repos/{self.settings.github_owner}/{self.settings.github_repo}/contents/{REMOTE_FILE_PATH}"

    async def read_ledger(self) -> dict:
        """
        Read the ledger document.

        Returns:
            The last durably-written ledger JSON, or the default empty ledger
            if nothing has been written yet

        Raises:
            PersistenceUnavailableError: Neither GitHub nor the local file is readable
        """
        if not self.settings.github_configured:
            return self.read_local()

        try:
            data = await self._read_github()
        except (httpx.HTTPError, PersistenceUnavailableError, ValueError) as e:
            logger.warning(f"Error reading from GitHub, falling back to local file: {e}")
            return self.read_local()

        if data is None:
            logger.info("Data file not found in GitHub repository, creating it with default data")
            data = default_ledger_data()
            await self.write_ledger(data)
            return data

        self.write_local(data)
        logger.info("Ledger loaded from GitHub repository")
        return data

    async def _read_github(self) -> dict | None:
        client = self._get_client()
        response = await client.get(
            self._contents_path, params={"ref": self.settings.github_branch}
        )

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise PersistenceUnavailableError(
                f"GitHub API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        payload = response.json()
        if not isinstance(payload, dict) or "content" not in payload:
            raise PersistenceUnavailableError(
                f"GitHub contents response for {REMOTE_FILE_PATH} has no file content"
            )

        self._current_sha = payload.get("sha")
        content = base64.b64decode(payload["content"]).decode("utf-8")
        return json.loads(content)

    async def write_ledger(self, data: dict) -> bool:
        """
        Write the ledger document.

        Returns:
            True if written to durable storage, False if only the local
            fallback file was written

        Raises:
            PersistenceUnavailableError: Not even the local file could be written
        """
        data = {**data, "lastUpdated": dt.datetime.now(dt.timezone.utc).isoformat()}
        self.write_local(data)

        if not self.settings.github_configured:
            logger.info("Ledger saved to local file (GitHub not configured)")
            return True

        try:
            await self._write_github(data)
        except (httpx.HTTPError, PersistenceUnavailableError) as e:
            logger.warning(f"Error writing to GitHub, ledger saved to local file only: {e}")
            return False

        logger.info("Ledger saved to GitHub repository")
        return True

    async def _write_github(self, data: dict) -> None:
        content = json.dumps(data, indent=2, ensure_ascii=False)
        payload: dict[str, Any] = {
            "message": f"Update data.json - {dt.datetime.now(dt.timezone.utc).isoformat()}",
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.settings.github_branch,
        }
        if self._current_sha:
            payload["sha"] = self._current_sha

        client = self._get_client()
        response = await client.put(self._contents_path, json=payload)

        if response.status_code not in (200, 201):
            try:
                message = response.json().get("message", "")
            except ValueError:
                message = response.text
            raise PersistenceUnavailableError(
                f"GitHub API error: {response.status_code} - {message}",
                status_code=response.status_code,
            )

        self._current_sha = response.json().get("content", {}).get("sha")

    def read_local(self) -> dict:
        """Read the local fallback file, creating it with default data if missing."""
        path = self.settings.data_file
        if not path.exists():
            data = default_ledger_data()
            try:
                self.write_local(data)
            except PersistenceUnavailableError as e:
                logger.warning(f"Could not create local data file: {e}")
            return data

        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise PersistenceUnavailableError(f"Failed to read local data file {path}: {e}") from e

    def write_local(self, data: dict) -> None:
        """Write the local fallback file."""
        path = self.settings.data_file
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PersistenceUnavailableError(f"Failed to write local data file {path}: {e}") from e

    def info(self) -> dict:
        """Describe the storage configuration (never includes the token)."""
        return {
            "github_configured": self.settings.github_configured,
            "owner": self.settings.github_owner,
            "repo": self.settings.github_repo,
            "branch": self.settings.github_branch,
            "local_file": str(self.settings.data_file),
        }

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
