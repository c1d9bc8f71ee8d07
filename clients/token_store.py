"""On-disk cache for Garmin OAuth credentials.

OAuth1 and OAuth2 live in two separate JSON documents so a refresh can
rewrite the short-lived OAuth2 token without touching OAuth1. Files are
created owner-only (0600) inside an owner-only (0700) directory.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union

from config.settings import TOKEN_DIR
from models.tokens import OAuth1Credential, OAuth2Credential
from utils.errors import CredentialCacheError

logger = logging.getLogger(__name__)

OAUTH1_FILENAME = "oauth1_token.json"
OAUTH2_FILENAME = "oauth2_token.json"


class TokenStore:
    """Reads and writes the two credential documents in ``directory``."""

    def __init__(self, directory: Union[str, Path] = TOKEN_DIR):
        self.directory = Path(directory).expanduser()

    @property
    def oauth1_path(self) -> Path:
        return self.directory / OAUTH1_FILENAME

    @property
    def oauth2_path(self) -> Path:
        return self.directory / OAUTH2_FILENAME

    def load_oauth1(self) -> OAuth1Credential:
        return self._load(OAuth1Credential, self.oauth1_path)

    def load_oauth2(self) -> OAuth2Credential:
        return self._load(OAuth2Credential, self.oauth2_path)

    def save_oauth1(self, credential: OAuth1Credential):
        self._write(self.oauth1_path, credential.to_dict())

    def save_oauth2(self, credential: OAuth2Credential):
        self._write(self.oauth2_path, credential.to_dict())

    def load(self) -> Optional[Tuple[OAuth1Credential, OAuth2Credential]]:
        """Load both credentials, or None when the cache is absent or partial."""
        try:
            return self.load_oauth1(), self.load_oauth2()
        except CredentialCacheError as e:
            logger.debug(f"No usable cached session: {e}")
            return None

    def save(self, oauth1: OAuth1Credential, oauth2: OAuth2Credential):
        self.save_oauth1(oauth1)
        self.save_oauth2(oauth2)

    def clear(self):
        for path in (self.oauth1_path, self.oauth2_path):
            if path.exists():
                path.unlink()

    def _read(self, path: Path) -> dict:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise CredentialCacheError(f"{path.name} not found in {self.directory}") from e
        except (OSError, ValueError) as e:
            raise CredentialCacheError(f"Cannot read {path}: {e}") from e
        if not isinstance(data, dict):
            raise CredentialCacheError(f"Unexpected content in {path}")
        return data

    def _load(self, cls, path: Path):
        data = self._read(path)
        try:
            return cls.from_dict(data)
        except (TypeError, ValueError) as e:
            raise CredentialCacheError(f"Incomplete credential in {path}: {e}") from e

    def _write(self, path: Path, data: dict):
        try:
            self.directory.mkdir(mode=0o700, parents=True, exist_ok=True)
            os.chmod(self.directory, 0o700)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=4)
            os.chmod(path, 0o600)
        except OSError as e:
            raise CredentialCacheError(f"Cannot write {path}: {e}") from e
        logger.debug(f"Saved {path}")
