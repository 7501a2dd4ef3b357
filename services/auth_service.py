from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from utils.config import AppConfig
from utils.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)
# send replies, remove UNREAD and attach labels
SCOPES: Iterable[str] = ("https://www.googleapis.com/auth/gmail.modify",)


class AuthService:
    """Handle the OAuth2 credential lifecycle for the Gmail mailbox."""

    def __init__(self, config: AppConfig):
        self._credentials_file: Path = config.credentials_file
        self._token_file: Path = config.token_file

    def _save_credentials(self, creds: Credentials) -> None:
        LOGGER.debug("Persisting OAuth tokens to %s", self._token_file)
        self._token_file.parent.mkdir(parents=True, exist_ok=True)
        self._token_file.write_text(creds.to_json(), encoding="utf-8")

    def _load_existing_credentials(self) -> Credentials | None:
        if self._token_file.exists():
            LOGGER.debug("Loading cached credential from %s", self._token_file)
            data = self._token_file.read_text(encoding="utf-8")
            return Credentials.from_authorized_user_info(json.loads(data), SCOPES)
        return None

    def authenticate(self) -> Credentials:
        creds = self._load_existing_credentials()
        if creds and creds.expired and creds.refresh_token:
            LOGGER.info("Refreshing expired Gmail token")
            creds.refresh(Request())
            self._save_credentials(creds)
            return creds

        if creds and creds.valid:
            return creds

        if not self._credentials_file.exists():
            raise ConfigurationError(
                f"Gmail client secrets not found at {self._credentials_file}; "
                "set GOOGLE_CLIENT_SECRETS or GOOGLE_CLIENT_SECRETS_JSON"
            )
        LOGGER.info("Initiating OAuth flow using %s", self._credentials_file)
        flow = InstalledAppFlow.from_client_secrets_file(str(self._credentials_file), scopes=SCOPES)
        creds = flow.run_local_server(port=0)
        self._save_credentials(creds)
        return creds
