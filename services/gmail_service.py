from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from email.mime.text import MIMEText
from typing import Dict, List, Sequence

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from models.email_message import EmailMessage
from services.auth_service import AuthService
from utils.config import AppConfig
from utils.errors import CollaboratorError

LOGGER = logging.getLogger(__name__)


class GmailService:
    """Wrapper around the Gmail API for the operations we need."""

    def __init__(self, config: AppConfig, auth_service: AuthService, client=None):
        self._config = config
        if client is None:
            creds = auth_service.authenticate()
            client = build("gmail", "v1", credentials=creds, cache_discovery=False)
        self._client = client
        self._label_cache: Dict[str, str] = {}

    @property
    def user_id(self) -> str:
        return self._config.user_id

    def fetch_unread_messages(self, max_results: int) -> List[EmailMessage]:
        try:
            response = (
                self._client.users()
                .messages()
                .list(userId=self.user_id, q="is:unread", maxResults=max_results)
                .execute()
            )
            messages = response.get("messages", [])
            LOGGER.info("Fetched %s unread message headers", len(messages))
            return [self._fetch_message(message["id"]) for message in messages]
        except HttpError as exc:
            LOGGER.error("Failed to fetch unread messages: %s", exc)
            raise CollaboratorError(f"Failed to fetch unread messages: {exc}") from exc

    def get_message(self, message_id: str) -> EmailMessage:
        try:
            return self._fetch_message(message_id)
        except HttpError as exc:
            LOGGER.error("Error getting email details for %s: %s", message_id, exc)
            raise CollaboratorError(f"Failed to get message {message_id}: {exc}") from exc

    def _fetch_message(self, message_id: str) -> EmailMessage:
        response = (
            self._client.users()
            .messages()
            .get(userId=self.user_id, id=message_id, format="full")
            .execute()
        )
        payload = response.get("payload", {})
        headers = _headers_to_dict(payload.get("headers", []))
        received_at = None
        if internal_date := response.get("internalDate"):
            try:
                received_at = datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
            except (TypeError, ValueError):
                LOGGER.debug("Unable to parse internalDate: %s", internal_date)
        return EmailMessage(
            id=response["id"],
            thread_id=response.get("threadId"),
            subject=headers.get("subject", "(No Subject)"),
            body=_extract_body(payload),
            snippet=response.get("snippet", ""),
            sender=headers.get("from", "Unknown"),
            to=headers.get("to", ""),
            message_id_header=headers.get("message-id"),
            labels=response.get("labelIds", []),
            received_at=received_at,
        )

    def send_reply(self, email: EmailMessage, reply_text: str) -> Dict:
        message = MIMEText(reply_text, "plain", "utf-8")
        message["To"] = email.sender
        message["Subject"] = _reply_subject(email.subject)
        reference = _header_message_id(email)
        message["In-Reply-To"] = reference
        message["References"] = reference
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")
        body = {"raw": raw, "threadId": email.thread_id or email.id}
        try:
            response = (
                self._client.users().messages().send(userId=self.user_id, body=body).execute()
            )
        except HttpError as exc:
            LOGGER.error("Error sending reply for %s: %s", email.id, exc)
            raise CollaboratorError(f"Failed to send reply for {email.id}: {exc}") from exc
        LOGGER.info("Reply sent to %s", email.sender)
        return response

    def mark_as_read(self, message_id: str) -> None:
        body = {"removeLabelIds": ["UNREAD"]}
        try:
            (
                self._client.users()
                .messages()
                .modify(userId=self.user_id, id=message_id, body=body)
                .execute()
            )
        except HttpError as exc:
            LOGGER.error("Error marking %s as read: %s", message_id, exc)
            raise CollaboratorError(f"Failed to mark {message_id} as read: {exc}") from exc

    def add_label(self, message_id: str, label_name: str) -> bool:
        """Attach ``label_name`` to a message, creating the label if needed.

        Labelling is best effort: any failure is logged and reported as False.
        """

        try:
            label_id = self.ensure_label(label_name)
            self.apply_labels(message_id, [label_id])
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Error adding label %s to %s: %s", label_name, message_id, exc)
            return False
        return True

    def apply_labels(self, message_id: str, labels_to_add: Sequence[str]) -> Dict:
        if not labels_to_add:
            LOGGER.debug("No labels supplied for message %s", message_id)
            return {}
        body = {"addLabelIds": list(labels_to_add)}
        response = (
            self._client.users()
            .messages()
            .modify(userId=self.user_id, id=message_id, body=body)
            .execute()
        )
        LOGGER.debug("Applied labels %s to message %s", labels_to_add, message_id)
        return response

    def ensure_label(self, label_name: str) -> str:
        cached = self._label_cache.get(label_name.lower())
        if cached:
            return cached
        for label in self._list_labels():
            if label["name"].lower() == label_name.lower():
                LOGGER.debug("Label %s already exists as %s", label_name, label["id"])
                self._label_cache[label_name.lower()] = label["id"]
                return label["id"]
        body = {"name": label_name, "labelListVisibility": "labelShow", "messageListVisibility": "show"}
        response = self._client.users().labels().create(userId=self.user_id, body=body).execute()
        LOGGER.info("Created label %s with id %s", label_name, response["id"])
        self._label_cache[label_name.lower()] = response["id"]
        return response["id"]

    def _list_labels(self) -> List[Dict]:
        response = self._client.users().labels().list(userId=self.user_id).execute()
        return response.get("labels", [])


def _reply_subject(subject: str) -> str:
    if subject.lower().startswith("re:"):
        return subject
    return f"Re: {subject}"


def _header_message_id(email: EmailMessage) -> str:
    return email.message_id_header or f"<{email.id}@mail.gmail.com>"


def _headers_to_dict(headers: Sequence[Dict[str, str]]) -> Dict[str, str]:
    mapped: Dict[str, str] = {}
    for header in headers:
        name = header.get("name", "").lower()
        value = header.get("value", "")
        mapped[name] = value
    return mapped


def _extract_body(payload: Dict) -> str:
    if "body" in payload and payload["body"].get("data"):
        return _decode_base64(payload["body"]["data"])
    for part in payload.get("parts", []) or []:
        mime_type = part.get("mimeType", "")
        if mime_type == "text/plain":
            data = part.get("body", {}).get("data")
            if data:
                return _decode_base64(data)
        if part.get("parts"):
            nested = _extract_body(part)
            if nested:
                return nested
    return ""


def _decode_base64(data: str) -> str:
    try:
        decoded = base64.urlsafe_b64decode(data + "=" * (-len(data) % 4)).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return ""
    return decoded
