from __future__ import annotations

import logging
from email.utils import parseaddr
from typing import Optional

from openai import OpenAI

from models.email_message import EmailMessage
from utils.config import AppConfig
from utils.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a professional email assistant. Generate a warm, personalized email response.
Requirements:
- Address the sender by their name ({sender_name})
- Keep the response concise (2-3 sentences)
- Be professional but friendly
- Acknowledge their email topic
- Context: {context}"""

USER_PROMPT = """Original email:
Subject: {subject}
From: {sender}
Body: {body}

Please generate a professional response that is personalized and relevant to their email."""


def extract_sender_name(from_field: str) -> str:
    name, address = parseaddr(from_field or "")
    name = name.replace('"', "").strip()
    if name:
        return name
    if "@" in address:
        return address.split("@", 1)[0]
    return "there"


class ResponseGenerator:
    """Writes reply text with an OpenAI chat completion."""

    def __init__(self, client: OpenAI, model: str = "gpt-4o-mini", max_tokens: int = 300):
        self._client = client
        self.model = model
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, config: AppConfig) -> "ResponseGenerator":
        if not config.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set in environment variables")
        client = OpenAI(api_key=config.openai_api_key)
        return cls(client, model=config.openai_model, max_tokens=config.openai_max_tokens)

    def generate(self, email: EmailMessage, context: str) -> Optional[str]:
        """Return reply text, or None when the model produced nothing usable."""

        system_prompt = SYSTEM_PROMPT.format(
            sender_name=extract_sender_name(email.sender),
            context=context,
        )
        user_prompt = USER_PROMPT.format(subject=email.subject, sender=email.sender, body=email.body)
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        if not response.choices:
            LOGGER.warning("Model %s returned no choices for %s", self.model, email.id)
            return None
        content = response.choices[0].message.content
        if not content or not content.strip():
            return None
        return content.strip()
