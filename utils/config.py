from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from utils.errors import ConfigurationError


PROJECT_ROOT = Path(__file__).resolve().parent.parent
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}
PACING_STRATEGIES = ("fixed", "token_bucket")


@dataclass(slots=True)
class AppConfig:
    rules_file: Path
    log_dir: Path
    log_level: str
    stats_file: Path
    credentials_file: Path
    token_file: Path
    user_id: str
    openai_api_key: Optional[str]
    openai_model: str
    openai_max_tokens: int
    mark_as_read_after_reply: bool
    fetch_batch_size: int
    processing_interval_minutes: int
    pacing_strategy: str
    pacing_delay_ms: int
    pacing_rate: float
    processor_log_level: Optional[str] = None

    @property
    def pacing_delay_seconds(self) -> float:
        return self.pacing_delay_ms / 1000


def _resolve_path(value: str | None, fallback: str) -> Path:
    candidate = Path(value or fallback)
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


def _maybe_write_secret_file(target: Path, inline_value: str | None, b64_value: str | None) -> None:
    if not inline_value and not b64_value:
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    if inline_value:
        target.write_text(inline_value, encoding="utf-8")
        return
    try:
        decoded = base64.b64decode(b64_value or "", validate=True)
    except ValueError as exc:
        raise ConfigurationError("Failed to decode base64 secret payload") from exc
    target.write_bytes(decoded)


def _get_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def load_config(env_file: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load configuration values from a .env file and environment variables."""

    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    credentials_file = _resolve_path(os.getenv("GOOGLE_CLIENT_SECRETS"), "credentials.json")
    token_file = _resolve_path(os.getenv("GOOGLE_TOKEN_PATH"), "token.json")
    rules_file = _resolve_path(os.getenv("RULES_FILE"), "config/rules.json")
    log_dir = _resolve_path(os.getenv("LOG_DIR"), "logs")
    stats_file = _resolve_path(os.getenv("STATS_FILE"), "data/stats.json")

    log_dir.mkdir(parents=True, exist_ok=True)
    stats_file.parent.mkdir(parents=True, exist_ok=True)

    _maybe_write_secret_file(
        credentials_file,
        os.getenv("GOOGLE_CLIENT_SECRETS_JSON"),
        os.getenv("GOOGLE_CLIENT_SECRETS_B64"),
    )
    _maybe_write_secret_file(
        token_file,
        os.getenv("GOOGLE_TOKEN_JSON"),
        os.getenv("GOOGLE_TOKEN_B64"),
    )

    pacing_strategy = os.getenv("PACING_STRATEGY", "fixed").strip().lower()
    if pacing_strategy not in PACING_STRATEGIES:
        choices = ", ".join(PACING_STRATEGIES)
        raise ConfigurationError(f"PACING_STRATEGY must be one of {choices}, got {pacing_strategy!r}")

    return AppConfig(
        rules_file=rules_file,
        log_dir=log_dir,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        stats_file=stats_file,
        credentials_file=credentials_file,
        token_file=token_file,
        user_id=os.getenv("GMAIL_USER_ID", "me"),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        openai_max_tokens=_get_int("OPENAI_MAX_TOKENS", 300, minimum=1),
        mark_as_read_after_reply=_get_bool("MARK_AS_READ_AFTER_REPLY", False),
        fetch_batch_size=_get_int("FETCH_BATCH_SIZE", 10, minimum=1),
        processing_interval_minutes=_get_int("PROCESSING_INTERVAL_MINUTES", 5, minimum=1),
        pacing_strategy=pacing_strategy,
        pacing_delay_ms=_get_int("PACING_DELAY_MS", 500),
        pacing_rate=_get_float("PACING_RATE", 2.0),
        processor_log_level=os.getenv("PROCESSOR_LOG_LEVEL") or None,
    )
