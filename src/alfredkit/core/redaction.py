"""Secret redaction for error messages and details."""

import re
from typing import Any, Iterable

REDACTED = "[REDACTED]"

# Environment variables whose values are treated as credentials.
CREDENTIAL_ENV_VARS = (
    "BILIBILI_UID",
    "YOUTUBE_API_KEY",
    "SPOTIFY_CLIENT_ID",
    "SPOTIFY_CLIENT_SECRET",
)

_VALUE_CHARS = r"(?!\[REDACTED\])[^\s&,;)\]}]+"

_CREDENTIAL_NAMES = "client_secret|access_token|secret|token|password|apikey|api_key|authorization"

_ASSIGNMENT_PATTERN = re.compile(
    rf"(?P<prefix>\b(?:{_CREDENTIAL_NAMES})"
    r"\s*[=:]\s*(?:bearer\s+)?)"
    rf"{_VALUE_CHARS}",
    re.IGNORECASE,
)

_BEARER_PATTERN = re.compile(rf"(?P<prefix>\bbearer\s+){_VALUE_CHARS}", re.IGNORECASE)

_QUERY_PARAM_PATTERN = re.compile(
    r"(?P<prefix>[?&](?:key|access_token|token)=)(?!\[REDACTED\])[^&\s]+",
    re.IGNORECASE,
)


def configured_secrets(environ: Any, names: Iterable[str] = CREDENTIAL_ENV_VARS) -> list[str]:
    """
    Collect credential values configured in the environment.

    Args:
        environ: Mapping of environment variables
        names: Variable names holding credentials

    Returns:
        Non-blank secret values, longest first
    """
    secrets = set()
    for name in names:
        value = (environ.get(name) or "").strip()
        if value:
            secrets.add(value)
    return sorted(secrets, key=lambda s: (-len(s), s))


def redact_text(text: str, secrets: Iterable[str] = ()) -> str:
    """Replace credential-shaped substrings and known secret values."""
    secrets = [secret for secret in secrets if secret]
    if secrets:
        # Single pass; longer secrets match first.
        ordered = sorted(secrets, key=len, reverse=True)
        text = re.sub("|".join(map(re.escape, ordered)), REDACTED, text)
    text = _QUERY_PARAM_PATTERN.sub(lambda m: m.group("prefix") + REDACTED, text)
    text = _ASSIGNMENT_PATTERN.sub(lambda m: m.group("prefix") + REDACTED, text)
    text = _BEARER_PATTERN.sub(lambda m: m.group("prefix") + REDACTED, text)
    return text


def redact_value(value: Any, secrets: Iterable[str] = ()) -> Any:
    """Recursively redact strings inside JSON-like values."""
    secrets = list(secrets)
    if isinstance(value, str):
        return redact_text(value, secrets)
    if isinstance(value, dict):
        return {
            redact_text(str(key), secrets): redact_value(item, secrets)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_value(item, secrets) for item in value]
    return value
