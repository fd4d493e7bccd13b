"""Shared httpx plumbing for provider clients."""

import json
import logging
from typing import Any, Mapping, Optional

import httpx

from .errors import HttpError, InvalidResponseError, TransportError

logger = logging.getLogger(__name__)

_MESSAGE_KEYS = ("message", "error_description", "detail", "reason", "title")


def create_http_client(timeout: float = 10.0) -> httpx.Client:
    """Create the synchronous client shared by all providers."""
    return httpx.Client(timeout=timeout, follow_redirects=True)


def extract_error_message(body: str) -> Optional[str]:
    """
    Find a human readable message in an error body.

    Looks at ``message``, ``error`` (string or object), ``errors[0]`` and a
    few other common keys.
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        text = body.strip()
        return text[:200] if text else None
    return _message_from_value(data)


def _message_from_value(value: Any) -> Optional[str]:
    if isinstance(value, str):
        text = value.strip()
        return text or None
    if isinstance(value, list):
        for item in value:
            message = _message_from_value(item)
            if message:
                return message
        return None
    if not isinstance(value, dict):
        return None
    for key in _MESSAGE_KEYS:
        message = value.get(key)
        if isinstance(message, str) and message.strip():
            return message.strip()
    for key in ("error", "errors"):
        if key in value:
            message = _message_from_value(value[key])
            if message:
                return message
    return None


def get_text(
    client: httpx.Client,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Issue a GET request and return the body of a 2xx response.

    Raises:
        TransportError: For timeouts and connection failures
        HttpError: For non-2xx responses
    """
    try:
        response = client.get(url, params=params, headers=headers, timeout=timeout)
    except httpx.TimeoutException as e:
        raise TransportError(f"request timeout: {e}") from e
    except httpx.ConnectError as e:
        raise TransportError(f"connection error: {e}") from e
    except httpx.RequestError as e:
        raise TransportError(f"request error: {e}") from e

    if not response.is_success:
        message = extract_error_message(response.text) or f"HTTP {response.status_code}"
        logger.debug(f"GET {response.request.url.host} -> {response.status_code}: {message}")
        raise HttpError(response.status_code, message)
    return response.text


def get_json(
    client: httpx.Client,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> Any:
    """
    Issue a GET request and decode the JSON body of a 2xx response.

    Raises:
        TransportError: For timeouts and connection failures
        HttpError: For non-2xx responses
        InvalidResponseError: When the body is not JSON
    """
    body = get_text(client, url, params=params, headers=headers, timeout=timeout)
    return decode_json(body)


def decode_json(body: str) -> Any:
    """Decode a response body, mapping parse failures to InvalidResponseError."""
    try:
        return json.loads(body)
    except (json.JSONDecodeError, ValueError) as e:
        raise InvalidResponseError(f"malformed JSON: {e}") from e
