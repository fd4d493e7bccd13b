"""Upstream providers, retry policy and the fallback pipeline."""

from .errors import (
    HttpError,
    InvalidResponseError,
    ProviderError,
    TransportError,
    UnsupportedInputError,
    UnsupportedPairError,
    malformed_payload,
)
from .http import create_http_client
from .pipeline import PipelineFailure, PipelineSuccess, run_pipeline
from .retry import FunctionProvider, Provider, RetryPolicy, Sleeper, run_with_retry

__all__ = [
    # Errors
    "HttpError",
    "InvalidResponseError",
    "ProviderError",
    "TransportError",
    "UnsupportedInputError",
    "UnsupportedPairError",
    "malformed_payload",
    # HTTP
    "create_http_client",
    # Pipeline
    "FunctionProvider",
    "PipelineFailure",
    "PipelineSuccess",
    "Provider",
    "RetryPolicy",
    "Sleeper",
    "run_pipeline",
    "run_with_retry",
]
