"""Domain errors carrying machine-readable codes.

Routers map ``code``/``status_code`` straight into the JSON error body.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base error for aggregation and relay use cases."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500


class InvalidMediaTypeError(GatewayError):
    code = "INVALID_TYPE"
    status_code = 400


class ProviderNotFoundError(GatewayError):
    code = "PROVIDER_NOT_FOUND"
    status_code = 404


class ProviderDisabledError(GatewayError):
    code = "PROVIDER_DISABLED"
    status_code = 503


class NoMatchingStreamError(GatewayError):
    """The preferred provider contributed no candidate streams.

    Distinct from "no streams at all", which is a plain ``None`` result.
    """

    code = "NO_MATCH"
    status_code = 404


class InvalidRelayTokenError(GatewayError):
    code = "INVALID_RELAY_TOKEN"
    status_code = 400


class DuplicateProviderError(Exception):
    """Two providers were registered under the same name."""
