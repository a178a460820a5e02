from .auth import AttemptDecision, LoginAttemptEntry, Session
from .streams import (
    MEDIA_TYPES,
    AggregationResult,
    FetchCriteria,
    MediaType,
    ProviderCallResult,
    Stream,
    StreamRequest,
    Subtitle,
)

__all__ = [
    "MEDIA_TYPES",
    "AggregationResult",
    "AttemptDecision",
    "FetchCriteria",
    "LoginAttemptEntry",
    "MediaType",
    "ProviderCallResult",
    "Session",
    "Stream",
    "StreamRequest",
    "Subtitle",
]
