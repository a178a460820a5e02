from .quality import provider_quality_score, quality_score
from .stream_filter import apply_filters

__all__ = ["apply_filters", "provider_quality_score", "quality_score"]
