from .cache import CachePort
from .provider_registry import ProviderRegistryPort
from .tmdb import TmdbClientPort

__all__ = [
    "CachePort",
    "ProviderRegistryPort",
    "TmdbClientPort",
]
