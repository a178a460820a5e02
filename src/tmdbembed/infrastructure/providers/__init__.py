from .httpx_base import HttpxProviderBase
from .mp4hydra import MP4HydraProvider
from .registry import ProviderRegistry

__all__ = ["HttpxProviderBase", "MP4HydraProvider", "ProviderRegistry"]
