from .base import ProviderProtocol

__all__ = ["ProviderProtocol"]
