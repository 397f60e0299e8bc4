from .client import ProviderClient

__all__ = ["ProviderClient"]
