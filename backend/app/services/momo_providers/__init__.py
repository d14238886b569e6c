"""
Mobile-money provider plugins.

Every module in this folder is loaded by MobileMoneyProviderRegistry.auto_discover()
and registers its provider with @register_provider.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class MobileMoneyProvider:
    """A named external mobile-money channel."""
    provider_code: str = ""
    provider_name: str = ""
