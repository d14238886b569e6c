"""MTN Mobile Money."""
from dataclasses import dataclass

from backend.app.services.momo_providers import MobileMoneyProvider
from backend.app.services.provider_registry import MobileMoneyProviderRegistry, register_provider


@register_provider(MobileMoneyProviderRegistry)
@dataclass(frozen=True)
class MTNMobileMoneyProvider(MobileMoneyProvider):
    provider_code: str = "mtn"
    provider_name: str = "MTN Mobile Money"
