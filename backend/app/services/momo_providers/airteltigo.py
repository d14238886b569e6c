"""AirtelTigo Money."""
from dataclasses import dataclass

from backend.app.services.momo_providers import MobileMoneyProvider
from backend.app.services.provider_registry import MobileMoneyProviderRegistry, register_provider


@register_provider(MobileMoneyProviderRegistry)
@dataclass(frozen=True)
class AirtelTigoMoneyProvider(MobileMoneyProvider):
    provider_code: str = "airteltigo"
    provider_name: str = "AirtelTigo Money"
