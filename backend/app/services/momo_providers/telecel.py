"""Telecel Cash."""
from dataclasses import dataclass

from backend.app.services.momo_providers import MobileMoneyProvider
from backend.app.services.provider_registry import MobileMoneyProviderRegistry, register_provider


@register_provider(MobileMoneyProviderRegistry)
@dataclass(frozen=True)
class TelecelCashProvider(MobileMoneyProvider):
    provider_code: str = "telecel"
    provider_name: str = "Telecel Cash"
