from __future__ import annotations

import importlib.util
from pathlib import Path
from typing import Type, Dict, List, Optional

from backend.app.logging_config import get_logger

logger = get_logger(__name__)


class AbstractProviderRegistry:
    """Abstract base class for provider registries.

    Each subclass automatically gets its own _providers dictionary.
    """

    def __init_subclass__(cls, **kwargs):
        """Ensure each subclass has its own _providers dict and discovery tracking."""
        super().__init_subclass__(**kwargs)
        cls._providers = {}
        cls._discovery_done = False

    @classmethod
    def register(cls, provider_class: Type) -> None:
        """Register a provider class.

        The provider_class must expose a `provider_code` attribute.
        """
        code = getattr(provider_class, cls._get_provider_code_attr(), None)
        if not code:
            raise ValueError("Provider class must define a provider_code attribute")
        cls._providers[code] = provider_class

    @classmethod
    def get_provider(cls, code: str):
        """Get provider class by code. Triggers auto-discovery if not done yet."""
        cls.auto_discover()
        return cls._providers.get(code)

    @classmethod
    def get_provider_instance(cls, code: str):
        """Return an instantiated provider for the given code, or None if unknown."""
        prov_cls = cls.get_provider(code)
        if not prov_cls:
            return None
        return prov_cls()

    @classmethod
    def list_providers(cls) -> List[Dict[str, str]]:
        """
        List all registered providers with their metadata, sorted by code.
        Triggers auto-discovery if not done yet.

        Returns:
            List of dicts with 'code' and 'name' keys
        """
        cls.auto_discover()
        providers = []
        for code in sorted(cls._providers):
            instance = cls._providers[code]()
            providers.append({
                'code': code,
                'name': getattr(instance, 'provider_name', None) or code,
                })
        return providers

    @classmethod
    def auto_discover(cls) -> None:
        """Import all modules in the provider folder to trigger registration.

        Modules are loaded straight from the filesystem with importlib.util so the
        package's __init__.py is never executed (avoids circular imports).
        """
        if cls._discovery_done:
            return
        folder = cls._get_provider_folder()
        target_dir = Path(__file__).parent / folder

        if not target_dir.exists():
            cls._discovery_done = True
            return

        for py in sorted(target_dir.glob('*.py')):
            if py.name == '__init__.py' or not py.is_file():
                continue
            module_name = f"backend.app.services.{folder}.{py.stem}"
            try:
                spec = importlib.util.spec_from_file_location(module_name, str(py))
                if spec and spec.loader:
                    mod = importlib.util.module_from_spec(spec)
                    spec.loader.exec_module(mod)
            except Exception as e:
                # A broken plugin must not hide the others
                logger.error("Error importing provider module", module_name=module_name, error=str(e))
                continue
        cls._discovery_done = True

    # --- methods to specialize in subclasses ---
    @classmethod
    def _get_provider_folder(cls) -> str:
        raise NotImplementedError

    @classmethod
    def _get_provider_code_attr(cls) -> str:
        return "provider_code"


class MobileMoneyProviderRegistry(AbstractProviderRegistry):
    """Registry of mobile-money channels a wallet can deposit from or withdraw to."""

    @classmethod
    def _get_provider_folder(cls) -> str:
        return "momo_providers"

    @classmethod
    def resolve_name(cls, code: str) -> Optional[str]:
        """Display name for a provider code, or None if the code is unknown."""
        instance = cls.get_provider_instance(code)
        return instance.provider_name if instance else None


def register_provider(registry_class: Type[AbstractProviderRegistry]):
    """
    Decorator to register a provider class with the given registry.

    Example usage:
    @register_provider(MobileMoneyProviderRegistry)
    class MyProvider(MobileMoneyProvider):
        ...
    """

    def decorator(provider_class: Type):
        registry_class.register(provider_class)
        return provider_class

    return decorator
