"""
Provider registry: maps a provider name to its configured adapter.

The single extension point for adding a gateway: register a factory under
a name. Adapters are built on first resolution and reused afterwards; they
hold no per-request state, so one instance serves every request.
"""

import logging
from typing import Callable, Optional

from paylink.config import Settings, settings as default_settings
from paylink.engine.errors import UnknownProvider
from paylink.providers.base import PaymentProvider
from paylink.providers.paypal import PayPalProvider
from paylink.providers.sample import SampleProvider
from paylink.providers.stripe import StripeProvider

logger = logging.getLogger("paylink.registry")

ProviderFactory = Callable[[], PaymentProvider]


class ProviderRegistry:
    """Lazily constructs and caches one adapter per registered name."""

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}
        self._instances: dict[str, PaymentProvider] = {}

    def register(self, name: str, factory: ProviderFactory) -> None:
        self._factories[name] = factory
        self._instances.pop(name, None)

    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def resolve(self, name: Optional[str]) -> PaymentProvider:
        """
        Return the adapter registered under ``name``.

        Raises:
            UnknownProvider: Nothing is registered under ``name``.

        Errors raised by the adapter's constructor propagate unchanged and
        nothing is cached, so a later call tries again.
        """
        instance = self._instances.get(name)
        if instance is not None:
            return instance

        factory = self._factories.get(name)
        if factory is None:
            raise UnknownProvider(str(name))

        instance = factory()
        self._instances[name] = instance
        logger.info("Provider %s initialized (%s)", name, type(instance).__name__)
        return instance

    async def aclose(self) -> None:
        """Close every adapter that has been constructed."""
        instances = list(self._instances.values())
        self._instances.clear()
        for instance in instances:
            await instance.aclose()


def build_registry(config: Settings = default_settings) -> ProviderRegistry:
    """Register the built-in gateways that are enabled in configuration."""
    factories: dict[str, ProviderFactory] = {
        "paypal": lambda: PayPalProvider(config.paypal, timeout=config.provider_timeout_seconds),
        "stripe": lambda: StripeProvider(config.stripe, timeout=config.provider_timeout_seconds),
        "sample": lambda: SampleProvider(config.sample),
    }

    registry = ProviderRegistry()
    for name in config.enabled_providers:
        factory = factories.get(name)
        if factory is None:
            logger.warning("Ignoring unknown provider in enabled_providers: %s", name)
            continue
        registry.register(name, factory)
    return registry
