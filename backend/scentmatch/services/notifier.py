"""
ScentMatch Backend — Login Code Delivery
==========================================

What:  Abstract contract for delivering a login code to a contact channel.
Why:   The auth flow should not know whether codes go out by SMS, email, or
       (in development) only to the log. Providers are swapped by passing a
       different Notifier to the app factory.
How:   Concrete implementations inherit from Notifier and implement send().

Implementations:
    - LoggingNotifier: development stand-in; writes the code to the server log
    - (Future) SMS / email providers
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """
    Delivers a login code out-of-band.

    Contract:
        - send() is awaited after the code is stored, before the response
        - destination is the raw contact value the user typed; it must not be
          persisted or logged unmasked by implementations
        - provider failures should raise; the auth flow does not retry
    """

    @abstractmethod
    async def send(self, destination: str, code: str) -> None:
        ...


def mask_destination(destination: str) -> str:
    """
    Hide most of a contact value for logging.

    "alice@example.com" → "a***@example.com", "5551234567" → "******4567"
    """
    value = destination.strip()
    if "@" in value:
        local, _, domain = value.partition("@")
        return f"{local[:1]}***@{domain}"
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


class LoggingNotifier(Notifier):
    """Development notifier: logs the code instead of sending it."""

    async def send(self, destination: str, code: str) -> None:
        logger.info("Login code for %s: %s", mask_destination(destination), code)
