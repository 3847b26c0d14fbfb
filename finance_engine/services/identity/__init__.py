"""Identity services package."""

from finance_engine.services.identity.interface import (
    SessionProvider,
    StaticSessionProvider,
    UnauthorizedError,
)

__all__ = ["SessionProvider", "StaticSessionProvider", "UnauthorizedError"]
