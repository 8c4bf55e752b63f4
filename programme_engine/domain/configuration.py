"""Domain configuration registry decoupled from infrastructure settings."""
from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class DomainSettings:
    """Runtime configuration values consumed by domain logic."""

    programme_timezone: str = "UTC"
    default_fasting_window: str = "12:00-20:00"


_SETTINGS = DomainSettings()


def configure(settings: DomainSettings | None = None, /, **overrides: object) -> None:
    """Override the active :class:`DomainSettings` instance.

    The DI container calls this during bootstrapping with values derived from
    environment configuration. Tests may also override individual fields via
    keyword arguments.
    """

    global _SETTINGS

    if settings is not None and overrides:
        settings = replace(settings, **overrides)
    elif settings is None:
        settings = replace(_SETTINGS, **overrides)

    _SETTINGS = settings


def get_settings() -> DomainSettings:
    """Return the currently configured :class:`DomainSettings`."""

    return _SETTINGS
