# programme_engine/infrastructure/di_container.py
"""Dependency injection container for the progression engine."""
from __future__ import annotations

import atexit
from concurrent.futures import Executor, ThreadPoolExecutor
from functools import lru_cache
import inspect
from typing import Any, Callable, Dict, List, Type

from programme_engine.application.engine import ProgressionEngine
from programme_engine.config import settings as app_settings
from programme_engine.domain.clock import Clock, SystemClock
from programme_engine.domain.configuration import DomainSettings, configure as configure_domain
from programme_engine.domain.events import EventSink
from programme_engine.domain.repositories import RecordStore
from programme_engine.infrastructure.event_sinks import (
    CompositeEventSink,
    LoggingEventSink,
    WebhookEventSink,
)
from programme_engine.infrastructure.postgres_store import PostgresRecordStore

configure_domain(
    DomainSettings(
        programme_timezone=app_settings.PROGRAMME_TIMEZONE,
        default_fasting_window=app_settings.DEFAULT_FASTING_WINDOW,
    )
)

ServiceType = Type[Any]
Factory = Callable[["Container"], Any]


class Container:
    """Minimal service container supporting factories and instances."""

    def __init__(self) -> None:
        self._factories: Dict[ServiceType, Factory] = {}
        self._instances: Dict[ServiceType, Any] = {}

    def register(
        self,
        service: ServiceType,
        *,
        factory: Factory | None = None,
        instance: Any | None = None,
    ) -> None:
        if instance is not None:
            self._instances[service] = instance
            self._factories.pop(service, None)
            return
        if factory is None:
            raise ValueError("Either factory or instance must be provided.")
        self._factories[service] = factory
        self._instances.pop(service, None)

    def resolve(self, service: ServiceType) -> Any:
        if service in self._instances:
            return self._instances[service]
        try:
            factory = self._factories[service]
        except KeyError as exc:
            raise KeyError(f"No provider registered for {service!r}") from exc
        value = factory(self)
        # Store, clock and sink are shared by every engine resolved afterwards.
        self._instances[service] = value
        return value

    def shutdown(self) -> None:
        """Stop background workers started by resolved services."""
        executor = self._instances.get(Executor)
        if executor is not None:
            executor.shutdown(wait=False)


def _build_webhook_executor() -> Executor:
    return ThreadPoolExecutor(max_workers=2, thread_name_prefix="event-webhook")


def _build_event_sink(executor: Executor) -> EventSink:
    sinks: List[EventSink] = [LoggingEventSink()]
    if app_settings.EVENT_WEBHOOK_URL:
        sinks.append(
            WebhookEventSink(
                app_settings.EVENT_WEBHOOK_URL,
                timeout=app_settings.EVENT_WEBHOOK_TIMEOUT,
                executor=executor,
            )
        )
    return sinks[0] if len(sinks) == 1 else CompositeEventSink(sinks)


def _register_defaults(container: Container) -> None:
    """Register the production service graph with the container."""
    container.register(RecordStore, factory=lambda _c: PostgresRecordStore())
    container.register(Clock, factory=lambda _c: SystemClock(app_settings.PROGRAMME_TIMEZONE))
    container.register(Executor, factory=lambda _c: _build_webhook_executor())
    container.register(EventSink, factory=lambda c: _build_event_sink(c.resolve(Executor)))
    container.register(
        ProgressionEngine,
        factory=lambda c: ProgressionEngine(
            c.resolve(RecordStore),
            clock=c.resolve(Clock),
            sink=c.resolve(EventSink),
            conflict_retries=app_settings.COMPLETION_CONFLICT_RETRIES,
        ),
    )


def _wrap_override(provider: Any) -> Factory:
    if inspect.isfunction(provider) or inspect.ismethod(provider):
        signature = inspect.signature(provider)
        if len(signature.parameters) == 0:
            return lambda _c, fn=provider: fn()
        return lambda c, fn=provider: fn(c)
    if isinstance(provider, type):
        return lambda _c, cls=provider: cls()
    return lambda _c, value=provider: value


def build_container(overrides: Dict[ServiceType, Any] | None = None) -> Container:
    """Create a new container with optional dependency overrides."""
    container = Container()
    _register_defaults(container)

    if overrides:
        for service, provider in overrides.items():
            factory = _wrap_override(provider)
            if isinstance(provider, (type,)) or inspect.isfunction(provider) or inspect.ismethod(provider):
                container.register(service, factory=factory)
            else:
                container.register(service, instance=factory(container))

    return container


@lru_cache(maxsize=1)
def get_container() -> Container:
    """Return a cached container instance for application use."""
    container = build_container()
    atexit.register(container.shutdown)
    return container


__all__ = ["Container", "build_container", "get_container"]
