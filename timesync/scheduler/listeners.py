"""Listener protocol and registry.

Listeners are resolved once at startup, either registered programmatically or
loaded by dotted path from configuration. Any listener that cannot be resolved
or whose config cannot be scheduled is a fatal ConfigurationError.
"""
import importlib
from typing import Any, Awaitable, Callable, Iterator, Mapping, Protocol

from loguru import logger

from .schedule import span_to_human, validate_sync_config
from .types import ConfigurationError, SyncConfig, SyncContext

logger = logger.bind(module="scheduler.listeners")


class Listener(Protocol):
    """Protocol for sync listeners."""

    def get_config(self) -> SyncConfig:
        """Return the listener's schedule."""
        ...

    def on_sync(self, context: SyncContext) -> Awaitable[None] | None:
        """Perform the sync; raise on failure. May be a coroutine function."""
        ...


SyncCallback = Callable[[SyncContext], Awaitable[None] | None]


class CallbackListener:
    """Adapts a plain callable into a Listener."""

    def __init__(self, config: SyncConfig, callback: SyncCallback):
        self.config = config
        self.callback = callback

    def get_config(self) -> SyncConfig:
        return self.config

    def on_sync(self, context: SyncContext) -> Awaitable[None] | None:
        return self.callback(context)


def _resolve_class(path: str) -> Any:
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ConfigurationError(f"Listener {path} must be a dotted path to a class")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Listener {path}: cannot import module {module_name}") from e

    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ConfigurationError(f"Listener {path}: {module_name} has no attribute {attr}") from e


class ListenerRegistry:
    """Static mapping from listener name to listener instance."""

    def __init__(self, listeners: Mapping[str, Listener] | None = None):
        self._listeners: dict[str, Listener] = {}
        self._configs: dict[str, SyncConfig] = {}
        for name, listener in (listeners or {}).items():
            self.register(name, listener)

    @classmethod
    def from_names(cls, names: list[str]) -> "ListenerRegistry":
        """Instantiate each listener class by dotted path.

        Each class must be importable and have an empty constructor.
        """
        registry = cls()
        for name in names:
            listener_cls = _resolve_class(name)
            try:
                listener = listener_cls()
            except Exception as e:
                raise ConfigurationError(
                    f"Listener {name} must be a public class with an empty constructor"
                ) from e
            registry.register(name, listener)
        return registry

    def register(self, name: str, listener: Listener) -> None:
        """Register a listener after validating its config."""
        if not name:
            raise ConfigurationError("Listener name must not be empty")
        if name in self._listeners:
            raise ConfigurationError(f"Listener {name} is registered twice")
        if not callable(getattr(listener, "get_config", None)) or not callable(getattr(listener, "on_sync", None)):
            raise ConfigurationError(f"Listener {name} must implement get_config() and on_sync()")

        config = listener.get_config()
        validate_sync_config(name, config)

        self._listeners[name] = listener
        self._configs[name] = config
        logger.info(f"Registered listener {name}: {span_to_human(config.time_span)}, range {config.range_ms}ms")

    def get(self, name: str) -> Listener | None:
        return self._listeners.get(name)

    def config_for(self, name: str) -> SyncConfig:
        """Config captured at registration; listeners are immutable once loaded."""
        return self._configs[name]

    def names(self) -> list[str]:
        return list(self._listeners)

    def items(self) -> list[tuple[str, Listener]]:
        return list(self._listeners.items())

    def __contains__(self, name: object) -> bool:
        return name in self._listeners

    def __iter__(self) -> Iterator[str]:
        return iter(self._listeners)

    def __len__(self) -> int:
        return len(self._listeners)
