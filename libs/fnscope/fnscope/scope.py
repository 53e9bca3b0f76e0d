"""
Instance scope for fnscope functions

An InstanceScope is the state of one execution environment. It is created
once per process, started at cold start and shared by every invocation the
environment serves, possibly concurrently. Handlers reach it through
``context.instance``.
"""

import inspect
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .agent import new_client
from .decorators import InstanceValueRegistry
from .types import InstanceValueDefinition

logger = logging.getLogger(__name__)

_MISSING = object()


class InstanceScope:
    """
    Values and resources whose lifetime is the execution environment.

    Eager values (``instance_value``) are computed by ``start()``. Lazy values
    (``lazy_value``) and resources are computed on first access. First access
    is serialized with a lock, so an initializer never runs twice per scope.
    """

    def __init__(
        self,
        definitions: Optional[Dict[str, InstanceValueDefinition]] = None,
        client_factory: Callable[[], Any] = new_client,
    ):
        self.instance_id = str(uuid.uuid4())[:8]
        self.client_factory = client_factory
        self.started_at: Optional[datetime] = None
        self._definitions = definitions
        self._values: Dict[str, Any] = {}
        self._resources: Dict[str, Any] = {}
        self._lock = threading.RLock()

    @property
    def definitions(self) -> Dict[str, InstanceValueDefinition]:
        # Snapshot the registry on first use so late registrations are seen
        if self._definitions is None:
            self._definitions = InstanceValueRegistry.get_all()
        return self._definitions

    @property
    def started(self) -> bool:
        return self.started_at is not None

    def start(self) -> None:
        """Run every eager initializer. Calling it again does nothing."""
        with self._lock:
            if self.started:
                return
            for definition in self.definitions.values():
                # Values kept from an earlier start that failed part way
                if definition.lazy or definition.name in self._values:
                    continue
                self._values[definition.name] = definition.initializer()
            self.started_at = datetime.now(timezone.utc)
        logger.info(
            f"Instance {self.instance_id} started with "
            f"{len(self._values)} instance value(s)"
        )

    def get(self, name: str) -> Any:
        """Return an instance value, computing it first if it is lazy"""
        value = self._values.get(name, _MISSING)
        if value is not _MISSING:
            return value

        definition = self.definitions.get(name)
        if definition is None:
            raise KeyError(f"Unknown instance value: {name}")

        with self._lock:
            if not definition.lazy and not self.started:
                self.start()
            value = self._values.get(name, _MISSING)
            if value is _MISSING:
                logger.debug(f"Initializing lazy value {name} on instance {self.instance_id}")
                value = definition.initializer()
                self._values[name] = value
        return value

    def is_initialized(self, name: str) -> bool:
        return name in self._values

    def resource(self, name: str, factory: Callable[[], Any]) -> Any:
        """
        Return the pooled resource stored under ``name``.

        The first call creates it with ``factory``. Later calls, from any
        invocation on this instance, get the same object back.
        """
        resource = self._resources.get(name, _MISSING)
        if resource is not _MISSING:
            return resource

        with self._lock:
            resource = self._resources.get(name, _MISSING)
            if resource is _MISSING:
                logger.info(f"Creating resource {name} on instance {self.instance_id}")
                resource = factory()
                self._resources[name] = resource
        return resource

    def has_resource(self, name: str) -> bool:
        return name in self._resources

    async def aclose(self) -> None:
        """Close pooled resources when the environment shuts down"""
        with self._lock:
            resources = list(self._resources.items())
            self._resources.clear()

        for name, resource in resources:
            close = getattr(resource, "aclose", None) or getattr(resource, "close", None)
            if close is None:
                continue
            result = close()
            if inspect.isawaitable(result):
                await result
            logger.info(f"Closed resource {name} on instance {self.instance_id}")


# Process-wide scope, one per execution environment
_instance_scope: Optional[InstanceScope] = None
_instance_lock = threading.Lock()


def get_instance_scope() -> InstanceScope:
    """Get the scope of the current process, creating it on first use"""
    global _instance_scope

    if _instance_scope is None:
        with _instance_lock:
            if _instance_scope is None:
                _instance_scope = InstanceScope()
    return _instance_scope


def reset_instance_scope() -> None:
    """Forget the current scope, as if the environment was recycled (for testing)"""
    global _instance_scope

    with _instance_lock:
        _instance_scope = None
