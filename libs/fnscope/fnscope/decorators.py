"""
Decorators for the fnscope SDK

Trigger decorators attach metadata to a handler, and ``serverless`` (applied
last) registers it. ``instance_value`` and ``lazy_value`` register values
that live in the instance scope instead of the invocation scope.
"""

from typing import Any, Callable, Dict, List, Optional, TypeVar

from .types import (
    EventTriggerSpec,
    FunctionMetadata,
    HttpTriggerSpec,
    InstanceValueDefinition,
    TriggerType,
)

F = TypeVar("F", bound=Callable[..., Any])

# Global function registry
_registry: Dict[str, FunctionMetadata] = {}

# Global instance value registry
_values: Dict[str, InstanceValueDefinition] = {}


class FunctionRegistry:
    """Registry of all decorated functions"""

    @staticmethod
    def get_all() -> Dict[str, FunctionMetadata]:
        """Get all registered functions"""
        return _registry.copy()

    @staticmethod
    def get(name: str) -> Optional[FunctionMetadata]:
        """Get function by name"""
        return _registry.get(name)

    @staticmethod
    def register(metadata: FunctionMetadata) -> None:
        """Register a function"""
        _registry[metadata.name] = metadata

    @staticmethod
    def clear() -> None:
        """Clear registry (for testing)"""
        _registry.clear()

    @staticmethod
    def list_names() -> List[str]:
        """List all function names"""
        return list(_registry.keys())


class InstanceValueRegistry:
    """Registry of instance-scoped value definitions"""

    @staticmethod
    def get_all() -> Dict[str, InstanceValueDefinition]:
        return _values.copy()

    @staticmethod
    def get(name: str) -> Optional[InstanceValueDefinition]:
        return _values.get(name)

    @staticmethod
    def register(definition: InstanceValueDefinition) -> None:
        _values[definition.name] = definition

    @staticmethod
    def clear() -> None:
        """Clear registry (for testing)"""
        _values.clear()

    @staticmethod
    def list_names() -> List[str]:
        return list(_values.keys())


def serverless(
    _func: Optional[F] = None,
    *,
    concurrency: int = 80,
) -> Callable[[F], F]:
    """
    Mark a function as serverless and register it.

    This is the base decorator that must be applied to all functions, on top
    of exactly one trigger decorator.

    Args:
        concurrency: Maximum number of invocations that may run at the same
            time on one instance. Invocations beyond that wait their turn.

    Example:
        @serverless(concurrency=10)
        @http_trigger(path="/hello", methods=["GET"])
        async def hello(request, context):
            return Response.text("Hello!")
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    def decorator(func: F) -> F:
        if not hasattr(func, "_fnscope_metadata"):
            func._fnscope_metadata = {}  # type: ignore

        func._fnscope_metadata["concurrency"] = concurrency  # type: ignore
        func._fnscope_metadata["module"] = func.__module__  # type: ignore
        func._fnscope_metadata["name"] = func.__name__  # type: ignore

        _finalize_registration(func)
        return func

    if _func is not None:
        return decorator(_func)
    return decorator


def http_trigger(
    _func: Optional[F] = None,
    *,
    path: str = "/",
    methods: Optional[List[str]] = None,
) -> Callable[[F], F]:
    """
    Configure HTTP trigger for a function.

    Args:
        path: URL path for the function (e.g., "/scope-demo")
        methods: Allowed HTTP methods (default: ["GET", "POST"])
    """

    def decorator(func: F) -> F:
        if not hasattr(func, "_fnscope_metadata"):
            func._fnscope_metadata = {}  # type: ignore

        func._fnscope_metadata["trigger_type"] = TriggerType.HTTP  # type: ignore
        func._fnscope_metadata["http_trigger"] = HttpTriggerSpec(  # type: ignore
            path=path,
            methods=methods or ["GET", "POST"],
        )

        # Don't register here - let serverless decorator handle registration
        return func

    if _func is not None:
        return decorator(_func)
    return decorator


def event_trigger(
    _func: Optional[F] = None,
    *,
    event_type: str,
    resource: Optional[str] = None,
    retry: bool = True,
    path: Optional[str] = None,
) -> Callable[[F], F]:
    """
    Configure event trigger for a function.

    The function receives an Event and signals success or failure either by
    returning / raising, or through a ``callback`` parameter.

    Args:
        event_type: Event type the function subscribes to
        resource: Resource the events originate from (topic, bucket, ...)
        retry: Redeliver the event when the function signals failure
        path: Push endpoint path (default: /_events/<function name>)

    Example:
        @serverless
        @event_trigger(event_type="google.pubsub.topic.publish", retry=True)
        def on_message(event, callback):
            callback()
    """

    def decorator(func: F) -> F:
        if not hasattr(func, "_fnscope_metadata"):
            func._fnscope_metadata = {}  # type: ignore

        func._fnscope_metadata["trigger_type"] = TriggerType.EVENT  # type: ignore
        func._fnscope_metadata["event_trigger"] = EventTriggerSpec(  # type: ignore
            event_type=event_type,
            resource=resource,
            retry=retry,
            path=path,
        )
        return func

    if _func is not None:
        return decorator(_func)
    return decorator


def instance_value(name: Optional[str] = None) -> Callable[[F], F]:
    """
    Register an initializer computed once per instance, at cold start.

    Example:
        @instance_value("instance_var")
        def compute_instance_var():
            return heavy_computation()
    """
    return _value_decorator(name, lazy=False)


def lazy_value(name: Optional[str] = None) -> Callable[[F], F]:
    """
    Register an initializer computed once per instance, on first use.
    """
    return _value_decorator(name, lazy=True)


def _value_decorator(name: Optional[str], lazy: bool) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        InstanceValueRegistry.register(
            InstanceValueDefinition(
                name=name or func.__name__,
                initializer=func,
                lazy=lazy,
            )
        )
        return func

    return decorator


def _finalize_registration(func: Callable) -> None:
    """Finalize function registration after all decorators are applied"""
    meta = getattr(func, "_fnscope_metadata", {})
    trigger_type = meta.get("trigger_type", TriggerType.HTTP)

    http_spec = meta.get("http_trigger")
    if trigger_type == TriggerType.HTTP and http_spec is None:
        http_spec = HttpTriggerSpec(path=f"/{func.__name__}")

    metadata = FunctionMetadata(
        name=meta.get("name", func.__name__),
        handler=func,
        module=meta.get("module", func.__module__),
        trigger_type=trigger_type,
        http_trigger=http_spec,
        event_trigger=meta.get("event_trigger"),
        concurrency=meta.get("concurrency", 80),
    )

    FunctionRegistry.register(metadata)
