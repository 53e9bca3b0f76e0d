"""
fnscope - serverless functions with explicit instance and invocation scopes

Usage:
    from fnscope import serverless, http_trigger, instance_value, Response

    @instance_value("greeting")
    def build_greeting():
        # Runs once per instance, at cold start
        return "Hello"

    @serverless(concurrency=10)
    @http_trigger(path="/hello", methods=["GET"])
    async def hello(request, context):
        # Runs on every call
        name = request.query_params.get("name", "World")
        return Response.text(f"{context.instance.get('greeting')}, {name}!")
"""

from .decorators import (
    serverless,
    http_trigger,
    event_trigger,
    instance_value,
    lazy_value,
    FunctionRegistry,
    InstanceValueRegistry,
)
from .retry import (
    Outcome,
    RetryRequested,
    complete_callback,
    raise_for_outcome,
    retry_decision,
)
from .runtime import create_app
from .scope import InstanceScope, get_instance_scope
from .types import Context, Event, InvalidEventError, Request, Response

__version__ = "0.1.0"
__all__ = [
    "serverless",
    "http_trigger",
    "event_trigger",
    "instance_value",
    "lazy_value",
    "create_app",
    "Context",
    "Event",
    "InvalidEventError",
    "Request",
    "Response",
    "FunctionRegistry",
    "InstanceValueRegistry",
    "InstanceScope",
    "get_instance_scope",
    "Outcome",
    "RetryRequested",
    "retry_decision",
    "raise_for_outcome",
    "complete_callback",
]
