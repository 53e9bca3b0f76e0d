"""
Runtime for fnscope functions

Creates a FastAPI application that routes HTTP requests and pushed events
to decorated functions. The application lifespan is the lifetime of the
execution environment: the instance scope starts with it and its pooled
resources are closed when it ends.
"""

import asyncio
import inspect
import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .config import Settings
from .decorators import FunctionRegistry
from .retry import invoke_event_function
from .scope import InstanceScope, get_instance_scope
from .types import (
    Context,
    Event,
    FunctionMetadata,
    InvalidEventError,
    Request,
    Response,
    TriggerType,
)

logger = logging.getLogger(__name__)


def create_app(
    title: str = "fnscope Functions",
    version: str = "1.0.0",
    function_filter: Optional[str] = None,
    scope: Optional[InstanceScope] = None,
):
    """
    Create a FastAPI application for running functions.

    Args:
        title: API title
        version: API version
        function_filter: If set, only run this specific function (for single-function instances)
        scope: Instance scope to serve with (default: the process-wide scope)

    Returns:
        FastAPI application instance
    """
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware

    instance = scope or get_instance_scope()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Environment lifespan: cold start, then shutdown"""
        logger.info(f"Cold start of instance {instance.instance_id}")
        instance.start()
        # Semaphores bind to the loop serving this lifespan
        app.state.slots = {}
        yield
        logger.info(f"Shutting down instance {instance.instance_id}")
        await instance.aclose()

    app = FastAPI(title=title, version=version, lifespan=lifespan)
    app.state.instance = instance
    app.state.slots = {}

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Get target function from environment or parameter
    target_function = function_filter or os.getenv("FNSCOPE_FUNCTION")

    # Health endpoints
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "instance_id": instance.instance_id,
            "timestamp": datetime.utcnow().isoformat(),
        }

    @app.get("/ready")
    async def ready():
        return {"ready": instance.started}

    @app.get("/live")
    async def live():
        return {"alive": True}

    # Function info endpoint
    @app.get("/_functions")
    async def list_functions():
        functions = FunctionRegistry.get_all()
        return {
            "functions": [
                {
                    "name": f.name,
                    "trigger_type": f.trigger_type.value,
                    "path": _function_path(f),
                    "methods": f.http_trigger.methods if f.http_trigger else ["POST"],
                }
                for f in functions.values()
                if target_function is None or f.name == target_function
            ]
        }

    functions = FunctionRegistry.get_all()

    for func_meta in functions.values():
        if target_function and func_meta.name != target_function:
            continue

        if func_meta.trigger_type == TriggerType.HTTP and func_meta.http_trigger:
            _register_http_function(app, func_meta, instance)
        elif func_meta.trigger_type == TriggerType.EVENT and func_meta.event_trigger:
            _register_event_function(app, func_meta, instance)

    return app


def _function_path(func_meta: FunctionMetadata) -> str:
    if func_meta.http_trigger:
        return func_meta.http_trigger.path
    if func_meta.event_trigger and func_meta.event_trigger.path:
        return func_meta.event_trigger.path
    return f"/_events/{func_meta.name}"


def _invocation_slots(app: Any, func_meta: FunctionMetadata) -> asyncio.Semaphore:
    """Concurrency bound of a function, created inside the serving loop"""
    slots = app.state.slots.get(func_meta.name)
    if slots is None:
        slots = asyncio.Semaphore(func_meta.concurrency)
        app.state.slots[func_meta.name] = slots
    return slots


def _build_context(func_meta: FunctionMetadata, instance: InstanceScope) -> Context:
    return Context(
        function_name=func_meta.name,
        invocation_id=str(uuid.uuid4())[:8],
        timestamp=datetime.utcnow().isoformat(),
        instance=instance,
        environment=dict(os.environ),
    )


def _register_http_function(app: Any, func_meta: FunctionMetadata, instance: InstanceScope) -> None:
    """Register an HTTP-triggered function with FastAPI"""
    from fastapi import Request as FastAPIRequest
    from fastapi.responses import JSONResponse, PlainTextResponse

    http_spec = func_meta.http_trigger
    if not http_spec:
        return

    path = http_spec.path
    methods = http_spec.methods

    async def handler(request: FastAPIRequest):
        """Generic handler that invokes the function"""
        # Build Request object
        body = None
        if request.method in ["POST", "PUT", "PATCH"]:
            try:
                body = await request.json()
            except ValueError:
                body = await request.body()

        req = Request(
            method=request.method,
            path=str(request.url.path),
            headers=dict(request.headers),
            query_params=dict(request.query_params),
            body=body,
            path_params=dict(request.path_params),
        )
        ctx = _build_context(func_meta, instance)

        try:
            async with _invocation_slots(request.app, func_meta):
                result = await invoke_http_function(func_meta.handler, req, ctx)
        except Exception as e:
            logger.exception(f"Function {func_meta.name} failed: {e}")
            return JSONResponse(
                content={"error": str(e), "function": func_meta.name},
                status_code=500,
            )

        # Handle different return types
        if isinstance(result, Response):
            if isinstance(result.body, str):
                return PlainTextResponse(
                    content=result.body,
                    status_code=result.status_code,
                    headers=result.headers,
                )
            return JSONResponse(
                content=result.body,
                status_code=result.status_code,
                headers=result.headers,
            )
        elif isinstance(result, dict):
            return JSONResponse(content=result)
        elif result is None:
            return JSONResponse(content={"status": "ok"})
        else:
            return PlainTextResponse(content=str(result))

    # Create a unique handler for this function
    handler.__name__ = f"handle_{func_meta.name}"

    for method in methods:
        app.add_api_route(
            path,
            handler,
            methods=[method],
            name=f"{func_meta.name}_{method.lower()}",
            tags=[func_meta.name],
        )


def _register_event_function(app: Any, func_meta: FunctionMetadata, instance: InstanceScope) -> None:
    """Register a push endpoint for an event-triggered function"""
    from fastapi import Request as FastAPIRequest
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel, ValidationError

    class EventPayload(BaseModel):
        id: Optional[str] = None
        timestamp: Optional[str] = None
        time: Optional[str] = None
        type: Optional[str] = None
        source: Optional[str] = None
        data: Any = None

    event_spec = func_meta.event_trigger
    if not event_spec:
        return

    retry_enabled = event_spec.retry

    async def handler(request: FastAPIRequest) -> JSONResponse:
        """Deliver one pushed event to the function"""
        try:
            payload = EventPayload(**(await request.json()))
            event = Event.from_dict(
                {
                    "id": payload.id or str(uuid.uuid4()),
                    "timestamp": payload.timestamp or payload.time,
                    "type": payload.type or event_spec.event_type,
                    "source": payload.source or event_spec.resource or "",
                    "data": payload.data,
                }
            )
        except (ValueError, TypeError, ValidationError, InvalidEventError) as e:
            logger.warning(f"Rejected event for {func_meta.name}: {e}")
            return JSONResponse(
                content={"error": str(e), "function": func_meta.name},
                status_code=400,
            )

        ctx = _build_context(func_meta, instance)
        async with _invocation_slots(request.app, func_meta):
            outcome = await invoke_event_function(func_meta.handler, event, ctx)

        if outcome.succeeded:
            return JSONResponse(content={"status": "ok", "event_id": event.id})

        if retry_enabled:
            # Non-2xx makes the pushing broker redeliver the event
            logger.info(f"Event {event.id} failed in {func_meta.name}, requesting redelivery")
            return JSONResponse(
                content={"status": "retry", "event_id": event.id, "error": str(outcome.error)},
                status_code=500,
            )

        logger.info(f"Event {event.id} failed in {func_meta.name}, retries disabled")
        return JSONResponse(
            content={"status": "failed", "event_id": event.id, "error": str(outcome.error)}
        )

    handler.__name__ = f"handle_{func_meta.name}"

    app.add_api_route(
        _function_path(func_meta),
        handler,
        methods=["POST"],
        name=f"{func_meta.name}_event",
        tags=[func_meta.name],
    )


async def invoke_http_function(func: Callable, request: Request, context: Context) -> Any:
    """Invoke a function with proper argument handling"""
    sig = inspect.signature(func)
    params = list(sig.parameters.keys())

    # Determine what arguments to pass based on function signature
    kwargs: Dict[str, Any] = {}

    for param in params:
        if param in ("request", "req"):
            kwargs[param] = request
        elif param in ("context", "ctx"):
            kwargs[param] = context
        elif param == "body":
            kwargs[param] = request.body

    # Call the function
    if not params:
        result = func()
    elif len(params) == 1 and params[0] not in kwargs:
        result = func(request)
    else:
        result = func(**kwargs)

    # Always await if result is a coroutine
    if asyncio.iscoroutine(result):
        return await result
    return result


def run_function(module_path: str, function_name: Optional[str] = None):
    """
    Run a function module as a standalone service.

    This is the entrypoint of a function instance.

    Args:
        module_path: Python module path to import (e.g., "tips")
        function_name: Specific function to run (optional)
    """
    import importlib
    import sys

    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    # Add current directory to path
    sys.path.insert(0, os.getcwd())

    # Import the module to register functions
    try:
        importlib.import_module(module_path)
        logger.info(f"Loaded module: {module_path}")
    except ImportError as e:
        logger.error(f"Failed to import module {module_path}: {e}")
        raise

    target = function_name or settings.function

    app = create_app(
        title=f"Function: {target or 'all'}",
        function_filter=target,
    )

    logger.info(f"Starting function server on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python -m fnscope.runtime <module_path> [function_name]")
        sys.exit(1)

    module_path = sys.argv[1]
    function_name = sys.argv[2] if len(sys.argv) > 2 else None

    run_function(module_path, function_name)
