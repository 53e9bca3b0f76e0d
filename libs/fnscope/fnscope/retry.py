"""
Retry signaling for event-triggered functions

An event function reports one of two outcomes to the invoker: success (the
event is acknowledged) or failure (the event is redelivered, if the function
was deployed with retries). Internally that is an Outcome. At the boundary
it is either a raised exception / normal return, or a completion callback
called with or without an error.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .types import Context, Event

logger = logging.getLogger(__name__)


class RetryRequested(Exception):
    """Raised by an event function to have its event redelivered"""


@dataclass(frozen=True)
class Outcome:
    """Result of one event invocation"""
    succeeded: bool
    error: Optional[BaseException] = None

    @classmethod
    def success(cls) -> "Outcome":
        return cls(succeeded=True)

    @classmethod
    def failure(cls, error: Optional[BaseException] = None) -> "Outcome":
        return cls(succeeded=False, error=error or RetryRequested("Retrying..."))

    @property
    def retry_requested(self) -> bool:
        return not self.succeeded


def retry_decision(try_again: bool, error: Optional[BaseException] = None) -> Outcome:
    """Turn a "try again?" flag into an Outcome"""
    if try_again:
        return Outcome.failure(error)
    return Outcome.success()


def raise_for_outcome(outcome: Outcome) -> None:
    """Exception surface: raise on failure, return on success"""
    if not outcome.succeeded:
        raise outcome.error  # type: ignore[misc]


def complete_callback(outcome: Outcome, callback: Callable[..., Any]) -> None:
    """Callback surface: callback(error) on failure, callback() on success"""
    if outcome.succeeded:
        callback()
    else:
        callback(outcome.error)


class Completion:
    """
    Completion callback handed to callback-style event functions.

    Records the first call as the invocation's Outcome. Later calls are
    ignored.
    """

    def __init__(self, function_name: str = ""):
        self.function_name = function_name
        self.outcome: Optional[Outcome] = None

    @property
    def called(self) -> bool:
        return self.outcome is not None

    def __call__(self, error: Optional[BaseException] = None) -> None:
        if self.outcome is not None:
            logger.warning(f"Function {self.function_name} completed more than once, ignoring")
            return
        if error is None:
            self.outcome = Outcome.success()
        else:
            if not isinstance(error, BaseException):
                error = RetryRequested(str(error))
            self.outcome = Outcome.failure(error)


async def invoke_event_function(func: Callable, event: Event, context: Context) -> Outcome:
    """
    Invoke an event function and normalize how it signals completion.

    Returning normally is success, raising is failure. If the function takes
    a ``callback`` parameter, the callback call decides instead; a function
    that returns without calling it is treated as successful.
    """
    params = list(inspect.signature(func).parameters.keys())
    completion = Completion(context.function_name)

    kwargs: Dict[str, Any] = {}
    for param in params:
        if param in ("event", "data"):
            kwargs[param] = event
        elif param in ("context", "ctx"):
            kwargs[param] = context
        elif param in ("callback", "done"):
            kwargs[param] = completion

    try:
        if len(params) == 1 and params[0] not in kwargs:
            result = func(event)
        else:
            result = func(**kwargs)

        if asyncio.iscoroutine(result):
            await result
    except Exception as e:
        if isinstance(e, RetryRequested):
            logger.warning(f"Function {context.function_name} requested retry: {e}")
        else:
            logger.exception(f"Function {context.function_name} failed: {e}")
        return Outcome.failure(e)

    if "callback" in kwargs or "done" in kwargs:
        if not completion.called:
            logger.warning(
                f"Function {context.function_name} returned without calling its callback"
            )
            return Outcome.success()
        return completion.outcome  # type: ignore[return-value]

    return Outcome.success()
