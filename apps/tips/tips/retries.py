"""
Retry tips for event-triggered functions

Event functions deployed with retries get their event redelivered whenever
they signal failure. These functions show how to bound that and how to turn
it on and off from the function itself.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable

from fnscope import (
    Context,
    Event,
    RetryRequested,
    complete_callback,
    event_trigger,
    raise_for_outcome,
    retry_decision,
    serverless,
)
from fnscope.config import parse_bool

logger = logging.getLogger(__name__)

EVENT_MAX_AGE_MS = int(os.getenv("TIPS_EVENT_MAX_AGE_MS", "10000"))
TRY_AGAIN = parse_bool("TIPS_TRY_AGAIN", False)

EVENT_TYPE = "google.pubsub.topic.publish"


def now() -> datetime:
    """Current time, used to age events"""
    return datetime.now(timezone.utc)


def process_event(event: Event) -> None:
    """The work the function exists to do"""
    logger.info(f"Handled event {event.id} of type {event.type}")


@serverless
@event_trigger(event_type=EVENT_TYPE, resource="tips", retry=True)
def avoid_infinite_retries(event: Event, context: Context) -> None:
    """
    Only process events that are recent enough.

    An event that keeps failing would otherwise be retried forever. Events
    older than EVENT_MAX_AGE_MS are acknowledged without being processed.
    """
    event_age = event.age_ms(now())

    # Ignore events that are too old
    if event_age > EVENT_MAX_AGE_MS:
        logger.info(f"Dropping event {event.id} with age {event_age:.0f} ms.")
        return

    logger.info(f"Processing event {event.id} with age {event_age:.0f} ms.")
    process_event(event)


@serverless
@event_trigger(event_type=EVENT_TYPE, resource="tips", retry=True)
def retry_promise(event: Event) -> None:
    """
    Toggle retries by raising.

    Raising RetryRequested fails the invocation and the event is
    redelivered. Returning acknowledges it.
    """
    outcome = retry_decision(TRY_AGAIN, RetryRequested("Retrying..."))
    if outcome.succeeded:
        logger.info(f"Not retrying event {event.id}")
    raise_for_outcome(outcome)


@serverless
@event_trigger(event_type=EVENT_TYPE, resource="tips", retry=True)
def retry_callback(event: Event, callback: Callable[..., Any]) -> None:
    """
    Toggle retries through the completion callback.

    callback(err) fails the invocation and the event is redelivered.
    callback() acknowledges it.
    """
    err = RetryRequested("Error!")
    outcome = retry_decision(TRY_AGAIN, err)

    if outcome.succeeded:
        logger.error(f"Not retrying: {err}")
    else:
        logger.error(f"Retrying: {err}")
    complete_callback(outcome, callback)
