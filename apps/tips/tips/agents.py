"""
Connection reuse tips

Both functions fetch the same URL. The ephemeral one opens a new client,
and so new connections, on every call. The cached one keeps a single client
in the instance scope and reuses its connections across calls.
"""

import logging
import os

import httpx

from fnscope import Context, Request, Response, http_trigger, serverless
from fnscope.agent import fetch_text

logger = logging.getLogger(__name__)

AGENT_URL = os.getenv("TIPS_AGENT_URL", "http://example.com/")
HTTP_AGENT = "http_agent"


@serverless
@http_trigger(path="/ephemeral-agent", methods=["GET"])
async def ephemeral_agent(request: Request, context: Context) -> Response:
    """
    Fetch AGENT_URL with a client created for this call only.

    Access at: /ephemeral-agent
    """
    client = context.instance.client_factory()
    try:
        data = await fetch_text(client, AGENT_URL)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Request to {AGENT_URL} failed: {e}")
        return Response.text(f"Error: {e}", status_code=500)
    finally:
        await client.aclose()

    return Response.text(f"Data: {data}")


@serverless
@http_trigger(path="/cached-agent", methods=["GET"])
async def cached_agent(request: Request, context: Context) -> Response:
    """
    Fetch AGENT_URL with the instance's shared client.

    Access at: /cached-agent
    """
    client = context.instance.resource(HTTP_AGENT, context.instance.client_factory)
    try:
        data = await fetch_text(client, AGENT_URL)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Request to {AGENT_URL} failed: {e}")
        return Response.text(f"Error: {e}", status_code=500)

    return Response.text(f"Data: {data}")
