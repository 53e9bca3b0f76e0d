"""Tests for the fnscope FastAPI runtime."""

import asyncio
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from fnscope.decorators import event_trigger, http_trigger, instance_value, serverless
from fnscope.retry import RetryRequested
from fnscope.runtime import create_app, invoke_http_function
from fnscope.scope import InstanceScope
from fnscope.types import Context, Request, Response

rt_seen_events = []


@instance_value("rt_started_at")
def rt_started_at():
    return datetime.now(timezone.utc).isoformat()


@serverless
@http_trigger(path="/rt/text", methods=["GET"])
async def rt_text(request, context):
    name = request.query_params.get("name", "World")
    return Response.text(f"Hello, {name}! ({context.function_name})")


@serverless
@http_trigger(path="/rt/json", methods=["POST"])
def rt_json(request):
    return {"echo": request.json}


@serverless
@http_trigger(path="/rt/none", methods=["GET"])
async def rt_none():
    return None


@serverless
@http_trigger(path="/rt/boom", methods=["GET"])
async def rt_boom(request):
    raise RuntimeError("kaboom")


@serverless
@http_trigger(path="/rt/instance", methods=["GET"])
async def rt_instance(context):
    return {"instance_id": context.instance.instance_id, "started_at": context.instance.get("rt_started_at")}


@serverless(concurrency=1)
@http_trigger(path="/rt/limited", methods=["GET"])
async def rt_limited():
    return {"limited": True}


@serverless
@event_trigger(event_type="test.event")
def rt_event_ok(event, context):
    rt_seen_events.append(event.id)


@serverless
@event_trigger(event_type="test.event", retry=True)
def rt_event_retry(event):
    raise RetryRequested("Retrying...")


@serverless
@event_trigger(event_type="test.event", retry=False, path="/rt/events/no-retry")
def rt_event_no_retry(event, callback):
    callback(RetryRequested("Error!"))


@pytest.fixture
def scope():
    return InstanceScope()


@pytest.fixture
def client(scope):
    with TestClient(create_app(scope=scope)) as test_client:
        yield test_client


def make_event(event_id="evt-1"):
    return {
        "id": event_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": {"message": "hi"},
    }


class TestHealth:
    def test_health(self, client, scope):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["instance_id"] == scope.instance_id

    def test_ready_after_cold_start(self, client):
        assert client.get("/ready").json() == {"ready": True}

    def test_live(self, client):
        assert client.get("/live").json() == {"alive": True}


class TestFunctionListing:
    def test_lists_functions(self, client):
        functions = {f["name"]: f for f in client.get("/_functions").json()["functions"]}
        assert functions["rt_text"]["trigger_type"] == "http"
        assert functions["rt_text"]["path"] == "/rt/text"
        assert functions["rt_event_ok"]["trigger_type"] == "event"
        assert functions["rt_event_ok"]["path"] == "/_events/rt_event_ok"
        assert functions["rt_event_no_retry"]["path"] == "/rt/events/no-retry"

    def test_function_filter(self, scope):
        with TestClient(create_app(function_filter="rt_text", scope=scope)) as client:
            names = [f["name"] for f in client.get("/_functions").json()["functions"]]
            assert names == ["rt_text"]
            assert client.get("/rt/none").status_code == 404


class TestHttpFunctions:
    def test_text_response(self, client):
        response = client.get("/rt/text", params={"name": "fnscope"})
        assert response.status_code == 200
        assert response.text == "Hello, fnscope! (rt_text)"
        assert response.headers["content-type"].startswith("text/plain")

    def test_json_response(self, client):
        response = client.post("/rt/json", json={"a": 1})
        assert response.json() == {"echo": {"a": 1}}

    def test_none_response(self, client):
        assert client.get("/rt/none").json() == {"status": "ok"}

    def test_error_response(self, client):
        response = client.get("/rt/boom")
        assert response.status_code == 500
        assert response.json() == {"error": "kaboom", "function": "rt_boom"}

    def test_method_not_allowed(self, client):
        assert client.post("/rt/text").status_code == 405

    def test_instance_value_shared_across_invocations(self, client, scope):
        first = client.get("/rt/instance").json()
        second = client.get("/rt/instance").json()
        assert first == second
        assert first["instance_id"] == scope.instance_id


class TestEventFunctions:
    def test_success(self, client):
        response = client.post("/_events/rt_event_ok", json=make_event("evt-ok"))
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "event_id": "evt-ok"}
        assert "evt-ok" in rt_seen_events

    def test_cloudevents_time(self, client):
        payload = make_event("evt-ce")
        payload["time"] = payload.pop("timestamp")
        assert client.post("/_events/rt_event_ok", json=payload).status_code == 200

    def test_failure_with_retry_requests_redelivery(self, client):
        response = client.post("/_events/rt_event_retry", json=make_event("evt-retry"))
        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "retry"
        assert body["error"] == "Retrying..."

    def test_failure_without_retry_is_acknowledged(self, client):
        response = client.post("/rt/events/no-retry", json=make_event("evt-no-retry"))
        assert response.status_code == 200
        assert response.json()["status"] == "failed"

    def test_missing_timestamp(self, client):
        response = client.post("/_events/rt_event_ok", json={"id": "evt-bad"})
        assert response.status_code == 400

    def test_invalid_timestamp(self, client):
        payload = {"id": "evt-bad", "timestamp": "not a time"}
        assert client.post("/_events/rt_event_ok", json=payload).status_code == 400

    def test_not_json(self, client):
        response = client.post("/_events/rt_event_ok", content=b"nope")
        assert response.status_code == 400


class FakeResource:
    closed = False

    async def aclose(self):
        self.closed = True


class TestLifespan:
    def test_cold_start_and_shutdown(self, scope):
        app = create_app(scope=scope)
        assert not scope.started

        with TestClient(app):
            assert scope.started
            resource = scope.resource("fake", FakeResource)

        assert resource.closed
        assert not scope.has_resource("fake")


class TestConcurrencySlots:
    def test_no_slots_before_first_invocation(self, client):
        assert client.app.state.slots == {}

    def test_slots_created_per_function(self, client):
        client.get("/rt/limited")
        client.get("/rt/limited")
        slots = client.app.state.slots
        assert list(slots) == ["rt_limited"]
        assert isinstance(slots["rt_limited"], asyncio.Semaphore)

    def test_slots_released_after_invocation(self, client):
        client.get("/rt/limited")
        assert not client.app.state.slots["rt_limited"].locked()

    def test_new_lifespan_gets_new_slots(self, scope):
        app = create_app(scope=scope)
        with TestClient(app) as client:
            client.get("/rt/limited")
            first = app.state.slots["rt_limited"]
        with TestClient(app) as client:
            assert app.state.slots == {}
            client.get("/rt/limited")
            assert app.state.slots["rt_limited"] is not first


class TestInvokeHttpFunction:
    @pytest.mark.asyncio
    async def test_passes_body(self):
        def handler(body):
            return body

        request = Request("POST", "/", {}, {}, {"a": 1})
        context = Context("fn", "id", "now", InstanceScope(definitions={}))
        assert await invoke_http_function(handler, request, context) == {"a": 1}
