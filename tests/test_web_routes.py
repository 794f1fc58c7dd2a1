import pytest
from httpx import ASGITransport, AsyncClient

from conftest import FakeBroker
from consulting_agents.agents import ClientCommunicationAgent, ClientPortal
from consulting_agents.errors import ConfigurationError
from consulting_agents.events.types import EventType
from consulting_agents.web.app import create_app
from fakes import FakeGoogle, FakeSlack

pytestmark = pytest.mark.anyio


@pytest.fixture
def portal_app(store, metrics, publisher):
    app = create_app("client-portal")
    app.state.portal = ClientPortal(store=store, metrics=metrics, publisher=publisher)
    return app


@pytest.fixture
def inbound_app(store, metrics, publisher):
    app = create_app("client-communication")
    app.state.client_communication = ClientCommunicationAgent(
        store=store, metrics=metrics, publisher=publisher, google=FakeGoogle(), slack=FakeSlack()
    )
    return app


def client_for(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def test_health(portal_app):
    async with client_for(portal_app) as ac:
        res = await ac.get("/healthz")
        assert res.status_code == 200
        assert res.json() == {"ok": True, "agent": "client-portal"}
        assert res.headers["x-request-id"]


async def test_readyz_follows_broker_connection(portal_app):
    broker = FakeBroker()
    portal_app.state.broker = broker
    async with client_for(portal_app) as ac:
        assert (await ac.get("/readyz")).status_code == 503
        await broker.connect()
        res = await ac.get("/readyz")
        assert res.status_code == 200
        assert res.json() == {"ready": True}


async def test_submit_request_publishes_new_project_request(portal_app, publisher):
    async with client_for(portal_app) as ac:
        res = await ac.post(
            "/submit-request",
            json={
                "clientEmail": "founder@startup.test",
                "projectTitle": "MVP",
                "projectDescription": "Build an MVP",
            },
        )
    assert res.status_code == 200
    body = res.json()
    assert body["projectId"].startswith("project-")
    [env] = publisher.of_type(EventType.NEW_PROJECT_REQUEST)
    assert env.data["projectId"] == body["projectId"]


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"clientEmail": "a@b.test", "projectTitle": "x"},
        {"clientEmail": "", "projectTitle": "x", "projectDescription": "y"},
    ],
)
async def test_submit_request_requires_all_fields(portal_app, publisher, payload):
    async with client_for(portal_app) as ac:
        res = await ac.post("/submit-request", json=payload)
    assert res.status_code == 400
    assert res.json() == {"detail": "All fields are required."}
    assert publisher.published == []


async def test_portal_has_no_inbound_webhook(portal_app):
    async with client_for(portal_app) as ac:
        res = await ac.post("/gmail/inbound", json={"from": "a@b.test", "body": "hi"})
    assert res.status_code == 404


async def test_inbound_email_from_known_client(inbound_app, publisher, db):
    await db["clients"].insert_one({"_id": "client-1", "email": "cto@acme.test"})
    async with client_for(inbound_app) as ac:
        res = await ac.post("/gmail/inbound", json={"from": "cto@acme.test", "subject": "Hi", "body": "call me"})
    assert res.status_code == 200
    assert res.json() == {"status": "received", "clientId": "client-1"}
    assert [e.type for e in publisher.published] == ["client_email_received"]


async def test_inbound_email_missing_fields(inbound_app):
    async with client_for(inbound_app) as ac:
        res = await ac.post("/gmail/inbound", json={"subject": "no sender"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Missing from/body"


async def test_inbound_email_unknown_client(inbound_app, publisher):
    async with client_for(inbound_app) as ac:
        res = await ac.post("/gmail/inbound", json={"from": "x@y.test", "body": "hello"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Client not found"
    assert publisher.published == []


def test_only_http_agents_get_an_app():
    with pytest.raises(ConfigurationError):
        create_app("deployment")
