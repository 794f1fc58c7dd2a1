import pytest

from consulting_agents.agents import DocumentationAgent, InternalCommunicationAgent, SupportAgent
from consulting_agents.agents.documentation import page_title
from consulting_agents.agents.internal_communication import compose_reply
from consulting_agents.events.envelope import DataProduct
from consulting_agents.events.types import EventType, ProductName
from fakes import FakeConfluence, FakeSlack, FakeZendesk

pytestmark = pytest.mark.anyio


# ----------------- Support -----------------

async def test_support_ticket_is_resolved_once(store, metrics, publisher, db):
    await db["support_tickets"].insert_one({"_id": "t-1", "client_id": "c-1", "status": "open"})
    agent = SupportAgent(store=store, metrics=metrics, publisher=publisher, zendesk=FakeZendesk())

    event = {"ticketId": "t-1", "clientId": "c-1", "issue": "Login broken"}
    await agent.handle_new_ticket(event)
    await agent.handle_new_ticket(event)

    assert (await store.support.get("t-1"))["status"] == "resolved"
    assert len(agent.zendesk.closed_tickets) == 1
    assert await db["support_resolutions"].count_documents({"ticket_id": "t-1"}) == 1
    assert metrics.names().count("ai_agent.support.tickets_resolved") == 1


async def test_support_resolution_recorded_once_after_partial_failure(store, metrics, publisher, db):
    # First attempt recorded the resolution, then crashed before the ticket status was written
    await db["support_tickets"].insert_one({"_id": "t-2", "status": "open"})
    await store.support.record_resolution("t-2", "earlier", timestamp=1)
    agent = SupportAgent(store=store, metrics=metrics, publisher=publisher, zendesk=FakeZendesk())

    await agent.handle_new_ticket({"ticketId": "t-2", "issue": "Slow page"})

    assert await db["support_resolutions"].count_documents({"ticket_id": "t-2"}) == 1
    assert (await store.support.get_resolution("t-2"))["resolution"] == "earlier"
    assert (await store.support.get("t-2"))["status"] == "resolved"
    assert "ai_agent.support.tickets_resolved" not in metrics.names()


async def test_support_comment_mentions_issue(store, metrics, publisher):
    agent = SupportAgent(store=store, metrics=metrics, publisher=publisher, zendesk=FakeZendesk())
    await agent.handle_new_ticket({"ticketId": "t-3", "issue": "Export fails"})
    [(ticket_id, comment)] = agent.zendesk.closed_tickets
    assert ticket_id == "t-3"
    assert "Export fails" in comment


# ----------------- Documentation -----------------

async def test_documentation_update_creates_then_updates_one_page(store, metrics, publisher, db):
    await db["documents"].insert_one({"_id": "doc-1", "project_id": "p-1", "processed": False})
    agent = DocumentationAgent(store=store, metrics=metrics, publisher=publisher, confluence=FakeConfluence())

    event = {"documentId": "doc-1", "projectId": "p-1", "content": "Architecture <v1>"}
    await agent.handle_documentation_update(event)
    await agent.handle_documentation_update(event)

    pages = agent.confluence.pages
    assert list(pages) == [page_title("p-1")]
    assert pages["Project Documentation: p-1"]["html"] == "<p>Architecture &lt;v1&gt;</p>"
    assert (await store.documents.get("doc-1"))["processed"] is True
    assert "ai_agent.documentation.documents_updated" in metrics.names()


async def test_documentation_ignores_events_it_only_observes(store, metrics, publisher):
    agent = DocumentationAgent(store=store, metrics=metrics, publisher=publisher, confluence=FakeConfluence())
    handlers = agent.handlers()
    await handlers[EventType.CLIENT_EMAIL_RESPONSE]({"anything": 1})
    await handlers[EventType.PROJECT_MANAGEMENT_TASK_CREATED]({"anything": 1})
    assert agent.confluence.pages == {}
    assert metrics.sent == []


# ----------------- Internal communication -----------------

@pytest.mark.parametrize(
    "message, reply",
    [
        ("Please do a code review of PR 12", "Great job on the code review!"),
        ("Can you update the documentation?", "Will update the documentation by EOD."),
        ("Lunch at noon", "Acknowledged."),
    ],
)
def test_compose_reply(message, reply):
    assert compose_reply(message) == reply


async def test_internal_message_replies_on_slack_and_publishes(store, metrics, publisher, db):
    await db["employees"].insert_one({"_id": "employee-001", "name": "Sam Rivera"})
    agent = InternalCommunicationAgent(store=store, metrics=metrics, publisher=publisher, slack=FakeSlack())

    wire = DataProduct.create(
        ProductName.INTERNAL_COMMUNICATION,
        {"employeeId": "employee-001", "message": "code review done", "timestamp": 1},
    ).to_wire()
    await agent.handle_internal_message(wire)

    assert agent.slack.messages == ['Responded to Sam Rivera: "Great job on the code review!"']
    [env] = publisher.of_type(EventType.INTERNAL_COMM_RESPONSE)
    assert env.data["name"] == "internal-communication"
    assert env.data["payload"]["employeeId"] == "employee-001"
    assert env.data["payload"]["message"] == "Great job on the code review!"


async def test_internal_message_from_unknown_employee_is_dropped(store, metrics, publisher):
    agent = InternalCommunicationAgent(store=store, metrics=metrics, publisher=publisher, slack=FakeSlack())
    await agent.handle_internal_message({"employeeId": "employee-999", "message": "hi"})
    assert agent.slack.messages == []
    assert publisher.published == []
