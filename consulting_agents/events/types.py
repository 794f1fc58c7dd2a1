# consulting_agents/events/types.py
from __future__ import annotations
from enum import Enum

# The one durable queue every agent publishes to and consumes from
QUEUE_NAME = "agent_communication"

# Version stamped on every data product this codebase produces
SCHEMA_VERSION = "1.0.0"


class EventType(str, Enum):
    CLIENT_EMAIL_RECEIVED = "client_email_received"
    CLIENT_EMAIL_RESPONSE = "client_email_response"
    NEW_PROJECT_REQUEST = "new_project_request"
    PROJECT_MANAGEMENT_TASK_CREATED = "project_management_task_created"
    DEVELOPMENT_ISSUE_CREATED = "development_issue_created"
    TESTING_RESULT_PASSED = "testing_result_passed"
    TESTING_RESULT_FAILED = "testing_result_failed"
    SUPPORT_TICKET_CREATED = "support_ticket_created"
    INTERNAL_COMM_MESSAGE = "internal_comm_message"
    INTERNAL_COMM_RESPONSE = "internal_comm_response"
    DOCUMENTATION_UPDATE = "documentation_update"
    SYSTEM_MONITORING_ALERT = "system_monitoring_alert"


class ProductName(str, Enum):
    CLIENT_COMMUNICATION = "client-communication"
    PROJECT_MANAGEMENT = "project-management"
    DEVELOPMENT_TASK = "development-task"
    TESTING_RESULT = "testing-result"
    DEPLOYMENT_INFO = "deployment-info"
    INTERNAL_COMMUNICATION = "internal-communication"
    DOCUMENTATION = "documentation"
    SUPPORT_TICKET = "support-ticket"


def event_name(event_type: EventType | str) -> str:
    """
    Normalize an event type to its wire string.

        event_name(EventType.TESTING_RESULT_PASSED) -> "testing_result_passed"
        event_name("some_future_event") -> "some_future_event"
    """
    return event_type.value if isinstance(event_type, EventType) else str(event_type)
