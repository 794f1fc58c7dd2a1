from .base import Agent
from .client_communication import ClientCommunicationAgent
from .client_portal import ClientPortal
from .deployment import DeploymentAgent
from .development import DevelopmentAgent
from .documentation import DocumentationAgent
from .internal_communication import InternalCommunicationAgent
from .project_management import ProjectManagementAgent
from .self_improvement import SelfImprovementAgent
from .support import SupportAgent
from .testing import SubprocessTestRunner, TestingAgent

# Agents that consume the shared queue, by process name
CONSUMING_AGENTS = {
    cls.name: cls
    for cls in (
        ClientCommunicationAgent,
        ProjectManagementAgent,
        DevelopmentAgent,
        TestingAgent,
        DeploymentAgent,
        InternalCommunicationAgent,
        DocumentationAgent,
        SupportAgent,
        SelfImprovementAgent,
    )
}

# Agents that expose an HTTP surface
HTTP_AGENTS = (ClientPortal.name, ClientCommunicationAgent.name)

__all__ = [
    "Agent",
    "ClientCommunicationAgent",
    "ClientPortal",
    "DeploymentAgent",
    "DevelopmentAgent",
    "DocumentationAgent",
    "InternalCommunicationAgent",
    "ProjectManagementAgent",
    "SelfImprovementAgent",
    "SupportAgent",
    "SubprocessTestRunner",
    "TestingAgent",
    "CONSUMING_AGENTS",
    "HTTP_AGENTS",
]
