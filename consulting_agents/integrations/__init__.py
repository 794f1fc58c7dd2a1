from .http import VendorClient
from .slack import SlackClient
from .github import GitHubClient
from .atlassian import JiraClient, ConfluenceClient
from .zendesk import ZendeskClient
from .google import GoogleWorkspaceClient
from .datadog_logs import DatadogLogsClient

__all__ = [
    "VendorClient",
    "SlackClient",
    "GitHubClient",
    "JiraClient",
    "ConfluenceClient",
    "ZendeskClient",
    "GoogleWorkspaceClient",
    "DatadogLogsClient",
]
