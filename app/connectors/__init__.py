"""
app/connectors package marker.
"""

from app.connectors.base import BaseHTTPClient, ConnectorRequestError
from app.connectors.linear_client import LinearClient, LinearIssue, get_linear_client
from app.connectors.nango_client import (
    NangoClient,
    NangoConfigurationError,
    ProxyResponse,
    get_nango_client,
)
from app.connectors.workos_client import WorkOSClient, get_workos_client

__all__ = [
    "BaseHTTPClient",
    "ConnectorRequestError",
    "LinearClient",
    "LinearIssue",
    "NangoClient",
    "NangoConfigurationError",
    "ProxyResponse",
    "WorkOSClient",
    "get_linear_client",
    "get_nango_client",
    "get_workos_client",
]
