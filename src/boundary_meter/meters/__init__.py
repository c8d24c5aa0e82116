"""Boundary meter lifecycle.

This module handles:
- Building API URLs and authentication headers
- Sending verified HTTPS requests and classifying the responses
- Creating, finding, tagging and deleting meters
- Posting lifecycle annotations
"""

from boundary_meter.meters.client import MeterClient, get_meter_client
from boundary_meter.meters.exceptions import (
    FailureKind,
    MalformedResponse,
    MeterAPIError,
    MeterNotFound,
    ProvisioningAborted,
    TransportFailure,
    UnsupportedOperation,
)
from boundary_meter.meters.models import (
    Action,
    Annotation,
    Credentials,
    Endpoint,
    MeterResource,
    OperationResult,
    PlatformMetadata,
)
from boundary_meter.meters.provider import MeterProvider, ProvisioningPolicy, ProvisionReport
from boundary_meter.meters.transport import MeterTransport

__all__ = [
    # Client
    "MeterClient",
    "get_meter_client",
    "MeterTransport",
    # Provider
    "MeterProvider",
    "ProvisioningPolicy",
    "ProvisionReport",
    # Models
    "Action",
    "Annotation",
    "Credentials",
    "Endpoint",
    "MeterResource",
    "OperationResult",
    "PlatformMetadata",
    # Errors
    "FailureKind",
    "MalformedResponse",
    "MeterAPIError",
    "MeterNotFound",
    "ProvisioningAborted",
    "TransportFailure",
    "UnsupportedOperation",
]
