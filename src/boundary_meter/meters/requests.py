"""URL and header construction for the Boundary meters API.

Building a URL never touches the network: actions that address a single
meter take an already resolved ``meter_id``.
"""

import base64
from urllib.parse import quote, urlencode

from boundary_meter.meters.models import Action, Credentials, Endpoint

REDACTED = "<redacted>"

# Headers whose values must never reach a log line
SENSITIVE_HEADERS = frozenset({"authorization", "proxy-authorization"})


def build_url(
    endpoint: Endpoint,
    action: Action,
    name: str | None = None,
    meter_id: str | None = None,
) -> str:
    """Build the absolute URL for an API action.

    Args:
        endpoint: API hostname and organization.
        action: The action to address.
        name: Meter name, required for ``Action.SEARCH``.
        meter_id: Resolved meter id, required for actions on a single meter.

    Returns:
        Absolute https URL.

    Raises:
        ValueError: If a required argument is missing.
    """
    base = endpoint.base_url

    if action.requires_meter_id:
        if not meter_id:
            raise ValueError(f"meter_id is required to build a {action.value} URL")
        meter_url = f"{base}/meters/{quote(str(meter_id), safe='')}"
        if action == Action.TAGS:
            return f"{meter_url}/tags"
        return meter_url

    if action == Action.CREATE:
        return f"{base}/meters"
    if action == Action.SEARCH:
        if not name:
            raise ValueError("name is required to build a search URL")
        return f"{base}/meters?{urlencode({'name': name})}"
    if action == Action.ANNOTATE:
        return f"{base}/annotations"

    raise ValueError(f"Unknown action: {action}")


def tag_url(endpoint: Endpoint, meter_id: str, tag: str) -> str:
    """URL that applies a single tag to a meter."""
    tags = build_url(endpoint, Action.TAGS, meter_id=meter_id)
    return f"{tags}/{quote(tag, safe='')}"


def auth_encode(api_key: str) -> str:
    """Base64 Basic-Auth token for the API key with an empty password."""
    return base64.b64encode(f"{api_key}:".encode()).decode("ascii").strip()


def generate_headers(credentials: Credentials) -> dict[str, str]:
    """Authentication and content headers sent with every request."""
    return {
        "Authorization": f"Basic {auth_encode(credentials.api_key)}",
        "Content-Type": "application/json",
    }


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Copy of ``headers`` safe for logging."""
    return {
        key: REDACTED if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }
