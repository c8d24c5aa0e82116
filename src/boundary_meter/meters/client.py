"""Boundary meters API client.

Each lifecycle operation issues its HTTP calls through ``MeterTransport``
and reports the outcome as an ``OperationResult``. Errors are logged at the
operation boundary and never raised to the caller.
"""

import json
import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any

from boundary_meter.meters.exceptions import (
    MalformedResponse,
    MeterAPIError,
    MeterNotFound,
    TransportFailure,
)
from boundary_meter.meters.models import (
    Action,
    Annotation,
    Credentials,
    Endpoint,
    OperationResult,
    PlatformMetadata,
    utcnow,
)
from boundary_meter.meters.requests import build_url, generate_headers, tag_url
from boundary_meter.meters.tags import extract_cloud_tags, lifecycle_event_annotation
from boundary_meter.meters.transport import MeterTransport

if TYPE_CHECKING:
    import httpx

    from boundary_meter.config import Settings

logger = logging.getLogger(__name__)


def _parse_json(response: "httpx.Response") -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponse(f"Response is not valid JSON: {e}") from e


class MeterClient:
    """Client for the Boundary meters and annotations API."""

    def __init__(
        self,
        endpoint: Endpoint,
        credentials: Credentials,
        transport: MeterTransport,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the meter client.

        Args:
            endpoint: API hostname and organization.
            credentials: API key.
            transport: HTTPS transport used for every call.
            clock: Time source for annotation timestamps.
        """
        self._endpoint = endpoint
        self._credentials = credentials
        self._transport = transport
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: "Settings | None" = None) -> "MeterClient":
        """Build a client from application settings."""
        if settings is None:
            from boundary_meter.config import get_settings

            settings = get_settings()

        transport = MeterTransport(
            ca_file=settings.boundary_ca_file,
            timeout=settings.boundary_request_timeout,
        )
        return cls(settings.endpoint, settings.credentials, transport)

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    def _headers(self) -> dict[str, str]:
        return generate_headers(self._credentials)

    def _search(self, name: str) -> list[Any]:
        url = build_url(self._endpoint, Action.SEARCH, name=name)
        try:
            response = self._transport.request("GET", url, self._headers())
        except TransportFailure as e:
            if e.status_code == 404:
                raise MeterNotFound(f"Search for meter [{name}] returned 404", 404) from e
            raise
        body = _parse_json(response)
        if not isinstance(body, list):
            raise MalformedResponse(
                f"Expected a list of meters for [{name}], got {type(body).__name__}"
            )
        return body

    def _lookup_meter_id(self, name: str) -> str:
        meters = self._search(name)
        if not meters:
            raise MeterNotFound(f"No meter named [{name}]")

        first = meters[0]
        if not isinstance(first, dict) or first.get("id") in (None, ""):
            raise MalformedResponse(f"Meter [{name}] has no id in search response")
        return str(first["id"])

    def meter_exists(self, name: str) -> OperationResult:
        """Check whether a meter with this name exists.

        A failed request is reported as a failure, never as "absent".

        Returns:
            Result whose value is True or False.
        """
        try:
            exists = len(self._search(name)) > 0
        except MeterAPIError as e:
            logger.error("Could not determine if meter [%s] exists: %s", name, e)
            return OperationResult.from_error(e)

        logger.debug("Meter [%s] exists: %s", name, exists)
        return OperationResult.success(exists)

    def get_meter_id(self, name: str) -> OperationResult:
        """Resolve the id of the first meter matching ``name``.

        Returns:
            Result whose value is the meter id. Fails with NOT_FOUND for an
            empty search and MALFORMED_RESPONSE for an entry without an id.
        """
        try:
            meter_id = self._lookup_meter_id(name)
        except MeterAPIError as e:
            logger.error("Could not get meter id for [%s]: %s", name, e)
            return OperationResult.from_error(e)

        return OperationResult.success(meter_id)

    def resolve_url(self, name: str, action: Action) -> OperationResult:
        """Resolve the meter id if ``action`` needs one, then build its URL."""
        if not action.requires_meter_id:
            return OperationResult.success(build_url(self._endpoint, action, name=name))

        lookup = self.get_meter_id(name)
        if not lookup.ok:
            return lookup
        return OperationResult.success(
            build_url(self._endpoint, action, meter_id=lookup.value)
        )

    def get_meter(self, name: str) -> OperationResult:
        """Fetch the meter's detail record."""
        try:
            meter_id = self._lookup_meter_id(name)
            url = build_url(self._endpoint, Action.METER_DETAIL, meter_id=meter_id)
            response = self._transport.request("GET", url, self._headers())
            detail = _parse_json(response)
        except MeterAPIError as e:
            logger.error("Could not get meter [%s], failed with %s", name, e)
            return OperationResult.from_error(e)

        return OperationResult.success(detail)

    def create_meter(self, name: str) -> OperationResult:
        """Create a meter with the given name."""
        url = build_url(self._endpoint, Action.CREATE)
        body = json.dumps({"name": name})

        logger.info("Creating meter [%s]", name)
        try:
            self._transport.request("POST", url, self._headers(), body)
        except MeterAPIError as e:
            logger.error("Could not create meter [%s], failed with %s", name, e)
            return OperationResult.from_error(e)

        return OperationResult.success()

    def delete_meter(self, name: str) -> OperationResult:
        """Delete the meter with the given name."""
        try:
            meter_id = self._lookup_meter_id(name)
            url = build_url(self._endpoint, Action.DELETE, meter_id=meter_id)

            logger.info("Deleting meter [%s]", name)
            self._transport.request("DELETE", url, self._headers())
        except MeterAPIError as e:
            logger.error("Could not delete meter [%s], failed with %s", name, e)
            return OperationResult.from_error(e)

        return OperationResult.success()

    def apply_tag(self, name: str, tag: str) -> OperationResult:
        """Apply one tag to the meter. The API has no batch endpoint."""
        try:
            meter_id = self._lookup_meter_id(name)
            url = tag_url(self._endpoint, meter_id, tag)

            logger.info("Applying meter tag [%s]", tag)
            self._transport.request("PUT", url, self._headers(), "")
        except MeterAPIError as e:
            logger.error("Could not apply meter tag [%s], failed with %s", tag, e)
            return OperationResult.from_error(e)

        return OperationResult.success(tag)

    def apply_tags(self, name: str, tags: Iterable[str]) -> list[OperationResult]:
        """Apply each tag in order, continuing past failures."""
        return [self.apply_tag(name, tag) for tag in tags]

    def apply_cloud_tags(
        self, name: str, metadata: PlatformMetadata
    ) -> list[OperationResult]:
        """Tag the meter from EC2 and OpsWorks metadata."""
        if metadata.ec2 is not None:
            logger.debug("This meter seems to be on EC2, applying ec2 based tags")
        if metadata.opsworks is not None:
            logger.debug("This meter seems to be running AWS OpsWorks, applying OpsWorks based tags")
        return self.apply_tags(name, extract_cloud_tags(metadata))

    def apply_meter_tags(self, name: str, tags: Sequence[str]) -> list[OperationResult]:
        """Apply the statically configured tags."""
        logger.debug("This meter currently has these attribute based tags %s", list(tags))
        if not tags:
            logger.debug("No meter tags to apply.")
            return []
        return self.apply_tags(name, tags)

    def post_annotation(self, annotation: Annotation) -> OperationResult:
        """Send a prepared annotation.

        Returns:
            Result whose value is the created annotation's location, if any.
        """
        url = build_url(self._endpoint, Action.ANNOTATE)
        try:
            response = self._transport.request(
                "POST", url, self._headers(), json.dumps(annotation.to_body())
            )
        except MeterAPIError as e:
            logger.error("Could not create annotation [%s], failed with %s", annotation.type, e)
            return OperationResult.from_error(e)

        location = response.headers.get("location")
        logger.info("Created a Boundary Annotation @ %s", location)
        return OperationResult.success(location)

    def create_annotation(
        self, type: str, subtype: str, tags: Sequence[str] = ()
    ) -> OperationResult:
        """Create a point-in-time annotation stamped with the current time."""
        return self.post_annotation(
            Annotation.now(type, subtype, tags, clock=self._clock)
        )

    def annotate_opsworks_lifecycle_event(
        self, metadata: PlatformMetadata, fqdn: str | None = None
    ) -> OperationResult | None:
        """Annotate the running OpsWorks lifecycle activity.

        Returns:
            The annotation result, or None when no activity is running.
        """
        annotation = lifecycle_event_annotation(metadata, fqdn, clock=self._clock)
        if annotation is None:
            logger.debug("No OpsWorks activity, skipping life cycle annotation")
            return None
        return self.post_annotation(annotation)

    def annotate(
        self, metadata: PlatformMetadata, fqdn: str | None = None
    ) -> OperationResult | None:
        """Emit every lifecycle annotation the metadata calls for."""
        return self.annotate_opsworks_lifecycle_event(metadata, fqdn)

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "MeterClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# Global client instance
_meter_client: MeterClient | None = None


def get_meter_client() -> MeterClient:
    """Get the global meter client instance.

    Returns:
        MeterClient built from application settings.
    """
    global _meter_client
    if _meter_client is None:
        _meter_client = MeterClient.from_settings()
    return _meter_client
