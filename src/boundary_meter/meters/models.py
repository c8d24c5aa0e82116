"""Data models for the Boundary meters API."""

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from boundary_meter.meters.exceptions import (
    ERRORS_BY_KIND,
    FailureKind,
    MeterAPIError,
)


def utcnow() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


class Action(str, Enum):
    """API actions a URL can be built for."""

    CREATE = "create"
    SEARCH = "search"
    METER_DETAIL = "meter"
    CERTIFICATES = "certificates"
    DELETE = "delete"
    TAGS = "tags"
    ANNOTATE = "annotate"

    @property
    def requires_meter_id(self) -> bool:
        """Whether the URL for this action embeds the meter id."""
        return self in _ID_ACTIONS


_ID_ACTIONS = frozenset({Action.METER_DETAIL, Action.CERTIFICATES, Action.DELETE, Action.TAGS})


class Endpoint(BaseModel):
    """Boundary API location for one organization."""

    hostname: str = Field(..., description="API hostname")
    org_id: str = Field(..., description="Organization ID")

    @property
    def base_url(self) -> str:
        return f"https://{self.hostname}/{self.org_id}"


class Credentials(BaseModel):
    """Boundary API credentials."""

    api_key: str = Field(..., repr=False, description="API key")


class MeterResource(BaseModel):
    """Handle for the monitored host's meter.

    ``remote_id`` is informational only; operations always resolve the id
    again by name.
    """

    name: str = Field(..., description="Meter name, usually the host FQDN")
    remote_id: str | None = Field(None, description="Id assigned by Boundary")


class Annotation(BaseModel):
    """A timestamped event record sent to the annotations endpoint."""

    type: str = Field(..., description="Annotation type")
    subtype: str = Field(..., description="Annotation subtype")
    start_time: datetime = Field(..., description="Start of the event")
    end_time: datetime = Field(..., description="End of the event")
    tags: list[str] = Field(default_factory=list, description="Annotation tags")

    @classmethod
    def now(
        cls,
        type: str,
        subtype: str,
        tags: Sequence[str] = (),
        clock: Callable[[], datetime] = utcnow,
    ) -> "Annotation":
        """Build a point-in-time annotation.

        Both timestamps come from a single clock reading; durations are
        not tracked.
        """
        timestamp = clock()
        return cls(
            type=type,
            subtype=subtype,
            start_time=timestamp,
            end_time=timestamp,
            tags=list(tags),
        )

    def to_body(self) -> dict[str, Any]:
        """Serialize to the JSON request body."""
        return self.model_dump(mode="json")


class Ec2Metadata(BaseModel):
    """EC2 facts reported by the node."""

    security_groups: list[str] = Field(default_factory=list)
    placement_availability_zone: str | None = None
    instance_type: str | None = None


class OpsWorksStack(BaseModel):
    name: str | None = None


class OpsWorksInstance(BaseModel):
    layers: list[str] = Field(default_factory=list)


class OpsWorksApplication(BaseModel):
    name: str | None = None
    application_type: str | None = None


class OpsWorksMetadata(BaseModel):
    """AWS OpsWorks facts reported by the node."""

    activity: str | None = Field(None, description="Current lifecycle activity")
    stack: OpsWorksStack | None = None
    instance: OpsWorksInstance | None = None
    applications: list[OpsWorksApplication] = Field(default_factory=list)


class PlatformMetadata(BaseModel):
    """Environment facts used to derive meter tags and annotations.

    Every source is optional; unknown node attributes are ignored.
    """

    fqdn: str | None = None
    hostname: str | None = None
    ec2: Ec2Metadata | None = None
    opsworks: OpsWorksMetadata | None = None

    @classmethod
    def from_attributes(cls, attributes: dict[str, Any] | None) -> "PlatformMetadata":
        """Parse a node-attribute tree (Ohai style JSON)."""
        return cls.model_validate(attributes or {})


class OperationResult(BaseModel):
    """Outcome of a lifecycle operation.

    Either ``ok`` with an optional ``value``, or failed with a ``kind``
    and message. Callers decide whether a failure is fatal.
    """

    ok: bool = Field(..., description="Whether the operation succeeded")
    value: Any = Field(None, description="Operation result value")
    kind: FailureKind | None = Field(None, description="Failure kind")
    message: str | None = Field(None, description="Failure message")
    status_code: int | None = Field(None, description="HTTP status, if any")

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failed(
        cls,
        kind: FailureKind,
        message: str,
        status_code: int | None = None,
    ) -> "OperationResult":
        return cls(ok=False, kind=kind, message=message, status_code=status_code)

    @classmethod
    def from_error(cls, error: MeterAPIError) -> "OperationResult":
        return cls.failed(error.kind, error.message, error.status_code)

    def to_error(self) -> MeterAPIError:
        """Rebuild the exception this failure stands for."""
        if self.ok or self.kind is None:
            raise ValueError("Successful result has no error")
        return ERRORS_BY_KIND[self.kind](self.message or self.kind.value, self.status_code)

    def unwrap(self) -> Any:
        """Return the value, or raise the matching MeterAPIError."""
        if self.ok:
            return self.value
        raise self.to_error()
