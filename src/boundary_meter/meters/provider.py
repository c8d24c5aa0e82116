"""Create and delete actions for a host's meter.

This is the caller boundary for the lifecycle operations: it decides which
failures end the run (``ProvisioningAborted``) and which are only logged.
"""

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

from boundary_meter.meters.client import MeterClient, get_meter_client
from boundary_meter.meters.exceptions import MeterNotFound, ProvisioningAborted
from boundary_meter.meters.models import MeterResource, OperationResult, PlatformMetadata
from boundary_meter.state import METER_ID_KEY, InMemoryStateStore, JsonFileStateStore, StateStore

if TYPE_CHECKING:
    from boundary_meter.config import Settings

logger = logging.getLogger(__name__)


class ProvisioningPolicy(BaseModel):
    """How the provider reacts to failed lookups."""

    abort_on_lookup_failure: bool = Field(
        default=True,
        description="Abort when a meter's existence or id cannot be determined",
    )
    missing_on_delete: Literal["ignore", "error"] = Field(
        default="ignore",
        description="Deleting a meter that does not exist is a no-op or an error",
    )
    persist_meter_id: bool = Field(
        default=True,
        description="Save the resolved meter id to the state store",
    )


class ProvisionReport(BaseModel):
    """Outcome of a provider action."""

    meter: MeterResource = Field(..., description="The meter acted on")
    created: bool = Field(default=False, description="Whether the meter was created")
    deleted: bool = Field(default=False, description="Whether the meter was deleted")
    tag_results: list[OperationResult] = Field(
        default_factory=list, description="One result per applied tag"
    )
    annotation: OperationResult | None = Field(None, description="Annotation result")
    failures: list[OperationResult] = Field(
        default_factory=list, description="Non-fatal failures"
    )

    @property
    def is_success(self) -> bool:
        return not self.failures and all(r.ok for r in self.tag_results)


class MeterProvider:
    """Drives the meter lifecycle for one host."""

    def __init__(
        self,
        client: MeterClient | None = None,
        state_store: StateStore | None = None,
        static_tags: Sequence[str] = (),
        policy: ProvisioningPolicy | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            client: Meter API client. Defaults to the global client.
            state_store: Where the resolved meter id is kept between runs.
                Defaults to an in-memory store.
            static_tags: Configured tags applied on every create.
            policy: Failure policy. Defaults to aborting on failed lookups.
        """
        self._client = client or get_meter_client()
        self._state = state_store if state_store is not None else InMemoryStateStore()
        self._static_tags = list(static_tags)
        self._policy = policy or ProvisioningPolicy()

    @classmethod
    def from_settings(
        cls,
        settings: "Settings | None" = None,
        policy: ProvisioningPolicy | None = None,
    ) -> "MeterProvider":
        """Build a provider, its client and its state store from settings."""
        if settings is None:
            from boundary_meter.config import get_settings

            settings = get_settings()

        if policy is None:
            policy = ProvisioningPolicy(persist_meter_id=settings.boundary_persist_meter_id)

        state_store: StateStore
        if policy.persist_meter_id:
            state_store = JsonFileStateStore(settings.boundary_state_file)
        else:
            state_store = InMemoryStateStore()

        return cls(
            client=MeterClient.from_settings(settings),
            state_store=state_store,
            static_tags=settings.boundary_meter_tags,
            policy=policy,
        )

    @property
    def client(self) -> MeterClient:
        return self._client

    @property
    def policy(self) -> ProvisioningPolicy:
        return self._policy

    def _lookup_failed(self, message: str, result: OperationResult, report: ProvisionReport) -> None:
        if self._policy.abort_on_lookup_failure:
            logger.critical("%s: %s", message, result.message)
            raise ProvisioningAborted(f"{message}: {result.message}", result.to_error())
        logger.error("%s, continuing: %s", message, result.message)
        report.failures.append(result)

    def save_meter_id(self, meter: MeterResource, report: ProvisionReport) -> None:
        """Resolve the meter id and persist it to the state store."""
        if not self._policy.persist_meter_id:
            logger.debug("Meter id persistence disabled, not attempting to save id attribute.")
            return

        lookup = self._client.get_meter_id(meter.name)
        if not lookup.ok:
            self._lookup_failed(f"Could not get meter id for [{meter.name}]", lookup, report)
            return

        meter.remote_id = lookup.value
        self._state.set(METER_ID_KEY, lookup.value)
        logger.info("Saved meter id %s for [%s]", lookup.value, meter.name)

    def delete_meter_id(self) -> None:
        """Forget the persisted meter id."""
        if not self._policy.persist_meter_id:
            logger.debug("Meter id persistence disabled, not attempting to delete attribute.")
            return
        self._state.delete(METER_ID_KEY)

    def action_create(
        self,
        name: str,
        metadata: PlatformMetadata | None = None,
        extra_tags: Sequence[str] = (),
    ) -> ProvisionReport:
        """Ensure the meter exists, then tag and annotate it.

        Raises:
            ProvisioningAborted: If a lookup fails under an aborting policy.
        """
        metadata = metadata or PlatformMetadata()
        meter = MeterResource(name=name, remote_id=self._state.get(METER_ID_KEY))
        report = ProvisionReport(meter=meter)

        exists = self._client.meter_exists(name)
        if not exists.ok:
            self._lookup_failed(f"Could not determine if meter [{name}] exists", exists, report)
        elif exists.value:
            logger.info("Meter [%s] already exists", name)
        else:
            created = self._client.create_meter(name)
            if created.ok:
                report.created = True
            else:
                report.failures.append(created)

        self.save_meter_id(meter, report)

        report.tag_results.extend(self._client.apply_cloud_tags(name, metadata))
        report.tag_results.extend(
            self._client.apply_meter_tags(name, self._static_tags + list(extra_tags))
        )
        report.annotation = self._client.annotate(metadata, metadata.fqdn or name)
        if report.annotation is not None and not report.annotation.ok:
            report.failures.append(report.annotation)

        return report

    def action_delete(self, name: str) -> ProvisionReport:
        """Delete the meter if it exists and forget its id.

        Raises:
            ProvisioningAborted: If the existence check fails under an
                aborting policy, or the meter is missing and the policy
                treats that as an error.
        """
        meter = MeterResource(name=name, remote_id=self._state.get(METER_ID_KEY))
        report = ProvisionReport(meter=meter)

        exists = self._client.meter_exists(name)
        if not exists.ok:
            self._lookup_failed(f"Could not determine if meter [{name}] exists", exists, report)
            return report

        if not exists.value:
            if self._policy.missing_on_delete == "error":
                raise ProvisioningAborted(
                    f"Meter [{name}] does not exist", MeterNotFound(f"No meter named [{name}]")
                )
            logger.info("Meter [%s] does not exist, nothing to delete", name)
            self.delete_meter_id()
            return report

        deleted = self._client.delete_meter(name)
        if deleted.ok:
            report.deleted = True
            meter.remote_id = None
            self.delete_meter_id()
        else:
            report.failures.append(deleted)

        return report
