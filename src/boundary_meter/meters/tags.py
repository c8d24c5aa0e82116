"""Derive meter tags and annotations from platform metadata."""

from collections.abc import Callable
from datetime import datetime

from boundary_meter.meters.models import (
    Annotation,
    OpsWorksMetadata,
    PlatformMetadata,
    utcnow,
)

LIFECYCLE_BASE_TAGS = ("opsworks", "ec2")


def extract_ec2_tags(metadata: PlatformMetadata) -> list[str]:
    """Security groups, then availability zone, then instance type."""
    ec2 = metadata.ec2
    if ec2 is None:
        return []

    tags = list(ec2.security_groups)
    if ec2.placement_availability_zone:
        tags.append(ec2.placement_availability_zone)
    if ec2.instance_type:
        tags.append(ec2.instance_type)
    return tags


def _opsworks_deployment_tags(opsworks: OpsWorksMetadata) -> list[str]:
    tags = []
    if opsworks.stack is not None and opsworks.stack.name:
        tags.append(opsworks.stack.name)
    if opsworks.instance is not None:
        tags.extend(opsworks.instance.layers)
    for app in opsworks.applications:
        tags.extend(value for value in (app.name, app.application_type) if value)
    return tags


def extract_opsworks_tags(metadata: PlatformMetadata) -> list[str]:
    """Stack name, layer names, then each application's name and type."""
    if metadata.opsworks is None:
        return []
    return _opsworks_deployment_tags(metadata.opsworks)


def extract_cloud_tags(metadata: PlatformMetadata) -> list[str]:
    """All tags derived from cloud and orchestration metadata, in order."""
    return extract_ec2_tags(metadata) + extract_opsworks_tags(metadata)


def lifecycle_event_tags(metadata: PlatformMetadata) -> list[str]:
    tags = list(LIFECYCLE_BASE_TAGS)
    if metadata.opsworks is not None:
        tags.extend(_opsworks_deployment_tags(metadata.opsworks))
    return tags


def lifecycle_event_annotation(
    metadata: PlatformMetadata,
    fqdn: str | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> Annotation | None:
    """Annotation for the current OpsWorks lifecycle activity.

    Args:
        metadata: Platform metadata for this node.
        fqdn: Host name used in the annotation type. Defaults to the
            node's reported fqdn.
        clock: Time source for the annotation timestamps.

    Returns:
        The annotation, or None when no lifecycle activity is running.
    """
    opsworks = metadata.opsworks
    if opsworks is None or not opsworks.activity:
        return None

    host = fqdn or metadata.fqdn or metadata.hostname or "unknown host"
    return Annotation.now(
        type=f"OpsWorks Life Cycle Event on {host}",
        subtype=opsworks.activity,
        tags=lifecycle_event_tags(metadata),
        clock=clock,
    )
