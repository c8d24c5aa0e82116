"""Command-line entry point for Boundary meter provisioning.

Usage:
    boundary-meter <command> [options]

Commands:
    create     Ensure this host's meter exists, then tag and annotate it
    delete     Delete this host's meter
    exists     Report whether the meter exists
    tag        Apply tags to the meter
    annotate   Post an annotation

Exit status:
    0  everything succeeded
    1  a lookup failed and provisioning was aborted
    2  the meter was handled but some tags, annotations or deletes failed
"""

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from boundary_meter.config import get_settings

if TYPE_CHECKING:
    from boundary_meter.meters import ProvisionReport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()

    log_format = (
        '{"time": "%(asctime)s", "level": "%(levelname)s", '
        '"logger": "%(name)s", "message": "%(message)s"}'
        if settings.log_format == "json"
        else "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def load_attributes(path: str | None) -> dict[str, Any]:
    """Read node attributes from a JSON file, or nothing when no path is given."""
    if not path:
        return {}
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _report_exit_code(action: str, report: "ProvisionReport") -> int:
    """Map a provider report to an exit status.

    Failures recorded in a report are best effort and never fatal.
    """
    if report.is_success:
        return EXIT_OK

    failures = report.failures + [r for r in report.tag_results if not r.ok]
    for failure in failures:
        logger.warning("%s [%s]: %s", action, report.meter.name, failure.message)
    logger.warning(
        "%s [%s] finished with %d best-effort failure(s)", action, report.meter.name, len(failures)
    )
    return EXIT_PARTIAL


def cmd_create(args: argparse.Namespace) -> int:
    from boundary_meter.meters import MeterProvider, PlatformMetadata, ProvisioningPolicy

    settings = get_settings()
    policy = ProvisioningPolicy(
        abort_on_lookup_failure=not args.keep_going,
        persist_meter_id=settings.boundary_persist_meter_id,
    )
    metadata = PlatformMetadata.from_attributes(load_attributes(args.attributes))

    provider = MeterProvider.from_settings(settings, policy)
    with provider.client:
        report = provider.action_create(args.name, metadata, extra_tags=args.tag)

    logger.info(
        "Meter [%s] provisioned (created=%s, id=%s, tags=%d, failures=%d)",
        report.meter.name,
        report.created,
        report.meter.remote_id,
        len(report.tag_results),
        len(report.failures),
    )
    return _report_exit_code("Create", report)


def cmd_delete(args: argparse.Namespace) -> int:
    from boundary_meter.meters import MeterProvider, ProvisioningPolicy

    settings = get_settings()
    policy = ProvisioningPolicy(
        abort_on_lookup_failure=not args.keep_going,
        missing_on_delete="error" if args.fail_if_missing else "ignore",
        persist_meter_id=settings.boundary_persist_meter_id,
    )

    provider = MeterProvider.from_settings(settings, policy)
    with provider.client:
        report = provider.action_delete(args.name)

    return _report_exit_code("Delete", report)


def cmd_exists(args: argparse.Namespace) -> int:
    from boundary_meter.meters import MeterClient

    with MeterClient.from_settings() as client:
        result = client.meter_exists(args.name)

    if not result.ok:
        return EXIT_FAILED
    print("true" if result.value else "false")
    return EXIT_OK


def cmd_tag(args: argparse.Namespace) -> int:
    from boundary_meter.meters import MeterClient

    with MeterClient.from_settings() as client:
        results = client.apply_tags(args.name, args.tags)

    return EXIT_OK if all(r.ok for r in results) else EXIT_PARTIAL


def cmd_annotate(args: argparse.Namespace) -> int:
    from boundary_meter.meters import MeterClient

    with MeterClient.from_settings() as client:
        result = client.create_annotation(args.type, args.subtype, args.tag)

    return EXIT_OK if result.ok else EXIT_PARTIAL


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="boundary-meter",
        description="Provision and tag Boundary meters",
    )
    parser.add_argument(
        "--name",
        default=settings.boundary_meter_name,
        help="Meter name (default: %(default)s)",
    )
    # Also accepted after the subcommand; SUPPRESS leaves a top-level --name intact
    meter = argparse.ArgumentParser(add_help=False)
    meter.add_argument("--name", default=argparse.SUPPRESS, help="Meter name")

    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser(
        "create", parents=[meter], help="Ensure the meter exists and tag it"
    )
    create.add_argument("--attributes", help="Node attribute JSON file")
    create.add_argument("--tag", action="append", default=[], help="Extra tag to apply")
    create.add_argument(
        "--keep-going", action="store_true", help="Do not abort when a lookup fails"
    )
    create.set_defaults(func=cmd_create)

    delete = subparsers.add_parser("delete", parents=[meter], help="Delete the meter")
    delete.add_argument(
        "--keep-going", action="store_true", help="Do not abort when a lookup fails"
    )
    delete.add_argument(
        "--fail-if-missing", action="store_true", help="Fail when the meter does not exist"
    )
    delete.set_defaults(func=cmd_delete)

    exists = subparsers.add_parser(
        "exists", parents=[meter], help="Report whether the meter exists"
    )
    exists.set_defaults(func=cmd_exists)

    tag = subparsers.add_parser("tag", parents=[meter], help="Apply tags to the meter")
    tag.add_argument("tags", nargs="+", help="Tags to apply")
    tag.set_defaults(func=cmd_tag)

    annotate = subparsers.add_parser("annotate", parents=[meter], help="Post an annotation")
    annotate.add_argument("type", help="Annotation type")
    annotate.add_argument("subtype", help="Annotation subtype")
    annotate.add_argument("--tag", action="append", default=[], help="Annotation tag")
    annotate.set_defaults(func=cmd_annotate)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the boundary-meter command line."""
    from boundary_meter.meters import ProvisioningAborted
    from boundary_meter.telemetry import setup_telemetry, shutdown_telemetry

    load_dotenv()
    setup_logging()

    args = build_parser().parse_args(argv)

    setup_telemetry()
    try:
        return args.func(args)
    except ProvisioningAborted as e:
        logger.critical("Provisioning aborted: %s", e)
        return EXIT_FAILED
    finally:
        shutdown_telemetry()


if __name__ == "__main__":
    sys.exit(main())
