"""Command-line entrypoint for resolving a cluster's images."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Optional, Sequence

import structlog

from ..common.observability import configure_logging, configure_tracing
from ..common.schemas import SelectionStrategy, Stage
from ..common.settings import FindImageSettings
from ..inventory.client import InventoryClient
from ..tasks.base import TaskExecutionError, run_with_retries
from ..tasks.find_image import FindImageFromClusterTask

LOGGER = structlog.get_logger("clusterimages.cli")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve the images a cluster is running per region or zone")
    parser.add_argument("--base-url", help="Inventory service base URL (defaults to CLUSTERIMAGES_INVENTORY_URL)")
    parser.add_argument("--token", help="Bearer token for the inventory service")
    parser.add_argument("--cluster", required=True, help="Cluster name, e.g. app-stack-detail")
    parser.add_argument("--account", required=True, help="Account the cluster is deployed in")
    parser.add_argument("--cloud-provider", default="aws", help="Cloud provider (default: aws)")

    locations = parser.add_mutually_exclusive_group()
    locations.add_argument("--region", dest="regions", action="append", help="Region to resolve; repeatable")
    locations.add_argument("--zone", dest="zones", action="append", help="Zone to resolve; repeatable")

    parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in SelectionStrategy],
        default=SelectionStrategy.NEWEST.value,
        help="Server group selection strategy",
    )
    parser.add_argument("--include-disabled", action="store_true", help="Consider disabled server groups too")
    parser.add_argument(
        "--resolve-missing",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Search the image catalog for locations without a server group",
    )
    parser.add_argument("--no-retry", action="store_true", help="Fail on the first transport error")
    return parser.parse_args(argv)


def build_stage(args: argparse.Namespace) -> Stage:
    context: dict[str, Any] = {
        "cluster": args.cluster,
        "credentials": args.account,
        "cloudProvider": args.cloud_provider,
        "selectionStrategy": args.strategy,
        "onlyEnabled": not args.include_disabled,
    }
    if args.regions:
        context["regions"] = args.regions
    if args.zones:
        context["zones"] = args.zones
    if args.resolve_missing is not None:
        context["resolveMissingLocations"] = args.resolve_missing
    return Stage(type="findImageFromCluster", context=context)


async def run(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    settings = FindImageSettings()
    configure_logging("clusterimages.cli", settings.log_level)
    tracer_provider = configure_tracing("clusterimages.cli", settings)

    base_url = args.base_url or str(settings.inventory_base_url)
    token = args.token or (settings.inventory_token.get_secret_value() if settings.inventory_token else None)
    stage = build_stage(args)

    try:
        async with InventoryClient(base_url, token=token, timeout=settings.inventory_timeout_seconds) as client:
            task = FindImageFromClusterTask(client, settings)
            try:
                if args.no_retry:
                    result = await task.execute(stage)
                else:
                    result = await run_with_retries(task, stage)
            except TaskExecutionError as exc:
                LOGGER.error("Image resolution failed", cluster=args.cluster, error=str(exc))
                print(str(exc), file=sys.stderr)
                return 1
    finally:
        if tracer_provider is not None:
            tracer_provider.shutdown()

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
