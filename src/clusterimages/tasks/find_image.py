"""Resolve the images a cluster runs in each region or zone."""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping, Optional, Sequence

import httpx
import structlog
from opentelemetry import trace
from structlog.stdlib import BoundLogger

from ..common.schemas import (
    CatalogImage,
    ExecutionStatus,
    FindImageConfiguration,
    Location,
    LocationType,
    ServerGroupSummary,
    Stage,
    TaskResult,
)
from ..common.settings import FindImageSettings
from ..inventory.client import InventoryClient
from .base import CloudProviderAwareTask, TaskExecutionError

LOGGER = structlog.get_logger("clusterimages.tasks.find_image")
TRACER = trace.get_tracer("clusterimages.tasks.find_image")

SUMMARY_TYPE = "Image"
FAIL_STRATEGY_MARKER = "target.fail.strategy"
DEFAULT_IMAGE_NAME_SUFFIXES = ("-ebs", "-s3")

DeploymentDetail = dict[str, Any]


class ImageResolutionError(TaskExecutionError):
    """Raised when a cluster's images cannot be resolved."""


def _base_name_pattern(suffixes: Sequence[str]) -> re.Pattern[str]:
    tokens = "|".join(re.escape(suffix) for suffix in suffixes)
    return re.compile(rf"(.*(?:{tokens})).*")


def extract_base_image_names(
    image_names: Iterable[Optional[str]],
    suffixes: Sequence[str] = DEFAULT_IMAGE_NAME_SUFFIXES,
) -> set[str]:
    """Strip the counter the bakery appends when two bakes race.

    ``foo-ebs2`` becomes ``foo-ebs``; names without a known suffix are dropped.
    """

    pattern = _base_name_pattern(suffixes)
    base_names: set[str] = set()
    for name in image_names:
        if not name:
            continue
        match = pattern.fullmatch(name)
        if match:
            base_names.add(match.group(1))
    return base_names


def _error_mentions(error: Any, marker: str) -> bool:
    if isinstance(error, str):
        return marker in error
    if isinstance(error, (list, tuple)):
        return any(isinstance(item, str) and marker in item for item in error)
    return False


class FindImageFromClusterTask(CloudProviderAwareTask):
    """Find the image each location's active server group was deployed from."""

    backoff_period = 2.0
    timeout = 60.0

    def __init__(self, client: InventoryClient, settings: Optional[FindImageSettings] = None) -> None:
        self._client = client
        self._settings = settings or FindImageSettings()

    async def execute(self, stage: Stage) -> TaskResult:
        cloud_provider = self.get_cloud_provider(stage)
        account = self.get_credentials(stage)
        config = stage.map_to(FindImageConfiguration)
        if config.resolve_missing_locations is None:
            config = config.model_copy(
                update={"resolve_missing_locations": self._settings.default_resolve_missing_locations}
            )

        deployment_details = await self.resolve(cloud_provider, account, config)
        return TaskResult(
            status=ExecutionStatus.SUCCEEDED,
            result={"amiDetails": deployment_details},
            context={"deploymentDetails": deployment_details},
        )

    async def resolve(
        self,
        cloud_provider: str,
        account: str,
        config: FindImageConfiguration,
    ) -> list[DeploymentDetail]:
        log = LOGGER.bind(cluster=config.cluster, account=account, cloud_provider=cloud_provider)
        required_locations = config.required_locations
        if not required_locations:
            log.info("No locations requested")
            return []

        with TRACER.start_as_current_span("find_image.resolve") as span:
            span.set_attribute("find_image.cluster", config.cluster)
            span.set_attribute("find_image.locations", len(required_locations))

            summaries, image_names, missing = await self._lookup_locations(cloud_provider, account, config, log)
            if missing:
                span.set_attribute("find_image.missing", len(missing))
                await self._backfill(cloud_provider, account, config, summaries, image_names, missing, log)

        return [self._deployment_detail(location, summary, log) for location, summary in summaries.items()]

    async def _lookup_locations(
        self,
        cloud_provider: str,
        account: str,
        config: FindImageConfiguration,
        log: BoundLogger,
    ) -> tuple[dict[Location, Optional[ServerGroupSummary]], set[str], list[Location]]:
        summaries: dict[Location, Optional[ServerGroupSummary]] = {}
        image_names: set[str] = set()
        missing: list[Location] = []

        for location in config.required_locations:
            try:
                summary = await self._client.get_server_group_summary(
                    config.application,
                    account,
                    config.cluster,
                    cloud_provider,
                    location.value,
                    config.selection_strategy.value,
                    SUMMARY_TYPE,
                    config.only_enabled,
                )
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code != 404:
                    raise
                reason = self._error_reason(exc.response)
                if _error_mentions(reason.get("error"), FAIL_STRATEGY_MARKER):
                    raise ImageResolutionError(
                        f"Multiple possible server groups present in {location.value}"
                    ) from exc
                if config.resolve_missing_locations:
                    log.info("No server group found, will search catalog", location=location.value)
                    missing.append(location)
                    summaries[location] = None
                    continue
                raise ImageResolutionError(
                    f"Could not find cluster '{config.cluster}' for '{account}' in '{location.value}'."
                ) from exc

            if summary.image_name:
                image_names.add(summary.image_name)
            summaries[location] = summary
            log.debug(
                "Resolved server group image",
                location=location.value,
                image_name=summary.image_name,
                image_id=summary.image_id,
            )

        return summaries, image_names, missing

    @staticmethod
    def _error_reason(response: httpx.Response) -> dict[str, Any]:
        try:
            reason = response.json()
        except ValueError as exc:
            raise ImageResolutionError("Unexpected response from API") from exc
        if not isinstance(reason, dict):
            raise ImageResolutionError("Unexpected response from API")
        return reason

    async def _backfill(
        self,
        cloud_provider: str,
        account: str,
        config: FindImageConfiguration,
        summaries: dict[Location, Optional[ServerGroupSummary]],
        image_names: set[str],
        missing: list[Location],
        log: BoundLogger,
    ) -> None:
        search_names = extract_base_image_names(image_names, self._settings.image_name_suffixes)
        if len(search_names) != 1:
            plural = config.required_locations[0].plural_type()
            raise ImageResolutionError(
                f"Request to resolve images for missing {plural} requires exactly one image. "
                f"(Found {sorted(search_names)})"
            )
        (search_name,) = search_names

        template = next(summary for summary in summaries.values() if summary is not None)
        if not (
            template.image
            and template.build_info
            and isinstance(template.image, Mapping)
            and isinstance(template.build_info, Mapping)
        ):
            raise ImageResolutionError(
                f"Missing image or buildInfo on {template.model_dump(by_alias=True)}"
            )

        images = await self._client.find_image(cloud_provider, f"{search_name}*", account, None)
        log.info(
            "Searched image catalog",
            query=f"{search_name}*",
            results=len(images),
            missing=[location.value for location in missing],
        )
        for image in images:
            for location in missing:
                if summaries[location] is not None:
                    continue
                image_ids = (image.amis or {}).get(location.value)
                if image_ids:
                    summaries[location] = self._synthesize_summary(config.cluster, template, image, image_ids[0])

        unresolved = [location.value for location, summary in summaries.items() if summary is None]
        if unresolved:
            raise ImageResolutionError(f"Still missing images in [{', '.join(unresolved)}]")

    @staticmethod
    def _synthesize_summary(
        cluster: str,
        template: ServerGroupSummary,
        image: CatalogImage,
        image_id: str,
    ) -> ServerGroupSummary:
        return ServerGroupSummary(
            image_id=image_id,
            image_name=image.image_name,
            server_group_name=cluster,
            image={**template.image, "imageId": image_id, "name": image.image_name},
            build_info=template.build_info,
        )

    @staticmethod
    def _deployment_detail(location: Location, summary: ServerGroupSummary, log: BoundLogger) -> DeploymentDetail:
        detail: DeploymentDetail = {
            "ami": summary.image_id,
            "imageId": summary.image_id,
            "imageName": summary.image_name,
            "sourceServerGroup": summary.server_group_name,
        }
        if location.type is LocationType.REGION:
            detail["region"] = location.value
        elif location.type is LocationType.ZONE:
            detail["zone"] = location.value

        try:
            detail.update(summary.image or {})
            detail.update(summary.build_info or {})
        except (TypeError, ValueError):
            log.exception(
                "Unable to merge server group image/build info",
                summary=summary.model_dump(by_alias=True),
            )
        return detail
