"""Orchestrator tasks provided by clusterimages."""

from .base import CloudProviderAwareTask, TaskExecutionError, run_with_retries
from .find_image import FindImageFromClusterTask, ImageResolutionError, extract_base_image_names

__all__ = [
    "CloudProviderAwareTask",
    "FindImageFromClusterTask",
    "ImageResolutionError",
    "TaskExecutionError",
    "extract_base_image_names",
    "run_with_retries",
]
