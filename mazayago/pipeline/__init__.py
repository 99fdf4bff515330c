"""Publishing of draw results to object storage and the render worker."""

from .dispatch import RenderDispatcher, get_render_dispatcher
from .publisher import PackageKeys, PublishPackage, PublishPipeline
from .storage import PipelineStorage, get_pipeline_storage

__all__ = [
    "PackageKeys",
    "PipelineStorage",
    "PublishPackage",
    "PublishPipeline",
    "RenderDispatcher",
    "get_pipeline_storage",
    "get_render_dispatcher",
]
