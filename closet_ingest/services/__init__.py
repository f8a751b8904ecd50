"""External service clients."""

from .background_removal import BackgroundModel, BackgroundRemovalClient, RemovalOptions, Resolution
from .cache import ResultCache
from .image_fetcher import ImageFetcher
from .vision_client import AgentFrameworkTransport, VisionClassifierClient, VisionTransport

__all__ = [
    "BackgroundModel",
    "BackgroundRemovalClient",
    "RemovalOptions",
    "Resolution",
    "ResultCache",
    "ImageFetcher",
    "AgentFrameworkTransport",
    "VisionClassifierClient",
    "VisionTransport",
]
