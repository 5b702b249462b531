"""Paperclip core: cached, retrying fetch layer for classified listings."""

from .config import ClientConfig, load_config
from .factory import build_cache, build_client, build_repository
from .net import Endpoint, FetchClient
from .repository import ClassifiedRepository, LoadState
from .schemas import CATEGORY_ALL, Category, ClassifiedAd, ImageUrls, SortOption

__all__ = [
    "CATEGORY_ALL",
    "Category",
    "ClassifiedAd",
    "ClassifiedRepository",
    "ClientConfig",
    "Endpoint",
    "FetchClient",
    "ImageUrls",
    "LoadState",
    "SortOption",
    "build_cache",
    "build_client",
    "build_repository",
    "load_config",
]
