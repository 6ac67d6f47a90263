"""
Media Handling Layer.

This package is responsible for transferring model asset files to disk.
"""

from .downloader import AssetDownloader, close_connection_pool, get_connection_pool

__all__ = ["AssetDownloader", "close_connection_pool", "get_connection_pool"]
