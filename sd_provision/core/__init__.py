"""
Core Logic Layer.
"""

from .extractor import build_tasks, extract_category
from .pipeline import ProvisionPipeline

__all__ = ["ProvisionPipeline", "build_tasks", "extract_category"]
