"""
System Layer.

Interaction with the host's package manager.
"""

from .packages import PackageInstaller

__all__ = ["PackageInstaller"]
