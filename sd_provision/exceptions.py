"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class ProvisionError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(ProvisionError):
    """Raised for issues related to configuration loading or validation."""


class ConfigMissingError(ProvisionError):
    """
    Describes an expected setting that is unset. Reported as a warning, the
    pipeline keeps going without it.
    """

    def __init__(self, setting: str, message: str):
        super().__init__(message)
        self.setting = setting


class ManifestUnavailableError(ProvisionError):
    """Raised when the manifest cannot be fetched, found, or parsed."""


class DirectoryCreateError(ProvisionError):
    """Raised when a category's destination directory cannot be created."""


class PackageInstallError(ProvisionError):
    """Raised when the system package installer cannot be run."""


class PeerSyncError(ProvisionError):
    """Raised when the peer-sync configuration cannot be rendered or installed."""
