"""Typed exception hierarchy. Every error upkeep can raise."""


class UpkeepError(Exception):
    """Base exception for all upkeep errors."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class DescriptorError(UpkeepError):
    """Plugin file is missing or its header cannot be read."""
    def __init__(self, message: str, plugin_file: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.plugin_file = plugin_file


class ProfileError(UpkeepError):
    """No plugin profile matches, or the profiles file is invalid."""
    pass


class NonceError(UpkeepError):
    """Nonce is malformed, expired, or bound to another action/actor."""
    pass


class InstallerError(UpkeepError):
    """The package installer primitive failed hard (download, extract, move)."""
    def __init__(self, message: str, package_url: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.package_url = package_url


class RollbackUnavailable(UpkeepError):
    """Update server does not offer rollback for this plugin."""
    def __init__(self, message: str, plugin_name: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.plugin_name = plugin_name
