"""Error taxonomy for modmail.

Platform failures are converted into these types at the point of the call so
the relay and lifecycle code never has to know about discord.py exceptions.
"""


class ModmailError(Exception):
    """Base class for all modmail errors."""


class ConfigurationError(ModmailError):
    """Missing or invalid configuration (fatal at startup)."""


class PlatformError(ModmailError):
    """A platform call failed."""


class NotFoundError(PlatformError):
    """Channel, thread or message no longer exists on the platform."""


class DeliveryError(PlatformError):
    """A message could not be posted or a DM channel could not be opened."""


class RecoveryError(ModmailError):
    """Forum threads could not be listed during recovery."""
