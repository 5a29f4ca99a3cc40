"""Modmail - relays Discord DMs to staff forum threads and back."""

__version__ = "0.1.0"
