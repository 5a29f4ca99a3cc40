"""Platform adapters for modmail."""
