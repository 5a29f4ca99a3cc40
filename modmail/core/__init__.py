"""Core session directory, recovery, relay and lifecycle logic."""
