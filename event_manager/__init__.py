"""Event Manager: multi-user event scheduling backend."""

__version__ = "0.1.0"
