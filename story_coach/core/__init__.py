"""Core infrastructure: settings, exceptions, logging."""
