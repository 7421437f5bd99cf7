"""Exception types shared across sysdash."""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for errors that end a dashboard session."""


class ConfigError(DashboardError):
    """A configuration value is present but unusable."""


class ProviderError(DashboardError):
    """Collecting a metrics snapshot failed."""


class RenderError(DashboardError):
    """Drawing a frame to the terminal failed."""
