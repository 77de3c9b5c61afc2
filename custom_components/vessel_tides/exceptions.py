"""Exceptions raised inside Vessel Tides.

The coordinator is the only place these are converted into status/UpdateFailed.
"""


class TideError(Exception):
    """Base class for all integration errors."""


class TideProviderError(TideError):
    """A single tide source failed (HTTP, timeout, payload shape)."""


class TideDataError(TideError):
    """Data is insufficient for the requested operation (no extremes, horizon exhausted)."""


class HarmonicsCatalogError(TideError):
    """The remote harmonic catalog could not be read."""
