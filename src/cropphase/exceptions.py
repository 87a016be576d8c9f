"""Errors and warnings raised by the cropphase pipeline stages."""


class CropPhaseError(Exception):
    """Base class for cropphase errors."""


class ResolutionError(CropPhaseError, ValueError):
    """Boundary filters matched no region, or more than one."""


class EmptySeriesError(CropPhaseError, ValueError):
    """No vegetation-index raster matched the date and bounds filters."""


class InvalidBreakpointsError(CropPhaseError, ValueError):
    """Phase breakpoints are empty, non-finite, or not strictly ascending."""


class CapacitySaturationWarning(UserWarning):
    """A connected-group or patch count hit its pixel ceiling and was capped."""
