"""Vector processing modules for cropphase."""

from .boundary import Region, load_admin_boundaries, resolve_region

__all__ = [
    "Region",
    "load_admin_boundaries",
    "resolve_region",
]
