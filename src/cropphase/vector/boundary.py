"""
Administrative boundary resolution.

Looks up a single region in an administrative boundary layer (e.g. FAO
GAUL level 2) by ANDing equality filters on its name fields.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Union

import geopandas as gpd
import numpy as np
from pyproj import CRS
from shapely.validation import make_valid

from ..exceptions import ResolutionError


@dataclass(frozen=True)
class Region:
    """A resolved administrative region."""

    filters: tuple[tuple[str, str], ...]
    geometry: object  # shapely Polygon or MultiPolygon
    crs: CRS

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(minx, miny, maxx, maxy) in region CRS units."""
        return tuple(self.geometry.bounds)

    @property
    def name(self) -> str:
        """Most specific filter value, e.g. the district name."""
        return self.filters[-1][1] if self.filters else "region"

    def to_crs(self, crs) -> "Region":
        """Return the region reprojected to another CRS."""
        target = CRS.from_user_input(crs)
        if target == self.crs:
            return self

        geometry = gpd.GeoSeries([self.geometry], crs=self.crs).to_crs(target).iloc[0]
        return Region(filters=self.filters, geometry=geometry, crs=target)


def load_admin_boundaries(boundaries_path: Path) -> gpd.GeoDataFrame:
    """
    Load an administrative boundary layer.

    Args:
        boundaries_path: Path to GeoPackage, GeoJSON or shapefile

    Returns:
        GeoDataFrame of boundary polygons
    """
    return gpd.read_file(boundaries_path)


def resolve_region(
    boundaries: Union[gpd.GeoDataFrame, Path],
    filters: Sequence[tuple[str, str]],
    crs=None,
) -> Region:
    """
    Resolve exactly one region from equality filters.

    Filters are ANDed, e.g. ``[("ADM1_NAME", "Chhattisgarh"),
    ("ADM2_NAME", "Dhamtari")]``.

    Args:
        boundaries: Boundary GeoDataFrame or a path to load one from
        filters: Ordered (field, value) equality constraints
        crs: Optional CRS to reproject the region geometry to

    Returns:
        Region

    Raises:
        ResolutionError: If a field is missing, or zero or several
            features match
    """
    if not isinstance(boundaries, gpd.GeoDataFrame):
        boundaries = load_admin_boundaries(Path(boundaries))

    if boundaries.crs is None:
        raise ResolutionError("Boundary layer has no CRS")

    selected = np.ones(len(boundaries), dtype=bool)
    for field_name, value in filters:
        if field_name not in boundaries.columns:
            raise ResolutionError(f"Boundary layer has no field {field_name!r}")
        selected &= (boundaries[field_name].astype(str) == str(value)).to_numpy()

    matches = boundaries[selected]
    description = " AND ".join(f"{f} = {v!r}" for f, v in filters) or "<no filters>"

    if len(matches) == 0:
        raise ResolutionError(f"No boundary matches {description}")
    if len(matches) > 1:
        raise ResolutionError(f"{len(matches)} boundaries match {description}; expected exactly one")

    geometry = matches.geometry.iloc[0]
    if not geometry.is_valid:
        geometry = make_valid(geometry)

    region = Region(
        filters=tuple((str(f), str(v)) for f, v in filters),
        geometry=geometry,
        crs=CRS.from_user_input(boundaries.crs),
    )

    if crs is not None:
        region = region.to_crs(crs)

    return region
