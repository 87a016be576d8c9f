"""
Phase raster visualization.

Colorizes phase rasters with a scheme palette, paints the region outline
over them, and writes the resulting layers through an explicit
DisplaySession that owns everything it has rendered.
"""

import json
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import numpy as np
import rasterio
from rasterio.features import rasterize

from ..raster.model import Raster

if TYPE_CHECKING:
    from ..pipeline.classify import PhaseScheme


def hex_to_rgb(color: str) -> tuple[int, int, int]:
    """Convert '#RRGGBB' to an (r, g, b) tuple."""
    color = color.lstrip("#")
    if len(color) != 6:
        raise ValueError(f"Expected a #RRGGBB color, got {color!r}")
    return tuple(int(color[i:i + 2], 16) for i in (0, 2, 4))


def visualize(raster: Raster, palette: dict[int, str]) -> np.ndarray:
    """
    Colorize a categorical raster.

    Args:
        raster: Phase raster
        palette: Mapping of category code to '#RRGGBB'

    Returns:
        uint8 array of shape (4, height, width): RGBA, no-data and
        categories without a color are transparent
    """
    height, width = raster.shape
    rgba = np.zeros((4, height, width), dtype=np.uint8)
    values = np.asarray(raster.data.data)
    valid = raster.valid

    for code, color in palette.items():
        pixels = valid & (values == code)
        r, g, b = hex_to_rgb(color)
        rgba[0][pixels] = r
        rgba[1][pixels] = g
        rgba[2][pixels] = b
        rgba[3][pixels] = 255

    return rgba


def paint_boundary(
    rgba: np.ndarray,
    geometry,
    transform,
    color: str = "#FFFFFF",
) -> np.ndarray:
    """
    Paint a region outline onto an RGBA image.

    Args:
        rgba: (4, height, width) uint8 image
        geometry: Region geometry in the image CRS
        transform: Image affine transform
        color: Outline color

    Returns:
        New RGBA array with the outline drawn
    """
    outline = rasterize(
        [(geometry.boundary, 1)],
        out_shape=rgba.shape[1:],
        transform=transform,
        fill=0,
        all_touched=True,
        dtype="uint8",
    ).astype(bool)

    painted = rgba.copy()
    for band, value in enumerate(hex_to_rgb(color)):
        painted[band][outline] = value
    painted[3][outline] = 255
    return painted


def legend_entries(scheme: "PhaseScheme") -> list[dict]:
    """Legend rows (code, color, label) for a scheme, in code order."""
    return [
        {"code": code, "color": scheme.palette[code], "label": scheme.labels.get(code, str(code))}
        for code in sorted(scheme.palette)
    ]


class DisplaySession:
    """
    Owned rendering surface for one pipeline run.

    Layers are written as RGBA GeoTIFFs under ``output_dir`` and recorded
    in order; nothing is shared between sessions.
    """

    def __init__(
        self,
        output_dir: Path,
        scheme: "PhaseScheme",
        boundary=None,
        boundary_color: str = "#FFFFFF",
    ):
        self.output_dir = Path(output_dir)
        self.scheme = scheme
        self.boundary = boundary
        self.boundary_color = boundary_color
        self.layers: list[dict] = []

    def render(self, raster: Raster, palette: Optional[dict[int, str]] = None) -> np.ndarray:
        """Colorize a raster with the scheme palette and paint the boundary."""
        rgba = visualize(raster, palette if palette is not None else self.scheme.palette)
        if self.boundary is not None:
            rgba = paint_boundary(rgba, self.boundary, raster.transform, self.boundary_color)
        return rgba

    def add_layer(
        self,
        name: str,
        raster: Raster,
        palette: Optional[dict[int, str]] = None,
    ) -> Path:
        """
        Render a raster and write it as an RGBA GeoTIFF layer.

        Args:
            name: Layer name, also used as the file stem
            raster: Categorical raster to render
            palette: Optional palette overriding the scheme's

        Returns:
            Path to the written layer
        """
        rgba = self.render(raster, palette)
        output_path = self.output_dir / f"{name}.tif"

        height, width = raster.shape
        profile = {
            "driver": "GTiff",
            "dtype": "uint8",
            "width": width,
            "height": height,
            "count": 4,
            "crs": raster.crs,
            "transform": raster.transform,
            "compress": "lzw",
        }

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with rasterio.open(output_path, "w", **profile) as dst:
            dst.write(rgba)
            if raster.timestamp is not None:
                dst.update_tags(timestamp=raster.timestamp.isoformat())

        self.layers.append({
            "name": name,
            "path": output_path.name,
            "timestamp": raster.timestamp.isoformat() if raster.timestamp is not None else None,
        })
        return output_path

    def write_legend(self, title: str = "NDVI Phase Classification") -> Path:
        """Write legend.json describing the scheme and the rendered layers."""
        legend_path = self.output_dir / "legend.json"
        legend_path.parent.mkdir(parents=True, exist_ok=True)

        with open(legend_path, "w") as f:
            json.dump(
                {
                    "title": title,
                    "scheme": self.scheme.name,
                    "breakpoints": list(self.scheme.breakpoints),
                    "entries": legend_entries(self.scheme),
                    "layers": self.layers,
                },
                f,
                indent=2,
            )

        return legend_path
