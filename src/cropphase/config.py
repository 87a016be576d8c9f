"""
Configuration management for cropphase.

Handles loading configuration from INI files and environment variables.
"""

import os
from configparser import ConfigParser
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .pipeline.classify import PhaseScheme


@dataclass
class DataPaths:
    """Paths to input data sources."""

    land_cover: Path  # Land-cover classification raster (e.g. ESA WorldCover)
    vegetation_index: Path  # Directory of dated NDVI + QA scenes
    admin_boundaries: Path  # Administrative boundary layer (e.g. GAUL level 2)


@dataclass
class MaskParams:
    """Cropland scattering and patch filter parameters."""

    crop_class_code: int = 40  # WorldCover "Cropland"
    keep_probability: float = 0.2
    component_connectivity: int = 4
    max_component_pixels: int = 100
    patch_connectivity: int = 8
    max_patch_pixels: int = 128
    min_patch_pixels: int = 150
    seed: Optional[int] = 0  # None draws fresh entropy every run


@dataclass
class ProcessingParams:
    """Processing parameters."""

    # Analysis period, end exclusive
    start_date: date = date(2020, 1, 1)
    end_date: date = date(2020, 12, 31)

    # Vegetation-index scene layout
    index_band: int = 1
    quality_band: int = 2
    quality_bit: int = 0
    scale_factor: float = 0.0001

    # Analysis grid
    target_crs: str = "EPSG:4326"
    target_resolution: float = 250.0  # meters

    # Phase classification
    phase_scheme: str = "five_class"
    breakpoints: Optional[list[float]] = None  # Overrides the scheme
    below_category: Optional[int] = None  # Overrides the scheme; -1 means no-data

    # Performance
    n_jobs: int = 1


@dataclass
class OutputPaths:
    """Paths for output data."""

    base_dir: Path
    frames_dir: Optional[Path] = None
    snapshots_dir: Optional[Path] = None

    def __post_init__(self):
        """Set default subdirectories if not specified."""
        if self.frames_dir is None:
            self.frames_dir = self.base_dir / "frames"
        if self.snapshots_dir is None:
            self.snapshots_dir = self.base_dir / "snapshots"


@dataclass
class CropPhaseConfig:
    """Complete cropphase configuration."""

    data: DataPaths
    output: OutputPaths
    region: list[tuple[str, str]]  # Ordered (field, value) boundary filters
    mask: MaskParams = field(default_factory=MaskParams)
    params: ProcessingParams = field(default_factory=ProcessingParams)
    mode: str = "animation"  # 'animation' or 'snapshots'

    @classmethod
    def from_ini(cls, ini_path: Path) -> "CropPhaseConfig":
        """Load configuration from INI file."""
        parser = ConfigParser()
        if not parser.read(ini_path):
            raise FileNotFoundError(f"Config file not found: {ini_path}")

        # Data paths
        data = DataPaths(
            land_cover=Path(parser.get("data", "land_cover")),
            vegetation_index=Path(parser.get("data", "vegetation_index")),
            admin_boundaries=Path(parser.get("data", "admin_boundaries")),
        )

        # Region filters, one "FIELD = value" per line
        region = parse_region_filters(parser.get("region", "filters", fallback=""))

        # Cropland mask params
        defaults = MaskParams()
        mask = MaskParams(
            crop_class_code=parser.getint("mask", "crop_class_code", fallback=defaults.crop_class_code),
            keep_probability=parser.getfloat("mask", "keep_probability", fallback=defaults.keep_probability),
            component_connectivity=parser.getint(
                "mask", "component_connectivity", fallback=defaults.component_connectivity
            ),
            max_component_pixels=parser.getint(
                "mask", "max_component_pixels", fallback=defaults.max_component_pixels
            ),
            patch_connectivity=parser.getint("mask", "patch_connectivity", fallback=defaults.patch_connectivity),
            max_patch_pixels=parser.getint("mask", "max_patch_pixels", fallback=defaults.max_patch_pixels),
            min_patch_pixels=parser.getint("mask", "min_patch_pixels", fallback=defaults.min_patch_pixels),
            seed=parse_optional_int(parser.get("mask", "seed", fallback="0")),
        )

        # Processing params
        breakpoints = parser.get("params", "breakpoints", fallback="").strip()
        params = ProcessingParams(
            start_date=date.fromisoformat(parser.get("params", "start_date", fallback="2020-01-01")),
            end_date=date.fromisoformat(parser.get("params", "end_date", fallback="2020-12-31")),
            index_band=parser.getint("params", "index_band", fallback=1),
            quality_band=parser.getint("params", "quality_band", fallback=2),
            quality_bit=parser.getint("params", "quality_bit", fallback=0),
            scale_factor=parser.getfloat("params", "scale_factor", fallback=0.0001),
            target_crs=parser.get("params", "target_crs", fallback="EPSG:4326"),
            target_resolution=parser.getfloat("params", "target_resolution", fallback=250.0),
            phase_scheme=parser.get("params", "phase_scheme", fallback="five_class"),
            breakpoints=[float(v) for v in breakpoints.split(",")] if breakpoints else None,
            below_category=parse_below_category(parser.get("params", "below_category", fallback="")),
            n_jobs=parser.getint("params", "n_jobs", fallback=1),
        )

        # Output paths
        output = OutputPaths(
            base_dir=Path(parser.get("output", "base_dir")),
        )

        mode = parser.get("processing", "mode", fallback="animation")

        return cls(data=data, output=output, region=region, mask=mask, params=params, mode=mode)

    def phase_scheme(self) -> "PhaseScheme":
        """Resolve the configured phase scheme, applying any overrides."""
        from .pipeline.classify import PHASE_SCHEMES

        try:
            scheme = PHASE_SCHEMES[self.params.phase_scheme]
        except KeyError:
            raise ValueError(
                f"Unknown phase scheme: {self.params.phase_scheme} "
                f"(expected one of {sorted(PHASE_SCHEMES)})"
            ) from None

        if self.params.breakpoints is not None:
            scheme = scheme.with_breakpoints(self.params.breakpoints)
        if self.params.below_category is not None:
            below = self.params.below_category
            scheme = scheme.with_below_category(None if below < 0 else below)
        return scheme

    def ensure_directories(self):
        """Create output directories if they don't exist."""
        self.output.base_dir.mkdir(parents=True, exist_ok=True)
        self.output.frames_dir.mkdir(parents=True, exist_ok=True)
        self.output.snapshots_dir.mkdir(parents=True, exist_ok=True)


def parse_region_filters(text: str) -> list[tuple[str, str]]:
    """
    Parse boundary filters written one per line as ``FIELD = value``.

    Args:
        text: Raw multi-line option value

    Returns:
        Ordered list of (field, value) pairs
    """
    filters = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        if "=" not in line:
            raise ValueError(f"Malformed region filter (expected FIELD = value): {line!r}")
        name, value = line.split("=", 1)
        filters.append((name.strip(), value.strip()))
    return filters


def parse_optional_int(text: str) -> Optional[int]:
    """Parse an integer option where blank or 'none' mean unset."""
    text = text.strip()
    if not text or text.lower() == "none":
        return None
    return int(text)


def parse_below_category(text: str) -> Optional[int]:
    """Parse the below-lowest-breakpoint override; 'nodata' or 'none' map to -1."""
    if text.strip().lower() in ("nodata", "none"):
        return -1
    return parse_optional_int(text)


def load_config(config_path: Optional[Path] = None) -> CropPhaseConfig:
    """
    Load configuration from file or environment.

    Args:
        config_path: Path to INI config file. If None, looks for:
            1. CROPPHASE_CONFIG environment variable
            2. ./config/cropphase.ini
            3. ~/.cropphase/config.ini

    Returns:
        CropPhaseConfig instance
    """
    if config_path is None:
        # Check environment variable
        env_path = os.environ.get("CROPPHASE_CONFIG")
        if env_path:
            config_path = Path(env_path)
        # Check local config
        elif Path("config/cropphase.ini").exists():
            config_path = Path("config/cropphase.ini")
        # Check user config
        elif Path.home().joinpath(".cropphase/config.ini").exists():
            config_path = Path.home() / ".cropphase" / "config.ini"
        else:
            raise FileNotFoundError(
                "No configuration file found. Provide path or set CROPPHASE_CONFIG env var."
            )

    return CropPhaseConfig.from_ini(config_path)
