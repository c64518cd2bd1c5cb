"""Target surfaces for pointing-ray intersection."""

from pointforge.surfaces.plane import HorizontalPlane, Plane, surface_from_config
from pointforge.surfaces.surface import Surface, SurfaceDelegate

__all__ = [
    "HorizontalPlane",
    "Plane",
    "Surface",
    "SurfaceDelegate",
    "surface_from_config",
]
