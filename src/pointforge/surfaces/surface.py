"""Target surface contract.

A surface answers one question, where does a ray hit it, and tells its
delegate when its own geometry changes.  Concrete surfaces satisfy these
protocols structurally; they do not inherit from them.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from pointforge.core.transform import Transform


@runtime_checkable
class SurfaceDelegate(Protocol):
    def on_parameter_changed(self, name: str, value: Any) -> None:
        """Called by a surface after one of its geometry parameters changed."""
        ...


@runtime_checkable
class Surface(Protocol):
    delegate: Optional[SurfaceDelegate]

    def intersect(self, ray: Transform) -> Optional[Transform]:
        """Intersect a ray (origin + X axis as direction) with the surface.

        Returns the hit pose, or None when there is no intersection.
        """
        ...
