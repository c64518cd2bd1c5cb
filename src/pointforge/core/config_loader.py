"""JSON config file loading utilities."""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional, Union

from pointforge.constants import CONFIG_DIR, DEFAULT_MODEL_CONFIG, REFERENCE_HEIGHT

logger = logging.getLogger(__name__)


def load_json(path: Path) -> Any:
    """Load and return parsed JSON from a file."""
    with open(path) as f:
        return json.load(f)


def load_config(name: str) -> Any:
    """Load a config file from the packaged assets/config/."""
    return load_json(CONFIG_DIR / name)


@dataclass
class ModelConfig:
    """Construction parameters for a PointingModel."""
    body_height: float = REFERENCE_HEIGHT
    point_with: str = "ignore"
    surface: dict[str, Any] = field(
        default_factory=lambda: {"type": "horizontal_plane", "point": [0.0, 0.0, 0.0]}
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModelConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown model config keys: %s", ", ".join(unknown))
        kwargs = {k: v for k, v in data.items() if k in known}
        if "body_height" in kwargs:
            kwargs["body_height"] = float(kwargs["body_height"])
        if "surface" in kwargs:
            kwargs["surface"] = dict(kwargs["surface"])
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "body_height": self.body_height,
            "point_with": self.point_with,
            "surface": dict(self.surface),
        }


def load_model_config(path: Optional[Union[str, Path]] = None) -> ModelConfig:
    """Load a ModelConfig from ``path``, or the packaged default."""
    if path is None:
        data = load_config(DEFAULT_MODEL_CONFIG)
    else:
        data = load_json(Path(path))
    return ModelConfig.from_dict(data)
