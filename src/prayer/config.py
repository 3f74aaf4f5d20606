"""Render configuration files.

A configuration file is TOML with three tables:

    [params]    resolution, samples, max_light_bounces, exposure, gamma
    [camera]    eye, target, up, vfov (optional; defaults to CameraParams())
    [scene]     environment, materials and objects (see Scene.from_dict)

Example:
    >>> from prayer.config import load_config
    >>> config = load_config("scenes/spheres.toml")
    >>> config.params.resolution
    (640, 480)
"""

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from prayer.camera.pinhole import Camera, CameraParams
from prayer.core.integrator import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH
from prayer.errors import ConfigError
from prayer.scene.manager import Scene

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderParams:
    """Image and sampling parameters of a render.

    Attributes:
        resolution: (width, height) in pixels.
        samples: Paths averaged per pixel.
        max_light_bounces: Maximum surface interactions per path.
        exposure: Exposure multiplier for tone mapping.
        gamma: Display gamma.
    """

    resolution: tuple[int, int] = (640, 480)
    samples: int = 64
    max_light_bounces: int = 5
    exposure: float = 1.0
    gamma: float = 2.2

    def validate(self) -> None:
        """Check every parameter.

        Raises:
            ConfigError: If a parameter is out of range.
        """
        width, height = self.resolution
        if not (0 < width <= MAX_IMAGE_WIDTH and 0 < height <= MAX_IMAGE_HEIGHT):
            raise ConfigError(
                f"resolution must be within 1x1 and {MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}, "
                f"got {width}x{height}"
            )
        if self.samples < 1:
            raise ConfigError(f"samples must be at least 1, got {self.samples}")
        if self.max_light_bounces < 0:
            raise ConfigError(
                f"max_light_bounces must be non-negative, got {self.max_light_bounces}"
            )
        if not self.exposure > 0.0:
            raise ConfigError(f"exposure must be positive, got {self.exposure}")
        if not self.gamma > 0.0:
            raise ConfigError(f"gamma must be positive, got {self.gamma}")


@dataclass
class UserConfig:
    """Everything needed for one render.

    Attributes:
        params: Image and sampling parameters.
        camera: Camera placement.
        scene: The scene to render.
    """

    params: RenderParams = field(default_factory=RenderParams)
    camera: CameraParams = field(default_factory=CameraParams)
    scene: Scene = field(default_factory=Scene)

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: str | Path | None = None) -> "UserConfig":
        """Build and validate a configuration from parsed TOML.

        Args:
            data: Dictionary with 'params', optional 'camera' and 'scene'.
            base_dir: Directory relative texture paths are resolved against.

        Returns:
            The validated configuration.

        Raises:
            ConfigError: If any part of the configuration is invalid.
        """
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a table")
        unknown = set(data) - {"params", "camera", "scene"}
        if unknown:
            raise ConfigError(f"unknown top-level keys: {', '.join(sorted(unknown))}")

        params = _params_from_dict(_table(data, "params"))
        camera = _camera_from_dict(_table(data, "camera"))

        try:
            scene = Scene.from_dict(_table(data, "scene"), base_dir)
        except (ValueError, TypeError, RuntimeError, OSError) as e:
            raise ConfigError(f"scene: {e}") from e

        return cls(params=params, camera=camera, scene=scene)

    def to_dict(self) -> dict[str, Any]:
        """Export the configuration in the layout accepted by from_dict."""
        return {
            "params": {
                "resolution": list(self.params.resolution),
                "samples": self.params.samples,
                "max_light_bounces": self.params.max_light_bounces,
                "exposure": self.params.exposure,
                "gamma": self.params.gamma,
            },
            "camera": {
                "eye": list(self.camera.eye),
                "target": list(self.camera.target),
                "up": list(self.camera.up),
                "vfov": self.camera.vfov,
            },
            "scene": self.scene.to_dict(),
        }

    def with_overrides(self, **overrides: Any) -> "UserConfig":
        """Return a copy with some render parameters replaced and revalidated.

        Keyword arguments whose value is None are ignored.

        Raises:
            ConfigError: If the resulting parameters are invalid.
        """
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        try:
            params = replace(self.params, **changes)
        except TypeError as e:
            raise ConfigError(str(e)) from e
        params.validate()
        return UserConfig(params=params, camera=self.camera, scene=self.scene)


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{key}] must be a table")
    return value


def _number(table: dict[str, Any], key: str, default: float, section: str) -> float:
    value = table.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{section}.{key} must be a number, got {value!r}")
    return float(value)


def _integer(table: dict[str, Any], key: str, default: int, section: str) -> int:
    value = table.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{section}.{key} must be an integer, got {value!r}")
    return value


def _vector(table: dict[str, Any], key: str, default: tuple, section: str) -> tuple:
    value = table.get(key, default)
    if not isinstance(value, (list, tuple)) or len(value) != len(default):
        raise ConfigError(f"{section}.{key} must be a list of {len(default)} numbers")
    for component in value:
        if isinstance(component, bool) or not isinstance(component, (int, float)):
            raise ConfigError(f"{section}.{key} must be a list of {len(default)} numbers")
    return tuple(value)


def _params_from_dict(table: dict[str, Any]) -> RenderParams:
    defaults = RenderParams()
    unknown = set(table) - {"resolution", "samples", "max_light_bounces", "exposure", "gamma"}
    if unknown:
        raise ConfigError(f"unknown keys in [params]: {', '.join(sorted(unknown))}")

    resolution = _vector(table, "resolution", defaults.resolution, "params")
    if not all(isinstance(c, int) for c in resolution):
        raise ConfigError("params.resolution must be a list of 2 integers")

    params = RenderParams(
        resolution=(resolution[0], resolution[1]),
        samples=_integer(table, "samples", defaults.samples, "params"),
        max_light_bounces=_integer(table, "max_light_bounces", defaults.max_light_bounces, "params"),
        exposure=_number(table, "exposure", defaults.exposure, "params"),
        gamma=_number(table, "gamma", defaults.gamma, "params"),
    )
    params.validate()
    return params


def _camera_from_dict(table: dict[str, Any]) -> CameraParams:
    defaults = CameraParams()
    unknown = set(table) - {"eye", "target", "up", "vfov"}
    if unknown:
        raise ConfigError(f"unknown keys in [camera]: {', '.join(sorted(unknown))}")

    vfov = _number(table, "vfov", defaults.vfov, "camera")
    if not 0.0 < vfov < 180.0:
        raise ConfigError(f"camera.vfov must be between 0 and 180 degrees, got {vfov}")

    camera = CameraParams(
        eye=tuple(float(c) for c in _vector(table, "eye", defaults.eye, "camera")),
        target=tuple(float(c) for c in _vector(table, "target", defaults.target, "camera")),
        up=tuple(float(c) for c in _vector(table, "up", defaults.up, "camera")),
        vfov=vfov,
    )
    try:
        Camera.from_params(camera, aspect_ratio=1.0)
    except ValueError as e:
        raise ConfigError(f"camera: {e}") from e
    return camera


def load_config(path: str | Path) -> UserConfig:
    """Read and validate a TOML configuration file.

    Texture paths inside the file are resolved relative to its directory.

    Args:
        path: Path to the configuration file.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file cannot be read or parsed, or is invalid.
    """
    path = Path(path)
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{path}: {e}") from e

    config = UserConfig.from_dict(data, base_dir=path.parent)
    logger.debug(
        "Loaded %s: %d materials, %d objects",
        path,
        config.scene.get_material_count(),
        config.scene.get_object_count(),
    )
    return config
