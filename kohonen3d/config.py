"""
Training configuration for the 3D Self-Organizing Map.

All parameters are collected in a single dataclass that validates itself on
construction, so an invalid configuration never reaches grid allocation.
"""
from dataclasses import asdict, dataclass, fields
from pathlib import Path

import yaml

from .errors import InvalidConfiguration, ResourceUnavailable


@dataclass(frozen=True)
class SOMConfig:
    """Parameters of a 3D SOM and its training schedule."""

    # Topology
    grid_x: int = 10
    grid_y: int = 10
    grid_z: int = 10
    input_size: int = 784  # 28x28 pixel images

    # Training
    epochs: int = 10
    initial_learning_rate: float = 0.1
    initial_sigma: float = 5.0

    random_seed: int | None = None

    def __post_init__(self):
        for name in ("grid_x", "grid_y", "grid_z", "input_size", "epochs"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
            if value <= 0:
                raise InvalidConfiguration(f"{name} must be > 0, got {value}")
        for name in ("initial_learning_rate", "initial_sigma"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConfiguration(f"{name} must be a number, got {value!r}")
            # `not value > 0` also rejects NaN
            if not value > 0:
                raise InvalidConfiguration(f"{name} must be > 0, got {value}")

    @property
    def grid_shape(self) -> tuple[int, int, int]:
        return self.grid_x, self.grid_y, self.grid_z

    @property
    def num_neurons(self) -> int:
        return self.grid_x * self.grid_y * self.grid_z

    @classmethod
    def from_dict(cls, values: dict) -> "SOMConfig":
        """Builds a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise InvalidConfiguration(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "SOMConfig":
        """
        Loads a config from a YAML mapping of field names to values.

        Raises:
            ResourceUnavailable: If the file cannot be opened.
            InvalidConfiguration: If the file is not valid YAML or holds bad values.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                values = yaml.safe_load(f) or {}
        except OSError as e:
            raise ResourceUnavailable(f"Could not open {path}: {e.strerror or e}") from e
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise InvalidConfiguration(f"{path}: not a valid YAML file: {e}") from None
        if not isinstance(values, dict):
            raise InvalidConfiguration(f"{path}: expected a mapping at the top level")
        return cls.from_dict(values)

    def to_yaml(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(asdict(self), f, default_flow_style=False, sort_keys=False)
