"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import ConfigurationError


class ObjectType(str, Enum):
    """Object classes the height priors are defined for."""
    PERSON = "person"
    CAR = "car"


@dataclass(frozen=True)
class HeightPrior:
    """Mean and standard deviation of an object class's real-world height (meters)."""
    mean: float
    std: float

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HeightPrior":
        return cls(mean=float(d["mean"]), std=float(d["std"]))

    def to_dict(self) -> Dict[str, Any]:
        return {"mean": self.mean, "std": self.std}


def _default_height_priors() -> Dict[ObjectType, HeightPrior]:
    return {
        ObjectType.PERSON: HeightPrior(mean=1.7, std=0.1),
        ObjectType.CAR: HeightPrior(mean=1.5, std=0.2),
    }


# Keys the manager parses itself; all of them are also forwarded to the nodes.
MANAGER_PARAMETERS = (
    "min_height",
    "max_height",
    "total_weight",
    "feat_sigma_u",
    "feat_sigma_v",
    "mean_horizon",
    "std_horizon",
)


def parse_float(name: str, value: Union[str, float, int]) -> float:
    """Parse a configuration value as float, raising ConfigurationError on failure."""
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


def parse_object_type(value: Union[str, ObjectType]) -> ObjectType:
    """Parse an object class name, raising ConfigurationError for unknown classes."""
    try:
        return ObjectType(value)
    except ValueError as e:
        raise ConfigurationError(f"Unknown object_type {value!r}") from e


@dataclass
class ObservationParams:
    """
    Scoring and association parameters.

    Attributes:
        min_height: Smallest plausible object height (meters).
        max_height: Largest plausible object height (meters).
        total_weight: Global weight applied to summed detector confidences.
        feat_sigma_u: Feature reprojection standard deviation along image columns.
        feat_sigma_v: Feature reprojection standard deviation along image rows.
        mean_horizon: Prior mean horizon row. 0 disables the prior.
        std_horizon: Prior horizon standard deviation (rows).
        out_of_height_penalty: Score returned for objects outside the height range.
        feature_nan_penalty: Score returned when a feature likelihood is undefined.
        horizon_search_radius: Half-width of the horizon calibration window (rows).
        feature_detector: Detector type requested from the feature tracker.
        parallel_preprocess: Run node preprocessing on a thread pool.
        max_workers: Thread pool size. None lets the executor decide.
        object_type: Object class whose height prior drives horizon votes.
        height_priors: Height prior per object class.
    """
    min_height: float = 1.3
    max_height: float = 2.3
    total_weight: float = 1.0
    feat_sigma_u: float = 2.0
    feat_sigma_v: float = 2.0
    mean_horizon: float = 0.0
    std_horizon: float = 0.0
    out_of_height_penalty: float = -15.0
    feature_nan_penalty: float = -100.0
    horizon_search_radius: int = 200
    feature_detector: str = "SURF"
    parallel_preprocess: bool = False
    max_workers: Optional[int] = None
    object_type: ObjectType = ObjectType.PERSON
    height_priors: Dict[ObjectType, HeightPrior] = field(default_factory=_default_height_priors)

    @property
    def has_horizon_prior(self) -> bool:
        return self.mean_horizon != 0

    def height_prior(self, object_type: Optional[ObjectType] = None) -> HeightPrior:
        """Height prior for the given (or configured) object class."""
        object_type = object_type or self.object_type
        try:
            return self.height_priors[object_type]
        except KeyError as e:
            raise ConfigurationError(f"No height prior configured for object type '{object_type}'") from e

    def with_parameter(self, name: str, value: Union[str, float, int]) -> "ObservationParams":
        """
        Return a copy with one manager-level parameter parsed and replaced.

        Unrecognized names return self unchanged.
        """
        if name not in MANAGER_PARAMETERS:
            return self
        return replace(self, **{name: parse_float(name, value)})

    def with_object_type(self, object_type: Union[str, ObjectType]) -> "ObservationParams":
        """Return a copy targeting another object class."""
        return replace(self, object_type=parse_object_type(object_type))

    def copy(self) -> "ObservationParams":
        """Independent copy; the height prior table is not shared."""
        return replace(self, height_priors=dict(self.height_priors))

    def manager_parameters(self) -> Dict[str, float]:
        """The manager-level parameters as they are broadcast to nodes."""
        return {name: getattr(self, name) for name in MANAGER_PARAMETERS}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ObservationParams":
        """Adapter: Create from the `observation` config section."""
        defaults = cls()
        kwargs: Dict[str, Any] = {}
        float_fields = MANAGER_PARAMETERS + ("out_of_height_penalty", "feature_nan_penalty")
        for name in float_fields:
            if name in d:
                kwargs[name] = parse_float(name, d[name])
        if "horizon_search_radius" in d:
            kwargs["horizon_search_radius"] = int(parse_float("horizon_search_radius", d["horizon_search_radius"]))
        kwargs["feature_detector"] = str(d.get("feature_detector", defaults.feature_detector))
        kwargs["parallel_preprocess"] = bool(d.get("parallel_preprocess", defaults.parallel_preprocess))
        kwargs["max_workers"] = d.get("max_workers", defaults.max_workers)
        kwargs["object_type"] = parse_object_type(d.get("object_type", defaults.object_type.value))

        priors = _default_height_priors()
        for key, prior in (d.get("height_priors") or {}).items():
            try:
                priors[ObjectType(key)] = HeightPrior.from_dict(prior)
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid height prior for {key!r}: {prior!r}") from e
        kwargs["height_priors"] = priors
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "object_type":
                value = value.value
            elif f.name == "height_priors":
                value = {k.value: v.to_dict() for k, v in value.items()}
            d[f.name] = value
        return d


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    observation: ObservationParams = field(default_factory=ObservationParams)
    vp_estimate_file: Optional[str] = None
    log_path: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            observation=ObservationParams.from_dict(d.get("observation", {}) or {}),
            vp_estimate_file=d.get("vp_estimate_file"),
            log_path=d.get("log_path"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        d: Dict[str, Any] = {
            "observation": self.observation.to_dict(),
            "log_level": self.log_level,
        }
        if self.vp_estimate_file is not None:
            d["vp_estimate_file"] = self.vp_estimate_file
        if self.log_path is not None:
            d["log_path"] = self.log_path
        return d
