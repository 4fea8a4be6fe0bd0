from __future__ import annotations
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from ..errors import InvalidConfig


class LivenessConfig(BaseModel):
    """Thresholds and timings of one liveness session. Durations in milliseconds."""
    model_config = ConfigDict(extra="forbid", frozen=True, allow_inf_nan=False)

    ear_close_threshold: float = Field(0.18, gt=0)
    ear_open_margin: float = Field(0.03, gt=0)
    ear_close_min_ms: float = Field(120, gt=0)
    blink_refractory_ms: float = Field(250, gt=0)
    yaw_abs_threshold: float = Field(0.55, gt=0)
    yaw_hold_min_ms: float = Field(250, gt=0)
    ema_alpha_ear: float = Field(0.35, gt=0, le=1)
    ema_alpha_yaw: float = Field(0.25, gt=0, le=1)
    # advisory unless enforce_session_window is set
    session_window_ms: float = Field(8000, gt=0)
    enforce_session_window: bool = False

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise InvalidConfig(str(e)) from e

    @property
    def ear_open_threshold(self) -> float:
        return self.ear_close_threshold + self.ear_open_margin

    @model_validator(mode="after")
    def check_open_above_close(self):
        if not self.ear_open_threshold > self.ear_close_threshold:
            raise ValueError("ear open threshold must lie above the close threshold")
        return self


def make_config(**overrides: Any) -> LivenessConfig:
    return LivenessConfig(**overrides)


def revalidate(cfg: LivenessConfig) -> LivenessConfig:
    """Re-run validation on an instance that may have skipped it (model_copy, model_construct)."""
    return LivenessConfig(**cfg.model_dump())


def load_config(path: str|Path, **overrides: Any) -> LivenessConfig:
    """Read a YAML mapping of LivenessConfig fields; keyword overrides win over the file."""
    with open(path, "r") as f: data = yaml.safe_load(f)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidConfig(f"{path}: expected a mapping, got {type(data).__name__}")
    data.update({k: v for k, v in overrides.items() if v is not None})
    return make_config(**data)


def dump_config(cfg: LivenessConfig) -> str:
    return yaml.safe_dump(cfg.model_dump(), sort_keys=False)


def resolve_config(path: Optional[str|Path] = None, **overrides: Any) -> LivenessConfig:
    """Config file if given (and present), else defaults; None-valued overrides are ignored."""
    if path is not None:
        if not Path(path).exists():
            raise InvalidConfig(f"config file not found: {path}")
        return load_config(path, **overrides)
    return make_config(**{k: v for k, v in overrides.items() if v is not None})
