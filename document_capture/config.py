"""
Pipeline configuration
"""

import os
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

from .edge_map import EDGE_METHODS
from .enhancer import enhancement_names

ENV_PREFIX = "SCANNER_"

# Environment variable suffix -> field name
_ENV_FIELDS = {
    "MIN_AREA_RATIO": "min_area_ratio",
    "APPROX_EPSILON": "approx_epsilon_factor",
    "STABLE_FRAMES": "required_stable_frames",
    "MAX_CORNER_MOVEMENT_PX": "max_corner_movement_px",
    "EDGE_METHOD": "edge_method",
    "ANALYSIS_FPS": "analysis_fps",
    "ANALYSIS_MAX_DIM": "analysis_max_dim",
    "FRAME_BUDGET_MS": "frame_budget_ms",
    "CAPTURE_COOLDOWN_S": "capture_cooldown_s",
    "ENHANCEMENT": "enhancement",
    "LOG_LEVEL": "log_level",
}


@dataclass(frozen=True)
class PipelineConfig:
    # Detection
    min_area_ratio: float = 0.10
    approx_epsilon_factor: float = 0.02
    edge_method: str = "canny"

    # Stability
    required_stable_frames: int = 3
    max_corner_movement_px: float = 8.0

    # Live preview analysis
    analysis_fps: float = 5.0
    analysis_max_dim: int = 1024
    frame_budget_ms: float = 66.0
    capture_cooldown_s: float = 2.0

    # Applied to every capture
    enhancement: str = "original"

    # Logging
    log_level: str = "INFO"

    def validate(self) -> "PipelineConfig":
        """Raise ValueError for out-of-range settings, return self otherwise."""
        if not 0.0 < self.min_area_ratio < 1.0:
            raise ValueError(f"min_area_ratio must be in (0, 1), got {self.min_area_ratio}")
        if not 0.0 < self.approx_epsilon_factor < 1.0:
            raise ValueError(f"approx_epsilon_factor must be in (0, 1), got {self.approx_epsilon_factor}")
        if self.edge_method not in EDGE_METHODS:
            raise ValueError(f"edge_method must be one of {EDGE_METHODS}, got '{self.edge_method}'")
        if self.required_stable_frames < 1:
            raise ValueError(f"required_stable_frames must be >= 1, got {self.required_stable_frames}")
        if self.max_corner_movement_px < 0:
            raise ValueError(f"max_corner_movement_px must be >= 0, got {self.max_corner_movement_px}")
        if self.analysis_fps <= 0:
            raise ValueError(f"analysis_fps must be positive, got {self.analysis_fps}")
        if self.analysis_max_dim < 16:
            raise ValueError(f"analysis_max_dim must be >= 16, got {self.analysis_max_dim}")
        if self.frame_budget_ms <= 0:
            raise ValueError(f"frame_budget_ms must be positive, got {self.frame_budget_ms}")
        if self.capture_cooldown_s < 0:
            raise ValueError(f"capture_cooldown_s must be >= 0, got {self.capture_cooldown_s}")
        if self.enhancement not in enhancement_names():
            raise ValueError(f"enhancement must be one of {enhancement_names()}, got '{self.enhancement}'")
        return self

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **overrides) -> "PipelineConfig":
        """
        Build a config from SCANNER_* environment variables.

        Values from a .env file are loaded first (existing variables win);
        keyword overrides win over both.

        Args:
            env_file: Explicit .env path (default: search from the working directory)
            **overrides: Field values that take precedence

        Returns:
            Validated PipelineConfig
        """
        load_dotenv(env_file)

        types = {f.name: f.type for f in fields(cls)}
        values = {}
        for suffix, name in _ENV_FIELDS.items():
            raw = os.getenv(ENV_PREFIX + suffix)
            if raw is None or raw.strip() == "":
                continue
            try:
                values[name] = types[name](raw.strip())
            except ValueError:
                raise ValueError(f"Invalid value for {ENV_PREFIX + suffix}: '{raw}'")

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values).validate()
