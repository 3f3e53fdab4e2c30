"""
Detection configuration

Holds `DetectionConfig`, the single configuration object passed to the
pipeline at call time. Values can be overridden from a JSON file
(`DetectionConfig.from_json`) and then from command line flags.

Example usage:
    from coffeedetection.config import DetectionConfig
    cfg = DetectionConfig(scales=(1.0, 1.5), rotations=7, angle_step=45.0)
"""

import json
import logging as log
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Optional, Tuple

# Known labels printed on the boxes.
VOCABULARY: Tuple[str, ...] = ("VOLTESSO", "ORAFIO", "BIANCO", "PICOLLO", "DOLCE")

# Latin letters and space only; digits and punctuation are never part of a label.
CHAR_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz "


@dataclass(frozen=True)
class DetectionConfig:
    """Tunables for template matching, region filtering and text recovery.

    Args:
        score_threshold (float): Minimum normalized correlation to report a match.
        scales (Tuple[float, ...]): Template scale factors, tried in order.
        overlap_tolerance (int): Pixels of overlap allowed between accepted regions.
        bounds_slack (int): Pixels a region may extend past the image edges.
        padding (int): Growth applied to each match footprint (shifted by -padding/2).
        rotations (int): Number of rotated OCR retries after the direct attempt.
        angle_step (float): Rotation increment in degrees.
        char_whitelist (str): Characters the OCR engine may emit.
        page_seg_mode (int): Tesseract page segmentation mode.
        ocr_timeout (float): Seconds before a single OCR call is abandoned (0 disables).
        vocabulary (Tuple[str, ...]): Expected labels, matched case-insensitively.
        output_suffix (str): Appended to the source basename for output artifacts.
        debug_dir (Optional[str]): Directory for debug plots (None disables them).
    """

    score_threshold: float = 0.55
    scales: Tuple[float, ...] = (1.75, 2.0)
    overlap_tolerance: int = 30
    bounds_slack: int = 30
    padding: int = 10
    rotations: int = 11
    angle_step: float = 30.0
    char_whitelist: str = CHAR_WHITELIST
    page_seg_mode: int = 3
    ocr_timeout: float = 0.0
    vocabulary: Tuple[str, ...] = field(default=VOCABULARY)
    output_suffix: str = "_output"
    debug_dir: Optional[str] = None

    def __post_init__(self):
        # Lists coming from JSON or argparse are normalized to tuples
        object.__setattr__(self, "scales", tuple(float(s) for s in self.scales))
        object.__setattr__(
            self, "vocabulary", tuple(str(v).strip().upper() for v in self.vocabulary if str(v).strip())
        )

        if not self.scales or any(s <= 0 for s in self.scales):
            raise ValueError(f"Scales must be positive, got {self.scales}")
        if not -1.0 <= self.score_threshold <= 1.0:
            raise ValueError(f"score_threshold must lie in [-1, 1], got {self.score_threshold}")
        if self.overlap_tolerance < 0 or self.bounds_slack < 0:
            raise ValueError("overlap_tolerance and bounds_slack must be non-negative")
        if self.padding < 0:
            raise ValueError(f"padding must be non-negative, got {self.padding}")
        if self.rotations < 0:
            raise ValueError(f"rotations must be non-negative, got {self.rotations}")
        if self.ocr_timeout < 0:
            raise ValueError(f"ocr_timeout must be non-negative, got {self.ocr_timeout}")

    @classmethod
    def from_json(cls, path: str, **overrides: Any) -> "DetectionConfig":
        """Load a configuration from a JSON object, then apply keyword overrides.

        Args:
            path (str): Path to a JSON file whose keys are `DetectionConfig` fields.
            **overrides: Field values taking precedence over the file (None values are ignored).

        Returns:
            config (DetectionConfig): The merged configuration.
        """
        with open(path, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a JSON object")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys in {path}: {sorted(unknown)}")

        config = cls(**data)
        log.info(f"Loaded configuration from {path}")
        return config.with_overrides(**overrides)

    def with_overrides(self, **overrides: Any) -> "DetectionConfig":
        """Return a copy with every non-None override applied."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **updates) if updates else self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
