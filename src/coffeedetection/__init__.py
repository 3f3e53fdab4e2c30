"""
CoffeeDetection package

This package contains modules for locating coffee boxes in photographs by
multi-scale template matching and reading their printed labels with OCR.

The `src/coffeedetection` folder contains the following modules:
- `coffeedetection.py`: main pipeline for detection + OCR, and the CLI
- `matcher.py`: template loading and multi-scale template matching
- `region_mask.py`: rectangles and the per-image exclusion mask
- `ocr.py`: OCR preprocessing, rotation retries and vocabulary matching
- `contours.py`: contour-based box finder
- `config.py`: the `DetectionConfig` dataclass
- `utils.py`: helper functions (image listing/loading, template download)
"""

from .coffeedetection import CoffeeDetectionPipeline, DetectionResult, Recognition, detect
from .config import DetectionConfig, VOCABULARY
from .region_mask import Rectangle, RegionMask

__all__ = [
    "CoffeeDetectionPipeline",
    "DetectionConfig",
    "DetectionResult",
    "Recognition",
    "Rectangle",
    "RegionMask",
    "VOCABULARY",
    "detect",
]
