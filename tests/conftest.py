"""Shared fixtures: seeded synthetic images and fake OCR engines."""
import logging
import math
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import cv2
import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from coffeedetection.matcher import Template  # noqa: E402

logging.getLogger("matplotlib").setLevel(logging.WARNING)


def noise(rng: np.random.Generator, height: int, width: int) -> np.ndarray:
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def paste(source: np.ndarray, patch: np.ndarray, x: int, y: int) -> np.ndarray:
    out = source.copy()
    h, w = patch.shape[:2]
    out[y:y + h, x:x + w] = patch
    return out


def make_template(name: str, image: np.ndarray) -> Template:
    return Template(name=name, image=image)


def line_region(angle: float, size: int = 200, length: int = 120) -> np.ndarray:
    """Black square with a white line through its centre at `angle` degrees counter-clockwise."""
    img = np.zeros((size, size, 3), dtype=np.uint8)
    c = size / 2.0
    dx = 0.5 * length * math.cos(math.radians(angle))
    dy = -0.5 * length * math.sin(math.radians(angle))
    p1 = (int(round(c - dx)), int(round(c - dy)))
    p2 = (int(round(c + dx)), int(round(c + dy)))
    cv2.line(img, p1, p2, (255, 255, 255), 3)
    return img


class ScriptedOCR:
    """Returns the scripted outputs in order ("" once exhausted) and counts calls."""

    def __init__(self, outputs: Sequence[str] = ()):
        self.outputs = list(outputs)
        self.calls = 0
        self.images: List[np.ndarray] = []

    def __call__(self, image: np.ndarray) -> str:
        self.images.append(image)
        self.calls += 1
        if self.calls <= len(self.outputs):
            return self.outputs[self.calls - 1]
        return ""


class ConstantOCR(ScriptedOCR):
    def __init__(self, text: str):
        super().__init__()
        self.text = text

    def __call__(self, image: np.ndarray) -> str:
        super().__call__(image)
        return self.text


class FailingOCR(ScriptedOCR):
    """Raises `error` on the call numbers in `fail_on`, otherwise returns `text`."""

    def __init__(self, error: Exception, text: str = "", fail_on: Optional[Sequence[int]] = None):
        super().__init__()
        self.error = error
        self.text = text
        self.fail_on = fail_on

    def __call__(self, image: np.ndarray) -> str:
        super().__call__(image)
        if self.fail_on is None or self.calls in self.fail_on:
            raise self.error
        return self.text


class HorizontalTextOCR(ScriptedOCR):
    """Reads `text` only when the strokes in the image run horizontally."""

    def __init__(self, text: str, tolerance_deg: float = 10.0):
        super().__init__()
        self.text = text
        self.tolerance_deg = tolerance_deg

    def __call__(self, image: np.ndarray) -> str:
        super().__call__(image)
        m = cv2.moments(image, binaryImage=True)
        if m["m00"] == 0:
            return ""
        theta = 0.5 * math.degrees(math.atan2(2 * m["mu11"], m["mu20"] - m["mu02"]))
        return self.text if abs(theta) < self.tolerance_deg else ""


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def scene(rng):
    """Noise photo (200x300) with a 40x60 noise patch pasted at (x=60, y=50)."""
    source = noise(rng, 200, 300)
    patch = noise(rng, 40, 60)
    return {"source": paste(source, patch, 60, 50), "patch": patch, "x": 60, "y": 50}
