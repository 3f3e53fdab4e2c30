"""
Multi-scale template matcher

Loads reference images of the coffee boxes and finds where a scaled copy
of each one correlates with a source photograph.

Public API:
- `Template`: reference image plus its name
- `MatchCandidate`: a rectangle above the score threshold
- `load_templates(folder)`: read every template image in a folder
- `match_template(...)`: lazily yield candidates in raster order

Used by `coffeedetection.py`; no CLI entry point.
"""

import logging as log
import os
from dataclasses import dataclass
from typing import Iterator, List, Tuple

import cv2
import numpy as np

from .region_mask import Rectangle
from .utils import list_images


@dataclass(frozen=True)
class Template:
    """Reference image of a box label; never modified after loading."""

    name: str
    image: np.ndarray

    @property
    def size(self) -> Tuple[int, int]:
        """Intrinsic (width, height) in pixels."""
        h, w = self.image.shape[:2]
        return (w, h)

    @classmethod
    def from_path(cls, path: str) -> "Template":
        image = cv2.imread(path, cv2.IMREAD_COLOR)
        if image is None or image.size == 0:
            raise FileNotFoundError(f"Could not load template: {path}")
        image.setflags(write=False)
        return cls(name=os.path.splitext(os.path.basename(path))[0], image=image)


@dataclass(frozen=True)
class MatchCandidate:
    """Data class for a single template match above the threshold."""

    rect: Rectangle
    score: float
    scale: float
    template: str


def load_templates(folder: str) -> List[Template]:
    """Load all template images in `folder`, sorted by name.

    Unreadable files are logged and skipped.
    """
    templates = []
    for path in list_images(folder):
        try:
            templates.append(Template.from_path(path))
        except FileNotFoundError as e:
            log.error(str(e))

    templates.sort(key=lambda t: t.name)
    if not templates:
        log.warning(f"No templates found in {folder}")
    else:
        log.info("Templates loaded: %s", [f"{t.name} ({t.size[0]}x{t.size[1]})" for t in templates])
    return templates


def resize_template(template: np.ndarray, scale: float) -> np.ndarray:
    """Bilinear resize of a template image by `scale`."""
    if scale <= 0:
        raise ValueError(f"Scale must be positive, got {scale}")
    return cv2.resize(template, None, fx=scale, fy=scale, interpolation=cv2.INTER_LINEAR)


def match_template(
    source: np.ndarray,
    template: Template,
    scale: float,
    score_threshold: float = 0.55,
    padding: int = 10,
) -> Iterator[MatchCandidate]:
    """Yield every placement of the scaled template scoring above the threshold.

    Args:
        source (np.ndarray): Source image (H,W,C), same channel count as the template.
        template (Template): Template to look for.
        scale (float): Resize factor applied to the template.
        score_threshold (float): Minimum TM_CCOEFF_NORMED score (exclusive).
        padding (int): Growth applied to the footprint, see `Rectangle.padded`.

    Yields:
        candidate (MatchCandidate): Candidates in row-major order of their top-left corner.
    """
    if source is None or source.size == 0:
        raise ValueError("Cannot match against an empty source image")

    resized = resize_template(template.image, scale)
    th, tw = resized.shape[:2]
    sh, sw = source.shape[:2]
    if th == 0 or tw == 0 or th > sh or tw > sw:
        log.debug(f"Template {template.name} at scale {scale} ({tw}x{th}) does not fit {sw}x{sh}")
        return

    scores = cv2.matchTemplate(source, resized, cv2.TM_CCOEFF_NORMED)
    # Flat regions give NaN/inf scores; they never count as a match
    scores = np.nan_to_num(scores, nan=-1.0, posinf=-1.0, neginf=-1.0)

    # np.nonzero returns indices in row-major order
    ys, xs = np.nonzero(scores > score_threshold)
    for y, x in zip(ys.tolist(), xs.tolist()):
        rect = Rectangle(x, y, tw, th).padded(padding)
        yield MatchCandidate(rect=rect, score=float(scores[y, x]), scale=scale, template=template.name)
