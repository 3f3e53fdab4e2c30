"""
Region mask and candidate filter

`RegionMask` tracks the rectangles already accepted during one detection
pass over one image. A candidate is free when it lies inside the image
(up to `bounds_slack` pixels outside is tolerated) and does not overlap
any accepted rectangle once `tolerance` pixels are trimmed from each edge
of that rectangle. Claims are permanent for the lifetime of the mask.

The list of accepted rectangles is the source of truth; `bitmap()` paints
it into a single-channel image for visualisation only.
"""

import logging as log
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned box in source-image pixels; right/bottom are exclusive."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return max(self.width, 0) * max(self.height, 0)

    def padded(self, padding: int) -> "Rectangle":
        """Grow by `padding` pixels per axis, keeping the box centred."""
        shift = padding // 2
        return Rectangle(self.x - shift, self.y - shift, self.width + padding, self.height + padding)

    def clip(self, shape: Sequence[int]) -> Optional["Rectangle"]:
        """Intersect with an image of the given (H, W, ...) shape.

        Returns:
            clipped (Optional[Rectangle]): The visible part, or None when nothing is left.
        """
        h, w = shape[:2]
        x0, y0 = max(self.x, 0), max(self.y, 0)
        x1, y1 = min(self.right, w), min(self.bottom, h)
        if x1 <= x0 or y1 <= y0:
            return None
        return Rectangle(x0, y0, x1 - x0, y1 - y0)

    def crop(self, image: np.ndarray) -> Optional[np.ndarray]:
        """Return a copy of the visible part of this rectangle in `image`."""
        visible = self.clip(image.shape)
        if visible is None:
            return None
        return image[visible.y:visible.bottom, visible.x:visible.right].copy()

    def to_xywh(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)


def overlap_extent(a: Rectangle, b: Rectangle) -> int:
    """Smaller side of the intersection of `a` and `b` (0 when disjoint)."""
    w = min(a.right, b.right) - max(a.x, b.x)
    h = min(a.bottom, b.bottom) - max(a.y, b.y)
    return max(min(w, h), 0)


def is_overlapping(existing: Rectangle, candidate: Rectangle, tolerance: int) -> bool:
    """Intersection test against `existing` shrunk by `tolerance` on every edge."""
    return (
        candidate.x < existing.right - tolerance
        and candidate.right > existing.x + tolerance
        and candidate.y < existing.bottom - tolerance
        and candidate.bottom > existing.y + tolerance
    )


class RegionMask:
    """Exclusion tracker for one image.

    Args:
        shape (Sequence[int]): Shape of the source image, (H, W) or (H, W, C).
        tolerance (int): Pixels trimmed from each accepted rectangle before the overlap test.
        bounds_slack (int): Pixels a candidate may extend past the image borders.
    """

    def __init__(self, shape: Sequence[int], tolerance: int = 30, bounds_slack: int = 30):
        self.height, self.width = int(shape[0]), int(shape[1])
        if self.height <= 0 or self.width <= 0:
            raise ValueError(f"Cannot build a region mask for an empty image of shape {tuple(shape)}")
        self.tolerance = tolerance
        self.bounds_slack = bounds_slack
        self._regions: List[Rectangle] = []

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[Rectangle]:
        return iter(self._regions)

    @property
    def regions(self) -> Tuple[Rectangle, ...]:
        return tuple(self._regions)

    def in_bounds(self, rect: Rectangle) -> bool:
        slack = self.bounds_slack
        return not (
            rect.width <= 0
            or rect.height <= 0
            or rect.x < -slack
            or rect.y < -slack
            or rect.right > self.width + slack
            or rect.bottom > self.height + slack
        )

    def is_free(self, rect: Rectangle, tolerance: Optional[int] = None) -> bool:
        """Check whether `rect` may be accepted.

        Args:
            rect (Rectangle): Candidate region.
            tolerance (Optional[int]): Overrides the mask tolerance for this test.

        Returns:
            free (bool): False for degenerate or out-of-bounds rectangles and for
                rectangles overlapping an accepted region beyond the tolerance.
        """
        if not self.in_bounds(rect):
            return False
        tol = self.tolerance if tolerance is None else tolerance
        return not any(is_overlapping(existing, rect, tol) for existing in self._regions)

    def claim(self, rect: Rectangle) -> None:
        """Mark `rect` as occupied. Claims are never released."""
        self._regions.append(rect)

    def try_claim(self, rect: Rectangle) -> bool:
        """Claim `rect` if it is free; return whether it was accepted."""
        if not self.is_free(rect):
            if log.getLogger().isEnabledFor(log.DEBUG):
                overlap = max((overlap_extent(r, rect) for r in self._regions), default=0)
                log.debug(f"Rejected region {rect.to_xywh()} (overlap {overlap} px)")
            return False
        self.claim(rect)
        log.debug(f"Claimed region {rect.to_xywh()} ({len(self._regions)} total)")
        return True

    def bitmap(self) -> np.ndarray:
        """Paint the claimed regions (255) on a black single-channel image."""
        mask = np.zeros((self.height, self.width), dtype=np.uint8)
        for rect in self._regions:
            visible = rect.clip(mask.shape)
            if visible is not None:
                mask[visible.y:visible.bottom, visible.x:visible.right] = 255
        return mask
