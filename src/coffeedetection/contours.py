"""
Contour-based box finder

Alternative to template matching for photos without a matching reference
image: edges are traced with Canny and every large contour that simplifies
to a roughly square quadrilateral is reported as a box candidate. Boxes
found this way go through the same region mask and text recovery as
template matches.
"""

from typing import List

import cv2
import numpy as np

from .region_mask import Rectangle

MIN_AREA = 1000.0
ASPECT_RATIO_THRESHOLD = 0.7


def find_box_contours(
    image: np.ndarray,
    min_area: float = MIN_AREA,
    aspect_ratio_threshold: float = ASPECT_RATIO_THRESHOLD,
) -> List[Rectangle]:
    """Find bounding rectangles of quadrilateral contours.

    Args:
        image (np.ndarray): Source image (H,W,C BGR or H,W).
        min_area (float): Smallest contour area kept.
        aspect_ratio_threshold (float): Keep boxes with width/height in
            [threshold, 1/threshold].

    Returns:
        boxes (List[Rectangle]): Bounding boxes in contour order.
    """
    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
    gray = cv2.GaussianBlur(gray, (5, 5), 0)
    edges = cv2.Canny(gray, 50, 150)

    contours, _ = cv2.findContours(edges, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)

    boxes = []
    for cnt in contours:
        if cv2.contourArea(cnt) < min_area:
            continue

        peri = cv2.arcLength(cnt, True)
        approx = cv2.approxPolyDP(cnt, 0.02 * peri, True)
        if len(approx) != 4:
            continue

        x, y, w, h = cv2.boundingRect(approx)
        aspect_ratio = w / float(h) if h else 0.0
        if aspect_ratio_threshold <= aspect_ratio <= 1.0 / aspect_ratio_threshold:
            boxes.append(Rectangle(int(x), int(y), int(w), int(h)))
    return boxes
