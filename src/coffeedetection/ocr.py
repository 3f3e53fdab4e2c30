"""
Label text recovery

This module reads the printed label of an accepted box region with
Tesseract (through pytesseract) and validates the output against the
known vocabulary. Every attempt works on the same preprocessed image
(grayscale, Gaussian blur, Otsu binarization, dilation). The first
attempt is unrotated; the following ones rotate the preprocessed image
by `angle_step * k` degrees, k = 1..rotations, and stop at the first
output that contains a vocabulary entry.

Public API:
- `TesseractEngine`: callable wrapper around `pytesseract.image_to_string`
- `TextRecoveryEngine`: `recover` (full match details) and `recognize` (label text)
- `match_vocabulary`: case-insensitive substring test

No CLI entry point; used by `coffeedetection.py`.
"""

import logging as log
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import cv2
import matplotlib.pyplot as plt
import numpy as np
import pytesseract

from .config import CHAR_WHITELIST, VOCABULARY, DetectionConfig

# Allow overriding the tesseract executable (e.g. on Windows)
_tpath = os.getenv("TESSERACT_PATH")
if _tpath and os.path.exists(_tpath):
    pytesseract.pytesseract.tesseract_cmd = _tpath

OCREngine = Callable[[np.ndarray], str]


@dataclass(frozen=True)
class TextMatch:
    """OCR output that contains a vocabulary entry."""

    text: str
    entry: str
    angle: float


class TesseractEngine:
    """Run Tesseract on a single-channel image and return the raw text.

    Args:
        char_whitelist (str): Characters Tesseract may emit.
        page_seg_mode (int): Page segmentation mode. Fully automatic (3) reads
            small, skewed labels better than the single-line modes.
        timeout (float): Seconds before the tesseract process is killed (0 disables).
        lang (str): Tesseract language pack.
    """

    def __init__(
        self,
        char_whitelist: str = CHAR_WHITELIST,
        page_seg_mode: int = 3,
        timeout: float = 0.0,
        lang: str = "eng",
    ):
        self.char_whitelist = char_whitelist
        self.page_seg_mode = page_seg_mode
        self.timeout = timeout
        self.lang = lang

    @property
    def config(self) -> str:
        # Tesseract splits words itself, so spaces are left out of the whitelist; this keeps
        # the option free of quotes, which pytesseract passes through verbatim on Windows.
        # The learning switches only reach the legacy classifier (--oem 0/2); LSTM never adapts.
        whitelist = "".join(self.char_whitelist.split())
        return (
            f"--oem 1 --psm {self.page_seg_mode} "
            f"-c tessedit_char_whitelist={whitelist} "
            f"-c preserve_interword_spaces=1 "
            f"-c classify_enable_learning=0 -c classify_enable_adaptive_matcher=0"
        )

    def __call__(self, image: np.ndarray) -> str:
        return pytesseract.image_to_string(
            image.astype(np.uint8, copy=False),
            lang=self.lang,
            config=self.config,
            timeout=self.timeout,
        )


def match_vocabulary(text: str, vocabulary: Sequence[str]) -> Optional[str]:
    """Return the first vocabulary entry contained in `text`, ignoring case."""
    haystack = text.strip().upper()
    if not haystack:
        return None
    for entry in vocabulary:
        if entry.upper() in haystack:
            return entry
    return None


def preprocess_region(image: np.ndarray) -> np.ndarray:
    """Prepare a region for OCR.

    Args:
        image (np.ndarray): Region pixels (H,W,C BGR/BGRA or H,W).

    Returns:
        binary (np.ndarray): Blurred, Otsu-binarized and dilated uint8 image.
    """
    if image.ndim == 3 and image.shape[2] == 4:
        gray = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    elif image.ndim == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    else:
        gray = image.copy()

    gray = gray.astype(np.uint8, copy=False)
    gray = cv2.GaussianBlur(gray, (5, 5), 0)
    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)

    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (2, 2))
    return cv2.dilate(binary, kernel, iterations=1)


def rotate_image(image: np.ndarray, angle: float) -> np.ndarray:
    """Rotate counter-clockwise about the centre, keeping the size; corners fill black."""
    h, w = image.shape[:2]
    M = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), angle, 1.0)
    return cv2.warpAffine(
        image, M, (w, h), flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_CONSTANT, borderValue=0
    )


def iter_variants(
    image: np.ndarray, rotations: int, angle_step: float
) -> Iterator[Tuple[float, np.ndarray]]:
    """Yield (angle, image): the input itself, then each rotation, built on demand."""
    yield 0.0, image
    for k in range(1, rotations + 1):
        angle = angle_step * k
        yield angle, rotate_image(image, angle)


class TextRecoveryEngine:
    """Recover a vocabulary label from a region by retrying OCR over rotations.

    Args:
        engine (Optional[OCREngine]): Callable returning the text in an image.
            Defaults to a `TesseractEngine`.
        vocabulary (Sequence[str]): Expected labels.
        rotations (int): Rotated retries after the direct attempt.
        angle_step (float): Degrees between consecutive retries.
    """

    def __init__(
        self,
        engine: Optional[OCREngine] = None,
        vocabulary: Sequence[str] = VOCABULARY,
        rotations: int = 11,
        angle_step: float = 30.0,
    ):
        self.engine = engine if engine is not None else TesseractEngine()
        self.vocabulary = tuple(v.upper() for v in vocabulary)
        self.rotations = rotations
        self.angle_step = angle_step

    @classmethod
    def from_config(cls, config: DetectionConfig, engine: Optional[OCREngine] = None) -> "TextRecoveryEngine":
        if engine is None:
            engine = TesseractEngine(
                char_whitelist=config.char_whitelist,
                page_seg_mode=config.page_seg_mode,
                timeout=config.ocr_timeout,
            )
        return cls(
            engine=engine,
            vocabulary=config.vocabulary,
            rotations=config.rotations,
            angle_step=config.angle_step,
        )

    def recover(self, region: Optional[np.ndarray], plot_path: Optional[str] = None) -> Optional[TextMatch]:
        """Run OCR on the region and its rotations until a vocabulary entry shows up.

        Args:
            region (Optional[np.ndarray]): Region pixels; None or empty yields None.
            plot_path (Optional[str]): Path prefix for a debug panel of the tried variants.

        Returns:
            match (Optional[TextMatch]): The first satisfying OCR output, or None when no
                variant matches or the OCR engine fails.
        """
        if region is None or region.size == 0:
            return None

        tried: List[Tuple[float, np.ndarray, str]] = []
        match = None
        try:
            prepared = preprocess_region(region)
            for angle, variant in iter_variants(prepared, self.rotations, self.angle_step):
                text = (self.engine(variant) or "").strip()
                tried.append((angle, variant, text))
                log.debug(f"OCR at {angle:.0f} deg: {text!r}")

                entry = match_vocabulary(text, self.vocabulary)
                if entry is not None:
                    match = TextMatch(text=text, entry=entry, angle=angle)
                    break
        except Exception as e:
            # A failing region is left unlabeled; the rest of the image still gets processed
            log.warning(f"OCR failed, region left unlabeled: {e}")
            match = None

        if plot_path is not None and tried:
            visualize_variants(tried, plot_path + "_ocr.png")
        return match

    def recognize(self, region: Optional[np.ndarray]) -> str:
        """Return the matching OCR text for a region, or "" when none matched."""
        match = self.recover(region)
        return match.text if match is not None else ""


def visualize_variants(tried: List[Tuple[float, np.ndarray, str]], plot_path: str) -> None:
    """Save one panel per OCR attempt, titled with its angle and output. Never raises."""
    fig = None
    try:
        Path(plot_path).parent.mkdir(parents=True, exist_ok=True)
        n = len(tried)
        fig, axes = plt.subplots(1, n, figsize=(3 * n, 3.5), squeeze=False)
        for ax, (angle, variant, text) in zip(axes[0], tried):
            ax.imshow(variant, cmap="gray")
            ax.set_title(f"{angle:.0f}°\n{text or '-'}", fontsize=9)
            ax.axis("off")

        plt.tight_layout()
        fig.savefig(str(plot_path), bbox_inches="tight", pad_inches=0.1)
    except Exception as e:
        log.error("Failed to save OCR visualization: %s", e)
    finally:
        if fig is not None:
            plt.close(fig)
