"""
Coffee box detection + OCR pipeline

This script locates coffee boxes in photographs by multi-scale template
matching against a folder of reference images, then reads the printed
label on every located box with OCR and validates it against the known
vocabulary. Each accepted box claims its area in a per-image region mask,
so overlapping matches of the same or of different templates/scales are
reported only once (the first one in iteration order wins).

Example (complete call):
    coffeedetection \
        --image_dir assets/images \
        --templates assets/images/samples \
        --output_dir assets/output --plot

This file exposes a `CoffeeDetectionPipeline` class for programmatic use,
a `detect()` shortcut, and a `main()` entry that processes single images or
directories.
"""

import argparse
import json
import logging as log
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

import cv2
import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from .config import DetectionConfig
from .contours import find_box_contours
from .matcher import MatchCandidate, Template, load_templates, match_template
from .ocr import OCREngine, TextRecoveryEngine
from .region_mask import Rectangle, RegionMask
from .utils import list_images, load_image, output_path_for, resolve_template_root

BOX_COLOR = (0, 255, 0)
LABEL_COLOR = (0, 0, 255)


@dataclass(frozen=True)
class Recognition:
    """Data class for one accepted region and its recovered label."""

    rect: Rectangle
    label: str = ""  # empty when no OCR output matched the vocabulary
    entry: Optional[str] = None
    angle: Optional[float] = None
    template: Optional[str] = None
    scale: Optional[float] = None
    score: Optional[float] = None


@dataclass
class DetectionResult:
    """Annotated copy of the source image plus one recognition per accepted region."""

    image: np.ndarray
    recognitions: List[Recognition] = field(default_factory=list)

    @property
    def labels(self) -> List[str]:
        return [r.label for r in self.recognitions if r.label]

    def to_dict(self) -> Dict[str, Any]:
        return {"recognitions": [asdict(r) for r in self.recognitions]}


class CoffeeDetectionPipeline:
    """Complete pipeline for box detection and label recognition.

    Args:
        config (DetectionConfig): Thresholds, scales and OCR settings.
        templates (Sequence[Template]): Reference images, matched in name order.
        ocr_engine (Optional[OCREngine]): OCR callable; defaults to Tesseract.
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        templates: Sequence[Template] = (),
        ocr_engine: Optional[OCREngine] = None,
    ):
        self.config = config or DetectionConfig()
        self.templates = sorted(templates, key=lambda t: t.name)
        self.text_engine = TextRecoveryEngine.from_config(self.config, engine=ocr_engine)
        if self.config.debug_dir:
            os.makedirs(self.config.debug_dir, exist_ok=True)

    def iter_template_candidates(self, image: np.ndarray) -> Iterator[MatchCandidate]:
        """Yield candidates for every template x scale, in raster order within each pair."""
        for template in self.templates:
            for scale in self.config.scales:
                yield from match_template(
                    image,
                    template,
                    scale,
                    score_threshold=self.config.score_threshold,
                    padding=self.config.padding,
                )

    @staticmethod
    def iter_contour_candidates(image: np.ndarray) -> Iterator[MatchCandidate]:
        for rect in find_box_contours(image):
            yield MatchCandidate(rect=rect, score=1.0, scale=1.0, template="contour")

    def detect(self, image: np.ndarray, name: str = "image", method: str = "template") -> DetectionResult:
        """Run one detection pass over an image.

        Args:
            image (np.ndarray): Source image (H,W,C BGR). Not modified.
            name (str): Name used for debug plots.
            method (str): 'template' for template matching, 'contour' for the contour finder.

        Returns:
            result (DetectionResult): Annotated image and recognitions in acceptance order.
        """
        if image is None or image.size == 0:
            raise ValueError("Cannot run detection on an empty image")

        if method == "template":
            candidates = self.iter_template_candidates(image)
        elif method == "contour":
            candidates = self.iter_contour_candidates(image)
        else:
            raise ValueError(f"Unknown detection method: {method}")

        mask = RegionMask(
            image.shape,
            tolerance=self.config.overlap_tolerance,
            bounds_slack=self.config.bounds_slack,
        )
        recognitions: List[Recognition] = []

        for candidate in candidates:
            if not mask.try_claim(candidate.rect):
                continue

            plot_path = None
            if self.config.debug_dir:
                plot_path = os.path.join(self.config.debug_dir, f"{name}_region{len(mask)}")

            match = self.text_engine.recover(candidate.rect.crop(image), plot_path=plot_path)
            recognitions.append(
                Recognition(
                    rect=candidate.rect,
                    label=match.text if match else "",
                    entry=match.entry if match else None,
                    angle=match.angle if match else None,
                    template=candidate.template,
                    scale=candidate.scale,
                    score=candidate.score,
                )
            )
            log.debug(
                f"Accepted {candidate.template} at scale {candidate.scale}, {candidate.rect.area} px "
                f"(score {candidate.score:.2f}): {recognitions[-1].label!r}"
            )

        if self.config.debug_dir:
            self.save_mask(mask, os.path.join(self.config.debug_dir, f"{name}_mask.png"))

        annotated = draw_annotations(image, recognitions)
        log.info(
            f"{name}: {len(recognitions)} regions accepted, "
            f"{sum(1 for r in recognitions if r.label)} labeled"
        )
        return DetectionResult(image=annotated, recognitions=recognitions)

    def detect_path(self, image_path: str, method: str = "template") -> DetectionResult:
        """Load an image and detect; unreadable images raise FileNotFoundError."""
        image = load_image(image_path)
        name = os.path.splitext(os.path.basename(image_path))[0]
        return self.detect(image, name=name, method=method)

    def process_file(self, image_path: str, output_dir: str, method: str = "template") -> DetectionResult:
        """Detect on one file and write `<basename><suffix><ext>` plus a JSON summary."""
        result = self.detect_path(image_path, method=method)

        os.makedirs(output_dir, exist_ok=True)
        out_path = output_path_for(image_path, output_dir, self.config.output_suffix)
        if cv2.imwrite(out_path, result.image):
            log.info(f"Saved annotated image to {out_path}")
        else:
            log.error(f"Failed to write annotated image {out_path}")

        json_path = os.path.splitext(out_path)[0] + ".json"
        self.save_results(result, json_path)
        return result

    def save_results(self, result: DetectionResult, output_path: str) -> None:
        """Save the recognitions of a `DetectionResult` to a JSON file."""
        try:
            with open(output_path, "w") as f:
                json.dump(result.to_dict(), f, indent=4)
            log.info(f"Saved results to {output_path}")

        except (OSError, TypeError) as e:
            log.error(f"Failed to save results to {output_path}: {e}")

    @staticmethod
    def save_mask(mask: RegionMask, output_path: str) -> None:
        try:
            plt.imsave(output_path, mask.bitmap(), cmap="gray")
        except (OSError, ValueError) as e:
            log.error(f"Failed to save region mask to {output_path}: {e}")


def draw_annotations(image: np.ndarray, recognitions: Sequence[Recognition]) -> np.ndarray:
    """Draw a green box around every region and its label above it, on a copy."""
    annotated = image.copy()
    for rec in recognitions:
        r = rec.rect
        cv2.rectangle(annotated, (r.x, r.y), (r.right, r.bottom), BOX_COLOR, 2)
        if rec.label:
            y = r.y - 10 if r.y - 10 > 10 else r.bottom + 20
            cv2.putText(
                annotated, rec.label, (max(r.x, 0), y),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, LABEL_COLOR, 2,
            )
    return annotated


def detect(
    image_path: str,
    template_paths: Sequence[str],
    config: Optional[DetectionConfig] = None,
    ocr_engine: Optional[OCREngine] = None,
) -> DetectionResult:
    """One-shot detection of a single image against explicit template files."""
    templates = [Template.from_path(p) for p in template_paths]
    pipeline = CoffeeDetectionPipeline(config=config, templates=templates, ocr_engine=ocr_engine)
    return pipeline.detect_path(image_path)


def build_config(args: argparse.Namespace) -> DetectionConfig:
    """Merge the optional JSON config file with command line overrides."""
    overrides = dict(
        score_threshold=args.threshold,
        scales=tuple(args.scales) if args.scales else None,
        overlap_tolerance=args.overlap,
        rotations=args.rotations,
        angle_step=args.angle_step,
        page_seg_mode=args.psm,
        ocr_timeout=args.ocr_timeout,
        debug_dir=os.path.join(args.output_dir, "debug") if args.plot else None,
    )
    if args.config:
        return DetectionConfig.from_json(args.config, **overrides)
    return DetectionConfig().with_overrides(**overrides)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Coffee box detection and label OCR pipeline')
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument('--image', type=str, help='Path to input image (single)')
    group.add_argument('--image_dir', type=str, help='Path to folder containing images to process')

    parser.add_argument('--templates', type=str, default='assets/images/samples',
                        help='Template folder or Hugging Face dataset id')
    parser.add_argument('--output_dir', type=str, default='assets/output',
                        help='Path to save annotated images and JSON results')
    parser.add_argument('--config', type=str, default=None,
                        help='JSON file with DetectionConfig values')
    parser.add_argument('--method', choices=('template', 'contour'), default='template',
                        help='How box candidates are found')
    parser.add_argument('--threshold', type=float, default=None,
                        help='Template match score threshold (default 0.55)')
    parser.add_argument('--scales', type=float, nargs='+', default=None,
                        help='Template scale factors (default 1.75 2.0)')
    parser.add_argument('--overlap', type=int, default=None,
                        help='Overlap tolerance in pixels (default 30)')
    parser.add_argument('--rotations', type=int, default=None,
                        help='Number of rotated OCR retries (default 11)')
    parser.add_argument('--angle_step', type=float, default=None,
                        help='Degrees between OCR retries (default 30)')
    parser.add_argument('--psm', type=int, default=None,
                        help='Tesseract page segmentation mode (default 3)')
    parser.add_argument('--ocr_timeout', type=float, default=None,
                        help='Seconds allowed per OCR call, 0 for no limit')
    parser.add_argument('--plot', action='store_true',
                        help='Save OCR variant panels and region masks for debugging')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging output')
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry for running the detection pipeline on one or many images."""
    args = parse_args(argv)

    # Set up logging
    log_level = log.DEBUG if args.verbose else log.INFO
    log.basicConfig(level=log_level, format='%(asctime)s - %(levelname)s - %(message)s')

    config = build_config(args)
    os.makedirs(args.output_dir, exist_ok=True)

    # Build list of images to process
    if args.image:
        image_paths = [args.image]
    else:
        image_paths = list_images(args.image_dir)
        if len(image_paths) == 0:
            log.warning(f"No images found in directory {args.image_dir}.")
            return 0

    templates: List[Template] = []
    if args.method == 'template':
        templates = load_templates(resolve_template_root(args.templates))

    pipeline = CoffeeDetectionPipeline(config=config, templates=templates)

    failed = 0
    for img_path in tqdm(image_paths, desc="Processing images"):
        try:
            pipeline.process_file(img_path, args.output_dir, method=args.method)
        except FileNotFoundError as e:
            log.warning(f"{e}, skipping.")
            failed += 1
        except Exception as e:
            log.error(f"Error processing {img_path}: {e}")
            failed += 1

    log.info("Processing complete.")
    return 1 if failed == len(image_paths) else 0


if __name__ == "__main__":
    raise SystemExit(main())
