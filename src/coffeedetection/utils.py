"""
Utility helpers

Small I/O helpers shared by the pipeline and the CLI:
- `list_images(folder)`: sorted image paths with a known extension
- `load_image(path)`: read a colour image, raising if it cannot be decoded
- `resolve_template_root(root)`: local template folder, or a Hugging Face
    dataset id downloaded on first use

Example usage:
    from coffeedetection.utils import resolve_template_root
    root = resolve_template_root('assets/images/samples')
"""

import glob
import logging as log
import os
from typing import List

import cv2
import numpy as np
from huggingface_hub import snapshot_download

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".tif", ".tiff", ".bmp")


def list_images(folder: str) -> List[str]:
    """Return the image files directly inside `folder`, sorted by path.

    Args:
        folder (str): Directory to scan.

    Returns:
        paths (List[str]): Image paths whose extension is in `IMAGE_EXTENSIONS`.
    """
    paths = [
        p
        for p in glob.glob(os.path.join(folder, "*"))
        if os.path.isfile(p) and p.lower().endswith(IMAGE_EXTENSIONS)
    ]
    return sorted(paths)


def load_image(path: str) -> np.ndarray:
    """Read a BGR colour image.

    Raises:
        FileNotFoundError: If the file is missing or cannot be decoded.
    """
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        raise FileNotFoundError(f"Could not read image {path}")
    return image


def resolve_template_root(template_root: str) -> str:
    """Ensure the template images are available locally.

    Args:
        template_root (str): Local folder, or a Hugging Face dataset id when no such folder exists.

    Returns:
        local_root (str): Folder containing the template images.
    """
    if os.path.isdir(template_root):
        return template_root

    local_root = snapshot_download(template_root, repo_type="dataset")
    log.info(f"   Templates downloaded from Hugging Face ({template_root}) to {local_root}")
    return local_root


def output_path_for(image_path: str, output_dir: str, suffix: str = "_output") -> str:
    """Build `<output_dir>/<basename><suffix><ext>` for a source image."""
    base, ext = os.path.splitext(os.path.basename(image_path))
    return os.path.join(output_dir, f"{base}{suffix}{ext or '.jpg'}")
