import os

import cv2
import numpy as np
import pytest

from coffeedetection import utils
from coffeedetection.utils import list_images, load_image, output_path_for, resolve_template_root


def test_list_images_filters_and_sorts(tmp_path):
    for name in ["b.JPG", "a.png", "c.txt", "d.bmp"]:
        (tmp_path / name).write_bytes(b"x")
    (tmp_path / "sub.png").mkdir()

    names = [os.path.basename(p) for p in list_images(str(tmp_path))]
    assert names == ["a.png", "b.JPG", "d.bmp"]


def test_load_image_reads_colour(tmp_path):
    path = tmp_path / "gray.png"
    cv2.imwrite(str(path), np.full((5, 7), 100, dtype=np.uint8))
    image = load_image(str(path))
    assert image.shape == (5, 7, 3)


@pytest.mark.parametrize("name, content", [("missing.png", None), ("corrupt.png", b"not an image")])
def test_load_image_failures(tmp_path, name, content):
    path = tmp_path / name
    if content is not None:
        path.write_bytes(content)
    with pytest.raises(FileNotFoundError):
        load_image(str(path))


def test_output_path_appends_suffix():
    assert output_path_for("/data/predict1.jpg", "out") == os.path.join("out", "predict1_output.jpg")
    assert output_path_for("shelf.png", "out", "_boxes") == os.path.join("out", "shelf_boxes.png")


def test_resolve_local_template_root(tmp_path):
    assert resolve_template_root(str(tmp_path)) == str(tmp_path)


def test_resolve_remote_template_root(monkeypatch, tmp_path):
    calls = []

    def fake_snapshot_download(repo_id, repo_type=None):
        calls.append((repo_id, repo_type))
        return str(tmp_path)

    monkeypatch.setattr(utils, "snapshot_download", fake_snapshot_download)

    assert resolve_template_root("someone/coffee-templates") == str(tmp_path)
    assert calls == [("someone/coffee-templates", "dataset")]
