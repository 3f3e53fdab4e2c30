import numpy as np

from coffeedetection.coffeedetection import CoffeeDetectionPipeline
from coffeedetection.config import DetectionConfig
from coffeedetection.contours import find_box_contours

from conftest import ConstantOCR


def _square_scene(w=100, h=100):
    image = np.zeros((300, 300, 3), dtype=np.uint8)
    image[100:100 + h, 100:100 + w] = 255
    return image


def test_square_box_is_found():
    boxes = find_box_contours(_square_scene())
    assert boxes
    assert any(abs(b.x - 100) <= 3 and abs(b.y - 100) <= 3 and abs(b.width - 100) <= 4 for b in boxes)


def test_small_and_elongated_shapes_are_ignored():
    assert find_box_contours(_square_scene(20, 20)) == []
    assert find_box_contours(_square_scene(180, 40)) == []


def test_blank_image_has_no_boxes():
    assert find_box_contours(np.zeros((50, 50, 3), dtype=np.uint8)) == []


def test_contour_method_deduplicates_edges():
    pipeline = CoffeeDetectionPipeline(DetectionConfig(), [], ocr_engine=ConstantOCR("VOLTESSO"))

    result = pipeline.detect(_square_scene(), method="contour")

    assert len(result.recognitions) == 1
    rec = result.recognitions[0]
    assert rec.template == "contour"
    assert rec.label == "VOLTESSO"
