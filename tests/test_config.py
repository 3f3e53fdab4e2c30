import json

import pytest

from coffeedetection.config import VOCABULARY, DetectionConfig


def test_defaults():
    cfg = DetectionConfig()
    assert cfg.score_threshold == 0.55
    assert cfg.scales == (1.75, 2.0)
    assert cfg.overlap_tolerance == 30
    assert (cfg.rotations, cfg.angle_step) == (11, 30.0)
    assert cfg.page_seg_mode == 3
    assert cfg.vocabulary == VOCABULARY
    assert cfg.output_suffix == "_output"


def test_lists_normalized_and_vocabulary_uppercased():
    cfg = DetectionConfig(scales=[1, 1.5], vocabulary=["dolce", " Bianco ", ""])
    assert cfg.scales == (1.0, 1.5)
    assert cfg.vocabulary == ("DOLCE", "BIANCO")


@pytest.mark.parametrize("kwargs", [
    {"scales": ()},
    {"scales": (1.0, 0.0)},
    {"score_threshold": 1.5},
    {"overlap_tolerance": -1},
    {"bounds_slack": -2},
    {"rotations": -1},
    {"padding": -4},
    {"ocr_timeout": -1.0},
])
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValueError):
        DetectionConfig(**kwargs)


def test_with_overrides_ignores_none():
    cfg = DetectionConfig().with_overrides(score_threshold=0.7, scales=None)
    assert cfg.score_threshold == 0.7
    assert cfg.scales == (1.75, 2.0)


def test_from_json_with_cli_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"scales": [1.0], "rotations": 7, "angle_step": 45}))

    cfg = DetectionConfig.from_json(str(path), rotations=5, angle_step=None)

    assert cfg.scales == (1.0,)
    assert cfg.rotations == 5
    assert cfg.angle_step == 45


def test_from_json_rejects_unknown_keys(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"threshold": 0.5}))
    with pytest.raises(ValueError, match="Unknown config keys"):
        DetectionConfig.from_json(str(path))


def test_from_json_rejects_non_object(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        DetectionConfig.from_json(str(path))
