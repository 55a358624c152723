import pytest

from backdrop.utils.config import get, load_yaml, parse_color, resolution_hint_from, segmentation_config_from
from backdrop.utils.types import EffectsConfig, ModelTier, SegmentationConfig


def test_confidences_and_effects_are_clamped():
    cfg = SegmentationConfig(min_detection_confidence=1.7, min_tracking_confidence=-0.2)
    assert cfg.min_detection_confidence == 1.0
    assert cfg.min_tracking_confidence == 0.0

    effects = EffectsConfig(edge_soften_radius=-3, background_blur_radius=2, vignette_strength=4)
    assert effects.edge_soften_radius == 0.0
    assert effects.background_blur_radius == 2.0
    assert effects.vignette_strength == 1.0
    assert effects.enabled
    assert not EffectsConfig().enabled


def test_segmentation_config_from_yaml(tmp_path):
    path = tmp_path / "system.yaml"
    path.write_text(
        "camera:\n  width: 1280\n  height: 720\n"
        "segmentation:\n  model_tier: FAST\n  min_detection_confidence: 0.7\n"
        "effects:\n  vignette_strength: 0.3\n",
        encoding="utf-8",
    )
    raw = load_yaml(path)
    cfg = segmentation_config_from(raw)
    assert cfg.model_tier is ModelTier.FAST
    assert cfg.min_detection_confidence == pytest.approx(0.7)
    assert cfg.min_tracking_confidence == pytest.approx(0.5)
    assert cfg.effects.vignette_strength == pytest.approx(0.3)
    assert resolution_hint_from(raw) == (1280, 720)
    assert resolution_hint_from({}) is None


def test_missing_config_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml(tmp_path / "nope.yaml")


def test_dot_access_and_colors():
    cfg = {"runtime": {"output_dir": "out"}}
    assert get(cfg, "runtime.output_dir") == "out"
    assert get(cfg, "runtime.missing", 3) == 3
    assert parse_color("#00FF00") == (0, 255, 0)
    assert parse_color([1, 2, 3]) == (1, 2, 3)
    assert parse_color(None) == (0, 255, 0)
    with pytest.raises(ValueError):
        parse_color("#123")
