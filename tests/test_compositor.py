import numpy as np
import pytest

from backdrop.compositing.background import BackgroundAsset
from backdrop.compositing.compositor import composite, vignette_factor
from backdrop.utils.types import EffectsConfig, Frame, SegmentationMask


def _frame(w, h, value=200):
    return Frame(data=np.full((h, w, 3), value, dtype=np.uint8), timestamp=0.0, index=1)


def _mask(w, h, value):
    return SegmentationMask(data=np.full((h, w), value, dtype=np.float32))


def test_full_mask_keeps_frame_and_empty_mask_shows_background():
    frame = _frame(6, 4)
    bg = BackgroundAsset.from_color((0, 255, 0), 6, 4)
    assert np.array_equal(composite(frame, _mask(6, 4, 1.0), bg).data, frame.data)
    assert np.array_equal(composite(frame, _mask(6, 4, 0.0), bg).data, bg.data)


def test_partial_mask_blends_linearly():
    frame = _frame(2, 2, value=200)
    bg = BackgroundAsset.from_color((0, 0, 0), 2, 2)
    out = composite(frame, _mask(2, 2, 0.25), bg)
    assert np.all(out.data == 50)


def test_uint8_mask_is_normalized():
    mask = SegmentationMask.from_array(np.full((2, 2), 255, dtype=np.uint8))
    frame = _frame(2, 2, value=33)
    bg = BackgroundAsset.from_color((0, 0, 0), 2, 2)
    assert np.all(composite(frame, mask, bg).data == 33)


def test_output_is_bit_reproducible():
    rng = np.random.default_rng(7)
    frame = Frame(data=rng.integers(0, 256, (9, 11, 3), dtype=np.uint8), timestamp=0.0)
    mask = SegmentationMask(data=rng.random((9, 11), dtype=np.float32))
    bg = BackgroundAsset.from_image(rng.integers(0, 256, (20, 20, 3), dtype=np.uint8), 11, 9)
    first = composite(frame, mask, bg).data
    second = composite(frame, mask, bg).data
    assert first.tobytes() == second.tobytes()


def test_size_mismatch_raises():
    with pytest.raises(ValueError):
        composite(_frame(4, 4), _mask(4, 3, 1.0), BackgroundAsset.from_color((0, 0, 0), 4, 4))


def test_vignette_darkens_corners_not_center():
    frame = _frame(11, 9, value=200)
    bg = BackgroundAsset.from_color((0, 0, 0), 11, 9)
    out = composite(frame, _mask(11, 9, 1.0), bg, EffectsConfig(vignette_strength=0.3)).data
    assert np.all(out[4, 5] == 200)
    assert np.all(out[0, 0] == 140)
    assert np.all(out[8, 10] == 140)


def test_vignette_factor_shape_and_range():
    factor = vignette_factor(16, 10, 0.5)
    assert factor.shape == (10, 16)
    assert factor.min() == pytest.approx(0.5)
    assert factor.max() <= 1.0


def test_background_blur_leaves_foreground_untouched():
    rng = np.random.default_rng(1)
    bg = BackgroundAsset.from_image(rng.integers(0, 256, (10, 12, 3), dtype=np.uint8), 12, 10)
    frame = _frame(12, 10, value=90)
    out = composite(frame, _mask(12, 10, 1.0), bg, EffectsConfig(background_blur_radius=2.0))
    assert np.array_equal(out.data, frame.data)

    blurred = composite(frame, _mask(12, 10, 0.0), bg, EffectsConfig(background_blur_radius=2.0))
    assert not np.array_equal(blurred.data, bg.data)


def test_edge_softening_feathers_mask_boundary():
    w, h = 20, 10
    mask = np.zeros((h, w), dtype=np.float32)
    mask[:, :10] = 1.0
    frame = _frame(w, h, value=200)
    bg = BackgroundAsset.from_color((0, 0, 0), w, h)

    hard = composite(frame, SegmentationMask(data=mask), bg).data
    soft = composite(frame, SegmentationMask(data=mask), bg, EffectsConfig(edge_soften_radius=2.0)).data
    assert hard[5, 9, 0] == 200 and hard[5, 10, 0] == 0
    assert 0 < soft[5, 9, 0] < 200
    assert 0 < soft[5, 10, 0] < 200
    assert soft[5, 0, 0] == 200
    assert soft[5, 19, 0] == 0
