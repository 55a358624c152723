import cv2
import numpy as np
import pytest

from backdrop.compositing.background import BackgroundAsset, decode_image
from backdrop.utils.errors import ImageDecodeError


def test_square_image_cover_fits_720p_target():
    image = np.full((100, 100, 3), 50, dtype=np.uint8)
    asset = BackgroundAsset.from_image(image, 1280, 720)
    assert asset.size == (1280, 720)
    assert asset.data.shape == (720, 1280, 3)
    assert asset.scale == pytest.approx(12.8)
    assert asset.offset == pytest.approx((0.0, -280.0))
    assert np.all(asset.data == 50)


def test_wide_image_is_cropped_horizontally():
    image = np.full((100, 400, 3), 128, dtype=np.uint8)
    image[:, :100] = (255, 0, 0)
    image[:, 300:] = (0, 0, 255)
    asset = BackgroundAsset.from_image(image, 200, 100)
    assert asset.scale == pytest.approx(1.0)
    assert asset.offset == pytest.approx((-100.0, 0.0))
    assert np.all(asset.data == 128)


def test_tall_image_fills_width_and_is_cropped_vertically():
    image = np.full((400, 100, 3), 128, dtype=np.uint8)
    image[:150] = (255, 0, 0)
    image[250:] = (0, 0, 255)
    asset = BackgroundAsset.from_image(image, 200, 100)
    assert asset.data.shape == (100, 200, 3)
    assert asset.scale == pytest.approx(2.0)
    assert asset.offset == pytest.approx((0.0, -350.0))
    # Left and right edges are image content: no letterboxing.
    assert np.all(asset.data == 128)


def test_from_color_fills_in_bgr_order():
    asset = BackgroundAsset.from_color((255, 10, 0), 4, 3)
    assert asset.size == (4, 3)
    assert np.all(asset.data[:, :, 0] == 0)
    assert np.all(asset.data[:, :, 1] == 10)
    assert np.all(asset.data[:, :, 2] == 255)
    assert not asset.data.flags.writeable


def test_resized_regenerates_from_source():
    image = np.full((20, 20, 3), 7, dtype=np.uint8)
    asset = BackgroundAsset.from_image(image, 8, 6)
    assert asset.resized(8, 6) is asset
    bigger = asset.resized(32, 18)
    assert bigger.size == (32, 18)
    assert np.all(bigger.data == 7)

    color = BackgroundAsset.from_color((0, 255, 0), 2, 2).resized(5, 4)
    assert color.size == (5, 4)
    assert color.source == (0, 255, 0)


def test_grayscale_and_alpha_images_become_three_channel():
    gray = np.full((10, 10), 90, dtype=np.uint8)
    assert BackgroundAsset.from_image(gray, 4, 4).data.shape == (4, 4, 3)
    bgra = np.full((10, 10, 4), 90, dtype=np.uint8)
    assert BackgroundAsset.from_image(bgra, 4, 4).data.shape == (4, 4, 3)


def test_decode_image_bytes():
    image = np.zeros((5, 7, 3), dtype=np.uint8)
    image[:, :, 2] = 200
    ok, buf = cv2.imencode(".png", image)
    assert ok
    decoded = decode_image(buf.tobytes())
    assert np.array_equal(decoded, image)

    with pytest.raises(ImageDecodeError):
        decode_image(b"not an image")
    with pytest.raises(ImageDecodeError):
        decode_image(b"")


def test_invalid_target_size_is_rejected():
    with pytest.raises(ValueError):
        BackgroundAsset.from_color((0, 0, 0), 0, 10)


def test_strip_image_never_allocates_beyond_target(monkeypatch):
    sizes = []
    real_resize = cv2.resize

    def recording_resize(src, dsize, *args, **kwargs):
        sizes.append(tuple(dsize))
        return real_resize(src, dsize, *args, **kwargs)

    monkeypatch.setattr(cv2, "resize", recording_resize)
    strip = np.full((2000, 4, 3), 60, dtype=np.uint8)
    asset = BackgroundAsset.from_image(strip, 1280, 720)

    assert asset.size == (1280, 720)
    assert asset.scale == pytest.approx(320.0)
    assert sizes and max(w * h for w, h in sizes) <= 1280 * 720
    assert np.all(asset.data == 60)
