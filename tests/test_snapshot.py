import cv2
import numpy as np
import pytest

from backdrop.export.snapshot import SnapshotExporter
from backdrop.utils.errors import EncodingError
from backdrop.utils.types import Composite


def _composite():
    data = np.zeros((6, 8, 3), dtype=np.uint8)
    data[:, :4] = (0, 255, 0)
    data[:, 4:] = (10, 20, 30)
    return Composite(data=data, frame_index=1, timestamp=0.0)


def test_png_snapshot_is_lossless():
    comp = _composite()
    encoded = SnapshotExporter().export(comp, fmt="png")
    assert encoded.mime_type == "image/png"
    assert (encoded.width, encoded.height) == (8, 6)
    decoded = cv2.imdecode(np.frombuffer(encoded.data, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert np.array_equal(decoded, comp.data)


def test_jpeg_default_quality_and_clamping():
    exporter = SnapshotExporter()
    encoded = exporter.export(_composite())
    assert encoded.mime_type == "image/jpeg"
    assert encoded.data[:2] == b"\xff\xd8"
    assert exporter.export(_composite(), quality=5.0).data[:2] == b"\xff\xd8"
    assert exporter.export(_composite(), quality=-1).data[:2] == b"\xff\xd8"


def test_export_does_not_mutate_composite():
    comp = _composite()
    before = comp.data.copy()
    SnapshotExporter().export(comp, fmt="webp", quality=0.5)
    assert np.array_equal(comp.data, before)


def test_unsupported_format_raises():
    with pytest.raises(EncodingError):
        SnapshotExporter().export(_composite(), fmt="tiff-raw")


def test_data_url():
    encoded = SnapshotExporter().export(_composite(), fmt="png")
    assert encoded.to_data_url().startswith("data:image/png;base64,")
