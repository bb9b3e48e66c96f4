import io
import random

import pytest
from PIL import Image

from sheet_studio.errors import FrameDecodeError, ValidationError
from sheet_studio.loader import RawFrame, decode_frame, natural_key, natural_sort, read_files


def _png(size=(4, 4), color=(1, 2, 3, 255)):
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_natural_sort_is_numeric_aware():
    frames = [RawFrame(name, b"") for name in ("f2", "f10", "f1")]
    assert [f.name for f in natural_sort(frames)] == ["f1", "f2", "f10"]


def test_natural_sort_ignores_selection_order():
    names = [f"walk_{i}.png" for i in range(1, 25)]
    shuffled = names[:]
    random.Random(7).shuffle(shuffled)
    ordered = natural_sort(RawFrame(name, b"") for name in shuffled)
    assert [f.name for f in ordered] == names


def test_natural_key_handles_mixed_runs():
    assert natural_key("a2b9") < natural_key("a2b10")
    assert natural_key("Frame3") < natural_key("frame10")
    assert natural_key("10") < natural_key("a")


def test_decode_frame_returns_rgba():
    image = decode_frame(RawFrame("x.png", _png((5, 7))))
    assert image.size == (5, 7)
    assert image.mode == "RGBA"


def test_decode_frame_rejects_garbage():
    with pytest.raises(FrameDecodeError) as excinfo:
        decode_frame(RawFrame("broken.png", b"not an image"))
    assert "broken.png" in str(excinfo.value)
    assert isinstance(excinfo.value, ValidationError)


def test_decode_frame_rejects_oversized_images(monkeypatch):
    # Pillow refuses anything above twice this many pixels.
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
    with pytest.raises(FrameDecodeError) as excinfo:
        decode_frame(RawFrame("huge.png", _png((8, 8))))
    assert "huge.png" in str(excinfo.value)


def test_read_files_uses_basenames(tmp_path):
    path = tmp_path / "frame_01.png"
    path.write_bytes(_png())
    frames = read_files([str(path)])
    assert frames == [RawFrame("frame_01.png", path.read_bytes())]
