import io

import pytest
from PIL import Image, ImageSequence

from sheet_studio import gif_encoder
from sheet_studio.errors import ContextUnavailableError, EncoderFailure
from sheet_studio.gif_encoder import (
    TRANSPARENT_INDEX,
    TWIN_INDEX,
    GifEncoder,
    GifState,
    encode_gif,
    first_opaque_pixel,
    quantize_frame,
)
from sheet_studio.settings import Settings

from helpers import solid_frames


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


@pytest.mark.parametrize("fps", [1, 10, 24, 60])
def test_gif_holds_every_frame_for_one_interval(fps):
    frames = solid_frames(5)
    export = encode_gif(frames, Settings(8, 8, fps, 5), workers=2)

    assert export.frame_count == 5
    assert export.mime_type == "image/gif"
    with _open(export.data) as payload:
        assert payload.is_animated
        assert payload.n_frames == 5
        assert payload.info["loop"] == 0
        for frame in ImageSequence.Iterator(payload):
            # GIF delays are stored in centiseconds.
            assert abs(frame.info["duration"] - 1000 / fps) <= 10


def test_progress_is_monotonic_and_complete():
    seen = []
    encode_gif(solid_frames(6), Settings(8, 8, 12, 3), on_progress=seen.append, workers=3)

    assert seen[0] == 0.0
    assert seen[-1] == 1.0
    assert all(0.0 <= value <= 1.0 for value in seen)
    assert all(a < b for a, b in zip(seen, seen[1:]))


def test_state_machine_happy_path():
    encoder = GifEncoder((8, 8), 10)
    assert encoder.state is GifState.IDLE
    encoder.begin()
    assert encoder.state is GifState.ACCUMULATING
    for frame in solid_frames(2):
        encoder.add_frame(frame)
    assert encoder.frame_count == 2
    encoder.render()
    assert encoder.state is GifState.COMPLETE


def test_add_frame_before_begin_is_rejected():
    encoder = GifEncoder((8, 8), 10)
    with pytest.raises(EncoderFailure):
        encoder.add_frame(solid_frames(1)[0])
    assert encoder.state is GifState.IDLE


def test_render_without_frames_fails():
    encoder = GifEncoder((8, 8), 10).begin()
    with pytest.raises(EncoderFailure):
        encoder.render()
    assert encoder.state is GifState.FAILED


def test_missing_canvas_fails_only_this_export(monkeypatch):
    def _no_surface(size, *args, **kwargs):
        raise ContextUnavailableError("no canvas")

    monkeypatch.setattr(gif_encoder, "new_surface", _no_surface)
    encoder = GifEncoder((8, 8), 10)
    with pytest.raises(ContextUnavailableError):
        encoder.begin()
    assert encoder.state is GifState.FAILED


def test_backend_error_is_wrapped(monkeypatch):
    def _explode(frame):
        raise OSError("quantizer crashed")

    monkeypatch.setattr(gif_encoder, "quantize_frame", _explode)
    encoder = GifEncoder((8, 8), 10).begin()
    encoder.add_frame(solid_frames(1)[0])
    with pytest.raises(EncoderFailure) as excinfo:
        encoder.render()
    assert excinfo.value.diagnostic == "quantizer crashed"
    assert encoder.state is GifState.FAILED
    assert isinstance(encoder.error, EncoderFailure)


def test_frames_are_not_mutated():
    frames = solid_frames(3)
    before = [frame.tobytes() for frame in frames]
    encode_gif(frames, Settings(8, 8, 10, 3))
    assert [frame.tobytes() for frame in frames] == before


def test_quantize_reserves_transparent_index():
    frame = Image.new("RGBA", (4, 4), (200, 10, 10, 255))
    frame.putpixel((0, 0), (0, 0, 0, 0))
    paletted = quantize_frame(frame)
    assert paletted.mode == "P"
    assert paletted.getpixel((0, 0)) == TRANSPARENT_INDEX
    assert paletted.getpixel((3, 3)) != TRANSPARENT_INDEX


def _solid(color, size=(8, 8)):
    return Image.new("RGBA", size, color)


def test_repeated_frames_are_kept_with_their_own_delay():
    same = _solid((200, 40, 40, 255))
    frames = [same, same.copy(), _solid((40, 200, 40, 255)), _solid((40, 40, 200, 255))]
    export = encode_gif(frames, Settings(8, 8, 10, 4))

    assert export.frame_count == 4
    with _open(export.data) as payload:
        assert payload.n_frames == 4
        decoded = []
        for frame in ImageSequence.Iterator(payload):
            assert abs(frame.info["duration"] - 100) <= 10
            decoded.append(frame.convert("RGBA").tobytes())
    assert decoded[0] == decoded[1]
    assert decoded[1] != decoded[2]


def test_long_holds_keep_every_frame():
    hold = [_solid((10, 120, 250, 255)) for _ in range(5)]
    export = encode_gif(hold, Settings(8, 8, 20, 5))

    with _open(export.data) as payload:
        assert payload.n_frames == 5
        looks = {frame.convert("RGBA").tobytes() for frame in ImageSequence.Iterator(payload)}
    assert len(looks) == 1


def test_repeated_blank_frames_are_kept():
    blank = [_solid((0, 0, 0, 0)) for _ in range(3)]
    export = encode_gif(blank, Settings(8, 8, 10, 3))

    assert export.frame_count == 3
    with _open(export.data) as payload:
        assert payload.n_frames == 3


def test_twin_slot_repeats_first_opaque_colour():
    frame = _solid((0, 0, 0, 0), size=(4, 4))
    frame.putpixel((2, 1), (90, 160, 30, 255))
    paletted = quantize_frame(frame)

    assert first_opaque_pixel(paletted) == (2, 1)
    palette = paletted.getpalette()
    index = paletted.getpixel((2, 1))
    assert palette[TWIN_INDEX * 3 : TWIN_INDEX * 3 + 3] == palette[index * 3 : index * 3 + 3]


def test_wrong_size_frame_fails_the_export():
    encoder = GifEncoder((8, 8), 10).begin()
    with pytest.raises(EncoderFailure) as excinfo:
        encoder.add_frame(_solid((1, 2, 3, 255), size=(9, 8)))
    assert "9x8" in excinfo.value.diagnostic
    assert encoder.state is GifState.FAILED
