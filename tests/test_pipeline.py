import random

import pytest
from PIL import Image

from sheet_studio.compositor import cell_origin
from sheet_studio.errors import FrameDecodeError, InsufficientFramesError, ValidationError
from sheet_studio.loader import RawFrame
from sheet_studio.pipeline import ProcessResult, run_job
from sheet_studio.settings import Settings

from helpers import color_for, raw_frames


def test_run_job_builds_sheet_and_trims_tail():
    sources = raw_frames(10)
    random.Random(3).shuffle(sources)
    messages = []

    result = run_job(sources, Settings(6, 4, 12, 4), on_progress=messages.append)

    assert isinstance(result, ProcessResult)
    assert (result.columns, result.rows, result.total_frames) == (4, 2, 8)
    assert result.sheet_size == (24, 8)
    assert len(result.frames) == 8
    # frame1..frame8 survive in natural order; frame9 and frame10 are dropped.
    for index, frame in enumerate(result.frames):
        assert frame.size == (6, 4)
        assert frame.getpixel((3, 2)) == color_for(index + 1)
        x, y = cell_origin(index, 4, (6, 4))
        assert result.sheet_image.getpixel((x + 3, y + 2)) == color_for(index + 1)

    assert messages[0] == "Loading 8 images..."
    assert "Processing frame 1 of 8..." in messages
    assert messages[-1] == "Finalizing sprite sheet..."
    assert result.sheet_png.startswith(b"\x89PNG")


def test_progress_is_reported_every_ten_frames():
    messages = []
    run_job(raw_frames(25, size=(2, 2)), Settings(2, 2, 24, 5), on_progress=messages.append)
    frame_messages = [m for m in messages if m.startswith("Processing frame ")]
    assert frame_messages == [
        "Processing frame 1 of 25...",
        "Processing frame 11 of 25...",
        "Processing frame 21 of 25...",
    ]


def test_empty_input_is_rejected():
    with pytest.raises(ValidationError):
        run_job([], Settings(8, 8, 24, 4))


def test_invalid_settings_are_rejected_before_work():
    with pytest.raises(ValidationError):
        run_job(raw_frames(2), Settings(0, 8, 24, 4))


def test_undecodable_frame_fails_job():
    sources = raw_frames(3) + [RawFrame("frame4.png", b"garbage")]
    with pytest.raises(FrameDecodeError):
        run_job(sources, Settings(8, 8, 24, 4))


def test_trimmed_frames_are_not_decoded():
    sources = raw_frames(4) + [RawFrame("frame5.png", b"garbage")]
    result = run_job(sources, Settings(8, 8, 24, 2))
    assert result.total_frames == 4


def test_insufficient_frames_propagates(monkeypatch):
    from sheet_studio import pipeline

    def _refuse(total, settings):
        raise InsufficientFramesError("reduce the column count")

    monkeypatch.setattr(pipeline, "plan_for", _refuse)
    with pytest.raises(InsufficientFramesError):
        run_job(raw_frames(2), Settings(8, 8, 24, 5))


def test_result_frames_are_a_tuple():
    result = run_job(raw_frames(2), Settings(8, 8, 24, 2))
    assert isinstance(result.frames, tuple)
    assert all(isinstance(frame, Image.Image) for frame in result.frames)
