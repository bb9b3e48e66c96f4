import pytest

from sheet_studio.errors import ValidationError
from sheet_studio.layout import (
    HARD_WARNING,
    SOFT_WARNING,
    describe_output,
    plan_layout,
    suggest_columns,
    texture_warning,
)
from sheet_studio.settings import Settings


def test_ten_frames_four_columns_drops_two():
    layout = plan_layout(10, 4, 32, 16)
    assert (layout.columns, layout.rows) == (4, 2)
    assert layout.effective_frame_count == 8
    assert layout.trimmed == 2
    assert layout.sheet_size == (128, 32)


def test_columns_are_capped_at_frame_count():
    layout = plan_layout(3, 5, 10, 10)
    assert (layout.columns, layout.rows, layout.effective_frame_count) == (3, 1, 3)


def test_two_frames_five_columns_shrinks_to_one_row():
    layout = plan_layout(2, 5, 10, 10)
    assert (layout.columns, layout.rows, layout.effective_frame_count) == (2, 1, 2)


def test_zero_frames_is_empty_layout():
    layout = plan_layout(0, 4, 10, 10)
    assert layout.is_empty
    assert layout.sheet_size == (0, 0)
    assert layout.effective_frame_count == 0


def test_invalid_inputs_rejected():
    with pytest.raises(ValidationError):
        plan_layout(-1, 4, 10, 10)
    with pytest.raises(ValidationError):
        plan_layout(4, 0, 10, 10)


@pytest.mark.parametrize("total", range(1, 41))
@pytest.mark.parametrize("max_columns", [1, 2, 3, 5, 8, 13])
def test_layout_invariants(total, max_columns):
    layout = plan_layout(total, max_columns, 7, 5)
    assert layout.columns == min(total, max_columns)
    assert layout.rows == total // layout.columns
    assert layout.effective_frame_count <= total
    assert layout.total_frames - layout.trimmed == layout.effective_frame_count
    assert layout.sheet_size == (layout.columns * 7, layout.rows * 5)


def test_texture_warnings():
    assert texture_warning(4096, 4096) is None
    assert texture_warning(4097, 10) == SOFT_WARNING
    assert texture_warning(10, 8193) == HARD_WARNING


def test_describe_output_reports_warning_without_blocking():
    info = describe_output(40, Settings(300, 100, 24, 20))
    assert (info.columns, info.rows) == (20, 2)
    assert info.sheet_width == 6000
    assert info.warning == SOFT_WARNING
    assert info.effective_frames == 40


def test_describe_output_for_no_frames():
    info = describe_output(0, Settings(10, 10, 24, 4))
    assert (info.columns, info.rows, info.effective_frames) == (0, 0, 0)
    assert info.warning is None


def test_suggest_columns_is_squarish():
    assert suggest_columns(0) == 1
    assert suggest_columns(1) == 1
    assert suggest_columns(9) == 3
    assert suggest_columns(10) == 4
