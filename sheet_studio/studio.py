"""Gradio front-end: upload frames, tune settings, generate and export.

The UI only gathers input and writes finished blobs to temporary files for
download; all composition and encoding happens in the engine modules.
"""
from __future__ import annotations

import atexit
import logging
import os
import queue
import tempfile
import threading
from typing import Callable, Generator, List, Optional

import gradio as gr

from .config import load_config
from .errors import SheetStudioError
from .gif_encoder import encode_gif
from .layout import describe_output, suggest_columns
from .loader import read_files
from .preview import AnimationPreviewer
from .settings import MAX_FPS, MIN_FPS, Settings, default_settings
from .video_encoder import record_video
from .worker import PROGRESS, RESULT, StudioSession

logger = logging.getLogger(__name__)

IMAGE_TYPES = [".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif"]
PREVIEW_SECONDS = 10.0


def _paths(files) -> List[str]:
    if not files:
        return []
    paths = []
    for item in files:
        paths.append(item.name if hasattr(item, "name") else str(item))
    return paths


def _settings(width, height, fps, columns) -> Settings:
    try:
        return Settings.from_values(width, height, fps, columns)
    except SheetStudioError as exc:
        raise gr.Error(str(exc)) from exc


def _write_temp(data: bytes, suffix: str) -> str:
    handle, path = tempfile.mkstemp(prefix="sheet_studio_", suffix=suffix)
    with os.fdopen(handle, "wb") as out:
        out.write(data)
    return path


def output_summary(files, width, height, fps, columns) -> str:
    """Markdown describing the sheet the current inputs would produce."""

    paths = _paths(files)
    if not paths:
        return "Upload frames to see the expected sheet."
    try:
        settings = Settings.from_values(width, height, fps, columns)
    except SheetStudioError as exc:
        return f"**Invalid settings:** {exc}"
    info = describe_output(len(paths), settings)
    lines = [
        f"- Sheet size: **{info.sheet_width} x {info.sheet_height} px**",
        f"- Layout (columns x rows): **{info.columns} x {info.rows}**",
        f"- Frames used: **{info.effective_frames} / {info.total_frames}**",
    ]
    if info.warning:
        lines.append(f"\n**Warning:** {info.warning}")
    return "\n".join(lines)


def on_files_changed(files, width, height, fps, columns):
    """Pick a roughly square column count for a fresh frame set."""

    paths = _paths(files)
    if paths:
        columns = suggest_columns(len(paths))
    return gr.update(value=columns), output_summary(files, width, height, fps, columns)


def generate(session: StudioSession, files, width, height, fps, columns) -> Generator:
    paths = _paths(files)
    if not paths:
        raise gr.Error("Upload images first.")
    settings = _settings(width, height, fps, columns)
    try:
        job = session.submit(read_files(paths), settings)
    except SheetStudioError as exc:
        raise gr.Error(str(exc)) from exc

    yield "Loading images...", None, None
    for message in job.messages():
        if message.kind == PROGRESS:
            yield message.text, None, None
        elif message.kind == RESULT:
            result = message.payload
            session.result = result
            sheet_path = _write_temp(result.sheet_png, ".png")
            status = f"Done: {result.total_frames} frames ({result.columns}x{result.rows})"
            yield status, result.sheet_image, sheet_path
        else:
            yield f"Generation failed: {message.text}", None, None


class _Saved:
    """An export blob and the temporary file it was written to."""

    def __init__(self, export, path: str) -> None:
        self.export = export
        self.path = path


def _stream_export(run: Callable[[Callable], object], describe: Callable[[object], str]) -> Generator:
    """Run ``run`` on a thread and relay its progress as status text."""

    updates: "queue.Queue" = queue.Queue()

    def _worker():
        try:
            updates.put(("final", run(lambda text: updates.put(("progress", text)))))
        except SheetStudioError as exc:
            updates.put(("error", str(exc)))
        except Exception as exc:
            logger.exception("Export crashed")
            updates.put(("error", str(exc) or exc.__class__.__name__))

    threading.Thread(target=_worker, daemon=True).start()
    while True:
        tag, value = updates.get()
        if tag == "progress":
            yield value, None
        elif tag == "final":
            yield describe(value), value.path
            return
        else:
            yield f"Export failed: {value}", None
            return


def export_gif(session: StudioSession, fps, workers: int = 4) -> Generator:
    result = session.result
    if result is None:
        raise gr.Error("Generate a sprite sheet first.")
    settings = _settings(*result.frame_size, fps, max(1, result.columns))

    def _run(report):
        export = encode_gif(
            result.frames,
            settings,
            on_progress=lambda fraction: report(f"Building GIF... {fraction * 100:.0f}%"),
            workers=workers,
        )
        return _Saved(export, _write_temp(export.data, ".gif"))

    yield from _stream_export(_run, lambda saved: f"GIF ready: {saved.export.frame_count} frames")


def export_video(session: StudioSession, fps, realtime: bool = True) -> Generator:
    result = session.result
    if result is None:
        raise gr.Error("Generate a sprite sheet first.")
    settings = _settings(*result.frame_size, fps, max(1, result.columns))

    def _run(report):
        export = record_video(
            result.frames,
            settings,
            realtime=realtime,
            on_progress=lambda done, total: report(f"Recording video in real time... {done}/{total}"),
        )
        return _Saved(export, _write_temp(export.data, f".{export.extension}"))

    yield from _stream_export(
        _run,
        lambda saved: f"Video ready ({saved.export.mime_type}): {saved.export.frame_count} frames",
    )


def play_preview(session: StudioSession, fps, seconds: float = PREVIEW_SECONDS) -> Generator:
    """Stream preview frames for ``seconds`` of playback."""

    result = session.result
    if result is None:
        raise gr.Error("Generate a sprite sheet first.")
    previewer = AnimationPreviewer(result.frames, int(fps))
    for _index, surface in previewer.play(duration_s=seconds):
        yield surface.copy()


def build_ui(session: Optional[StudioSession] = None) -> gr.Blocks:
    config = load_config()
    defaults = default_settings(config)
    limits = config["limits"]
    export_cfg = config["export"]
    if session is None:
        session = StudioSession(defaults)
        atexit.register(session.close)

    def _generate(*args):
        yield from generate(session, *args)

    def _gif(fps_value):
        yield from export_gif(session, fps_value, workers=int(export_cfg["gif_workers"]))

    def _video(fps_value):
        yield from export_video(session, fps_value, realtime=bool(export_cfg["video_realtime"]))

    def _preview(fps_value):
        yield from play_preview(session, fps_value)

    with gr.Blocks(analytics_enabled=False, title="Sprite Sheet Studio") as demo:
        gr.Markdown("## Sprite Sheet Studio")
        gr.Markdown("Upload numbered frames, choose a frame size and grid, then export a sheet, GIF or video.")

        with gr.Row():
            with gr.Column(scale=4):
                files = gr.File(label="1. Frames", file_count="multiple", file_types=IMAGE_TYPES, type="filepath")
                with gr.Row():
                    width = gr.Number(value=defaults.frame_width, precision=0, minimum=1,
                                      maximum=limits["max_frame_size"], label="Frame width (px)")
                    height = gr.Number(value=defaults.frame_height, precision=0, minimum=1,
                                       maximum=limits["max_frame_size"], label="Frame height (px)")
                columns = gr.Number(
                    value=defaults.max_columns,
                    precision=0,
                    minimum=1,
                    maximum=limits["max_columns"],
                    label="Columns",
                    info="Frames per row. Frames that cannot fill the last row are dropped.",
                )
                fps = gr.Slider(MIN_FPS, MAX_FPS, value=defaults.fps, step=1, label="Animation FPS")
                summary = gr.Markdown(output_summary(None, defaults.frame_width, defaults.frame_height,
                                                     defaults.fps, defaults.max_columns))
                generate_btn = gr.Button("Generate sprite sheet", variant="primary")

            with gr.Column(scale=8):
                status = gr.Textbox(label="Status", interactive=False)
                with gr.Tabs():
                    with gr.TabItem("Animation preview"):
                        preview_img = gr.Image(label="Preview", type="pil", interactive=False)
                        preview_btn = gr.Button("Play preview")
                    with gr.TabItem("Sprite sheet"):
                        sheet_img = gr.Image(label="Sprite sheet", type="pil", interactive=False)
                with gr.Row():
                    sheet_file = gr.File(label="PNG sheet")
                    gif_file = gr.File(label="GIF")
                    video_file = gr.File(label="Video")
                with gr.Row():
                    gif_btn = gr.Button("Export GIF")
                    video_btn = gr.Button("Export video")

        inputs = [files, width, height, fps, columns]
        files.change(on_files_changed, inputs=inputs, outputs=[columns, summary])
        for control in (width, height, fps, columns):
            control.change(output_summary, inputs=inputs, outputs=summary)

        generate_btn.click(_generate, inputs=inputs, outputs=[status, sheet_img, sheet_file])
        preview_btn.click(_preview, inputs=[fps], outputs=preview_img)
        gif_btn.click(_gif, inputs=[fps], outputs=[status, gif_file])
        video_btn.click(_video, inputs=[fps], outputs=[status, video_file])

    return demo


__all__ = [
    "build_ui",
    "export_gif",
    "export_video",
    "generate",
    "on_files_changed",
    "output_summary",
    "play_preview",
]
