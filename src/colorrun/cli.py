"""Command-line interface for Color Run."""

import signal
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from colorrun.core.config import FrameFormat, FrameMode, get_settings
from colorrun.core.errors import EncoderExitError, IngestError, PaletteError
from colorrun.core.logging import setup_logging

app = typer.Typer(
    name="colorrun",
    help="Endless palette gradient video stream",
    add_completion=False,
)
console = Console()


@app.command()
def stream(
    width: Annotated[Optional[int], typer.Option("--width", "-w", help="Image width")] = None,
    height: Annotated[Optional[int], typer.Option("--height", "-h", help="Image height")] = None,
    frames: Annotated[
        Optional[int], typer.Option("--frames", "-f", help="Frames to transition from one color to the next")
    ] = None,
    random_model: Annotated[
        Optional[bool], typer.Option("--random-model/--default-model", "-r", help="Use a random palette model")
    ] = None,
    stream_key: Annotated[Optional[str], typer.Option("--stream-key", "-k", help="Twitch stream key")] = None,
    dump_dir: Annotated[
        Optional[Path], typer.Option("--dump-dir", "-d", help="Write out.flv here instead of streaming")
    ] = None,
    mode: Annotated[Optional[FrameMode], typer.Option(help="Frame drawing mode")] = None,
    frame_format: Annotated[Optional[FrameFormat], typer.Option(help="Frame format sent to ffmpeg")] = None,
    log_level: Annotated[Optional[str], typer.Option(help="Log level")] = None,
):
    """Stream palette transitions to Twitch (or a local file)."""
    from colorrun.ingest import resolve_ingest_url
    from colorrun.palette.client import PaletteClient
    from colorrun.pipeline import FfmpegEncoder, PipelineCoordinator, make_frame_encoder

    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    width = width or settings.image.width
    height = height or settings.image.height
    frames = frames or settings.image.transition_frames
    random_model = settings.palette.random_model if random_model is None else random_model
    stream_key = stream_key or settings.stream_key
    dump_dir = dump_dir or settings.dump_dir
    mode = mode or settings.image.mode
    frame_format = frame_format or settings.image.frame_format

    if not stream_key and dump_dir is None:
        console.print("[red]Stream key not set (use --stream-key or COLORRUN_STREAM_KEY)[/red]")
        raise typer.Exit(1)

    with PaletteClient(base_url=settings.palette.base_url, timeout=settings.palette.timeout) as client:
        try:
            model = client.choose_model(random_model) if random_model else settings.palette.default_model
        except PaletteError as e:
            console.print(f"[red]Getting palette models failed:[/red] {e}")
            raise typer.Exit(1)

        if dump_dir is not None:
            dump_dir.mkdir(parents=True, exist_ok=True)
            output = str(dump_dir / "out.flv")
        else:
            try:
                output = resolve_ingest_url(stream_key, url=settings.ingest_url)
            except IngestError as e:
                console.print(f"[red]Getting ingest URL failed:[/red] {e}")
                raise typer.Exit(1)

        frame_encoder = make_frame_encoder(frame_format)
        coordinator = PipelineCoordinator(
            client,
            model,
            width=width,
            height=height,
            transition_frames=frames,
            mode=mode,
            frame_encoder=frame_encoder,
            color_queue_size=settings.palette.color_queue_size,
            frame_queue_size=settings.image.frame_queue_size,
            pacing_interval=settings.palette.pacing_interval,
            retry_backoff=settings.palette.retry_backoff,
        )
        encoder = FfmpegEncoder(
            coordinator.stream,
            width=width,
            height=height,
            output=output,
            framerate=settings.encoder.framerate,
            input_format=frame_encoder.input_format,
            preset=settings.encoder.preset,
            output_format=settings.encoder.output_format,
            chunk_size=settings.encoder.chunk_size,
            report_error=coordinator.report_error,
            ffmpeg_bin=settings.encoder.ffmpeg_bin,
        )

        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, lambda *_: coordinator.request_shutdown())

        coordinator.start()
        try:
            encoder.start()
        except EncoderExitError as e:
            console.print(f"[red]{e}[/red]")
            coordinator.shutdown()
            raise typer.Exit(1)

        try:
            coordinator.run()
        finally:
            coordinator.shutdown()
            encoder.finish()

    if coordinator.errors_seen:
        table = Table(title="Errors")
        table.add_column("Kind")
        table.add_column("Count", justify="right")
        for kind, count in coordinator.errors_seen.most_common():
            table.add_row(kind, str(count))
        console.print(table)

    if coordinator.errors_seen["EncoderExitError"] or coordinator.errors_seen["StageError"]:
        raise typer.Exit(1)


@app.command()
def models():
    """List the palette models the API offers."""
    from colorrun.palette.client import PaletteClient

    settings = get_settings()
    with PaletteClient(base_url=settings.palette.base_url, timeout=settings.palette.timeout) as client:
        try:
            names = client.list_models()
        except PaletteError as e:
            console.print(f"[red]Listing models failed:[/red] {e}")
            raise typer.Exit(1)

    table = Table(title="Palette models")
    table.add_column("Model")
    for name in names:
        table.add_row(name)
    console.print(table)


@app.command()
def palette(
    model: Annotated[Optional[str], typer.Option(help="Palette model")] = None,
):
    """Fetch one palette and show it."""
    from colorrun.palette.client import PaletteClient

    settings = get_settings()
    with PaletteClient(base_url=settings.palette.base_url, timeout=settings.palette.timeout) as client:
        try:
            result = client.get_palette(model or settings.palette.default_model)
        except PaletteError as e:
            console.print(f"[red]Fetching palette failed:[/red] {e}")
            raise typer.Exit(1)

    table = Table(title=f"Palette ({model or settings.palette.default_model})")
    table.add_column("#", justify="right")
    table.add_column("RGB")
    table.add_column("Swatch")
    for i, color in enumerate(result):
        table.add_row(
            str(i),
            f"{color.r}, {color.g}, {color.b}",
            f"[on rgb({color.r},{color.g},{color.b})]        [/]",
        )
    console.print(table)


if __name__ == "__main__":
    app()
