from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pindl.config import ffmpeg_enabled, get_settings
from pindl.constants import APP_NAME, APP_VERSION
from pindl.errors import PinterestError
from pindl.log import setup_logging
from pindl.services.downloader import MediaDownloader
from pindl.services.extractor import PinterestExtractor
from pindl.utils.pin_urls import detect_input_type, normalize_username, parse_pin_input
from pindl.utils.validation import split_inputs
from pindl.workers.download_worker import DownloadJob

app = typer.Typer(no_args_is_help=True, help=f"{APP_NAME}: download Pinterest pins and profiles.")

_console = Console()

STATUS_STYLES = {
    "Downloaded": "green",
    "Skipped": "yellow",
    "Failed": "red",
}


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs."),
) -> None:
    settings = get_settings()
    setup_logging(settings.log_level, verbose or settings.verbose)


@app.command()
def version() -> None:
    """Print the version and enabled features."""

    ffmpeg = "enabled" if ffmpeg_enabled() else "disabled"
    _console.print(f"{APP_NAME} {APP_VERSION} (ffmpeg {ffmpeg})")


@app.command()
def detect(inputs: list[str] = typer.Argument(..., help="Pin links, pin IDs or usernames.")) -> None:
    """Classify inputs without touching the network."""

    table = Table(title="Input detection")
    table.add_column("Input")
    table.add_column("Type")
    table.add_column("Format")
    table.add_column("Value")

    for raw in inputs:
        input_type = detect_input_type(raw)
        if input_type == "pin":
            parsed = parse_pin_input(raw)
            table.add_row(escape(raw), "pin", parsed.format, parsed.id)
        elif input_type == "username":
            table.add_row(escape(raw), "username", "-", normalize_username(raw))
        else:
            table.add_row(escape(raw), "[red]unrecognized[/red]", "-", "-")

    _console.print(table)


@app.command()
def info(
    pin: str = typer.Argument(..., help="Pin link or pin ID."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
) -> None:
    """Show the media found on a single pin."""

    settings = get_settings()
    try:
        with PinterestExtractor(timeout_seconds=settings.request_timeout_seconds) as extractor:
            media = extractor.get_pin_media(pin)
    except PinterestError as exc:
        _console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    if as_json:
        _console.print_json(json.dumps(media.to_json()))
        return

    table = Table(title=f"Pin {media.pin_id}", show_header=False)
    table.add_row("Title", media.title)
    table.add_row("Author", f"@{media.author.username} ({media.author.name})")
    table.add_row("Image", media.image_url or "-")
    table.add_row("Video", media.video_url or "-")
    table.add_row("Thumbnail", media.thumbnail or "-")
    _console.print(table)


@app.command()
def download(
    inputs: list[str] = typer.Argument(..., help="Pin links, pin IDs or usernames."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output folder."),
    images: bool = typer.Option(True, "--images/--no-images", help="Download images."),
    videos: bool = typer.Option(True, "--videos/--no-videos", help="Download videos."),
    thumbnails: bool = typer.Option(False, "--thumbnails", help="Also download video thumbnails."),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace existing files."),
    max_pages: int | None = typer.Option(None, "--max-pages", min=1, max=100),
    metadata: bool = typer.Option(True, "--metadata/--no-metadata", help="Write JSON metadata."),
    resume: bool = typer.Option(
        False, "--continue", help="Resume profiles from their saved metadata."
    ),
) -> None:
    """Download pins and whole profiles."""

    settings = get_settings()
    valid_inputs, invalid_entries = split_inputs(inputs)
    for entry in invalid_entries:
        _console.print(f"[yellow]Ignoring unrecognized input:[/yellow] {escape(entry)}")
    if not valid_inputs:
        _console.print("[red]Nothing to download.[/red]")
        raise typer.Exit(code=1)

    def show_row(row: dict) -> None:
        style = STATUS_STYLES.get(row["status"])
        if style is None:
            return
        detail = row["saved_path"] or row["error"]
        _console.print(
            f"[{style}]{row['status']:<10}[/{style}] #{row['index']} "
            f"{escape(row['filename'])} {escape(detail)}"
        )

    extractor = PinterestExtractor(
        timeout_seconds=settings.request_timeout_seconds,
        verbose=settings.verbose,
    )
    job = DownloadJob(
        valid_inputs,
        output_dir=output or settings.output_dir,
        include_images=images,
        include_videos=videos,
        include_thumbnails=thumbnails,
        overwrite=overwrite,
        max_pages=max_pages or settings.max_pages,
        save_metadata=metadata,
        resume=resume,
        extractor=extractor,
        downloader=MediaDownloader(timeout_seconds=settings.download_timeout_seconds),
        on_row=show_row,
        on_note=lambda message: _console.print(f"[cyan]{escape(message)}[/cyan]"),
    )

    try:
        summary = job.run()
    except KeyboardInterrupt:
        job.stop()
        _console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(code=130)
    finally:
        extractor.close()

    _console.print(
        f"Done: {summary['success']} downloaded, {summary['skipped']} skipped, "
        f"{summary['failed']} failed of {summary['total']}."
    )
    if summary["failed"]:
        raise typer.Exit(code=1)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
