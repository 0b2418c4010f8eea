"""Rich command-line interface powered by Typer."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import numpy as np
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from pixel_quant.config import QuantizeConfig
from pixel_quant.errors import QuantizeError
from pixel_quant.histogram import Histogram
from pixel_quant.image import SourceImage
from pixel_quant.image_io import (
    collect_images,
    expand_indices,
    load_rgba,
    make_comparison_grid,
    save_indexed_png,
)
from pixel_quant.quantize import QuantizeResult, quantize, quantize_histogram

app = typer.Typer(
    name="pixel-quant",
    help="Convert RGBA images to palette-indexed PNGs with at most 256 colours.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
        force=True,
    )


def _parse_quality(text: str) -> tuple[int, int]:
    """Parse ``"MIN-MAX"`` or ``"MAX"`` (minimum 0)."""
    try:
        if "-" in text:
            lo, hi = text.split("-", 1)
            return int(lo), int(hi)
        return 0, int(text)
    except ValueError as exc:
        msg = f"Expected MIN-MAX or MAX, got {text!r}"
        raise typer.BadParameter(msg) from exc


def _make_config(colors: int, speed: int, quality: str, dither: float) -> QuantizeConfig:
    lo, hi = _parse_quality(quality)
    try:
        return QuantizeConfig(
            max_colors=colors,
            speed=speed,
            min_quality=lo,
            max_quality=hi,
            dithering_level=dither,
        )
    except QuantizeError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _fail(exc: QuantizeError | OSError) -> typer.Exit:
    """Print *exc* in a red panel; quantization errors exit with their code."""
    console.print(Panel.fit(
        f"[bold red]{type(exc).__name__}[/bold red]\n{exc}",
        border_style="red",
    ))
    code = int(exc.code) if isinstance(exc, QuantizeError) else 1
    return typer.Exit(code=code)


def _write_outputs(
    result: QuantizeResult,
    image: SourceImage,
    output: Path,
    compare: bool,
) -> None:
    indices = result.remapped(image)
    save_indexed_png(output, result.palette, indices, image.width, image.height)
    if compare:
        quantized = expand_indices(result.palette, indices, image.width, image.height)
        comp_path = output.with_name(f"{output.stem}_comparison.png")
        make_comparison_grid(np.asarray(image.pixels), quantized, comp_path)


# Defaults come from QuantizeConfig - single source of truth
_DEFAULTS = QuantizeConfig()
_DEFAULT_QUALITY = f"{_DEFAULTS.min_quality}-{_DEFAULTS.max_quality}"


# -- single-image command ----------------------------------------------

@app.command()
def single(
    source: Path = typer.Argument(..., help="Image to quantize"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Indexed PNG to write (default: SOURCE-fs8.png)",
    ),
    colors: int = typer.Option(
        _DEFAULTS.max_colors, "--colors", "-c", help="Maximum palette size (1-256)",
    ),
    speed: int = typer.Option(
        _DEFAULTS.speed, "--speed", "-s", help="1 (slow, best) to 10 (fast, rough)",
    ),
    quality: str = typer.Option(
        _DEFAULT_QUALITY, "--quality", "-q", help="MIN-MAX quality range (0-100)",
    ),
    dither: float = typer.Option(
        _DEFAULTS.dithering_level, "--dither", "-d", help="Dithering level (0.0-1.0)",
    ),
    compare: bool = typer.Option(
        False, "--compare/--no-compare", help="Also save a side-by-side comparison",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Quantize a single image."""
    _setup_logging(verbose)
    cfg = _make_config(colors, speed, quality, dither)
    if output is None:
        output = source.with_name(f"{source.stem}-fs8.png")
    output.parent.mkdir(parents=True, exist_ok=True)

    t0 = time.perf_counter()
    try:
        buffer, width, height = load_rgba(source)
        with SourceImage(buffer, width, height) as image, quantize(image, cfg) as result:
            _write_outputs(result, image, output, compare)
            n_colors = len(result.palette)
            score = result.quantization_quality
    except (QuantizeError, OSError) as exc:
        raise _fail(exc) from exc

    console.print(
        f"[green]✓[/green] Saved to {output}  "
        f"[dim]{width}x{height}  colours={n_colors}  quality={score:.1f}"
        f"  time={time.perf_counter() - t0:.1f}s[/dim]"
    )


# -- batch command -----------------------------------------------------

@app.command()
def batch(
    input_dir: Path = typer.Option(
        Path("images"), "--input", "-i", help="Folder with source images",
    ),
    output_dir: Path = typer.Option(
        Path("output"), "--output", "-o", help="Results folder",
    ),
    colors: int = typer.Option(_DEFAULTS.max_colors, "--colors", "-c"),
    speed: int = typer.Option(_DEFAULTS.speed, "--speed", "-s"),
    quality: str = typer.Option(_DEFAULT_QUALITY, "--quality", "-q"),
    dither: float = typer.Option(_DEFAULTS.dithering_level, "--dither", "-d"),
    share_palette: bool = typer.Option(
        False, "--share-palette/--no-share-palette",
        help="Build one palette from all images together",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Quantize every image in INPUT_DIR and write results to OUTPUT_DIR."""
    _setup_logging(verbose)
    logger = logging.getLogger("pixel_quant")
    cfg = _make_config(colors, speed, quality, dither)

    images = collect_images(input_dir)
    if not images:
        console.print(f"\n[yellow]No images found in {input_dir}/[/yellow]")
        raise typer.Exit(0)
    output_dir.mkdir(parents=True, exist_ok=True)

    console.print(Panel.fit(
        f"[bold]PIXEL QUANT[/bold]\n"
        f"Colours: {cfg.max_colors}  |  Speed: {cfg.speed}  |  "
        f"Quality: {cfg.min_quality}-{cfg.max_quality}\n"
        f"Dithering: {cfg.dithering_level:g}  |  Shared palette: {share_palette}  |  "
        f"Images: {len(images)}",
        border_style="cyan",
    ))

    sources: list[tuple[Path, SourceImage]] = []
    shared: QuantizeResult | None = None
    try:
        for path in images:
            buffer, width, height = load_rgba(path)
            sources.append((path, SourceImage(buffer, width, height)))

        if share_palette:
            with Histogram(cfg) as hist:
                for _, image in sources:
                    hist.add_image(image)
                shared = quantize_histogram(hist, cfg)
            logger.info(
                "Shared palette: %d colours  quality=%.2f",
                len(shared.palette), shared.quantization_quality,
            )

        for idx, (path, image) in enumerate(sources, 1):
            console.rule(f"[bold cyan][{idx}/{len(sources)}] {path.name}[/bold cyan]")
            t0 = time.perf_counter()
            result = shared if shared is not None else quantize(image, cfg)
            out_path = output_dir / f"{path.stem}.png"
            try:
                _write_outputs(result, image, out_path, compare=False)
                n_colors = len(result.palette)
                score = result.quantization_quality
            finally:
                if result is not shared:
                    result.destroy()
            console.print(
                f"  [green]✓[/green] {out_path.name}  "
                f"[dim]{image.width}x{image.height}  colours={n_colors}"
                f"  quality={score:.1f}"
                f"  time={time.perf_counter() - t0:.1f}s[/dim]"
            )
    except (QuantizeError, OSError) as exc:
        raise _fail(exc) from exc
    finally:
        for _, image in sources:
            if image.alive:
                image.destroy()
        if shared is not None and shared.alive:
            shared.destroy()

    console.print(Panel.fit(
        f"[bold green]ALL DONE[/bold green] - results in [bold]{output_dir}/[/bold]",
        border_style="green",
    ))


if __name__ == "__main__":
    app()
