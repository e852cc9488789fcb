import asyncio
import logging
import os
import sys
import argparse

try:
    from rich.console import Console
    from rich.table import Table
    from rich.panel import Panel
    from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn
    from rich import box
except ImportError:
    print("Error: The 'rich' library is required for the CLI but not installed.", file=sys.stderr)
    print("Please install it with: pip install specview[cli]", file=sys.stderr)
    sys.exit(1)

from specviewlib import __version__
from specviewlib.audio import AudioDecodeError, discover_recordings, format_duration
from specviewlib.browser import RecordingBrowser
from specviewlib.colormap import COLOR_SCALES
from specviewlib.config import (
    ConfigError, default_config, load_preset, merge_configs,
    overlay_config_from_dict, spectrogram_config_from_dict, validate_config,
)
from specviewlib.events import RENDER_COMPLETE
from specviewlib.export import save_json, save_png

console = Console()


def positive_int(value):
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return ivalue


def positive_float(value):
    fvalue = float(value)
    if fvalue <= 0:
        raise argparse.ArgumentTypeError("must be a positive number")
    return fvalue


def marking(value):
    """FIELD:MS"""
    name, sep, ms = value.rpartition(":")
    if not sep or not name:
        raise argparse.ArgumentTypeError("expected FIELD:MS, e.g. onset:250")
    try:
        return name, float(ms)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid time '{ms}'")


def segment(value):
    """START:END in ms"""
    start, sep, end = value.partition(":")
    try:
        start_ms, end_ms = float(start), float(end)
    except ValueError:
        raise argparse.ArgumentTypeError("expected START:END in ms, e.g. 100:900")
    if not sep or end_ms < start_ms:
        raise argparse.ArgumentTypeError("expected START:END with START <= END")
    return start_ms, end_ms


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="specview: render spectrograms for a folder of recordings",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--version", action="version",
                        version=f"specview {__version__}")

    parser.add_argument("directory", type=str,
                        help="Directory containing the recordings")

    # Display
    parser.add_argument("--width", type=positive_int, default=1024,
                        help="Display width in columns (pixels)")
    parser.add_argument("--height", type=positive_int, default=None,
                        help="Raster height (defaults to the number of display bins)")

    # Analysis
    parser.add_argument("--preset", type=str, default=None,
                        help="JSON preset file with spectrogram/overlay settings")
    parser.add_argument("--colormap", type=str, choices=sorted(COLOR_SCALES), default=None,
                        help="Named color scale (overrides the preset)")
    parser.add_argument("--window_ms", type=positive_float, default=None,
                        help="Ideal analysis window size (ms)")
    parser.add_argument("--step_ms", type=positive_float, default=None,
                        help="Ideal step between windows (ms)")
    parser.add_argument("--bin_hz", type=positive_float, default=None,
                        help="Ideal display bin size (Hz)")
    parser.add_argument("--max_hz", type=positive_float, default=None,
                        help="Highest frequency shown (Hz)")

    # Overlays
    parser.add_argument("--mark", type=marking, action="append", default=[],
                        help="Time marking FIELD:MS drawn on every recording")
    parser.add_argument("--played", type=segment, default=None,
                        help="Highlight the played segment START:END (ms)")

    # Output
    parser.add_argument("--output", type=str, default="spectrograms",
                        help="Output folder (relative to the source directory)")
    parser.add_argument("--json", type=str, default="specview.json",
                        help="Manifest filename written to the output folder")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging")

    if argv is None and len(sys.argv) == 1:
        parser.print_help(sys.stderr)
        sys.exit(1)

    return parser.parse_args(argv)


def build_config(args):
    """defaults < preset < CLI overrides"""
    config = default_config()
    if args.preset:
        config = merge_configs(config, load_preset(args.preset))

    overrides = {
        "ideal_window_size_in_ms": args.window_ms,
        "ideal_step_size_in_ms": args.step_ms,
        "ideal_bin_size_in_hz": args.bin_hz,
        "ideal_max_frequency_in_hz": args.max_hz,
        "width": args.width,
        "height": args.height,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if args.colormap:
        overrides["color_scale"] = [
            [p.threshold, list(p.color)] for p in COLOR_SCALES[args.colormap]
        ]
    field_colors = dict(config.get("field_colors") or {})
    for name, _ms in args.mark:
        field_colors.setdefault(name, [255, 255, 0])
    overrides["field_colors"] = field_colors

    config = merge_configs(config, overrides)
    validate_config(config)
    return config


# ---------------------------------------------------------------------------
# Browsing loop
# ---------------------------------------------------------------------------

async def render_all(browser, args, output_dir, on_done):
    """Step through every recording, writing one PNG each."""
    rendered = []
    errors = {}
    for index in range(len(browser.recordings)):
        futures = [browser.select(index)]
        for name, ms in args.mark:
            futures.append(browser.mark(ms, name))
        if args.played:
            futures.append(browser.set_played_segment(*args.played))
        recording = browser.selected
        # the last future belongs to the render that saw every change
        outcomes = await asyncio.gather(*futures, return_exceptions=True)
        result = outcomes[-1]
        if isinstance(result, AudioDecodeError):
            errors[recording.name] = str(result)
            on_done()
            continue
        if isinstance(result, BaseException):
            raise result

        png_path = None
        if result.raster.width and result.raster.height:
            stem = os.path.splitext(recording.name)[0].replace("/", "_")
            png_path = os.path.join(output_dir, f"{stem}.png")
            save_png(result.raster, png_path)
        rendered.append((result, png_path))
        on_done()
    return rendered, errors


def main(argv=None):
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    source_dir = args.directory

    if not os.path.isdir(source_dir):
        console.print(f"[bold red]Error:[/] Directory '{source_dir}' not found.")
        return 1

    try:
        config = build_config(args)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        return 1

    spec_config = spectrogram_config_from_dict(config)
    overlay = overlay_config_from_dict(config)

    recordings = discover_recordings(source_dir)
    if not recordings:
        console.print(f"[red]No audio files found in {source_dir}[/]")
        return 1

    output_dir = os.path.join(source_dir, args.output)
    os.makedirs(output_dir, exist_ok=True)

    console.print(Panel.fit(
        f"[bold]specview[/]\n"
        f"Recordings: [cyan]{len(recordings)}[/]\n"
        f"Window: [cyan]{spec_config.ideal_window_size_in_ms:g} ms[/] | "
        f"Step: [cyan]{spec_config.ideal_step_size_in_ms:g} ms[/]\n"
        f"Bins: [cyan]{spec_config.ideal_bin_size_in_hz:g} Hz[/] up to "
        f"[cyan]{spec_config.ideal_max_frequency_in_hz:g} Hz[/]\n"
        f"Width: [cyan]{config['width']} px[/]\n"
        f"Output: [green]{args.output}/[/]",
        title="Configuration"
    ))

    browser = RecordingBrowser(
        recordings, spec_config, config["width"],
        overlay=overlay, height=config.get("height"),
    )
    render_counts = {}

    def on_render_complete(result):
        name = result.recording.name
        render_counts[name] = render_counts.get(name, 0) + 1
    browser.event_bus.subscribe(RENDER_COMPLETE, on_render_complete)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task_id = progress.add_task("[cyan]Rendering spectrograms...", total=len(recordings))
        rendered, errors = asyncio.run(
            render_all(browser, args, output_dir, lambda: progress.advance(task_id))
        )

    table = Table(box=box.ROUNDED, title="Spectrograms")
    table.add_column("Recording", style="cyan", max_width=40)
    table.add_column("Format", style="dim")
    table.add_column("Duration", justify="right")
    table.add_column("Bins", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Renders", justify="right", style="dim")
    table.add_column("Status", justify="right")

    for result, png_path in rendered:
        d = result.data
        fmt_str = f"{d['sample_rate'] / 1000:g}k/{d['channels']}ch"
        status = "[green]OK[/]" if png_path else "[yellow]EMPTY[/]"
        table.add_row(
            result.recording.name,
            fmt_str,
            format_duration(d["frames"], d["sample_rate"]),
            str(d["spectrum_bins"]),
            f"{result.raster.width}x{result.raster.height}",
            str(render_counts.get(result.recording.name, 0)),
            status,
        )
    for name, message in errors.items():
        table.add_row(name, "Error", "—", "—", "—", "—", "[red]ERR[/]")

    console.print(table)
    for name, message in errors.items():
        console.print(f"  [yellow]⚠ {name}: {message}[/]")

    json_path = os.path.join(output_dir, args.json)
    save_json(rendered, spec_config, json_path, source_dir=source_dir, errors=errors)
    console.print(f"\n[dim]Manifest saved to: {json_path}[/]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
