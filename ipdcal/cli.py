"""
IPDCAL Command Line Interface
Entry point for listing device configurations and calibrating inter-packet delays.
"""

import dataclasses
import logging
import sys
from typing import List, Optional

import click

from ipdcal import __version__
from ipdcal.calibration.events import (
    CalibrationEvent,
    CalibrationEventType,
    CompositeObserver,
    LoggingObserver,
    ProgressObserver,
)
from ipdcal.calibration.harness import CalibrationHarness
from ipdcal.core.config import load_settings
from ipdcal.core.errors import CalibrationError
from ipdcal.core.schema import Configuration
from ipdcal.device.simulated import SimulatedDevice
from ipdcal.report.render import ReportRenderer


# Configure logging
def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def simulator_options(func):
    """Options describing the simulated camera."""
    options = [
        click.option("--width", default=1280, show_default=True, help="Sensor width (pixels)"),
        click.option("--height", default=1024, show_default=True, help="Sensor height (pixels)"),
        click.option("--packet-size", default=1500, show_default=True, help="GVSP packet size (bytes)"),
        click.option("--max-fps", default=30.0, show_default=True, help="Sensor frame rate limit"),
        click.option("--tick-frequency", default=125_000_000, show_default=True,
                     help="Device timestamp ticks per second (0 disables pacing)"),
        click.option("--noise", default=0.0, show_default=True, help="Frame-rate measurement noise (fps)"),
        click.option("--seed", default=None, type=int, help="Noise seed for reproducible runs"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_device(
    width: int,
    height: int,
    packet_size: int,
    max_fps: float,
    tick_frequency: int,
    noise: float,
    seed: Optional[int],
) -> SimulatedDevice:
    return SimulatedDevice(
        width=width,
        height=height,
        packet_size=packet_size,
        max_frame_rate=max_fps,
        tick_frequency=tick_frequency,
        noise_std=noise,
        seed=seed,
    )


class ConsoleObserver(ProgressObserver):
    """Prints calibration progress to stderr."""

    def __init__(self, details: bool = False):
        self.details = details

    def on_event(self, event: CalibrationEvent) -> None:
        kind = event.kind

        if kind == CalibrationEventType.CONFIGURATION_STARTED:
            click.echo(f"\nCalculating inter-packet delay for {event.configuration}.", err=True)
        elif kind == CalibrationEventType.REFERENCE_SAMPLED and self.details:
            click.echo(f"Reference frame-rate used: {event.reference_rate:.2f}", err=True)
        elif kind == CalibrationEventType.ITERATION:
            if self.details:
                click.echo(
                    f"Programming delay of {event.delay_ticks} ticks; "
                    f"frame-rate obtained: {event.rate:.2f}",
                    err=True,
                )
            else:
                click.echo(".", nl=False, err=True)
        elif kind in (CalibrationEventType.CONVERGED, CalibrationEventType.ZERO_DELAY):
            click.echo(click.style(f"\n✓ {event.message}", fg="green"), err=True)
        elif kind in (CalibrationEventType.FAILED, CalibrationEventType.SKIPPED):
            click.echo(click.style(f"\n✗ {event.message}", fg="red"), err=True)


def print_configurations(configurations: List[Configuration]) -> None:
    click.echo("Your camera supports the following pixel formats:")
    for i, configuration in enumerate(configurations):
        click.echo(f"{i} {configuration.name}")
    if len(configurations) > 1:
        click.echo(f"{len(configurations)} All")


def prompt_selection(configurations: List[Configuration]) -> int:
    """Ask for a configuration index; out-of-range input is re-requested."""
    count = len(configurations)
    if count <= 1:
        return 0

    print_configurations(configurations)
    selection = click.prompt(
        f"\nPlease select the pixel format that you want use for inter-packet delay\n"
        f"calculation (0-{count})",
        type=click.IntRange(0, count),
    )
    chosen = configurations[selection].name if selection < count else "All"
    click.echo(f"\n{chosen} selected\n")
    return selection


@click.group()
@click.version_option(__version__, prog_name="ipdcal")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    Inter-Packet Delay Calibrator (IPDCAL)

    Finds the largest inter-packet delay a GigE Vision camera tolerates
    without losing frame rate, per pixel format.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@simulator_options
def configs(
    width: int,
    height: int,
    packet_size: int,
    max_fps: float,
    tick_frequency: int,
    noise: float,
    seed: Optional[int],
) -> None:
    """
    List the device's pixel formats and whether they can be calibrated.
    """
    device = build_device(width, height, packet_size, max_fps, tick_frequency, noise, seed)

    click.echo(click.style("\n═══ Pixel Formats ═══", fg="cyan", bold=True))
    index = 0
    for configuration in device.enumerate_configurations():
        if configuration.supported:
            click.echo(f"{index:>3}  {configuration.name:<16} 0x{configuration.value:08X}")
            index += 1
        else:
            click.echo(
                click.style(
                    f"  -  {configuration.name:<16} 0x{configuration.value:08X}  (unsupported)",
                    dim=True,
                )
            )


@cli.command()
@click.option("--selection", "-s", default=None, type=int,
              help="Pixel format index; the format count selects all")
@click.option("--settings", "settings_path", default=None, type=click.Path(exists=True),
              help="YAML file with calibration settings")
@click.option("--settle-ms", default=None, type=int, help="Pause after each measurement (ms)")
@click.option("--apply-timeout", default=None, type=float,
              help="Seconds to wait for the pixel format to become writable")
@click.option("--wait-forever", is_flag=True, help="Wait indefinitely for the pixel format")
@click.option("--details/--no-details", default=False, help="Print every search iteration")
@click.option("--format", "-f", "fmt", default="terminal",
              type=click.Choice(["terminal", "json"]), help="Report format")
@click.option("--output", "-o", default=None, type=click.Path(), help="Also write the JSON report here")
@simulator_options
@click.pass_context
def calibrate(
    ctx: click.Context,
    selection: Optional[int],
    settings_path: Optional[str],
    settle_ms: Optional[int],
    apply_timeout: Optional[float],
    wait_forever: bool,
    details: bool,
    fmt: str,
    output: Optional[str],
    width: int,
    height: int,
    packet_size: int,
    max_fps: float,
    tick_frequency: int,
    noise: float,
    seed: Optional[int],
) -> None:
    """
    Calculate inter-packet delays for one or all pixel formats.

    The delay is first set to zero to sample a reference frame rate, then
    reduced from the camera's theoretical delay until the obtained frame
    rate converges to the reference.
    """
    logger = logging.getLogger("ipdcal.cli.calibrate")

    try:
        settings = load_settings(settings_path).with_overrides(
            settle_ms=settle_ms, apply_timeout_s=apply_timeout
        )
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--settings/--settle-ms/--apply-timeout")
    if wait_forever:
        settings = dataclasses.replace(settings, apply_timeout_s=None)

    device = build_device(width, height, packet_size, max_fps, tick_frequency, noise, seed)
    observer = ConsoleObserver(details)
    if ctx.obj.get("verbose", False):
        observer = CompositeObserver(LoggingObserver(), observer)
    harness = CalibrationHarness(device, settings, observer)

    try:
        harness.check_capabilities()
        configurations = harness.supported_configurations()

        if selection is None:
            selection = prompt_selection(configurations)
        elif len(configurations) > 1 and not 0 <= selection <= len(configurations):
            raise click.BadParameter(
                f"expected 0-{len(configurations)}, got {selection}", param_hint="--selection"
            )

        report = harness.run(selection)

    except CalibrationError as e:
        logger.error(f"Calibration failed: {e}", exc_info=ctx.obj.get("verbose", False))
        click.echo(click.style(f"\n✗ Error: {e}", fg="red"), err=True)
        sys.exit(1)

    renderer = ReportRenderer(report)
    if fmt == "json":
        click.echo(renderer.render_json())
    else:
        click.echo("")
        click.echo(renderer.render_terminal())

    if output:
        renderer.save_json(output)
        click.echo(click.style(f"✓ JSON report saved: {output}", fg="green"), err=True)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
