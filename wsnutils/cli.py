"""Typer CLI entrypoint."""

from __future__ import annotations

import contextlib
import logging
import signal
import sys
import threading
from collections.abc import Iterator
from pathlib import Path

import typer

from wsnutils.api import Client
from wsnutils.core.errors import EXIT_CODE_INVALID_ARGUMENTS, ConfigError, WsnUtilsError
from wsnutils.core.logging_config import LOG_LEVELS, LoggingConfig
from wsnutils.core.reference_map import ReferenceMap, load_properties, load_reference_map
from wsnutils.writers import FORMATS

app = typer.Typer(
    help="Observe, identify and listen to serially attached sensor-network devices",
    context_settings={"help_option_names": ["-h", "--help"]},
)
LOGGER = logging.getLogger(__name__)

_LEVEL_HELP = f"Set logging level (one of [{', '.join(LOG_LEVELS)}])"


def _setup_logging(level: str | None, verbose: bool) -> None:
    LoggingConfig.from_options(level, verbose=verbose).apply()


def _build_client() -> Client:
    client = Client()
    for warning in client.load_warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return client


def _require(**options: str | None) -> None:
    missing = [f"--{name}" for name, value in options.items() if not value]
    if missing:
        raise ConfigError(f"Missing required option(s): {', '.join(missing)}")


def _configuration(path: Path | None) -> dict[str, str]:
    return load_properties(path) if path is not None else {}


def _reference_map(path: Path | None) -> ReferenceMap | None:
    return load_reference_map(path) if path is not None else None


def _fail(exc: WsnUtilsError) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=exc.exit_code)


@contextlib.contextmanager
def _stop_on_signals(stop: threading.Event) -> Iterator[None]:
    def _handler(signum: int, _frame) -> None:
        LOGGER.info("Received signal %d, shutting down", signum)
        stop.set()

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@app.command("listen")
def listen(
    device_type: str | None = typer.Option(None, "--type", "-t", help="Type of the device"),
    port: str | None = typer.Option(None, "--port", "-p", help="Serial port to which the device is attached"),
    configuration: Path | None = typer.Option(
        None, "--configuration", "-c", help="Key=value file to configure the device"
    ),
    output_format: str | None = typer.Option(None, "--format", "-f", help="Output format, options: csv, wiseml"),
    outfile: Path | None = typer.Option(None, "--outfile", "-o", help="Redirect output to file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging output (equal to -l DEBUG)"),
    logging_level: str | None = typer.Option(None, "--logging", "-l", help=_LEVEL_HELP),
) -> None:
    """Print every message a device sends until interrupted."""
    try:
        _setup_logging(logging_level, verbose)
        _require(type=device_type, port=port)
        if output_format is not None and output_format not in FORMATS:
            raise ConfigError(f"Unknown format {output_format}. Use one of: csv, wiseml")
        device_configuration = _configuration(configuration)
        client = _build_client()
    except WsnUtilsError as exc:
        raise _fail(exc) from None

    if outfile is not None:
        LOGGER.info("Using outfile %s", outfile)
        try:
            destination = outfile.open("w", encoding="utf-8", newline="")
        except OSError as exc:
            typer.echo(f"Error: Could not open outfile {outfile}: {exc}", err=True)
            raise typer.Exit(code=EXIT_CODE_INVALID_ARGUMENTS) from None
    else:
        destination = sys.stdout

    try:
        channel = client.listen(
            device_type,
            port,
            destination,
            output_format=output_format,
            configuration=device_configuration,
        )
    except WsnUtilsError as exc:
        raise _fail(exc) from None

    stop = threading.Event()
    try:
        with _stop_on_signals(stop):
            while not stop.is_set() and not channel.wait(0.5):
                pass
    finally:
        channel.close()

    if channel.error is not None:
        typer.echo(f"Error: Reading from {port} failed: {channel.error}", err=True)
        raise typer.Exit(code=1)


@app.command("read-mac")
def read_mac(
    device_type: str | None = typer.Option(None, "--type", "-t", help="Type of the device"),
    port: str | None = typer.Option(None, "--port", "-p", help="Serial port to which the device is attached"),
    use_64bit_mode: bool = typer.Option(
        False, "--use64BitMode", "-x", help="Read the MAC in 64 bit mode instead of 48 bit mode"
    ),
    reference_map_file: Path | None = typer.Option(
        None, "--referencetomacmap", "-r", help="Properties file mapping device references to MAC addresses"
    ),
    configuration: Path | None = typer.Option(
        None, "--configuration", "-c", help="Key=value file to configure the device"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging output (equal to -l DEBUG)"),
    logging_level: str | None = typer.Option(None, "--logging", "-l", help=_LEVEL_HELP),
) -> None:
    """Read the MAC address of a device and print it as hex."""
    try:
        _setup_logging(logging_level, verbose)
        device_configuration = _configuration(configuration)
        reference_map = _reference_map(reference_map_file)
        _require(type=device_type, port=port)
        client = _build_client()
    except WsnUtilsError as exc:
        raise _fail(exc) from None

    try:
        mac = client.read_mac(
            device_type,
            port,
            reference_map=reference_map,
            configuration=device_configuration,
            use_64bit=use_64bit_mode,
        )
    except WsnUtilsError as exc:
        LOGGER.error("Reading MAC address failed: %s", exc)
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    if mac is None:
        LOGGER.info("MAC address of %s device at port %s could not be read", device_type, port)
        raise typer.Exit(code=1)

    LOGGER.info("Read MAC address of %s device at port %s: %s", device_type, port, mac)
    typer.echo(mac.to_hex())


@app.command("observe")
def observe(
    reference_map_file: Path | None = typer.Option(
        None, "--referencetomacmap", "-r", help="Properties file mapping device references to MAC addresses"
    ),
    interval: float = typer.Option(1.0, "--interval", "-i", min=0.05, help="Seconds between two polls"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging output (equal to -l DEBUG)"),
    logging_level: str | None = typer.Option(None, "--logging", "-l", help=_LEVEL_HELP),
) -> None:
    """Print device attach and detach events until terminated."""
    try:
        _setup_logging(logging_level, verbose)
        reference_map = _reference_map(reference_map_file)
        client = _build_client()
    except WsnUtilsError as exc:
        raise _fail(exc) from None

    observer = client.observer(reference_map)
    observer.add_listener(lambda event: typer.echo(str(event)))

    stop = threading.Event()
    with _stop_on_signals(stop):
        observer.run(stop, interval_s=interval)


@app.command("types")
def list_types() -> None:
    """List the known device types."""
    try:
        client = _build_client()
    except WsnUtilsError as exc:
        raise _fail(exc) from None

    device_types = client.list_device_types()
    if not device_types:
        typer.echo("No device types loaded")
        raise typer.Exit(code=1)
    for device_type in device_types:
        mac = "mac" if device_type.mac is not None else "no-mac"
        usb_ids = ", ".join(device_type.match.usb_ids) or "-"
        typer.echo(f"{device_type.id}: {device_type.name} [{usb_ids}] {device_type.serial.baudrate} baud {mac}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
