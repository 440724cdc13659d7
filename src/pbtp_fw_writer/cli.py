"""
Pinebook Touchpad Firmware Writer CLI

Reads the touchpad firmware to a file, or writes, verifies and finalizes a
firmware image on the device.
"""

import json
import time
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.logging import RichHandler
from rich.markup import escape

from pbtp_fw_writer.core.config import FlasherConfig, ConfigurationError
from pbtp_fw_writer.core.parsing import Mode, parse_request_size, resolve_mode
from pbtp_fw_writer.core.results import OperationResult
from pbtp_fw_writer.core.actions import read_firmware, write_firmware
from pbtp_fw_writer.protocol import SimulatedTouchpad, list_devices
from pbtp_fw_writer.protocol.hid_transport import DEFAULT_PRODUCT_ID, DEFAULT_VENDOR_ID

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True)],
)
logger = logging.getLogger("pbtp_fw_writer")

# Setup Rich console
console = Console()

app = typer.Typer(
    help="Pinebook touchpad firmware writer",
    add_completion=False,
)

EXIT_FAILURE = 1
EXIT_USAGE = 2


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {escape(text)}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {escape(text)}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {escape(text)}", style="red")


def print_usage_hint() -> None:
    console.print()
    console.print("[bold]Usage:[/bold]")
    console.print("  pbtp-fw-writer --read FILE --request-size N")
    console.print("  pbtp-fw-writer --write FILE --request-size N")
    console.print()
    console.print("[dim]The request size depends on the touchpad firmware; see the documentation.[/dim]")


def print_result(result: OperationResult, output_json: bool = False) -> None:
    """Print identity, summary and warnings for a finished run."""
    if output_json:
        console.print_json(json.dumps(result.to_dict()))
        return

    identity = result.metadata.get("identity")
    if identity:
        table = Table(title="Touchpad Identity")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Vendor ID", identity["vendor_id"])
        table.add_row("Product ID", identity["product_id"])
        table.add_row("Serial", identity["serial"])
        console.print(table)

    for warning in result.warnings:
        print_warning(warning)

    if result.ok:
        print_success(result.to_summary())
    else:
        print_error(result.to_summary())


def countdown_before_write(seconds: int) -> bool:
    """
    Give the operator a last chance to abort.

    Returns:
        False if Ctrl+C was pressed during the countdown
    """
    if seconds <= 0:
        return True
    console.print(f"You have {seconds} seconds to press CTRL+C")
    try:
        time.sleep(seconds)
    except KeyboardInterrupt:
        return False
    return True


@app.callback(invoke_without_command=True)
def run(
    ctx: typer.Context,
    write: Optional[str] = typer.Option(
        None, "--write", "-w", help="Write firmware from file to the device"
    ),
    read: Optional[str] = typer.Option(
        None, "--read", "-r", help="Read firmware from device to the file"
    ),
    request_size: Optional[str] = typer.Option(
        None,
        "--request-size",
        "--request_size",
        "-s",
        help="Feature request size in bytes (see documentation)",
    ),
    countdown: int = typer.Option(
        5, "--countdown", help="Seconds to wait before writing (Ctrl+C aborts)"
    ),
    simulate: bool = typer.Option(
        False, "--simulate", help="Run against an in-memory touchpad instead of hardware"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every frame"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Print the result as JSON"),
) -> None:
    """Read or write the touchpad firmware."""
    if ctx.invoked_subcommand is not None:
        return

    if verbose:
        logger.setLevel(logging.DEBUG)

    try:
        size = parse_request_size(request_size)
        mode, path = resolve_mode(read, write)
        config = FlasherConfig(request_size=size)
    except ConfigurationError as e:
        print_error(str(e))
        print_usage_hint()
        raise typer.Exit(code=EXIT_USAGE)

    console.print(f"Request size is {config.request_size}")

    factory = None
    if simulate:
        device = SimulatedTouchpad()
        factory = lambda _config: device  # noqa: E731
        print_warning("Simulation mode: no hardware will be touched")

    if mode == Mode.READ:
        print_header("Read Touchpad Firmware")
        console.print(f"Output: {escape(str(path))}")
        result = read_firmware(config, path, transport_factory=factory)
    else:
        print_header("Write Touchpad Firmware")
        console.print(f"Input: {escape(str(path))}")
        if not countdown_before_write(countdown):
            print_warning("Write cancelled")
            raise typer.Exit(code=0)
        result = write_firmware(config, path, transport_factory=factory)

    print_result(result, output_json=output_json)
    if not result.ok:
        raise typer.Exit(code=EXIT_FAILURE)


@app.command("list-devices")
def list_devices_cmd(
    vendor_id: str = typer.Option(f"0x{DEFAULT_VENDOR_ID:04x}", "--vid", help="USB vendor ID"),
    product_id: str = typer.Option(f"0x{DEFAULT_PRODUCT_ID:04x}", "--pid", help="USB product ID"),
) -> None:
    """List attached touchpad HID interfaces."""
    print_header("Attached Touchpads")

    try:
        vid = int(vendor_id, 0)
        pid = int(product_id, 0)
    except ValueError:
        raise typer.BadParameter(f"Invalid USB ID: {vendor_id}:{product_id}")

    devices = list_devices(vid, pid)
    if not devices:
        print_warning(f"No devices found for {vid:04x}:{pid:04x}")
        return

    table = Table(title="HID Interfaces")
    table.add_column("Path", style="cyan")
    table.add_column("Interface", style="magenta")
    table.add_column("Manufacturer", style="green")
    table.add_column("Product", style="green")
    table.add_column("Serial", style="yellow")

    for d in devices:
        path = d.get("path", b"")
        if isinstance(path, bytes):
            path = path.decode("utf-8", errors="replace")
        table.add_row(
            path,
            str(d.get("interface_number", "-")),
            d.get("manufacturer_string") or "-",
            d.get("product_string") or "-",
            d.get("serial_number") or "-",
        )

    console.print(table)


def main() -> None:
    """Main entry point."""
    # Ctrl+C after the countdown surfaces as a click Abort with status 1
    app()


if __name__ == "__main__":
    main()
