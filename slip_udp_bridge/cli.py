from __future__ import annotations

import logging
from typing import Optional, Tuple
import click

from .config import BridgeConfig, ConfigError, load_config
from .supervisor import Supervisor


def _configure_logging(verbose: int) -> None:
    level = logging.DEBUG if verbose >= 2 else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_config(config_path: Optional[str], **overrides) -> BridgeConfig:
    try:
        base = BridgeConfig.from_mapping(load_config(config_path)) if config_path else BridgeConfig()
        return base.with_overrides(**overrides)
    except ConfigError as e:
        raise click.ClickException(str(e))


@click.command()
@click.option("-v", "--verbose", count=True, help="Verbose mode. Repeat (-vv) for debug output.")
@click.option("-i", "--receive-host", help="The OSC UDP receive host  [default: 0.0.0.0]")
@click.option("-r", "--receive-port", type=int, help="The OSC UDP receive port  [default: 8000]")
@click.option("-t", "--target-host", help="The OSC UDP target host  [default: 0.0.0.0]")
@click.option("-s", "--target-port", type=int, help="The OSC UDP target port  [default: 9000]")
@click.option("-d", "--serial-device", help="Serial device name (e.g. ttyACM0, COM3). If not specified, will auto-discover.")
@click.option("-b", "--baudrate", type=int, help="Baud rate  [default: 115200]")
@click.option("-g", "--join-group", "groups", multiple=True, help="Multicast group to join (repeatable)")
@click.option("--identifier", "identifiers", multiple=True,
              help="Board name to look for during auto-discovery (repeatable)  [default: Teensy, Arduino]")
@click.option("-c", "--config", "config_path", type=click.Path(dir_okay=False),
              help="TOML config file; command line options take precedence")
def main(verbose: int, receive_host: Optional[str], receive_port: Optional[int], target_host: Optional[str],
         target_port: Optional[int], serial_device: Optional[str], baudrate: Optional[int],
         groups: Tuple[str, ...], identifiers: Tuple[str, ...], config_path: Optional[str]) -> None:
    """Bridge SLIP framed messages between a serial device and UDP.

    Datagrams received on the receive address are SLIP encoded and written to
    the serial device; frames read from the device are sent as datagrams to
    the target address. The device is re-located whenever it disconnects.

    Examples:

      # Auto-discover a Teensy/Arduino and bridge the default ports
      slip-udp-bridge

      # Specific device, custom target, throughput every second
      slip-udp-bridge -d ttyACM0 -t 192.168.1.20 -s 9001 -v
    """
    config = _build_config(
        config_path,
        receive_host=receive_host,
        receive_port=receive_port,
        target_host=target_host,
        target_port=target_port,
        serial_device=serial_device,
        baudrate=baudrate,
        groups=groups or None,
        identifiers=identifiers or None,
        verbose=verbose or None,
    )
    _configure_logging(config.verbose)

    supervisor = Supervisor(config)
    try:
        supervisor.endpoint.open()
    except OSError as e:
        raise click.ClickException(
            f"Unable to set up UDP socket at {config.receive_host}:{config.receive_port}: {e}")

    try:
        supervisor.run()
    except KeyboardInterrupt:
        click.echo("Stopping bridge...")
        supervisor.stop()


if __name__ == "__main__":
    main()
