# pyFlowGateway Module - Command Line Tool
# -*- coding: utf-8 -*-
"""
 Python module to monitor and configure a Modbus RTU-TCP flow counter gateway

 Command Line:
    python -m pyflowgateway <status|watch|serial|ports|read|version>

"""

import argparse
import asyncio
import json
import sys

# Modules
from pyflowgateway import version, set_debug
from pyflowgateway.config import settings
from pyflowgateway.serial_config import BAUD_RATES

# Setup parser and groups
p = argparse.ArgumentParser(prog="PyFlowGateway", description=f"PyFlowGateway Module v{version}")
subparsers = p.add_subparsers(dest="command", title='commands (run <command> -h to see usage information)',
                              required=True)

status_args = subparsers.add_parser("status", help='Show gateway status and flow counters')
status_args.add_argument("-format", type=str, default="text", help="Output format: text or json")

watch_args = subparsers.add_parser("watch", help='Continuously poll and print gateway status')
watch_args.add_argument("-interval", type=float, default=settings.poll_interval,
                        help=f"Seconds between polls [Default={settings.poll_interval}]")

serial_args = subparsers.add_parser("serial", help='Get or set RS485 line configuration')
serial_args.add_argument("-baud", type=int, default=None, choices=BAUD_RATES, metavar="BAUD",
                         help=f"Baud rate: {', '.join(str(b) for b in BAUD_RATES)}")
serial_args.add_argument("-parity", type=str, default=None, help="Parity: none, even, or odd")
serial_args.add_argument("-stopbits", type=str, default=None, help="Stop bits: 1 or 2")
serial_args.add_argument("-rtimeout", type=int, default=None, help="Modbus response timeout in ms")
serial_args.add_argument("-format", type=str, default="text", help="Output format: text or json")

ports_args = subparsers.add_parser("ports", help='Show flow counter port configuration')
ports_args.add_argument("-format", type=str, default="text", help="Output format: text or json")

read_args = subparsers.add_parser("read", help='Trigger a manual read of a flow counter port')
read_args.add_argument("-port", type=int, required=True, help="Port number (1-12)")

version_args = subparsers.add_parser("version", help='Print version information')

# Global flags
p.add_argument("-host", type=str, default=settings.host, help=f"Gateway address [Default={settings.host}]")
p.add_argument("-timeout", type=float, default=settings.timeout,
               help=f"Seconds to wait for the gateway [Default={settings.timeout}]")
p.add_argument("-debug", action="store_true", default=settings.debug, help="Enable debug output")


def print_state(state):
    print("  {:<18}{}".format("Uptime", state.uptime))
    print("  {:<18}{}".format("Version", state.version or "--"))
    for label, badge in (("Ethernet", state.ethernet_badge), ("SD Card", state.storage_badge),
                         ("RS485", state.serial_bus_badge)):
        if badge:
            print("  {:<18}{} ({})".format(label, badge.text, badge.detail))
    if state.tcp_gateway:
        tcp = state.tcp_gateway
        clients = ", ".join(tcp.client_addresses) or "No connected clients"
        print("  {:<18}port {} - {} client(s): {}".format("Modbus TCP", tcp.port,
                                                          tcp.connected_client_count, clients))
    print("")
    counters = state.flow_counters
    if counters is None:
        return
    if not counters:
        print("  No flow counters enabled\n")
        return
    for view in counters:
        fc = view.counter
        print("  Port {:<3}{:<16}slave {:<4}{:<8}triggers {}".format(
            fc.port, fc.name, fc.slave_id, view.status.value, fc.trigger_count))
        if fc.reading is not None and fc.data_valid:
            r = fc.reading
            print("      volume {:.2f} mL  flow {:.2f} mL/min  {:.1f} °C  {:.1f} hPa".format(
                r.volume_ml, r.flow_ml_per_min, r.temperature_c, r.pressure_hpa))
            print("      last trigger {}  last read {}".format(view.last_trigger, view.last_read))
    print("")


def main():
    if len(sys.argv) == 1:
        p.print_help(sys.stderr)
        sys.exit(1)

    # parse args
    args = p.parse_args()
    command = args.command

    # Set Debug Mode
    if args.debug:
        set_debug(True)

    if command == 'version':
        print("pyFlowGateway [%s]" % version)
        return

    import pyflowgateway
    gw = pyflowgateway.Gateway(args.host, timeout=args.timeout, cacheexpire=settings.cache_expire,
                               poolmaxsize=settings.pool_maxsize)
    try:
        run_command(gw, args)
    finally:
        gw.close()


def run_command(gw, args):
    command = args.command

    if command == 'status':
        if not gw.is_connected():
            print(f"ERROR: Unable to connect to gateway at {args.host}")
            sys.exit(1)
        state = gw.update()
        if args.format == 'json':
            print(state.model_dump_json(indent=2))
        else:
            print(f"pyFlowGateway [{version}] - Gateway {args.host}\n")
            print_state(state)

    elif command == 'watch':
        def render(state):
            print(f"--- #{state.sequence}")
            print_state(state)

        gw.reconciler.on_render = render
        print(f"pyFlowGateway [{version}] - Watching {args.host} every {args.interval}s (Ctrl-C to stop)\n")

        async def watch():
            poller = gw.poller(interval=args.interval)
            await poller.start()
            try:
                while True:
                    await asyncio.sleep(3600)
            finally:
                await poller.close()

        try:
            asyncio.run(watch())
        except KeyboardInterrupt:
            print("Stopped")

    elif command == 'serial':
        from pyflowgateway import InvalidConfigurationParameter, TransportError, serial_config
        if any(v is not None for v in (args.baud, args.parity, args.stopbits, args.rtimeout)):
            try:
                result = gw.set_serial_config(baud_rate=args.baud, parity=args.parity,
                                              stop_bits=args.stopbits, response_timeout=args.rtimeout)
            except InvalidConfigurationParameter as exc:
                print(f"ERROR: {exc}")
                sys.exit(1)
            except TransportError as exc:
                print(f"ERROR: Unable to save serial configuration: {exc}")
                sys.exit(1)
            print((result or {}).get('message', 'RS485 configuration saved'))
        config = gw.get_serial_config()
        if config is None:
            print(f"ERROR: Unable to read serial configuration from {args.host}")
            sys.exit(1)
        output = {
            'baud_rate': config.baud_rate,
            'line': config.label,
            'parity': config.parity.value,
            'stop_bits': config.stop_bits.value,
            'serial_config': serial_config.encode(config),
            'response_timeout': config.response_timeout,
        }
        if args.format == 'json':
            print(json.dumps(output, indent=2))
        else:
            for item in output:
                name = item.replace("_", " ").title()
                print("  {:<18}{}".format(name, output[item]))
            print("")

    elif command == 'ports':
        ports = gw.get_ports()
        if args.format == 'json':
            print(json.dumps([port.model_dump() for port in ports], indent=2))
        else:
            print("  {:<6}{:<8}{:<10}{:<17}{}".format("Port", "Slave", "Enabled", "Name", "Log to SD"))
            for port in ports:
                print("  {:<6}{:<8}{:<10}{:<17}{}".format(port.port, port.slave_id, str(port.enabled),
                                                          port.name, str(port.log_to_sd)))
            print("")

    elif command == 'read':
        from pyflowgateway import InvalidConfigurationParameter, TransportError
        try:
            result = gw.manual_read(args.port)
        except InvalidConfigurationParameter as exc:
            print(f"ERROR: {exc}")
            sys.exit(1)
        except TransportError as exc:
            print(f"ERROR: Failed to read Port {args.port}: {exc}")
            sys.exit(1)
        print((result or {}).get('message', f"Manual read triggered for Port {args.port}"))

    # Print Usage
    else:
        p.print_help()


if __name__ == '__main__':
    main()
