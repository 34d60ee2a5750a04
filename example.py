# Example: pyFlowGateway Usage Demo
# ----------------------------------
# This script connects to a flow counter gateway, prints its status and
# flow counters, and then watches it for a few polls.
#
# Usage:
#   - Set PGW_HOST below or in a .env file
#   - Run: python example.py

import asyncio
import os

import dotenv

import pyflowgateway

# Load environment variables from .env file if present
dotenv.load_dotenv()

# Enable debug logging for more verbose output (optional for learning)
# pyflowgateway.set_debug(True)

host = os.getenv('PGW_HOST', '192.168.1.100')

gw = pyflowgateway.Gateway(host)
if not gw.is_connected():
    print(f"Unable to connect to gateway at {host}")
    raise SystemExit(1)

# Single poll
state = gw.update()
print(f"Firmware: {gw.version()}  Uptime: {state.uptime}")
print(f"Ethernet: {state.ethernet_badge.text if state.ethernet_badge else '--'}")
print(f"RS485 line: {gw.get_serial_config().label}")

for view in gw.flow_counters():
    print(f"Port {view.port} {view.name}: {view.status.value} (last read {view.last_read or '--'})")


# Continuous polling - print every new state for ten seconds
def render(new_state):
    print(f"#{new_state.sequence} uptime {new_state.uptime}")


async def watch():
    gw.reconciler.on_render = render
    poller = gw.poller()
    await poller.start()
    await asyncio.sleep(10)
    await poller.close()

asyncio.run(watch())
