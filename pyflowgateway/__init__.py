# pyFlowGateway Module
# -*- coding: utf-8 -*-
"""
 Python module to monitor and configure a Modbus RTU-TCP flow counter gateway

 Features
    * Polls the gateway REST API for system status and flow counter data
    * Keeps a last-known-good dashboard state: failed polls change nothing,
      busy responses only refresh the uptime and missing sections are kept
    * Handles the 32-bit device millisecond clock rolling over
    * Reads and writes the RS485 line settings (baud, parity, stop bits, timeout)
    * Re-uses http connections to the gateway and caches reads for 1s

 Classes
    Gateway(host, timeout, cacheexpire, poolmaxsize, poll_interval, on_render, client)

 Parameters
    host                      # Hostname or IP of the gateway
    timeout = 5               # Timeout for HTTP calls in seconds
    cacheexpire = 1           # Seconds to cache read responses
    poolmaxsize = 10          # Pool max size for http connection re-use (persistent
                                connections disabled if zero)
    poll_interval = 2.0       # Seconds between polls when using poller()
    on_render = None          # Callback invoked with each new RenderedState
    client = None             # Alternative PyFlowGatewayBase client (default http client)

 Functions
    poll(api, force)          # Return JSON data from gateway api (None on failure)
    is_connected()            # Returns True if the gateway answers
    update()                  # Poll once and reconcile into state - returns RenderedState
    state                     # Current RenderedState
    status(param)             # Return raw status (dict) or individual param
    uptime()                  # Return uptime string "Xh Ym"
    version(tuple_value)      # Return firmware version string (or tuple)
    flow_counters()           # Return visible (enabled) flow counter views
    get_gateway_config()      # Return GatewayConfig (rs485 settings and ports)
    get_serial_config()       # Return RS485 SerialLineConfig
    set_serial_config(baud_rate, parity, stop_bits, response_timeout)
    get_ports()               # Return list of PortConfig
    set_ports(ports)          # Update port configuration (list of dict or PortConfig)
    manual_read(port)         # Trigger a manual Modbus read of a port
    modbus_tcp_status()       # Return Modbus TCP server status
    poller()                  # Return an asyncio Poller feeding this gateway's state
    close()                   # Close the http session

 Requirements
    This module requires the following modules: requests, pydantic, pydantic-settings,
    python-dotenv, python-dateutil
    pip install requests pydantic pydantic-settings python-dotenv python-dateutil
"""
import logging
import sys
from typing import List, Optional, Union

from pydantic import ValidationError

version_tuple = (0, 3, 0)
version = __version__ = '%d.%d.%d' % version_tuple
__author__ = 'pyflowgateway'

from pyflowgateway.exceptions import InvalidConfigurationParameter, PyFlowGatewayError, TransportError
from pyflowgateway.gateway_base import (CONFIG_API, MANUAL_READ_API, MODBUS_TCP_API, STATUS_API,
                                        VERSION_API, PyFlowGatewayBase, parse_version)
from pyflowgateway.local.gateway_local import PyFlowGatewayLocal
from pyflowgateway.models import MAX_FLOW_COUNTERS, GatewayConfig, PortConfig, StatusSnapshot
from pyflowgateway.poller import Poller
from pyflowgateway.reconciler import FlowCounterView, RenderedState, StatusReconciler
from pyflowgateway import clock, serial_config
from pyflowgateway.serial_config import Parity, SerialLineConfig, StopBits

log = logging.getLogger(__name__)
log.debug('%s version %s', __name__, __version__)
log.debug('Python %s on %s', sys.version, sys.platform)


def set_debug(toggle=True, color=True):
    """Enable verbose logging"""
    if toggle:
        if color:
            logging.basicConfig(format='\x1b[31;1m%(levelname)s:%(message)s\x1b[0m', level=logging.DEBUG)
        else:
            logging.basicConfig(format='%(levelname)s:%(message)s', level=logging.DEBUG)
        log.setLevel(logging.DEBUG)
        log.debug("%s [%s]\n" % (__name__, __version__))
    else:
        log.setLevel(logging.NOTSET)


class Gateway(object):
    def __init__(self, host="", timeout=5, cacheexpire=1, poolmaxsize=10, poll_interval=2.0,
                 on_render=None, client: Optional[PyFlowGatewayBase] = None):
        """
        Represents a Modbus RTU-TCP flow counter gateway.

        Args:
            host          = Hostname or IP address of the gateway (e.g. 192.168.1.100)
            timeout       = Seconds for the timeout on http requests
            cacheexpire   = Seconds to expire cached read responses
            poolmaxsize   = Pool max size for http connection re-use (persistent connections disabled if zero)
            poll_interval = Seconds between polls for poller()
            on_render     = Callback invoked with the new RenderedState after each update
            client        = Use this client instead of creating an http client for host
        """
        self.host = host
        self.timeout = timeout
        self.cacheexpire = cacheexpire
        self.poolmaxsize = poolmaxsize
        self.poll_interval = poll_interval
        self.reconciler = StatusReconciler(on_render)
        self.client: PyFlowGatewayBase

        if client is not None:
            self.client = client
        else:
            if not self.host:
                raise InvalidConfigurationParameter("Gateway host is required")
            self.client = PyFlowGatewayLocal(self.host, timeout=self.timeout, cacheexpire=self.cacheexpire,
                                             poolmaxsize=self.poolmaxsize)
            if not self.client.connect():
                log.debug(f"Gateway at {self.host} not responding - will keep trying on each poll")

    def close(self):
        """Close the http session to the gateway"""
        self.client.close_session()

    @property
    def state(self) -> RenderedState:
        return self.reconciler.state

    def poll(self, api='/api/system/status', force=False) -> Optional[Union[dict, list]]:
        """
        Query the gateway and return the JSON payload, or None on failure

        Args:
          api = URI
          force = if True, bypass the response cache
        """
        try:
            return self.client.poll(api, force=force)
        except TransportError as exc:
            log.debug(f"Unable to poll {api}: {exc}")
            return None

    def is_connected(self) -> bool:
        try:
            return self.client.poll(STATUS_API, force=True) is not None
        except TransportError:
            return False

    def update(self) -> RenderedState:
        """Fetch one snapshot and reconcile it into state. Failures leave state unchanged."""
        sequence = self.reconciler.issue_sequence()
        try:
            snapshot = self.client.snapshot()
        except TransportError as exc:
            return self.reconciler.fail(exc, sequence)
        return self.reconciler.apply(snapshot, sequence)

    def snapshot(self) -> StatusSnapshot:
        return self.client.snapshot()

    def status(self, param=None):
        """Return raw status dict, or a single value if param is given"""
        payload = self.poll(STATUS_API)
        if payload is None:
            return None
        if param is None:
            return payload
        return payload.get(param)

    def uptime(self) -> Optional[str]:
        uptime = self.status('uptime')
        if uptime is None:
            return None
        return clock.format_uptime(int(uptime))

    def version(self, tuple_value=False):
        """Firmware version string, e.g. '1.1.2' (or (1, 1, 2) if tuple_value)"""
        payload = self.poll(VERSION_API)
        if not payload:
            return None
        v = payload.get('version')
        if tuple_value:
            return parse_version(v)
        return v

    def flow_counters(self) -> List[FlowCounterView]:
        return self.update().flow_counters or []

    def get_gateway_config(self) -> Optional[GatewayConfig]:
        """RS485 settings and port configuration, or None if unavailable"""
        payload = self.poll(CONFIG_API)
        if not isinstance(payload, dict):
            return None
        try:
            return GatewayConfig.from_device(payload)
        except ValidationError as exc:
            log.debug(f"Malformed config document from {self.host}: {exc}")
            return None

    def get_serial_config(self) -> Optional[SerialLineConfig]:
        config = self.get_gateway_config()
        if config is None:
            return None
        return config.rs485

    def set_serial_config(self, baud_rate=None, parity=None, stop_bits=None, response_timeout=None):
        """
        Update the RS485 line settings. Unspecified settings keep their current value.

        Args:
          baud_rate = e.g. 9600
          parity = "none", "even" or "odd" (or Parity)
          stop_bits = 1 or 2 (or StopBits)
          response_timeout = Modbus response timeout in ms

        Returns the gateway response (dict) e.g. {'status': 'success', 'message': '...'}
        """
        current = self.get_serial_config()
        if current is None:
            raise TransportError(f"Unable to read current serial configuration from {self.host}",
                                 api=CONFIG_API)
        if baud_rate is not None:
            baud_rate = int(baud_rate)
            if baud_rate <= 0:
                raise InvalidConfigurationParameter(f"Invalid baud rate {baud_rate}")
        if response_timeout is not None:
            response_timeout = int(response_timeout)
            if not 0 < response_timeout <= 0xFFFF:
                raise InvalidConfigurationParameter(f"Invalid response timeout {response_timeout} ms")
        config = SerialLineConfig(
            baud_rate=current.baud_rate if baud_rate is None else baud_rate,
            parity=current.parity if parity is None else serial_config.parse_parity(parity),
            stop_bits=current.stop_bits if stop_bits is None else serial_config.parse_stop_bits(stop_bits),
            response_timeout=current.response_timeout if response_timeout is None else response_timeout,
        )
        log.debug(f"Setting serial config {config.baud_rate} {config.label} "
                  f"({serial_config.encode(config)}) timeout {config.response_timeout}ms")
        return self.client.post(CONFIG_API, {'rs485': serial_config.to_device(config)})

    def get_ports(self) -> List[PortConfig]:
        config = self.get_gateway_config()
        if config is None:
            return []
        return config.ports

    def set_ports(self, ports):
        """Update port configuration - ports is a list of PortConfig or dicts with a 'port' key"""
        validated = []
        for p in ports:
            if isinstance(p, PortConfig):
                validated.append(p)
                continue
            try:
                validated.append(PortConfig.model_validate(p))
            except ValidationError as exc:
                raise InvalidConfigurationParameter(f"Invalid port configuration {p}: {exc}")
        payload = {'ports': [p.model_dump() for p in validated]}
        return self.client.post(CONFIG_API, payload)

    def manual_read(self, port: int):
        """Trigger an immediate Modbus read of an enabled port (1-12)"""
        if not 1 <= int(port) <= MAX_FLOW_COUNTERS:
            raise InvalidConfigurationParameter(
                f"Invalid port {port} - must be between 1 and {MAX_FLOW_COUNTERS}")
        return self.client.post(MANUAL_READ_API, params={'port': int(port)})

    def modbus_tcp_status(self) -> Optional[dict]:
        return self.poll(MODBUS_TCP_API)

    def poller(self, interval=None) -> Poller:
        """Create an asyncio Poller that feeds this gateway's reconciler"""
        return Poller(self.client.snapshot, self.reconciler,
                      interval=self.poll_interval if interval is None else interval)
