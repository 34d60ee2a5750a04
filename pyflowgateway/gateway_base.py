import abc
import logging
from typing import Optional, Tuple, Union

from pydantic import ValidationError

from pyflowgateway.exceptions import TransportError
from pyflowgateway.models import StatusSnapshot

log = logging.getLogger(__name__)

STATUS_API = '/api/system/status'
DATA_API = '/api/gateway/data'
CONFIG_API = '/api/gateway/config'
VERSION_API = '/api/system/version'
MODBUS_TCP_API = '/api/modbus-tcp/status'
MANUAL_READ_API = '/api/gateway/manual-read'

# Define which write API calls should invalidate which read API cache keys
WRITE_OP_READ_OP_CACHE_MAP = {
    CONFIG_API: [CONFIG_API, DATA_API, STATUS_API],
    MANUAL_READ_API: [DATA_API],
}


def parse_version(version: Optional[str]) -> Optional[Tuple[int, ...]]:
    """Turn a firmware version string such as '1.1.2' or 'V1.1' into (1, 1, 2) / (1, 1, 0)"""
    if version is None or not isinstance(version, str):
        return None
    val = ''.join(i for i in version.split(" ")[0] if i.isdigit() or i == '.')
    parts = [p for p in val.split('.') if p]
    if not parts:
        return None
    while len(parts) < 3:
        parts.append('0')
    return tuple(int(x, 10) for x in parts)


class PyFlowGatewayBase:

    def __init__(self, host: str):
        super().__init__()
        self.host = host
        self.pwcache = {}  # holds the cached data for api

    @abc.abstractmethod
    def connect(self) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    def close_session(self):
        raise NotImplementedError

    @abc.abstractmethod
    def poll(self, api: str, force: bool = False,
             params: Optional[dict] = None) -> Optional[Union[dict, list]]:
        """Return the JSON document at api. Raises TransportError on failure."""
        raise NotImplementedError

    @abc.abstractmethod
    def post(self, api: str, payload: Optional[dict] = None,
             params: Optional[dict] = None) -> Optional[Union[dict, list]]:
        raise NotImplementedError

    def snapshot(self, force: bool = True) -> StatusSnapshot:
        """
        Fetch one status snapshot.

        The flow counter document is skipped while the device reports busy, as
        the counters are locked by the firmware at that point. If only the flow
        counter request fails (e.g. 423 while the firmware holds the data lock)
        the status half is still returned and the counters are left absent.
        """
        status = self.poll(STATUS_API, force=force) or {}
        if not isinstance(status, dict):
            raise TransportError(f"Unexpected status document from {self.host}", api=STATUS_API)
        data = None
        if not status.get('busy'):
            try:
                data = self.poll(DATA_API, force=force)
            except TransportError as exc:
                log.debug(f"Flow counter data unavailable - keeping previous counters: {exc}")
        try:
            return StatusSnapshot.from_device(status, data)
        except ValidationError as exc:
            log.debug(f"Malformed status document from {self.host}: {exc}")
            raise TransportError(f"Malformed status document from {self.host}")

    def _invalidate_cache(self, api: str):
        cache_keys = WRITE_OP_READ_OP_CACHE_MAP.get(api, [])
        for cache_key in cache_keys:
            self.pwcache[cache_key] = None
