import logging
import time
from typing import Optional, Tuple, Union

import requests
from requests import Response

from pyflowgateway.exceptions import TransportError
from pyflowgateway.gateway_base import PyFlowGatewayBase, STATUS_API

log = logging.getLogger(__name__)


class PyFlowGatewayLocal(PyFlowGatewayBase):
    """Plain HTTP client for the gateway's embedded web server."""

    def __init__(self, host: str, timeout: Union[float, Tuple[float, float]] = 5,
                 cacheexpire: float = 1, poolmaxsize: int = 10):
        super().__init__(host)
        self.timeout = timeout
        self.poolmaxsize = poolmaxsize  # pool max size for http connection re-use
        self.pwcachetime = {}  # holds the cached data timestamps for api
        self.pwcacheexpire = cacheexpire  # seconds to expire cache
        self.session = None

    def connect(self) -> bool:
        if self.poolmaxsize > 0:
            # Create session object for http connection re-use
            self.session = requests.Session()
            # noinspection PyUnresolvedReferences
            a = requests.adapters.HTTPAdapter(pool_maxsize=self.poolmaxsize)
            self.session.mount('http://', a)
        else:
            # Disable http persistent connections
            self.session = requests
        try:
            self.poll(STATUS_API, force=True)
        except TransportError as exc:
            log.debug(f"Unable to connect to gateway at http://{self.host}: {exc}")
            return False
        return True

    def close_session(self):
        if isinstance(self.session, requests.Session):
            self.session.close()
        self.session = None

    def _url(self, api: str) -> str:
        return "http://%s%s" % (self.host, api)

    def _check(self, r: Response, api: str) -> Optional[Union[dict, list]]:
        url = self._url(api)
        if not 200 <= r.status_code < 300:
            try:
                reason = r.json().get('error', r.reason)
            except (ValueError, AttributeError):
                reason = r.reason
            if r.status_code == 423:
                # Firmware holds a lock on the flow counter data
                log.debug('423 Gateway data locked at %s' % url)
            else:
                log.debug('HTTP %s from gateway at %s: %s' % (r.status_code, url, reason))
            raise TransportError(f"HTTP {r.status_code} from {url}: {reason}",
                                 status_code=r.status_code, api=api)
        if not r.text:
            log.debug(f"Empty response from gateway at {url}")
            return None
        try:
            return r.json()
        except ValueError as exc:
            log.debug(f"Unable to parse payload '{r.text}' as JSON: {exc}")
            raise TransportError(f"Invalid JSON from {url}", status_code=r.status_code, api=api)

    def poll(self, api: str, force: bool = False,
             params: Optional[dict] = None) -> Optional[Union[dict, list]]:
        # Check cache
        if not force and not params and self.pwcache.get(api) is not None \
                and self.pwcachetime.get(api) is not None:
            if time.perf_counter() - self.pwcachetime[api] < self.pwcacheexpire:
                log.debug(' -- local: Returning cached %s' % api)
                return self.pwcache[api]

        if self.session is None:
            raise TransportError(f"Not connected to gateway at {self.host}", api=api)
        log.debug(' -- local: Request gateway for %s' % api)
        url = self._url(api)
        try:
            r: Response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            log.debug('ERROR Timeout waiting for gateway API %s' % url)
            raise TransportError(f"Timeout waiting for {url}", api=api)
        except requests.exceptions.RequestException as exc:
            log.debug(f'ERROR Unable to connect to gateway at {url}: {exc}')
            raise TransportError(f"Unable to connect to {url}: {exc}", api=api)

        payload = self._check(r, api)
        if not params:
            self.pwcache[api] = payload
            self.pwcachetime[api] = time.perf_counter()
        return payload

    def post(self, api: str, payload: Optional[dict] = None,
             params: Optional[dict] = None) -> Optional[Union[dict, list]]:
        # Write calls are never cached
        if self.session is None:
            raise TransportError(f"Not connected to gateway at {self.host}", api=api)
        url = self._url(api)
        try:
            r: Response = self.session.post(url, json=payload, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            log.debug('ERROR Timeout waiting for gateway API %s' % url)
            raise TransportError(f"Timeout waiting for {url}", api=api)
        except requests.exceptions.RequestException as exc:
            log.debug(f'ERROR Unable to connect to gateway at {url}: {exc}')
            raise TransportError(f"Unable to connect to {url}: {exc}", api=api)
        response = self._check(r, api)
        self._invalidate_cache(api)
        return response
