"""
Status reconciliation.

Merges each StatusSnapshot into the long lived RenderedState:

    * fetch failure - state unchanged, failure logged at debug level
    * busy          - only the uptime is refreshed
    * normal        - each section present in the snapshot replaces the
                      rendered one, absent sections keep their last known
                      good value; disabled flow counters are not shown

Snapshots are tagged with a sequence number and anything older than the newest
sequence already seen is discarded, so a slow response can never roll the
rendered state back.
"""
import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel

from pyflowgateway import clock
from pyflowgateway.models import (EthernetStatus, FlowCounterSnapshot, SerialBusStatus,
                                  StatusSnapshot, StorageStatus, TcpGatewayStatus)

log = logging.getLogger(__name__)

NO_VALUE = "--"
SECTIONS = ('version', 'ethernet', 'storage', 'serial_bus', 'tcp_gateway')


class CounterStatus(str, Enum):
    OK = "ok"
    ERROR = "error"
    UNKNOWN = "unknown"


class Badge(BaseModel):
    text: str
    level: str  # success, error or info
    detail: str = NO_VALUE


def classify_counter(counter: FlowCounterSnapshot) -> CounterStatus:
    if counter.has_comm_error:
        return CounterStatus.ERROR
    if counter.trigger_count > 0 and counter.data_valid:
        return CounterStatus.OK
    return CounterStatus.UNKNOWN


class FlowCounterView(BaseModel):
    """A visible flow counter with its derived status and display times."""
    counter: FlowCounterSnapshot
    status: CounterStatus
    last_trigger: Optional[str] = None
    last_read: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def port(self) -> int:
        return self.counter.port

    @property
    def name(self) -> str:
        return self.counter.name

    @classmethod
    def build(cls, counter: FlowCounterSnapshot, current_millis: Optional[int]) -> "FlowCounterView":
        last_trigger = last_read = None
        if counter.data_valid and counter.reading is not None:
            last_trigger = clock.format_timestamp(counter.reading.last_trigger_unix_time)
            if current_millis is not None:
                last_read = clock.format_time_since(counter.reading.last_update_device_millis,
                                                    current_millis)
        return cls(counter=counter, status=classify_counter(counter),
                   last_trigger=last_trigger, last_read=last_read)


def ethernet_badge(ethernet: EthernetStatus) -> Badge:
    if ethernet.connected:
        return Badge(text="DHCP" if ethernet.uses_dhcp else "Static", level="success",
                     detail=ethernet.ip_address or NO_VALUE)
    return Badge(text="Disconnected", level="error")


def storage_badge(storage: StorageStatus) -> Badge:
    if storage.ready:
        detail = NO_VALUE
        if storage.capacity_gb is not None and storage.free_space_gb is not None:
            detail = f"{storage.capacity_gb:.1f} GB ({storage.free_space_gb:.1f} GB free)"
        return Badge(text="Inserted" if storage.inserted else "Not Inserted", level="success",
                     detail=detail)
    if storage.inserted:
        return Badge(text="Error", level="error")
    return Badge(text="Not Inserted", level="info")


def serial_bus_badge(bus: SerialBusStatus) -> Badge:
    if bus.error_device_count > 0:
        detail = f"{bus.active_device_count} ({bus.error_device_count} errors)"
    else:
        detail = f"{bus.active_device_count}"
    if bus.has_error:
        return Badge(text="Comm Error", level="error", detail=detail)
    if bus.active_device_count > 0:
        return Badge(text="OK", level="success", detail=detail)
    return Badge(text="No Devices", level="info", detail=detail)


class RenderedState(BaseModel):
    """Last known good dashboard state. Every section is independently preserved."""
    uptime_seconds: Optional[int] = None
    version: Optional[str] = None
    ethernet: Optional[EthernetStatus] = None
    storage: Optional[StorageStatus] = None
    serial_bus: Optional[SerialBusStatus] = None
    tcp_gateway: Optional[TcpGatewayStatus] = None
    flow_counters: Optional[List[FlowCounterView]] = None
    current_millis: Optional[int] = None
    sequence: int = 0

    model_config = {"frozen": True}

    @property
    def uptime(self) -> str:
        if self.uptime_seconds is None:
            return NO_VALUE
        return clock.format_uptime(self.uptime_seconds)

    @property
    def ethernet_badge(self) -> Optional[Badge]:
        return ethernet_badge(self.ethernet) if self.ethernet else None

    @property
    def storage_badge(self) -> Optional[Badge]:
        return storage_badge(self.storage) if self.storage else None

    @property
    def serial_bus_badge(self) -> Optional[Badge]:
        return serial_bus_badge(self.serial_bus) if self.serial_bus else None


class StatusReconciler:
    """Owns the RenderedState and applies each poll outcome to it."""

    def __init__(self, on_render: Optional[Callable[[RenderedState], None]] = None):
        self.state = RenderedState()
        self.on_render = on_render
        self.newest_sequence = 0
        self.issued = 0
        # update() and the poller issue tags from different threads
        self._lock = threading.Lock()
        self.stats = {'applied': 0, 'busy': 0, 'failed': 0, 'stale': 0}

    def issue_sequence(self) -> int:
        """Reserve the sequence number for a fetch that is about to be issued"""
        with self._lock:
            self.issued = max(self.issued, self.newest_sequence) + 1
            return self.issued

    def _accept(self, sequence: Optional[int]) -> Optional[int]:
        if sequence is None:
            sequence = self.issue_sequence()
        with self._lock:
            if sequence <= self.newest_sequence:
                self.stats['stale'] += 1
                log.debug(f"Discarding stale response #{sequence} (newest #{self.newest_sequence})")
                return None
            self.newest_sequence = sequence
            return sequence

    def fail(self, error: Exception, sequence: Optional[int] = None) -> RenderedState:
        """Record a failed fetch. The rendered state is left untouched."""
        if self._accept(sequence) is not None:
            self.stats['failed'] += 1
            log.debug(f"Status update failed - keeping current state: {error}")
        return self.state

    def apply(self, snapshot: StatusSnapshot, sequence: Optional[int] = None) -> RenderedState:
        sequence = self._accept(sequence)
        if sequence is None:
            return self.state

        update = {'sequence': sequence}
        if snapshot.uptime_seconds is not None:
            update['uptime_seconds'] = snapshot.uptime_seconds

        if snapshot.busy:
            # Device is mid-operation; anything beyond uptime may be torn
            self.stats['busy'] += 1
            log.debug("Gateway busy - only updating uptime")
        else:
            self.stats['applied'] += 1
            for section in SECTIONS:
                value = getattr(snapshot, section)
                if value is not None:
                    update[section] = value
            current_millis = snapshot.current_millis
            if current_millis is not None:
                update['current_millis'] = current_millis
            else:
                current_millis = self.state.current_millis
            if snapshot.flow_counters is not None:
                update['flow_counters'] = [FlowCounterView.build(fc, current_millis)
                                           for fc in snapshot.flow_counters if fc.enabled]

        self.state = self.state.model_copy(update=update)
        if self.on_render:
            self.on_render(self.state)
        return self.state
