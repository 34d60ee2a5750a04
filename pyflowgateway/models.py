"""Pydantic models for gateway status snapshots and configuration.

Field names are pythonic; aliases match the JSON keys the gateway firmware
emits so that device documents can be validated directly:

    StatusSnapshot.model_validate(status_json)

Top-level sections that a firmware build does not provide are simply absent
(None). The firmware emits an empty ``sd`` object while the SD card is locked
by another task; empty sections are treated the same as absent ones.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from pyflowgateway.serial_config import SerialLineConfig
from pyflowgateway.serial_config import from_device as serial_from_device

MAX_FLOW_COUNTERS = 12
MAX_SLAVE_ID = 247
MAX_PORT_NAME = 15


class _DeviceModel(BaseModel):
    model_config = {"populate_by_name": True, "frozen": True}


def _empty_as_absent(value: Any) -> Any:
    if isinstance(value, dict) and not value:
        return None
    return value


class EthernetStatus(_DeviceModel):
    connected: bool = False
    uses_dhcp: bool = Field(default=False, alias="dhcp")
    ip_address: Optional[str] = Field(default=None, alias="ip")


class StorageStatus(_DeviceModel):
    """SD card state. Capacity figures are only reported while the card is ready."""
    ready: bool = False
    inserted: bool = False
    capacity_gb: Optional[float] = Field(default=None, alias="capacityGB")
    free_space_gb: Optional[float] = Field(default=None, alias="freeSpaceGB")


class SerialBusStatus(_DeviceModel):
    has_error: bool = Field(default=False, alias="hasError")
    active_device_count: int = Field(default=0, alias="activeDevices")
    error_device_count: int = Field(default=0, alias="errorDevices")


class TcpGatewayStatus(_DeviceModel):
    port: int = 502
    connected_client_count: int = Field(default=0, alias="connectedClients")
    client_addresses: List[str] = Field(default_factory=list, alias="clients")


class FlowReading(_DeviceModel):
    """Register snapshot read from a flow counter over Modbus RTU."""
    unit_id: Optional[str] = None
    volume_ml: float = Field(default=0.0, alias="volume")
    volume_normalised_ml: float = Field(default=0.0, alias="volume_normalised")
    flow_ml_per_min: float = Field(default=0.0, alias="flow")
    flow_normalised_ml_per_min: float = Field(default=0.0, alias="flow_normalised")
    temperature_c: float = Field(default=0.0, alias="temperature")
    pressure_hpa: float = Field(default=0.0, alias="pressure")
    psu_volts: float = 0.0
    batt_volts: float = 0.0
    last_trigger_unix_time: int = Field(default=0, alias="timestamp")
    last_update_device_millis: int = Field(default=0, alias="last_update")
    current_temperature_c: float = Field(default=0.0, alias="current_temperature")
    current_pressure_kpa: float = Field(default=0.0, alias="current_pressure")

    @field_validator("unit_id", mode="before")
    @classmethod
    def _unit_id_as_str(cls, value):
        if value is None or value == "":
            return None
        return str(value)


class FlowCounterSnapshot(_DeviceModel):
    port: int
    slave_id: int = 0
    name: str = ""
    enabled: bool = False
    has_comm_error: bool = Field(default=False, alias="comm_error")
    trigger_count: int = 0
    data_valid: bool = False
    reading: Optional[FlowReading] = Field(default=None, alias="data")


class StatusSnapshot(_DeviceModel):
    """One poll cycle of device data.

    Built from ``/api/system/status`` and, unless the device reported busy,
    ``/api/gateway/data`` (which contributes flow_counters and current_millis).
    """
    busy: bool = False
    uptime_seconds: Optional[int] = Field(default=None, alias="uptime")
    version: Optional[str] = None
    ethernet: Optional[EthernetStatus] = None
    storage: Optional[StorageStatus] = Field(default=None, alias="sd")
    serial_bus: Optional[SerialBusStatus] = Field(default=None, alias="modbus")
    tcp_gateway: Optional[TcpGatewayStatus] = Field(default=None, alias="modbusTcp")
    flow_counters: Optional[List[FlowCounterSnapshot]] = None
    current_millis: Optional[int] = None

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_str(cls, value):
        if value is None:
            return None
        return str(value)

    @field_validator("ethernet", "storage", "serial_bus", "tcp_gateway", mode="before")
    @classmethod
    def _section(cls, value):
        return _empty_as_absent(value)

    @classmethod
    def from_device(cls, status: dict, data: Optional[dict] = None) -> "StatusSnapshot":
        """Merge the status document and the optional flow counter document"""
        merged = dict(status)
        if isinstance(data, dict):
            if "flow_counters" in data:
                merged["flow_counters"] = data["flow_counters"]
            if "current_millis" in data:
                merged["current_millis"] = data["current_millis"]
        return cls.model_validate(merged)


class PortConfig(_DeviceModel):
    port: int = Field(ge=1, le=MAX_FLOW_COUNTERS)
    enabled: bool = False
    slave_id: int = Field(default=1, ge=1, le=MAX_SLAVE_ID)
    name: str = Field(default="", max_length=MAX_PORT_NAME)
    log_to_sd: bool = False


class GatewayConfig(_DeviceModel):
    """Document served by ``/api/gateway/config``"""
    rs485: SerialLineConfig = Field(default_factory=SerialLineConfig)
    ports: List[PortConfig] = Field(default_factory=list)

    @classmethod
    def from_device(cls, config: dict) -> "GatewayConfig":
        # serial_config arrives as a packed word and is decoded by the codec
        return cls(rs485=serial_from_device(config.get('rs485') or {}),
                   ports=[PortConfig.model_validate(p) for p in config.get('ports') or []])
