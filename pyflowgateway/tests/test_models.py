import pytest
from pydantic import ValidationError

from pyflowgateway.models import GatewayConfig, PortConfig, StatusSnapshot


def test_snapshot_from_device_documents(status_doc, data_doc):
    snap = StatusSnapshot.from_device(status_doc, data_doc)
    assert snap.busy is False
    assert snap.ethernet.uses_dhcp is True
    assert snap.serial_bus.has_error is False
    assert snap.tcp_gateway.connected_client_count == 1
    assert len(snap.flow_counters) == 3
    reading = snap.flow_counters[0].reading
    assert reading.unit_id == "FC-0001"
    assert reading.volume_normalised_ml == 148.25
    assert reading.last_update_device_millis == 30000
    assert reading.current_pressure_kpa == 101.3
    assert snap.flow_counters[1].reading is None
    assert snap.current_millis == 120000


def test_busy_document_has_no_sections(busy_doc):
    snap = StatusSnapshot.from_device(busy_doc)
    assert snap.busy is True
    assert snap.uptime_seconds == 7500
    assert snap.ethernet is None
    assert snap.storage is None
    assert snap.flow_counters is None


def test_version_field_is_optional(status_doc):
    del status_doc['version']
    assert StatusSnapshot.from_device(status_doc).version is None


def test_numeric_version_is_text(status_doc):
    status_doc['version'] = 2
    assert StatusSnapshot.from_device(status_doc).version == "2"


def test_storage_without_capacity(status_doc):
    status_doc['sd'] = {"inserted": True, "ready": False}
    snap = StatusSnapshot.from_device(status_doc)
    assert snap.storage.capacity_gb is None


def test_port_config_limits():
    assert PortConfig(port=12, slave_id=247, name="x" * 15).slave_id == 247
    with pytest.raises(ValidationError):
        PortConfig(port=13)
    with pytest.raises(ValidationError):
        PortConfig(port=1, slave_id=0)
    with pytest.raises(ValidationError):
        PortConfig(port=1, name="x" * 16)


def test_gateway_config_from_device(config_doc):
    config = GatewayConfig.from_device(config_doc)
    assert config.rs485.baud_rate == 9600
    assert config.rs485.label == "8N1"
    assert [p.name for p in config.ports] == ["Reactor A", "Reactor B", "Spare"]


def test_gateway_config_without_sections():
    config = GatewayConfig.from_device({})
    assert config.rs485.baud_rate == 9600
    assert config.ports == []
