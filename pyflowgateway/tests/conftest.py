"""Pytest configuration and fixtures."""
import copy

import pytest

STATUS_DOC = {
    "ethernet": {"connected": True, "ip": "192.168.1.50", "gateway": "192.168.1.1",
                 "subnet": "255.255.255.0", "dhcp": True},
    "uptime": 7380,
    "version": "1.1.2",
    "sd": {"inserted": True, "ready": True, "capacityGB": 15.9, "freeSpaceGB": 12.34,
           "logFileSizeKB": 12.5, "sensorFileSizeKB": 240.0},
    "modbus": {"connected": True, "hasError": False, "activeDevices": 2, "errorDevices": 0},
    "modbusTcp": {"enabled": True, "port": 502, "connectedClients": 1, "clients": ["192.168.1.20:50123"]},
}

DATA_DOC = {
    "current_millis": 120000,
    "millis_rollover_count": 0,
    "flow_counters": [
        {
            "port": 1, "enabled": True, "slave_id": 1, "name": "Reactor A",
            "data_valid": True, "comm_error": False, "trigger_count": 3,
            "data": {
                "volume": 152.5, "volume_normalised": 148.25, "flow": 12.5, "flow_normalised": 12.1,
                "temperature": 21.4, "pressure": 1013.2, "current_temperature": 21.6,
                "current_pressure": 101.3, "timestamp": 1700000000, "psu_volts": 12.02,
                "batt_volts": 3.61, "unit_id": "FC-0001", "last_update": 30000,
            },
        },
        {
            "port": 2, "enabled": True, "slave_id": 2, "name": "Reactor B",
            "data_valid": False, "comm_error": True, "trigger_count": 0,
        },
        {
            "port": 3, "enabled": False, "slave_id": 3, "name": "Spare",
            "data_valid": True, "comm_error": False, "trigger_count": 9,
        },
    ],
}

BUSY_DOC = {"uptime": 7500, "busy": True}

CONFIG_DOC = {
    "rs485": {"baud_rate": 9600, "serial_config": 1043, "response_timeout": 200},
    "ports": [
        {"port": 1, "enabled": True, "slave_id": 1, "name": "Reactor A", "log_to_sd": True},
        {"port": 2, "enabled": True, "slave_id": 2, "name": "Reactor B", "log_to_sd": False},
        {"port": 3, "enabled": False, "slave_id": 3, "name": "Spare", "log_to_sd": False},
    ],
}


@pytest.fixture
def status_doc():
    return copy.deepcopy(STATUS_DOC)


@pytest.fixture
def data_doc():
    return copy.deepcopy(DATA_DOC)


@pytest.fixture
def busy_doc():
    return copy.deepcopy(BUSY_DOC)


@pytest.fixture
def config_doc():
    return copy.deepcopy(CONFIG_DOC)
