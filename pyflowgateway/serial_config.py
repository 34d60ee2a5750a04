"""
RS485 line configuration codec.

The gateway firmware stores its UART setting as a single packed word built from
the Arduino/RP2040 ``SERIAL_*`` constants:

    SERIAL_PARITY_EVEN=0x1  SERIAL_PARITY_ODD=0x2  SERIAL_PARITY_NONE=0x3
    SERIAL_STOP_BIT_1=0x10  SERIAL_STOP_BIT_2=0x30
    SERIAL_DATA_8=0x400

    8N1=1043  8E1=1041  8O1=1042
    8N2=1075  8E2=1073  8O2=1074

Decoding only recovers parity and stop bits. Words with unrecognised bit
patterns decode to no parity and one stop bit instead of raising.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from pyflowgateway.exceptions import InvalidConfigurationParameter

SERIAL_DATA_8 = 0x400
SERIAL_STOP_BIT_1 = 0x10
SERIAL_STOP_BIT_2 = 0x30
SERIAL_PARITY_EVEN = 0x1
SERIAL_PARITY_ODD = 0x2
SERIAL_PARITY_NONE = 0x3

PARITY_MASK = 0xF
STOP_BIT_MASK = 0xF0

DEFAULT_BAUD_RATE = 9600
DEFAULT_RESPONSE_TIMEOUT = 200  # ms
BAUD_RATES = (1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200)


class Parity(str, Enum):
    NONE = "none"
    EVEN = "even"
    ODD = "odd"


class StopBits(str, Enum):
    ONE = "1"
    TWO = "2"


_PARITY_BITS = {
    Parity.EVEN: SERIAL_PARITY_EVEN,
    Parity.ODD: SERIAL_PARITY_ODD,
    Parity.NONE: SERIAL_PARITY_NONE,
}
_STOP_BITS = {
    StopBits.ONE: SERIAL_STOP_BIT_1,
    StopBits.TWO: SERIAL_STOP_BIT_2,
}
_PARITY_LETTER = {Parity.NONE: "N", Parity.EVEN: "E", Parity.ODD: "O"}


@dataclass(frozen=True)
class SerialLineConfig:
    baud_rate: int = DEFAULT_BAUD_RATE
    parity: Parity = Parity.NONE
    stop_bits: StopBits = StopBits.ONE
    response_timeout: int = DEFAULT_RESPONSE_TIMEOUT

    @property
    def label(self) -> str:
        return line_label(self.parity, self.stop_bits)


def encode(config: SerialLineConfig) -> int:
    """Pack parity and stop bits (with fixed 8 data bits) into a serial config word"""
    return SERIAL_DATA_8 | _STOP_BITS[config.stop_bits] | _PARITY_BITS[config.parity]


def decode(word: int) -> Tuple[Parity, StopBits]:
    """Unpack parity and stop bits from a serial config word"""
    parity_bits = word & PARITY_MASK
    if parity_bits == SERIAL_PARITY_EVEN:
        parity = Parity.EVEN
    elif parity_bits == SERIAL_PARITY_ODD:
        parity = Parity.ODD
    else:
        parity = Parity.NONE

    if word & STOP_BIT_MASK == SERIAL_STOP_BIT_2:
        stop_bits = StopBits.TWO
    else:
        stop_bits = StopBits.ONE
    return parity, stop_bits


def line_label(parity: Parity, stop_bits: StopBits) -> str:
    # e.g. 8N1, 8E2
    return f"8{_PARITY_LETTER[parity]}{stop_bits.value}"


def parse_parity(value: Union[str, Parity]) -> Parity:
    if isinstance(value, Parity):
        return value
    try:
        return Parity(str(value).lower())
    except ValueError:
        raise InvalidConfigurationParameter(
            f"Invalid parity '{value}' - must be one of none, even, or odd")


def parse_stop_bits(value: Union[str, int, StopBits]) -> StopBits:
    if isinstance(value, StopBits):
        return value
    try:
        return StopBits(str(value))
    except ValueError:
        raise InvalidConfigurationParameter(f"Invalid stop bits '{value}' - must be 1 or 2")


def from_device(rs485: dict) -> SerialLineConfig:
    """Build a SerialLineConfig from the device's rs485 config object"""
    parity, stop_bits = decode(int(rs485.get('serial_config', 0)))
    return SerialLineConfig(
        baud_rate=int(rs485.get('baud_rate', DEFAULT_BAUD_RATE)),
        parity=parity,
        stop_bits=stop_bits,
        response_timeout=int(rs485.get('response_timeout', DEFAULT_RESPONSE_TIMEOUT)),
    )


def to_device(config: SerialLineConfig) -> dict:
    """Build the rs485 payload the device expects on POST /api/gateway/config"""
    return {
        'baud_rate': config.baud_rate,
        'serial_config': encode(config),
        'response_timeout': config.response_timeout,
    }
