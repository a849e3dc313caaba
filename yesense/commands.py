"""Construction of configuration command frames for Yesense IMUs.

A command frame is laid out as::

    0x59 0x53 | class (1B) | id (3 bits) + length (13 bits), little endian
              | payload (length bytes) | ck1 | ck2

The two checksum bytes are a Fletcher-style sum over everything from the
class byte to the last payload byte.
"""

from __future__ import annotations

from dataclasses import dataclass

from .analysis import HEADER, ClassID

PRODUCTION_INFO = 0x00
RESET_ALL_PARAM = 0x01
BAUDRATE = 0x02
OUTPUT_FREQUENCY = 0x03
OUTPUT_CONTENT = 0x04
STANDARD_PARAM = 0x05
MODE_SETTING = 0x4D
NMEA_CONTENT = 0x4E

GYRO_BIAS_TOPIC = "yesense/gyro_bias_estimate"

_MAX_PAYLOAD = (1 << 13) - 1
_MEMORY_FLAG = 0x80

_PRODUCTION_QUERIES = {1: 0x02, 2: 0x04}
_OUTPUT_CONTENT_SELECTIONS = {
    0x00: b"\x00\x00",  # nothing
    0x01: b"\xf8\x00",  # accel, gyro, magnetic, euler, quaternion
    0x02: b"\xff\x00",  # the above plus location, speed and UTC
}
_STANDARD_PARAM_QUERIES = {1: 0x03, 2: 0x81}
_MODE_QUERIES = {1: 0x02, 2: 0x20, 3: 0x4F}
_MODE_SETTINGS = {
    1: b"\x02\x01",  # AHRS
    2: b"\x02\x02",  # VRU
    3: b"\x02\x03",  # IMU
    4: b"\x02\x04",  # general positioning
    5: b"\x02\x05",  # automotive
    6: b"\x4f\x01",  # data ready
    7: b"\x4f\x02",  # PPS
    8: b"\x20\x01",  # general mode
    9: b"\x20\x02",  # quadruped robot mode
    10: b"\x50\x01",
}
_GYRO_BIAS_COMMANDS = {
    "enable": (ClassID.SET_STATE_MEM, b"\x51\x01"),
    "disable": (ClassID.SET_STATE_MEM, b"\x51\x02"),
    "query": (ClassID.QUERY_STATE, b"\x51"),
}


class CommandError(ValueError):
    """Raised when a command cannot be built from the given arguments."""


@dataclass(frozen=True)
class Command:
    """A complete command frame, ready to be written to the device."""

    frame: bytes
    topic: str = ""
    name: str = ""

    @property
    def class_id(self) -> int:
        return self.frame[2]

    @property
    def cmd_id(self) -> int:
        return self.frame[3] & 0x07

    @property
    def payload(self) -> bytes:
        return self.frame[5:-2]

    def __bytes__(self) -> bytes:
        return self.frame

    def __len__(self) -> int:
        return len(self.frame)


def checksum(data) -> tuple[int, int]:
    """Return the two checksum bytes (ck1, ck2) of ``data``."""
    ck1 = ck2 = 0
    for byte in bytes(data):
        ck1 = (ck1 + byte) & 0xFF
        ck2 = (ck2 + ck1) & 0xFF
    return ck1, ck2


def build_command(class_id: int, cmd_id: int, payload=b"") -> Command:
    """Build a command frame of the given class and id around ``payload``."""
    body = bytes(payload)
    if not 0 <= class_id <= 0xFF:
        raise CommandError(f"class id out of range: {class_id}")
    if not 0 <= cmd_id <= 0x07:
        raise CommandError(f"command id out of range: {cmd_id}")
    if len(body) > _MAX_PAYLOAD:
        raise CommandError(f"payload too long: {len(body)} bytes")
    id_length = cmd_id | (len(body) << 3)
    checked = bytes([class_id]) + id_length.to_bytes(2, "little") + body
    return Command(HEADER + checked + bytes(checksum(checked)))


def _byte(value: int) -> int:
    if not 0 <= value <= 0xFF:
        raise CommandError(f"value must fit in one byte: {value}")
    return value


def _set_id(value: int) -> ClassID:
    """The top bit selects memory; otherwise the setting goes to flash."""
    return ClassID.SET_STATE_MEM if value & _MEMORY_FLAG else ClassID.SET_STATE_FLASH


def _lookup(table: dict, key: int, what: str):
    try:
        return table[key]
    except KeyError:
        raise CommandError(f"unsupported {what}: {key}") from None


def production_query(kind: int) -> Command:
    """Query software version (kind 1) or product information (kind 2)."""
    item = _lookup(_PRODUCTION_QUERIES, _byte(kind), "production query")
    return build_command(PRODUCTION_INFO, ClassID.QUERY_STATE, bytes([item]))


def baudrate_query() -> Command:
    return build_command(BAUDRATE, ClassID.QUERY_STATE)


def baudrate_setting(value: int) -> Command:
    """Set the baud rate code in the low nibble; bit 7 writes to memory only."""
    _byte(value)
    return build_command(BAUDRATE, _set_id(value), bytes([value & 0x0F]))


def frequency_query() -> Command:
    return build_command(OUTPUT_FREQUENCY, ClassID.QUERY_STATE)


def frequency_setting(value: int) -> Command:
    """Set the output frequency code in the low nibble; bit 7 writes to memory only."""
    _byte(value)
    return build_command(OUTPUT_FREQUENCY, _set_id(value), bytes([value & 0x0F]))


def output_content_query() -> Command:
    return build_command(OUTPUT_CONTENT, ClassID.QUERY_STATE)


def output_content_setting(value: int) -> Command:
    """Select the output content (0 none, 1 attitude set, 2 everything)."""
    _byte(value)
    payload = _lookup(_OUTPUT_CONTENT_SELECTIONS, value & 0x0F, "output content")
    return build_command(OUTPUT_CONTENT, _set_id(value), payload)


def standard_param_query(value: int) -> Command:
    """Query the gyro user bias (1) or the static threshold (2)."""
    item = _lookup(_STANDARD_PARAM_QUERIES, _byte(value), "standard parameter query")
    return build_command(STANDARD_PARAM, ClassID.QUERY_STATE, bytes([item]))


def standard_param_setting(value: int) -> Command:
    """Reset calibration parameters.

    With bit 7 set the gyro user bias is cleared in memory. Otherwise the
    low nibble picks a flash operation: 1 zeroes the attitude angles, 2
    zeroes the heading and 3 clears the gyro user bias.
    """
    _byte(value)
    gyro_bias_zero = b"\x03\x0c" + bytes(12)
    if value & _MEMORY_FLAG:
        return build_command(STANDARD_PARAM, ClassID.SET_STATE_MEM, gyro_bias_zero)
    flash_payloads = {
        1: b"\x11\x04" + bytes(4),
        2: b"\x12\x02" + bytes(2),
        3: gyro_bias_zero,
    }
    payload = _lookup(flash_payloads, value & 0x0F, "standard parameter setting")
    return build_command(STANDARD_PARAM, ClassID.SET_STATE_FLASH, payload)


def mode_query(value: int) -> Command:
    item = _lookup(_MODE_QUERIES, _byte(value), "mode query")
    return build_command(MODE_SETTING, ClassID.QUERY_STATE, bytes([item]))


def mode_setting(value: int) -> Command:
    """Select a working mode (1 to 10) from the low nibble; bit 7 writes to memory only."""
    _byte(value)
    payload = _lookup(_MODE_SETTINGS, value & 0x0F, "mode")
    return build_command(MODE_SETTING, _set_id(value), payload)


def gyro_bias_estimate(command: str) -> Command:
    """Enable, disable or query gyro bias estimation (case insensitive)."""
    name = command.lower()
    try:
        cmd_id, payload = _GYRO_BIAS_COMMANDS[name]
    except KeyError:
        raise CommandError(f"Invalid command: '{name}'") from None
    frame = build_command(MODE_SETTING, cmd_id, payload).frame
    return Command(frame, topic=GYRO_BIAS_TOPIC, name=name)