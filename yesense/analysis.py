"""Decoding of the data blocks carried in Yesense IMU output frames.

An output frame's payload is a sequence of blocks, each made of a one-byte
data id, a one-byte length and ``length`` bytes of little-endian data.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable

HEADER = b"\x59\x53"
MIN_FRAME_LEN = 7  # header(2) + tid(2) + len(1) + ck1(1) + ck2(1)

NOT_MAG_DATA_FACTOR = 0.000001
MAG_RAW_DATA_FACTOR = 0.001
IMU_TEMP_FACTOR = 0.01
HIGH_PRECISION_LON_LAT_FACTOR = 0.0000000001
ALT_DATA_FACTOR = 0.001
SPEED_DATA_FACTOR = 0.001


class DataId(IntEnum):
    """Identifiers of the data blocks in an output payload."""

    IMU_TEMP = 0x01
    SECOND_IMU_TEMP = 0x02
    ACCEL = 0x10
    FREE_ACCEL = 0x11
    SPEED_INCREMENT = 0x12
    SECOND_ACCEL = 0x18
    ANGLE = 0x20
    SECOND_ANGLE = 0x28
    MAGNETIC = 0x30
    RAW_MAGNETIC = 0x31
    EULER = 0x40
    QUATERNION = 0x41
    QUATERNION_INCREMENT = 0x42
    UTC = 0x50
    SAMPLE_TIMESTAMP = 0x51
    DATA_READY_TIMESTAMP = 0x52
    LOCATION = 0x68
    SPEED = 0x70
    STATUS = 0x80
    GNSS_MASTER = 0xC0
    GNSS_SLAVE = 0xF0


class ClassType(IntEnum):
    """Classes of configuration commands."""

    PRODUCT_INFORMATION = 0x00
    UART_BAUDRATE = 0x02
    OUTPUT_FREQUENCY = 0x03
    OUTPUT_CONTENT = 0x04
    CALIBRATION_PARAM_SET = 0x05
    MODE_SETTING = 0x4D
    NMEA0183_OUTPUT_CONTENT = 0x4E


class ClassID(IntEnum):
    """Command ids: query, or set in memory or flash."""

    QUERY_STATE = 0x00
    SET_STATE_MEM = 0x01
    SET_STATE_FLASH = 0x02


class BaudRate(IntEnum):
    BAUD_9600 = 0x01
    BAUD_38400 = 0x02
    BAUD_115200 = 0x03
    BAUD_460800 = 0x04
    BAUD_921600 = 0x05
    BAUD_19200 = 0x06
    BAUD_57600 = 0x07
    BAUD_78600 = 0x08
    BAUD_230400 = 0x09


class Frequency(IntEnum):
    HZ_1 = 0x01
    HZ_2 = 0x02
    HZ_5 = 0x03
    HZ_10 = 0x04
    HZ_20 = 0x05
    HZ_25 = 0x06
    HZ_50 = 0x07
    HZ_100 = 0x08
    HZ_200 = 0x09
    HZ_250 = 0x0A
    HZ_500 = 0x0B
    HZ_1000 = 0x0C


class OutputContent(IntEnum):
    """Bit positions of the output content selection."""

    SPEED = 0x00
    LOCATION = 0x01
    UTC = 0x02
    QUATERNION = 0x03
    EULER = 0x04
    MAGNETIC = 0x05
    ANGULAR_VELOCITY = 0x06
    ACCEL_INCREMENT = 0x07
    VELOCITY_INCREMENT = 0x08
    QUATERNION_INCREMENT = 0x09
    IMU_TEMP = 0x0A
    SECOND_IMU_ANGLE = 0x0B
    SECOND_IMU_ACCEL = 0x0C
    SECOND_IMU_TEMP = 0x0D
    FREE_ACCEL = 0x0E
    TIMESTAMP = 0x0F


@dataclass
class UtcTime:
    year: int = 0
    month: int = 0
    date: int = 0
    hour: int = 0
    minute: int = 0
    second: int = 0
    ms: int = 0


@dataclass
class Location:
    longitude: float = 0.0
    latitude: float = 0.0
    altitude: float = 0.0


@dataclass
class GnssData:
    """Master GNSS receiver data."""

    utc_time: UtcTime = field(default_factory=UtcTime)
    location: Location = field(default_factory=Location)
    location_error: Location = field(default_factory=Location)
    speed: float = 0.0
    yaw: float = 0.0
    status: int = 0
    star_cnt: int = 0
    p_dop: float = 0.0
    site_id: int = 0


@dataclass
class GnssSlaveData:
    """Slave GNSS (dual antenna) data."""

    dual_ant_yaw: float = 0.0
    dual_ant_yaw_error: float = 0.0
    dual_ant_baseline_len: float = 0.0


@dataclass
class ProtocolInfo:
    """Latest decoded values of every data block; units as in the device manual."""

    sample_timestamp: int = 0  # us
    out_sync_timestamp: int = 0  # us
    imu_temp: float = 0.0  # deg C
    second_imu_temp: float = 0.0
    free_accel_x: float = 0.0  # m/s2
    free_accel_y: float = 0.0
    free_accel_z: float = 0.0
    speed_inc_x: float = 0.0  # m/s
    speed_inc_y: float = 0.0
    speed_inc_z: float = 0.0
    second_accel_x: float = 0.0
    second_accel_y: float = 0.0
    second_accel_z: float = 0.0
    second_angle_x: float = 0.0  # deg/s
    second_angle_y: float = 0.0
    second_angle_z: float = 0.0
    quaternion_inc_data0: float = 0.0
    quaternion_inc_data1: float = 0.0
    quaternion_inc_data2: float = 0.0
    quaternion_inc_data3: float = 0.0
    accel_x: float = 0.0  # m/s2
    accel_y: float = 0.0
    accel_z: float = 0.0
    angle_x: float = 0.0  # deg/s
    angle_y: float = 0.0
    angle_z: float = 0.0
    mag_x: float = 0.0  # normalised
    mag_y: float = 0.0
    mag_z: float = 0.0
    raw_mag_x: float = 0.0  # mGauss
    raw_mag_y: float = 0.0
    raw_mag_z: float = 0.0
    pitch: float = 0.0  # deg
    roll: float = 0.0
    yaw: float = 0.0
    quaternion_data0: float = 0.0
    quaternion_data1: float = 0.0
    quaternion_data2: float = 0.0
    quaternion_data3: float = 0.0
    latitude: float = 0.0  # deg
    longitude: float = 0.0  # deg
    altitude: float = 0.0  # m
    vel_n: float = 0.0  # m/s
    vel_e: float = 0.0
    vel_d: float = 0.0
    status: int = 0
    gnss: GnssData = field(default_factory=GnssData)
    gnss_slave: GnssSlaveData = field(default_factory=GnssSlaveData)


def _ints(fmt: str, buf, factor: float, offset: int = 0) -> list[float]:
    return [v * factor for v in struct.unpack_from(fmt, buf, offset)]


def _imu_temp(info: ProtocolInfo, buf) -> None:
    info.imu_temp = struct.unpack_from("<H", buf)[0] * IMU_TEMP_FACTOR


def _second_imu_temp(info: ProtocolInfo, buf) -> None:
    info.second_imu_temp = struct.unpack_from("<H", buf)[0] * IMU_TEMP_FACTOR


def _free_accel(info: ProtocolInfo, buf) -> None:
    info.free_accel_x, info.free_accel_y, info.free_accel_z = _ints(
        "<3i", buf, NOT_MAG_DATA_FACTOR
    )


def _speed_increment(info: ProtocolInfo, buf) -> None:
    info.speed_inc_x, info.speed_inc_y, info.speed_inc_z = _ints(
        "<3i", buf, NOT_MAG_DATA_FACTOR
    )


def _second_accel(info: ProtocolInfo, buf) -> None:
    info.second_accel_x, info.second_accel_y, info.second_accel_z = _ints(
        "<3i", buf, NOT_MAG_DATA_FACTOR
    )


def _second_angle(info: ProtocolInfo, buf) -> None:
    info.second_angle_x, info.second_angle_y, info.second_angle_z = _ints(
        "<3i", buf, NOT_MAG_DATA_FACTOR
    )


def _quaternion_increment(info: ProtocolInfo, buf) -> None:
    (
        info.quaternion_inc_data0,
        info.quaternion_inc_data1,
        info.quaternion_inc_data2,
        info.quaternion_inc_data3,
    ) = _ints("<4i", buf, NOT_MAG_DATA_FACTOR)


def _accel(info: ProtocolInfo, buf) -> None:
    info.accel_x, info.accel_y, info.accel_z = _ints("<3i", buf, NOT_MAG_DATA_FACTOR)


def _angle(info: ProtocolInfo, buf) -> None:
    info.angle_x, info.angle_y, info.angle_z = _ints("<3i", buf, NOT_MAG_DATA_FACTOR)


def _magnetic(info: ProtocolInfo, buf) -> None:
    info.mag_x, info.mag_y, info.mag_z = _ints("<3i", buf, NOT_MAG_DATA_FACTOR)


def _raw_magnetic(info: ProtocolInfo, buf) -> None:
    info.raw_mag_x, info.raw_mag_y, info.raw_mag_z = _ints(
        "<3i", buf, MAG_RAW_DATA_FACTOR
    )


def _euler(info: ProtocolInfo, buf) -> None:
    info.pitch, info.roll, info.yaw = _ints("<3i", buf, NOT_MAG_DATA_FACTOR)


def _quaternion(info: ProtocolInfo, buf) -> None:
    (
        info.quaternion_data0,
        info.quaternion_data1,
        info.quaternion_data2,
        info.quaternion_data3,
    ) = _ints("<4i", buf, NOT_MAG_DATA_FACTOR)


def _location(info: ProtocolInfo, buf) -> None:
    lat, lon, alt = struct.unpack_from("<qqi", buf)
    info.latitude = lat * HIGH_PRECISION_LON_LAT_FACTOR
    info.longitude = lon * HIGH_PRECISION_LON_LAT_FACTOR
    info.altitude = alt * ALT_DATA_FACTOR


def _speed(info: ProtocolInfo, buf) -> None:
    info.vel_n, info.vel_e, info.vel_d = _ints("<3i", buf, SPEED_DATA_FACTOR)


def _status(info: ProtocolInfo, buf) -> None:
    info.status = buf[0]


def _gnss_master(info: ProtocolInfo, buf) -> None:
    gnss = info.gnss
    gnss.utc_time = UtcTime(*struct.unpack_from("<HBBBBBH", buf, 0))
    lat, lon, alt = struct.unpack_from("<qqi", buf, 9)
    gnss.location = Location(
        longitude=lon * HIGH_PRECISION_LON_LAT_FACTOR,
        latitude=lat * HIGH_PRECISION_LON_LAT_FACTOR,
        altitude=alt * ALT_DATA_FACTOR,
    )
    err_lat, err_lon, err_alt = struct.unpack_from("<3h", buf, 29)
    gnss.location_error = Location(
        longitude=err_lon * 0.001, latitude=err_lat * 0.001, altitude=err_alt * 0.001
    )
    speed, yaw = struct.unpack_from("<2h", buf, 35)
    gnss.speed = speed * 0.01
    gnss.yaw = yaw * 0.01
    gnss.status, gnss.star_cnt = struct.unpack_from("<2B", buf, 39)
    p_dop, site_id = struct.unpack_from("<2h", buf, 41)
    gnss.p_dop = p_dop * 0.001
    gnss.site_id = site_id & 0xFF


def _gnss_slave(info: ProtocolInfo, buf) -> None:
    yaw, yaw_error, baseline = struct.unpack_from("<3h", buf)
    info.gnss_slave = GnssSlaveData(
        dual_ant_yaw=yaw * 0.01,
        dual_ant_yaw_error=yaw_error * 0.001,
        dual_ant_baseline_len=baseline * 0.001,
    )


def _sample_timestamp(info: ProtocolInfo, buf) -> None:
    info.sample_timestamp = struct.unpack_from("<I", buf)[0]


def _data_ready_timestamp(info: ProtocolInfo, buf) -> None:
    info.out_sync_timestamp = struct.unpack_from("<I", buf)[0]


_PARSERS: dict[int, tuple[int, Callable[[ProtocolInfo, memoryview], None]]] = {
    DataId.IMU_TEMP: (2, _imu_temp),
    DataId.SECOND_IMU_TEMP: (2, _second_imu_temp),
    DataId.FREE_ACCEL: (12, _free_accel),
    DataId.SPEED_INCREMENT: (12, _speed_increment),
    DataId.SECOND_ACCEL: (12, _second_accel),
    DataId.SECOND_ANGLE: (12, _second_angle),
    DataId.QUATERNION_INCREMENT: (16, _quaternion_increment),
    DataId.ACCEL: (12, _accel),
    DataId.ANGLE: (12, _angle),
    DataId.MAGNETIC: (12, _magnetic),
    DataId.RAW_MAGNETIC: (12, _raw_magnetic),
    DataId.EULER: (12, _euler),
    DataId.QUATERNION: (16, _quaternion),
    DataId.LOCATION: (20, _location),
    DataId.SPEED: (12, _speed),
    DataId.STATUS: (1, _status),
    DataId.GNSS_MASTER: (45, _gnss_master),
    DataId.GNSS_SLAVE: (6, _gnss_slave),
    DataId.SAMPLE_TIMESTAMP: (4, _sample_timestamp),
    DataId.DATA_READY_TIMESTAMP: (4, _data_ready_timestamp),
}


def parse_data_by_id(data_id: int, length: int, data, info: ProtocolInfo) -> bool:
    """Decode one data block into ``info``.

    Returns True when the id is known, ``length`` is the length that id
    requires and ``data`` holds that many bytes; otherwise ``info`` is left
    untouched and False is returned.
    """
    entry = _PARSERS.get(data_id)
    if entry is None:
        return False
    expected, parser = entry
    buf = memoryview(bytes(data))
    if length != expected or len(buf) < expected:
        return False
    parser(info, buf[:expected])
    return True


def parse_payload(payload, info: ProtocolInfo) -> list[DataId]:
    """Decode every block of a frame payload into ``info``.

    A block that cannot be decoded is skipped one byte at a time, as the
    device stream requires. Returns the ids of the blocks decoded, in order.
    """
    view = memoryview(bytes(payload))
    parsed: list[DataId] = []
    pos = 0
    while pos < len(view):
        if pos + 1 < len(view):
            data_id, length = view[pos], view[pos + 1]
            if parse_data_by_id(data_id, length, view[pos + 2 :], info):
                parsed.append(DataId(data_id))
                pos += length + 2
                continue
        pos += 1
    return parsed