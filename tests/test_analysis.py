import struct

import pytest

from yesense.analysis import (
    DataId,
    ProtocolInfo,
    parse_data_by_id,
    parse_payload,
)


def _block(data_id, body):
    return bytes([data_id, len(body)]) + body


def _gnss_master_body(year=2024, month=5, date=17, hour=8, minute=30, second=12,
                      ms=250, lat=0, lon=0, alt=0, errs=(0, 0, 0), speed=0,
                      yaw=0, status=0, star_cnt=0, p_dop=0, site_id=0):
    body = struct.pack("<HBBBBBH", year, month, date, hour, minute, second, ms)
    body += struct.pack("<qqi", lat, lon, alt)
    body += struct.pack("<3h", *errs)
    body += struct.pack("<2h", speed, yaw)
    body += struct.pack("<2B", status, star_cnt)
    body += struct.pack("<2h", p_dop, site_id)
    return body


def test_imu_temperature_is_scaled():
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.IMU_TEMP, 2, struct.pack("<H", 2500), info) is True
    assert info.imu_temp == pytest.approx(25.0)


def test_second_imu_temperature_matches_first_for_same_raw():
    info = ProtocolInfo()
    raw = struct.pack("<H", 3172)
    assert parse_data_by_id(DataId.IMU_TEMP, 2, raw, info)
    assert parse_data_by_id(DataId.SECOND_IMU_TEMP, 2, raw, info)
    assert info.second_imu_temp == pytest.approx(info.imu_temp)


def test_accel_is_signed_and_scaled():
    info = ProtocolInfo()
    body = struct.pack("<3i", 1_000_000, -1_000_000, 0)
    assert parse_data_by_id(DataId.ACCEL, 12, body, info)
    assert info.accel_x == pytest.approx(1.0)
    assert info.accel_y == pytest.approx(-info.accel_x)
    assert info.accel_z == 0.0


@pytest.mark.parametrize(
    "data_id, names",
    [
        (DataId.ANGLE, ("angle_x", "angle_y", "angle_z")),
        (DataId.FREE_ACCEL, ("free_accel_x", "free_accel_y", "free_accel_z")),
        (DataId.SPEED_INCREMENT, ("speed_inc_x", "speed_inc_y", "speed_inc_z")),
        (DataId.SECOND_ACCEL, ("second_accel_x", "second_accel_y", "second_accel_z")),
        (DataId.SECOND_ANGLE, ("second_angle_x", "second_angle_y", "second_angle_z")),
        (DataId.MAGNETIC, ("mag_x", "mag_y", "mag_z")),
        (DataId.EULER, ("pitch", "roll", "yaw")),
    ],
)
def test_three_axis_blocks_share_accel_scaling(data_id, names):
    body = struct.pack("<3i", 123456, -7654321, 42)
    reference = ProtocolInfo()
    assert parse_data_by_id(DataId.ACCEL, 12, body, reference)
    info = ProtocolInfo()
    assert parse_data_by_id(data_id, 12, body, info)
    values = [getattr(info, name) for name in names]
    assert values == pytest.approx([reference.accel_x, reference.accel_y, reference.accel_z])


def test_raw_magnetic_uses_milli_factor():
    body = struct.pack("<3i", 2_000_000, -500_000, 12_345)
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.MAGNETIC, 12, body, info)
    assert parse_data_by_id(DataId.RAW_MAGNETIC, 12, body, info)
    assert info.raw_mag_x == pytest.approx(info.mag_x * 1000)
    assert info.raw_mag_y == pytest.approx(info.mag_y * 1000)
    assert info.raw_mag_z == pytest.approx(info.mag_z * 1000)


def test_quaternion_components_in_order():
    body = struct.pack("<4i", 1, 2, 3, 4)
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.QUATERNION, 16, body, info)
    values = [info.quaternion_data0, info.quaternion_data1,
              info.quaternion_data2, info.quaternion_data3]
    assert values == sorted(values)
    assert info.quaternion_data1 == pytest.approx(2 * info.quaternion_data0)


def test_quaternion_increment_matches_quaternion():
    body = struct.pack("<4i", 700000, -300000, 100000, 5)
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.QUATERNION, 16, body, info)
    assert parse_data_by_id(DataId.QUATERNION_INCREMENT, 16, body, info)
    assert [info.quaternion_inc_data0, info.quaternion_inc_data1,
            info.quaternion_inc_data2, info.quaternion_inc_data3] == pytest.approx(
        [info.quaternion_data0, info.quaternion_data1,
         info.quaternion_data2, info.quaternion_data3])


def test_location_high_precision():
    body = struct.pack("<qqi", 31 * 10**10, 121 * 10**10, -5000)
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.LOCATION, 20, body, info)
    assert info.latitude == pytest.approx(31.0)
    assert info.longitude == pytest.approx(121.0)
    assert info.altitude < 0


def test_speed_block_matches_raw_magnetic_factor():
    body = struct.pack("<3i", 1500, -250, 9)
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.SPEED, 12, body, info)
    assert parse_data_by_id(DataId.RAW_MAGNETIC, 12, body, info)
    assert [info.vel_n, info.vel_e, info.vel_d] == pytest.approx(
        [info.raw_mag_x, info.raw_mag_y, info.raw_mag_z])


def test_status_byte_is_stored():
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.STATUS, 1, bytes([0x37]), info)
    assert info.status == 0x37


def test_timestamps_are_unsigned():
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.SAMPLE_TIMESTAMP, 4, struct.pack("<I", 4_000_000_000), info)
    assert parse_data_by_id(DataId.DATA_READY_TIMESTAMP, 4, struct.pack("<I", 123456), info)
    assert info.sample_timestamp == 4_000_000_000
    assert info.out_sync_timestamp == 123456


def test_wrong_length_is_rejected_and_info_unchanged():
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.ACCEL, 11, bytes(12), info) is False
    assert info == ProtocolInfo()


@pytest.mark.parametrize("data_id", [0x00, 0x99, DataId.UTC])
def test_unhandled_ids_are_rejected(data_id):
    info = ProtocolInfo()
    assert parse_data_by_id(data_id, 11, bytes(11), info) is False
    assert info == ProtocolInfo()


def test_truncated_data_is_rejected():
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.ACCEL, 12, bytes(8), info) is False
    assert info == ProtocolInfo()


def test_gnss_master_block():
    body = _gnss_master_body(lat=40 * 10**10, lon=-3 * 10**10, alt=1000,
                             errs=(10, -20, 30), speed=100, yaw=-100,
                             status=4, star_cnt=17, p_dop=1200, site_id=7)
    assert len(body) == 45
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.GNSS_MASTER, 45, body, info)
    gnss = info.gnss
    assert (gnss.utc_time.year, gnss.utc_time.month, gnss.utc_time.date) == (2024, 5, 17)
    assert (gnss.utc_time.hour, gnss.utc_time.minute, gnss.utc_time.second) == (8, 30, 12)
    assert gnss.utc_time.ms == 250
    assert gnss.location.latitude == pytest.approx(40.0)
    assert gnss.location.longitude < 0
    assert gnss.location_error.longitude == pytest.approx(-2 * gnss.location_error.latitude)
    assert gnss.yaw == pytest.approx(-gnss.speed)
    assert gnss.status == 4
    assert gnss.star_cnt == 17
    assert gnss.site_id == 7


def test_gnss_master_wrong_length():
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.GNSS_MASTER, 44, _gnss_master_body(), info) is False
    assert info == ProtocolInfo()


def test_gnss_slave_block():
    body = struct.pack("<3h", 1000, 1000, -1000)
    info = ProtocolInfo()
    assert parse_data_by_id(DataId.GNSS_SLAVE, 6, body, info)
    slave = info.gnss_slave
    assert slave.dual_ant_yaw == pytest.approx(10 * slave.dual_ant_yaw_error)
    assert slave.dual_ant_baseline_len == pytest.approx(-slave.dual_ant_yaw_error)


def test_parse_payload_multiple_blocks():
    payload = (
        _block(DataId.IMU_TEMP, struct.pack("<H", 2500))
        + _block(DataId.ACCEL, struct.pack("<3i", 1, 2, 3))
        + _block(DataId.STATUS, bytes([0x21]))
    )
    info = ProtocolInfo()
    assert parse_payload(payload, info) == [DataId.IMU_TEMP, DataId.ACCEL, DataId.STATUS]
    assert info.status == 0x21


def test_parse_payload_skips_undecodable_bytes():
    payload = b"\xaa\xbb" + _block(DataId.STATUS, bytes([9]))
    info = ProtocolInfo()
    assert parse_payload(payload, info) == [DataId.STATUS]
    assert info.status == 9


def test_parse_payload_bad_length_block_skipped():
    payload = bytes([DataId.ACCEL, 5]) + bytes(5) + _block(DataId.STATUS, bytes([3]))
    info = ProtocolInfo()
    assert parse_payload(payload, info) == [DataId.STATUS]
    assert info.accel_x == 0.0


def test_parse_payload_empty_and_trailing_byte():
    info = ProtocolInfo()
    assert parse_payload(b"", info) == []
    assert parse_payload(bytes([DataId.STATUS]), info) == []
    assert info == ProtocolInfo()