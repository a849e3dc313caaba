"""Messages built from decoded IMU data: orientation, pose and full data records."""

from __future__ import annotations

import math
import time
from dataclasses import asdict, dataclass, field

from .analysis import ProtocolInfo

FRAME_ID = "imu_link"
EARTH_RADIUS_M = 6378.137 * 1000


@dataclass(frozen=True)
class Quaternion:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0


def quaternion_from_rpy(roll: float, pitch: float, yaw: float) -> Quaternion:
    """Quaternion of a fixed-axis roll, pitch, yaw rotation given in radians."""
    cr, sr = math.cos(roll / 2), math.sin(roll / 2)
    cp, sp = math.cos(pitch / 2), math.sin(pitch / 2)
    cy, sy = math.cos(yaw / 2), math.sin(yaw / 2)
    return Quaternion(
        x=sr * cp * cy - cr * sp * sy,
        y=cr * sp * cy + sr * cp * sy,
        z=cr * cp * sy - sr * sp * cy,
        w=cr * cp * cy + sr * sp * sy,
    )


def _diagonal(value: float) -> tuple[float, ...]:
    return (value, 0.0, 0.0, 0.0, value, 0.0, 0.0, 0.0, value)


@dataclass
class ImuMessage:
    """Orientation, angular velocity (rad/s) and linear acceleration (m/s2)."""

    orientation: Quaternion
    angular_velocity: tuple[float, float, float]
    linear_acceleration: tuple[float, float, float]
    orientation_covariance: tuple[float, ...] = field(default_factory=lambda: _diagonal(0.0))
    angular_velocity_covariance: tuple[float, ...] = field(
        default_factory=lambda: _diagonal(0.0)
    )
    linear_acceleration_covariance: tuple[float, ...] = field(
        default_factory=lambda: _diagonal(0.0)
    )
    frame_id: str = FRAME_ID
    stamp: float = field(default_factory=time.time)


@dataclass
class Pose:
    position: tuple[float, float, float]
    orientation: Quaternion
    frame_id: str = FRAME_ID
    stamp: float = 0.0


def build_imu_message(
    info: ProtocolInfo,
    linear_acceleration_stddev: float = 0.0,
    angular_velocity_stddev: float = 0.0,
    orientation_stddev: float = 0.0,
) -> ImuMessage:
    """Build an IMU message from the decoded values, converting degrees to radians."""
    return ImuMessage(
        orientation=quaternion_from_rpy(
            math.radians(info.roll), math.radians(info.pitch), math.radians(info.yaw)
        ),
        angular_velocity=(
            math.radians(info.angle_x),
            math.radians(info.angle_y),
            math.radians(info.angle_z),
        ),
        linear_acceleration=(info.accel_x, info.accel_y, info.accel_z),
        orientation_covariance=_diagonal(orientation_stddev),
        angular_velocity_covariance=_diagonal(angular_velocity_stddev),
        linear_acceleration_covariance=_diagonal(linear_acceleration_stddev),
    )


def build_pose(imu: ImuMessage) -> Pose:
    """A pose at the origin carrying the IMU's orientation and timestamp."""
    return Pose(
        position=(0.0, 0.0, 0.0),
        orientation=imu.orientation,
        frame_id=FRAME_ID,
        stamp=imu.stamp,
    )


def all_data(info: ProtocolInfo, gps_sentences=()) -> dict:
    """Every decoded value as a nested record, with the raw NMEA sentences."""
    return {
        "temperature": info.imu_temp,
        "accel": {
            "linear": {"x": info.accel_x, "y": info.accel_y, "z": info.accel_z},
            "angular": {"x": info.angle_x, "y": info.angle_y, "z": info.angle_z},
        },
        "euler_angle": {"roll": info.roll, "pitch": info.pitch, "yaw": info.yaw},
        "quaternion": {
            "q0": info.quaternion_data0,
            "q1": info.quaternion_data1,
            "q2": info.quaternion_data2,
            "q3": info.quaternion_data3,
        },
        "location": {
            "longitude": info.longitude,
            "latitude": info.latitude,
            "altitude": info.altitude,
        },
        "status": {
            "fusion_status": info.status & 0x0F,
            "gnss_status": (info.status >> 4) & 0x0F,
        },
        "gnss": {
            "master": asdict(info.gnss),
            "slave": asdict(info.gnss_slave),
        },
        "gps": {"raw_data": list(gps_sentences)},
    }


@dataclass
class GpsOrigin:
    """Reference location; positions are reported relative to the first fix."""

    longitude: float = 0.0
    latitude: float = 0.0
    altitude: float = 0.0

    def relative_position(self, info: ProtocolInfo) -> tuple[float, float, float]:
        """Distance in metres north, east (unsigned) and up from the origin.

        While any origin coordinate is zero, the current location becomes
        the origin and (0, 0, 0) is returned.
        """
        if self.longitude == 0 or self.latitude == 0 or self.altitude == 0:
            self.longitude = info.longitude
            self.latitude = info.latitude
            self.altitude = info.altitude
            return (0.0, 0.0, 0.0)

        lat1 = math.radians(self.latitude)
        lon1 = math.radians(self.longitude)
        lat2 = math.radians(info.latitude)
        lon2 = math.radians(info.longitude)

        x = 2 * math.asin(abs(math.sin((lat2 - lat1) / 2))) * EARTH_RADIUS_M
        y = (
            2
            * math.asin(math.sqrt(math.cos(lat2) ** 2 * math.sin((lon1 - lon2) / 2) ** 2))
            * EARTH_RADIUS_M
        )
        z = info.altitude - self.altitude
        return (x, y, z)