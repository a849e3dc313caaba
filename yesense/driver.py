"""Serial driver for Yesense IMUs: port discovery, command sending and stream polling."""

from __future__ import annotations

import argparse
import json
import logging
import os
import time
from dataclasses import asdict

import serial
from serial.tools import list_ports

from .commands import Command, gyro_bias_estimate
from .messages import ImuMessage, Pose, all_data, build_imu_message, build_pose
from .stream import CommandResponse, DataFrame, FrameDecoder

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUDRATE = 460800
YESENSE_VID = 0x5953
YESENSE_PID = 0x5543
_OPEN_RETRY_SECONDS = 5
_POLL_INTERVAL_SECONDS = 0.001


class DriverError(RuntimeError):
    """Raised when the device cannot be found or written to."""


def list_serial_ports(full_prefix: str) -> list[str]:
    """Paths in the prefix's directory whose names start with the prefix's last part, sorted."""
    cut = full_prefix.rfind("/") + 1
    base_path, prefix = full_prefix[:cut], full_prefix[cut:]
    try:
        entries = os.listdir(base_path or ".")
    except OSError:
        logger.error("Could not open the directory %s", base_path)
        return []
    return sorted(base_path + name for name in entries if name.startswith(prefix))


def is_yesense_port(port: str) -> bool:
    """Whether ``port`` is a USB serial device with the Yesense vendor and product ids."""
    for info in list_ports.comports():
        if info.device == port:
            return info.vid == YESENSE_VID and info.pid == YESENSE_PID
    return False


def find_imu_port(full_prefix: str = DEFAULT_PORT) -> str:
    """The first port matching ``full_prefix`` that belongs to a Yesense IMU."""
    for port in list_serial_ports(full_prefix):
        if is_yesense_port(port):
            return port
    raise DriverError(
        "Cannot find the IMU serial port number, "
        "please check if the USB connection is normal"
    )


class YesenseDriver:
    """Reads and decodes the IMU stream from an open serial connection.

    ``connection`` needs ``read``, ``write``, ``in_waiting`` and ``close``,
    as a pyserial ``Serial`` has. After each checked output frame the
    latest IMU message, pose, full data record and pose path are kept on
    the driver.
    """

    def __init__(
        self,
        connection,
        linear_acceleration_stddev: float = 0.0,
        angular_velocity_stddev: float = 0.0,
        orientation_stddev: float = 0.0,
    ) -> None:
        self.connection = connection
        self.linear_acceleration_stddev = linear_acceleration_stddev
        self.angular_velocity_stddev = angular_velocity_stddev
        self.orientation_stddev = orientation_stddev
        self.decoder = FrameDecoder()
        self.imu: ImuMessage | None = None
        self.pose: Pose | None = None
        self.data: dict | None = None
        self.path: list[Pose] = []

    @property
    def is_open(self) -> bool:
        return bool(getattr(self.connection, "is_open", True))

    def send(self, command: Command) -> None:
        """Write a command frame and watch the stream for its response."""
        if not self.is_open:
            raise DriverError("serial port is not opened !")
        frame = bytes(command)
        logger.debug("Write data to yesense: %s", frame.hex(" ").upper())
        written = self.connection.write(frame)
        if written != len(frame):
            raise DriverError("serial write failed !, req_size != writed_size !")
        self.decoder.expect_response(
            command.class_id, command.cmd_id, command.topic, command.name
        )

    def poll(self) -> list[DataFrame | CommandResponse]:
        """Read what the device has sent and return the frames and responses it completes."""
        waiting = self.connection.in_waiting
        if not waiting:
            return []
        events = self.decoder.feed(self.connection.read(waiting))
        for event in events:
            if isinstance(event, DataFrame):
                self._publish(event)
        return events

    def _publish(self, frame: DataFrame) -> None:
        self.imu = build_imu_message(
            frame.info,
            self.linear_acceleration_stddev,
            self.angular_velocity_stddev,
            self.orientation_stddev,
        )
        self.pose = build_pose(self.imu)
        self.path.append(self.pose)
        self.data = all_data(frame.info, self.decoder.gps_sentences())

    def close(self) -> None:
        logger.info("Close yesense device.")
        if self.is_open:
            self.connection.close()

    def __enter__(self) -> YesenseDriver:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_driver(port: str = DEFAULT_PORT, baudrate: int = DEFAULT_BAUDRATE) -> YesenseDriver:
    """Find the IMU among ports matching ``port`` and open it, retrying until it opens."""
    while True:
        device = find_imu_port(port)
        logger.info("IMU serial port:%s, rate:%d", device, baudrate)
        try:
            connection = serial.Serial(device, baudrate, timeout=1)
        except serial.SerialException:
            logger.info(
                "Unable to open serial port: %s ,Trying again in %d seconds.",
                device,
                _OPEN_RETRY_SECONDS,
            )
            time.sleep(_OPEN_RETRY_SECONDS)
            continue
        logger.info("Serial port: %s initialized and opened.", device)
        return YesenseDriver(connection)


def _response_record(response: CommandResponse) -> dict:
    record = asdict(response)
    record["data"] = response.data.hex(" ").upper()
    return record


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="yesense", description="Read a Yesense IMU and print its data as JSON lines."
    )
    parser.add_argument("--port", default=DEFAULT_PORT, help="serial port path prefix")
    parser.add_argument("--baudrate", type=int, default=DEFAULT_BAUDRATE)
    parser.add_argument("--linear-acceleration-stddev", type=float, default=0.0)
    parser.add_argument("--angular-velocity-stddev", type=float, default=0.0)
    parser.add_argument("--orientation-stddev", type=float, default=0.0)
    parser.add_argument(
        "--gyro-bias", choices=("enable", "disable", "query"), help="gyro bias estimation"
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        driver = open_driver(args.port, args.baudrate)
    except DriverError as err:
        logger.error("%s", err)
        return 1

    driver.linear_acceleration_stddev = args.linear_acceleration_stddev
    driver.angular_velocity_stddev = args.angular_velocity_stddev
    driver.orientation_stddev = args.orientation_stddev

    with driver:
        try:
            if args.gyro_bias:
                driver.send(gyro_bias_estimate(args.gyro_bias))
            while True:
                events = driver.poll()
                for event in events:
                    if isinstance(event, CommandResponse):
                        print(json.dumps(_response_record(event)), flush=True)
                    else:
                        print(json.dumps(driver.data), flush=True)
                if not events:
                    time.sleep(_POLL_INTERVAL_SECONDS)
        except KeyboardInterrupt:
            return 0
        except DriverError as err:
            logger.error("%s", err)
            return 1