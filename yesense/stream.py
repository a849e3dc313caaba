"""Decoding of the byte stream read from a Yesense IMU.

The stream carries three kinds of traffic:

* output frames: ``0x59 0x53 | tid (2B) | len (1B) | payload | ck1 | ck2``,
  with the checksum computed from the tid to the last payload byte;
* responses to configuration commands, which share the header but carry a
  class byte and a 3-bit id / 13-bit length field in place of tid and len;
* raw NMEA sentences, starting with ``$`` and ending with a carriage return.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import IntEnum

from .analysis import DataId, ProtocolInfo, parse_payload

logger = logging.getLogger(__name__)

DATA_BUF_SIZE = 1024
_MAX_RESPONSE_MISMATCHES = 10


class _Mode(IntEnum):
    HEADER1 = 0
    HEADER2 = 1
    TID_L = 2
    TID_H = 3
    LENGTH = 4
    MESSAGE = 5
    CHECKSUM_L = 6
    CHECKSUM_H = 7
    GPS_RAW = 10


@dataclass
class DataFrame:
    """A checked output frame and the device state after decoding it."""

    tid: int
    payload: bytes
    parsed: list[DataId]
    info: ProtocolInfo


@dataclass
class CommandResponse:
    """The device's answer to a configuration command."""

    topic: str
    command: str
    data: bytes
    success: bool
    message: str = field(default="")


def _is_graph(byte: int) -> bool:
    return 0x21 <= byte <= 0x7E


def _is_alpha(byte: int) -> bool:
    return 0x41 <= byte <= 0x5A or 0x61 <= byte <= 0x7A


class FrameDecoder:
    """Incremental decoder of the IMU byte stream.

    Bytes are pushed in with :meth:`feed`, which returns the frames and
    command responses completed by them. Values decoded from output frames
    accumulate in :attr:`info`, as the device sends only the blocks it is
    configured to send.
    """

    def __init__(self) -> None:
        self.info = ProtocolInfo()
        self._mode = _Mode.HEADER1
        self._ck1 = 0
        self._ck2 = 0
        self._remaining = 0
        self._message = bytearray()
        self._tid = 0
        self._prev_tid = 0
        self._gps_buf = bytearray()
        self._gps_header_sum = 0
        self._gps_raw: dict[int, str] = {}
        self._wait_response = False
        self._check_response = False
        self._mismatches = 0
        self._length_low = 0
        self._param_class = 0
        self._param_id = 0
        self._topic = ""
        self._command = ""

    def expect_response(
        self, class_id: int, cmd_id: int, topic: str = "", command: str = ""
    ) -> None:
        """Watch for the response to a command of the given class and id."""
        self._wait_response = True
        self._param_class = class_id & 0xFF
        self._param_id = cmd_id & 0x07
        self._topic = topic
        self._command = command

    def feed(self, data) -> list[DataFrame | CommandResponse]:
        """Decode ``data`` and return the frames and responses it completes."""
        events: list[DataFrame | CommandResponse] = []
        for byte in bytes(data):
            event = self._step(byte)
            if event is not None:
                events.append(event)
        return events

    def gps_sentences(self) -> list[str]:
        """The latest NMEA sentence of each kind, ordered by header."""
        return [self._gps_raw[key] for key in sorted(self._gps_raw)]

    def _add_checksum(self, byte: int) -> None:
        self._ck1 = (self._ck1 + byte) & 0xFF
        self._ck2 = (self._ck2 + self._ck1) & 0xFF

    def _reset_frame(self) -> None:
        self._ck1 = 0
        self._ck2 = 0
        self._message.clear()
        self._mode = _Mode.HEADER1
        self._remaining = 0

    def _step(self, byte: int) -> DataFrame | CommandResponse | None:
        mode = self._mode
        if mode == _Mode.MESSAGE:
            self._on_message(byte)
        elif mode == _Mode.HEADER1:
            self._on_header1(byte)
        elif mode == _Mode.GPS_RAW:
            self._on_gps(byte)
        elif mode == _Mode.HEADER2:
            if byte == 0x53:
                self._reset_frame()
                self._mode = _Mode.TID_L
            else:
                self._mode = _Mode.HEADER1
        elif mode == _Mode.TID_L:
            self._on_tid_low(byte)
        elif mode == _Mode.TID_H:
            self._on_tid_high(byte)
        elif mode == _Mode.LENGTH:
            self._on_length(byte)
        elif mode == _Mode.CHECKSUM_L:
            if byte == self._ck1:
                self._mode = _Mode.CHECKSUM_H
            else:
                self._reset_frame()
        elif mode == _Mode.CHECKSUM_H:
            return self._on_checksum_high(byte)
        return None

    def _on_header1(self, byte: int) -> None:
        if byte == 0x59:
            self._mode = _Mode.HEADER2
        elif byte == ord("$"):
            self._mode = _Mode.GPS_RAW
            self._gps_buf = bytearray([byte])
            self._gps_header_sum = 0

    def _on_gps(self, byte: int) -> None:
        if len(self._gps_buf) >= DATA_BUF_SIZE:
            logger.error("GPS sentence longer than %d bytes dropped", DATA_BUF_SIZE)
            self._mode = _Mode.HEADER1
            return
        self._gps_buf.append(byte)
        if not (_is_graph(byte) or byte in (0x0D, 0x0A)):
            self._mode = _Mode.HEADER1
            return
        if len(self._gps_buf) <= 6:
            if _is_alpha(byte):
                self._gps_header_sum += byte
            else:
                self._mode = _Mode.HEADER1
        if byte == 0x0D:
            self._mode = _Mode.HEADER1
            sentence = bytes(self._gps_buf[:-1]).decode("ascii")
            self._gps_raw[self._gps_header_sum] = sentence

    def _on_tid_low(self, byte: int) -> None:
        self._add_checksum(byte)
        self._tid = byte
        if self._wait_response:
            if self._param_class == byte:
                logger.info("Almost param response")
                self._check_response = True
            else:
                logger.info("Not param response")
                self._check_response = False
                self._mismatches += 1
                if self._mismatches > _MAX_RESPONSE_MISMATCHES:
                    self._wait_response = False
                    self._mismatches = 0
        self._mode = _Mode.TID_H

    def _on_tid_high(self, byte: int) -> None:
        self._add_checksum(byte)
        self._tid |= byte << 8
        tid, prev = self._tid, self._prev_tid
        if prev != 0 and tid > prev and prev != tid - 1:
            logger.info("Frame lost: prev_TID: %d, cur_TID: %d", prev, tid)
        self._prev_tid = tid
        if self._check_response and self._wait_response:
            self._length_low = byte
            if self._param_id == byte & 0x07:
                logger.info("Double check param response")
                self._check_response = True
            else:
                logger.info("Double not param response")
                self._check_response = False
        self._mode = _Mode.LENGTH

    def _on_length(self, byte: int) -> None:
        self._add_checksum(byte)
        if self._check_response:
            self._remaining = (self._length_low | byte << 8) >> 3
            logger.info("package length: %d", self._remaining)
        else:
            self._remaining = byte
        if self._remaining == 0:
            self._reset_frame()
            return
        self._mode = _Mode.MESSAGE

    def _on_message(self, byte: int) -> None:
        if len(self._message) >= DATA_BUF_SIZE:
            logger.error("frame longer than %d bytes dropped", DATA_BUF_SIZE)
            self._reset_frame()
            return
        self._add_checksum(byte)
        self._message.append(byte)
        self._remaining -= 1
        if self._remaining == 0:
            self._mode = _Mode.CHECKSUM_L

    def _on_checksum_high(self, byte: int) -> DataFrame | CommandResponse | None:
        message = bytes(self._message)
        event: DataFrame | CommandResponse | None = None
        if self._wait_response and self._check_response:
            logger.info("Response: %s", message.hex(" ").upper())
            if not message:
                success = False
            elif len(message) == 1:
                success = message[0] == 0
            else:
                success = True
            event = CommandResponse(
                topic=self._topic,
                command=self._command,
                data=message,
                success=success,
                message="ok" if success else "fail",
            )
            self._wait_response = False
            self._check_response = False
            self._mismatches = 0
        elif self._ck2 == byte:
            parsed = parse_payload(message, self.info)
            event = DataFrame(
                tid=self._tid,
                payload=message,
                parsed=parsed,
                info=copy.deepcopy(self.info),
            )
        else:
            logger.warning("Error checksum H !, TID: %d", self._tid)
        self._reset_frame()
        return event