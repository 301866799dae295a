"""Pytest configuration for the SP108E integration tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
import pytest_asyncio

from custom_components.sp108e.api import Sp108eApi
from custom_components.sp108e.const import (
    ANIMATION_MODE_STATIC,
    CMD_GET_STATUS,
    CMD_SET_ANIMATION_MODE,
    CMD_SET_BRIGHTNESS,
    CMD_SET_CHIP_TYPE,
    CMD_SET_COLOR,
    CMD_SET_COLOR_ORDER,
    CMD_SET_LEDS_PER_SEGMENT,
    CMD_SET_SEGMENTS,
    CMD_SET_SPEED,
    CMD_SET_WHITE_BRIGHTNESS,
    CMD_TOGGLE,
    FRAME_LENGTH,
)


def status_payload(
    *,
    on: bool = True,
    mode: int = ANIMATION_MODE_STATIC,
    speed: int = 128,
    brightness: int = 255,
    color_order: int = 2,
    leds_per_segment: int = 60,
    segments: int = 1,
    color: str = "ff0000",
    ic_type: int = 3,
    recorded_patterns: int = 0,
    white_brightness: int = 1,
) -> bytes:
    """Build a 17-byte status response with the given fields."""
    return (
        bytes([0x38, 0x01 if on else 0x00, mode, speed, brightness, color_order])
        + leds_per_segment.to_bytes(2, "big")
        + segments.to_bytes(2, "big")
        + bytes.fromhex(color)
        + bytes([ic_type, recorded_patterns, white_brightness, 0x83])
    )


class FakeDevice:
    """TCP server speaking enough of the SP108E protocol for the client."""

    def __init__(self) -> None:
        """Start with a powered strip showing static red."""
        self.state: dict[str, Any] = {
            "on": True,
            "mode": ANIMATION_MODE_STATIC,
            "speed": 128,
            "brightness": 255,
            "color_order": 2,
            "leds_per_segment": 60,
            "segments": 1,
            "color": "ff0000",
            "ic_type": 3,
            "recorded_patterns": 0,
            "white_brightness": 1,
        }
        self.frames: list[bytes] = []
        self.connections = 0
        self.silent_opcodes: set[int] = set()
        self.close_after_frames: int | None = None
        self.port = 0
        self._server: asyncio.Server | None = None
        self._writers: list[asyncio.StreamWriter] = []

    @property
    def opcodes(self) -> list[int]:
        """Return the opcode of every received frame."""
        return [frame[4] for frame in self.frames]

    async def start(self) -> None:
        """Listen on a free local port."""
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        """Stop listening."""
        if self._server is not None:
            self._server.close()
            for writer in self._writers:
                writer.close()
            await self._server.wait_closed()

    async def wait_for_frames(self, count: int, timeout: float = 2) -> None:
        """Wait until ``count`` frames were received."""

        async def _wait() -> None:
            while len(self.frames) < count:
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_wait(), timeout)

    def _status(self) -> bytes:
        state = self.state
        return status_payload(
            on=state["on"],
            mode=state["mode"],
            speed=state["speed"],
            brightness=state["brightness"],
            color_order=state["color_order"],
            leds_per_segment=state["leds_per_segment"],
            segments=state["segments"],
            color=state["color"],
            ic_type=state["ic_type"],
            recorded_patterns=state["recorded_patterns"],
            white_brightness=state["white_brightness"],
        )

    def _apply(self, opcode: int, parameter: bytes) -> bytes | None:
        """Update state for a frame and return the response, if any."""
        value = parameter[0]
        if opcode == CMD_GET_STATUS:
            return self._status()
        if opcode == CMD_TOGGLE:
            self.state["on"] = not self.state["on"]
            return self._status()
        if opcode == CMD_SET_BRIGHTNESS:
            self.state["brightness"] = value
        elif opcode == CMD_SET_WHITE_BRIGHTNESS:
            self.state["white_brightness"] = value
        elif opcode == CMD_SET_SPEED:
            self.state["speed"] = value
        elif opcode == CMD_SET_ANIMATION_MODE:
            self.state["mode"] = value
        elif opcode == CMD_SET_COLOR:
            self.state["color"] = parameter.hex()
        elif opcode == CMD_SET_CHIP_TYPE:
            self.state["ic_type"] = value
        elif opcode == CMD_SET_COLOR_ORDER:
            self.state["color_order"] = value
        elif opcode == CMD_SET_SEGMENTS:
            self.state["segments"] = value
        elif opcode == CMD_SET_LEDS_PER_SEGMENT:
            self.state["leds_per_segment"] = value
        return None

    async def _handle(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self.connections += 1
        self._writers.append(writer)
        handled = 0
        try:
            while True:
                try:
                    frame = await reader.readexactly(FRAME_LENGTH)
                except (asyncio.IncompleteReadError, ConnectionError):
                    break
                self.frames.append(frame)
                handled += 1
                opcode = frame[4]
                response = self._apply(opcode, frame[1:4])
                if response is not None and opcode not in self.silent_opcodes:
                    writer.write(response)
                    await writer.drain()
                if self.close_after_frames is not None and handled >= self.close_after_frames:
                    break
        finally:
            writer.close()


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays without waiting."""

    def __init__(self) -> None:
        """Initialise an empty record."""
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        """Record ``delay`` and yield to the loop once."""
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest_asyncio.fixture
async def device() -> AsyncIterator[FakeDevice]:
    """Provide a running fake controller."""
    fake = FakeDevice()
    await fake.start()
    yield fake
    await fake.stop()


@pytest.fixture
def sleep() -> SleepRecorder:
    """Provide a recording sleep."""
    return SleepRecorder()


@pytest.fixture
def make_status() -> Callable[..., bytes]:
    """Provide the status payload builder."""
    return status_payload


@pytest_asyncio.fixture
async def client(device: FakeDevice, sleep: SleepRecorder) -> AsyncIterator[Sp108eApi]:
    """Provide a client connected to the fake controller."""
    api = Sp108eApi("127.0.0.1", device.port, "WS2811", read_timeout=1, sleep=sleep)
    yield api
    await api.close()
