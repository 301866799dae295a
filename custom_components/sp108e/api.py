"""API client for the SP108E LED controller."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
import logging
import math
import socket
import time

from .const import (
    ANIMATION_MODE_STATIC,
    CMD_GET_STATUS,
    CMD_SET_ANIMATION_MODE,
    CMD_SET_BRIGHTNESS,
    CMD_SET_CHIP_TYPE,
    CMD_SET_COLOR,
    CMD_SET_COLOR_ORDER,
    CMD_SET_DREAM_MODE,
    CMD_SET_LEDS_PER_SEGMENT,
    CMD_SET_SEGMENTS,
    CMD_SET_SPEED,
    CMD_SET_WHITE_BRIGHTNESS,
    CMD_TOGGLE,
    CONNECT_TIMEOUT,
    DEFAULT_PORT,
    POLL_INTERVAL,
    PRESET_EFFECT_COUNT,
    READ_TIMEOUT,
    RGBW_CHIP_TYPES,
    SEND_BASE_DELAY,
    SEND_MAX_RETRIES,
    STATUS_RESPONSE_LENGTH,
    TOGGLE_RESPONSE_LENGTH,
    WRITE_PACING_DELAY,
)
from .exceptions import (
    ConnectError,
    DeviceIOError,
    ReadTimeout,
    RetriesExhausted,
    Sp108eError,
)
from .protocol import (
    Command,
    DeviceStatus,
    chip_type_index,
    color_order_index,
    decode_status,
    hex_to_parameter,
    int_to_parameter,
)

_LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ConnectionState(Enum):
    """Lifecycle of the TCP connection to the controller."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionManager:
    """Own the single TCP connection to the controller.

    The firmware drops idle or confused connections without notice, so a
    dead stream is torn down and reopened on the next exchange instead of
    being reported to the caller.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
    ) -> None:
        """Initialize the connection manager."""
        self._host = host
        self._port = port
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._state = ConnectionState.DISCONNECTED
        self._closing: asyncio.StreamWriter | None = None

    @property
    def host(self) -> str:
        """Return the host."""
        return self._host

    @property
    def port(self) -> int:
        """Return the port."""
        return self._port

    @property
    def state(self) -> ConnectionState:
        """Return the connection state, dropping a stream the peer closed."""
        if self._state is ConnectionState.CONNECTED and self._stream_lost():
            _LOGGER.debug("Socket to %s:%s closed", self._host, self._port)
            self.force_disconnect()
        return self._state

    @property
    def connected(self) -> bool:
        """Return connection status."""
        return self.state is ConnectionState.CONNECTED

    def _stream_lost(self) -> bool:
        """Return True if the peer closed the stream or it hit an error."""
        if self._reader is None or self._writer is None:
            return True
        return (
            self._writer.is_closing()
            or self._reader.at_eof()
            or self._reader.exception() is not None
        )

    async def ensure_connected(self) -> None:
        """Open the connection unless a live one already exists."""
        if self._state is ConnectionState.CONNECTED:
            if not self._stream_lost():
                return
            _LOGGER.debug("Socket to %s:%s closed", self._host, self._port)

        # Drop whatever is left of a previous socket
        self.force_disconnect()
        self._state = ConnectionState.CONNECTING

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port),
                timeout=self._connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as err:
            self._state = ConnectionState.DISCONNECTED
            raise ConnectError(
                f"Failed to connect to {self._host}:{self._port}: {err!r}"
            ) from err

        sock = writer.get_extra_info("socket")
        if sock is not None:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

        self._reader = reader
        self._writer = writer
        self._state = ConnectionState.CONNECTED
        _LOGGER.debug("Connected to %s:%s", self._host, self._port)

    def force_disconnect(self) -> None:
        """Close the socket, whatever state it is in."""
        writer = self._writer
        self._reader = None
        self._writer = None
        self._state = ConnectionState.DISCONNECTED
        if writer is not None:
            writer.close()
            self._closing = writer
            _LOGGER.debug("Disconnected from %s:%s", self._host, self._port)

    async def disconnect(self) -> None:
        """Close the socket and wait until the transport is released."""
        self.force_disconnect()
        writer = self._closing
        self._closing = None
        if writer is not None:
            try:
                await writer.wait_closed()
            except OSError as err:
                _LOGGER.debug("Error while closing socket: %s", err)

    async def exchange(self, frame: bytes, response_length: int = 0) -> bytes:
        """Write a frame and read a fixed-length response, if one is expected."""
        await self.ensure_connected()
        reader = self._reader
        writer = self._writer

        try:
            writer.write(frame)
            await writer.drain()
        except OSError as err:
            self.force_disconnect()
            raise DeviceIOError(f"Failed to send {frame.hex()}: {err!r}") from err
        _LOGGER.debug("Sent frame %s", frame.hex())

        if response_length <= 0:
            return b""

        try:
            response = await asyncio.wait_for(
                reader.readexactly(response_length),
                timeout=self._read_timeout,
            )
        except asyncio.TimeoutError as err:
            self.force_disconnect()
            raise ReadTimeout(
                f"No response to {frame.hex()} within {self._read_timeout}s"
            ) from err
        except (asyncio.IncompleteReadError, OSError) as err:
            self.force_disconnect()
            raise DeviceIOError(
                f"Failed to read response to {frame.hex()}: {err!r}"
            ) from err

        _LOGGER.debug("Received %s", response.hex())
        return response


@dataclass
class RetryContext:
    """Progress of one logical send through the retry loop."""

    attempt: int = 0
    last_error: Exception | None = None


class RetryPolicy:
    """Retry a send with exponential backoff, reconnecting between attempts."""

    def __init__(
        self,
        connection: ConnectionManager,
        max_retries: int = SEND_MAX_RETRIES,
        base_delay: float = SEND_BASE_DELAY,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the retry policy."""
        self._connection = connection
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def backoff(self, attempt: int) -> float:
        """Return the delay in seconds before retrying after ``attempt``."""
        return self.base_delay * 2**attempt

    async def run(self, attempt: Callable[[], Awaitable[bytes]]) -> bytes:
        """Run ``attempt`` until it succeeds or the retries run out."""
        context = RetryContext()
        while True:
            try:
                return await attempt()
            except Exception as err:
                context.last_error = err
                self._connection.force_disconnect()

            if context.attempt >= self.max_retries:
                break

            delay = self.backoff(context.attempt)
            _LOGGER.debug(
                "Send failed (%s), retrying in %s ms", context.last_error, delay * 1000
            )
            await self._sleep(delay)
            context.attempt += 1

        attempts = context.attempt + 1
        _LOGGER.error(
            "Giving up on %s:%s after %s attempts: %s",
            self._connection.host,
            self._connection.port,
            attempts,
            context.last_error,
        )
        raise RetriesExhausted(attempts, context.last_error) from context.last_error


class RequestSerializer:
    """Run submitted work one unit at a time, in submission order.

    The protocol has no request ids, so two exchanges on the wire at once
    would corrupt each other's framing.
    """

    def __init__(self) -> None:
        """Initialize the serializer."""
        self._queue: asyncio.Queue[
            tuple[Callable[[], Awaitable[bytes]], asyncio.Future[bytes]]
        ] = asyncio.Queue()
        self._worker: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        """Return the number of queued units not yet started."""
        return self._queue.qsize()

    async def submit(self, work: Callable[[], Awaitable[bytes]]) -> bytes:
        """Queue ``work`` and wait for its result."""
        future: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((work, future))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
        return await future

    async def _run(self) -> None:
        """Drain the queue with a single consumer."""
        while True:
            work, future = await self._queue.get()
            try:
                if future.done():
                    continue
                try:
                    result = await work()
                except asyncio.CancelledError:
                    if not future.done():
                        future.set_exception(Sp108eError("Client closed"))
                    raise
                except Exception as err:
                    if not future.done():
                        future.set_exception(err)
                    else:
                        _LOGGER.debug("Queued send failed after caller left: %s", err)
                else:
                    if not future.done():
                        future.set_result(result)
            finally:
                self._queue.task_done()

    async def close(self) -> None:
        """Stop the worker and fail anything still waiting in the queue."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            if not future.done():
                future.set_exception(Sp108eError("Client closed"))
            self._queue.task_done()


class Sp108eApi:
    """API client for communicating with an SP108E controller."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        chip_type: str | None = None,
        *,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the API client."""
        self._chip_type = chip_type
        self._connection = ConnectionManager(host, port, connect_timeout, read_timeout)
        self._serializer = RequestSerializer()
        self._retry = RetryPolicy(self._connection, sleep=sleep)
        self._sleep = sleep
        self._status: DeviceStatus | None = None
        self._last_update: float | None = None
        self._available = False
        self._refresh_lock = asyncio.Lock()
        self._state_callbacks: list[Callable[[], None]] = []

    def register_state_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback to be called when state changes."""
        if callback not in self._state_callbacks:
            self._state_callbacks.append(callback)

    def unregister_state_callback(self, callback: Callable[[], None]) -> None:
        """Unregister a state callback."""
        if callback in self._state_callbacks:
            self._state_callbacks.remove(callback)

    def _notify_state_change(self) -> None:
        """Notify all registered callbacks of a state change."""
        for callback in self._state_callbacks:
            try:
                callback()
            except Exception as err:
                _LOGGER.debug("Error in state callback: %s", err)

    @property
    def host(self) -> str:
        """Return the host."""
        return self._connection.host

    @property
    def port(self) -> int:
        """Return the port."""
        return self._connection.port

    @property
    def connection(self) -> ConnectionManager:
        """Return the connection manager."""
        return self._connection

    @property
    def chip_type(self) -> str | None:
        """Return the configured chip type."""
        return self._chip_type

    @property
    def is_rgbw(self) -> bool:
        """Return True if the configured chip drives a white channel."""
        return self._chip_type in RGBW_CHIP_TYPES

    @property
    def status(self) -> DeviceStatus | None:
        """Return the most recently read status."""
        return self._status

    @property
    def available(self) -> bool:
        """Return True if the last status refresh succeeded."""
        return self._available

    async def _send(self, command: Command) -> bytes:
        """Queue a command and return its raw response."""
        frame = command.frame

        async def attempt() -> bytes:
            response = await self._connection.exchange(frame, command.response_length)
            if not command.response_length:
                # Give the firmware time to apply write-only commands
                await self._sleep(WRITE_PACING_DELAY)
            return response

        response = await self._serializer.submit(lambda: self._retry.run(attempt))
        if command.opcode != CMD_GET_STATUS:
            self._last_update = None
        return response

    async def set_chip_type(self, chip_type: str) -> None:
        """Set the LED chip type by name."""
        index = chip_type_index(chip_type)
        await self._send(Command(CMD_SET_CHIP_TYPE, int_to_parameter(index)))

    async def set_color_order(self, color_order: str) -> None:
        """Set the color order (RGB, GRB, ...) by name."""
        index = color_order_index(color_order)
        await self._send(Command(CMD_SET_COLOR_ORDER, int_to_parameter(index)))

    async def set_segments(self, segments: int) -> None:
        """Set the number of segments."""
        await self._send(Command(CMD_SET_SEGMENTS, int_to_parameter(segments)))

    async def set_leds_per_segment(self, leds_per_segment: int) -> None:
        """Set the number of LEDs in each segment."""
        await self._send(
            Command(CMD_SET_LEDS_PER_SEGMENT, int_to_parameter(leds_per_segment))
        )

    async def toggle_on_off(self) -> bytes:
        """Toggle the LEDs on or off."""
        return await self._send(
            Command(CMD_TOGGLE, response_length=TOGGLE_RESPONSE_LENGTH)
        )

    async def turn_on(self) -> None:
        """Turn the LEDs on if they are off."""
        status = await self.get_status()
        if not status.on:
            await self.toggle_on_off()

    async def turn_off(self) -> None:
        """Turn the LEDs off if they are on."""
        status = await self.get_status()
        if status.on:
            await self.toggle_on_off()

    async def get_status(self) -> DeviceStatus:
        """Read and decode the controller status."""
        response = await self._send(
            Command(CMD_GET_STATUS, response_length=STATUS_RESPONSE_LENGTH)
        )
        status = decode_status(response)

        changed = status != self._status or not self._available
        self._status = status
        self._last_update = time.monotonic()
        self._available = True
        if changed:
            self._notify_state_change()
        return status

    async def async_update_status(
        self, max_age: float = POLL_INTERVAL
    ) -> DeviceStatus | None:
        """Refresh the status if the cached one is older than ``max_age``.

        Failures mark the client unavailable instead of raising, so pollers
        can call this on a timer.
        """
        async with self._refresh_lock:
            if (
                self._last_update is not None
                and time.monotonic() - self._last_update <= max_age
            ):
                return self._status
            try:
                return await self.get_status()
            except Sp108eError as err:
                _LOGGER.debug("Failed to update status from %s: %s", self.host, err)
                if self._available:
                    self._available = False
                    self._notify_state_change()
                return None

    async def set_brightness(self, brightness: int) -> None:
        """Set the brightness of the LEDs (0-255)."""
        await self._send(Command(CMD_SET_BRIGHTNESS, int_to_parameter(brightness)))

    async def set_brightness_percentage(self, percentage: float) -> None:
        """Set the brightness as a percentage."""
        await self.set_brightness(_percentage_to_byte(percentage))

    async def set_white_brightness(self, brightness: int) -> None:
        """Set the brightness of the white channel (1-255)."""
        brightness = max(1, brightness)
        await self._send(
            Command(CMD_SET_WHITE_BRIGHTNESS, int_to_parameter(brightness))
        )

    async def set_white_brightness_percentage(self, percentage: float) -> None:
        """Set the white channel brightness as a percentage."""
        await self.set_white_brightness(_percentage_to_byte(percentage))

    async def set_color(self, hex_color: str) -> None:
        """Set a static color, e.g. ``"ffaabb"``.

        The controller ignores colors while an animation runs, so it is put
        into static mode first.
        """
        parameter = hex_to_parameter(hex_color)
        status = await self.get_status()
        if not status.is_static:
            await self.set_animation_mode(ANIMATION_MODE_STATIC)
        await self._send(Command(CMD_SET_COLOR, parameter))

    async def set_animation_mode(self, animation_mode: int) -> None:
        """Set one of the built-in animation modes."""
        await self._send(
            Command(CMD_SET_ANIMATION_MODE, int_to_parameter(animation_mode))
        )

    async def set_preset_mode(self, preset_mode: int) -> None:
        """Set a preset (dream) effect, 0-179."""
        preset_mode = min(max(preset_mode, 0), PRESET_EFFECT_COUNT - 1)
        _LOGGER.debug("Set preset mode -> %s", preset_mode)
        await self._send(Command(CMD_SET_DREAM_MODE, int_to_parameter(preset_mode)))

    async def set_animation_speed(self, speed: int) -> None:
        """Set the animation speed (0-255)."""
        await self._send(Command(CMD_SET_SPEED, int_to_parameter(speed)))

    async def set_animation_speed_percentage(self, percentage: float) -> None:
        """Set the animation speed as a percentage."""
        await self.set_animation_speed(_percentage_to_byte(percentage))

    async def async_apply_configuration(
        self,
        chip_type: str,
        color_order: str,
        segments: int,
        leds_per_segment: int,
    ) -> None:
        """Push strip settings that differ from what the controller reports."""
        chip_index = chip_type_index(chip_type)
        order_index = color_order_index(color_order)
        status = await self.get_status()

        if status.ic_type != chip_index:
            _LOGGER.info("Setting chip type -> %s", chip_type)
            await self.set_chip_type(chip_type)
        if status.color_order != order_index:
            _LOGGER.info("Setting color order -> %s", color_order)
            await self.set_color_order(color_order)
        if status.number_of_segments != segments:
            _LOGGER.info("Setting segments -> %s", segments)
            await self.set_segments(segments)
        if status.leds_per_segment != leds_per_segment:
            _LOGGER.info("Setting LEDs per segment -> %s", leds_per_segment)
            await self.set_leds_per_segment(leds_per_segment)

    async def test_connection(self) -> bool:
        """Test if the controller answers a status query."""
        try:
            await self.get_status()
            return True
        except Sp108eError as err:
            _LOGGER.debug("Connection test to %s failed: %s", self.host, err)
            return False
        finally:
            await self.close()

    async def close(self) -> None:
        """Stop queued work and close the connection."""
        await self._serializer.close()
        await self._connection.disconnect()
        self._available = False


def _percentage_to_byte(percentage: float) -> int:
    """Convert 0-100 to 0-255, rounding up."""
    return math.ceil(percentage / 100 * 255)
