"""Binds one device byte stream to the frame decoder and a writer."""

from __future__ import annotations

import logging
import threading

from wsnutils.core.errors import DeviceConnectionError
from wsnutils.core.framing import DleStxEtxDecoder, encode
from wsnutils.transports.base import ByteStream
from wsnutils.writers.base import Writer

LOGGER = logging.getLogger(__name__)


class FrameChannel:
    """Reads a device stream on a background thread and writes every frame.

    Frames reach the writer in decode order. A slow writer blocks the reader
    instead of dropping frames.
    """

    def __init__(
        self,
        stream: ByteStream,
        writer: Writer,
        *,
        decoder: DleStxEtxDecoder | None = None,
        read_size: int = 256,
        grace_s: float = 5.0,
        name: str = "frame-channel",
    ) -> None:
        self.stream = stream
        self.writer = writer
        self.decoder = decoder or DleStxEtxDecoder()
        self.read_size = read_size
        self.grace_s = grace_s
        self.frames_received = 0
        self.error: Exception | None = None
        self._stop = threading.Event()
        self._close_lock = threading.Lock()
        self._closed = False
        self._reader = threading.Thread(target=self._read_loop, name=name, daemon=True)

    @classmethod
    def open(cls, stream: ByteStream, writer: Writer, **kwargs) -> FrameChannel:
        if not stream.is_open:
            raise DeviceConnectionError("Device stream is not connected")
        channel = cls(stream, writer, **kwargs)
        channel._reader.start()
        return channel

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, payload: bytes) -> None:
        self.stream.write(encode(payload))

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the reader stops; returns False on timeout."""
        self._reader.join(timeout)
        return not self._reader.is_alive()

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._stop.set()
        if self._reader.is_alive() and self._reader is not threading.current_thread():
            self._reader.join(self.grace_s)
            if self._reader.is_alive():
                LOGGER.warning("Reader did not stop within %ss; unflushed frames may be lost", self.grace_s)
        self.writer.shutdown(self.grace_s)
        try:
            self.stream.close()
        except OSError as exc:
            LOGGER.error("Closing device stream failed: %s", exc)
        LOGGER.info("Channel closed after %d frames", self.frames_received)

    def __enter__(self) -> FrameChannel:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _read_loop(self) -> None:
        try:
            while not self._stop.is_set():
                chunk = self.stream.read(self.read_size)
                if not chunk:
                    continue
                for frame in self.decoder.feed(chunk):
                    if self._stop.is_set() and self.writer.closed:
                        LOGGER.warning("Dropping frame decoded after shutdown")
                        return
                    self.writer.write(frame)
                    self.frames_received += 1
        except Exception as exc:
            if self._stop.is_set():
                LOGGER.debug("Reader stopped: %s", exc)
                return
            self.error = exc
            LOGGER.error("Reading from device failed: %s", exc)
