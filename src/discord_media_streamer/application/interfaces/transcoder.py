"""Port interface for the transcode process supervisor."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from discord_media_streamer.domain.playback.entities import PlayableSource, TranscodeOptions
from discord_media_streamer.domain.playback.value_objects import ExitKind
from discord_media_streamer.domain.shared.constants import StreamDefaults


class PublishStream:
    """Read-only wrapper around a transcoder's stdout.

    Fires a one-shot callback the first time a non-empty chunk is read, which
    is the earliest point at which output has really reached the transport.
    The callback runs on whichever thread performs the read.
    """

    def __init__(self, raw: BinaryIO) -> None:
        self._raw = raw
        self._lock = threading.Lock()
        self._started = False
        self._on_first_byte: Callable[[], None] | None = None

    @property
    def has_started(self) -> bool:
        return self._started

    def set_first_byte_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._started:
                self._on_first_byte = callback
                return
        callback()

    def read(self, size: int = -1) -> bytes:
        data = self._raw.read(size)
        if data and not self._started:
            with self._lock:
                fire = not self._started
                self._started = True
                callback = self._on_first_byte
            if fire and callback is not None:
                callback()
        return data

    @property
    def closed(self) -> bool:
        return bool(getattr(self._raw, "closed", False))

    def close(self) -> None:
        self._raw.close()


@dataclass(eq=False)
class ProcessHandle:
    """A running (or finished) transcoder.

    ``process`` is a :class:`subprocess.Popen` or anything exposing
    ``pid``, ``poll()``, ``kill()`` and ``wait(timeout)``.
    """

    process: Any
    stdout: PublishStream
    options: TranscodeOptions
    stderr_tail: deque[str] = field(
        default_factory=lambda: deque(maxlen=StreamDefaults.STDERR_TAIL_LINES)
    )
    killed_by_us: bool = False

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)

    @property
    def returncode(self) -> int | None:
        return self.process.poll()

    @property
    def is_running(self) -> bool:
        return self.returncode is None

    @property
    def exit_kind(self) -> ExitKind:
        code = self.returncode
        if code is None:
            return ExitKind.RUNNING
        if self.killed_by_us:
            return ExitKind.KILLED
        if code == 0:
            return ExitKind.CLEAN
        return ExitKind.ABNORMAL

    def on_first_byte(self, callback: Callable[[], None]) -> None:
        self.stdout.set_first_byte_callback(callback)


class Transcoder(ABC):
    """Spawns and supervises transcoder processes."""

    @abstractmethod
    async def spawn(self, source: PlayableSource, options: TranscodeOptions) -> ProcessHandle:
        """Launch a transcoder reading ``source``.

        Raises:
            ProcessSpawnError: The executable could not be launched.
        """
        ...

    @abstractmethod
    async def kill(self, handle: ProcessHandle) -> None:
        """Forcefully terminate ``handle`` and wait for it to be reaped.

        Safe to call on a handle that already exited.
        """
        ...

    @abstractmethod
    async def wait(self, handle: ProcessHandle, timeout: float | None = None) -> int | None:
        """Wait for exit without blocking the loop; None if still running at ``timeout``."""
        ...

    def classify_exit(self, handle: ProcessHandle) -> ExitKind:
        return handle.exit_kind

    async def kill_all(self) -> int:
        """Kill every process this supervisor still tracks."""
        return 0
