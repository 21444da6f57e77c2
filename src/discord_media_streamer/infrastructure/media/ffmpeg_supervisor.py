"""
FFmpeg Transcode Supervisor

Spawns one ffmpeg per pipeline, drains its stderr on a daemon thread, and
kills it with SIGKILL when the pipeline is replaced. Processes killed here are
flagged so their exit is never reported as a failure.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import threading
from collections.abc import Callable
from typing import IO, Any

from discord_media_streamer.application.interfaces.transcoder import (
    ProcessHandle,
    PublishStream,
    Transcoder,
)
from discord_media_streamer.config.settings import StreamSettings
from discord_media_streamer.domain.playback.entities import PlayableSource, TranscodeOptions
from discord_media_streamer.domain.playback.value_objects import PublishMode
from discord_media_streamer.domain.shared.constants import StreamDefaults
from discord_media_streamer.domain.shared.exceptions import ProcessSpawnError
from discord_media_streamer.domain.shared.messages import LogTemplates

logger = logging.getLogger(__name__)

RECONNECT_OPTIONS = ("-reconnect", "1", "-reconnect_streamed", "1", "-reconnect_delay_max", "5")


def _input_args(url: str, headers: dict[str, str], start_offset_ms: int) -> list[str]:
    args = list(RECONNECT_OPTIONS)
    if start_offset_ms > 0:
        args += ["-ss", f"{start_offset_ms / 1000:.3f}"]
    # Read at native rate so the clock and the output stay in step.
    args.append("-re")
    if headers:
        args += ["-headers", "".join(f"{k}: {v}\r\n" for k, v in sorted(headers.items()))]
    args += ["-i", url]
    return args


def _video_filter(options: TranscodeOptions) -> str:
    w, h = options.target_width, options.target_height
    return (
        f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,"
        f"fps={options.frame_rate}"
    )


def build_ffmpeg_args(
    source: PlayableSource, options: TranscodeOptions, ffmpeg_path: str = "ffmpeg"
) -> list[str]:
    """Build the full ffmpeg command line. Same inputs always give the same list."""
    args = [ffmpeg_path, "-hide_banner", "-nostdin", "-loglevel", "warning"]
    args += _input_args(source.url, source.headers, options.start_offset_ms)

    audio_input = 0
    if source.audio_url:
        args += _input_args(source.audio_url, source.headers, options.start_offset_ms)
        audio_input = 1

    audio_filter = ["-af", f"volume={options.gain:g}"] if options.volume_percent != 100 else []

    if options.mode is PublishMode.AUDIO:
        args += ["-map", f"{audio_input}:a:0", "-vn"]
        args += audio_filter
        args += [
            "-f", "s16le",
            "-ar", str(StreamDefaults.SAMPLE_RATE),
            "-ac", str(StreamDefaults.CHANNELS),
            "pipe:1",
        ]
        return args

    bitrate = options.video_bitrate_kbps
    args += ["-map", "0:v:0", "-map", f"{audio_input}:a:0?"]
    args += [
        "-vf", _video_filter(options),
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-tune", "zerolatency",
        "-pix_fmt", "yuv420p",
        "-b:v", f"{bitrate}k",
        "-maxrate", f"{int(bitrate * StreamDefaults.MAXRATE_FACTOR)}k",
        "-bufsize", f"{bitrate * StreamDefaults.BUFSIZE_FACTOR}k",
        "-g", str(options.frame_rate * 2),
        "-r", str(options.frame_rate),
    ]
    args += audio_filter
    args += [
        "-c:a", "libopus",
        "-b:a", f"{options.audio_bitrate_kbps}k",
        "-ar", str(StreamDefaults.SAMPLE_RATE),
        "-ac", str(StreamDefaults.CHANNELS),
        "-f", "mpegts",
        "pipe:1",
    ]
    return args


class FFmpegSupervisor(Transcoder):
    """Launches and reaps ffmpeg processes."""

    def __init__(
        self,
        settings: StreamSettings | None = None,
        *,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        self._settings = settings or StreamSettings()
        self._popen = popen
        self._handles: set[ProcessHandle] = set()

    @property
    def active_count(self) -> int:
        return len(self._handles)

    async def spawn(self, source: PlayableSource, options: TranscodeOptions) -> ProcessHandle:
        args = build_ffmpeg_args(source, options, self._settings.ffmpeg_path)
        try:
            process = self._popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            logger.error(LogTemplates.FFMPEG_SPAWN_FAILED, exc)
            raise ProcessSpawnError(self._settings.ffmpeg_path, str(exc)) from exc

        handle = ProcessHandle(process=process, stdout=PublishStream(process.stdout), options=options)
        self._handles.add(handle)
        if process.stderr is not None:
            threading.Thread(
                target=self._drain_stderr,
                args=(handle, process.stderr),
                name=f"ffmpeg-stderr-{process.pid}",
                daemon=True,
            ).start()

        logger.info(
            LogTemplates.FFMPEG_SPAWNED,
            process.pid,
            options.mode.value,
            options.start_offset_ms,
            options.volume_percent,
        )
        return handle

    def _drain_stderr(self, handle: ProcessHandle, stream: IO[bytes]) -> None:
        try:
            for raw in iter(stream.readline, b""):
                if handle.killed_by_us:
                    continue
                text = raw.decode(errors="replace").rstrip()
                if not text:
                    continue
                handle.stderr_tail.append(text)
                lowered = text.lower()
                is_fatal = "error" in lowered or "fatal" in lowered
                logger.log(
                    logging.WARNING if is_fatal else logging.DEBUG,
                    LogTemplates.FFMPEG_STDERR,
                    handle.pid,
                    text,
                )
        except (OSError, ValueError) as exc:
            logger.debug("ffmpeg stderr reader for pid=%s stopped: %s", handle.pid, exc)
        finally:
            stream.close()

    async def kill(self, handle: ProcessHandle) -> None:
        handle.killed_by_us = True
        if handle.is_running:
            try:
                handle.process.kill()
            except (ProcessLookupError, OSError) as exc:
                logger.debug("ffmpeg pid=%s already gone: %s", handle.pid, exc)
            else:
                logger.info(LogTemplates.FFMPEG_KILLED, handle.pid)

        code = await self.wait(handle, StreamDefaults.REAP_TIMEOUT_SECONDS)
        if code is None:
            logger.warning(
                LogTemplates.FFMPEG_REAP_TIMEOUT, handle.pid, StreamDefaults.REAP_TIMEOUT_SECONDS
            )
        self._handles.discard(handle)

        try:
            handle.stdout.close()
        except (OSError, ValueError) as exc:
            logger.debug("Closing ffmpeg stdout for pid=%s failed: %s", handle.pid, exc)

    async def wait(self, handle: ProcessHandle, timeout: float | None = None) -> int | None:
        try:
            return await asyncio.to_thread(handle.process.wait, timeout)
        except subprocess.TimeoutExpired:
            return None

    async def kill_all(self) -> int:
        handles = list(self._handles)
        if handles:
            logger.info(LogTemplates.FFMPEG_KILL_ALL, len(handles))
        for handle in handles:
            await self.kill(handle)
        return len(handles)
