"""
Microphone capture via sounddevice.

Records PCM16 mono from the default input device into memory while open,
and on stop() encodes the frames as a WAV file in the temp directory.

The PortAudio callback runs on its own thread; it only appends to the
frame buffer under a lock.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import threading
import time
from typing import Any

import numpy as np
import sounddevice as sd
import soundfile as sf

from adapters.capture.base import AudioCaptureAdapter, CaptureFailure
from audio.sample import AudioSample
from constants import (
    CAPTURE_CHANNELS,
    CAPTURE_FILENAME,
    CAPTURE_MIME,
    CAPTURE_SAMPLE_RATE_HZ,
)
from observability.logger import log_event


_DTYPE = "int16"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class SoundDeviceCapture(AudioCaptureAdapter):
    """Default-microphone recorder producing temporary WAV samples."""

    def __init__(
        self,
        *,
        sample_rate_hz: int = CAPTURE_SAMPLE_RATE_HZ,
        channels: int = CAPTURE_CHANNELS,
        device: int | str | None = None,
    ) -> None:
        self._sample_rate_hz = sample_rate_hz
        self._channels = channels
        self._device = device

        self._stream: sd.InputStream | None = None
        self._frames: list[np.ndarray] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # AudioCaptureAdapter
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._stream is not None:
            raise CaptureFailure("capture already open")

        with self._lock:
            self._frames = []

        try:
            stream = sd.InputStream(
                samplerate=self._sample_rate_hz,
                channels=self._channels,
                dtype=_DTYPE,
                device=self._device,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise CaptureFailure(f"microphone unavailable: {e}") from e

        self._stream = stream

    async def stop(self) -> AudioSample | None:
        if self._stream is None:
            return None

        self._close_stream()

        with self._lock:
            frames = self._frames
            self._frames = []

        if not frames:
            return None

        audio = np.concatenate(frames, axis=0)
        duration_ms = int(len(audio) * 1000 / self._sample_rate_hz)

        # Encoding touches the filesystem; keep it off the event loop
        path = await asyncio.to_thread(self._write_wav, audio)

        return AudioSample(
            path=path,
            mime_type=CAPTURE_MIME,
            filename=CAPTURE_FILENAME,
            duration_ms=duration_ms,
        )

    async def discard(self) -> None:
        if self._stream is not None:
            self._close_stream()
        with self._lock:
            self._frames = []

    def release(self, sample: AudioSample) -> None:
        try:
            os.remove(sample.path)
        except FileNotFoundError:
            return

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _callback(self, indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
        if status:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CAPTURE_STREAM_STATUS",
                "status": str(status),
            })
        with self._lock:
            self._frames.append(indata.copy())

    def _close_stream(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            raise CaptureFailure(f"failed to close microphone: {e}") from e

    def _write_wav(self, audio: np.ndarray) -> str:
        fd, path = tempfile.mkstemp(prefix="agent_sample_", suffix=".wav")
        os.close(fd)
        try:
            sf.write(path, audio, self._sample_rate_hz, subtype="PCM_16", format="WAV")
        except RuntimeError as e:
            os.remove(path)
            raise CaptureFailure(f"failed to encode sample: {e}") from e
        return path
