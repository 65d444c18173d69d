"""
Audio capture adapter contract.

This module defines the *interface only*: no timing policy, no upload,
no orchestration decisions live here.

Key invariants:
- The agent loop owns WHEN recording starts and stops; the adapter owns HOW.
- At most one recording is open per adapter. A second start() while one is
  open MUST raise CaptureFailure rather than reopen the device.
- stop() hands ownership of the produced sample to the caller, who returns
  it through release() once it is no longer needed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from audio.sample import AudioSample


class CaptureFailure(RuntimeError):
    """Microphone unavailable, device error, or a double open."""


class AudioCaptureAdapter(ABC):
    """
    Abstract interface for a start/stop microphone recorder.

    Non-responsibilities:
    - No sampling window (the loop's timer decides when to stop)
    - No retries
    - No knowledge of agent state or mode
    """

    @abstractmethod
    async def start(self) -> None:
        """
        Open the microphone and begin recording.

        Raises:
            CaptureFailure: device unavailable or a recording is already open.
        """
        raise NotImplementedError

    @abstractmethod
    async def stop(self) -> AudioSample | None:
        """
        Stop recording and return the clip.

        Returns None when nothing usable was recorded (no open recording,
        or zero frames). Raises CaptureFailure on device or encoding error.
        """
        raise NotImplementedError

    @abstractmethod
    async def discard(self) -> None:
        """Close the microphone without producing a sample. Idempotent."""
        raise NotImplementedError

    @abstractmethod
    def release(self, sample: AudioSample) -> None:
        """Delete the sample's backing file. Idempotent."""
        raise NotImplementedError
