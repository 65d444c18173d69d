"""
Audio sample primitive.

Pure data container only.
No behavior, no recording, no upload logic.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioSample:
    """
    Handle to one recorded clip, produced by a single capture cycle.

    path:
        Filesystem location of the encoded clip. Ownership passes from
        the capture adapter to the agent loop on stop; the loop releases
        it (via the capture adapter) before the cycle ends.

    mime_type:
        Content type sent with the upload (e.g. "audio/wav").

    filename:
        Name reported in the multipart upload.

    duration_ms:
        Recorded length. Used for observability only.
    """
    path: str
    mime_type: str
    filename: str
    duration_ms: int = 0
