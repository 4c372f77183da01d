"""Local media acquisition with the video-to-audio fallback policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chat_signaling.domain.errors import MediaAcquisitionError, MediaFailureKind
from chat_signaling.domain.models import CallType, VideoDowngraded

if TYPE_CHECKING:
    from chat_signaling.domain.contracts.media_devices import (
        MediaDevicesProtocol,
        MediaStreamProtocol,
    )

logger = logging.getLogger(__name__)

_FALLBACK_KINDS = frozenset({MediaFailureKind.DEVICE_BUSY, MediaFailureKind.NO_DEVICE})


@dataclass(frozen=True)
class AcquiredMedia:
    """A captured stream and the call type it actually supports."""

    stream: MediaStreamProtocol
    call_type: CallType
    notice: VideoDowngraded | None = None


class MediaAcquirer:
    """Acquires local media for a call.

    A video request that fails because the camera is busy or missing is retried
    audio-only; the result then carries a ``VideoDowngraded`` notice instead of
    an error. Permission failures are never retried.
    """

    def __init__(self, devices: MediaDevicesProtocol) -> None:
        self.devices = devices

    async def acquire(self, call_type: CallType) -> AcquiredMedia:
        """Capture media for ``call_type``.

        Raises:
            MediaAcquisitionError: If no usable stream could be captured. For a
                video request that fell back, the original video failure kind
                is reported when the audio retry also fails.
        """
        try:
            stream = await self.devices.get_user_media(audio=True, video=call_type.wants_video)
        except MediaAcquisitionError as e:
            logger.warning(f"Media acquisition for {call_type} call failed: {e.kind}")
            if call_type is not CallType.VIDEO or e.kind not in _FALLBACK_KINDS:
                raise
            return await self._fallback_to_audio(e)

        return AcquiredMedia(stream=stream, call_type=call_type)

    async def _fallback_to_audio(self, video_error: MediaAcquisitionError) -> AcquiredMedia:
        try:
            stream = await self.devices.get_user_media(audio=True, video=False)
        except MediaAcquisitionError as audio_error:
            logger.error(f"Audio fallback also failed: {audio_error.kind}")
            raise video_error from audio_error

        logger.info(f"Video unavailable ({video_error.kind}), continuing audio-only")
        return AcquiredMedia(
            stream=stream,
            call_type=CallType.AUDIO,
            notice=VideoDowngraded(reason=video_error.kind.value),
        )
