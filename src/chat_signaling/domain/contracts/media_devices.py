"""Local media contracts (protocols)."""

from typing import Protocol


class MediaStreamProtocol(Protocol):
    """A captured local audio/video stream."""

    @property
    def has_video(self) -> bool:
        """True if the stream carries a video track."""
        ...

    def stop(self) -> None:
        """Stop every track of the stream."""
        ...


class MediaDevicesProtocol(Protocol):
    """Access to local capture devices."""

    async def get_user_media(self, *, audio: bool, video: bool) -> MediaStreamProtocol:
        """Capture a stream with the requested tracks.

        Raises:
            MediaAcquisitionError: If the devices cannot be opened.
        """
        ...
