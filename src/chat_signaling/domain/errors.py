"""Error taxonomy for call signaling.

Media and precondition errors are raised to the local caller. Signaling
races (``StaleSignalError``) are raised by coordinator handlers and absorbed
by the client router. ``CallTimeout`` is reported to the listener only.
"""

from enum import StrEnum


class ChatSignalingError(Exception):
    """Base class for all signaling errors."""


class SelfCallError(ChatSignalingError):
    """The call target is the caller."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} cannot call themselves")
        self.user_id = user_id


class NotAMemberError(ChatSignalingError):
    """The local user is not a member of the group."""

    def __init__(self, user_id: str, group_id: str) -> None:
        super().__init__(f"User {user_id} is not a member of group {group_id}")
        self.user_id = user_id
        self.group_id = group_id


class InvalidCallStateError(ChatSignalingError):
    """An operation is not legal in the current call state."""


class MediaFailureKind(StrEnum):
    """Why local media could not be acquired."""

    PERMISSION_DENIED = "permission_denied"
    DEVICE_BUSY = "device_busy"
    NO_DEVICE = "no_device"

    @classmethod
    def from_dom_error(cls, name: str) -> "MediaFailureKind":
        """Map a browser ``getUserMedia`` error name onto a failure kind."""
        if name in ("NotAllowedError", "SecurityError", "PermissionDeniedError"):
            return cls.PERMISSION_DENIED
        if name in ("NotReadableError", "TrackStartError", "AbortError"):
            return cls.DEVICE_BUSY
        return cls.NO_DEVICE


_MEDIA_MESSAGES = {
    MediaFailureKind.PERMISSION_DENIED: (
        "Camera/microphone access denied. Please check permissions in your "
        "browser settings and refresh the page."
    ),
    MediaFailureKind.DEVICE_BUSY: (
        "Camera is already in use by another application. Please close other "
        "apps using the camera and try again."
    ),
    MediaFailureKind.NO_DEVICE: "No camera or microphone found.",
}


class MediaAcquisitionError(ChatSignalingError):
    """Local media could not be acquired."""

    def __init__(self, kind: MediaFailureKind, detail: str | None = None) -> None:
        super().__init__(detail or _MEDIA_MESSAGES[kind])
        self.kind = kind

    @property
    def retryable(self) -> bool:
        """Only a busy device can be fixed by the user without a reload."""
        return self.kind is MediaFailureKind.DEVICE_BUSY


class StaleSignalError(ChatSignalingError):
    """A signal references a session or peer that no longer exists locally."""


class CallTimeout(ChatSignalingError):
    """The callee did not answer in time."""

    def __init__(self, target_id: str, timeout_seconds: float) -> None:
        super().__init__(f"Call to {target_id} not answered within {timeout_seconds:g} seconds")
        self.target_id = target_id
        self.timeout_seconds = timeout_seconds
