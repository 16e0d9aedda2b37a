"""
キャプチャフロー
Capture flow for the analysis page.

Architecture Note:
    The camera itself lives in the browser. The page asks for permission
    with getUserMedia, shows a live <video> preview, draws the current
    frame to a <canvas> and posts it as a base64 JPEG data URL. The server
    keeps the matching state here so that analysis is only enabled once
    exactly one image is held.

    idle -> permission_requested -> live_preview -> captured
         -> (retake -> live_preview | confirmed)
"""
from typing import Optional

IDLE = "idle"
PERMISSION_REQUESTED = "permission_requested"
LIVE_PREVIEW = "live_preview"
CAPTURED = "captured"
CONFIRMED = "confirmed"

STATES = (IDLE, PERMISSION_REQUESTED, LIVE_PREVIEW, CAPTURED, CONFIRMED)
METHODS = ("camera", "upload")

PERMISSION_DENIED_MESSAGE = "Could not access camera. Please check permissions."


class InvalidTransition(Exception):
    """Raised when an action does not apply to the current state."""

    def __init__(self, action: str, state: str):
        super().__init__(f"Cannot {action} while {state.replace('_', ' ')}")
        self.action = action
        self.state = state


class CaptureFlow:
    """Camera / upload state for one browser session."""

    def __init__(self, state: str = IDLE, method: Optional[str] = None,
                 image=None, error: Optional[str] = None):
        if state not in STATES:
            state = IDLE
        self.state = state
        self.method = method if method in METHODS else None
        self.image = image
        self.error = error

    def _require(self, action: str, *states: str):
        if self.state not in states:
            raise InvalidTransition(action, self.state)

    def select_method(self, method: str):
        if method not in METHODS:
            raise ValueError(f"Unknown capture method: {method}")
        self.method = method
        self.image = None
        self.error = None
        self.state = PERMISSION_REQUESTED if method == "camera" else IDLE

    def permission_result(self, granted: bool, reason: Optional[str] = None):
        self._require("handle camera permission", PERMISSION_REQUESTED)
        if granted:
            self.state = LIVE_PREVIEW
            self.error = None
            return
        # no retry: back to method selection
        self.state = IDLE
        self.method = None
        self.image = None
        self.error = PERMISSION_DENIED_MESSAGE
        if reason:
            self.error = f"{PERMISSION_DENIED_MESSAGE} ({reason})"

    def capture(self, image):
        self._require("capture a photo", LIVE_PREVIEW)
        self.image = image
        self.error = None
        self.state = CAPTURED

    def accept_upload(self, image):
        if self.method != "upload":
            raise InvalidTransition("upload a photo", self.state)
        self._require("upload a photo", IDLE, CAPTURED)
        self.image = image
        self.error = None
        self.state = CAPTURED

    def retake(self):
        if self.method != "camera":
            raise InvalidTransition("retake", self.state)
        self._require("retake", CAPTURED)
        self.image = None
        self.state = LIVE_PREVIEW

    def cancel(self):
        self.state = IDLE
        self.method = None
        self.image = None
        self.error = None

    def confirm(self):
        self._require("confirm", CAPTURED)
        if self.image is None:
            raise InvalidTransition("confirm without an image", self.state)
        self.state = CONFIRMED

    def reopen(self, error: Optional[str] = None):
        """Return a confirmed image to `captured` after a failed analysis."""
        self._require("reopen", CONFIRMED)
        self.state = CAPTURED
        self.error = error

    @property
    def can_analyze(self) -> bool:
        return self.state in (CAPTURED, CONFIRMED) and self.image is not None

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "method": self.method,
            "has_image": self.image is not None,
            "can_analyze": self.can_analyze,
            "error": self.error,
        }

    def __repr__(self):
        return f"CaptureFlow(state='{self.state}', method={self.method!r})"
