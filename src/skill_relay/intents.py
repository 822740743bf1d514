"""Voice intent -> backend command translation.

Pure mapping from an assistant intent (name + slot values) to the
command payload the camera backend understands and the sentence the
assistant should speak back. No I/O happens here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

OPEN_CAMERA = "OpenCameraIntent"
CLOSE_CAMERA = "CloseCameraIntent"
SHOW_ALL_CAMERAS = "ShowAllCamerasIntent"
HELP = "AMAZON.HelpIntent"
CANCEL = "AMAZON.CancelIntent"
STOP = "AMAZON.StopIntent"

CAMERA_INTENTS = frozenset({OPEN_CAMERA, CLOSE_CAMERA, SHOW_ALL_CAMERAS})
KNOWN_SLOTS = ("CameraNumber", "FirstCamera", "SecondCamera", "AllCameras")

HELP_SPEECH = (
    "You can say things like, display camera 1, display cameras 1 and 2, "
    "or hide all cameras. How can I help?"
)
GOODBYE_SPEECH = "Goodbye!"

# verb used for each camera intent's confirmation
_VERBS = {OPEN_CAMERA: "Displaying", CLOSE_CAMERA: "Hiding"}


@dataclass(frozen=True)
class Translation:
    """Result of translating one intent."""

    command: dict[str, Any] = field(default_factory=dict)
    speech: str = ""
    forwardable: bool = False
    end_session: bool = False


def extract_slots(slots: Mapping[str, Any]) -> dict[str, str]:
    """Keep only the known camera slots that carry a value."""
    result: dict[str, str] = {}
    for name in KNOWN_SLOTS:
        value = slots.get(name)
        if value is None or value == "":
            continue
        result[name] = str(value)
    return result


def _camera_speech(intent_name: str, slots: Mapping[str, str]) -> str:
    verb = _VERBS.get(intent_name)
    if verb is None:
        return "Displaying all cameras."
    if slots.get("CameraNumber"):
        return f"{verb} camera {slots['CameraNumber']}."
    if slots.get("FirstCamera") and slots.get("SecondCamera"):
        return f"{verb} cameras {slots['FirstCamera']} and {slots['SecondCamera']}."
    return f"{verb} all cameras."


def translate(intent_name: str, slots: Mapping[str, Any] | None = None) -> Translation:
    """Map an intent to (command, speech, forwardable, end_session).

    Args:
        intent_name: Assistant intent name, e.g. ``"OpenCameraIntent"``.
        slots: Flat ``{slot_name: value}`` mapping. Unknown names are ignored.
    """
    slots = slots or {}

    if intent_name in CAMERA_INTENTS:
        known = extract_slots(slots)
        return Translation(
            command={"intent": intent_name, "slots": known},
            speech=_camera_speech(intent_name, known),
            forwardable=True,
        )

    command = {"intent": intent_name, "slots": {}}
    if intent_name == HELP:
        return Translation(command=command, speech=HELP_SPEECH)
    if intent_name in (CANCEL, STOP):
        return Translation(command=command, speech=GOODBYE_SPEECH, end_session=True)
    return Translation(command=command)
