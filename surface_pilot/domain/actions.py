"""Action vocabulary for both remote-surface families.

Pydantic models are generated per (family, logical resolution) so that the
runtime validator and the structured-output JSON schema handed to the
decision service come from the same definitions and cannot drift.
"""

from __future__ import annotations

import json
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, TypeAdapter, create_model
from pydantic import ValidationError as PydanticValidationError

from surface_pilot.core.errors import ValidationError

MAX_WAIT_MS = 10000

DEFAULT_HOLD_MS = 800
DEFAULT_SWIPE_MS = 200
DEFAULT_DRAG_MS = 500


class ActionFamily(str, Enum):
    """Which input vocabulary a surface speaks."""

    POINTER = "pointer"
    TOUCH = "touch"


class MouseButton(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    MIDDLE = "middle"


class ScrollDirection(str, Enum):
    UP = "up"
    DOWN = "down"


POINTER_TAGS = ("move", "down", "up", "press", "release", "type", "scroll", "wait")
TOUCH_TAGS = ("tap", "hold", "swipe", "drag", "wait")


class ActionBase(BaseModel):
    """Common base for every generated action model."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    action: str

    def __str__(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True), ensure_ascii=False)


class ResponseBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


def _coord(limit: int, axis: str, alias: Optional[str] = None, role: str = "") -> Any:
    edge = "left edge" if axis == "x" else "top edge"
    far = "right edge" if axis == "x" else "bottom edge"
    prefix = f"{role} " if role else ""
    return Annotated[
        StrictInt,
        Field(
            ge=0,
            le=limit,
            alias=alias,
            description=f"{prefix}{axis} coordinate from 0 ({edge}) to {limit} ({far}).",
        ),
    ]


def _duration(description: str) -> Any:
    return Annotated[StrictInt, Field(ge=0, le=MAX_WAIT_MS, description=description)]


WAIT_DESCRIPTION = "Pause for the given number of milliseconds (0-10000)."


@lru_cache(maxsize=None)
def _pointer_models(width: int, height: int) -> tuple[type[ActionBase], ...]:
    button = Annotated[
        MouseButton,
        Field(description="Mouse button; 'left' when omitted."),
    ]
    key = Annotated[
        str,
        Field(
            min_length=1,
            description=(
                "Key name (ctrl, alt, shift, win, enter, tab, escape, backspace, delete, "
                "space, arrows, home, end, pageup, pagedown, f1-f12) or a single character."
            ),
        ),
    ]
    move = create_model(
        "MoveAction",
        __base__=ActionBase,
        __doc__="Move the pointer to absolute (x, y). Does not click.",
        action=(Literal["move"], ...),
        x=(_coord(width, "x"), ...),
        y=(_coord(height, "y"), ...),
    )
    down = create_model(
        "DownAction",
        __base__=ActionBase,
        __doc__="Press and hold a mouse button until a matching 'up'.",
        action=(Literal["down"], ...),
        button=(button, MouseButton.LEFT),
    )
    up = create_model(
        "UpAction",
        __base__=ActionBase,
        __doc__="Release a mouse button pressed with 'down'.",
        action=(Literal["up"], ...),
        button=(button, MouseButton.LEFT),
    )
    press = create_model(
        "PressAction",
        __base__=ActionBase,
        __doc__="Press and hold a key until a matching 'release'.",
        action=(Literal["press"], ...),
        key=(key, ...),
    )
    release = create_model(
        "ReleaseAction",
        __base__=ActionBase,
        __doc__="Release a key pressed with 'press'. Release in reverse order.",
        action=(Literal["release"], ...),
        key=(key, ...),
    )
    type_ = create_model(
        "TypeAction",
        __base__=ActionBase,
        __doc__="Type text character by character into the focused element.",
        action=(Literal["type"], ...),
        text=(Annotated[str, Field(min_length=1, description="Text to type.")], ...),
    )
    scroll = create_model(
        "ScrollAction",
        __base__=ActionBase,
        __doc__="Scroll the wheel at the current pointer position.",
        action=(Literal["scroll"], ...),
        direction=(ScrollDirection, ...),
    )
    wait = create_model(
        "WaitAction",
        __base__=ActionBase,
        __doc__=WAIT_DESCRIPTION,
        action=(Literal["wait"], ...),
        ms=(_duration("Milliseconds to wait."), ...),
    )
    return (move, down, up, press, release, type_, scroll, wait)


@lru_cache(maxsize=None)
def _touch_models(width: int, height: int) -> tuple[type[ActionBase], ...]:
    pressed = Annotated[
        StrictBool,
        Field(description="true puts the finger down, false lifts it."),
    ]
    tap = create_model(
        "TapAction",
        __base__=ActionBase,
        __doc__=(
            "Touch down (pressed=true) or lift (pressed=false) at (x, y). Lifting at a "
            "different point than the press drags the finger there first."
        ),
        action=(Literal["tap"], ...),
        x=(_coord(width, "x"), ...),
        y=(_coord(height, "y"), ...),
        pressed=(pressed, ...),
    )
    hold = create_model(
        "HoldAction",
        __base__=ActionBase,
        __doc__="Long press: touch down and keep holding, or release after settling.",
        action=(Literal["hold"], ...),
        x=(_coord(width, "x"), ...),
        y=(_coord(height, "y"), ...),
        pressed=(pressed, ...),
        ms=(_duration("Hold or travel time in milliseconds."), DEFAULT_HOLD_MS),
    )
    swipe = create_model(
        "SwipeAction",
        __base__=ActionBase,
        __doc__="Fast fling from start to end (scrolling, paging).",
        action=(Literal["swipe"], ...),
        start_x=(_coord(width, "x", alias="startX", role="Start"), ...),
        start_y=(_coord(height, "y", alias="startY", role="Start"), ...),
        end_x=(_coord(width, "x", alias="endX", role="End"), ...),
        end_y=(_coord(height, "y", alias="endY", role="End"), ...),
        ms=(_duration("Swipe duration in milliseconds."), DEFAULT_SWIPE_MS),
    )
    drag = create_model(
        "DragAction",
        __base__=ActionBase,
        __doc__="Long-press at start, then move to end and lift (moving items).",
        action=(Literal["drag"], ...),
        start_x=(_coord(width, "x", alias="startX", role="Start"), ...),
        start_y=(_coord(height, "y", alias="startY", role="Start"), ...),
        end_x=(_coord(width, "x", alias="endX", role="End"), ...),
        end_y=(_coord(height, "y", alias="endY", role="End"), ...),
        ms=(_duration("Drag travel time in milliseconds."), DEFAULT_DRAG_MS),
    )
    wait = create_model(
        "WaitAction",
        __base__=ActionBase,
        __doc__=WAIT_DESCRIPTION,
        action=(Literal["wait"], ...),
        ms=(_duration("Milliseconds to wait."), ...),
    )
    return (tap, hold, swipe, drag, wait)


class ActionVocabulary:
    """Validator, serializer and schema source for one action family.

    Args:
        family: Pointer (desktop) or touch (device) vocabulary
        width: Logical horizontal resolution; x is bounded to [0, width]
        height: Logical vertical resolution; y is bounded to [0, height]
        max_actions: Maximum actions per response
    """

    def __init__(
        self,
        family: ActionFamily,
        width: int,
        height: int,
        max_actions: int = 20,
    ):
        if width <= 0 or height <= 0:
            raise ValueError("Logical resolution must be positive")
        if max_actions < 1:
            raise ValueError("max_actions must be at least 1")

        self.family = family
        self.width = width
        self.height = height
        self.max_actions = max_actions

        if family == ActionFamily.POINTER:
            self.models = _pointer_models(width, height)
            self.tags = POINTER_TAGS
        else:
            self.models = _touch_models(width, height)
            self.tags = TOUCH_TAGS

        action_union = Annotated[Union[self.models], Field(discriminator="action")]
        self._action_adapter: TypeAdapter[Any] = TypeAdapter(action_union)

        self.response_model: type[ResponseBase] = create_model(
            "AgentResponse",
            __base__=ResponseBase,
            __doc__="Ordered input actions to execute next.",
            actions=(
                Annotated[
                    list[action_union],
                    Field(
                        min_length=1,
                        max_length=max_actions,
                        description="Actions executed strictly in order.",
                    ),
                ],
                ...,
            ),
        )

    @property
    def logical_size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def validate(self, raw: Any) -> ActionBase:
        """Validate a single raw action (dict or JSON text)."""
        data = self._load(raw)
        try:
            return self._action_adapter.validate_python(data)
        except PydanticValidationError as e:
            raise self._convert_error(e) from e

    def validate_response(self, raw: Any) -> ResponseBase:
        """Validate a full decision-service response (dict or JSON text)."""
        data = self._load(raw)
        try:
            return self.response_model.model_validate(data)
        except PydanticValidationError as e:
            raise self._convert_error(e) from e

    @staticmethod
    def serialize(action: ActionBase) -> dict[str, Any]:
        """Convert an action to its wire form (camelCase aliases, plain values)."""
        return action.model_dump(mode="json", by_alias=True)

    def json_schema(self) -> dict[str, Any]:
        """JSON schema of the response, with every bound embedded."""
        schema = self.response_model.model_json_schema(by_alias=True)
        schema["description"] = (
            f"Input actions for a {self.width}x{self.height} "
            f"{'desktop' if self.family == ActionFamily.POINTER else 'touch screen'}. "
            "The red dot overlay marks the last pointer/touch position."
        )
        return schema

    @staticmethod
    def _load(raw: Any) -> Any:
        if isinstance(raw, (str, bytes, bytearray)):
            try:
                return json.loads(raw)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Invalid JSON: {e.msg}", field=None) from e
        return raw

    def _convert_error(self, error: PydanticValidationError) -> ValidationError:
        """Map the first pydantic error to a ValidationError naming the field."""
        first = error.errors()[0]
        # Discriminated unions add the tag to the location; drop it
        path = [str(part) for part in first["loc"] if part not in self.tags]
        if first["type"] in ("union_tag_invalid", "union_tag_not_found"):
            path.append("action")
        field = ".".join(path) or None
        message = first["msg"]
        if field:
            message = f"{field}: {message}"
        return ValidationError(message, field=field)
