"""Tests for the action vocabulary."""
from __future__ import annotations

import json

import pytest

from surface_pilot.core.errors import ValidationError
from surface_pilot.domain.actions import ActionFamily, ActionVocabulary, MouseButton


class TestPointerVocabulary:
    """Tests for the pointer (desktop) family."""

    def test_move_within_bounds(self, pointer_vocabulary):
        """Test that edge coordinates are accepted."""
        action = pointer_vocabulary.validate({"action": "move", "x": 800, "y": 0})

        assert action.action == "move"
        assert (action.x, action.y) == (800, 0)

    def test_move_out_of_bounds_names_field(self, pointer_vocabulary):
        """Test that an out-of-range coordinate is rejected with its field name."""
        with pytest.raises(ValidationError) as exc_info:
            pointer_vocabulary.validate({"action": "move", "x": 801, "y": 10})

        assert exc_info.value.field == "x"

    def test_negative_coordinate_rejected(self, pointer_vocabulary):
        with pytest.raises(ValidationError) as exc_info:
            pointer_vocabulary.validate({"action": "move", "x": 10, "y": -1})

        assert exc_info.value.field == "y"

    def test_boolean_coordinate_rejected(self, pointer_vocabulary):
        with pytest.raises(ValidationError):
            pointer_vocabulary.validate({"action": "move", "x": True, "y": 10})

    def test_button_defaults_to_left(self, pointer_vocabulary):
        action = pointer_vocabulary.validate({"action": "down"})

        assert action.button == MouseButton.LEFT

    def test_unknown_tag_rejected(self, pointer_vocabulary):
        """Test that a tag outside the family is reported on the action field."""
        with pytest.raises(ValidationError) as exc_info:
            pointer_vocabulary.validate({"action": "tap", "x": 1, "y": 1, "pressed": True})

        assert exc_info.value.field == "action"

    def test_extra_key_rejected(self, pointer_vocabulary):
        with pytest.raises(ValidationError) as exc_info:
            pointer_vocabulary.validate({"action": "type", "text": "hi", "delay": 5})

        assert exc_info.value.field == "delay"

    def test_empty_text_rejected(self, pointer_vocabulary):
        with pytest.raises(ValidationError):
            pointer_vocabulary.validate({"action": "type", "text": ""})

    def test_wait_upper_bound(self, pointer_vocabulary):
        assert pointer_vocabulary.validate({"action": "wait", "ms": 10000}).ms == 10000
        with pytest.raises(ValidationError):
            pointer_vocabulary.validate({"action": "wait", "ms": 10001})

    def test_invalid_scroll_direction(self, pointer_vocabulary):
        with pytest.raises(ValidationError) as exc_info:
            pointer_vocabulary.validate({"action": "scroll", "direction": "left"})

        assert exc_info.value.field == "direction"

    def test_validate_json_text(self, pointer_vocabulary):
        action = pointer_vocabulary.validate('{"action": "press", "key": "ctrl"}')

        assert action.key == "ctrl"

    def test_malformed_json_rejected(self, pointer_vocabulary):
        with pytest.raises(ValidationError):
            pointer_vocabulary.validate("{not json")

    def test_custom_resolution_bounds(self):
        vocabulary = ActionVocabulary(ActionFamily.POINTER, 1280, 720)

        assert vocabulary.validate({"action": "move", "x": 1280, "y": 720}).x == 1280
        with pytest.raises(ValidationError):
            vocabulary.validate({"action": "move", "x": 1281, "y": 0})


class TestResponseValidation:
    """Tests for full decision-service responses."""

    def test_response_preserves_order(self, pointer_vocabulary):
        response = pointer_vocabulary.validate_response({
            "actions": [
                {"action": "move", "x": 100, "y": 200},
                {"action": "down"},
                {"action": "up"},
            ]
        })

        assert [a.action for a in response.actions] == ["move", "down", "up"]

    def test_empty_response_rejected(self, pointer_vocabulary):
        with pytest.raises(ValidationError):
            pointer_vocabulary.validate_response({"actions": []})

    def test_response_cap_enforced(self, pointer_vocabulary):
        """Test that more than the cap of actions is rejected."""
        actions = [{"action": "wait", "ms": 1}] * 20
        assert len(pointer_vocabulary.validate_response({"actions": actions}).actions) == 20

        with pytest.raises(ValidationError):
            pointer_vocabulary.validate_response({"actions": actions + [{"action": "wait", "ms": 1}]})

    def test_nested_error_path(self, pointer_vocabulary):
        with pytest.raises(ValidationError) as exc_info:
            pointer_vocabulary.validate_response({
                "actions": [{"action": "wait", "ms": 5}, {"action": "move", "x": 900, "y": 1}]
            })

        assert exc_info.value.field == "actions.1.x"

    def test_nested_unknown_tag_path(self, pointer_vocabulary):
        with pytest.raises(ValidationError) as exc_info:
            pointer_vocabulary.validate_response({"actions": [{"action": "jump"}]})

        assert exc_info.value.field == "actions.0.action"

    def test_response_from_json_text(self, pointer_vocabulary):
        payload = json.dumps({"actions": [{"action": "type", "text": "hello"}]})

        response = pointer_vocabulary.validate_response(payload)

        assert response.actions[0].text == "hello"


class TestTouchVocabulary:
    """Tests for the touch (device) family."""

    def test_swipe_uses_camel_case_keys(self, touch_vocabulary):
        action = touch_vocabulary.validate({
            "action": "swipe", "startX": 500, "startY": 800, "endX": 500, "endY": 200,
        })

        assert (action.start_x, action.start_y, action.end_x, action.end_y) == (500, 800, 500, 200)
        assert action.ms == 200

    def test_duration_defaults(self, touch_vocabulary):
        hold = touch_vocabulary.validate({"action": "hold", "x": 1, "y": 1, "pressed": True})
        drag = touch_vocabulary.validate({
            "action": "drag", "startX": 0, "startY": 0, "endX": 10, "endY": 10,
        })

        assert hold.ms == 800
        assert drag.ms == 500

    def test_pressed_must_be_boolean(self, touch_vocabulary):
        with pytest.raises(ValidationError) as exc_info:
            touch_vocabulary.validate({"action": "tap", "x": 1, "y": 1, "pressed": "yes"})

        assert exc_info.value.field == "pressed"

    def test_out_of_bounds_alias_field(self, touch_vocabulary):
        with pytest.raises(ValidationError) as exc_info:
            touch_vocabulary.validate({
                "action": "swipe", "startX": 1001, "startY": 0, "endX": 0, "endY": 0,
            })

        assert exc_info.value.field == "startX"

    def test_pointer_tag_rejected(self, touch_vocabulary):
        with pytest.raises(ValidationError):
            touch_vocabulary.validate({"action": "move", "x": 1, "y": 1})

    def test_serialize_uses_wire_names(self, touch_vocabulary):
        action = touch_vocabulary.validate({
            "action": "drag", "startX": 1, "startY": 2, "endX": 3, "endY": 4, "ms": 600,
        })

        assert touch_vocabulary.serialize(action) == {
            "action": "drag", "startX": 1, "startY": 2, "endX": 3, "endY": 4, "ms": 600,
        }

    @pytest.mark.parametrize(
        "raw",
        [
            {"action": "tap", "x": 0, "y": 1000, "pressed": True},
            {"action": "hold", "x": 10, "y": 20, "pressed": False},
            {"action": "swipe", "startX": 1, "startY": 2, "endX": 3, "endY": 4},
            {"action": "wait", "ms": 0},
        ],
    )
    def test_serialize_then_validate_is_identity(self, touch_vocabulary, raw):
        action = touch_vocabulary.validate(raw)

        assert touch_vocabulary.validate(touch_vocabulary.serialize(action)) == action

    def test_touch_cap(self, touch_vocabulary):
        actions = [{"action": "wait", "ms": 0}] * 101

        with pytest.raises(ValidationError):
            touch_vocabulary.validate_response({"actions": actions})


class TestJsonSchema:
    """Tests for the structured-output schema."""

    def test_schema_embeds_bounds(self, pointer_vocabulary):
        schema = json.dumps(pointer_vocabulary.json_schema())

        assert '"maximum": 800' in schema
        assert '"maximum": 600' in schema
        assert '"maxItems": 20' in schema
        assert "800x600" in pointer_vocabulary.json_schema()["description"]

    def test_touch_schema_uses_aliases(self, touch_vocabulary):
        schema = json.dumps(touch_vocabulary.json_schema())

        assert "startX" in schema
        assert "start_x" not in schema

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            ActionVocabulary(ActionFamily.POINTER, 0, 600)
        with pytest.raises(ValueError):
            ActionVocabulary(ActionFamily.POINTER, 800, 600, max_actions=0)
