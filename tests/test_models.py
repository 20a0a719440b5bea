"""Tests for the data models."""

from __future__ import annotations

import base64

import pytest
from pydantic import ValidationError

from aihub.models import ChatSession, Message, Role, Settings


def test_message_is_immutable():
    msg = Message(role=Role.USER, content="hi")
    with pytest.raises(ValidationError):
        msg.content = "changed"


def test_message_role_serializes_as_string():
    msg = Message(role=Role.ASSISTANT, content="hello")
    assert msg.model_dump() == {"role": "assistant", "content": "hello"}


def test_image_message_round_trips_bytes():
    payload = b"\x89PNG fake bytes"
    msg = Message.image("image/png", base64.b64encode(payload).decode())

    assert msg.is_image
    assert msg.role == "assistant"
    assert msg.image_bytes() == payload


def test_text_message_has_no_image_bytes():
    msg = Message(role=Role.USER, content="data: not an image")
    assert not msg.is_image
    assert msg.image_bytes() is None


def test_chat_session_defaults():
    a, b = ChatSession(), ChatSession()
    assert a.id != b.id
    assert a.title == "New Chat"
    assert a.messages == []
    a.messages.append(Message(role=Role.USER, content="x"))
    assert b.messages == []


def test_settings_strip_keys():
    s = Settings(mistral_key="  abc \n", gemini_key=" ")
    assert s.mistral_key == "abc"
    assert s.gemini_key == ""


def test_settings_reject_unknown_models():
    with pytest.raises(ValidationError):
        Settings(chat_model="gpt-4")
    with pytest.raises(ValidationError):
        Settings(image_model="dall-e")
