"""룸 ID / 표시 이름 검증 테스트."""

import itertools

import pytest

from peercall.shared.exceptions import InvalidJoinRequestError
from peercall.signaling import validation
from peercall.signaling.validation import generate_room_id, validate_display_name, validate_room_id


@pytest.mark.parametrize("room_id", ["AB12CD", "abc123", "ROOM2024"])
def test_valid_room_ids(room_id):
    assert validate_room_id(room_id) == room_id


@pytest.mark.parametrize("room_id, message", [
    ("", "Room ID is required"),
    ("AB12", "Room ID must be at least 6 characters"),
    ("ABCDEFGHI", "Room ID must not exceed 8 characters"),
    ("AB-12CD", "Room ID can only contain letters and numbers"),
])
def test_invalid_room_ids(room_id, message):
    with pytest.raises(InvalidJoinRequestError, match=message):
        validate_room_id(room_id)


@pytest.mark.parametrize("name", ["bob", "alice_01", "A" * 20])
def test_valid_display_names(name):
    assert validate_display_name(name) == name


@pytest.mark.parametrize("name, message", [
    ("", "Username is required"),
    ("al", "Username must be at least 3 characters"),
    ("a" * 21, "Username must not exceed 20 characters"),
    ("alice bob", "Username can only contain letters, numbers, and underscores"),
])
def test_invalid_display_names(name, message):
    with pytest.raises(InvalidJoinRequestError, match=message):
        validate_display_name(name)


def test_invalid_join_request_is_value_error():
    with pytest.raises(ValueError):
        validate_room_id("x")


def test_generate_room_id_shape():
    room_id = generate_room_id()

    assert len(room_id) == 6
    assert room_id.isalnum()
    assert room_id == room_id.upper()
    assert validate_room_id(room_id) == room_id


def test_generate_room_id_skips_taken(monkeypatch):
    letters = itertools.chain(["A"] * 6, ["B"] * 6)
    monkeypatch.setattr(validation.secrets, "choice", lambda alphabet: next(letters))

    assert generate_room_id(taken={"AAAAAA"}) == "BBBBBB"


def test_generate_room_id_rejects_bad_length():
    with pytest.raises(ValueError):
        generate_room_id(length=9)
