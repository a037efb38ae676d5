"""Request validation that runs before any storage call."""

import math
import re
from typing import Any, Dict

from bson import ObjectId

from error_handler import InvalidIdentifier, InvalidPayload, MissingField
from utils.config import Config

# ObjectId.is_valid also accepts any 12-byte string; ids in URLs are always hex
OBJECT_ID_PATTERN = re.compile(r"[0-9a-fA-F]{24}")

PRIMITIVE_TYPES = (bool, int, float, str)

# BSON stores integers as signed 64-bit
INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1


def validate_id(raw: Any) -> ObjectId:
    if not isinstance(raw, str) or not OBJECT_ID_PATTERN.fullmatch(raw):
        raise InvalidIdentifier()
    return ObjectId(raw)


def ensure_object(body: Any) -> Dict[str, Any]:
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise InvalidPayload()
    return body


def _check_name(name: Any) -> str:
    if not isinstance(name, str):
        raise InvalidPayload("name must be a string")
    if not name.strip():
        raise MissingField("name missing")
    return name


def _check_number(number: Any) -> Any:
    if not isinstance(number, PRIMITIVE_TYPES):
        raise InvalidPayload("number must be a string or a number")
    if isinstance(number, str) and not number.strip():
        raise MissingField("number missing")
    # json accepts NaN and Infinity, which render back as null
    if isinstance(number, float) and not math.isfinite(number):
        raise InvalidPayload("number must be finite")
    if isinstance(number, int) and not INT64_MIN <= number <= INT64_MAX:
        raise InvalidPayload("number is out of range")
    return number


def validate_create_payload(body: Any) -> Dict[str, Any]:
    """Return ``{name, number}`` or raise when either is absent."""
    body = ensure_object(body)
    if body.get("name") is None:
        raise MissingField("name missing")
    if body.get("number") is None:
        raise MissingField("number missing")
    return {
        "name": _check_name(body["name"]),
        "number": _check_number(body["number"]),
    }


def validate_update_payload(body: Any) -> Dict[str, Any]:
    """Return the subset of ``{name, number}`` present in the body.

    Absent fields keep their stored value, so an empty body is allowed.
    """
    body = ensure_object(body)
    fields = {}
    if body.get("name") is not None:
        fields["name"] = _check_name(body["name"])
    if body.get("number") is not None:
        fields["number"] = _check_number(body["number"])
    return fields


def validate_user_payload(body: Any) -> Dict[str, Any]:
    body = ensure_object(body)
    username = body.get("username")
    password = body.get("password")
    name = body.get("name")

    if not username or not password:
        raise MissingField("username and password are required")
    if not isinstance(username, str) or not isinstance(password, str):
        raise InvalidPayload("username and password must be strings")
    if name is not None and not isinstance(name, str):
        raise InvalidPayload("name must be a string")

    username = username.strip()
    if len(username) < Config.USERNAME_MIN_LENGTH:
        raise InvalidPayload(f"username must be at least {Config.USERNAME_MIN_LENGTH} characters long")
    if len(password) < Config.PASSWORD_MIN_LENGTH:
        raise InvalidPayload(f"password must be at least {Config.PASSWORD_MIN_LENGTH} characters long")

    return {"username": username, "name": name, "password": password}


def validate_login_payload(body: Any) -> Dict[str, Any]:
    body = ensure_object(body)
    username = body.get("username")
    password = body.get("password")
    if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
        raise MissingField("username and password are required")
    return {"username": username.strip(), "password": password}
