from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Union
from enum import Enum


class ErrorType(str, Enum):
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    UNKNOWN_ENDPOINT = "UNKNOWN_ENDPOINT"
    CONFLICT = "CONFLICT"
    STORAGE_FAILURE = "STORAGE_FAILURE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


# Phone numbers are stored as sent; only presence is enforced
PhoneNumber = Union[bool, int, float, str]


class UserSummary(BaseModel):
    """Public fields of the user that owns a person."""
    id: str = Field(..., description="User ID")
    username: str = Field(..., description="Login name")
    name: Optional[str] = Field(None, description="Display name")


class PersonSummary(BaseModel):
    id: str = Field(..., description="Person ID")
    name: str = Field(..., description="Name of the person")
    number: PhoneNumber = Field(..., description="Phone number")


class PersonResponse(BaseModel):
    id: str = Field(..., description="Person ID")
    name: str = Field(..., description="Name of the person")
    number: PhoneNumber = Field(..., description="Phone number")
    user: Optional[Union[UserSummary, str]] = Field(None, description="Owning user, populated on reads")


class UserResponse(BaseModel):
    id: str = Field(..., description="User ID")
    username: str = Field(..., description="Login name")
    name: Optional[str] = Field(None, description="Display name")
    persons: List[Union[PersonSummary, str]] = Field(default_factory=list, description="Persons created by the user")


class LoginResponse(BaseModel):
    token: str = Field(..., description="Bearer token for the Authorization header")
    username: str = Field(..., description="Login name")
    name: Optional[str] = Field(None, description="Display name")


class ErrorResponse(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    error: bool = Field(True, description="Always true for error bodies")
    code: ErrorType = Field(..., description="Machine readable error code")
    message: str = Field(..., description="Human readable error message")
    details: Optional[str] = Field(None, description="Exception text, only when DEBUG is enabled")


def person_to_response(document: dict) -> PersonResponse:
    """Render a stored person document, with or without its user populated."""
    user = document.get("user")
    if isinstance(user, dict):
        user = UserSummary(id=str(user["_id"]), username=user["username"], name=user.get("name"))
    elif user is not None:
        user = str(user)
    return PersonResponse(
        id=str(document["_id"]),
        name=document["name"],
        number=document["number"],
        user=user,
    )


def user_to_response(document: dict) -> UserResponse:
    persons = []
    for person in document.get("persons", []):
        if isinstance(person, dict):
            persons.append(PersonSummary(id=str(person["_id"]), name=person["name"], number=person["number"]))
        else:
            persons.append(str(person))
    return UserResponse(
        id=str(document["_id"]),
        username=document["username"],
        name=document.get("name"),
        persons=persons,
    )
