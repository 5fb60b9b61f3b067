from typing import Any, Generic, Literal, Optional, TypeVar, Union
from pydantic import BaseModel, Field

T = TypeVar("T")
F = TypeVar("F")


class InputUnresolved(BaseModel):
    kind: Literal["input_unresolved"] = "input_unresolved"
    message: str
    field: str = Field(..., description="pickup, destination or stop")
    stop_index: Optional[int] = None
    text: str = ""


class ResolutionFailed(BaseModel):
    kind: Literal["resolution_failed"] = "resolution_failed"
    message: str
    text: str
    stop_index: Optional[int] = None


class RoutingBlocked(BaseModel):
    kind: Literal["routing_blocked"] = "routing_blocked"
    message: str
    status_code: Optional[int] = None
    detail: str = ""


class RoutingInvalidArgument(BaseModel):
    kind: Literal["routing_invalid_argument"] = "routing_invalid_argument"
    message: str
    status_code: Optional[int] = None
    detail: str = ""


class RoutingTransient(BaseModel):
    kind: Literal["routing_transient"] = "routing_transient"
    message: str
    status_code: Optional[int] = None
    detail: str = ""


Failure = Union[
    InputUnresolved,
    ResolutionFailed,
    RoutingBlocked,
    RoutingInvalidArgument,
    RoutingTransient,
]


class Ok(BaseModel, Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


class Err(BaseModel, Generic[F]):
    error: F

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[Any], Err[Any]]
