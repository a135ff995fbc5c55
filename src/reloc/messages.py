"""Requests sent to a session from the host (panel, editor or CLI)."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from reloc.errors import MessageError


class _Message(BaseModel):
    # Hosts send camelCase keys; Python callers may use field names.
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class SelectMessage(_Message):
    """Make a diagnostic the active one."""

    command: Literal["select"] = "select"
    run_id: int
    result_id: int


class RemapMessage(_Message):
    """Retry resolving a diagnostic, prompting the user even if they skipped before."""

    command: Literal["remap"] = "remap"
    run_id: int
    result_id: int


class RemoveLogMessage(_Message):
    command: Literal["removeLog"] = "removeLog"
    source_uri: str


class SetUriBasesMessage(_Message):
    command: Literal["setUriBases"] = "setUriBases"
    uri_bases: list[str] = []


class TranslateLocalMessage(_Message):
    command: Literal["translateLocal"] = "translateLocal"
    local_uri: str


Message = Annotated[
    SelectMessage
    | RemapMessage
    | RemoveLogMessage
    | SetUriBasesMessage
    | TranslateLocalMessage,
    Field(discriminator="command"),
]

_adapter: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(data: dict[str, Any] | str | bytes) -> Message:
    """Validate a raw request (a dict or a JSON document)."""
    try:
        if isinstance(data, (str, bytes)):
            return _adapter.validate_json(data)
        return _adapter.validate_python(data)
    except ValidationError as e:
        raise MessageError(f"Invalid message: {e}") from e
