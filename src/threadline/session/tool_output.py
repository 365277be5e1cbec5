"""Tool output values and classification of raw tool return values."""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class TextOutput(BaseModel):
    """Plain text output."""
    type: Literal["text"] = "text"
    value: str

    model_config = ConfigDict(frozen=True)


class JsonOutput(BaseModel):
    """Structured output."""
    type: Literal["json"] = "json"
    value: Any

    model_config = ConfigDict(frozen=True)


class ErrorTextOutput(BaseModel):
    """Failure described as text."""
    type: Literal["error-text"] = "error-text"
    value: str

    model_config = ConfigDict(frozen=True)


class ErrorJsonOutput(BaseModel):
    """Failure described as a structured value."""
    type: Literal["error-json"] = "error-json"
    value: Any

    model_config = ConfigDict(frozen=True)


ErrorOutput = Union[ErrorTextOutput, ErrorJsonOutput]

ToolOutput = Annotated[
    Union[TextOutput, JsonOutput, ErrorTextOutput, ErrorJsonOutput],
    Field(discriminator="type"),
]

OUTPUT_TYPES = ("text", "json", "error-text", "error-json")

_OUTPUT_MODELS = {
    "text": TextOutput,
    "json": JsonOutput,
    "error-text": ErrorTextOutput,
    "error-json": ErrorJsonOutput,
}


def is_error_output(output: Any) -> bool:
    return isinstance(output, (ErrorTextOutput, ErrorJsonOutput))


def _is_json_value(value: Any) -> bool:
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError):
        return False
    return True


def classify_tool_output(value: Any):
    """Coerce whatever a tool returned into a ``ToolOutput``.

    Already-formed outputs (model instances or ``{"type": ..., "value": ...}``
    dicts) pass through. ``None`` becomes empty text, exceptions become
    ``error-text``, strings become ``text`` and other JSON-compatible values
    become ``json``.
    """
    if isinstance(value, (TextOutput, JsonOutput, ErrorTextOutput, ErrorJsonOutput)):
        return value
    if value is None:
        return TextOutput(value="")
    if isinstance(value, BaseException):
        return ErrorTextOutput(value=str(value) or value.__class__.__name__)
    if isinstance(value, str):
        return TextOutput(value=value)
    if isinstance(value, dict) and value.get("type") in OUTPUT_TYPES and set(value) == {"type", "value"}:
        try:
            return _OUTPUT_MODELS[value["type"]].model_validate(value)
        except ValidationError:
            pass
    if _is_json_value(value):
        return JsonOutput(value=value)
    return ErrorTextOutput(value=f"Unrecognized value: {value!r}")


def output_text(output) -> str:
    """Render an output as a single string for providers that only take text."""
    if isinstance(output, (TextOutput, ErrorTextOutput)):
        return output.value
    return json.dumps(output.value, ensure_ascii=False)


def as_error_output(output):
    """Mark an output as a failure, keeping its value."""
    if isinstance(output, TextOutput):
        return ErrorTextOutput(value=output.value)
    if isinstance(output, JsonOutput):
        return ErrorJsonOutput(value=output.value)
    return output
