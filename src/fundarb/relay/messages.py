"""
Wire messages exchanged with the browser fetch proxy.

Every frame is a JSON object tagged by ``type``. Inbound frames are parsed
into a discriminated union so handlers dispatch on the model class instead
of probing dictionary keys.
"""

from typing import Annotated, Any, Literal

import orjson
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from fundarb.core.exceptions import MalformedFrameError


class _Frame(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ReadyMessage(_Frame):
    """Browser announces that its fetch proxy is installed."""

    type: Literal["ready"] = "ready"
    domain: str | None = None
    tab_id: int | None = Field(default=None, alias="tabId")


class PingMessage(_Frame):
    """Keep-alive probe (sent by either side)."""

    type: Literal["ping"] = "ping"
    timestamp: int | None = None


class PongMessage(_Frame):
    """Keep-alive answer (sent by either side)."""

    type: Literal["pong"] = "pong"
    timestamp: int | None = None


class RpcResponse(_Frame):
    """
    Browser's answer to an ``rpc_request``.

    A non-null ``error`` means the call failed; ``result`` is ignored then.
    """

    type: Literal["rpc_response"] = "rpc_response"
    id: int
    result: Any = None
    error: Any = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def error_message(self) -> str:
        if isinstance(self.error, str):
            return self.error
        return orjson.dumps(self.error).decode()


class RpcRequest(_Frame):
    """Server asks the browser to run a method (currently only ``fetch``)."""

    type: Literal["rpc_request"] = "rpc_request"
    id: int
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


InboundMessage = Annotated[
    ReadyMessage | PingMessage | PongMessage | RpcResponse,
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundMessage)


def parse_inbound(data: str | bytes) -> ReadyMessage | PingMessage | PongMessage | RpcResponse:
    """
    Parse a browser -> server frame.

    Args:
        data: Raw text frame.

    Returns:
        The typed message.

    Raises:
        MalformedFrameError: On invalid JSON, a non-object payload, an
            unknown ``type`` or missing required fields.
    """
    try:
        payload = orjson.loads(data)
    except orjson.JSONDecodeError as e:
        raise MalformedFrameError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedFrameError(f"Expected a JSON object, got {type(payload).__name__}")

    try:
        return _inbound_adapter.validate_python(payload)
    except ValidationError as e:
        raise MalformedFrameError(
            f"Unrecognized frame (type={payload.get('type')!r}): {e.error_count()} error(s)"
        ) from e


def encode_message(message: _Frame) -> str:
    """Serialize a message to a JSON text frame."""
    return orjson.dumps(message.model_dump(by_alias=True, exclude_none=True)).decode()
