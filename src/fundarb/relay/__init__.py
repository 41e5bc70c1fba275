"""Browser relay: RPC transport to the logged-in browser session."""

from fundarb.relay.messages import (
    PingMessage,
    PongMessage,
    ReadyMessage,
    RpcRequest,
    RpcResponse,
    encode_message,
    parse_inbound,
)
from fundarb.relay.server import BrowserConnection, BrowserRelay


__all__ = [
    "BrowserConnection",
    "BrowserRelay",
    "PingMessage",
    "PongMessage",
    "ReadyMessage",
    "RpcRequest",
    "RpcResponse",
    "encode_message",
    "parse_inbound",
]
