"""Awaitable RPC access to the Captivate scheduler."""

from .adapters import promiseify, wrap_members
from .rpc import (
    ConnectionState,
    HandshakeError,
    NotConnectedError,
    RpcBridge,
    UnknownMethodError,
)

__all__ = [
    "ConnectionState",
    "HandshakeError",
    "NotConnectedError",
    "RpcBridge",
    "UnknownMethodError",
    "promiseify",
    "wrap_members",
]
