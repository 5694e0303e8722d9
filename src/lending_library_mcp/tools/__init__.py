"""
MCP Tools for the Lending Library Server.

Tools are the only way a client changes lending state. Each tool is a
dictionary with its name, description, JSON input schema and an async
handler taking ``(engine, arguments)``; the server binds the engine when it
registers them.
"""

from .circulation import (
    NotTransactionOwner,
    issue_item,
    reserve_item,
    return_item,
    return_my_item,
)

all_tools = [
    issue_item,
    return_item,
    return_my_item,
    reserve_item,
]

__all__ = [
    "NotTransactionOwner",
    "all_tools",
    "issue_item",
    "reserve_item",
    "return_item",
    "return_my_item",
]
