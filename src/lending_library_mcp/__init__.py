"""
Lending Library MCP Server Package.

Lends a fixed catalog of physical items to members under borrow limits,
due dates and a first-come, first-served reservation queue, and exposes
that engine to MCP clients.

Key Components:
- models: Pydantic records returned by every store and engine operation
- database: SQLAlchemy schema, session management and repositories
- lending: the lending engine and its errors
- config: Configuration management with Pydantic v2
- tools / resources: the MCP caller-facing layer
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
