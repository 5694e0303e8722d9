"""Lending Library MCP Resources Package

Read-only views over the ledger and the catalog counters. Each resource is a
dictionary with its URI, name, description, MIME type and an async handler
whose first argument is the lending engine; the server binds the engine
when it registers them.
"""

from .loans import loan_resources
from .reports import report_resources

all_resources = loan_resources + report_resources

__all__ = [
    "all_resources",
    "loan_resources",
    "report_resources",
]
