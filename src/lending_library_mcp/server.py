"""Lending Library MCP Server - server assembly and entry point

Wires the pieces together at process start:
1. Configuration from the environment (``LENDING_LIBRARY_*``)
2. An explicitly constructed DatabaseManager and LendingEngine
3. FastMCP tool and resource registrations bound to that engine
4. Transport startup with signal handling for clean shutdown

Nothing here holds lending logic. Every tool and resource delegates to one
handler in ``tools`` or ``resources``.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from .config import ServerConfig, get_config
from .database.session import DatabaseManager
from .lending.clock import Clock, utc_now
from .lending.engine import LendingEngine
from .observability import initialize_observability
from .resources.loans import loan_resources
from .resources.reports import report_resources
from .tools.circulation import issue_item, reserve_item, return_item, return_my_item

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr)
    ],  # Use stderr to keep stdout clean for stdio transport
)

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "Lending Library MCP Server - lends a fixed catalog of physical items to members. "
    "Use issue_item to lend a copy, return_item or return_my_item to bring it back "
    "(overdue fines are assessed automatically), and reserve_item to queue for an "
    "item with no copies left. Resources list open loans, member history and the "
    "overdue and top-borrowed reports."
)


def _register_tools(mcp: FastMCP, engine: LendingEngine) -> None:
    @mcp.tool(name=issue_item["name"], description=issue_item["description"])
    async def issue(member_id: str, item_id: str) -> dict[str, Any]:
        return await issue_item["handler"](engine, {"member_id": member_id, "item_id": item_id})

    @mcp.tool(name=return_item["name"], description=return_item["description"])
    async def return_(txn_id: str) -> dict[str, Any]:
        return await return_item["handler"](engine, {"txn_id": txn_id})

    @mcp.tool(name=return_my_item["name"], description=return_my_item["description"])
    async def return_mine(member_id: str, txn_id: str) -> dict[str, Any]:
        return await return_my_item["handler"](
            engine, {"member_id": member_id, "txn_id": txn_id}
        )

    @mcp.tool(name=reserve_item["name"], description=reserve_item["description"])
    async def reserve(member_id: str, item_id: str) -> dict[str, Any]:
        return await reserve_item["handler"](engine, {"member_id": member_id, "item_id": item_id})

    logger.info("Registered 4 circulation tools")


def _register_resources(mcp: FastMCP, engine: LendingEngine, config: ServerConfig) -> None:
    member_loans, member_history, open_loans = loan_resources
    overdue, top_borrowed = report_resources

    def register(resource: dict[str, Any]):
        return mcp.resource(
            resource["uri"],
            name=resource["name"],
            description=resource["description"],
            mime_type=resource["mime_type"],
        )

    @register(member_loans)
    async def read_member_loans(member_id: str) -> dict[str, Any]:
        return await member_loans["handler"](engine, member_id)

    @register(member_history)
    async def read_member_history(member_id: str) -> dict[str, Any]:
        return await member_history["handler"](engine, member_id)

    @register(open_loans)
    async def read_open_loans() -> dict[str, Any]:
        return await open_loans["handler"](engine)

    @register(overdue)
    async def read_overdue() -> dict[str, Any]:
        return await overdue["handler"](engine)

    @register(top_borrowed)
    async def read_top_borrowed() -> dict[str, Any]:
        return await top_borrowed["handler"](engine, config.top_borrowed_limit)

    logger.info("Registered %d resources", len(loan_resources) + len(report_resources))


def create_server(
    config: ServerConfig | None = None,
    db: DatabaseManager | None = None,
    clock: Clock = utc_now,
) -> FastMCP:
    """Build a ready-to-run server.

    Args:
        config: Server configuration (defaults to the process configuration)
        db: Database manager to use (defaults to the configured SQLite file)
        clock: Time source for the engine

    Returns:
        FastMCP server with every tool and resource registered
    """
    config = config or get_config()
    db = db or DatabaseManager(config.get_database_url())
    db.init_database()

    engine = LendingEngine(db, clock=clock, fine_per_day=config.fine_per_day)

    mcp = FastMCP(name=config.server_name, instructions=INSTRUCTIONS)
    _register_tools(mcp, engine)
    _register_resources(mcp, engine, config)
    return mcp


def run_server(mcp: FastMCP, config: ServerConfig) -> None:
    """Run the MCP server on the configured transport.

    stdout carries protocol messages on the stdio transport, so all logging
    goes to stderr.
    """
    logger.info(
        "Starting %s v%s on %s transport",
        config.server_name,
        config.server_version,
        config.transport,
    )

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled - verbose protocol logging active")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        logger.info("MCP Server ready and waiting for connections...")
        if config.transport == "stdio":
            mcp.run(transport="stdio")
        else:
            mcp.run(transport="streamable-http")
    except Exception:
        logger.exception("Fatal error in MCP server")
        sys.exit(1)


def main() -> None:
    """Main entry point for the MCP server.

    Started via ``lending-library-mcp`` (defined in pyproject.toml) or
    ``python -m lending_library_mcp.server``.
    """
    try:
        config = get_config()

        logger.info("=" * 60)
        logger.info("Lending Library MCP Server")
        logger.info("Version: %s", config.server_version)
        logger.info("Transport: %s", config.transport)
        logger.info("Database: %s", config.database_path)
        logger.info("Debug Mode: %s", config.debug)
        logger.info("=" * 60)

        initialize_observability()
        mcp = create_server(config)
        run_server(mcp, config)

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
