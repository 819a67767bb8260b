"""Entry point for Graph MCP Server."""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv


def configure_logging() -> None:
    """Configure logging to stderr (STDIO-safe).

    Sends all logs to stderr so they don't interfere with MCP's
    STDIO transport which uses stdout for JSON-RPC messages.

    Respects LOG_LEVEL env var (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelNamesMapping().get(log_level_str, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # Reduce noise from HTTP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point.

    Loads environment, validates configuration, and starts the MCP server
    on the STDIO transport.
    """
    # Load .env file if present
    load_dotenv()

    configure_logging()
    logger = logging.getLogger(__name__)

    from graph_mcp.config import GraphSettings
    from graph_mcp.utils.errors import ValidationError

    try:
        settings = GraphSettings.from_env()
    except ValidationError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)

    if not settings.is_configured:
        logger.error(
            "TENANT_ID and CLIENT_ID must be configured in the environment. Exiting."
        )
        sys.exit(1)

    from graph_mcp.server import create_server

    mcp = create_server(settings)

    logger.info("Starting Graph MCP Server with STDIO transport")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
