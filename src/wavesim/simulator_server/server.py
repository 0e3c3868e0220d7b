"""Simulator MCP Server - step-by-step workflow simulation and expression evaluation."""

import logging
import sys

from fastmcp import FastMCP

from .config import SimulatorConfig, get_config
from .tools import register_simulator_tools

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def create_server(config: SimulatorConfig | None = None) -> FastMCP:
    """Create the simulator server with all tools registered."""
    config = config or get_config()
    mcp = FastMCP(
        name=config.server_name,
        version=__version__,
        instructions="""
            Simulator server walks workflow documents step by step:

            Core Tools:
            - simulator_start: Start a simulation from a workflow document or file
            - simulator_submit_input: Answer the halted user interaction step
            - simulator_submit_api_response: Provide a mock payload for the halted API call
            - simulator_back / simulator_reset: Navigate history or restart
            - simulator_status: Inspect the halted step, context and history
            - simulator_field_options: Evaluate option lists and date bounds
            - simulator_mock_prompt: Build a prompt for generating mock payloads
            - expression_evaluate / expression_interpolate: Try expressions directly

            Best Practices:
            - Check simulator_field_options before answering choice fields
            - Use simulator_mock_prompt so mock payloads match the expressions that read them
        """,
    )
    register_simulator_tools(mcp)
    return mcp


def main():
    """Entry point for the simulator server."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config = get_config()

    # Apply log level from configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.log_level))

    logger.info(f"Starting simulator server: {config.server_name} ({config.transport})")
    mcp = create_server(config)

    try:
        mcp.run(transport=config.transport)
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Server failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
