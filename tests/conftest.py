"""Shared fixtures for the simulator test suite."""

from datetime import UTC, datetime

import pytest

from wavesim.simulator_server.config import SimulatorConfig, reset_config, set_config
from wavesim.simulator_server.sessions import reset_session_manager

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def isolated_globals():
    """Give every test a default configuration and an empty session store."""
    set_config(SimulatorConfig())
    reset_session_manager()
    yield
    reset_session_manager()
    reset_config()


@pytest.fixture
def config():
    return SimulatorConfig()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def shopping_workflow():
    """Ask for a budget, look up products when it is high enough, then pick one."""
    return [
        {
            "id": "ask_budget",
            "type": "user_interaction",
            "prompt": {"en-US": "What is your budget?"},
            "fields": [{"name": "budget", "type": "numeric"}],
        },
        {
            "id": "check_budget",
            "type": "decision",
            "expression": {"en-US": "replies.budget > 100"},
            "if_block": [
                {"id": "search", "type": "api_call", "api_name": "Search Products", "response_var": "search"},
                {
                    "id": "pick_product",
                    "type": "user_interaction",
                    "prompt": "Found ${api_responses.search.items.length} products",
                    "fields": [
                        {
                            "name": "product",
                            "type": "multiple_choice",
                            "attributes": {
                                "options": "api_responses.search.items",
                                "label_expression": "$.title",
                            },
                        }
                    ],
                },
            ],
            "else_block": [],
        },
    ]


@pytest.fixture
def search_payload():
    return {
        "items": [
            {"id": 1, "title": "Speaker A"},
            {"id": 2, "title": "Speaker B"},
        ]
    }
