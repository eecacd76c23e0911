"""Test fixtures and configuration for aibridge tests.

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures
    ├── fakes.py             # httpx.MockTransport helpers
    ├── test_config.py       # aibridge.toml loading
    ├── test_cli.py          # Command line entry points
    └── unit/                # Unit tests (no network, fake transports)
        ├── test_prompt.py
        ├── test_cancellation.py
        ├── test_providers.py
        ├── test_stream_decoder.py
        ├── test_client.py
        ├── test_streaming_client.py
        └── test_tracing.py

Running tests:
    pytest tests/unit -v    # Unit tests only
    pytest -v               # Everything
"""

import sys
from pathlib import Path

import pytest

# Add tests directory to path for imports
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from aibridge.cancellation import CancellationBroadcaster  # noqa: E402


@pytest.fixture
def broadcaster() -> CancellationBroadcaster:
    """An isolated broadcaster per test."""
    return CancellationBroadcaster()
