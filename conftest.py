import sys
from pathlib import Path


# Make src/ importable so tests can use `config`, `models`, `services.*` directly.
ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402

from config import Configuration  # noqa: E402


@pytest.fixture
def cfg() -> Configuration:
    """Configuration with no external credentials, so nothing reaches the network."""
    return Configuration(
        google_maps_api_key=None,
        notion_api_key=None,
        notion_database_id=None,
        gemini_api_key=None,
        query_timeout_sec=5.0,
    )
