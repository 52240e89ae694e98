"""Shared pytest fixtures for siteserver tests."""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from siteserver.core.config import ServerConfig


INDEX_HTML = "<html><body><h1>Home</h1></body></html>"
STYLE_CSS = "body { color: black; }"


@pytest.fixture
def public_dir(tmp_path):
    """Create a temporary public directory.

    Layout:
    - index.html
    - style.css
    - docs/index.html
    - large.txt (4000 bytes, compressible)
    """
    public = tmp_path / "public"
    (public / "docs").mkdir(parents=True)

    (public / "index.html").write_text(INDEX_HTML)
    (public / "style.css").write_text(STYLE_CSS)
    (public / "docs" / "index.html").write_text("<h1>Docs</h1>")
    (public / "large.txt").write_text("a" * 4000)

    return public


@pytest.fixture
def server_config(public_dir):
    """ServerConfig serving public_dir under the test client's hostname."""
    return ServerConfig(hostname="testserver", public_path=str(public_dir))


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """A FakeClock starting at t=1000s."""
    return FakeClock()
