"""
pytest configuration and fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sprout import App, AppConfig


@pytest.fixture
def app() -> App:
    """Fresh application with default configuration."""
    return App()


@pytest.fixture
def production_app() -> App:
    """Application configured for production."""
    return App(AppConfig(env="production"))


@pytest.fixture
def static_root(tmp_path: Path) -> Path:
    """
    Directory tree for static file tests:

        tmp_path/
        ├── secret.txt              (outside the served root)
        └── public/
            ├── index.html
            ├── hello.txt
            └── css/site.css
    """
    (tmp_path / "secret.txt").write_text("top secret")
    public = tmp_path / "public"
    (public / "css").mkdir(parents=True)
    (public / "index.html").write_text("<h1>home</h1>")
    (public / "hello.txt").write_text("hello world")
    (public / "css" / "site.css").write_text("body { color: green; }")
    return public
