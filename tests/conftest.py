"""Shared fixtures: the reference page and stylesheet used across the suite."""

from __future__ import annotations

from pathlib import Path

import pytest

PAGE_CSS = """
    .test {
      color: red;
    }
    .unused {
      color: blue;
    }
    strong {
      font-weight: 600;
    }
    """

PAGE_HTML = """<html>
  <head>
    <link rel="stylesheet" href="index.css" />
  </head>
  <body>
    <p class="test">
      <strong>Hello</strong>
    </p>
  </body>
</html>"""

PAGE_WITHOUT_LINK = """<html>
  <head>
    <link rel="stylesheet" href="other.css" />
  </head>
  <body><p class="test">Hi</p></body>
</html>"""


@pytest.fixture
def page_css() -> str:
    return PAGE_CSS


@pytest.fixture
def page_html() -> str:
    return PAGE_HTML


@pytest.fixture
def css_file(tmp_path: Path) -> Path:
    path = tmp_path / "index.css"
    path.write_text(PAGE_CSS, encoding="utf-8")
    return path


@pytest.fixture
def unlinked_html() -> str:
    return PAGE_WITHOUT_LINK
