# tests/unit/test_ui_banner.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import llmchat.ui.banner as banner  # import the module to monkeypatch


class FakeAlign:
    @staticmethod
    def center(x): return f"<CENTER>{x}"


class FakePanel:
    def __init__(self, content, **kw):
        self.content = content
        self.title = kw.get("title")
    def __repr__(self): return f"PANEL[{self.content}|{self.title}]"


class FakeConsole:
    def __init__(self, width=80):
        self.width = width
        self.cleared = False
        self.printed = []
    def clear(self): self.cleared = True
    def print(self, obj): self.printed.append(repr(obj))


@pytest.fixture
def fakes(monkeypatch):
    monkeypatch.setattr(banner, "figlet_format", lambda title, font=None: f"ART:{title}:{font}  ", raising=True)
    monkeypatch.setattr(banner, "Align", FakeAlign, raising=True)
    monkeypatch.setattr(banner, "Panel", FakePanel, raising=True)


@pytest.mark.parametrize("width,font", [(35, "small"), (60, "small"), (80, "standard"), (160, "slant")])
def test_font_follows_console_width(width, font):
    assert banner.pick_font(width) == font


def test_no_matching_font_rule():
    with pytest.raises(ValueError):
        banner.pick_font(200, rules=[(50, "tiny")])


def test_banner_no_clear(fakes):
    console = FakeConsole(width=80)
    banner.render_banner(console, "1.0.0")

    assert console.cleared is False
    assert console.printed == ["PANEL[<CENTER>ART:LLM Chat:standard|v1.0.0]"]


def test_banner_with_clear_and_no_version(fakes):
    console = FakeConsole(width=40)
    banner.render_banner(console, None, clear=True)

    assert console.cleared is True
    assert console.printed == ["PANEL[<CENTER>ART:LLM Chat:small|None]"]
