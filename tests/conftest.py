"""
Pytest configuration and fixtures for gsheet-remote-write.

Provides cross-platform event loop configuration and settings isolation.
"""

import asyncio
import sys

import pytest

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture
def sheet_env(monkeypatch, tmp_path):
    """Minimal environment for SheetSettings, isolated from any local .env."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GSHEET_SPREADSHEET_ID", "sheet-123")
    monkeypatch.setenv("GSHEET_ACCESS_TOKEN", "token-abc")
    return monkeypatch
