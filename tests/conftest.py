"""
Shared fixtures: sample project trees and mocked Playwright objects.
"""
import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


DASHBOARD_TSX = """\
import React from 'react';
import { UserCard } from '../users/UserCard';
import './dashboard.css';

export default function Dashboard() {
  return (
    <div className="dashboard">
      <nav data-testid="main-nav"><a href="/">Home</a></nav>
      <button data-testid="refresh-button" onClick={() => refresh()}>Refresh</button>
      <input id="email-input" type="email" placeholder="Email address" onChange={handleChange} />
      <UserCard />
    </div>
  );
}
"""

USER_CARD_TSX = """\
import React from 'react';

export const UserCard = () => (
  <div className="user-card" onClick={openProfile}>
    <span>User</span>
  </div>
);

export function formatUser(user: { name: string }) {
  return user.name;
}
"""

SETTINGS_TSX = """\
import { saveSettings } from '../../services/api';

export function Settings() {
  return (
    <form>
      <input data-testid="display-name-input" placeholder="Display name" />
      <button id="save" onClick={saveSettings}>Save</button>
    </form>
  );
}
"""

BROKEN_TSX = "export const = <div className=\n"


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def sample_project(tmp_path):
    """Three features: dashboard depends on users, settings is a routed page."""
    root = tmp_path / "app"
    write(root / "src" / "features" / "dashboard" / "Dashboard.tsx", DASHBOARD_TSX)
    write(root / "src" / "features" / "dashboard" / "Broken.tsx", BROKEN_TSX)
    write(root / "src" / "features" / "users" / "UserCard.tsx", USER_CARD_TSX)
    write(root / "src" / "pages" / "settings" / "index.tsx", SETTINGS_TSX)
    write(root / "node_modules" / "lib" / "pages" / "Ignored" / "Ignored.tsx", SETTINGS_TSX)
    return root


def make_handle(x: float = 100, y: float = 200, width: float = 80, height: float = 40):
    handle = AsyncMock()
    handle.bounding_box = AsyncMock(return_value={"x": x, "y": y, "width": width, "height": height})
    return handle


def make_page(url: str = "http://localhost:3003/"):
    """An AsyncMock standing in for playwright's Page."""
    page = AsyncMock()
    page.url = url
    page.is_closed = MagicMock(return_value=False)
    page.evaluate = AsyncMock(return_value=None)
    page.wait_for_selector = AsyncMock(return_value=make_handle())
    return page


@pytest.fixture
def page():
    return make_page()


def make_playwright(page, video_file: Path = None):
    """Patchable replacement for async_playwright() wired to the given page."""
    if video_file is not None:
        page.video = MagicMock()
        page.video.path = AsyncMock(return_value=str(video_file))
    else:
        page.video = None

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    driver = MagicMock()
    driver.chromium.launch = AsyncMock(return_value=browser)
    driver.stop = AsyncMock()

    starter = MagicMock()
    starter.start = AsyncMock(return_value=driver)
    factory = MagicMock(return_value=starter)
    return factory, driver, browser, context
