"""
Interaction execution engine.

Drives one Playwright page through a validated DemoConfig: the entry
point first, then every interaction in order. Each interaction kind is
handled by its own coroutine; a missing element either skips the step
(skipIfNotFound) or raises InteractionError, and the recording's
skipErrors flag decides whether such an error ends the run.
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Optional

from playwright.async_api import Page, ElementHandle
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config.settings import (
    SELECTOR_TIMEOUTS, NAVIGATION_TIMEOUT, LOAD_STATE_TIMEOUT, VIDEO_WIDTH, VIDEO_HEIGHT
)
from .camera import cursor_path
from .config_loader import DemoConfig, InteractionConfig
from .effects import EffectsController, TYPE_ZOOM
from .models import InteractionType
from .security import validate_and_sanitize_url
from .storage import StorageManager

logger = logging.getLogger(__name__)

MOVE_DURATION = 1000
SCROLL_MOVE_DURATION = 500
ZOOM_SETTLE = 600
PRE_CLICK_PAUSE = 300
POST_CLICK_PAUSE = 600
SCROLL_SETTLE = 800
DEFAULT_WAIT_TIME = 2000
TYPE_DELAY_RANGE = (0.08, 0.2)      # seconds per character
CURSOR_START_Y = 200


class InteractionError(Exception):
    """A single interaction could not be performed."""


@dataclass
class RunResult:
    """What happened while executing one script."""
    completed: int = 0
    skipped: int = 0
    failed: int = 0
    screenshots: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    truncated: bool = False


class InteractionEngine:
    """Executes interactions against a page with cinematic effects."""

    def __init__(self, page: Page, config: DemoConfig, effects: EffectsController,
                 base_url: str, storage: Optional[StorageManager] = None,
                 feature: Optional[str] = None,
                 viewport: tuple[int, int] = (VIDEO_WIDTH, VIDEO_HEIGHT)):
        self.page = page
        self.config = config
        self.effects = effects
        self.base_url = base_url
        self.storage = storage
        self.feature = feature or config.name
        self.width, self.height = viewport
        self.cursor = (self.width / 2, CURSOR_START_Y)
        self.result = RunResult()

    async def _sleep(self, seconds: float):
        await asyncio.sleep(seconds)

    async def _pause(self, milliseconds):
        if milliseconds and milliseconds > 0:
            await self._sleep(milliseconds / 1000)

    # Setup

    async def goto(self, url: str):
        """Navigate, falling back to DOMContentLoaded when networkidle times out."""
        try:
            await self.page.goto(url, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT)
        except PlaywrightTimeoutError:
            logger.warning("Navigation to %s timed out, retrying without networkidle", url)
            await self.page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT)

    async def open_entry(self):
        entry = self.config.entry
        url = validate_and_sanitize_url(self.base_url, entry.url)
        if url is None:
            logger.warning("Entry url %r rejected, using %s", entry.url, self.base_url)
            url = self.base_url

        logger.info("Navigating to %s", url)
        await self.goto(url)
        await self._pause(entry.wait_time or self.config.timings.page_load_wait)

        await self.effects.install()
        await self.effects.move_cursor(*self.cursor)
        if self.config.effects.camera_follow:
            await self.effects.enable_camera_follow(True, self.config.effects.zoom_level)

        if entry.selector:
            handle = await self.resolve(entry.selector)
            if handle is None:
                logger.warning("Entry selector not found: %s", entry.selector)
                return
            x, y = await self._center(handle)
            await self.move_cursor(x, y)
            await self.effects.highlight(entry.selector)

    # Main loop

    async def run(self) -> RunResult:
        """
        Open the entry point and execute every interaction.

        Raises:
            InteractionError / playwright Error: a step failed and
            recording.skipErrors is false
        """
        started = time.monotonic()
        budget = self.config.recording.duration / 1000

        await self.open_entry()
        logger.info("Starting demo: %s", self.config.name)

        interactions = self.config.interactions
        for index, interaction in enumerate(interactions):
            if time.monotonic() - started > budget:
                logger.warning(
                    "Recording duration %dms reached, %d steps not run",
                    self.config.recording.duration, len(interactions) - index
                )
                self.result.truncated = True
                break
            done = await self.execute(interaction, index)
            if done is True:
                self.result.completed += 1
            elif done is False:
                self.result.skipped += 1
        return self.result

    async def execute(self, interaction: InteractionConfig, index: int) -> Optional[bool]:
        """
        Run one interaction with its surrounding waits.

        Returns True when performed, False when skipped and None when it
        failed and the error was tolerated.
        """
        label = f"Step {index + 1}"
        timings = self.config.timings
        try:
            wait_before = interaction.wait_before_move
            await self._pause(timings.wait_before_move if wait_before is None else wait_before)

            done = await self.perform(interaction, label)
            if done and interaction.screenshot:
                await self.screenshot(index, interaction)

            wait_after = interaction.wait_after
            if wait_after is None and interaction.type == InteractionType.CLICK:
                wait_after = timings.wait_after_click
            await self._pause(wait_after)
        except (InteractionError, PlaywrightError) as e:
            logger.error("%s (%s) failed: %s", label, interaction.type.value, e)
            self.result.failed += 1
            self.result.errors.append(f"{label}: {e}")
            await self.error_screenshot(index, interaction)
            if not self.config.recording.skip_errors:
                raise
            done = None

        await self._pause(timings.wait_between_steps)
        return done

    async def perform(self, interaction: InteractionConfig, label: str) -> bool:
        kind = interaction.type
        if kind == InteractionType.CLICK:
            return await self.click(interaction, label)
        elif kind == InteractionType.HOVER:
            return await self.hover(interaction, label)
        elif kind == InteractionType.TYPE:
            return await self.type_text(interaction, label)
        elif kind == InteractionType.SCROLL:
            return await self.scroll(interaction, label)
        elif kind == InteractionType.WAIT:
            return await self.wait(interaction, label)
        elif kind == InteractionType.NAVIGATE:
            return await self.navigate(interaction, label)
        else:
            raise InteractionError(f"Unknown interaction type: {kind}")

    # Element resolution

    async def resolve(self, selector: str) -> Optional[ElementHandle]:
        """Wait for a visible element, retrying with increasing timeouts."""
        if not selector:
            return None
        for attempt, timeout in enumerate(SELECTOR_TIMEOUTS, start=1):
            if self.page.is_closed():
                raise InteractionError("Page closed while resolving selector")
            try:
                handle = await self.page.wait_for_selector(selector, state="visible", timeout=timeout)
            except PlaywrightTimeoutError:
                logger.debug("Attempt %d/%d for %s timed out after %dms",
                             attempt, len(SELECTOR_TIMEOUTS), selector, timeout)
                continue
            if handle is not None:
                return handle
        return None

    async def _require(self, interaction: InteractionConfig, label: str) -> Optional[ElementHandle]:
        handle = await self.resolve(interaction.selector)
        if handle is not None:
            return handle
        if interaction.skip_if_not_found:
            logger.warning("%s: element not found, skipping: %s",
                           label, interaction.selector or "<no selector>")
            return None
        raise InteractionError(f"Element not found: {interaction.selector or '<no selector>'}")

    async def _center(self, handle: ElementHandle) -> tuple[float, float]:
        box = await handle.bounding_box()
        if not box:
            raise InteractionError("Element is not rendered")
        return box["x"] + box["width"] / 2, box["y"] + box["height"] / 2

    # Cursor

    async def move_cursor(self, x: float, y: float, duration: int = MOVE_DURATION):
        """Move the virtual and real cursor along an eased path."""
        points = cursor_path(self.cursor, (x, y), self.config.effects.mouse_move_speed)
        delay = duration / 1000 / len(points)
        for px, py in points:
            if self.page.is_closed():
                raise InteractionError("Page closed during cursor move")
            await self.effects.move_cursor(px, py)
            await self.effects.update_camera_follow(px, py)
            await self.page.mouse.move(px, py)
            self.cursor = (px, py)
            await self._sleep(delay)

    # Interaction kinds

    async def _focus_on(self, handle: ElementHandle, zoom: float) -> tuple[float, float]:
        """Zoom toward an element and park the cursor on it."""
        x, y = await self._center(handle)
        if zoom and zoom > 1:
            await self.effects.zoom_to(zoom, x, y)
            await self._pause(ZOOM_SETTLE)
            x, y = await self._center(handle)
        await self.move_cursor(x, y)
        return x, y

    async def _finish_zoom(self):
        if not self.effects.camera_follow:
            await self.effects.reset_zoom()

    async def click(self, interaction: InteractionConfig, label: str) -> bool:
        handle = await self._require(interaction, label)
        if handle is None:
            return False
        logger.info("%s: %s", label, interaction.description or f"Click {interaction.selector}")

        zoom = interaction.zoom_level or self.config.effects.zoom_level
        x, y = await self._focus_on(handle, zoom)
        await self._pause(PRE_CLICK_PAUSE)
        await self.effects.animate_click(x, y)

        url_before = self.page.url
        await handle.click()
        if self.page.url != url_before:
            logger.info("%s: click navigated to %s", label, self.page.url)
            await self._settle_after_navigation()
        else:
            await self._pause(POST_CLICK_PAUSE)
            await self._finish_zoom()
        return True

    async def _settle_after_navigation(self):
        try:
            await self.page.wait_for_load_state("load", timeout=LOAD_STATE_TIMEOUT)
        except PlaywrightTimeoutError:
            logger.warning("Page did not finish loading after navigation: %s", self.page.url)
        await self.effects.install()

    async def type_text(self, interaction: InteractionConfig, label: str) -> bool:
        handle = await self._require(interaction, label)
        if handle is None:
            return False
        text = interaction.text or ""
        logger.info("%s: typing %d characters into %s", label, len(text), interaction.selector)

        x, y = await self._focus_on(handle, TYPE_ZOOM)
        await self.effects.animate_click(x, y)
        await handle.click()
        await self.page.keyboard.press("Control+A")
        await self.page.keyboard.press("Delete")
        for char in text:
            await self.page.keyboard.type(char)
            await self._sleep(random.uniform(*TYPE_DELAY_RANGE))
        await self._finish_zoom()
        return True

    async def hover(self, interaction: InteractionConfig, label: str) -> bool:
        handle = await self._require(interaction, label)
        if handle is None:
            return False
        logger.info("%s: hovering %s", label, interaction.selector)
        x, y = await self._center(handle)
        await self.move_cursor(x, y)
        await handle.hover()
        await self.effects.highlight(interaction.selector)
        return True

    async def scroll(self, interaction: InteractionConfig, label: str) -> bool:
        if not interaction.selector:
            raise InteractionError("Scroll requires a selector")
        handle = await self._require(interaction, label)
        if handle is None:
            return False
        logger.info("%s: scrolling to %s", label, interaction.selector)
        await handle.evaluate("el => el.scrollIntoView({behavior: 'smooth', block: 'center'})")
        await self._pause(SCROLL_SETTLE)
        x, y = await self._center(handle)
        await self.move_cursor(x, y, SCROLL_MOVE_DURATION)
        return True

    async def wait(self, interaction: InteractionConfig, label: str) -> bool:
        if interaction.selector:
            handle = await self._require(interaction, label)
            if handle is None:
                return False
        if interaction.load_state:
            logger.info("%s: waiting for %s", label, interaction.load_state)
            try:
                await self.page.wait_for_load_state(
                    interaction.load_state, timeout=LOAD_STATE_TIMEOUT
                )
            except PlaywrightTimeoutError:
                logger.warning("%s: page did not reach %s", label, interaction.load_state)
        duration = interaction.wait_time if interaction.wait_time is not None else DEFAULT_WAIT_TIME
        logger.info("%s: waiting %sms", label, duration)
        await self._pause(duration)
        return True

    async def navigate(self, interaction: InteractionConfig, label: str) -> bool:
        # Checked again here, not only at load time
        url = validate_and_sanitize_url(self.base_url, interaction.url)
        if url is None:
            raise InteractionError(f"Navigation target rejected: {interaction.url!r}")
        logger.info("%s: navigating to %s", label, url)
        await self.goto(url)
        await self._pause(self.config.timings.page_load_wait)
        await self.effects.install()
        return True

    # Screenshots

    async def screenshot(self, index: int, interaction: InteractionConfig):
        if self.storage is None:
            return
        path = self.storage.screenshot_path(self.feature, index + 1, interaction.type.value)
        full_page = interaction.type == InteractionType.WAIT and not interaction.selector
        await self.page.screenshot(path=str(path), full_page=full_page)
        self.result.screenshots.append(str(path))

    async def error_screenshot(self, index: int, interaction: InteractionConfig):
        if self.storage is None or self.page.is_closed():
            return
        path = self.storage.screenshot_path(
            self.feature, index + 1, interaction.type.value, error=True
        )
        try:
            await self.page.screenshot(path=str(path))
        except (PlaywrightError, OSError) as e:
            logger.debug("Error screenshot failed: %s", e)
