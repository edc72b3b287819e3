"""
Python owner of the in-page cinematic controller.

One EffectsController is constructed per page. It validates the controller
script before it ever reaches the browser, injects it (a no-op when the page
already has it) and forwards camera commands to it.
"""
import logging
from pathlib import Path
from typing import Optional

from playwright.async_api import Page

from config.settings import EFFECTS_SCRIPT, MAX_SCRIPT_SIZE, VIDEO_WIDTH, VIDEO_HEIGHT
from .camera import camera_for, clamp, clamp_scale
from .config_loader import EffectsConfig

logger = logging.getLogger(__name__)

FORBIDDEN_PATTERNS = (
    "eval(",
    "Function(",
    "setTimeout(",
    "setInterval(",
    "document.write",
)

TYPE_ZOOM = 2.5
CLICK_ZOOM_DURATION = 600


class ScriptValidationError(Exception):
    """The controller script failed validation and must not be injected."""


def validate_script(source: str) -> str:
    """Return source unchanged if it is safe to inject, else raise."""
    if not isinstance(source, str) or not source.strip():
        raise ScriptValidationError("Effects script is empty")
    if len(source.encode("utf-8")) > MAX_SCRIPT_SIZE:
        raise ScriptValidationError(f"Effects script exceeds {MAX_SCRIPT_SIZE} bytes")
    for pattern in FORBIDDEN_PATTERNS:
        if pattern in source:
            raise ScriptValidationError(f"Effects script contains forbidden pattern: {pattern}")
    return source


def load_script(path: Path = EFFECTS_SCRIPT) -> str:
    try:
        source = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ScriptValidationError(f"Cannot read effects script {path}: {e}") from e
    return validate_script(source)


class EffectsController:
    """Drives window.cinematicControl inside one page."""

    def __init__(self, page: Page, effects: Optional[EffectsConfig] = None,
                 script_path: Path = EFFECTS_SCRIPT,
                 viewport: tuple[int, int] = (VIDEO_WIDTH, VIDEO_HEIGHT)):
        self.page = page
        self.effects = effects or EffectsConfig()
        self.zoom_level = clamp_scale(self.effects.zoom_level)
        self.camera_follow = False
        self.width, self.height = viewport
        # Validated up front so a bad script fails before any navigation
        self.script = load_script(script_path)
        self.installs = 0

    async def is_installed(self) -> bool:
        return bool(await self.page.evaluate("() => Boolean(window.cinematicControl)"))

    async def install(self) -> bool:
        """
        Inject the controller unless the current document already has it.
        Returns True when a new controller was installed.
        """
        if await self.is_installed():
            return False
        await self.page.evaluate(self.script)
        await self.page.evaluate(
            "(options) => window.cinematicControl && window.cinematicControl.configure(options)",
            {
                "zoomLevel": self.zoom_level,
                "glowEffects": self.effects.glow_effects,
                "clickAnimations": self.effects.click_animations,
                "spotlightEffect": self.effects.spotlight_effect,
            },
        )
        # A fresh document starts with follow off
        if self.camera_follow:
            await self._call("enableCameraFollow", True, self.zoom_level)
        self.installs += 1
        logger.debug("Cinematic controller installed (%d)", self.installs)
        return True

    async def _call(self, method: str, *args):
        return await self.page.evaluate(
            "([method, args]) => window.cinematicControl"
            " ? window.cinematicControl[method](...args) : null",
            [method, list(args)],
        )

    def _focus(self, x: float, y: float) -> tuple[float, float]:
        return clamp(x, 0, self.width), clamp(y, 0, self.height)

    async def zoom_to(self, scale: float, x: float, y: float,
                      duration: int = CLICK_ZOOM_DURATION):
        fx, fy = self._focus(x, y)
        target = camera_for(scale, fx, fy, self.width, self.height)
        logger.debug("Zoom %.2fx at (%.0f, %.0f), offset (%.1f, %.1f)",
                     target.scale, fx, fy, target.dx, target.dy)
        return await self._call("zoomTo", target.scale, fx, fy, duration)

    async def reset_zoom(self, duration: int = CLICK_ZOOM_DURATION):
        return await self._call("resetZoom", duration)

    async def highlight(self, selector: str):
        return await self._call("highlightElement", selector)

    async def clear_highlight(self):
        return await self._call("clearHighlight")

    async def animate_click(self, x: float, y: float):
        if not self.effects.click_animations:
            return None
        return await self._call("animateClick", x, y)

    async def move_cursor(self, x: float, y: float):
        return await self._call("moveCursor", x, y)

    async def enable_camera_follow(self, enabled: bool = True, zoom_level: float = None):
        self.camera_follow = enabled
        if zoom_level is not None:
            self.zoom_level = clamp_scale(zoom_level)
        return await self._call("enableCameraFollow", enabled, self.zoom_level)

    async def update_camera_follow(self, x: float, y: float):
        if not self.camera_follow:
            return None
        fx, fy = self._focus(x, y)
        return await self._call("updateCameraFollow", fx, fy)

    async def state(self) -> dict:
        return await self._call("getState") or {}
