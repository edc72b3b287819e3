"""
Browser recording using Playwright.
Runs one recorded browser session per feature and finalizes its video.
"""
import logging
import time
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

from playwright.async_api import async_playwright
from playwright.async_api import Error as PlaywrightError

from config.settings import (
    VIDEO_WIDTH, VIDEO_HEIGHT, HEADLESS, EFFECTS_SCRIPT, MAX_TIMING_MS
)
from .config_loader import (
    DemoConfig, EntryConfig, InteractionConfig, RecordingConfig,
    find_all_configs, validate_and_merge_config
)
from .effects import EffectsController, load_script
from .engine import InteractionEngine, InteractionError
from .extractor import CodebaseAnalyzer
from .interactions import InteractionSynthesizer
from .models import ExecutionPath, Feature, InteractionPlan, InteractionType
from .planner import HierarchyPlanner
from .security import is_within
from .storage import StorageManager, artifact_name

logger = logging.getLogger(__name__)

# ExecutionStep.action -> how the engine performs it
STEP_TYPES = {
    "waitForLoadState": InteractionType.WAIT,
    "click": InteractionType.CLICK,
    "fill": InteractionType.TYPE,
    "hover": InteractionType.HOVER,
    "waitForSelector": InteractionType.WAIT,
    "screenshot": InteractionType.WAIT,
}


class BrowserLaunchError(Exception):
    """The browser could not be started."""


@dataclass
class FeatureResult:
    """Outcome of recording one feature."""
    feature: str
    source: str                                     # "config", "auto" or "interactions"
    success: bool = False
    video: Optional[str] = None
    screenshots: list[str] = field(default_factory=list)
    steps_completed: int = 0
    steps_skipped: int = 0
    steps_failed: int = 0
    error: Optional[str] = None
    duration: float = 0

    def to_dict(self) -> dict:
        return asdict(self)


class BrowserSession:
    """
    Async context manager owning playwright, browser, context and page.

    Teardown runs on every exit path and each step is guarded on its own,
    so a failing page.close() still lets the context and browser close.
    """

    def __init__(self, video_dir: Path, headless: bool = HEADLESS,
                 viewport: tuple[int, int] = (VIDEO_WIDTH, VIDEO_HEIGHT)):
        self.video_dir = Path(video_dir)
        self.headless = headless
        self.width, self.height = viewport
        self.playwright = None
        self.browser = None
        self.context = None
        self.page = None
        self.video_path: Optional[Path] = None

    async def __aenter__(self):
        try:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(headless=self.headless)
        except PlaywrightError as e:
            await self.close()
            raise BrowserLaunchError(f"Failed to launch browser: {e}") from e

        try:
            self.context = await self.browser.new_context(
                viewport={"width": self.width, "height": self.height},
                record_video_dir=str(self.video_dir),
                record_video_size={"width": self.width, "height": self.height}
            )
            self.page = await self.context.new_page()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False

    async def close(self):
        # The video path must be read before the page goes away
        if self.page is not None and self.video_path is None:
            try:
                video = self.page.video
                if video:
                    self.video_path = Path(await video.path())
            except Exception as e:
                logger.warning("Could not read video path: %s", e)

        steps = (
            ("page", self.page, "close"),
            ("context", self.context, "close"),
            ("browser", self.browser, "close"),
            ("playwright", self.playwright, "stop"),
        )
        for label, target, method in steps:
            if target is None:
                continue
            try:
                await getattr(target, method)()
            except Exception as e:
                logger.warning("Failed to close %s: %s", label, e)
        self.page = self.context = self.browser = self.playwright = None


def _validated(config: DemoConfig) -> DemoConfig:
    return DemoConfig.from_dict(validate_and_merge_config(config.to_dict()))


def config_for_path(path: ExecutionPath) -> DemoConfig:
    """Declarative form of an auto-derived execution path."""
    feature = path.feature
    interactions = []
    for step in path.steps:
        if step.action == "navigate":
            # Covered by the entry point
            continue
        kind = STEP_TYPES.get(step.action)
        if kind is None:
            raise ValueError(f"Unknown execution step action: {step.action}")
        interaction = InteractionConfig(
            type=kind,
            selector=step.selector,
            skip_if_not_found=True,
            description=step.description,
            screenshot=step.screenshot,
        )
        if kind == InteractionType.TYPE:
            interaction.text = step.value or ""
        if kind == InteractionType.WAIT:
            interaction.wait_time = step.wait
        else:
            interaction.wait_after = step.wait
        if step.action == "waitForLoadState":
            interaction.load_state = "load"
        interactions.append(interaction)

    return _validated(DemoConfig(
        name=feature.name,
        description=f"Automated walkthrough of {feature.name}",
        entry=EntryConfig(url=feature.route or "/"),
        interactions=interactions,
        recording=RecordingConfig(duration=MAX_TIMING_MS),
    ))


def config_for_plan(feature: Feature, plan: InteractionPlan) -> DemoConfig:
    """Declarative form of a synthesized interaction plan."""
    interactions = [
        InteractionConfig(
            type=step.action,
            selector=step.selector,
            text=step.value if step.action == InteractionType.TYPE else None,
            skip_if_not_found=True,
            description=step.description,
        )
        for step in plan.steps
    ]
    return _validated(DemoConfig(
        name=feature.name,
        description=plan.description,
        entry=EntryConfig(url=feature.route or "/"),
        interactions=interactions,
        recording=RecordingConfig(duration=MAX_TIMING_MS),
    ))


class DemoRecorder:
    """Records demo videos for scripts, features and whole projects."""

    def __init__(self, base_url: str, output_dir: Path = None, headless: bool = HEADLESS,
                 script_path: Path = EFFECTS_SCRIPT):
        self.base_url = base_url
        self.headless = headless
        self.script_path = script_path
        self.storage = StorageManager(output_dir)
        self.planner = HierarchyPlanner()
        self.synthesizer = InteractionSynthesizer()

    async def record_config(self, config: DemoConfig, feature: Optional[str] = None,
                            source: str = "config") -> FeatureResult:
        """
        Record one declarative script.

        Raises:
            ScriptValidationError: the effects script is not safe to inject
            BrowserLaunchError: the browser could not be started
        """
        name = feature or config.name
        result = FeatureResult(feature=name, source=source)
        # Fail before the browser starts if the page-side code is unverified
        load_script(self.script_path)

        started = time.time()
        session = BrowserSession(self.storage.raw_video_dir(), headless=self.headless)
        logger.info("Recording %s (%s)", name, source)
        try:
            async with session:
                effects = EffectsController(session.page, config.effects, self.script_path)
                engine = InteractionEngine(
                    session.page, config, effects, self.base_url,
                    storage=self.storage, feature=name
                )
                try:
                    await engine.run()
                    result.success = True
                except (InteractionError, PlaywrightError) as e:
                    logger.error("Recording of %s aborted: %s", name, e)
                    result.error = str(e)
                finally:
                    run = engine.result
                    result.steps_completed = run.completed
                    result.steps_skipped = run.skipped
                    result.steps_failed = run.failed
                    result.screenshots = list(run.screenshots)
        finally:
            result.duration = round(time.time() - started, 2)
            if session.video_path is not None:
                video = self.storage.finalize_video(
                    session.video_path, artifact_name(config.recording.output_name, name)
                )
                result.video = str(video) if video else None
        return result

    async def record_path(self, path: ExecutionPath) -> FeatureResult:
        return await self.record_config(
            config_for_path(path), feature=path.feature.name, source="auto"
        )

    async def record_plan(self, feature: Feature, plan: InteractionPlan) -> FeatureResult:
        return await self.record_config(
            config_for_plan(feature, plan), feature=feature.name, source="interactions"
        )

    def _config_for_feature(self, feature: Feature, configs: list[dict]) -> Optional[dict]:
        for entry in configs:
            if is_within(entry["path"].parent, feature.path):
                return entry
        return None

    async def record_project(self, project_root, only: Optional[list[str]] = None,
                             mode: str = "auto") -> list[FeatureResult]:
        """
        Analyze a project and record every feature in dependency order.

        Raises:
            AnalysisError: project_root does not exist
            ScriptValidationError: the effects script is not safe to inject
            BrowserLaunchError: the browser could not be started
        """
        # One shared script, so an unsafe one fails the whole run up front
        load_script(self.script_path)
        root = Path(project_root).resolve()
        analysis = CodebaseAnalyzer().analyze(root)
        features = self.planner.with_dependencies(analysis["features"])
        if only:
            features = [f for f in features if f.name in only]

        paths = self.planner.plan(features)
        configs = find_all_configs(root)
        used = set()
        results = []

        for path in paths:
            feature = path.feature
            entry = self._config_for_feature(feature, configs)
            if entry is not None:
                used.add(entry["path"])
                result = await self.record_config(entry["config"], feature=feature.name)
            elif mode == "interactions":
                plan = self.synthesizer.synthesize(feature)
                result = await self.record_plan(feature, plan)
            else:
                result = await self.record_path(path)
            results.append(result)

        if not only:
            for entry in configs:
                if entry["path"] in used:
                    continue
                results.append(await self.record_config(entry["config"]))

        self.storage.clean_raw()
        return results
