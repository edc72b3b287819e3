"""
Declarative demo scripts: loading, sanitizing and validation.

A script is a per-feature JSON (or YAML) document. It is stripped of
dangerous keys, merged over DEFAULT_CONFIG and validated field by field.
Any unsafe or out-of-range value is replaced by its default with a
warning; nothing invalid reaches the execution engine.
"""
import copy
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from config.settings import (
    CONFIG_FILENAMES, MAX_CONFIG_SIZE, MAX_CONFIG_DEPTH, MAX_INTERACTIONS,
    MIN_ZOOM, MAX_ZOOM, MIN_MOUSE_SPEED, MAX_MOUSE_SPEED
)
from .models import InteractionType
from .security import (
    has_traversal, is_file_size_acceptable, is_safe_url, is_within,
    sanitize_file_name, sanitize_text, validate_selector, validate_timing
)

logger = logging.getLogger(__name__)

DANGEROUS_KEYS = frozenset({"__proto__", "constructor", "prototype"})
VALID_TYPES = tuple(t.value for t in InteractionType)
MAX_NAME_LENGTH = 200
MAX_SCAN_NAME_LENGTH = 255
DEFAULT_WAIT_TIME = 2000
LOAD_STATES = ("load", "domcontentloaded", "networkidle")

DEFAULT_CONFIG = {
    "name": "Untitled Feature",
    "description": "Auto-generated demo",
    "entry": {
        "url": "/",
        "selector": None,
        "waitTime": 2000,
    },
    "interactions": [],
    "effects": {
        "cameraFollow": True,
        "zoomLevel": 1.6,
        "glowEffects": True,
        "clickAnimations": True,
        "mouseMoveSpeed": 60,
        "spotlightEffect": True,
    },
    "recording": {
        "duration": 30000,
        "skipErrors": True,
        "outputName": None,
    },
    "timings": {
        "waitBeforeMove": 1000,
        "waitAfterClick": 1500,
        "waitBetweenSteps": 800,
        "pageLoadWait": 2000,
    },
}

SAMPLE_CONFIG = {
    "name": "Dashboard Overview",
    "description": "Walk through the main dashboard",
    "entry": {"url": "/dashboard", "selector": "[data-testid=\"dashboard\"]", "waitTime": 2000},
    "interactions": [
        {"type": "click", "selector": "[data-testid=\"refresh-button\"]", "waitAfter": 1500},
        {"type": "type", "selector": "input[type=\"search\"]", "text": "quarterly report"},
        {"type": "hover", "selector": ".revenue-chart", "skipIfNotFound": True},
        {"type": "scroll", "selector": "#activity-feed"},
        {"type": "wait", "waitTime": 1000},
        {"type": "navigate", "url": "/settings"},
    ],
    "effects": copy.deepcopy(DEFAULT_CONFIG["effects"]),
    "recording": {"duration": 30000, "skipErrors": True, "outputName": "dashboard-demo"},
    "timings": copy.deepcopy(DEFAULT_CONFIG["timings"]),
}


class ConfigError(Exception):
    """A script file could not be read or is not acceptable at all."""


# Typed view handed to the engine

@dataclass
class EntryConfig:
    url: str = "/"
    selector: Optional[str] = None
    wait_time: float = 2000


@dataclass
class InteractionConfig:
    type: InteractionType
    selector: Optional[str] = None
    text: Optional[str] = None
    url: Optional[str] = None
    wait_before_move: Optional[float] = None
    wait_after: Optional[float] = None
    wait_time: Optional[float] = None
    skip_if_not_found: bool = False
    zoom_level: Optional[float] = None
    description: Optional[str] = None
    screenshot: bool = False
    load_state: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.type, str):
            self.type = InteractionType(self.type)


@dataclass
class EffectsConfig:
    camera_follow: bool = True
    zoom_level: float = 1.6
    glow_effects: bool = True
    click_animations: bool = True
    mouse_move_speed: int = 60
    spotlight_effect: bool = True


@dataclass
class RecordingConfig:
    duration: float = 30000
    skip_errors: bool = True
    output_name: Optional[str] = None


@dataclass
class TimingsConfig:
    wait_before_move: float = 1000
    wait_after_click: float = 1500
    wait_between_steps: float = 800
    page_load_wait: float = 2000


@dataclass
class DemoConfig:
    """Validated declarative script."""
    name: str = "Untitled Feature"
    description: str = "Auto-generated demo"
    entry: EntryConfig = field(default_factory=EntryConfig)
    interactions: list[InteractionConfig] = field(default_factory=list)
    effects: EffectsConfig = field(default_factory=EffectsConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    timings: TimingsConfig = field(default_factory=TimingsConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "DemoConfig":
        """Build from an already validated document."""
        entry, effects = data["entry"], data["effects"]
        recording, timings = data["recording"], data["timings"]
        return cls(
            name=data["name"],
            description=data["description"],
            entry=EntryConfig(
                url=entry["url"], selector=entry["selector"], wait_time=entry["waitTime"]
            ),
            interactions=[
                InteractionConfig(
                    type=item["type"],
                    selector=item.get("selector"),
                    text=item.get("text"),
                    url=item.get("url"),
                    wait_before_move=item.get("waitBeforeMove"),
                    wait_after=item.get("waitAfter"),
                    wait_time=item.get("waitTime"),
                    skip_if_not_found=item["skipIfNotFound"],
                    zoom_level=item.get("zoomLevel"),
                    description=item.get("description"),
                    screenshot=item.get("screenshot", False),
                    load_state=item.get("loadState"),
                )
                for item in data["interactions"]
            ],
            effects=EffectsConfig(
                camera_follow=effects["cameraFollow"],
                zoom_level=effects["zoomLevel"],
                glow_effects=effects["glowEffects"],
                click_animations=effects["clickAnimations"],
                mouse_move_speed=effects["mouseMoveSpeed"],
                spotlight_effect=effects["spotlightEffect"],
            ),
            recording=RecordingConfig(
                duration=recording["duration"],
                skip_errors=recording["skipErrors"],
                output_name=recording["outputName"],
            ),
            timings=TimingsConfig(
                wait_before_move=timings["waitBeforeMove"],
                wait_after_click=timings["waitAfterClick"],
                wait_between_steps=timings["waitBetweenSteps"],
                page_load_wait=timings["pageLoadWait"],
            ),
        )

    def to_dict(self) -> dict:
        """Convert back to the camelCase document form."""
        interactions = []
        for item in self.interactions:
            doc = {"type": item.type.value, "skipIfNotFound": item.skip_if_not_found}
            optional = {
                "selector": item.selector, "text": item.text, "url": item.url,
                "waitBeforeMove": item.wait_before_move, "waitAfter": item.wait_after,
                "waitTime": item.wait_time, "zoomLevel": item.zoom_level,
                "description": item.description, "loadState": item.load_state,
            }
            doc.update({k: v for k, v in optional.items() if v is not None})
            if item.screenshot:
                doc["screenshot"] = True
            interactions.append(doc)

        return {
            "name": self.name,
            "description": self.description,
            "entry": {
                "url": self.entry.url,
                "selector": self.entry.selector,
                "waitTime": self.entry.wait_time,
            },
            "interactions": interactions,
            "effects": {
                "cameraFollow": self.effects.camera_follow,
                "zoomLevel": self.effects.zoom_level,
                "glowEffects": self.effects.glow_effects,
                "clickAnimations": self.effects.click_animations,
                "mouseMoveSpeed": self.effects.mouse_move_speed,
                "spotlightEffect": self.effects.spotlight_effect,
            },
            "recording": {
                "duration": self.recording.duration,
                "skipErrors": self.recording.skip_errors,
                "outputName": self.recording.output_name,
            },
            "timings": {
                "waitBeforeMove": self.timings.wait_before_move,
                "waitAfterClick": self.timings.wait_after_click,
                "waitBetweenSteps": self.timings.wait_between_steps,
                "pageLoadWait": self.timings.page_load_wait,
            },
        }


# Document-level helpers

def sanitize_object(obj):
    """Copy of obj with prototype-pollution keys removed at every depth."""
    if isinstance(obj, dict):
        return {
            key: sanitize_object(value)
            for key, value in obj.items()
            if key not in DANGEROUS_KEYS
        }
    if isinstance(obj, list):
        return [sanitize_object(item) for item in obj]
    return obj


def deep_merge(base: dict, override: dict) -> dict:
    """Objects merge recursively; lists and scalars replace wholesale."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def coerce_bool(value, default: bool, field_name: str = None) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off", ""):
            return False
    if field_name:
        logger.warning("Invalid boolean for %s: %r, using default %s", field_name, value, default)
    return default


def _timing(value, default, field_name: str):
    validated = validate_timing(value, default)
    if value is not None and validated is not value:
        logger.warning("Invalid timing for %s: %r, using default %s", field_name, value, default)
    return validated


def _bounded(value, low, high, default, field_name: str):
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or value != value
        or not low <= value <= high
    ):
        logger.warning(
            "%s %r outside [%s, %s], using default %s", field_name, value, low, high, default
        )
        return default
    return value


def _selector(value, field_name: str) -> Optional[str]:
    cleaned, ok = validate_selector(value)
    if not ok:
        logger.warning("Rejected unsafe selector for %s", field_name)
    return cleaned


def _text_field(value, default: str, field_name: str) -> str:
    if not isinstance(value, str):
        logger.warning("Invalid %s: %r, using default", field_name, value)
        return default
    cleaned = sanitize_text(value)[:MAX_NAME_LENGTH].strip()
    return cleaned or default


def validate_interaction(item, index: int, timings: dict) -> Optional[dict]:
    """Validated copy of one interaction, or None when it is not an object."""
    label = f"interactions[{index}]"
    if not isinstance(item, dict):
        logger.warning("Dropping %s: not an object", label)
        return None

    kind = item.get("type")
    if kind not in VALID_TYPES:
        logger.warning("Invalid interaction type %r at %s, defaulting to click", kind, label)
        kind = InteractionType.CLICK.value
    result = {"type": kind}

    selector = item.get("selector")
    if kind != InteractionType.WAIT.value:
        if not isinstance(selector, str) or not selector:
            logger.warning("Missing selector at %s", label)
            result["selector"] = ""
        else:
            result["selector"] = _selector(selector, f"{label}.selector")
    elif selector is not None:
        result["selector"] = _selector(selector, f"{label}.selector")

    if kind == InteractionType.TYPE.value:
        text = item.get("text")
        if not isinstance(text, str):
            logger.warning("Missing text for type action at %s", label)
            result["text"] = ""
        else:
            result["text"] = sanitize_text(text)

    if kind == InteractionType.NAVIGATE.value:
        url = item.get("url")
        if not is_safe_url(url):
            logger.warning("Invalid or missing url for navigate action at %s", label)
            result["url"] = ""
        else:
            result["url"] = url

    if "waitBeforeMove" in item:
        result["waitBeforeMove"] = _timing(
            item["waitBeforeMove"], timings["waitBeforeMove"], f"{label}.waitBeforeMove"
        )
    if "waitAfter" in item:
        result["waitAfter"] = _timing(
            item["waitAfter"], timings["waitAfterClick"], f"{label}.waitAfter"
        )
    if kind == InteractionType.WAIT.value or "waitTime" in item:
        result["waitTime"] = _timing(item.get("waitTime"), DEFAULT_WAIT_TIME, f"{label}.waitTime")
    if kind == InteractionType.WAIT.value and "loadState" in item:
        if item["loadState"] in LOAD_STATES:
            result["loadState"] = item["loadState"]
        else:
            logger.warning("Ignoring loadState %r at %s", item["loadState"], label)

    result["skipIfNotFound"] = coerce_bool(
        item.get("skipIfNotFound"), False, f"{label}.skipIfNotFound"
    )

    if item.get("zoomLevel") is not None:
        zoom = item["zoomLevel"]
        if (
            isinstance(zoom, (int, float)) and not isinstance(zoom, bool)
            and MIN_ZOOM <= zoom <= MAX_ZOOM
        ):
            result["zoomLevel"] = zoom
        else:
            logger.warning("Ignoring zoomLevel %r at %s outside [%s, %s]", zoom, label, MIN_ZOOM, MAX_ZOOM)

    if "description" in item:
        description = sanitize_text(item["description"])[:MAX_NAME_LENGTH]
        if description:
            result["description"] = description
    if "screenshot" in item:
        result["screenshot"] = coerce_bool(item["screenshot"], False, f"{label}.screenshot")

    return result


def validate_and_merge_config(raw) -> dict:
    """
    Merge a document over DEFAULT_CONFIG and validate every field.

    Unknown keys are dropped. Applying this to its own output changes
    nothing.
    """
    if not isinstance(raw, dict):
        logger.warning("Configuration is not an object, using defaults")
        raw = {}
    merged = deep_merge(DEFAULT_CONFIG, sanitize_object(raw))
    defaults = DEFAULT_CONFIG

    for section in ("entry", "effects", "recording", "timings"):
        if not isinstance(merged.get(section), dict):
            logger.warning("Invalid %s section, using defaults", section)
            merged[section] = copy.deepcopy(defaults[section])

    # Timings first; interactions fall back to them
    timings = {}
    for key, default in defaults["timings"].items():
        timings[key] = _timing(merged["timings"].get(key), default, f"timings.{key}")

    entry_in = merged["entry"]
    entry_url = entry_in.get("url")
    if not is_safe_url(entry_url):
        logger.warning("Invalid entry url %r, using %s", entry_url, defaults["entry"]["url"])
        entry_url = defaults["entry"]["url"]
    entry_selector = _selector(entry_in.get("selector"), "entry.selector") or None
    entry = {
        "url": entry_url,
        "selector": entry_selector,
        "waitTime": _timing(entry_in.get("waitTime"), defaults["entry"]["waitTime"], "entry.waitTime"),
    }

    raw_interactions = merged.get("interactions")
    if not isinstance(raw_interactions, list):
        logger.warning("interactions must be a list, ignoring")
        raw_interactions = []
    if len(raw_interactions) > MAX_INTERACTIONS:
        logger.warning("Truncating %d interactions to %d", len(raw_interactions), MAX_INTERACTIONS)
        raw_interactions = raw_interactions[:MAX_INTERACTIONS]
    interactions = []
    for index, item in enumerate(raw_interactions):
        validated = validate_interaction(item, index, timings)
        if validated is not None:
            interactions.append(validated)

    effects_in, effect_defaults = merged["effects"], defaults["effects"]
    effects = {
        key: coerce_bool(effects_in.get(key), effect_defaults[key], f"effects.{key}")
        for key in ("cameraFollow", "glowEffects", "clickAnimations", "spotlightEffect")
    }
    effects["zoomLevel"] = _bounded(
        effects_in.get("zoomLevel"), MIN_ZOOM, MAX_ZOOM, effect_defaults["zoomLevel"],
        "effects.zoomLevel"
    )
    effects["mouseMoveSpeed"] = _bounded(
        effects_in.get("mouseMoveSpeed"), MIN_MOUSE_SPEED, MAX_MOUSE_SPEED,
        effect_defaults["mouseMoveSpeed"], "effects.mouseMoveSpeed"
    )

    recording_in = merged["recording"]
    output_name = recording_in.get("outputName")
    if output_name is not None:
        cleaned = sanitize_file_name(output_name)
        if cleaned != output_name:
            logger.warning("Sanitized recording.outputName %r to %r", output_name, cleaned)
        output_name = cleaned or None
    recording = {
        "duration": _timing(
            recording_in.get("duration"), defaults["recording"]["duration"], "recording.duration"
        ),
        "skipErrors": coerce_bool(
            recording_in.get("skipErrors"), defaults["recording"]["skipErrors"],
            "recording.skipErrors"
        ),
        "outputName": output_name,
    }

    return {
        "name": _text_field(merged.get("name"), defaults["name"], "name"),
        "description": _text_field(
            merged.get("description"), defaults["description"], "description"
        ),
        "entry": entry,
        "interactions": interactions,
        "effects": effects,
        "recording": recording,
        "timings": timings,
    }


def _read_document(path: Path):
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def load_config(config_path, root: Path = None) -> DemoConfig:
    """
    Load and validate a declarative script.

    Args:
        config_path: Path to demo.json / demo.yaml
        root: Optional directory the file must live under

    Raises:
        ConfigError: path rejected, file missing, too large or unparsable
    """
    if has_traversal(config_path):
        raise ConfigError(f"Rejected config path: {config_path!r}")
    path = Path(config_path)
    if root is not None and not is_within(path, root):
        raise ConfigError(f"Config path outside {root}: {config_path}")

    try:
        size = path.stat().st_size
    except OSError as e:
        raise ConfigError(f"Cannot read config {config_path}: {e}") from e
    if not path.is_file():
        raise ConfigError(f"Not a file: {config_path}")
    if not is_file_size_acceptable(size, MAX_CONFIG_SIZE):
        raise ConfigError(f"Config {config_path} exceeds {MAX_CONFIG_SIZE} bytes")

    try:
        document = _read_document(path)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read config {config_path}: {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e

    if not isinstance(document, dict):
        raise ConfigError(f"Config {config_path} must contain an object")

    return DemoConfig.from_dict(validate_and_merge_config(document))


def _is_suspicious_name(name: str) -> bool:
    return (
        "/" in name
        or "\\" in name
        or "\x00" in name
        or len(name) > MAX_SCAN_NAME_LENGTH
    )


def find_all_configs(root_dir, max_depth: int = MAX_CONFIG_DEPTH) -> list[dict]:
    """
    Locate every declarative script under root_dir.

    Symlinks leading outside the root are not followed and each resolved
    directory is visited once. Unreadable scripts are skipped.

    Returns:
        list of {"config": DemoConfig, "path": Path}
    """
    root = Path(root_dir).resolve()
    if not root.is_dir():
        return []

    results = []
    visited = set()

    def scan(directory: Path, depth: int):
        if depth > max_depth:
            return
        try:
            resolved = directory.resolve()
        except (OSError, RuntimeError):
            return
        if resolved in visited or not is_within(resolved, root):
            return
        visited.add(resolved)

        try:
            with os.scandir(resolved) as iterator:
                entries = sorted(iterator, key=lambda e: e.name)
        except OSError:
            return

        for entry in entries:
            if _is_suspicious_name(entry.name):
                continue
            try:
                is_dir = entry.is_dir()
            except OSError:
                continue
            if is_dir:
                if entry.name in ("node_modules", ".git") or entry.name.startswith("."):
                    continue
                scan(Path(entry.path), depth + 1)
            elif entry.name in CONFIG_FILENAMES:
                file_path = Path(entry.path)
                if not is_within(file_path, root):
                    continue
                try:
                    config = load_config(file_path, root=root)
                except ConfigError as e:
                    logger.debug("Skipping %s: %s", file_path, e)
                    continue
                results.append({"config": config, "path": file_path.resolve()})

    scan(root, 0)
    return results


def generate_sample_config(output_path, force: bool = False) -> Path:
    """Write a sample demo.json; refuses to overwrite unless forced."""
    path = Path(output_path)
    if path.exists() and not force:
        raise FileExistsError(f"{path} already exists (use force to overwrite)")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(SAMPLE_CONFIG, f, indent=2)
    logger.info("Sample config written to %s", path)
    return path
