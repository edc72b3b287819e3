"""
Static discovery of features, components and interactive selectors.

Walks a project's source tree, finds feature directories by convention,
parses every component file with tree-sitter and records the elements a
demo can interact with.
"""
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config.settings import (
    SOURCE_EXTENSIONS, IGNORED_DIRS, MAX_SOURCE_FILE_SIZE, MEMORY_CHECK_INTERVAL
)
from .models import Component, ComponentKind, Feature, Selector, SelectorAction
from .planner import ROUTING_DIRS, infer_route
from .security import ResourceMonitor, is_file_size_acceptable
from . import source_parser

logger = logging.getLogger(__name__)

FEATURE_PARENT_DIRS = {"features", "pages", "views"}
FEATURE_SUFFIXES = ("Feature", "Page")

KIND_BY_DIR = {
    "pages": ComponentKind.PAGE,
    "views": ComponentKind.PAGE,
    "hooks": ComponentKind.HOOK,
    "services": ComponentKind.SERVICE,
    "utils": ComponentKind.UTIL,
    "helpers": ComponentKind.UTIL,
}

INPUT_TAGS = {"input", "textarea", "select"}
HOVER_HANDLERS = ("onMouseEnter", "onMouseOver")
CSS_IDENTIFIER = re.compile(r"^-?[_a-zA-Z][_a-zA-Z0-9-]*$")


class AnalysisError(Exception):
    """The project tree cannot be analyzed at all."""


@dataclass(frozen=True)
class CacheEntry:
    """Result of parsing one file at a given modification time."""
    mtime: float
    component: Optional[Component]


def is_ignored_dir(name: str) -> bool:
    return name in IGNORED_DIRS or name.startswith(".")


def is_feature_dir(path: Path) -> bool:
    if path.name in FEATURE_PARENT_DIRS:
        return False
    return path.parent.name in FEATURE_PARENT_DIRS or path.name.endswith(FEATURE_SUFFIXES)


def is_source_file(name: str) -> bool:
    return Path(name).suffix in SOURCE_EXTENSIONS and not name.endswith(".d.ts")


def source_files(directory: Path) -> list[Path]:
    """Component source files under directory, in a stable order."""
    files = []
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(d for d in dirnames if not is_ignored_dir(d))
        files.extend(Path(dirpath) / name for name in sorted(filenames) if is_source_file(name))
    return files


def component_kind(path: Path) -> ComponentKind:
    """Kind from the nearest conventionally-named ancestor directory."""
    for part in reversed(path.parent.parts):
        kind = KIND_BY_DIR.get(part.lower())
        if kind is not None:
            return kind
    return ComponentKind.COMPONENT


def locator_for(attrs: dict) -> Optional[str]:
    """Prefer a test id, then an id, then the first class name."""
    test_id = attrs.get("data-testid")
    if test_id:
        return f'[data-testid="{test_id}"]'
    element_id = attrs.get("id")
    if element_id and CSS_IDENTIFIER.match(element_id):
        return f"#{element_id}"
    class_name = attrs.get("className") or attrs.get("class")
    if class_name:
        first = class_name.split()[0] if class_name.split() else ""
        if CSS_IDENTIFIER.match(first):
            return f".{first}"
    return None


def element_label(element, attrs: dict) -> str:
    return (
        attrs.get("aria-label")
        or attrs.get("placeholder")
        or source_parser.element_text(element)
        or attrs.get("data-testid")
        or ""
    )


def extract_selectors(root) -> list[Selector]:
    """Selectors for every element with a test id or a click handler."""
    selectors = []
    for element in source_parser.jsx_elements(root):
        attrs = source_parser.attributes(element)
        if "data-testid" not in attrs and "onClick" not in attrs:
            continue
        locator = locator_for(attrs)
        if locator is None:
            continue

        tag = source_parser.tag_name(element)
        if "onClick" in attrs:
            action = SelectorAction.CLICK
        elif tag.lower() in INPUT_TAGS:
            action = SelectorAction.INPUT
        elif any(handler in attrs for handler in HOVER_HANDLERS):
            action = SelectorAction.HOVER
        else:
            action = SelectorAction.WAIT

        selectors.append(Selector(
            name=element_label(element, attrs) or tag,
            locator=locator,
            action=action,
            value=attrs.get("defaultValue") or None,
            input_type=attrs.get("type") if tag.lower() in INPUT_TAGS else None,
        ))
    return selectors


class CodebaseAnalyzer:
    """Finds features and components under a project root."""

    def __init__(self, monitor: Optional[ResourceMonitor] = None):
        self._cache: dict[Path, CacheEntry] = {}
        self.monitor = monitor or ResourceMonitor()
        self.files_parsed = 0
        self._files_seen = 0

    def analyze(self, root_dir) -> dict:
        """
        Analyze a project tree.

        Args:
            root_dir: Project root to scan

        Returns:
            dict with "features" (list[Feature]) and "components" (list[Component])

        Raises:
            AnalysisError: root_dir does not exist or is not a directory
        """
        root = Path(root_dir).resolve()
        if not root.is_dir():
            raise AnalysisError(f"Project directory not found: {root_dir}")

        logger.info("Analyzing codebase at %s", root)
        features = []
        for feature_dir in self._find_feature_dirs(root):
            features.append(self._analyze_feature(feature_dir, root))

        components = [c for f in features for c in f.components]
        logger.info(
            "Found %d features, %d components, %d selectors",
            len(features), len(components), sum(f.selector_count for f in features)
        )
        return {"features": features, "components": components}

    def _find_feature_dirs(self, root: Path) -> list[Path]:
        found = []
        for dirpath, dirnames, _ in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if not is_ignored_dir(d))
            current = Path(dirpath)
            if current != root and is_feature_dir(current):
                found.append(current)
                # Nested directories belong to this feature
                dirnames[:] = []
        return found

    def _analyze_feature(self, feature_dir: Path, root: Path) -> Feature:
        components = []
        for file_path in source_files(feature_dir):
            component = self.analyze_file(file_path)
            if component is not None:
                components.append(component)

        relative = feature_dir.relative_to(root)
        depth = len(relative.parts)
        is_main = any(part in ROUTING_DIRS for part in relative.parts[:-1])
        priority = (10 if is_main else 5) - depth

        return Feature(
            name=feature_dir.name,
            path=feature_dir,
            route=infer_route(relative, feature_dir.name),
            components=components,
            priority=priority,
        )

    def analyze_file(self, file_path: Path) -> Optional[Component]:
        """
        Parse one file into a Component, reusing the cached result when the
        file has not been modified since. Unparsable files yield None.
        """
        try:
            stat = file_path.stat()
        except OSError as e:
            logger.warning("Cannot stat %s: %s", file_path, e)
            return None

        cached = self._cache.get(file_path)
        if cached is not None and cached.mtime >= stat.st_mtime:
            logger.debug("Cache hit for %s", file_path)
            return cached.component

        self._files_seen += 1
        if self._files_seen % MEMORY_CHECK_INTERVAL == 0:
            self.monitor.check()

        component = None
        if not is_file_size_acceptable(stat.st_size, MAX_SOURCE_FILE_SIZE):
            logger.warning("Skipping %s: file exceeds %d bytes", file_path, MAX_SOURCE_FILE_SIZE)
        else:
            component = self._parse_component(file_path)

        self._cache[file_path] = CacheEntry(mtime=stat.st_mtime, component=component)
        return component

    def _parse_component(self, file_path: Path) -> Optional[Component]:
        try:
            tree = source_parser.parse_file(file_path)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read %s: %s", file_path, e)
            return None
        if tree is None:
            logger.warning("Skipping %s: parse failed", file_path)
            return None

        self.files_parsed += 1
        root = tree.root_node
        name = file_path.parent.name if file_path.stem == "index" else file_path.stem
        return Component(
            name=name,
            kind=component_kind(file_path),
            path=file_path,
            imports=source_parser.imports(root),
            exports=source_parser.exports(root),
            selectors=extract_selectors(root),
        )
