"""
Hierarchy planner: routes, execution paths and recording order.
"""
import logging
import os
import re
from pathlib import Path, PurePath
from typing import Optional

from .models import (
    ComponentKind, ExecutionPath, ExecutionStep, Feature, SelectorAction
)
from .sample_data import generate_sample_value

logger = logging.getLogger(__name__)

ROUTING_DIRS = ("pages", "views", "routes")
NAME_SUFFIXES = ("Feature", "Page")

NAVIGATE_WAIT = 2000
LOAD_STATE_WAIT = 1000
CLICK_WAIT = 1000
FILL_WAIT = 500
HOVER_WAIT = 500
SELECTOR_WAIT = 500
SCREENSHOT_WAIT = 500
MIN_STEPS = 3


def kebab_case(text: str) -> str:
    text = re.sub(r"([A-Z])", r"-\1", text).lower()
    text = re.sub(r"[\s_]+", "-", text)
    return re.sub(r"-{2,}", "-", text).strip("-")


def infer_route(relative_path: PurePath, name: str) -> Optional[str]:
    """
    Best-effort route for a feature directory.

    Everything after the last routing directory becomes the route; without
    one, the feature name (minus a Feature/Page suffix) is used. Returns None
    when nothing usable remains.
    """
    parts = list(PurePath(relative_path).parts)
    anchor = None
    for index, part in enumerate(parts[:-1]):
        if part in ROUTING_DIRS:
            anchor = index

    if anchor is not None:
        segments = [kebab_case(p) for p in parts[anchor + 1:] if "." not in p]
        segments = [s for s in segments if s]
        route = "/" + "/".join(segments)
        if route == "/index" or route.endswith("/index"):
            route = route[: -len("index")].rstrip("/") or "/"
        return route

    base = name
    for suffix in NAME_SUFFIXES:
        if base.endswith(suffix) and base != suffix:
            base = base[: -len(suffix)]
            break
    slug = kebab_case(base)
    return f"/{slug}" if slug else None


class HierarchyPlanner:
    """Builds execution paths and orders features by their dependencies."""

    def build_execution_path(self, feature: Feature) -> ExecutionPath:
        steps = []

        if feature.route:
            steps.append(ExecutionStep(
                description=f"Navigate to {feature.name}",
                action="navigate",
                value=feature.route,
                wait=NAVIGATE_WAIT,
            ))

        steps.append(ExecutionStep(
            description="Wait for page to load",
            action="waitForLoadState",
            wait=LOAD_STATE_WAIT,
        ))

        components = sorted(
            (c for c in feature.components if c.selectors),
            key=lambda c: 0 if c.kind == ComponentKind.PAGE else 1,
        )
        for component in components:
            for selector in component.selectors:
                steps.append(self._selector_step(selector, component.name))

        if len(steps) < MIN_STEPS:
            steps.append(ExecutionStep(
                description=f"Capture {feature.name} overview",
                action="screenshot",
                screenshot=True,
                wait=SCREENSHOT_WAIT,
            ))

        return ExecutionPath(feature=feature, steps=steps)

    def _selector_step(self, selector, component_name: str) -> ExecutionStep:
        if selector.action == SelectorAction.CLICK:
            return ExecutionStep(
                description=f"Click {selector.name} in {component_name}",
                action="click",
                selector=selector.locator,
                screenshot=True,
                wait=CLICK_WAIT,
            )
        if selector.action == SelectorAction.INPUT:
            return ExecutionStep(
                description=f"Fill {selector.name} in {component_name}",
                action="fill",
                selector=selector.locator,
                value=selector.value or generate_sample_value(selector.name, selector.input_type),
                wait=FILL_WAIT,
            )
        if selector.action == SelectorAction.HOVER:
            return ExecutionStep(
                description=f"Hover over {selector.name} in {component_name}",
                action="hover",
                selector=selector.locator,
                screenshot=True,
                wait=HOVER_WAIT,
            )
        return ExecutionStep(
            description=f"Wait for {selector.name} in {component_name}",
            action="waitForSelector",
            selector=selector.locator,
            wait=SELECTOR_WAIT,
        )

    def build_execution_paths(self, features: list[Feature]) -> list[ExecutionPath]:
        """One path per feature, highest priority first."""
        paths = [self.build_execution_path(f) for f in features]
        return sorted(paths, key=lambda p: p.feature.priority, reverse=True)

    def find_feature_by_import(self, import_path: str, importer: Path,
                               features: list[Feature]) -> Optional[Feature]:
        """Feature owning the module an import specifier points at."""
        if import_path.startswith("."):
            resolved = Path(os.path.normpath(Path(importer).parent / import_path))
            for feature in features:
                feature_root = Path(feature.path)
                if resolved == feature_root or feature_root in resolved.parents:
                    return feature
                for component in feature.components:
                    if Path(component.path).with_suffix("") == resolved:
                        return feature
            return None

        # Bare and aliased specifiers only match on a whole path segment
        segments = import_path.split("/")
        for feature in features:
            if feature.name in segments:
                return feature
        return None

    def build_dependency_graph(self, features: list[Feature]) -> dict[str, list[str]]:
        """Map each feature name to the names of features it imports from."""
        graph = {}
        for feature in features:
            deps = []
            for component in feature.components:
                for import_path in component.imports:
                    target = self.find_feature_by_import(import_path, component.path, features)
                    if target is not None and target.name != feature.name and target.name not in deps:
                        deps.append(target.name)
            graph[feature.name] = deps
        return graph

    def with_dependencies(self, features: list[Feature]) -> list[Feature]:
        """Copies of features with their dependency lists filled in."""
        graph = self.build_dependency_graph(features)
        return [
            Feature(
                name=f.name, path=f.path, route=f.route, components=f.components,
                dependencies=graph.get(f.name, []), priority=f.priority,
            )
            for f in features
        ]

    def optimize_execution_order(self, paths: list[ExecutionPath],
                                 graph: dict[str, list[str]]) -> list[ExecutionPath]:
        """
        Depth-first post-order over the dependency graph so that every
        feature is recorded after the features it depends on. Paths not
        reached by the traversal keep their original relative order.
        """
        by_name = {p.feature.name: p for p in paths}
        ordered = []
        visited = set()

        def visit(name: str):
            if name in visited or name not in by_name:
                return
            visited.add(name)
            for dep in graph.get(name, []):
                visit(dep)
            ordered.append(by_name[name])

        for path in paths:
            visit(path.feature.name)
        return ordered

    def plan(self, features: list[Feature]) -> list[ExecutionPath]:
        """Execution paths for every feature in recording order."""
        graph = self.build_dependency_graph(features)
        paths = self.build_execution_paths(features)
        ordered = self.optimize_execution_order(paths, graph)
        logger.info("Recording order: %s", " -> ".join(p.feature.name for p in ordered))
        return ordered
