"""
Tests for route inference, execution paths and dependency ordering.
"""
from pathlib import Path, PurePath

import pytest

from modules.extractor import CodebaseAnalyzer
from modules.models import Component, ComponentKind, Feature, Selector, SelectorAction
from modules.planner import HierarchyPlanner, infer_route, kebab_case


def feature(name, path=None, components=(), priority=0, route="/x"):
    return Feature(name=name, path=Path(path or f"/app/src/features/{name}"),
                   route=route, components=components, priority=priority)


def component(name, path, imports=(), selectors=(), kind=ComponentKind.COMPONENT):
    return Component(name=name, kind=kind, path=Path(path), imports=imports, selectors=selectors)


class TestRouteInference:
    """Routes from directory layout"""

    def test_after_routing_directory(self):
        assert infer_route(PurePath("src/pages/UserProfile"), "UserProfile") == "/user-profile"
        assert infer_route(PurePath("app/routes/admin/AuditLog"), "AuditLog") == "/admin/audit-log"

    def test_index_collapses(self):
        assert infer_route(PurePath("src/pages/index"), "index") == "/"
        assert infer_route(PurePath("src/views/settings/index"), "index") == "/settings"

    def test_segments_with_dots_dropped(self):
        assert infer_route(PurePath("src/pages/v1.2/reports"), "reports") == "/reports"

    def test_fallback_to_name(self):
        assert infer_route(PurePath("src/features/BillingFeature"), "BillingFeature") == "/billing"
        assert infer_route(PurePath("src/components/ProfilePage"), "ProfilePage") == "/profile"

    def test_unmapped_name_has_no_route(self):
        assert infer_route(PurePath("src/features/___"), "___") is None

    def test_kebab_case(self):
        assert kebab_case("UserManagement") == "user-management"
        assert kebab_case("user_settings") == "user-settings"


class TestExecutionPath:
    """Step construction"""

    def test_step_order_and_kinds(self):
        page = component("Home", "/app/src/pages/home/Home.tsx", kind=ComponentKind.PAGE, selectors=[
            Selector(name="Email", locator="#email", action=SelectorAction.INPUT, input_type="email"),
        ])
        widget = component("Widget", "/app/src/pages/home/Widget.tsx", selectors=[
            Selector(name="Go", locator="#go", action=SelectorAction.CLICK),
            Selector(name="Card", locator=".card", action=SelectorAction.HOVER),
            Selector(name="Panel", locator="#panel", action=SelectorAction.WAIT),
        ])
        # widget listed first; page components still come first in the path
        path = HierarchyPlanner().build_execution_path(
            feature("home", components=[widget, page], route="/home")
        )

        assert [s.action for s in path.steps] == [
            "navigate", "waitForLoadState", "fill", "click", "hover", "waitForSelector"
        ]
        assert path.steps[0].value == "/home"
        assert path.steps[2].value == "demo@example.com"
        assert path.steps[3].screenshot is True
        assert path.steps[3].description == "Click Go in Widget"
        assert path.duration == 2000 + 1000 + 500 + 1000 + 500 + 500

    def test_screenshot_appended_for_short_paths(self):
        path = HierarchyPlanner().build_execution_path(feature("empty"))
        assert [s.action for s in path.steps] == ["navigate", "waitForLoadState", "screenshot"]
        assert path.steps[-1].screenshot is True

    def test_no_route_skips_navigation(self):
        path = HierarchyPlanner().build_execution_path(feature("empty", route=None))
        assert path.steps[0].action == "waitForLoadState"

    def test_sample_value_from_label(self):
        comp = component("Form", "/app/src/features/f/Form.tsx", selectors=[
            Selector(name="Search products", locator="#q", action=SelectorAction.INPUT),
            Selector(name="Phone", locator="#p", action=SelectorAction.INPUT, value="555"),
        ])
        path = HierarchyPlanner().build_execution_path(feature("f", components=[comp]))
        values = [s.value for s in path.steps if s.action == "fill"]
        assert values == ["test search", "555"]

    def test_paths_sorted_by_priority(self):
        planner = HierarchyPlanner()
        paths = planner.build_execution_paths([
            feature("low", priority=1), feature("high", priority=9), feature("mid", priority=5)
        ])
        assert [p.feature.name for p in paths] == ["high", "mid", "low"]


class TestDependencyGraph:
    """Import edges between features"""

    def test_relative_import_resolves_to_component(self):
        users = feature("users", components=[
            component("UserCard", "/app/src/features/users/UserCard.tsx")
        ])
        dashboard = feature("dashboard", components=[
            component("Dashboard", "/app/src/features/dashboard/Dashboard.tsx",
                      imports=["../users/UserCard", "./local", "react"])
        ])
        graph = HierarchyPlanner().build_dependency_graph([dashboard, users])
        assert graph == {"dashboard": ["users"], "users": []}

    def test_alias_import_matches_feature_segment(self):
        billing = feature("billing")
        checkout = feature("checkout", components=[
            component("Checkout", "/app/src/features/checkout/Checkout.tsx",
                      imports=["@/features/billing/api"])
        ])
        graph = HierarchyPlanner().build_dependency_graph([checkout, billing])
        assert graph["checkout"] == ["billing"]

    def test_no_self_edges(self):
        a = feature("a", components=[
            component("A", "/app/src/features/a/A.tsx", imports=["./B", "@/features/a/util"])
        ])
        assert HierarchyPlanner().build_dependency_graph([a]) == {"a": []}

    def test_package_import_ignores_project_directory_name(self):
        alpha = feature("Alpha", path=Path("/work/my-react-app/src/features/Alpha"), components=[
            component("Alpha", "/work/my-react-app/src/features/Alpha/Alpha.tsx",
                      imports=["../../pages/Beta/Beta"])
        ])
        beta = feature("Beta", path=Path("/work/my-react-app/src/pages/Beta"), components=[
            component("Beta", "/work/my-react-app/src/pages/Beta/Beta.tsx", imports=["react"])
        ])
        planner = HierarchyPlanner()

        graph = planner.build_dependency_graph([alpha, beta])
        ordered = planner.optimize_execution_order(
            [planner.build_execution_path(alpha), planner.build_execution_path(beta)], graph
        )

        assert graph == {"Alpha": ["Beta"], "Beta": []}
        assert [p.feature.name for p in ordered] == ["Beta", "Alpha"]


class TestExecutionOrder:
    """Dependencies are recorded first"""

    def paths(self, *names):
        planner = HierarchyPlanner()
        return [planner.build_execution_path(feature(n)) for n in names]

    def test_dependency_before_dependent(self):
        planner = HierarchyPlanner()
        ordered = planner.optimize_execution_order(
            self.paths("a", "b", "c"), {"a": ["b"], "b": ["c"], "c": []}
        )
        assert [p.feature.name for p in ordered] == ["c", "b", "a"]

    @pytest.mark.parametrize("graph", [
        {"a": ["c"], "b": [], "c": ["b"]},
        {"a": [], "b": ["a"], "c": ["a", "b"]},
        {"a": ["b", "c"], "b": ["c"], "c": []},
    ])
    def test_every_edge_respected(self, graph):
        ordered = HierarchyPlanner().optimize_execution_order(self.paths("a", "b", "c"), graph)
        position = {p.feature.name: i for i, p in enumerate(ordered)}
        for name, deps in graph.items():
            for dep in deps:
                assert position[dep] < position[name]

    def test_independent_features_keep_order(self):
        ordered = HierarchyPlanner().optimize_execution_order(
            self.paths("x", "y", "z"), {"x": [], "y": [], "z": []}
        )
        assert [p.feature.name for p in ordered] == ["x", "y", "z"]

    def test_cycle_terminates(self):
        ordered = HierarchyPlanner().optimize_execution_order(
            self.paths("a", "b"), {"a": ["b"], "b": ["a"]}
        )
        assert sorted(p.feature.name for p in ordered) == ["a", "b"]

    def test_sample_project_order(self, sample_project):
        features = CodebaseAnalyzer().analyze(sample_project)["features"]
        ordered = HierarchyPlanner().plan(features)
        assert [p.feature.name for p in ordered] == ["settings", "users", "dashboard"]
