"""
Tests for feature/component/selector discovery.
"""
import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from modules.extractor import (
    AnalysisError, CodebaseAnalyzer, component_kind, is_feature_dir, locator_for
)
from modules.models import ComponentKind, SelectorAction
from modules.security import ResourceMonitor
from modules import source_parser


def by_name(features):
    return {f.name: f for f in features}


class TestFeatureDetection:
    """Directory conventions"""

    def test_children_of_feature_parents(self):
        assert is_feature_dir(Path("src/features/billing"))
        assert is_feature_dir(Path("src/pages/home"))
        assert is_feature_dir(Path("src/views/reports"))

    def test_suffix_convention(self):
        assert is_feature_dir(Path("src/components/CheckoutFeature"))
        assert is_feature_dir(Path("src/screens/ProfilePage"))

    def test_container_dirs_are_not_features(self):
        assert not is_feature_dir(Path("src/features"))
        assert not is_feature_dir(Path("src/components/Button"))

    def test_component_kind_from_directory(self):
        assert component_kind(Path("src/pages/home/index.tsx")) == ComponentKind.PAGE
        assert component_kind(Path("src/features/a/hooks/useThing.ts")) == ComponentKind.HOOK
        assert component_kind(Path("src/services/api.ts")) == ComponentKind.SERVICE
        assert component_kind(Path("src/features/a/helpers/fmt.ts")) == ComponentKind.UTIL
        assert component_kind(Path("src/features/a/Widget.tsx")) == ComponentKind.COMPONENT


class TestLocators:
    """Locator preference"""

    def test_test_id_wins(self):
        attrs = {"data-testid": "save", "id": "save-btn", "className": "btn primary"}
        assert locator_for(attrs) == '[data-testid="save"]'

    def test_id_then_class(self):
        assert locator_for({"id": "save-btn", "className": "btn"}) == "#save-btn"
        assert locator_for({"className": "btn primary"}) == ".btn"

    def test_computed_or_unusable_values(self):
        assert locator_for({"data-testid": None}) is None
        assert locator_for({"className": "hover:bg-blue-500"}) is None
        assert locator_for({}) is None


class TestSourceParser:
    """tree-sitter helpers"""

    def test_parse_failure_returns_none(self):
        assert source_parser.parse_source(b"export const = <div className=", ".tsx") is None

    def test_unknown_extension(self):
        assert source_parser.parse_source(b"body {}", ".css") is None

    def test_imports_and_exports(self):
        tree = source_parser.parse_source(
            b"import a from './a';\n"
            b"import { b } from \"lib/b\";\n"
            b"export const one = 1, two = 2;\n"
            b"export function three() {}\n"
            b"export default class Four {}\n",
            ".ts",
        )
        assert source_parser.imports(tree.root_node) == ["./a", "lib/b"]
        assert source_parser.exports(tree.root_node) == ["one", "two", "three", "default"]

    def test_attributes(self):
        tree = source_parser.parse_source(
            b'const x = <button data-testid="go" disabled title={"hi"} onClick={run}>Go now</button>;',
            ".tsx",
        )
        element = next(source_parser.jsx_elements(tree.root_node))
        attrs = source_parser.attributes(element)
        assert source_parser.tag_name(element) == "button"
        assert attrs["data-testid"] == "go"
        assert attrs["disabled"] == ""
        assert attrs["title"] == "hi"
        assert attrs["onClick"] is None
        assert source_parser.element_text(element) == "Go now"


class TestCodebaseAnalyzer:
    """End-to-end analysis of a sample tree"""

    def test_missing_root_is_fatal(self, tmp_path):
        with pytest.raises(AnalysisError):
            CodebaseAnalyzer().analyze(tmp_path / "nope")

    def test_discovers_features(self, sample_project):
        result = CodebaseAnalyzer().analyze(sample_project)
        features = by_name(result["features"])

        assert set(features) == {"dashboard", "users", "settings"}
        assert features["dashboard"].route == "/dashboard"
        assert features["settings"].route == "/settings"
        # routed features outrank plain ones
        assert features["settings"].priority == 7
        assert features["dashboard"].priority == 2

    def test_malformed_file_does_not_abort(self, sample_project):
        result = CodebaseAnalyzer().analyze(sample_project)
        dashboard = by_name(result["features"])["dashboard"]
        assert [c.name for c in dashboard.components] == ["Dashboard"]

    def test_selectors(self, sample_project):
        result = CodebaseAnalyzer().analyze(sample_project)
        features = by_name(result["features"])

        dashboard = features["dashboard"].components[0]
        selectors = {s.locator: s for s in dashboard.selectors}
        assert selectors['[data-testid="refresh-button"]'].action == SelectorAction.CLICK
        assert selectors['[data-testid="refresh-button"]'].name == "Refresh"
        assert selectors['[data-testid="main-nav"]'].action == SelectorAction.WAIT
        assert "#email-input" not in selectors

        settings = features["settings"].components[0]
        assert settings.name == "settings"
        assert settings.kind == ComponentKind.PAGE
        actions = {s.locator: s.action for s in settings.selectors}
        assert actions == {
            '[data-testid="display-name-input"]': SelectorAction.INPUT,
            "#save": SelectorAction.CLICK,
        }

    def test_imports_exports_recorded(self, sample_project):
        result = CodebaseAnalyzer().analyze(sample_project)
        users = by_name(result["features"])["users"].components[0]
        assert users.exports == ("UserCard", "formatUser")
        dashboard = by_name(result["features"])["dashboard"].components[0]
        assert "../users/UserCard" in dashboard.imports

    def test_ignored_directories(self, sample_project):
        result = CodebaseAnalyzer().analyze(sample_project)
        assert "Ignored" not in by_name(result["features"])

    def test_oversized_file_skipped(self, tmp_path):
        feature = tmp_path / "src" / "features" / "big"
        feature.mkdir(parents=True)
        (feature / "Big.tsx").write_text("// x\n" * 10)
        with patch("modules.extractor.MAX_SOURCE_FILE_SIZE", 5):
            result = CodebaseAnalyzer().analyze(tmp_path)
        assert result["features"][0].components == ()


class TestCache:
    """(path, mtime) memoization"""

    def test_unchanged_file_not_reparsed(self, sample_project):
        analyzer = CodebaseAnalyzer()
        path = sample_project / "src" / "features" / "users" / "UserCard.tsx"

        first = analyzer.analyze_file(path)
        second = analyzer.analyze_file(path)

        assert first is second
        assert analyzer.files_parsed == 1

    def test_modified_file_reparsed(self, sample_project):
        analyzer = CodebaseAnalyzer()
        path = sample_project / "src" / "features" / "users" / "UserCard.tsx"
        analyzer.analyze_file(path)

        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        analyzer.analyze_file(path)

        assert analyzer.files_parsed == 2

    def test_parse_failure_cached_as_none(self, sample_project):
        analyzer = CodebaseAnalyzer()
        path = sample_project / "src" / "features" / "dashboard" / "Broken.tsx"

        assert analyzer.analyze_file(path) is None
        with patch("modules.extractor.source_parser.parse_file") as mock_parse:
            assert analyzer.analyze_file(path) is None
            mock_parse.assert_not_called()


class TestResourceMonitor:
    """Memory ceiling"""

    @patch("modules.security.gc.collect", return_value=0)
    @patch("modules.security.psutil.Process")
    def test_over_limit_collects(self, mock_process, mock_collect, caplog):
        mock_process.return_value.memory_info.return_value = MagicMock(rss=600 * 1024 * 1024)
        monitor = ResourceMonitor(limit_mb=512)

        assert monitor.check() is True
        mock_collect.assert_called_once()
        assert "High memory usage" in caplog.text

    @patch("modules.security.gc.collect")
    @patch("modules.security.psutil.Process")
    def test_under_limit_noop(self, mock_process, mock_collect):
        mock_process.return_value.memory_info.return_value = MagicMock(rss=100 * 1024 * 1024)
        assert ResourceMonitor(limit_mb=512).check() is False
        mock_collect.assert_not_called()

    def test_periodic_check(self, sample_project):
        monitor = MagicMock()
        analyzer = CodebaseAnalyzer(monitor=monitor)
        with patch("modules.extractor.MEMORY_CHECK_INTERVAL", 1):
            analyzer.analyze(sample_project)
        assert monitor.check.call_count == 4
