"""
Interaction plan synthesizer.

Re-scans a feature's files (independently of the extractor cache), ranks
every interactive element and trims the result to a short, well-ordered
demo: navigation first, then primary actions, form input and the rest.
"""
import logging
from pathlib import Path

from config.settings import MAX_SOURCE_FILE_SIZE
from .extractor import locator_for, source_files
from .models import Feature, InteractionPlan, InteractionStep, InteractionType
from .sample_data import generate_sample_value
from .security import is_file_size_acceptable
from . import source_parser

logger = logging.getLogger(__name__)

PRIORITIES = {
    "nav": 100,
    "button": 80,
    "a": 70,
    "input": 60,
    "select": 50,
    "checkbox": 40,
    "radio": 40,
    "div": 20,
}
DEFAULT_PRIORITY = 10

KIND_ALIASES = {
    "link": "a",
    "navlink": "nav",
    "textarea": "input",
}

TRIGGER_ATTRIBUTES = ("data-testid", "onClick", "onChange")
TEXT_INPUT_TAGS = {"input", "textarea"}

MAX_NAVIGATION = 1
MAX_PRIMARY = 3
MAX_INPUTS = 3
MAX_OTHER = 2
STEP_DURATION = 2000


def element_kind(tag: str, attrs: dict) -> str:
    kind = KIND_ALIASES.get(tag.lower(), tag.lower())
    if kind == "input" and (attrs.get("type") or "").lower() in ("checkbox", "radio"):
        return attrs["type"].lower()
    return kind


class InteractionSynthesizer:
    """Ranks and trims candidate interactions into an InteractionPlan."""

    def synthesize(self, feature: Feature) -> InteractionPlan:
        candidates = []
        for file_path in source_files(Path(feature.path)):
            candidates.extend(self.scan_file(file_path))

        unique = self.deduplicate(candidates)
        unique.sort(key=lambda step: step.priority, reverse=True)
        steps = self.build_flow(unique)

        logger.debug("%s: %d candidates, %d planned", feature.name, len(candidates), len(steps))
        return InteractionPlan(
            feature=feature.name,
            description=f"Interactive demo of {feature.name} feature",
            steps=steps,
            estimated_duration=len(steps) * STEP_DURATION,
        )

    def scan_file(self, file_path: Path) -> list[InteractionStep]:
        """Candidate interactions found in one file; unreadable files give none."""
        try:
            if not is_file_size_acceptable(file_path.stat().st_size, MAX_SOURCE_FILE_SIZE):
                return []
            tree = source_parser.parse_file(file_path)
        except OSError as e:
            logger.warning("Failed to read %s: %s", file_path, e)
            return []
        if tree is None:
            return []

        found = []
        for element in source_parser.jsx_elements(tree.root_node):
            attrs = source_parser.attributes(element)
            if not any(attr in attrs for attr in TRIGGER_ATTRIBUTES):
                continue
            locator = locator_for(attrs)
            if locator is None:
                continue
            found.append(self._candidate(element, attrs, locator))
        return found

    def _candidate(self, element, attrs: dict, locator: str) -> InteractionStep:
        tag = source_parser.tag_name(element)
        kind = element_kind(tag, attrs)
        label = (
            attrs.get("placeholder")
            or attrs.get("aria-label")
            or source_parser.element_text(element)
            or attrs.get("data-testid")
            or tag
        )

        if tag.lower() in TEXT_INPUT_TAGS and kind not in ("checkbox", "radio"):
            return InteractionStep(
                action=InteractionType.TYPE,
                selector=locator,
                description=f"Fill in {label}",
                kind=kind,
                value=generate_sample_value(label, attrs.get("type")),
                priority=PRIORITIES.get(kind, DEFAULT_PRIORITY),
            )
        return InteractionStep(
            action=InteractionType.CLICK,
            selector=locator,
            description=f"Click {label}",
            kind=kind,
            priority=PRIORITIES.get(kind, DEFAULT_PRIORITY),
        )

    def deduplicate(self, candidates: list[InteractionStep]) -> list[InteractionStep]:
        """Keep the first candidate for each (locator, action) pair."""
        seen = set()
        unique = []
        for step in candidates:
            key = (step.selector, step.action)
            if key not in seen:
                seen.add(key)
                unique.append(step)
        return unique

    def build_flow(self, ranked: list[InteractionStep]) -> list[InteractionStep]:
        """Partition ranked candidates and cap each group."""
        navigation, primary, inputs, other = [], [], [], []
        for step in ranked:
            if step.kind == "nav" or "nav" in step.selector:
                navigation.append(step)
            elif step.kind == "button":
                primary.append(step)
            elif step.action == InteractionType.TYPE:
                inputs.append(step)
            else:
                other.append(step)

        return (
            navigation[:MAX_NAVIGATION]
            + primary[:MAX_PRIMARY]
            + inputs[:MAX_INPUTS]
            + other[:MAX_OTHER]
        )
