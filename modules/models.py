"""
Data model shared by analysis, planning and execution.
Features and components are produced by the extractor; execution paths and
interaction plans are built from them fresh on every run.
"""
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field, asdict
from enum import Enum


class ComponentKind(str, Enum):
    """Role of a source file inside a feature."""
    PAGE = "page"
    COMPONENT = "component"
    HOOK = "hook"
    SERVICE = "service"
    UTIL = "util"


class SelectorAction(str, Enum):
    """What the executor should do with a discovered element."""
    CLICK = "click"
    INPUT = "input"
    HOVER = "hover"
    SCROLL = "scroll"
    WAIT = "wait"


class InteractionType(str, Enum):
    """Closed set of interaction kinds the engine can perform."""
    CLICK = "click"
    HOVER = "hover"
    TYPE = "type"
    SCROLL = "scroll"
    WAIT = "wait"
    NAVIGATE = "navigate"


@dataclass(frozen=True)
class Selector:
    """An interactive element: a locator plus the action to take on it."""
    name: str
    locator: str
    action: SelectorAction
    value: Optional[str] = None
    input_type: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.action, str):
            object.__setattr__(self, "action", SelectorAction(self.action))


@dataclass(frozen=True)
class Component:
    """One parsed source file."""
    name: str
    kind: ComponentKind
    path: Path
    imports: tuple = ()
    exports: tuple = ()
    selectors: tuple = ()

    def __post_init__(self):
        if isinstance(self.kind, str):
            object.__setattr__(self, "kind", ComponentKind(self.kind))
        object.__setattr__(self, "imports", tuple(self.imports))
        object.__setattr__(self, "exports", tuple(self.exports))
        object.__setattr__(self, "selectors", tuple(self.selectors))


@dataclass(frozen=True)
class Feature:
    """A cohesive, usually routable, UI area of the target application."""
    name: str
    path: Path
    route: Optional[str]
    components: tuple = ()
    dependencies: tuple = ()
    priority: int = 0

    def __post_init__(self):
        object.__setattr__(self, "components", tuple(self.components))
        object.__setattr__(self, "dependencies", tuple(self.dependencies))

    @property
    def selector_count(self) -> int:
        return sum(len(c.selectors) for c in self.components)


@dataclass
class ExecutionStep:
    """A single automation step of an execution path."""
    description: str
    action: str
    selector: Optional[str] = None
    value: Optional[str] = None
    screenshot: bool = False
    wait: int = 0                                   # milliseconds


@dataclass
class ExecutionPath:
    """A feature paired with the ordered steps that demo it."""
    feature: Feature
    steps: list[ExecutionStep] = field(default_factory=list)

    @property
    def duration(self) -> int:
        return sum(step.wait for step in self.steps)

    def to_dict(self) -> dict:
        return {
            "feature": self.feature.name,
            "route": self.feature.route,
            "duration": self.duration,
            "steps": [asdict(step) for step in self.steps],
        }


@dataclass
class InteractionStep:
    """A ranked interaction candidate produced by the synthesizer."""
    action: InteractionType
    selector: str
    description: str
    kind: str = "default"
    value: Optional[str] = None
    priority: int = 10

    def __post_init__(self):
        if isinstance(self.action, str):
            self.action = InteractionType(self.action)


@dataclass
class InteractionPlan:
    """Bounded list of interactions for one feature."""
    feature: str
    description: str
    steps: list[InteractionStep] = field(default_factory=list)
    estimated_duration: int = 0                     # milliseconds

    def to_dict(self) -> dict:
        return {
            "feature": self.feature,
            "description": self.description,
            "estimated_duration": self.estimated_duration,
            "steps": [
                {**asdict(step), "action": step.action.value}
                for step in self.steps
            ],
        }
