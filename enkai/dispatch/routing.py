"""Pick a model preset per task from its explicit override or inferred complexity."""

from collections import OrderedDict
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from .tasks import TaskDescriptor


class Complexity(Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


COMPLEX_KEYWORDS = (
    "アーキテクチャ", "architecture",
    "アルゴリズム", "algorithm",
    "ステートマシン", "state machine",
    "複雑な", "complex",
    "システム設計", "system design",
    "データ構造", "data structure",
    "最適化", "optimization",
)

MEDIUM_KEYWORDS = (
    "フォーム", "form",
    "api", "endpoint",
    "crud",
    "バリデーション", "validation",
    "コンポーネント", "component",
)

COMPLEX_LENGTH = 500
MEDIUM_LENGTH = 200


def analyze_complexity(prompt: str) -> Complexity:
    lowered = (prompt or "").lower()
    if any(k in lowered for k in COMPLEX_KEYWORDS) or len(prompt) > COMPLEX_LENGTH:
        return Complexity.COMPLEX
    if any(k in lowered for k in MEDIUM_KEYWORDS) or len(prompt) > MEDIUM_LENGTH:
        return Complexity.MEDIUM
    return Complexity.SIMPLE


def parse_complexity(value: Optional[str]) -> Optional[Complexity]:
    if not value:
        return None
    try:
        return Complexity(str(value).strip().lower())
    except ValueError:
        return None


class ModelRouter:
    """Maps tasks to model preset names.

    Order of precedence: the task's explicit ``model``, the route for its
    complexity (explicit or inferred), then ``default``.
    """

    def __init__(self, default: str, routes: Optional[Mapping[str, str]] = None):
        self.default = default
        self.routes: Dict[Complexity, str] = {}
        for key, preset in (routes or {}).items():
            complexity = parse_complexity(key)
            if complexity is not None and preset:
                self.routes[complexity] = preset

    def complexity_of(self, task: TaskDescriptor) -> Complexity:
        return parse_complexity(task.complexity) or analyze_complexity(task.instructions)

    def select(self, task: TaskDescriptor) -> str:
        if task.model:
            return task.model
        return self.routes.get(self.complexity_of(task), self.default)

    def group(self, tasks: Sequence[TaskDescriptor]) -> "OrderedDict[str, List[TaskDescriptor]]":
        """Group tasks by selected preset; first-seen preset order, submission order within."""
        groups: "OrderedDict[str, List[TaskDescriptor]]" = OrderedDict()
        for task in tasks:
            groups.setdefault(self.select(task), []).append(task)
        return groups
