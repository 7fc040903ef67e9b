"""TaskSplitter: turns one free-text objective into ordered task descriptors."""

import posixpath
import re
import time
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..logger import get_logger
from .board import MINUTES_PER_TASK, TaskBoard
from .tasks import Priority, TaskDescriptor

_log = get_logger(__name__)

# Newlines and "。" always end a sentence; "." only when followed by
# whitespace or the end of text, so file names like "LoginForm.tsx" survive.
_SENTENCE_RE = re.compile(r"\n|。|\.(?=\s|$)")
_LIST_SEPARATOR_RE = re.compile(r"[、,]")
_SCOPE_WORD_RE = re.compile(r"\b(?:all|each)\b", re.IGNORECASE)
_SCOPE_SUBSTRINGS = ("全て", "各")


@dataclass(frozen=True)
class SplitResult:
    batch_id: str
    tasks: List[TaskDescriptor]
    estimated_time: str

    @property
    def total_files(self) -> int:
        return len(self.tasks)


def new_batch_id() -> str:
    return f"task-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def estimate_time(task_count: int) -> str:
    """Illustrative completion time, ``MINUTES_PER_TASK`` per task: "50m", "1h 10m", "2h"."""
    minutes = max(0, task_count) * MINUTES_PER_TASK
    if minutes < 60:
        return f"{minutes}m"
    hours, remaining = divmod(minutes, 60)
    return f"{hours}h {remaining}m" if remaining else f"{hours}h"


def split_sentences(description: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_RE.split(description) if s.strip()]


def _mentions_all(sentence: str) -> bool:
    if _SCOPE_WORD_RE.search(sentence):
        return True
    return any(word in sentence for word in _SCOPE_SUBSTRINGS)


def assign_sentences(sentences: Sequence[str], target_files: Sequence[str]) -> List[str]:
    """One instruction per target file, built from the sentences that file claims.

    A sentence is claimed by every file whose name it contains, and by all
    files when it carries a universal-scope word ("all", "each", ...).
    """
    instructions = []
    for file in target_files:
        claimed = [s for s in sentences if file in s or _mentions_all(s)]
        if claimed:
            instructions.append(f"{file}: {'. '.join(claimed)}")
        else:
            instructions.append(file)
    return instructions


def split_list_items(sentences: Sequence[str]) -> List[str]:
    items = []
    for sentence in sentences:
        if _LIST_SEPARATOR_RE.search(sentence):
            items.extend(p.strip() for p in _LIST_SEPARATOR_RE.split(sentence) if p.strip())
        else:
            items.append(sentence)
    return items


class TaskSplitter:
    """Splits descriptions into tasks; registers them in ``board`` when one is given."""

    def __init__(self, board: Optional[TaskBoard] = None):
        self.board = board

    def split(self, description: str, target_files: Optional[Sequence[str]] = None) -> SplitResult:
        if not description or not description.strip():
            raise ValueError("description must not be empty")

        sentences = split_sentences(description)
        files = [f for f in (target_files or []) if f]
        if files:
            pieces = assign_sentences(sentences, files)
        else:
            pieces = split_list_items(sentences)
        if not pieces:
            pieces = [description]

        batch_id = new_batch_id()
        tasks = []
        for index, text in enumerate(pieces):
            if files:
                destination = files[index]
                name = posixpath.basename(destination.replace("\\", "/")) or destination
            else:
                destination = name = f"task-{index + 1}.md"
            tasks.append(TaskDescriptor.create(
                id=f"{batch_id}-{index + 1}",
                name=name,
                instructions=text,
                destination=destination,
                priority=Priority.HIGH if index == 0 else Priority.MEDIUM,
            ))

        if self.board is not None:
            self.board.add_tasks(tasks)
        _log.debug("Split %s into %d task(s)", batch_id, len(tasks))

        return SplitResult(
            batch_id=batch_id,
            tasks=tasks,
            estimated_time=estimate_time(len(tasks)),
        )


def split(description: str, target_files: Optional[Sequence[str]] = None) -> List[TaskDescriptor]:
    """Split ``description`` into an ordered task list without registering it anywhere."""
    return TaskSplitter().split(description, target_files).tasks
