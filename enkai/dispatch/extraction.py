"""Pluggable post-processors that pull the payload out of raw model output."""

import re
from typing import Callable, Iterable, Optional

Extractor = Callable[[str], str]

DEFAULT_LANGUAGE_TAGS = (
    "typescript", "tsx", "ts", "jsx", "js",
    "python", "py", "go", "java", "cpp", "c",
)


class CodeBlockExtractor:
    """Return the body of the first fenced code block tagged with a known language.

    An untagged fence also matches. When no block is found the raw response is
    returned verbatim.
    """

    def __init__(self, language_tags: Optional[Iterable[str]] = None):
        tags = tuple(language_tags) if language_tags is not None else DEFAULT_LANGUAGE_TAGS
        self.language_tags = tags
        # Longest tags first so "typescript" is not read as "ts" + "cript".
        alternatives = "|".join(re.escape(t) for t in sorted(tags, key=len, reverse=True))
        self._pattern = re.compile(
            rf"```(?:{alternatives})?[ \t]*\r?\n(.*?)```" if alternatives
            else r"```[ \t]*\r?\n(.*?)```",
            re.DOTALL,
        )

    def __call__(self, raw_text: str) -> str:
        return self.extract(raw_text)

    def extract(self, raw_text: str) -> str:
        match = self._pattern.search(raw_text or "")
        return match.group(1) if match else (raw_text or "")


def identity(raw_text: str) -> str:
    """Extractor that keeps the raw response."""
    return raw_text


extract_code_block: Extractor = CodeBlockExtractor()
