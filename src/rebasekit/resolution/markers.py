"""Conflict marker detection and parsing."""

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Literal

START = "<<<<<<<"
BASE = "|||||||"
SEPARATOR = "======="
END = ">>>>>>>"

_MARKER_PATTERNS = [
    re.compile(rf"^{re.escape(marker)}", re.MULTILINE)
    for marker in (START, SEPARATOR, END)
]

_CODE_FENCE = re.compile(r"\A```[\w+#.-]*[ \t]*\n(.*\n)?```\Z", re.DOTALL)

_OPEN_OR_CLOSE = re.compile(
    rf"^(?:{re.escape(START)}|{re.escape(END)})", re.MULTILINE
)

LANGUAGES = {
    '.ts': 'typescript',
    '.tsx': 'typescript',
    '.js': 'javascript',
    '.jsx': 'javascript',
    '.json': 'json',
    '.md': 'markdown',
    '.css': 'css',
    '.scss': 'scss',
    '.html': 'html',
    '.yaml': 'yaml',
    '.yml': 'yaml',
    '.py': 'python',
    '.go': 'go',
    '.rs': 'rust',
    '.java': 'java',
    '.sql': 'sql',
}


def has_conflict_markers(content: str) -> bool:
    """True when all three conflict markers start a line somewhere.

    A lone "=======" (a Markdown underline, say) is not a conflict.
    """
    return all(pattern.search(content) for pattern in _MARKER_PATTERNS)


def has_unresolved_markers(content: str) -> bool:
    """Stricter check for model output.

    Any line-start "<<<<<<<" or ">>>>>>>" counts, so a reply that
    dropped only the separator is still unresolved.
    """
    return (
        has_conflict_markers(content)
        or _OPEN_OR_CLOSE.search(content) is not None
    )


def strip_code_fence(text: str) -> str:
    """Unwrap a reply that is exactly one fenced code block.

    Fences inside a longer reply (a Markdown file, a docstring
    example) are content and stay untouched.
    """
    match = _CODE_FENCE.match(text.strip())
    if not match:
        return text
    return match.group(1) or ""


def detect_language(path: str) -> str:
    return LANGUAGES.get(PurePosixPath(path).suffix.lower(), 'text')


@dataclass
class Conflict:
    """One conflict hunk."""

    ours_content: str
    theirs_content: str
    base_content: str | None
    context_before: list[str]
    context_after: list[str]
    ours_ref: str
    theirs_ref: str
    start_line: int
    end_line: int


def _find(lines: list[str], marker: str, start: int, stop_at=None):
    for j in range(start, len(lines)):
        if lines[j].startswith(marker):
            return j
        if stop_at and lines[j].startswith(stop_at):
            return None
    return None


def parse(content: str, context_lines: int = 10) -> list[Conflict]:
    """Parse every conflict hunk in a file.

    Handles both the default two-way layout and diff3 (with a
    ||||||| base section).

    Raises:
        ValueError: If a hunk has no separator or no end marker
    """
    conflicts = []
    lines = content.splitlines(keepends=True)
    i = 0

    while i < len(lines):
        if not lines[i].startswith(START):
            i += 1
            continue

        base_idx = _find(lines, BASE, i + 1, stop_at=SEPARATOR)
        separator_idx = _find(
            lines, SEPARATOR, (base_idx if base_idx else i) + 1
        )
        if separator_idx is None:
            raise ValueError(
                f"Malformed conflict at line {i + 1}: no separator found"
            )
        end_idx = _find(lines, END, separator_idx + 1)
        if end_idx is None:
            raise ValueError(
                f"Malformed conflict at line {i + 1}: no end marker found"
            )

        ours_end = base_idx if base_idx is not None else separator_idx
        base = (
            "".join(lines[base_idx + 1:separator_idx])
            if base_idx is not None else None
        )

        conflicts.append(Conflict(
            ours_content="".join(lines[i + 1:ours_end]).rstrip('\n\r'),
            theirs_content="".join(
                lines[separator_idx + 1:end_idx]
            ).rstrip('\n\r'),
            base_content=base.rstrip('\n\r') if base else None,
            context_before=[
                line.rstrip('\n\r')
                for line in lines[max(0, i - context_lines):i]
            ],
            context_after=[
                line.rstrip('\n\r')
                for line in lines[end_idx + 1:end_idx + 1 + context_lines]
            ],
            ours_ref=lines[i][len(START):].strip() or "ours",
            theirs_ref=lines[end_idx][len(END):].strip() or "theirs",
            start_line=i + 1,
            end_line=end_idx + 1,
        ))
        i = end_idx + 1

    return conflicts


def take_side(content: str, side: Literal["ours", "theirs"]) -> str:
    """Rebuild the file keeping one side of every conflict hunk.

    Text outside hunks is kept byte for byte.

    Raises:
        ValueError: If a hunk is malformed
    """
    lines = content.splitlines(keepends=True)
    out = []
    i = 0
    while i < len(lines):
        if not lines[i].startswith(START):
            out.append(lines[i])
            i += 1
            continue
        base_idx = _find(lines, BASE, i + 1, stop_at=SEPARATOR)
        separator_idx = _find(
            lines, SEPARATOR, (base_idx if base_idx else i) + 1
        )
        end_idx = (
            _find(lines, END, separator_idx + 1)
            if separator_idx is not None else None
        )
        if separator_idx is None or end_idx is None:
            raise ValueError(f"Malformed conflict at line {i + 1}")

        if side == "ours":
            ours_end = base_idx if base_idx is not None else separator_idx
            out.extend(lines[i + 1:ours_end])
        else:
            out.extend(lines[separator_idx + 1:end_idx])
        i = end_idx + 1
    return "".join(out)
