"""Mermaid class diagram extraction and basic well-formedness checks."""
from __future__ import annotations

import re
from typing import List

_MERMAID_BLOCK = re.compile(r"```mermaid\s*\n(.*?)```", re.DOTALL)
_ANY_BLOCK = re.compile(r"```[\w-]*\s*\n?(.*?)```", re.DOTALL)
_CLASS_NAME = re.compile(r"^\s*class\s+(\w+)", re.MULTILINE)
_RELATION = re.compile(r"(<\|--|--\|>|\*--|--\*|o--|--o|-->|<--|\.\.>|<\.\.|\.\.\|>|<\|\.\.|--|\.\.)")

HEADER = "classDiagram"


def extract_mermaid(text: str) -> str:
    """Pull the diagram out of a model answer."""

    match = _MERMAID_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    for block in _ANY_BLOCK.findall(text):
        if block.strip().startswith(HEADER):
            return block.strip()
    return text.strip()


def validate_class_diagram(code: str) -> List[str]:
    """Return a list of problems; empty means well formed."""

    errors: List[str] = []
    if not code.strip().startswith(HEADER):
        errors.append("Missing classDiagram declaration at start")

    depth = 0
    for number, line in enumerate(code.splitlines(), start=1):
        depth += line.count("{") - line.count("}")
        if depth < 0:
            errors.append(f"Unbalanced closing brace at line {number}")
            depth = 0
    if depth > 0:
        errors.append("Unbalanced braces: missing closing brace(s)")

    for name in _CLASS_NAME.findall(code):
        if name[0].isdigit():
            errors.append(f'Class name "{name}" cannot start with a number')
    return errors


def normalise_class_diagram(code: str) -> str:
    """Apply the cheap fixes: header and trailing braces."""

    fixed = code.strip()
    if not fixed.startswith(HEADER):
        fixed = f"{HEADER}\n{fixed}"
    missing = fixed.count("{") - fixed.count("}")
    if missing > 0:
        fixed += "\n" + "\n".join("}" for _ in range(missing))
    return fixed


def count_classes(code: str) -> int:
    return len(set(_CLASS_NAME.findall(code)))


def count_relationships(code: str) -> int:
    return sum(
        1
        for line in code.splitlines()
        if _RELATION.search(line) and "{" not in line and not line.strip().startswith(("+", "-", "#", "~"))
    )
