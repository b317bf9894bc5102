"""Heuristic detection of table-like text.

Deliberately permissive: a false positive only nudges schema mapping toward
row-oriented extraction.
"""

import re

MIN_LINES = 3
DELIMITER_RATIO = 0.3
NUMERIC_RATIO = 0.2
MIN_NUMBERS_PER_LINE = 3

_MULTI_SPACE = re.compile(r"\s{2,}")
_NUMBER = re.compile(r"[\d,]+\.?\d*")


def _count_numbers(line: str) -> int:
    # A bare run of commas is not a number
    return sum(1 for m in _NUMBER.findall(line) if any(c.isdigit() for c in m))


def detect_tabular_content(text: str | None) -> bool:
    lines = [line for line in (text or "").split("\n") if line.strip()]
    if len(lines) < MIN_LINES:
        return False

    threshold = len(lines) * DELIMITER_RATIO
    tab_lines = sum(1 for line in lines if "\t" in line)
    comma_lines = sum(1 for line in lines if line.count(",") > 2)
    space_lines = sum(1 for line in lines if len(_MULTI_SPACE.findall(line)) > 2)
    if tab_lines > threshold or comma_lines > threshold or space_lines > threshold:
        return True

    numeric_lines = sum(1 for line in lines if _count_numbers(line) >= MIN_NUMBERS_PER_LINE)
    return numeric_lines > len(lines) * NUMERIC_RATIO
