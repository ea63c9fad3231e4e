"""CSV Parser: turns raw delimited text into rows of named string fields.

The first non-blank line is the header row. Cells are comma-separated with
double-quote quoting; a doubled quote inside quotes is a literal quote.
Quoting never spans lines. Every cell is trimmed.
"""

import re

_LINE_BREAK = re.compile(r"\r?\n")


def _split_line(line: str) -> list[str]:
    """Split one line into trimmed cells, honouring double-quote quoting."""
    cells: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    cells.append("".join(current).strip())
    return cells


def _build_row(headers: list[str], values: list[str]) -> dict[str, str]:
    """Zip headers with cells; missing trailing cells become "", extras are dropped."""
    return {
        header: values[i] if i < len(values) else ""
        for i, header in enumerate(headers)
    }


def parse_csv(content: str) -> list[dict[str, str]]:
    """Parse CSV text into a list of header -> value rows.

    Blank lines are dropped wherever they occur. Text with no non-blank
    lines yields an empty list; a header with no data lines does too.
    """
    lines = [line.strip() for line in _LINE_BREAK.split(content)]
    lines = [line for line in lines if line]
    if not lines:
        return []

    headers = _split_line(lines[0])
    return [_build_row(headers, _split_line(line)) for line in lines[1:]]
