from __future__ import annotations

from typing import Iterable, List

_NEEDS_QUOTES = (",", '"', "\n", "\r")


def tokenize(line: str) -> List[str]:
    """Split one CSV line into fields.

    Commas inside double quotes are literal and ``""`` inside quotes is one
    quote character. An unterminated quote is tolerated: whatever was collected
    is returned as the last field.
    """
    out: List[str] = []
    cur: List[str] = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < n and line[i + 1] == '"':
                    cur.append('"')
                    i += 2
                    continue
                in_quotes = False
            else:
                cur.append(ch)
            i += 1
            continue

        if ch == '"':
            in_quotes = True
        elif ch == ",":
            out.append("".join(cur))
            cur = []
        else:
            cur.append(ch)
        i += 1

    out.append("".join(cur))
    return out


def quote_field(value: str) -> str:
    if any(token in value for token in _NEEDS_QUOTES):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_row(fields: Iterable[str]) -> str:
    """Join fields into one CSV line that ``tokenize`` splits back identically."""
    return ",".join(quote_field(str(f)) for f in fields)
