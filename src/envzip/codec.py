"""Comment-preserving codec for flat ``KEY=VALUE`` files.

``parse`` reads a ``.env`` file into a plain mapping; ``serialize``
writes a mapping of updates back *into* the original text, leaving
comments, blank lines and malformed lines exactly where they were.

The round-trip constraint is:
    serialize(text, parse(text)) == text   (modulo the trailing newline)

Values are written on a single line.  Inside double quotes ``\\n``,
``\\r``, ``\\"`` and ``\\\\`` are escapes, so a value holding a PEM key
survives a write/read cycle unchanged.  When reading, a double-quoted
value may also span several physical lines.

Malformed input never raises: a line that is not a comment, not blank
and has no ``=`` is carried through ``serialize`` untouched and ignored
by ``parse``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

_QUOTES = ("'", '"')
_NEEDS_QUOTING = (" ", "#", '"', "\n", "\r")
_ESCAPES = {"n": "\n", "r": "\r", '"': '"', "\\": "\\"}


def _split_assignment(line: str) -> tuple[str, str] | None:
    """Split a line into ``(key, raw_value)``.

    Returns ``None`` for blank lines, comments, lines without ``=`` and
    lines whose key is empty.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    if "=" not in stripped:
        return None
    key, raw_value = stripped.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, raw_value.strip()


def _has_closing_quote(text: str) -> bool:
    """True if *text* holds a double quote not preceded by a backslash."""
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            return True
    return False


def _opens_block(line: str) -> bool:
    parts = _split_assignment(line)
    if parts is None:
        return False
    raw_value = parts[1]
    return raw_value.startswith('"') and not _has_closing_quote(raw_value[1:])


def _logical_lines(text: str) -> list[str]:
    """Split *text* into lines, joining multi-line double-quoted values.

    Only ``\\n`` and ``\\r\\n`` end a line.  An opening double quote that
    is never closed does not swallow the rest of the file: the line is
    then taken on its own.
    """
    physical = text.replace("\r\n", "\n").split("\n")
    if physical[-1] == "":
        physical.pop()

    result: list[str] = []
    i = 0
    while i < len(physical):
        line = physical[i]
        end = i
        if _opens_block(line):
            for j in range(i + 1, len(physical)):
                if _has_closing_quote(physical[j]):
                    end = j
                    break
        result.append("\n".join(physical[i : end + 1]))
        i = end + 1
    return result


def _decode_escapes(inner: str) -> str:
    out: list[str] = []
    chars = iter(inner)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        # Unknown escapes such as ``C:\dir`` are kept as written
        out.append(_ESCAPES.get(nxt, ch + nxt))
    return "".join(out)


def _unquote(value: str) -> str:
    """Strip exactly one layer of matching outer quotes.

    Escapes are only decoded inside double quotes; single-quoted values
    are taken literally.
    """
    if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
        inner = value[1:-1]
        if value[0] == '"':
            inner = _decode_escapes(inner)
        return inner
    return value


def format_value(value: str) -> str:
    """Render a value for the right-hand side of ``KEY=VALUE``.

    Values containing a space, ``#``, ``"`` or a line break are wrapped
    in double quotes, with backslashes, double quotes and line breaks
    escaped.  A value that already looks quoted is wrapped too, so
    parsing it back returns it unchanged.
    """
    looks_quoted = (
        len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]
    )
    if looks_quoted or any(ch in value for ch in _NEEDS_QUOTING):
        escaped = (
            value.replace("\\", "\\\\")
            .replace('"', '\\"')
            .replace("\n", "\\n")
            .replace("\r", "\\r")
        )
        return f'"{escaped}"'
    return value


def format_line(key: str, value: str) -> str:
    """Render a single ``KEY=VALUE`` line (no line ending)."""
    return f"{key}={format_value(value)}"


def parse(text: str) -> dict[str, str]:
    """Parse ``.env`` content into a key/value mapping.

    Args:
        text: File content.  ``\\n`` and ``\\r\\n`` endings are accepted.

    Returns:
        Mapping of key to unquoted value.  When a key appears more than
        once the last occurrence wins.
    """
    result: dict[str, str] = {}
    for line in _logical_lines(text):
        parts = _split_assignment(line)
        if parts is None:
            continue
        key, raw_value = parts
        result[key] = _unquote(raw_value)
    return result


def serialize(
    existing_text: str,
    updates: Mapping[str, str],
    removals: Iterable[str] = (),
) -> str:
    """Merge *updates* into *existing_text*.

    Args:
        existing_text: Current file content (may be empty).
        updates: Keys to set.  Keys already present are rewritten in
            place; new keys are appended at the end in mapping order.
        removals: Keys whose lines are dropped.

    Returns:
        The new file content, lines joined with ``\\n`` and no trailing
        newline.
    """
    removed = set(removals)
    seen: set[str] = set()
    lines: list[str] = []

    for line in _logical_lines(existing_text):
        parts = _split_assignment(line)
        if parts is None:
            lines.append(line)
            continue

        key, raw_value = parts
        if key in removed:
            continue
        if key in updates:
            seen.add(key)
            new_value = updates[key]
            # Keep the original spelling when the value is unchanged
            if _unquote(raw_value) == new_value:
                lines.append(line)
            else:
                lines.append(format_line(key, new_value))
            continue

        lines.append(line)

    for key, value in updates.items():
        if key in seen or key in removed:
            continue
        lines.append(format_line(key, value))

    return "\n".join(lines)
