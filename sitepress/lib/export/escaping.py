"""Escaping of user-authored text embedded in generated source files."""

import json
import re

_JSX_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
    "{": "&#123;",
    "}": "&#125;",
}
_JSX_PATTERN = re.compile(r"[&<>\"'{}]")
_NEWLINES = re.compile(r"\r\n|\r|\n")
_CSS_UNSAFE = re.compile(r"[;{}<>\"'\\\r\n]")
_IDENTIFIER_PARTS = re.compile(r"[A-Za-z0-9]+")


def collapse_newlines(value: object) -> str:
    return _NEWLINES.sub(" ", "" if value is None else str(value))


def escape_jsx(value: object) -> str:
    """Escape text placed between JSX tags."""
    return _JSX_PATTERN.sub(lambda m: _JSX_ENTITIES[m.group(0)], collapse_newlines(value))


def js_string(value: object) -> str:
    """Render a value as a double-quoted JavaScript string literal."""
    return json.dumps("" if value is None else str(value))


def css_value(value: object) -> str:
    """Strip characters that could terminate a CSS declaration."""
    return _CSS_UNSAFE.sub("", "" if value is None else str(value)).strip()


def css_string(value: object) -> str:
    """Render a value as a quoted CSS string, e.g. a font family name."""
    text = collapse_newlines(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def pascal_case(value: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in _IDENTIFIER_PARTS.findall(value))


def component_name(prefix: str, value: str) -> str:
    """Build a valid JavaScript identifier such as ``AboutUsPage``."""
    name = pascal_case(value)
    return f"{prefix}{name}" if not name or name[0].isdigit() else name
