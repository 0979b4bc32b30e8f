#!/usr/bin/env python3
"""
Form data helpers.

Ecowitt stations upload readings as application/x-www-form-urlencoded bodies.
Form data is an ordered multi-map: a key may appear more than once and the
order of its values matters. Internally it is held as Dict[str, List[str]].
"""

import re
from typing import Any, Dict, Iterable, List, Tuple
from urllib.parse import unquote_to_bytes, urlencode

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Largest url-encoded body accepted from a station
MAX_FORM_BYTES = 10 * 1024 * 1024

FormValues = Dict[str, List[str]]

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class FormParseError(ValueError):
    """Raised when inbound form data cannot be decoded."""


def normalize_form(values: Any) -> FormValues:
    """
    Copy form data into an ordered Dict[str, List[str]].

    Accepts werkzeug MultiDicts (anything with a ``lists()`` method), mappings
    of key -> list of values, mappings of key -> scalar, or an iterable of
    (key, value) pairs. Raises FormParseError for anything else.
    """
    if values is None:
        return {}

    if hasattr(values, "lists"):
        items: Iterable[Tuple[Any, Any]] = values.lists()
    elif hasattr(values, "items"):
        items = values.items()
    else:
        try:
            items = list(values)
        except TypeError as e:
            raise FormParseError(f"unsupported form data type {type(values).__name__}") from e

    form: FormValues = {}
    for entry in items:
        try:
            key, value = entry
        except (TypeError, ValueError) as e:
            raise FormParseError(f"malformed form field {entry!r}") from e

        if isinstance(value, (list, tuple)):
            new_values = [str(v) for v in value]
        else:
            new_values = [str(value)]
        form.setdefault(str(key), []).extend(new_values)
    return form


def parse_form_body(body: bytes) -> FormValues:
    """
    Strictly parse an x-www-form-urlencoded body.

    Empty pairs (``a=1&&b=2``) are skipped. Invalid UTF-8 (raw or percent-escaped),
    malformed percent escapes and ``;`` separators are rejected with FormParseError.
    """
    if not body:
        return {}

    try:
        text = body.decode("utf-8") if isinstance(body, (bytes, bytearray)) else body
    except UnicodeDecodeError as e:
        raise FormParseError(f"form body is not valid UTF-8: {e}") from e

    form: FormValues = {}
    for pair in text.split("&"):
        if not pair:
            continue
        if ";" in pair:
            raise FormParseError("invalid semicolon separator in form data")

        key, _, value = pair.partition("=")
        for part in (key, value):
            if _BAD_ESCAPE.search(part):
                raise FormParseError(f"invalid URL escape in {part!r}")

        form.setdefault(_unquote(key), []).append(_unquote(value))
    return form


def _unquote(part: str) -> str:
    # Escaped bytes must also decode as UTF-8; nothing is replaced
    raw = unquote_to_bytes(part.replace("+", " "))
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormParseError(f"invalid UTF-8 in escaped form data {part!r}") from e


def merge_form(first: FormValues, second: FormValues) -> FormValues:
    """Values of ``second`` are appended after those of ``first``."""
    merged: FormValues = {key: list(values) for key, values in first.items()}
    for key, values in second.items():
        merged.setdefault(key, []).extend(values)
    return merged


def encode_form(values: FormValues) -> str:
    """
    Encode form data as x-www-form-urlencoded.

    Distinct keys are sorted; repeated values for one key keep their order.

        >>> encode_form({"temp": ["72"], "humidity": ["55", "54"]})
        'humidity=55&humidity=54&temp=72'
    """
    pairs = [(key, value) for key in sorted(values) for value in values[key]]
    return urlencode(pairs)
