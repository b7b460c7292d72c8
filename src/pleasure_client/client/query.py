"""Query-parameter normalisation and bracket-style serialisation.

Two steps turn a staged query filter into URL parameters:

1. :func:`encode_query_params` normalises values so the server can tell
   types apart once everything is a string:

   * lists and tuples pass through unchanged;
   * compiled regular expressions become ``{"$regex": ..., "$options": ...}``;
   * mappings are normalised recursively;
   * every other value is replaced by its JSON text, so ``"5"`` and ``5``
     travel as ``"\\"5\\""`` and ``"5"``.

   The last rule is a wire-compatibility quirk of the API: it predates
   typed query parsing on the server and is kept as-is until the server
   side drops it.

2. :func:`serialize_query` flattens the normalised mapping into
   ``(key, value)`` pairs using bracket notation -- ``tags[]=a&tags[]=b``
   for sequences and ``price[$gt]=10`` for nested mappings -- which is
   what the server's query parser expects.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

_REGEX_FLAG_LETTERS = (
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def regex_options(pattern: re.Pattern) -> str:
    """Render the flags of a compiled pattern as option letters (``"im"``)."""
    return "".join(letter for flag, letter in _REGEX_FLAG_LETTERS if pattern.flags & flag)


def encode_query_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Deeply normalise query values before fingerprinting and dispatch.

    Example::

        >>> encode_query_params({"email": re.compile("@gmail.com$", re.I), "age": 30})
        {'email': {'$regex': '@gmail.com$', '$options': 'i'}, 'age': '30'}
    """
    encoded: dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, (list, tuple)):
            encoded[key] = value
        elif isinstance(value, re.Pattern):
            source = value.pattern
            if isinstance(source, bytes):
                source = source.decode("utf-8")
            encoded[key] = {"$regex": source, "$options": regex_options(value)}
        elif isinstance(value, Mapping):
            encoded[key] = encode_query_params(value)
        else:
            encoded[key] = json.dumps(value, default=_json_default)
    return encoded


def _flatten(prefix: str, value: Any, pairs: list[tuple[str, str]]) -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(f"{prefix}[{key}]", item, pairs)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _flatten(f"{prefix}[]", item, pairs)
    elif value is None:
        pairs.append((prefix, ""))
    elif isinstance(value, bool):
        pairs.append((prefix, "true" if value else "false"))
    else:
        pairs.append((prefix, str(value)))


def serialize_query(params: Mapping[str, Any]) -> list[tuple[str, str]]:
    """Flatten *params* into bracket-notation pairs.

    Empty sequences produce no pair at all.

    Example::

        >>> serialize_query({"tags": ["a", "b"], "price": {"$gt": "10"}})
        [('tags[]', 'a'), ('tags[]', 'b'), ('price[$gt]', '10')]
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        _flatten(str(key), value, pairs)
    return pairs
