"""Path segments and their compilation into request URLs.

A call path is an ordered sequence of two kinds of segment:

* :class:`Identifier` -- a name reached through attribute access
  (``client.product.oliviasFavorite``).  Identifiers are normalised to
  kebab-case when compiled: ``oliviasFavorite`` and ``olivias_favorite``
  both become ``olivias-favorite``.
* :class:`Literal` -- a value passed by calling the path
  (``client.entities.user("5e1f")``).  Literals are emitted verbatim and
  never pass through identifier normalisation.

:func:`compile_path` joins the compiled tokens with ``/`` behind a single
leading ``/``.  No percent-encoding happens here; ``httpx`` owns that.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Union

_CAMEL_LOWER_UPPER_RE = re.compile(r"([a-z0-9])([A-Z])")
_CAMEL_ACRONYM_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_LETTER_DIGIT_RE = re.compile(r"([A-Za-z])([0-9])")
_DIGIT_LETTER_RE = re.compile(r"([0-9])([A-Za-z])")
_WORD_RE = re.compile(r"[A-Za-z0-9]+")


@dataclass(frozen=True)
class Identifier:
    """A path segment named by attribute access; kebab-cased on compile."""

    name: str


@dataclass(frozen=True)
class Literal:
    """A path segment carrying an opaque value used verbatim (an id, a slug)."""

    value: Any


Segment = Union[Identifier, Literal]


def kebab_case(name: str) -> str:
    """Convert an identifier to kebab-case.

    Word boundaries are camelCase humps, acronym ends, letter/digit
    transitions and any run of non-alphanumeric characters (``_``, ``-``,
    spaces, dots).

    Example::

        >>> kebab_case("oliviasFavorite")
        'olivias-favorite'
        >>> kebab_case("top_sellers")
        'top-sellers'
        >>> kebab_case("XMLReport2")
        'xml-report-2'
    """
    result = _CAMEL_LOWER_UPPER_RE.sub(r"\1 \2", name)
    result = _CAMEL_ACRONYM_RE.sub(r"\1 \2", result)
    result = _LETTER_DIGIT_RE.sub(r"\1 \2", result)
    result = _DIGIT_LETTER_RE.sub(r"\1 \2", result)
    return "-".join(word.lower() for word in _WORD_RE.findall(result))


def compile_segment(segment: Segment) -> str:
    """Compile one segment into its URL token.

    Raises:
        TypeError: If *segment* is neither an :class:`Identifier` nor a
            :class:`Literal`.
    """
    if isinstance(segment, Literal):
        return str(segment.value)
    if isinstance(segment, Identifier):
        return kebab_case(segment.name)
    raise TypeError(f"Unsupported path segment: {segment!r}")


def compile_path(segments: Iterable[Segment]) -> str:
    """Compile *segments* into a URL path.

    Example::

        >>> compile_path([Identifier("entities"), Identifier("user"), Literal("123")])
        '/entities/user/123'
    """
    return "/" + "/".join(compile_segment(segment) for segment in segments)
