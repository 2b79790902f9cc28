"""Mustache rendering of the status line.

Templates are tokenized once by :meth:`Template.compile`, which is where
malformed templates are rejected. Rendering a compiled template is a pure
function of the snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass

import chevron
from chevron.tokenizer import tokenize

from bartender.exceptions import RenderFailure, TemplateError
from bartender.state.store import RenderSnapshot

_KEY_TAGS = frozenset({"variable", "no escape", "section", "inverted section"})

# Sections push the key's string value (or a bool) onto chevron's scope stack,
# and lookups probe that value first: ``{{title}}`` would find ``str.title``
# and ``{{1}}`` would index the string. No str or bool attribute contains a
# colon, and no such name parses as an index, so namespaced names always
# resolve against the snapshot itself.
_SCOPE_PREFIX = "key:"

Token = tuple[str, str]


def _scoped(name: str) -> str:
    return _SCOPE_PREFIX + name


@dataclass(frozen=True)
class Template:
    """A validated, pre-tokenized mustache template.

    Supported tags: ``{{key}}`` (HTML-escaped), ``{{{key}}}`` / ``{{&key}}``
    (raw), ``{{#key}}...{{/key}}`` (rendered when ``key`` is non-empty) and
    ``{{^key}}...{{/key}}`` (rendered when ``key`` is empty or missing).
    """

    source: str
    tokens: tuple[Token, ...]
    keys: frozenset[str]

    @classmethod
    def compile(cls, source: str) -> Template:
        """Tokenize ``source``.

        Raises
        ------
        TemplateError
            On unclosed tags, unbalanced sections, partials (which would
            read templates from the filesystem), or dotted names (values are
            plain strings, there is nothing to descend into).
        """
        try:
            raw_tokens = tuple(tokenize(source))
        except chevron.ChevronError as exc:
            raise TemplateError(f"malformed template: {exc}".replace("\n", " ")) from exc

        keys: set[str] = set()
        tokens: list[Token] = []
        for tag, name in raw_tokens:
            if tag == "partial":
                raise TemplateError(f"partials are not supported: {{{{> {name}}}}}")
            if (tag in _KEY_TAGS or tag == "end") and name != ".":
                if "." in name:
                    raise TemplateError(f"nested names are not supported: {name!r}")
                if tag != "end":
                    keys.add(name)
                name = _scoped(name)
            tokens.append((tag, name))
        return cls(source=source, tokens=tuple(tokens), keys=frozenset(keys))


def render(template: Template, snapshot: RenderSnapshot) -> str:
    """Render ``template`` against ``snapshot``.

    Missing keys render as empty strings. Raises :class:`RenderFailure` if the
    template engine fails, which a compiled template should never do.
    """
    try:
        data = {_scoped(key): value for key, value in snapshot.items()}
        return chevron.render(template.tokens, data, partials_path=None)
    except Exception as exc:
        raise RenderFailure(f"rendering failed: {exc}") from exc
