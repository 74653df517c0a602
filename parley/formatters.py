"""Formatters turn a node's child utterances into its own utterance.

Every formatter has the signature ``(conversation, rng, parts) -> str``
where ``parts`` holds the already-realized utterances of the node's
children, in part order.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

import pybars

if TYPE_CHECKING:
    from parley.conversation import Conversation


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class FormatterError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def join_parts(separator: str = "", suffix: str = "") -> Callable[..., str]:
    """Concatenate the child utterances, then append suffix."""

    def formatter(conversation: Conversation, rng: random.Random, parts: list[str]) -> str:
        return separator.join(parts) + suffix

    return formatter


def static(text: str) -> Callable[..., str]:
    """Always produce text, ignoring any children."""

    def formatter(conversation: Conversation, rng: random.Random, parts: list[str]) -> str:
        return text

    return formatter


def choice(options: Sequence[str]) -> Callable[..., str]:
    """Pick one surface form per realization."""
    options = list(options)
    if not options:
        raise ValueError("choice() needs at least one option")

    def formatter(conversation: Conversation, rng: random.Random, parts: list[str]) -> str:
        return rng.choice(options)

    return formatter


def _compile(template_str: str) -> Callable:
    compiled = _cache.get(template_str)
    if compiled is None:
        compiled = _compiler.compile(template_str)
        _cache[template_str] = compiled
    return compiled


def render(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        return str(_compile(template_str)(context))
    except Exception as e:
        raise FormatterError(f"Template error: {e}") from e


def handlebars(template_str: str) -> Callable[..., str]:
    """Render a Handlebars template over the children.

    Context: ``parts`` (list of child utterances), ``joined`` (the parts
    concatenated) and ``speaker`` ("person0" or "person1"). Use triple
    braces to skip HTML escaping, e.g. ``{{{joined}}}``.
    """

    def formatter(conversation: Conversation, rng: random.Random, parts: list[str]) -> str:
        context = {
            "parts": list(parts),
            "joined": "".join(parts),
            "speaker": conversation.speaker.value,
        }
        return render(template_str, context)

    return formatter
