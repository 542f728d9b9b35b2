import json
import re
from typing import Any, Dict, List, Optional

from pybars import Compiler, strlist

from gaikit.ai.types import Message, Part, Role, new_media_part, new_text_part
from gaikit.core.errors import PromptError
from gaikit.core.schema import to_jsonable

ROLE_MARKER_PREFIX = "<<<dotprompt:role:"
MEDIA_MARKER_PREFIX = "<<<dotprompt:media:url"
HISTORY_MARKER = "<<<dotprompt:history>>>"

_MARKER_RE = re.compile(r"(<<<dotprompt:(?:role:[a-z]+|media:url [^>]*|history)>>>)")

# {{expr}} but not {{{expr}}}, blocks, partials, comments or else.
_DOUBLE_STASH_RE = re.compile(r"(?<!\{)\{\{(?![{#/^>!&~])(?!\s*else\s*\}\})(.+?)\}\}(?!\})")

_compiler = Compiler()


def _role_helper(this, role):
    return strlist([f"{ROLE_MARKER_PREFIX}{role}>>>"])


def _media_helper(this, url="", contentType=""):
    if contentType:
        return strlist([f"{MEDIA_MARKER_PREFIX} {url} {contentType}>>>"])
    return strlist([f"{MEDIA_MARKER_PREFIX} {url}>>>"])


def _json_helper(this, value, indent=None):
    return strlist([json.dumps(to_jsonable(value), indent=indent)])


def _history_helper(this):
    return strlist([HISTORY_MARKER])


HELPERS = {
    "role": _role_helper,
    "media": _media_helper,
    "json": _json_helper,
    "history": _history_helper,
}


def _no_escape(source: str) -> str:
    """Render every {{expr}} raw; prompts are not HTML."""
    return _DOUBLE_STASH_RE.sub(lambda m: "{{{" + m.group(1) + "}}}", source)


class Template:
    """A compiled Handlebars prompt template."""

    def __init__(self, source: str):
        self.source = source
        try:
            self._compiled = _compiler.compile(_no_escape(source))
        except Exception as e:
            raise PromptError(f"failed to parse template: {e}") from e

    def render(self, variables: Optional[Dict[str, Any]]) -> str:
        try:
            return str(self._compiled(variables or {}, helpers=HELPERS))
        except Exception as e:
            raise PromptError(f"failed to render template: {e}") from e


def _append_text(message: Message, text: str) -> None:
    if text:
        message.content.append(new_text_part(text))


def to_messages(rendered: str, history: Optional[List[Message]] = None) -> List[Message]:
    """
    Split rendered template text into messages at the role markers.

    Text before the first role marker belongs to a user message; media
    markers become media parts; the history marker inserts the history
    messages. Messages left without content are dropped.
    """
    messages: List[Message] = []
    current = Message(role=Role.USER, content=[])

    for piece in _MARKER_RE.split(rendered):
        if not piece:
            continue
        if piece.startswith(ROLE_MARKER_PREFIX):
            role_name = piece[len(ROLE_MARKER_PREFIX):-3]
            try:
                role = Role(role_name)
            except ValueError:
                raise PromptError(f"unknown role {role_name!r} in template")
            messages.append(current)
            current = Message(role=role, content=[])
        elif piece.startswith(MEDIA_MARKER_PREFIX):
            fields = piece[len(MEDIA_MARKER_PREFIX):-3].split()
            if not fields:
                raise PromptError("media helper needs a url")
            content_type = fields[1] if len(fields) > 1 else ""
            current.content.append(new_media_part(content_type, fields[0]))
        elif piece == HISTORY_MARKER:
            messages.append(current)
            for message in history or []:
                metadata = dict(message.metadata or {})
                metadata["purpose"] = "history"
                messages.append(Message(role=message.role, content=list(message.content), metadata=metadata))
            current = Message(role=Role.MODEL if history else Role.USER, content=[])
        else:
            _append_text(current, piece)
    messages.append(current)

    for message in messages:
        if message.metadata is None:
            _trim(message.content)
    return [m for m in messages if _has_content(m.content)]


def _trim(parts: List[Part]) -> None:
    if parts and parts[0].is_text():
        parts[0].text = parts[0].text.lstrip()
    if parts and parts[-1].is_text():
        parts[-1].text = parts[-1].text.rstrip()


def _has_content(parts: List[Part]) -> bool:
    return any(not p.is_text() or p.text.strip() for p in parts)
