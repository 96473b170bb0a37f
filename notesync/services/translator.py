"""Change translator: Notion page properties <-> Google Keep note fields.

Notion -> Keep:
- the title property becomes the note title;
- when the page has checkbox properties, the note is a checklist with one
  item per checkbox (item text = property name);
- otherwise every non-empty rich-text property becomes a ``Key: value``
  paragraph of a text note.

Keep -> Notion reverses those rules. A note that yields no properties at all
maps to a default ``Name`` + ``Notes`` property set.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from notesync.exceptions import TranslationError

if TYPE_CHECKING:
    from notesync.clients.base import KeepNote, NotionPage

UNTITLED = "Untitled"
_PARAGRAPH_SEPARATOR = "\n\n"
_KEY_VALUE_RE = re.compile(r"(?P<key>[^\n]+?):[ \t]*(?P<value>[^\n]+)")


def _plain_text(fragments: Any) -> str:
    if not isinstance(fragments, list):
        return ""
    parts: list[str] = []
    for fragment in fragments:
        if not isinstance(fragment, dict):
            continue
        text = fragment.get("plain_text")
        if text is None:
            text = (fragment.get("text") or {}).get("content", "")
        parts.append(str(text))
    return "".join(parts)


def _properties(page: NotionPage) -> dict[str, dict[str, Any]]:
    props: dict[str, dict[str, Any]] = {}
    for key, value in page.properties.items():
        if not isinstance(value, dict):
            msg = f"Notion page {page.id} property {key!r} is not an object"
            raise TranslationError(msg)
        props[key] = value
    return props


def extract_title(page: NotionPage) -> str:
    """Return the text of the page's title property, or ``""``."""
    for value in _properties(page).values():
        if value.get("type") == "title":
            return _plain_text(value.get("title"))
    return ""


def extract_rich_text(prop: dict[str, Any]) -> str:
    return _plain_text(prop.get("rich_text"))


def extract_checkbox(prop: dict[str, Any]) -> bool:
    if prop.get("type") != "checkbox":
        return False
    return bool(prop.get("checkbox"))


def _text_value(content: str) -> list[dict[str, Any]]:
    return [{"text": {"content": content}}]


def build_default_notion_properties(
    title: str,
    content: str,
    *,
    title_property: str = "Name",
    notes_property: str = "Notes",
) -> dict[str, Any]:
    """Build a basic property set with a title and a notes field."""
    return {
        title_property: {"title": _text_value(title)},
        notes_property: {"rich_text": _text_value(content)},
    }


class ChangeTranslator:
    """Translate between Notion pages and Keep notes."""

    def __init__(self, *, title_property: str = "Name", notes_property: str = "Notes") -> None:
        self.title_property = title_property
        self.notes_property = notes_property

    def to_right(self, page: NotionPage) -> dict[str, Any]:
        """Convert a Notion page to Keep note fields."""
        props = _properties(page)
        note: dict[str, Any] = {"title": extract_title(page) or UNTITLED}

        checkboxes = [(key, value) for key, value in props.items() if value.get("type") == "checkbox"]
        if checkboxes:
            note["body"] = {
                "list": {
                    "listItems": [
                        {"text": {"text": key}, "checked": extract_checkbox(value)}
                        for key, value in checkboxes
                    ]
                }
            }
            return note

        paragraphs = []
        for key, value in props.items():
            if value.get("type") != "rich_text":
                continue
            text = extract_rich_text(value)
            if text:
                paragraphs.append(f"{key}: {text}")
        note["body"] = {"text": {"text": _PARAGRAPH_SEPARATOR.join(paragraphs)}}
        return note

    def to_left(self, note: KeepNote) -> dict[str, Any]:
        """Convert a Keep note to Notion page properties."""
        properties: dict[str, Any] = {}
        if note.title:
            properties[self.title_property] = {"title": _text_value(note.title)}

        text = note.text
        if text:
            for paragraph in text.split(_PARAGRAPH_SEPARATOR):
                match = _KEY_VALUE_RE.fullmatch(paragraph.strip())
                if match:
                    properties[match["key"]] = {"rich_text": _text_value(match["value"])}
        else:
            for item in note.list_items:
                item_text = item.get("text")
                if not isinstance(item_text, dict) or not item_text.get("text"):
                    msg = f"Keep note {note.name} has a checklist item without text"
                    raise TranslationError(msg)
                properties[str(item_text["text"])] = {"checkbox": bool(item.get("checked"))}

        if properties.keys() <= {self.title_property}:
            return build_default_notion_properties(
                note.title or UNTITLED,
                text,
                title_property=self.title_property,
                notes_property=self.notes_property,
            )
        return properties
