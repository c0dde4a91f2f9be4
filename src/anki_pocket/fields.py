"""
Map lookup content onto whatever fields the user's note type happens to have.

Known field names are looked up per slot in FIELD_ALIASES. When neither a head nor a
meaning field is recognised, content goes by position instead: field 0 gets the head,
field 1 (or field 0 again for single-field note types) gets an HTML block.

Looked-up dictionary and translation text is HTML-escaped on every path.
"""

import html

from . import errors
from .logging_utils import logs_handler
from .model import Meaning, PhraseTranslation, WordDefinition

logger = logs_handler.get_logger()

# Slot -> accepted field names, first match wins. Covers the English and Japanese
# names used by the common vocabulary note types.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "head": ("Sentence", "Word", "Expression", "単語", "英文"),
    "meaning": ("Japanese Meaning", "Meaning", "意味", "日本語訳"),
    "image": ("Image", "Picture", "画像"),
    "etymology": ("Etymology", "語源"),
}

COMMON_PARTS_OF_SPEECH = frozenset(
    {"noun", "adjective", "adverb", "pronoun", "preposition", "conjunction", "interjection"}
)
MIN_VERB_DEFINITION_LENGTH = 30
RARE_VERB_MARKERS = ("to become", "to form")

BLOCK_STYLE = "font-family: Arial, sans-serif;"


def find_field(schema: list[str], slot: str) -> str | None:
    for name in FIELD_ALIASES[slot]:
        if name in schema:
            return name
    return None


def _is_common_verb_sense(text: str) -> bool:
    lowered = text.lower()
    return len(text) > MIN_VERB_DEFINITION_LENGTH and not any(
        marker in lowered for marker in RARE_VERB_MARKERS
    )


def is_presentable(meaning: Meaning) -> bool:
    pos = meaning.part_of_speech.strip().lower()
    if pos in COMMON_PARTS_OF_SPEECH:
        return True
    if pos == "verb":
        return any(_is_common_verb_sense(d.definition) for d in meaning.definitions)
    return False


def filter_meanings(definition: WordDefinition) -> list[Meaning]:
    """Drop rare senses from free-dictionary results. May return an empty list."""
    if definition.source != "free-dictionary":
        return list(definition.meanings)
    kept = [m for m in definition.meanings if is_presentable(m)]
    logger.debug(
        "Presentation filter kept %d of %d meanings for '%s'",
        len(kept),
        len(definition.meanings),
        definition.word,
    )
    return kept


def image_markup(filename: str) -> str:
    return f'<img src="{html.escape(filename)}">'


def head_content(text: str, lookup: WordDefinition | PhraseTranslation) -> str:
    if isinstance(lookup, WordDefinition) and lookup.phonetic:
        phonetic = lookup.phonetic.strip().strip("/")
        if phonetic:
            return f"{text} /{phonetic}/"
    return text


def meaning_lines(meanings: list[Meaning]) -> str:
    return "\n".join(
        f"{html.escape(m.part_of_speech)}: {html.escape(m.primary.definition)}"
        for m in meanings
        if m.primary
    )


def meaning_block(meanings: list[Meaning], image_filename: str | None) -> str:
    parts = []
    for meaning in meanings:
        first = meaning.primary
        if first is None:
            continue
        parts.append(
            f"<p><strong>{html.escape(meaning.part_of_speech)}:</strong> "
            f"{html.escape(first.definition)}</p>"
        )
        if first.example:
            parts.append(f'<p><em>Example: "{html.escape(first.example)}"</em></p>')
    if image_filename:
        parts.append(f"<br>{image_markup(image_filename)}")
    return f'<div style="{BLOCK_STYLE}">{"".join(parts)}</div>'


def translation_block(translated_text: str, image_filename: str | None) -> str:
    body = f"<p><strong>Translation:</strong> {html.escape(translated_text)}</p>"
    if image_filename:
        body += f"<br>{image_markup(image_filename)}"
    return f'<div style="{BLOCK_STYLE}">{body}</div>'


def _require_fields(schema: list[str]):
    if not schema:
        raise errors.InvalidSchemaError()


def map_fields(
    schema: list[str],
    lookup: WordDefinition | PhraseTranslation,
    text: str,
    image_filename: str | None = None,
) -> dict[str, str]:
    """Build the field map for an automatically looked-up note.

    image_filename is the name the image was stored under in Anki's media folder,
    never the remote URL. Every key of the result is a member of schema.
    """
    _require_fields(schema)
    is_word = isinstance(lookup, WordDefinition)
    meanings = filter_meanings(lookup) if is_word else []
    head = head_content(text, lookup)
    fields: dict[str, str] = {}

    head_field = find_field(schema, "head")
    if head_field:
        fields[head_field] = head

    meaning_field = find_field(schema, "meaning")
    if meaning_field:
        if is_word:
            fields[meaning_field] = meaning_lines(meanings)
        else:
            fields[meaning_field] = html.escape(lookup.translated_text)

    image_field = find_field(schema, "image")
    if image_field and image_filename:
        fields[image_field] = image_markup(image_filename)

    etymology_field = find_field(schema, "etymology")
    if etymology_field:
        fields[etymology_field] = ""

    if head_field is None and meaning_field is None:
        logger.info("No known field names in %s; mapping by position", schema)
        if is_word:
            block = meaning_block(meanings, image_filename)
        else:
            block = translation_block(lookup.translated_text, image_filename)
        fields[schema[0]] = head
        if len(schema) > 1:
            fields[schema[1]] = block
        else:
            fields[schema[0]] = f"{head}<br>{block}"

    return fields


def map_manual_fields(
    schema: list[str], word: str, meaning: str, image_html: str = ""
) -> dict[str, str]:
    """Field map for a note typed in by hand."""
    _require_fields(schema)
    fields: dict[str, str] = {}

    head_field = find_field(schema, "head") or schema[0]
    fields[head_field] = word

    meaning_field = find_field(schema, "meaning")
    if meaning_field is None:
        others = [name for name in schema if name != head_field]
        meaning_field = others[0] if others else None
    if meaning_field:
        fields[meaning_field] = meaning
    else:
        fields[head_field] = f"{word}\n\n{meaning}"

    if image_html:
        image_field = find_field(schema, "image")
        unused = [name for name in schema if name not in fields]
        if image_field:
            fields[image_field] = image_html
        elif len(schema) > 2 and unused:
            fields[unused[0]] = image_html
        elif len(schema) == 2 and meaning_field:
            fields[meaning_field] += f"<br><br>{image_html}"

    etymology_field = find_field(schema, "etymology")
    if etymology_field:
        fields[etymology_field] = ""

    return fields
