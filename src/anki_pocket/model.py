"""
Module for object definitions
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

InputMode = Literal["word", "phrase"]
DictionarySource = Literal["free-dictionary", "cambridge"]
ImageSource = Literal["primary-source", "fallback-placeholder"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class Definition(_Frozen):
    definition: str
    example: str | None = None


class Meaning(_Frozen):
    part_of_speech: str  # open set, whatever the dictionary returns
    definitions: list[Definition] = Field(default_factory=list)

    @property
    def primary(self) -> Definition | None:
        return self.definitions[0] if self.definitions else None


class WordDefinition(_Frozen):
    word: str
    phonetic: str | None = None
    meanings: list[Meaning] = Field(default_factory=list)
    source: DictionarySource = "free-dictionary"


class PhraseTranslation(_Frozen):
    original_text: str
    translated_text: str


class LookupFailure(_Frozen):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    reason: str
    error: Exception | None = Field(default=None, exclude=True)


LookupResult = WordDefinition | PhraseTranslation | LookupFailure


class ImageReference(_Frozen):
    url: str
    source: ImageSource = "primary-source"


class UploadedImage(_Frozen):
    filename: str
    data: str  # base64, no data: prefix


class SubmissionResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    type: InputMode | None = None
    word: str | None = None
    definition: WordDefinition | None = None
    original_text: str | None = None
    translated_text: str | None = None
    image_url: str | None = None
    anki_note_id: int | None = None
    error: str | None = None
    error_type: str | None = None
    hint: str | None = None
    status_code: int = Field(default=200, exclude=True)

    @classmethod
    def from_error(cls, exc: Exception, mode: InputMode | None = None) -> "SubmissionResult":
        return cls(
            success=False,
            type=mode,
            error=str(exc),
            error_type=type(exc).__name__,
            hint=getattr(exc, "hint", None),
            status_code=getattr(exc, "status_code", 500),
        )

    def to_response(self) -> dict[str, Any]:
        if not self.success:
            body = {"success": False, "error": self.error, "errorType": self.error_type}
            if self.hint:
                body["hint"] = self.hint
            return body
        body: dict[str, Any] = {"success": True, "type": self.type}
        if self.type == "phrase":
            body["originalText"] = self.original_text
            body["translatedText"] = self.translated_text
        else:
            body["word"] = self.word
            body["definition"] = (
                self.definition.model_dump(by_alias=True) if self.definition else None
            )
        body["imageUrl"] = self.image_url
        body["ankiNoteId"] = self.anki_note_id
        return body
