"""
Error taxonomy shared by the lookup clients, the AnkiConnect client and the HTTP layer
"""


class AnkiPocketError(Exception):
    status_code = 500


class ValidationError(AnkiPocketError):
    """Bad or missing input. Never retried."""

    status_code = 400


class EmptyInputError(ValidationError):
    def __init__(self, message: str = "Text parameter is required"):
        super().__init__(message)


class UnsupportedLanguagePairError(ValidationError):
    def __init__(self, message: str = "Unsupported language pair"):
        super().__init__(message)


class NotFoundError(AnkiPocketError):
    """The upstream service has no entry for the query."""

    status_code = 404


class UpstreamUnavailableError(AnkiPocketError):
    """Network or HTTP failure while talking to a lookup service."""


class InvalidSchemaError(AnkiPocketError):
    def __init__(self, message: str = "Note type has no fields"):
        super().__init__(message)


class AutomationEndpointError(AnkiPocketError):
    """AnkiConnect was unreachable or rejected the request."""

    hint = "Check the AnkiConnect add-on and try again."


class ConnectionFailure(AutomationEndpointError):
    hint = "Start Anki and make sure the AnkiConnect add-on is enabled."


class DuplicateNoteFailure(AutomationEndpointError):
    hint = "This card already exists in Anki."


class DeckNotFoundFailure(AutomationEndpointError):
    hint = "Check the deck name in the settings."


class NotetypeNotFoundFailure(AutomationEndpointError):
    hint = "Check that the note type exists in Anki."


class OtherApiFailure(AutomationEndpointError):
    pass
