from typing import Optional


class DeckForgeError(Exception):
    """Base class for every error raised by the deck pipeline."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self):
        message = super().__str__()
        if self.cause is not None:
            return f"{message} (caused by {type(self.cause).__name__}: {self.cause})"
        return message


class UnsupportedFormat(DeckForgeError):
    """The declared MIME type is not PDF, DOCX or PPTX."""


class DecodeFailure(DeckForgeError):
    """The binary could not be decoded, or it holds no extractable text."""


class ValidationFailure(DeckForgeError, ValueError):
    """Generated content is missing a required field or is shaped incorrectly."""


class RenderFailure(DeckForgeError):
    """Writing the presentation container failed."""


class GenerationFailure(DeckForgeError):
    """The text-generation collaborator did not return usable JSON."""


class UploadRejected(DeckForgeError):
    """An upload failed the size or MIME allow-list checks."""
