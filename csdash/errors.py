"""Extraction error taxonomy."""
from __future__ import annotations

EXPECTED_LINK_SHAPE = (
    "Expected format: https://airtable.com/appXXX/shrXXX or https://airtable.com/shrXXX"
)


class ExtractionError(Exception):
    """Base class for errors raised by the extraction pipeline."""


class InvalidLinkFormat(ExtractionError):
    """The viewable link carries no recognizable share identifier."""

    def __init__(self, link: str) -> None:
        self.link = link
        super().__init__(
            f"Invalid Airtable share link format. {EXPECTED_LINK_SHAPE}. Received: {link}"
        )


class AcquisitionExhausted(ExtractionError):
    """Every acquisition strategy failed or returned implausible content."""

    def __init__(self, share_id: str, attempts: list[dict] | None = None) -> None:
        self.share_id = share_id
        self.attempts = list(attempts or [])
        super().__init__(f"No usable data could be extracted for share {share_id}")


class MalformedCell(ExtractionError, ValueError):
    """A single cell value failed to parse; recovered by the field default."""

    def __init__(self, field: str, value: object, reason: str = "") -> None:
        self.field = field
        self.value = value
        message = f"Malformed value for {field}: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
