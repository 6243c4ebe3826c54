"""Gmail Reader - Fetch Gmail emails and normalize their bodies to clean plain text."""

from gmail_reader.core.link_stripper import strip_urls
from gmail_reader.core.models import (
    BodyPart,
    EmailRecord,
    EmailResponse,
    RawMessage,
)
from gmail_reader.core.normalizer import TextNormalizer, select_body_part
from gmail_reader.core.projector import MessageProjector
from gmail_reader.pipeline.orchestrator import FetchOrchestrator

__all__ = [
    "BodyPart",
    "EmailRecord",
    "EmailResponse",
    "FetchOrchestrator",
    "MessageProjector",
    "RawMessage",
    "TextNormalizer",
    "select_body_part",
    "strip_urls",
]
