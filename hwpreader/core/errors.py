from __future__ import annotations

from typing import Any, Dict, Optional


class HwpParseError(Exception):
    """Base for every failure that aborts a document parse."""

    kind = "HwpParseError"

    def __init__(self, message: str, *, entry: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.entry = entry
        self.stage = stage

    def __str__(self) -> str:
        where = []
        if self.stage:
            where.append(f"stage={self.stage}")
        if self.entry:
            where.append(f"entry={self.entry}")
        if not where:
            return self.message
        return f"{self.message} ({', '.join(where)})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "stage": self.stage,
            "entry": self.entry,
        }


class ContainerError(HwpParseError):
    kind = "ContainerError"


class MissingEntryError(HwpParseError):
    kind = "MissingEntry"


class InvalidSignatureError(HwpParseError):
    kind = "InvalidSignature"


class UnsupportedVersionError(HwpParseError):
    kind = "UnsupportedVersion"


class DecompressionError(HwpParseError):
    kind = "DecompressionFailure"


class MalformedRecordError(HwpParseError):
    kind = "MalformedRecord"

    def __init__(self, message: str, *, offset: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.offset = offset

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["offset"] = self.offset
        return d


class ParseTimeoutError(HwpParseError):
    kind = "ParseTimeout"


__all__ = [
    "HwpParseError",
    "ContainerError",
    "MissingEntryError",
    "InvalidSignatureError",
    "UnsupportedVersionError",
    "DecompressionError",
    "MalformedRecordError",
    "ParseTimeoutError",
]
