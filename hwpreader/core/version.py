from __future__ import annotations

from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field


class VersionPolicy(str, Enum):
    # 같은 major 안에서 기준 버전 이상
    MINIMUM = "minimum"
    # major만 일치
    MAJOR = "major"
    # 완전 일치
    EXACT = "exact"


class HwpVersion(BaseModel):
    """HWP 파일 버전 (major.minor.build.revision).

    FileHeader에는 revision, build, minor, major 순서로 1바이트씩 저장된다.
    """

    model_config = ConfigDict(frozen=True)

    major: int = Field(ge=0, le=255)
    minor: int = Field(ge=0, le=255)
    build: int = Field(ge=0, le=255)
    revision: int = Field(ge=0, le=255)

    def __init__(self, major: int = 0, minor: int = 0, build: int = 0, revision: int = 0, **data):
        super().__init__(major=major, minor=minor, build=build, revision=revision, **data)

    @classmethod
    def parse(cls, text: str) -> "HwpVersion":
        parts = [p.strip() for p in (text or "").split(".")]
        if len(parts) != 4 or not all(p.isdigit() for p in parts):
            raise ValueError(f"version must look like 'major.minor.build.revision': {text!r}")
        major, minor, build, revision = (int(p) for p in parts)
        return cls(major, minor, build, revision)

    @classmethod
    def from_header_bytes(cls, raw: bytes) -> "HwpVersion":
        if len(raw) != 4:
            raise ValueError(f"version field must be 4 bytes, got {len(raw)}")
        major, minor, build, revision = bytes(reversed(raw))
        return cls(major, minor, build, revision)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.major, self.minor, self.build, self.revision)

    def __str__(self) -> str:
        return ".".join(str(v) for v in self.as_tuple())

    def __lt__(self, other: "HwpVersion") -> bool:
        return self.as_tuple() < other.as_tuple()

    def __le__(self, other: "HwpVersion") -> bool:
        return self.as_tuple() <= other.as_tuple()

    def __gt__(self, other: "HwpVersion") -> bool:
        return self.as_tuple() > other.as_tuple()

    def __ge__(self, other: "HwpVersion") -> bool:
        return self.as_tuple() >= other.as_tuple()

    def is_compatible(self, baseline: "HwpVersion", policy: VersionPolicy = VersionPolicy.MINIMUM) -> bool:
        if self.major != baseline.major:
            return False
        if policy == VersionPolicy.EXACT:
            return self.as_tuple() == baseline.as_tuple()
        if policy == VersionPolicy.MAJOR:
            return True
        return self >= baseline


SUPPORTED_VERSION = HwpVersion(5, 1, 0, 0)

__all__ = ["HwpVersion", "VersionPolicy", "SUPPORTED_VERSION"]
