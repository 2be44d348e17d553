from __future__ import annotations

import logging
import os

from pydantic import BaseModel, ConfigDict, Field

from hwpreader.core.version import SUPPORTED_VERSION, HwpVersion, VersionPolicy

logger = logging.getLogger(__name__)


def _env_str(key: str, default: str) -> str:
    v = os.getenv(key)
    if v is None:
        return default
    v = v.strip()
    return v or default


def _env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    if v is None:
        return default
    try:
        return int(float(v))
    except Exception:
        return default


def _env_float(key: str, default: float) -> float:
    v = os.getenv(key)
    if v is None:
        return default
    try:
        return float(v)
    except Exception:
        return default


class ParserSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    supported_version: HwpVersion = SUPPORTED_VERSION
    version_policy: VersionPolicy = VersionPolicy.MINIMUM
    # 1 이하면 섹션을 호출 스레드에서 순서대로 해석
    section_workers: int = Field(default=1, ge=1)
    # 0이면 제한 없음 (초 단위)
    parse_timeout: float = Field(default=0.0, ge=0.0)


def load_settings() -> ParserSettings:
    raw_version = _env_str("HWP_SUPPORTED_VERSION", str(SUPPORTED_VERSION))
    try:
        version = HwpVersion.parse(raw_version)
    except ValueError:
        logger.warning("HWP_SUPPORTED_VERSION 값이 올바르지 않음: %r (기본값 사용)", raw_version)
        version = SUPPORTED_VERSION

    raw_policy = _env_str("HWP_VERSION_POLICY", VersionPolicy.MINIMUM.value).lower()
    try:
        policy = VersionPolicy(raw_policy)
    except ValueError:
        logger.warning("HWP_VERSION_POLICY 값이 올바르지 않음: %r (기본값 사용)", raw_policy)
        policy = VersionPolicy.MINIMUM

    return ParserSettings(
        supported_version=version,
        version_policy=policy,
        section_workers=max(1, _env_int("HWP_SECTION_WORKERS", 1)),
        parse_timeout=max(0.0, _env_float("HWP_PARSE_TIMEOUT", 0.0)),
    )


__all__ = ["ParserSettings", "load_settings"]
