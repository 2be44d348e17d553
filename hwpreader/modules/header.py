from __future__ import annotations

import logging
import struct
from typing import Optional

from hwpreader.core.config import ParserSettings
from hwpreader.core.errors import InvalidSignatureError, UnsupportedVersionError
from hwpreader.core.schemas import FileHeader, HeaderProperties
from hwpreader.core.version import HwpVersion

logger = logging.getLogger(__name__)

SIGNATURE = "HWP Document File"
FILE_HEADER_ENTRY = "FileHeader"

_SIGNATURE_RANGE = (0, 17)
_VERSION_RANGE = (32, 36)
_PROPERTIES_OFFSET = 36
_LICENSE_OFFSET = 40
_ENCRYPT_VERSION_OFFSET = 44

# FileHeader 속성 비트 (bit 0부터)
_PROPERTY_BITS = (
    "compressed",
    "encrypted",
    "distributed",
    "script",
    "drm",
    "xml_template",
    "history",
    "signed",
    "certificate_encrypted",
    "signature_reserved",
    "certificate_drm",
    "ccl",
    "mobile_optimized",
    "privacy_protected",
    "track_changes",
    "kogl",
    "video_control",
    "order_field_control",
)


def _read_u32(data: bytes, off: int) -> Optional[int]:
    if len(data) < off + 4:
        return None
    return struct.unpack_from("<I", data, off)[0]


def parse_properties(raw: int) -> HeaderProperties:
    flags = {name: bool(raw & (1 << bit)) for bit, name in enumerate(_PROPERTY_BITS)}
    return HeaderProperties(raw=raw, **flags)


def parse_file_header(data: bytes, settings: Optional[ParserSettings] = None) -> FileHeader:
    """FileHeader 스트림에서 시그니처와 버전을 읽고 검증한다."""
    settings = settings or ParserSettings()

    s0, s1 = _SIGNATURE_RANGE
    signature = bytes(data[s0:s1]).decode("latin-1")
    if signature != SIGNATURE:
        raise InvalidSignatureError(
            f"signature should be {SIGNATURE!r}, received {signature!r}",
            entry=FILE_HEADER_ENTRY,
        )

    v0, v1 = _VERSION_RANGE
    raw_version = bytes(data[v0:v1])
    if len(raw_version) != 4:
        raise UnsupportedVersionError(
            f"FileHeader is {len(data)} bytes, version field missing",
            entry=FILE_HEADER_ENTRY,
        )
    version = HwpVersion.from_header_bytes(raw_version)

    baseline = settings.supported_version
    if not version.is_compatible(baseline, settings.version_policy):
        raise UnsupportedVersionError(
            f"only {baseline} ({settings.version_policy.value}) is supported, received {version}",
            entry=FILE_HEADER_ENTRY,
        )

    raw_props = _read_u32(data, _PROPERTIES_OFFSET)
    properties = parse_properties(raw_props) if raw_props is not None else HeaderProperties()
    logger.debug("FileHeader: version=%s properties=0x%X", version, properties.raw)

    return FileHeader(
        signature=signature,
        version=version,
        properties=properties,
        license_flags=_read_u32(data, _LICENSE_OFFSET),
        encrypt_version=_read_u32(data, _ENCRYPT_VERSION_OFFSET),
    )


__all__ = ["SIGNATURE", "FILE_HEADER_ENTRY", "parse_file_header", "parse_properties"]
