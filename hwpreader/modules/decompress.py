from __future__ import annotations

import zlib
from typing import Optional

from hwpreader.core.errors import DecompressionError

# raw deflate (zlib 헤더/체크섬 없음)
RAW_DEFLATE_WBITS = -15


def decompress(raw: bytes, entry: Optional[str] = None) -> bytes:
    """DocInfo / BodyText/SectionN 스트림 압축 해제."""
    obj = zlib.decompressobj(RAW_DEFLATE_WBITS)
    try:
        out = obj.decompress(raw)
        out += obj.flush()
    except zlib.error as e:
        raise DecompressionError(f"invalid raw-deflate data: {e}", entry=entry) from e

    if not obj.eof:
        raise DecompressionError(
            f"raw-deflate stream is truncated ({len(raw)} bytes read)", entry=entry
        )
    return out


__all__ = ["decompress", "RAW_DEFLATE_WBITS"]
