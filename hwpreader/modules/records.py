from __future__ import annotations

import struct
import time
from typing import Iterable, Iterator, List, NamedTuple, Optional

from hwpreader.core.errors import MalformedRecordError, ParseTimeoutError


# ─────────────────────────────
# HWP TAG 상수
# ─────────────────────────────
HWPTAG_BEGIN = 0x010

# DocInfo
HWPTAG_DOCUMENT_PROPERTIES = HWPTAG_BEGIN
HWPTAG_ID_MAPPINGS = HWPTAG_BEGIN + 1
HWPTAG_BIN_DATA = HWPTAG_BEGIN + 2
HWPTAG_FACE_NAME = HWPTAG_BEGIN + 3
HWPTAG_BORDER_FILL = HWPTAG_BEGIN + 4
HWPTAG_CHAR_SHAPE = HWPTAG_BEGIN + 5
HWPTAG_TAB_DEF = HWPTAG_BEGIN + 6
HWPTAG_NUMBERING = HWPTAG_BEGIN + 7
HWPTAG_BULLET = HWPTAG_BEGIN + 8
HWPTAG_PARA_SHAPE = HWPTAG_BEGIN + 9
HWPTAG_STYLE = HWPTAG_BEGIN + 10
HWPTAG_DOC_DATA = HWPTAG_BEGIN + 11
HWPTAG_DISTRIBUTE_DOC_DATA = HWPTAG_BEGIN + 12
HWPTAG_COMPATIBLE_DOCUMENT = HWPTAG_BEGIN + 14
HWPTAG_LAYOUT_COMPATIBILITY = HWPTAG_BEGIN + 15
HWPTAG_TRACK_CHANGE = HWPTAG_BEGIN + 16
HWPTAG_MEMO_SHAPE = HWPTAG_BEGIN + 76
HWPTAG_FORBIDDEN_CHAR = HWPTAG_BEGIN + 78

# BodyText
HWPTAG_PARA_HEADER = HWPTAG_BEGIN + 50
HWPTAG_PARA_TEXT = HWPTAG_BEGIN + 51
HWPTAG_PARA_CHAR_SHAPE = HWPTAG_BEGIN + 52
HWPTAG_PARA_LINE_SEG = HWPTAG_BEGIN + 53
HWPTAG_PARA_RANGE_TAG = HWPTAG_BEGIN + 54
HWPTAG_CTRL_HEADER = HWPTAG_BEGIN + 55
HWPTAG_LIST_HEADER = HWPTAG_BEGIN + 56
HWPTAG_PAGE_DEF = HWPTAG_BEGIN + 57
HWPTAG_FOOTNOTE_SHAPE = HWPTAG_BEGIN + 58
HWPTAG_PAGE_BORDER_FILL = HWPTAG_BEGIN + 59
HWPTAG_SHAPE_COMPONENT = HWPTAG_BEGIN + 60
HWPTAG_TABLE = HWPTAG_BEGIN + 61
HWPTAG_CTRL_DATA = HWPTAG_BEGIN + 71

TAG_NAMES = {
    value: name[len("HWPTAG_"):]
    for name, value in list(globals().items())
    if name.startswith("HWPTAG_") and name != "HWPTAG_BEGIN"
}

# 레코드 헤더: tag 10bit | level 10bit | size 12bit
_HEADER_SIZE = 4
_EXTENDED_SIZE = 0xFFF


def tag_name(tag: int) -> str:
    return TAG_NAMES.get(tag, f"TAG_{tag}")


def make_ctrl_id(text: str) -> int:
    # MAKE_4CHID('t','b','l',' ') == 0x74626C20
    raw = text.encode("latin-1")
    if len(raw) != 4:
        raise ValueError(f"control id must be 4 characters: {text!r}")
    return int.from_bytes(raw, "big")


def ctrl_id_text(value: int) -> str:
    return (value & 0xFFFFFFFF).to_bytes(4, "big").decode("latin-1")


class Record(NamedTuple):
    tag: int
    level: int
    size: int
    payload: memoryview
    offset: int

    @property
    def name(self) -> str:
        return tag_name(self.tag)


# ─────────────────────────────
# 레코드 스트림
# ─────────────────────────────
def iter_records(buf: bytes, deadline: Optional[float] = None) -> Iterator[Record]:
    """압축 해제된 스트림을 레코드 단위로 순회한다.

    선언된 크기가 남은 바이트를 넘으면 MalformedRecordError.
    deadline은 time.monotonic() 기준 절대 시각.
    """
    view = memoryview(buf)
    n = len(view)
    off = 0

    while off < n:
        if deadline is not None and time.monotonic() > deadline:
            raise ParseTimeoutError(f"record decoding exceeded deadline at offset {off}")

        if off + _HEADER_SIZE > n:
            raise MalformedRecordError(
                f"truncated record header: {n - off} bytes left", offset=off
            )
        hdr = struct.unpack_from("<I", view, off)[0]
        tag = hdr & 0x3FF
        level = (hdr >> 10) & 0x3FF
        size = (hdr >> 20) & 0xFFF

        body = off + _HEADER_SIZE
        if size == _EXTENDED_SIZE:
            if body + 4 > n:
                raise MalformedRecordError(
                    f"truncated extended size of {tag_name(tag)}", offset=off
                )
            size = struct.unpack_from("<I", view, body)[0]
            body += 4

        if body + size > n:
            raise MalformedRecordError(
                f"{tag_name(tag)} declares {size} bytes but only {n - body} remain",
                offset=off,
            )

        yield Record(tag, level, size, view[body:body + size], off)
        off = body + size


class RecordNode:
    __slots__ = ("record", "children")

    def __init__(self, record: Optional[Record]):
        self.record = record
        self.children: List[RecordNode] = []

    @property
    def tag(self) -> Optional[int]:
        return self.record.tag if self.record is not None else None

    @property
    def level(self) -> int:
        return self.record.level if self.record is not None else -1

    def __repr__(self) -> str:
        name = self.record.name if self.record is not None else "ROOT"
        return f"<RecordNode {name} level={self.level} children={len(self.children)}>"


def build_record_tree(records: Iterable[Record]) -> RecordNode:
    # 자기보다 level이 낮은 직전 레코드의 자식으로 붙인다
    root = RecordNode(None)
    stack: List[RecordNode] = [root]
    for rec in records:
        while len(stack) > 1 and stack[-1].level >= rec.level:
            stack.pop()
        node = RecordNode(rec)
        stack[-1].children.append(node)
        stack.append(node)
    return root


# ─────────────────────────────
# 페이로드 리더
# ─────────────────────────────
class PayloadReader:
    """레코드 페이로드 위를 움직이는 명시적 커서."""

    __slots__ = ("_view", "_pos", "_record")

    def __init__(self, record: Record):
        self._record = record
        self._view = record.payload
        self._pos = 0

    @property
    def pos(self) -> int:
        return self._pos

    def remaining(self) -> int:
        return len(self._view) - self._pos

    def _take(self, fmt: str):
        size = struct.calcsize(fmt)
        if self._pos + size > len(self._view):
            raise MalformedRecordError(
                f"{self._record.name} payload too short: need {size} bytes at {self._pos}, "
                f"have {self.remaining()}",
                offset=self._record.offset,
            )
        value = struct.unpack_from(fmt, self._view, self._pos)
        self._pos += size
        return value

    def u8(self) -> int:
        return self._take("<B")[0]

    def i8(self) -> int:
        return self._take("<b")[0]

    def u16(self) -> int:
        return self._take("<H")[0]

    def i16(self) -> int:
        return self._take("<h")[0]

    def u32(self) -> int:
        return self._take("<I")[0]

    def i32(self) -> int:
        return self._take("<i")[0]

    def array(self, code: str, count: int) -> List[int]:
        return list(self._take(f"<{count}{code}")) if count else []

    def raw(self, size: int) -> bytes:
        if size < 0 or self._pos + size > len(self._view):
            raise MalformedRecordError(
                f"{self._record.name} payload too short: need {size} bytes at {self._pos}",
                offset=self._record.offset,
            )
        out = bytes(self._view[self._pos:self._pos + size])
        self._pos += size
        return out

    def skip(self, size: int) -> None:
        self.raw(size)

    def wstr(self) -> str:
        # WORD 길이 + WCHAR[길이]
        length = self.u16()
        return self.raw(length * 2).decode("utf-16-le", "replace")


__all__ = [
    "Record",
    "RecordNode",
    "PayloadReader",
    "iter_records",
    "build_record_tree",
    "tag_name",
    "make_ctrl_id",
    "ctrl_id_text",
]
