"""테스트용 HWP 샘플 생성기.

FileHeader / 레코드 / raw deflate / 최소 CFB(v3) 컨테이너를 바이트로 만든다.
"""
from __future__ import annotations

import struct
import zlib
from typing import Dict, List, Optional, Sequence, Tuple, Union

from hwpreader.modules.container import Entry
from hwpreader.modules.records import (
    HWPTAG_CTRL_HEADER,
    HWPTAG_DOCUMENT_PROPERTIES,
    HWPTAG_LIST_HEADER,
    HWPTAG_PARA_HEADER,
    HWPTAG_PARA_TEXT,
    HWPTAG_TABLE,
    make_ctrl_id,
)

# =========================
# FileHeader
# =========================

SIGNATURE = b"HWP Document File"


def file_header(
    version: Tuple[int, int, int, int] = (5, 1, 0, 0),
    properties: int = 0x01,
    signature: bytes = SIGNATURE,
    license_flags: int = 0,
    encrypt_version: int = 4,
) -> bytes:
    out = bytearray(256)
    out[0:len(signature)] = signature
    # revision, build, minor, major 순서로 저장
    out[32:36] = bytes(reversed(version))
    struct.pack_into("<III", out, 36, properties, license_flags, encrypt_version)
    return bytes(out)


# =========================
# raw deflate
# =========================

def deflate(data: bytes) -> bytes:
    c = zlib.compressobj(6, zlib.DEFLATED, -15)
    return c.compress(data) + c.flush()


# =========================
# 레코드
# =========================

def record(tag: int, payload: bytes = b"", level: int = 0, extended: bool = False) -> bytes:
    size = len(payload)
    if extended or size >= 0xFFF:
        hdr = tag | (level << 10) | (0xFFF << 20)
        return struct.pack("<II", hdr, size) + payload
    return struct.pack("<I", tag | (level << 10) | (size << 20)) + payload


def document_properties(section_size: int) -> bytes:
    return struct.pack("<H6H3I", section_size, 1, 1, 1, 1, 1, 1, 0, 0, 0)


def docinfo_stream(section_size: int, extra: bytes = b"") -> bytes:
    return record(HWPTAG_DOCUMENT_PROPERTIES, document_properties(section_size)) + extra


def para_header(char_count: int, last: bool = False, control_mask: int = 0) -> bytes:
    raw_count = char_count | (0x80000000 if last else 0)
    return struct.pack("<IIHBBHHHI", raw_count, control_mask, 0, 0, 0, 1, 0, 1, 0)


def extended_control(code: int, ctrl_id: str) -> bytes:
    # 8 WCHAR: code, ctrl id(2), 예약(4), code
    return struct.pack("<HI4HH", code, make_ctrl_id(ctrl_id), 0, 0, 0, 0, code)


def para_text(text: str, end: bool = True) -> bytes:
    data = text.encode("utf-16-le")
    if end:
        data += struct.pack("<H", 13)
    return data


def paragraph(text: str, level: int = 0, last: bool = False) -> bytes:
    body = para_text(text)
    return (
        record(HWPTAG_PARA_HEADER, para_header(len(body) // 2, last=last), level)
        + record(HWPTAG_PARA_TEXT, body, level + 1)
    )


def ctrl_header(ctrl_id: str, extra: bytes = b"") -> bytes:
    return struct.pack("<I", make_ctrl_id(ctrl_id)) + extra


def list_header(paragraph_count: int, attributes: int = 0, extra: bytes = b"") -> bytes:
    return struct.pack("<HHI", paragraph_count, 0, attributes) + extra


def table_cell(column: int, row: int, width: int = 1000, height: int = 500, border_fill_id: int = 1) -> bytes:
    return struct.pack("<HHHHII4HH", column, row, 1, 1, width, height, 10, 10, 10, 10, border_fill_id)


def caption_fields(width: int = 8000) -> bytes:
    # 속성, 폭, 표와의 간격, 텍스트 최대 길이
    return struct.pack("<IIHI", 0x03, width, 850, width)


def table_props(rows: int, cols: int, row_sizes: Optional[Sequence[int]] = None) -> bytes:
    sizes = list(row_sizes) if row_sizes is not None else [cols] * rows
    return struct.pack(f"<IHHH4H{rows}HH", 0, rows, cols, 0, 5, 5, 5, 5, *sizes, 1)


def page_def(width: int = 59528, height: int = 84188, attributes: int = 0) -> bytes:
    return struct.pack("<10I", width, height, 8504, 8504, 5668, 4252, 4252, 4252, 0, attributes)


def section_stream(texts: Sequence[str]) -> bytes:
    out = b""
    for i, text in enumerate(texts):
        out += paragraph(text, last=(i == len(texts) - 1))
    return out


def table_section(
    cells: Sequence[Tuple[int, int, str]], rows: int, cols: int, caption: Optional[str] = None
) -> bytes:
    """본문 한 문단 + 표 컨트롤. cells = [(col, row, text), ...]

    caption이 있으면 TABLE 레코드 앞에 캡션 LIST_HEADER와 문단을 둔다.
    """
    body = para_text("", end=False) + extended_control(11, "tbl ") + para_text("")
    out = record(HWPTAG_PARA_HEADER, para_header(len(body) // 2, last=True))
    out += record(HWPTAG_PARA_TEXT, body, 1)
    out += record(HWPTAG_CTRL_HEADER, ctrl_header("tbl "), 1)
    if caption is not None:
        out += record(HWPTAG_LIST_HEADER, list_header(1, extra=caption_fields()), 2)
        out += paragraph(caption, level=2, last=True)
    out += record(HWPTAG_TABLE, table_props(rows, cols), 2)
    for col, row, text in cells:
        out += record(HWPTAG_LIST_HEADER, list_header(1, extra=table_cell(col, row)), 2)
        out += paragraph(text, level=2, last=True)
    return out


# =========================
# CFB (v3, 512바이트 섹터)
# =========================

MAGIC = b"\xD0\xCF\x11\xE0\xA1\xB1\x1A\xE1"
FREESECT = 0xFFFFFFFF
ENDOFCHAIN = 0xFFFFFFFE
FATSECT = 0xFFFFFFFD
NOSTREAM = 0xFFFFFFFF

_SECTOR = 512
_MINI_SECTOR = 64
_MINI_CUTOFF = 4096
_HEADER = struct.Struct("<8s16sHHHHHHLLLLLLLLLL")
_DIRENTRY = struct.Struct("<64sHBBIII16sIQQIII")
_EMPTY_ENTRY = _DIRENTRY.pack(b"", 0, 0, 0, NOSTREAM, NOSTREAM, NOSTREAM, b"\0" * 16, 0, 0, 0, 0, 0, 0)

Tree = Dict[str, Union[bytes, "Tree"]]


def _sectors(size: int, unit: int) -> int:
    return (size + unit - 1) // unit


def _chain(table: List[int], start: int, count: int) -> None:
    for i in range(count):
        table[start + i] = start + i + 1 if i < count - 1 else ENDOFCHAIN


def _pad(data: bytes, unit: int) -> bytes:
    return data + b"\0" * (-len(data) % unit)


class _Dir:
    def __init__(self, name: str, kind: int, data: bytes = b""):
        self.name = name
        self.kind = kind
        self.data = data
        self.left = self.right = self.child = NOSTREAM
        self.start = ENDOFCHAIN
        self.size = 0

    def pack(self) -> bytes:
        raw = self.name.encode("utf-16-le") + b"\0\0"
        return _DIRENTRY.pack(
            raw.ljust(64, b"\0"), len(raw), self.kind, 1,
            self.left, self.right, self.child, b"\0" * 16, 0, 0, 0,
            self.start, self.size, 0,
        )


def _flatten(tree: Tree, entries: List[_Dir], parent: _Dir) -> None:
    # 자식은 right sibling으로 한 줄로 연결
    prev: Optional[_Dir] = None
    for name, value in tree.items():
        if isinstance(value, dict):
            d = _Dir(name, 1)
        else:
            d = _Dir(name, 2, bytes(value))
        sid = len(entries)
        entries.append(d)
        if prev is None:
            parent.child = sid
        else:
            prev.right = sid
        prev = d
        if isinstance(value, dict):
            _flatten(value, entries, d)


def build_compound_file(tree: Tree) -> bytes:
    """중첩 dict(스토리지) / bytes(스트림) 트리를 CFB 바이트로 만든다."""
    root = _Dir("Root Entry", 5)
    entries: List[_Dir] = [root]
    _flatten(tree, entries, root)

    streams = [d for d in entries if d.kind == 2]
    mini = [d for d in streams if 0 < len(d.data) < _MINI_CUTOFF]
    big = [d for d in streams if len(d.data) >= _MINI_CUTOFF]

    # 미니 스트림
    minifat: List[int] = []
    ministream = b""
    for d in mini:
        count = _sectors(len(d.data), _MINI_SECTOR)
        d.start = len(minifat)
        d.size = len(d.data)
        minifat.extend([0] * count)
        _chain(minifat, d.start, count)
        ministream += _pad(d.data, _MINI_SECTOR)

    n_dir = _sectors(len(entries), _SECTOR // 128)
    n_minifat = _sectors(len(minifat) * 4, _SECTOR)
    n_ministream = _sectors(len(ministream), _SECTOR)
    n_big = [_sectors(len(d.data), _SECTOR) for d in big]
    n_other = n_dir + n_minifat + n_ministream + sum(n_big)

    n_fat = 1
    while n_fat * (_SECTOR // 4) < n_fat + n_other:
        n_fat += 1
    assert n_fat <= 109

    fat = [FREESECT] * (n_fat * (_SECTOR // 4))
    for i in range(n_fat):
        fat[i] = FATSECT
    cursor = n_fat

    first_dir = cursor
    _chain(fat, cursor, n_dir)
    cursor += n_dir

    first_minifat = cursor if n_minifat else ENDOFCHAIN
    _chain(fat, cursor, n_minifat)
    cursor += n_minifat

    if n_ministream:
        root.start = cursor
        root.size = len(ministream)
    _chain(fat, cursor, n_ministream)
    cursor += n_ministream

    body = bytearray()
    for d, count in zip(big, n_big):
        d.start = cursor
        d.size = len(d.data)
        _chain(fat, cursor, count)
        cursor += count
        body += _pad(d.data, _SECTOR)

    difat = list(range(n_fat)) + [FREESECT] * (109 - n_fat)
    header = _HEADER.pack(
        MAGIC, b"\0" * 16, 0x3E, 3, 0xFFFE, 9, 6, 0,
        0, 0, n_fat, first_dir, 0, _MINI_CUTOFF,
        first_minifat, n_minifat, ENDOFCHAIN, 0,
    ) + struct.pack("<109I", *difat)

    dir_bytes = b"".join(d.pack() for d in entries)
    while len(dir_bytes) % _SECTOR:
        dir_bytes += _EMPTY_ENTRY

    out = bytearray(header)
    out += struct.pack(f"<{len(fat)}I", *fat)
    out += dir_bytes
    out += _pad(struct.pack(f"<{len(minifat)}I", *minifat), _SECTOR) if minifat else b""
    out += _pad(ministream, _SECTOR)
    out += body
    return bytes(out)


def hwp_tree(
    sections: Sequence[bytes],
    section_size: Optional[int] = None,
    header: Optional[bytes] = None,
    doc_info: Optional[bytes] = None,
) -> Tree:
    """압축 전 섹션 스트림 목록으로 HWP 엔트리 트리를 만든다."""
    size = len(sections) if section_size is None else section_size
    tree: Tree = {
        "FileHeader": header if header is not None else file_header(),
        "DocInfo": deflate(doc_info if doc_info is not None else docinfo_stream(size)),
    }
    body: Tree = {f"Section{i}": deflate(data) for i, data in enumerate(sections)}
    tree["BodyText"] = body
    return tree


def hwp_bytes(texts_per_section: Sequence[Sequence[str]], **kwargs) -> bytes:
    sections = [section_stream(texts) for texts in texts_per_section]
    return build_compound_file(hwp_tree(sections, **kwargs))


# =========================
# 메모리 컨테이너
# =========================

class FakeContainer:
    """dict 트리 위의 Container. 읽은 엔트리 경로를 reads에 남긴다."""

    def __init__(self, tree: Tree):
        self._tree = tree
        self.lookups: List[str] = []
        self.reads: List[str] = []

    def _node(self, path: Tuple[str, ...]):
        node = self._tree
        for name in path:
            node = node[name]
        return node

    def child_by_name(self, name: str, storage: Optional[Entry] = None) -> Optional[Entry]:
        parent = storage.path if storage is not None else ()
        self.lookups.append("/".join(parent + (name,)))
        node = self._node(parent)
        if not isinstance(node, dict) or name not in node:
            return None
        value = node[name]
        if isinstance(value, dict):
            return Entry(name, parent + (name,), "storage")
        return Entry(name, parent + (name,), "stream", len(value))

    def stream_bytes(self, entry: Entry) -> bytes:
        self.reads.append(entry.display_path)
        return bytes(self._node(entry.path))
