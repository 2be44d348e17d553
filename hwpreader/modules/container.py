from __future__ import annotations

import io
from typing import Dict, NamedTuple, Optional, Protocol, Tuple

import olefile

from hwpreader.core.errors import ContainerError


class Entry(NamedTuple):
    name: str
    path: Tuple[str, ...]
    kind: str  # "storage" | "stream"
    size: int = 0

    @property
    def is_storage(self) -> bool:
        return self.kind == "storage"

    @property
    def is_stream(self) -> bool:
        return self.kind == "stream"

    @property
    def display_path(self) -> str:
        return "/".join(self.path)


class Container(Protocol):
    def child_by_name(self, name: str, storage: Optional[Entry] = None) -> Optional[Entry]:
        ...

    def stream_bytes(self, entry: Entry) -> bytes:
        ...


def _entry_kind(direntry) -> Optional[str]:
    if direntry.entry_type in (olefile.STGTY_STORAGE, olefile.STGTY_ROOT):
        return "storage"
    if direntry.entry_type == olefile.STGTY_STREAM:
        return "stream"
    return None


class OleContainer:
    """olefile 위의 컨테이너 접근자.

    olefile의 경로 탐색은 대소문자를 구분하지 않으므로, 스토리지마다
    정확한 이름 → 엔트리 색인을 만들어 두고 첫 번째 일치 항목을 쓴다.
    """

    def __init__(self, ole: olefile.OleFileIO):
        self._ole = ole
        self._index: Dict[Tuple[str, ...], Dict[str, Entry]] = {}
        self._build_index(ole.root, ())

    @classmethod
    def from_bytes(cls, data: bytes) -> "OleContainer":
        try:
            ole = olefile.OleFileIO(io.BytesIO(data))
        except Exception as e:
            raise ContainerError(f"not a readable compound file: {e}") from e
        return cls(ole)

    def _build_index(self, direntry, path: Tuple[str, ...]) -> None:
        children: Dict[str, Entry] = {}
        for kid in direntry.kids:
            kind = _entry_kind(kid)
            if kind is None:
                continue
            entry = Entry(kid.name, path + (kid.name,), kind, kid.size if kind == "stream" else 0)
            children.setdefault(kid.name, entry)
            if kind == "storage":
                self._build_index(kid, entry.path)
        self._index[path] = children

    def child_by_name(self, name: str, storage: Optional[Entry] = None) -> Optional[Entry]:
        if storage is not None and not storage.is_storage:
            return None
        parent = storage.path if storage is not None else ()
        return self._index.get(parent, {}).get(name)

    def stream_bytes(self, entry: Entry) -> bytes:
        if not entry.is_stream:
            raise ContainerError(f"{entry.display_path} is not a stream", entry=entry.display_path)
        try:
            with self._ole.openstream(list(entry.path)) as stream:
                return stream.read()
        except Exception as e:
            raise ContainerError(f"cannot read stream: {e}", entry=entry.display_path) from e

    def close(self) -> None:
        self._ole.close()

    def __enter__(self) -> "OleContainer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


__all__ = ["Entry", "Container", "OleContainer"]
