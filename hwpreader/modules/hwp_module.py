from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import List, Optional, Tuple

from hwpreader.core.config import ParserSettings, load_settings
from hwpreader.core.errors import HwpParseError, MissingEntryError
from hwpreader.core.schemas import DocInfo, Document, FileHeader, Section
from hwpreader.modules.container import Container, Entry, OleContainer
from hwpreader.modules.decompress import decompress
from hwpreader.modules.docinfo import decode_docinfo
from hwpreader.modules.header import FILE_HEADER_ENTRY, parse_file_header
from hwpreader.modules.section import decode_section

logger = logging.getLogger(__name__)

DOC_INFO_ENTRY = "DocInfo"
BODY_TEXT_ENTRY = "BodyText"


def section_entry_name(index: int) -> str:
    return f"Section{index}"


class ParseState(str, Enum):
    START = "Start"
    HEADER_PARSED = "HeaderParsed"
    METADATA_PARSED = "MetadataParsed"
    SECTIONS_PARSED = "SectionsParsed"
    DONE = "Done"
    FAILED = "Failed"


class HwpDocumentParser:
    """FileHeader → DocInfo → BodyText/Section0..N-1 순서로 문서를 조립한다.

    상태는 앞으로만 진행하고, 어느 단계에서든 실패하면 FAILED에서 멈춘다.
    부분 문서는 반환하지 않는다.
    """

    def __init__(self, container: Container, settings: Optional[ParserSettings] = None):
        self._container = container
        self._settings = settings or load_settings()
        self._state = ParseState.START
        self._sections_parsed = 0
        self._deadline: Optional[float] = None

    @property
    def state(self) -> ParseState:
        return self._state

    @property
    def sections_parsed(self) -> int:
        return self._sections_parsed

    def parse(self) -> Document:
        if self._state != ParseState.START:
            raise RuntimeError(f"parser already used (state={self._state.value})")

        if self._settings.parse_timeout > 0:
            self._deadline = time.monotonic() + self._settings.parse_timeout

        try:
            header = self._parse_header()
            self._state = ParseState.HEADER_PARSED

            doc_info = self._parse_doc_info()
            self._state = ParseState.METADATA_PARSED

            sections = self._parse_sections(doc_info.section_size)
            self._state = ParseState.SECTIONS_PARSED

            document = Document(header=header, doc_info=doc_info, sections=sections)
        except HwpParseError as e:
            if e.stage is None:
                e.stage = self._state.value
            self._state = ParseState.FAILED
            logger.warning("HWP 파싱 실패: %s", e)
            raise
        except Exception:
            self._state = ParseState.FAILED
            raise

        self._state = ParseState.DONE
        logger.info(
            "HWP 파싱 완료: version=%s sections=%d",
            header.version,
            len(document.sections),
        )
        return document

    # ─────────────────────────────
    # 단계별
    # ─────────────────────────────
    def _require(self, name: str, storage: Optional[Entry] = None, display: Optional[str] = None) -> Entry:
        entry = self._container.child_by_name(name, storage)
        if entry is None:
            raise MissingEntryError(f"cannot find {display or name}", entry=display or name)
        return entry

    def _parse_header(self) -> FileHeader:
        entry = self._require(FILE_HEADER_ENTRY)
        return parse_file_header(self._container.stream_bytes(entry), self._settings)

    def _parse_doc_info(self) -> DocInfo:
        entry = self._require(DOC_INFO_ENTRY)
        raw = self._container.stream_bytes(entry)
        data = decompress(raw, entry=DOC_INFO_ENTRY)
        try:
            doc_info = decode_docinfo(data, deadline=self._deadline)
        except HwpParseError as e:
            e.entry = e.entry or DOC_INFO_ENTRY
            raise
        logger.debug("DocInfo: sections=%d skipped=%d", doc_info.section_size, doc_info.skipped_records)
        return doc_info

    def _section_bytes(self, index: int, body_text: Entry) -> Tuple[int, str, bytes]:
        name = section_entry_name(index)
        display = f"{BODY_TEXT_ENTRY}/{name}"
        entry = self._require(name, body_text, display=display)
        return index, display, self._container.stream_bytes(entry)

    def _decode_one(self, item: Tuple[int, str, bytes]) -> Section:
        index, display, raw = item
        try:
            section = decode_section(decompress(raw, entry=display), index, deadline=self._deadline)
        except HwpParseError as e:
            e.entry = e.entry or display
            raise
        logger.debug("%s: paragraphs=%d", display, len(section.paragraphs))
        return section

    def _parse_sections(self, section_size: int) -> List[Section]:
        if section_size == 0:
            return []
        body_text = self._require(BODY_TEXT_ENTRY)

        sections: List[Section] = []
        workers = self._settings.section_workers
        if workers <= 1 or section_size == 1:
            for i in range(section_size):
                # 섹션 하나씩 찾고 → 풀고 → 해석
                sections.append(self._decode_one(self._section_bytes(i, body_text)))
                self._sections_parsed = len(sections)
            return sections

        # 컨테이너 읽기는 호출 스레드에서 순서대로, 해석만 병렬
        payloads = [self._section_bytes(i, body_text) for i in range(section_size)]
        with ThreadPoolExecutor(max_workers=min(workers, section_size)) as pool:
            for section in pool.map(self._decode_one, payloads):
                sections.append(section)
                self._sections_parsed = len(sections)
        return sections


def parse(file_bytes: bytes, settings: Optional[ParserSettings] = None) -> Document:
    with OleContainer.from_bytes(file_bytes) as container:
        return HwpDocumentParser(container, settings).parse()


# ─────────────────────────────
# 문자 추출
# ─────────────────────────────
def extract_text(file_bytes: bytes, settings: Optional[ParserSettings] = None) -> dict:
    document = parse(file_bytes, settings)
    sections = [{"index": s.index, "text": s.text} for s in document.sections]
    # 문단 경계는 '\n', 섹션 경계도 '\n'
    full = "\n".join(s["text"] for s in sections)
    return {"full_text": full, "pages": [{"page": 1, "text": full}], "sections": sections}


__all__ = [
    "ParseState",
    "HwpDocumentParser",
    "DOC_INFO_ENTRY",
    "BODY_TEXT_ENTRY",
    "section_entry_name",
    "parse",
    "extract_text",
]
