from __future__ import annotations

import logging
from typing import Callable, Dict, List, NamedTuple, Optional, Union

from hwpreader.core.errors import MalformedRecordError
from hwpreader.core.schemas import (
    ALIGNMENTS,
    FONT_LANGUAGES,
    BinDataItem,
    Border,
    BorderFill,
    CaretLocation,
    CharShape,
    CompatibleDocument,
    DocInfo,
    DocumentProperties,
    FillInfo,
    FontFace,
    IdMappings,
    ParaShape,
    StartingIndex,
    Style,
)
from hwpreader.modules.records import (
    HWPTAG_BIN_DATA,
    HWPTAG_BORDER_FILL,
    HWPTAG_CHAR_SHAPE,
    HWPTAG_COMPATIBLE_DOCUMENT,
    HWPTAG_DOCUMENT_PROPERTIES,
    HWPTAG_FACE_NAME,
    HWPTAG_ID_MAPPINGS,
    HWPTAG_PARA_SHAPE,
    HWPTAG_STYLE,
    PayloadReader,
    Record,
    iter_records,
)

logger = logging.getLogger(__name__)


class SkippedRecord(NamedTuple):
    tag: int
    size: int


DocInfoItem = Union[
    DocumentProperties,
    IdMappings,
    BinDataItem,
    FontFace,
    BorderFill,
    CharShape,
    ParaShape,
    Style,
    CompatibleDocument,
    SkippedRecord,
]


# ─────────────────────────────
# 레코드별 디코더
# ─────────────────────────────
def _decode_document_properties(r: PayloadReader) -> DocumentProperties:
    section_size = r.u16()
    starting = StartingIndex(
        page=r.u16(),
        footnote=r.u16(),
        endnote=r.u16(),
        picture=r.u16(),
        table=r.u16(),
        equation=r.u16(),
    )
    caret = CaretLocation(list_id=r.u32(), paragraph_id=r.u32(), char_index=r.u32())
    return DocumentProperties(section_size=section_size, starting_index=starting, caret=caret)


_ID_MAPPING_FIELDS = (
    "bin_data",
    *(f"font:{lang}" for lang in FONT_LANGUAGES),
    "border_fill",
    "char_shape",
    "tab_def",
    "numbering",
    "bullet",
    "para_shape",
    "style",
    "memo_shape",
    "track_change",
    "track_change_author",
)


def _decode_id_mappings(r: PayloadReader) -> IdMappings:
    # 버전에 따라 뒤쪽 항목이 없을 수 있음
    values: Dict[str, int] = {}
    fonts = [0] * len(FONT_LANGUAGES)
    for field in _ID_MAPPING_FIELDS:
        if r.remaining() < 4:
            break
        count = r.i32()
        if field.startswith("font:"):
            fonts[FONT_LANGUAGES.index(field[5:])] = count
        else:
            values[field] = count
    return IdMappings(fonts=fonts, **values)


_BIN_DATA_KINDS = {0: "link", 1: "embedding", 2: "storage"}
_BIN_DATA_COMPRESSION = {0: "default", 1: "compress", 2: "none"}


def _decode_bin_data(r: PayloadReader) -> BinDataItem:
    attr = r.u16()
    kind = _BIN_DATA_KINDS.get(attr & 0x0F)
    if kind is None:
        raise MalformedRecordError(f"unknown BIN_DATA type {attr & 0x0F}")
    compression = _BIN_DATA_COMPRESSION.get((attr >> 4) & 0x03, "default")
    status = (attr >> 8) & 0x03

    if kind == "link":
        return BinDataItem(
            kind=kind,
            compression=compression,
            status=status,
            absolute_path=r.wstr(),
            relative_path=r.wstr(),
        )

    bin_data_id = r.u16()
    extension = r.wstr() if kind == "embedding" else None
    return BinDataItem(
        kind=kind,
        compression=compression,
        status=status,
        bin_data_id=bin_data_id,
        extension=extension,
    )


def _decode_face_name(r: PayloadReader) -> FontFace:
    attr = r.u8()
    name = r.wstr()
    alt_type = alt_name = panose = default_name = None
    if attr & 0x80:
        alt_type = r.u8()
        alt_name = r.wstr()
    if attr & 0x40:
        panose = r.array("B", 10)
    if attr & 0x20:
        default_name = r.wstr()
    return FontFace(
        name=name,
        attributes=attr,
        alternative_type=alt_type,
        alternative_name=alt_name,
        panose=panose,
        default_name=default_name,
    )


def _read_border(r: PayloadReader) -> Border:
    return Border(type=r.u8(), width=r.u8(), color=r.u32())


def _decode_border_fill(r: PayloadReader) -> BorderFill:
    attr = r.u16()
    left, right, top, bottom = (_read_border(r) for _ in range(4))
    diagonal = _read_border(r)

    fill = None
    if r.remaining() >= 4:
        kind = r.u32()
        if kind & 0x01 and r.remaining() >= 12:
            # 단색 채우기
            fill = FillInfo(
                kind=kind,
                background_color=r.u32(),
                pattern_color=r.u32(),
                pattern_type=r.i32(),
            )
        else:
            fill = FillInfo(kind=kind)

    return BorderFill(
        attributes=attr,
        left=left,
        right=right,
        top=top,
        bottom=bottom,
        diagonal=diagonal,
        fill=fill,
    )


def _decode_char_shape(r: PayloadReader) -> CharShape:
    font_ids = r.array("H", 7)
    ratios = r.array("B", 7)
    spacings = r.array("b", 7)
    relative_sizes = r.array("B", 7)
    offsets = r.array("b", 7)
    base_size = r.i32()
    attributes = r.u32()
    shadow_gap_x = r.i8()
    shadow_gap_y = r.i8()
    color = r.u32()
    underline_color = r.u32()
    shade_color = r.u32()
    shadow_color = r.u32()
    border_fill_id = r.u16() if r.remaining() >= 2 else None
    strike_color = r.u32() if r.remaining() >= 4 else None
    return CharShape(
        font_ids=font_ids,
        ratios=ratios,
        spacings=spacings,
        relative_sizes=relative_sizes,
        offsets=offsets,
        base_size=base_size,
        attributes=attributes,
        shadow_gap_x=shadow_gap_x,
        shadow_gap_y=shadow_gap_y,
        color=color,
        underline_color=underline_color,
        shade_color=shade_color,
        shadow_color=shadow_color,
        border_fill_id=border_fill_id,
        strike_color=strike_color,
    )


def _decode_para_shape(r: PayloadReader) -> ParaShape:
    attr = r.u32()
    align_code = (attr >> 2) & 0x07
    alignment = ALIGNMENTS[align_code] if align_code < len(ALIGNMENTS) else "justify"
    return ParaShape(
        attributes=attr,
        alignment=alignment,
        margin_left=r.i32(),
        margin_right=r.i32(),
        indent=r.i32(),
        spacing_before=r.i32(),
        spacing_after=r.i32(),
        line_spacing_legacy=r.i32(),
        tab_def_id=r.u16(),
        numbering_id=r.u16(),
        border_fill_id=r.u16(),
        border_spacing=r.array("h", 4),
        attributes2=r.u32() if r.remaining() >= 4 else None,
        attributes3=r.u32() if r.remaining() >= 4 else None,
        line_spacing=r.u32() if r.remaining() >= 4 else None,
    )


def _decode_style(r: PayloadReader) -> Style:
    local_name = r.wstr()
    english_name = r.wstr()
    attr = r.u8()
    return Style(
        local_name=local_name,
        english_name=english_name,
        kind="character" if attr & 0x07 else "paragraph",
        next_style_id=r.u8(),
        lang_id=r.i16(),
        para_shape_id=r.u16(),
        char_shape_id=r.u16(),
    )


def _decode_compatible_document(r: PayloadReader) -> CompatibleDocument:
    return CompatibleDocument(target_program=r.u32())


_DECODERS: Dict[int, Callable[[PayloadReader], DocInfoItem]] = {
    HWPTAG_DOCUMENT_PROPERTIES: _decode_document_properties,
    HWPTAG_ID_MAPPINGS: _decode_id_mappings,
    HWPTAG_BIN_DATA: _decode_bin_data,
    HWPTAG_FACE_NAME: _decode_face_name,
    HWPTAG_BORDER_FILL: _decode_border_fill,
    HWPTAG_CHAR_SHAPE: _decode_char_shape,
    HWPTAG_PARA_SHAPE: _decode_para_shape,
    HWPTAG_STYLE: _decode_style,
    HWPTAG_COMPATIBLE_DOCUMENT: _decode_compatible_document,
}


def decode_docinfo_record(record: Record) -> DocInfoItem:
    decoder = _DECODERS.get(record.tag)
    if decoder is None:
        return SkippedRecord(record.tag, record.size)
    try:
        return decoder(PayloadReader(record))
    except MalformedRecordError as e:
        if e.offset is None:
            e.offset = record.offset
        raise


# ─────────────────────────────
# DocInfo 누적
# ─────────────────────────────
def _font_language(mappings: Optional[IdMappings], index: int) -> Optional[str]:
    # ID_MAPPINGS의 언어별 글꼴 개수 순서대로 FACE_NAME이 나온다
    if mappings is None:
        return None
    upper = 0
    for lang, count in zip(FONT_LANGUAGES, mappings.fonts):
        upper += max(count, 0)
        if index < upper:
            return lang
    return None


def decode_docinfo(data: bytes, deadline: Optional[float] = None) -> DocInfo:
    """압축 해제된 DocInfo 스트림을 해석한다."""
    properties: Optional[DocumentProperties] = None
    mappings: Optional[IdMappings] = None
    compatible: Optional[int] = None
    bin_data: List[BinDataItem] = []
    font_faces: List[FontFace] = []
    border_fills: List[BorderFill] = []
    char_shapes: List[CharShape] = []
    para_shapes: List[ParaShape] = []
    styles: List[Style] = []
    skipped = 0

    for record in iter_records(data, deadline=deadline):
        item = decode_docinfo_record(record)

        if isinstance(item, SkippedRecord):
            skipped += 1
            logger.debug("DocInfo: skip %s (%d bytes)", record.name, item.size)
        elif isinstance(item, DocumentProperties):
            properties = item
        elif isinstance(item, IdMappings):
            mappings = item
        elif isinstance(item, BinDataItem):
            bin_data.append(item)
        elif isinstance(item, FontFace):
            lang = _font_language(mappings, len(font_faces))
            font_faces.append(item.model_copy(update={"language": lang}) if lang else item)
        elif isinstance(item, BorderFill):
            border_fills.append(item)
        elif isinstance(item, CharShape):
            char_shapes.append(item)
        elif isinstance(item, ParaShape):
            para_shapes.append(item)
        elif isinstance(item, Style):
            styles.append(item)
        elif isinstance(item, CompatibleDocument):
            compatible = item.target_program

    if properties is None:
        raise MalformedRecordError("DocInfo has no DOCUMENT_PROPERTIES record (section count unknown)")

    return DocInfo(
        section_size=properties.section_size,
        starting_index=properties.starting_index,
        caret=properties.caret,
        id_mappings=mappings,
        bin_data=bin_data,
        font_faces=font_faces,
        border_fills=border_fills,
        char_shapes=char_shapes,
        para_shapes=para_shapes,
        styles=styles,
        compatible_target=compatible,
        skipped_records=skipped,
    )


__all__ = ["SkippedRecord", "DocInfoItem", "decode_docinfo_record", "decode_docinfo"]
