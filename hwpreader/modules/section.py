from __future__ import annotations

import logging
import struct
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from hwpreader.core.errors import MalformedRecordError
from hwpreader.core.schemas import (
    CharShapeRef,
    Control,
    ControlChar,
    GenericControl,
    LineSegment,
    ObjectProperties,
    PageDef,
    Paragraph,
    ParaHeader,
    RangeTag,
    Section,
    SectionDefControl,
    ShapeControl,
    TableCell,
    TableControl,
)
from hwpreader.modules.records import (
    HWPTAG_CTRL_HEADER,
    HWPTAG_LIST_HEADER,
    HWPTAG_PAGE_DEF,
    HWPTAG_PARA_CHAR_SHAPE,
    HWPTAG_PARA_HEADER,
    HWPTAG_PARA_LINE_SEG,
    HWPTAG_PARA_RANGE_TAG,
    HWPTAG_PARA_TEXT,
    HWPTAG_SHAPE_COMPONENT,
    HWPTAG_TABLE,
    PayloadReader,
    Record,
    RecordNode,
    build_record_tree,
    ctrl_id_text,
    iter_records,
)

logger = logging.getLogger(__name__)

CTRL_TABLE = "tbl "
CTRL_SHAPE = "gso "
CTRL_SECTION_DEF = "secd"

# PARA_TEXT 제어 문자 분류
CHAR_CONTROLS = frozenset({0, 10, 13, 24, 25, 26, 27, 28, 29, 30, 31})
INLINE_CONTROLS = frozenset({4, 5, 6, 7, 8, 9, 19, 20})
EXTENDED_CONTROLS = frozenset({1, 2, 3, 11, 12, 14, 15, 16, 17, 18, 21, 22, 23})
_CONTROL_WCHARS = 8

_CHAR_TEXT = {
    9: "\t",
    10: "\n",
    24: "-",
    30: "\u00a0",
    31: " ",
}


# ─────────────────────────────
# 레코드 종류 (Section 문맥)
# ─────────────────────────────
class ParaText(NamedTuple):
    text: str
    control_chars: List[ControlChar]


class CtrlHeader(NamedTuple):
    ctrl_id: str
    reader: PayloadReader


class ListHeader(NamedTuple):
    paragraph_count: int
    attributes: int
    reader: PayloadReader


class TableProps(NamedTuple):
    attributes: int
    rows: int
    cols: int
    cell_spacing: int
    padding: List[int]
    row_sizes: List[int]
    border_fill_id: int


class ShapeComponent(NamedTuple):
    component_id: str


class SkippedRecord(NamedTuple):
    tag: int
    size: int


SectionItem = Union[
    ParaHeader,
    ParaText,
    List[CharShapeRef],
    List[LineSegment],
    List[RangeTag],
    CtrlHeader,
    ListHeader,
    PageDef,
    TableProps,
    ShapeComponent,
    SkippedRecord,
]


def _decode_para_header(r: PayloadReader) -> ParaHeader:
    raw_count = r.u32()
    return ParaHeader(
        char_count=raw_count & 0x7FFFFFFF,
        last_in_list=bool(raw_count & 0x80000000),
        control_mask=r.u32(),
        para_shape_id=r.u16(),
        style_id=r.u8(),
        break_type=r.u8(),
        char_shape_count=r.u16(),
        range_tag_count=r.u16(),
        line_seg_count=r.u16(),
        instance_id=r.u32(),
        track_change_merge=r.u16() if r.remaining() >= 2 else None,
    )


def decode_para_text(payload: bytes, offset: Optional[int] = None) -> ParaText:
    """PARA_TEXT(UTF-16LE)에서 본문 문자열과 제어 문자 위치를 뽑는다.

    위치는 WCHAR 단위. char 제어는 1, inline/extended 제어는 8 WCHAR를 차지한다.
    """
    data = bytes(payload)
    if len(data) % 2:
        raise MalformedRecordError(f"PARA_TEXT has odd length {len(data)}", offset=offset)

    units = len(data) // 2
    pieces: List[str] = []
    controls: List[ControlChar] = []
    run_start: Optional[int] = None
    i = 0

    def flush(end: int) -> None:
        if run_start is not None:
            pieces.append(data[run_start * 2:end * 2].decode("utf-16-le", "replace"))

    while i < units:
        code = struct.unpack_from("<H", data, i * 2)[0]
        if code >= 32:
            if run_start is None:
                run_start = i
            i += 1
            continue

        flush(i)
        run_start = None

        if code in CHAR_CONTROLS:
            controls.append(ControlChar(position=i, code=code, kind="char"))
            pieces.append(_CHAR_TEXT.get(code, ""))
            i += 1
            continue

        if i + _CONTROL_WCHARS > units:
            raise MalformedRecordError(
                f"control char {code} at position {i} is truncated", offset=offset
            )
        if code in INLINE_CONTROLS:
            controls.append(ControlChar(position=i, code=code, kind="inline"))
            pieces.append(_CHAR_TEXT.get(code, ""))
        elif code in EXTENDED_CONTROLS:
            ctrl_value = struct.unpack_from("<I", data, (i + 1) * 2)[0]
            controls.append(
                ControlChar(position=i, code=code, kind="extended", ctrl_id=ctrl_id_text(ctrl_value))
            )
        else:
            # 분류표에 없는 코드는 정의상 존재하지 않음
            raise MalformedRecordError(f"unknown control char {code} at position {i}", offset=offset)
        i += _CONTROL_WCHARS

    flush(units)
    return ParaText("".join(pieces), controls)


def _decode_para_text(r: PayloadReader) -> ParaText:
    return decode_para_text(r.raw(r.remaining()))


def _decode_char_shape_refs(r: PayloadReader) -> List[CharShapeRef]:
    out: List[CharShapeRef] = []
    while r.remaining() >= 8:
        out.append(CharShapeRef(position=r.u32(), shape_id=r.u32()))
    return out


def _decode_line_segments(r: PayloadReader) -> List[LineSegment]:
    out: List[LineSegment] = []
    while r.remaining() >= 36:
        (text_start, vpos, line_height, text_height, baseline_gap, line_spacing,
         column_start, segment_width) = r.array("i", 8)
        out.append(
            LineSegment(
                text_start=text_start,
                vertical_position=vpos,
                line_height=line_height,
                text_height=text_height,
                baseline_gap=baseline_gap,
                line_spacing=line_spacing,
                column_start=column_start,
                segment_width=segment_width,
                flags=r.u32(),
            )
        )
    return out


def _decode_range_tags(r: PayloadReader) -> List[RangeTag]:
    out: List[RangeTag] = []
    while r.remaining() >= 12:
        out.append(RangeTag(start=r.u32(), end=r.u32(), tag=r.u32()))
    return out


def _decode_ctrl_header(r: PayloadReader) -> CtrlHeader:
    return CtrlHeader(ctrl_id_text(r.u32()), r)


def _decode_list_header(r: PayloadReader) -> ListHeader:
    paragraph_count = r.u16()
    r.skip(2)
    return ListHeader(paragraph_count, r.u32(), r)


def _decode_page_def(r: PayloadReader) -> PageDef:
    return PageDef(
        width=r.u32(),
        height=r.u32(),
        margin_left=r.u32(),
        margin_right=r.u32(),
        margin_top=r.u32(),
        margin_bottom=r.u32(),
        margin_header=r.u32(),
        margin_footer=r.u32(),
        gutter=r.u32(),
        attributes=r.u32(),
    )


def _decode_table(r: PayloadReader) -> TableProps:
    attributes = r.u32()
    rows = r.u16()
    cols = r.u16()
    cell_spacing = r.u16()
    padding = r.array("H", 4)
    row_sizes = r.array("H", rows)
    border_fill_id = r.u16()
    return TableProps(attributes, rows, cols, cell_spacing, padding, row_sizes, border_fill_id)


def _decode_shape_component(r: PayloadReader) -> ShapeComponent:
    return ShapeComponent(ctrl_id_text(r.u32()))


_DECODERS: Dict[int, Callable[[PayloadReader], SectionItem]] = {
    HWPTAG_PARA_HEADER: _decode_para_header,
    HWPTAG_PARA_TEXT: _decode_para_text,
    HWPTAG_PARA_CHAR_SHAPE: _decode_char_shape_refs,
    HWPTAG_PARA_LINE_SEG: _decode_line_segments,
    HWPTAG_PARA_RANGE_TAG: _decode_range_tags,
    HWPTAG_CTRL_HEADER: _decode_ctrl_header,
    HWPTAG_LIST_HEADER: _decode_list_header,
    HWPTAG_PAGE_DEF: _decode_page_def,
    HWPTAG_TABLE: _decode_table,
    HWPTAG_SHAPE_COMPONENT: _decode_shape_component,
}


def decode_section_record(record: Record) -> SectionItem:
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
# 레코드 트리 → 문단/컨트롤
# ─────────────────────────────
class _SectionBuilder:
    """한 섹션 해석 동안의 누적 상태."""

    def __init__(self):
        self.page_def: Optional[PageDef] = None
        self.skipped = 0

    def item(self, node: RecordNode) -> SectionItem:
        item = decode_section_record(node.record)
        if isinstance(item, SkippedRecord):
            self.skipped += 1
            logger.debug("Section: skip %s (%d bytes)", node.record.name, item.size)
        return item

    def paragraphs(self, nodes: List[RecordNode]) -> List[Paragraph]:
        return [self.paragraph(n) for n in nodes if n.tag == HWPTAG_PARA_HEADER]

    def paragraph(self, node: RecordNode) -> Paragraph:
        header = self.item(node)
        text = ""
        control_chars: List[ControlChar] = []
        char_shapes: List[CharShapeRef] = []
        line_segments: List[LineSegment] = []
        range_tags: List[RangeTag] = []
        controls: List[Control] = []

        for child in node.children:
            tag = child.tag
            if tag == HWPTAG_CTRL_HEADER:
                controls.append(self.control(child))
                continue
            item = self.item(child)
            if tag == HWPTAG_PARA_TEXT:
                text, control_chars = item.text, item.control_chars
            elif tag == HWPTAG_PARA_CHAR_SHAPE:
                char_shapes = item
            elif tag == HWPTAG_PARA_LINE_SEG:
                line_segments = item
            elif tag == HWPTAG_PARA_RANGE_TAG:
                range_tags = item

        return Paragraph(
            header=header,
            text=text,
            control_chars=control_chars,
            char_shapes=char_shapes,
            line_segments=line_segments,
            range_tags=range_tags,
            controls=controls,
        )

    def lists(self, nodes: List[RecordNode]) -> List[Tuple[Optional[ListHeader], List[Paragraph]]]:
        # LIST_HEADER 다음에 같은 level의 PARA_HEADER들이 이어진다 (자식으로 올 수도 있음)
        groups: List[Tuple[Optional[ListHeader], List[Paragraph]]] = []
        for node in nodes:
            if node.tag == HWPTAG_LIST_HEADER:
                header = self.item(node)
                groups.append((header, self.paragraphs(node.children)))
            elif node.tag == HWPTAG_PARA_HEADER:
                if not groups:
                    groups.append((None, []))
                groups[-1][1].append(self.paragraph(node))
        return groups

    def control(self, node: RecordNode) -> Control:
        header: CtrlHeader = self.item(node)
        if header.ctrl_id == CTRL_TABLE:
            return self.table(header, node)
        if header.ctrl_id == CTRL_SHAPE:
            return self.shape(header, node)
        if header.ctrl_id == CTRL_SECTION_DEF:
            return self.section_def(header, node)

        paragraphs: List[Paragraph] = []
        for _, paras in self.lists(node.children):
            paragraphs.extend(paras)
        for child in node.children:
            if child.tag not in (HWPTAG_LIST_HEADER, HWPTAG_PARA_HEADER):
                self.item(child)
        return GenericControl(ctrl_id=header.ctrl_id, paragraphs=paragraphs)

    def table(self, header: CtrlHeader, node: RecordNode) -> TableControl:
        common = _read_object_properties(header.reader)
        props: Optional[TableProps] = None
        # TABLE 앞의 LIST_HEADER는 캡션, 뒤의 것만 셀
        split = 0
        for i, child in enumerate(node.children):
            if child.tag == HWPTAG_TABLE:
                if props is None:
                    props = self.item(child)
                    split = i
                else:
                    self.item(child)
            elif child.tag not in (HWPTAG_LIST_HEADER, HWPTAG_PARA_HEADER):
                self.item(child)

        caption: List[Paragraph] = []
        if props is not None:
            for _, paras in self.lists(node.children[:split]):
                caption.extend(paras)
            cell_nodes = node.children[split + 1:]
        else:
            cell_nodes = node.children

        cells: List[TableCell] = []
        for list_header, paras in self.lists(cell_nodes):
            if list_header is None:
                raise MalformedRecordError("table paragraph without cell LIST_HEADER", offset=node.record.offset)
            cells.append(_read_table_cell(list_header, paras))

        if props is None:
            return TableControl(ctrl_id=header.ctrl_id, common=common, cells=cells)
        return TableControl(
            ctrl_id=header.ctrl_id,
            common=common,
            attributes=props.attributes,
            rows=props.rows,
            cols=props.cols,
            cell_spacing=props.cell_spacing,
            padding=props.padding,
            row_sizes=props.row_sizes,
            border_fill_id=props.border_fill_id,
            cells=cells,
            caption=caption,
        )

    def shape(self, header: CtrlHeader, node: RecordNode) -> ShapeControl:
        common = _read_object_properties(header.reader)
        component_id: Optional[str] = None
        paragraphs: List[Paragraph] = []

        def walk(nodes: List[RecordNode]) -> None:
            nonlocal component_id
            for _, paras in self.lists(nodes):
                paragraphs.extend(paras)
            for child in nodes:
                if child.tag == HWPTAG_SHAPE_COMPONENT:
                    comp = self.item(child)
                    if component_id is None:
                        component_id = comp.component_id
                    walk(child.children)
                elif child.tag not in (HWPTAG_LIST_HEADER, HWPTAG_PARA_HEADER):
                    self.item(child)

        walk(node.children)
        return ShapeControl(
            ctrl_id=header.ctrl_id,
            common=common,
            component_id=component_id,
            paragraphs=paragraphs,
        )

    def section_def(self, header: CtrlHeader, node: RecordNode) -> SectionDefControl:
        r = header.reader
        fields: Dict[str, int] = {}
        if r.remaining() >= 4:
            fields["attributes"] = r.u32()
        if r.remaining() >= 2:
            fields["column_spacing"] = r.u16()
        if r.remaining() >= 4:
            # 세로/가로 줄맞춤 간격
            r.skip(4)
        if r.remaining() >= 4:
            fields["default_tab_spacing"] = r.u32()
        for name in ("numbering_shape_id", "starting_page", "starting_picture",
                     "starting_table", "starting_equation"):
            if r.remaining() < 2:
                break
            fields[name] = r.u16()

        page_def: Optional[PageDef] = None
        for child in node.children:
            item = self.item(child)
            if child.tag == HWPTAG_PAGE_DEF and page_def is None:
                page_def = item
        if page_def is not None and self.page_def is None:
            self.page_def = page_def
        return SectionDefControl(ctrl_id=header.ctrl_id, page_def=page_def, **fields)


def _read_object_properties(r: PayloadReader) -> Optional[ObjectProperties]:
    # 개체 공통 속성. 짧은 CTRL_HEADER면 생략
    if r.remaining() < 36:
        return None
    attributes = r.u32()
    vertical_offset = r.i32()
    horizontal_offset = r.i32()
    width = r.u32()
    height = r.u32()
    z_order = r.i32()
    margins = r.array("h", 4)
    instance_id = r.u32()
    prevent_page_break = r.i32() if r.remaining() >= 4 else None
    description = r.wstr() if r.remaining() >= 2 else None
    return ObjectProperties(
        attributes=attributes,
        vertical_offset=vertical_offset,
        horizontal_offset=horizontal_offset,
        width=width,
        height=height,
        z_order=z_order,
        margins=margins,
        instance_id=instance_id,
        prevent_page_break=prevent_page_break,
        description=description,
    )


def _read_table_cell(header: ListHeader, paragraphs: List[Paragraph]) -> TableCell:
    r = header.reader
    return TableCell(
        column=r.u16(),
        row=r.u16(),
        col_span=r.u16(),
        row_span=r.u16(),
        width=r.u32(),
        height=r.u32(),
        padding=r.array("H", 4),
        border_fill_id=r.u16(),
        paragraphs=paragraphs,
    )


def decode_section(data: bytes, index: int, deadline: Optional[float] = None) -> Section:
    """압축 해제된 BodyText/SectionN 스트림을 해석한다."""
    root = build_record_tree(iter_records(data, deadline=deadline))
    builder = _SectionBuilder()

    paragraphs: List[Paragraph] = []
    for node in root.children:
        if node.tag == HWPTAG_PARA_HEADER:
            paragraphs.append(builder.paragraph(node))
        else:
            builder.item(node)

    return Section(
        index=index,
        page_def=builder.page_def,
        paragraphs=paragraphs,
        skipped_records=builder.skipped,
    )


__all__ = [
    "ParaText",
    "CtrlHeader",
    "ListHeader",
    "TableProps",
    "ShapeComponent",
    "SkippedRecord",
    "SectionItem",
    "decode_para_text",
    "decode_section_record",
    "decode_section",
]
