from __future__ import annotations

from typing import Annotated, Iterator, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from hwpreader.core.version import HwpVersion


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ─────────────────────────────
# FileHeader
# ─────────────────────────────
class HeaderProperties(_Frozen):
    compressed: bool = False
    encrypted: bool = False
    distributed: bool = False
    script: bool = False
    drm: bool = False
    xml_template: bool = False
    history: bool = False
    signed: bool = False
    certificate_encrypted: bool = False
    signature_reserved: bool = False
    certificate_drm: bool = False
    ccl: bool = False
    mobile_optimized: bool = False
    privacy_protected: bool = False
    track_changes: bool = False
    kogl: bool = False
    video_control: bool = False
    order_field_control: bool = False
    raw: int = 0


class FileHeader(_Frozen):
    signature: str
    version: HwpVersion
    properties: HeaderProperties = Field(default_factory=HeaderProperties)
    license_flags: Optional[int] = None
    encrypt_version: Optional[int] = None


# ─────────────────────────────
# DocInfo
# ─────────────────────────────
class StartingIndex(_Frozen):
    page: int = 1
    footnote: int = 1
    endnote: int = 1
    picture: int = 1
    table: int = 1
    equation: int = 1


class CaretLocation(_Frozen):
    list_id: int = 0
    paragraph_id: int = 0
    char_index: int = 0


class DocumentProperties(_Frozen):
    section_size: int
    starting_index: StartingIndex
    caret: CaretLocation


FONT_LANGUAGES = ("hangul", "latin", "hanja", "japanese", "other", "symbol", "user")


class IdMappings(_Frozen):
    bin_data: int = 0
    fonts: Tuple[int, ...] = Field(default_factory=lambda: (0,) * len(FONT_LANGUAGES))
    border_fill: int = 0
    char_shape: int = 0
    tab_def: int = 0
    numbering: int = 0
    bullet: int = 0
    para_shape: int = 0
    style: int = 0
    memo_shape: int = 0
    track_change: int = 0
    track_change_author: int = 0


class BinDataItem(_Frozen):
    kind: Literal["link", "embedding", "storage"]
    compression: Literal["default", "compress", "none"]
    status: int = 0
    bin_data_id: Optional[int] = None
    extension: Optional[str] = None
    absolute_path: Optional[str] = None
    relative_path: Optional[str] = None

    @property
    def stream_name(self) -> Optional[str]:
        # BinData 스토리지 안의 스트림 이름 (예: BIN0001.png)
        if self.kind != "embedding" or self.bin_data_id is None:
            return None
        return f"BIN{self.bin_data_id:04X}.{self.extension or ''}"


class FontFace(_Frozen):
    name: str
    attributes: int = 0
    language: Optional[str] = None
    alternative_type: Optional[int] = None
    alternative_name: Optional[str] = None
    panose: Optional[Tuple[int, ...]] = None
    default_name: Optional[str] = None


class Border(_Frozen):
    type: int
    width: int
    color: int


class FillInfo(_Frozen):
    kind: int
    background_color: Optional[int] = None
    pattern_color: Optional[int] = None
    pattern_type: Optional[int] = None


class BorderFill(_Frozen):
    attributes: int
    left: Border
    right: Border
    top: Border
    bottom: Border
    diagonal: Border
    fill: Optional[FillInfo] = None


class CharShape(_Frozen):
    font_ids: Tuple[int, ...]
    ratios: Tuple[int, ...]
    spacings: Tuple[int, ...]
    relative_sizes: Tuple[int, ...]
    offsets: Tuple[int, ...]
    base_size: int
    attributes: int
    shadow_gap_x: int = 0
    shadow_gap_y: int = 0
    color: int = 0
    underline_color: int = 0
    shade_color: int = 0
    shadow_color: int = 0
    border_fill_id: Optional[int] = None
    strike_color: Optional[int] = None

    @property
    def italic(self) -> bool:
        return bool(self.attributes & 0x01)

    @property
    def bold(self) -> bool:
        return bool(self.attributes & 0x02)

    @property
    def underline(self) -> int:
        return (self.attributes >> 2) & 0x03

    @property
    def point_size(self) -> float:
        return self.base_size / 100


ALIGNMENTS = ("justify", "left", "right", "center", "distribute", "divide")


class ParaShape(_Frozen):
    attributes: int
    alignment: str
    margin_left: int
    margin_right: int
    indent: int
    spacing_before: int
    spacing_after: int
    line_spacing_legacy: int
    tab_def_id: int
    numbering_id: int
    border_fill_id: int
    border_spacing: Tuple[int, ...]
    attributes2: Optional[int] = None
    attributes3: Optional[int] = None
    line_spacing: Optional[int] = None


class Style(_Frozen):
    local_name: str
    english_name: str
    kind: Literal["paragraph", "character"]
    next_style_id: int
    lang_id: int
    para_shape_id: int
    char_shape_id: int


class CompatibleDocument(_Frozen):
    target_program: int


class DocInfo(_Frozen):
    section_size: int = Field(ge=0)
    starting_index: StartingIndex = Field(default_factory=StartingIndex)
    caret: CaretLocation = Field(default_factory=CaretLocation)
    id_mappings: Optional[IdMappings] = None
    bin_data: Tuple[BinDataItem, ...] = Field(default_factory=tuple)
    font_faces: Tuple[FontFace, ...] = Field(default_factory=tuple)
    border_fills: Tuple[BorderFill, ...] = Field(default_factory=tuple)
    char_shapes: Tuple[CharShape, ...] = Field(default_factory=tuple)
    para_shapes: Tuple[ParaShape, ...] = Field(default_factory=tuple)
    styles: Tuple[Style, ...] = Field(default_factory=tuple)
    compatible_target: Optional[int] = None
    skipped_records: int = 0


# ─────────────────────────────
# Section / Paragraph
# ─────────────────────────────
class ParaHeader(_Frozen):
    char_count: int
    last_in_list: bool = False
    control_mask: int = 0
    para_shape_id: int = 0
    style_id: int = 0
    break_type: int = 0
    char_shape_count: int = 0
    range_tag_count: int = 0
    line_seg_count: int = 0
    instance_id: int = 0
    track_change_merge: Optional[int] = None


class ControlChar(_Frozen):
    position: int
    code: int
    kind: Literal["char", "inline", "extended"]
    ctrl_id: Optional[str] = None


class CharShapeRef(_Frozen):
    position: int
    shape_id: int


class LineSegment(_Frozen):
    text_start: int
    vertical_position: int
    line_height: int
    text_height: int
    baseline_gap: int
    line_spacing: int
    column_start: int
    segment_width: int
    flags: int


class RangeTag(_Frozen):
    start: int
    end: int
    tag: int


class PageDef(_Frozen):
    width: int
    height: int
    margin_left: int
    margin_right: int
    margin_top: int
    margin_bottom: int
    margin_header: int
    margin_footer: int
    gutter: int
    attributes: int = 0

    @property
    def landscape(self) -> bool:
        return bool(self.attributes & 0x01)


class ObjectProperties(_Frozen):
    attributes: int
    vertical_offset: int
    horizontal_offset: int
    width: int
    height: int
    z_order: int
    margins: Tuple[int, ...]
    instance_id: int
    prevent_page_break: Optional[int] = None
    description: Optional[str] = None


class TableCell(_Frozen):
    column: int
    row: int
    col_span: int
    row_span: int
    width: int
    height: int
    padding: Tuple[int, ...]
    border_fill_id: int
    paragraphs: Tuple["Paragraph", ...] = Field(default_factory=tuple)


class TableControl(_Frozen):
    kind: Literal["table"] = "table"
    ctrl_id: str = "tbl "
    common: Optional[ObjectProperties] = None
    attributes: int = 0
    rows: int = 0
    cols: int = 0
    cell_spacing: int = 0
    padding: Tuple[int, ...] = Field(default_factory=tuple)
    row_sizes: Tuple[int, ...] = Field(default_factory=tuple)
    border_fill_id: int = 0
    cells: Tuple[TableCell, ...] = Field(default_factory=tuple)
    # TABLE 레코드 앞의 LIST_HEADER 문단
    caption: Tuple["Paragraph", ...] = Field(default_factory=tuple)


class ShapeControl(_Frozen):
    kind: Literal["shape"] = "shape"
    ctrl_id: str = "gso "
    common: Optional[ObjectProperties] = None
    component_id: Optional[str] = None
    paragraphs: Tuple["Paragraph", ...] = Field(default_factory=tuple)


class SectionDefControl(_Frozen):
    kind: Literal["section_def"] = "section_def"
    ctrl_id: str = "secd"
    attributes: int = 0
    column_spacing: int = 0
    default_tab_spacing: int = 0
    numbering_shape_id: int = 0
    starting_page: int = 0
    starting_picture: int = 0
    starting_table: int = 0
    starting_equation: int = 0
    page_def: Optional[PageDef] = None


class GenericControl(_Frozen):
    kind: Literal["generic"] = "generic"
    ctrl_id: str
    paragraphs: Tuple["Paragraph", ...] = Field(default_factory=tuple)


Control = Annotated[
    Union[TableControl, ShapeControl, SectionDefControl, GenericControl],
    Field(discriminator="kind"),
]


class Paragraph(_Frozen):
    header: ParaHeader
    text: str = ""
    control_chars: Tuple[ControlChar, ...] = Field(default_factory=tuple)
    char_shapes: Tuple[CharShapeRef, ...] = Field(default_factory=tuple)
    line_segments: Tuple[LineSegment, ...] = Field(default_factory=tuple)
    range_tags: Tuple[RangeTag, ...] = Field(default_factory=tuple)
    controls: Tuple[Control, ...] = Field(default_factory=tuple)


class Section(_Frozen):
    index: int = Field(ge=0)
    page_def: Optional[PageDef] = None
    paragraphs: Tuple[Paragraph, ...] = Field(default_factory=tuple)
    skipped_records: int = 0

    @computed_field  # type: ignore[misc]
    @property
    def text(self) -> str:
        return "\n".join(p.text for p in iter_paragraphs(self.paragraphs))


TableCell.model_rebuild()
TableControl.model_rebuild()
ShapeControl.model_rebuild()
GenericControl.model_rebuild()
Paragraph.model_rebuild()
Section.model_rebuild()


def iter_paragraphs(paragraphs: Sequence[Paragraph]) -> Iterator[Paragraph]:
    # 표 셀/글상자/머리말 등 중첩 문단까지 문서 순서대로
    for para in paragraphs:
        yield para
        for ctrl in para.controls:
            if isinstance(ctrl, TableControl):
                yield from iter_paragraphs(ctrl.caption)
                for cell in ctrl.cells:
                    yield from iter_paragraphs(cell.paragraphs)
            elif isinstance(ctrl, (ShapeControl, GenericControl)):
                yield from iter_paragraphs(ctrl.paragraphs)


# ─────────────────────────────
# Document
# ─────────────────────────────
class Document(_Frozen):
    header: FileHeader
    doc_info: DocInfo
    sections: Tuple[Section, ...]

    @model_validator(mode="after")
    def _check_section_count(self) -> "Document":
        if len(self.sections) != self.doc_info.section_size:
            raise ValueError(
                f"document declares {self.doc_info.section_size} sections, got {len(self.sections)}"
            )
        for i, sec in enumerate(self.sections):
            if sec.index != i:
                raise ValueError(f"section at position {i} has index {sec.index}")
        return self

    @property
    def text(self) -> str:
        return "\n".join(sec.text for sec in self.sections)


class ParseErrorDetail(BaseModel):
    kind: str
    message: str
    stage: Optional[str] = None
    entry: Optional[str] = None
    offset: Optional[int] = None


class ParseErrorResponse(BaseModel):
    detail: ParseErrorDetail


class SectionText(BaseModel):
    index: int
    text: str


class TextResponse(BaseModel):
    full_text: str
    pages: List[dict] = Field(default_factory=list)
    sections: List[SectionText] = Field(default_factory=list)
