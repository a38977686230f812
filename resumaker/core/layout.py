"""
Visual tree and layout for the resume preview.

A `PreviewNode` carries CSS-like style strings ("210mm", "35%", "25px 20px",
"2px solid #39A2DB"). `layout()` resolves them against an available width into
positioned boxes and wrapped text lines, in CSS pixels at 96 dpi. Only the
subset of CSS the preview uses is understood: block stacking, wrapped lines of
inline-block chips, a single flex row, padding, vertical margins, bottom
borders, min-height and inherited text properties.
"""
import math
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Tuple

from PIL import ImageFont

PX_PER_MM = 96 / 25.4
DEFAULT_FONT_SIZE = 16.0
DEFAULT_LINE_HEIGHT = 1.3

INHERITED_PROPERTIES = (
    "color",
    "font-size",
    "font-weight",
    "font-style",
    "line-height",
    "text-transform",
    "word-break",
)


@dataclass
class PreviewNode:
    tag: str
    style: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    children: List["PreviewNode"] = field(default_factory=list)
    node_id: Optional[str] = None
    # data: URL for <img> nodes
    image: Optional[str] = None

    def iter_nodes(self) -> Iterator["PreviewNode"]:
        yield self
        for child in self.children:
            yield from child.iter_nodes()


@dataclass
class TextLine:
    text: str
    x: float
    y: float
    height: float
    font_size: float
    color: str
    bold: bool = False
    italic: bool = False


@dataclass
class LayoutBox:
    node: PreviewNode
    style: Dict[str, str]
    x: float
    y: float
    width: float
    height: float
    lines: List[TextLine] = field(default_factory=list)
    children: List["LayoutBox"] = field(default_factory=list)


def to_px(value: Optional[str], reference: float = 0.0) -> float:
    """Converts a CSS length ("12px", "210mm", "35%", "0") to pixels."""
    if value is None:
        return 0.0
    value = value.strip()
    if not value or value == "auto":
        return 0.0
    if value.endswith("px"):
        return float(value[:-2])
    if value.endswith("mm"):
        return float(value[:-2]) * PX_PER_MM
    if value.endswith("%"):
        return reference * float(value[:-1]) / 100
    return float(value)


def box_sides(value: Optional[str]) -> Tuple[float, float, float, float]:
    """Expands a CSS padding/margin shorthand into (top, right, bottom, left)."""
    if not value:
        return 0.0, 0.0, 0.0, 0.0
    parts = [to_px(p) for p in value.split()]
    if len(parts) == 1:
        return parts[0], parts[0], parts[0], parts[0]
    if len(parts) == 2:
        return parts[0], parts[1], parts[0], parts[1]
    if len(parts) == 3:
        return parts[0], parts[1], parts[2], parts[1]
    return parts[0], parts[1], parts[2], parts[3]


def vertical_margins(style: Dict[str, str]) -> Tuple[float, float]:
    top, _, bottom, _ = box_sides(style.get("margin"))
    if "margin-top" in style:
        top = to_px(style["margin-top"])
    if "margin-bottom" in style:
        bottom = to_px(style["margin-bottom"])
    return top, bottom


def border_width(value: Optional[str]) -> float:
    """Width of a "2px solid #39A2DB" border declaration."""
    if not value:
        return 0.0
    return to_px(value.split()[0])


def border_color(value: Optional[str]) -> str:
    parts = (value or "").split()
    return parts[-1] if len(parts) >= 3 else "#000000"


@lru_cache(maxsize=64)
def get_font(size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=max(int(size), 1))


def wrap_text(text: str, font, max_width: float) -> List[str]:
    """Greedy word wrap; words wider than the line are broken between characters."""
    lines = []
    for paragraph in text.split("\n"):
        current = ""
        for word in paragraph.split(" "):
            candidate = f"{current} {word}" if current else word
            if not current or font.getlength(candidate) <= max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
            while len(current) > 1 and font.getlength(current) > max_width:
                cut = len(current) - 1
                while cut > 1 and font.getlength(current[:cut]) > max_width:
                    cut -= 1
                lines.append(current[:cut])
                current = current[cut:]
        lines.append(current)
    return lines


def _resolve_style(node: PreviewNode, inherited: Dict[str, str]) -> Dict[str, str]:
    style = {key: value for key, value in inherited.items() if key in INHERITED_PROPERTIES}
    style.update(node.style)
    return style


def _text_lines(node: PreviewNode, style: Dict[str, str], x: float, y: float, width: float) -> List[TextLine]:
    font_size = to_px(style.get("font-size")) or DEFAULT_FONT_SIZE
    line_height = font_size * float(style.get("line-height", DEFAULT_LINE_HEIGHT))
    text = node.text.upper() if style.get("text-transform") == "uppercase" else node.text
    font = get_font(round(font_size))

    lines = []
    for index, line in enumerate(wrap_text(text, font, width)):
        lines.append(TextLine(
            text=line,
            x=x,
            y=y + index * line_height,
            height=line_height,
            font_size=font_size,
            color=style.get("color", "#000000"),
            bold=style.get("font-weight") == "bold",
            italic=style.get("font-style") == "italic",
        ))
    return lines


def _own_width(style: Dict[str, str], available: float) -> float:
    return to_px(style["width"], available) if "width" in style else available


def _inline_width(node: PreviewNode, style: Dict[str, str], available: float) -> float:
    """Shrink-to-fit width of an inline-block holding one run of text, capped at `available`."""
    if "width" in style:
        return _own_width(style, available)
    _, pad_right, _, pad_left = box_sides(style.get("padding"))
    font = get_font(round(to_px(style.get("font-size")) or DEFAULT_FONT_SIZE))
    text = node.text.upper() if style.get("text-transform") == "uppercase" else node.text
    text_width = max((font.getlength(line) for line in text.split("\n")), default=0.0)
    return min(math.ceil(text_width) + pad_left + pad_right, available)


def layout(node: PreviewNode, available_width: float, x: float = 0.0, y: float = 0.0,
           inherited: Optional[Dict[str, str]] = None) -> LayoutBox:
    """
    Lays out a node and its subtree.

    Args:
        node: Root of the subtree.
        available_width: Width of the containing block in pixels.
        x, y: Top-left corner of the node's border box.
        inherited: Resolved style of the parent, for inherited text properties.

    Returns:
        The positioned box tree. A node with `display: none` gets a zero box.
    """
    style = _resolve_style(node, inherited or {})
    if style.get("display") == "none":
        return LayoutBox(node=node, style=style, x=x, y=y, width=0.0, height=0.0)

    width = _own_width(style, available_width)
    pad_top, pad_right, pad_bottom, pad_left = box_sides(style.get("padding"))
    if "padding-left" in style:
        pad_left = to_px(style["padding-left"])
    inner_x = x + pad_left
    inner_width = max(width - pad_left - pad_right, 0.0)
    cursor = y + pad_top

    box = LayoutBox(node=node, style=style, x=x, y=y, width=width, height=0.0)

    if node.tag == "img":
        cursor += to_px(style.get("height"))
    elif node.text:
        box.lines = _text_lines(node, style, inner_x, cursor, inner_width)
        cursor += sum(line.height for line in box.lines)

    is_row = style.get("display") == "flex" and style.get("flex-direction", "row") == "row"
    if is_row:
        child_x = inner_x
        row_height = 0.0
        for child in node.children:
            child_box = layout(child, inner_width, child_x, cursor, style)
            box.children.append(child_box)
            child_x += child_box.width
            row_height = max(row_height, child_box.height)
        min_inner = to_px(style.get("min-height"), 0.0) - pad_top - pad_bottom
        row_height = max(row_height, min_inner)
        # Flex items stretch to the row height, as with align-items: stretch.
        for child_box in box.children:
            if child_box.width > 0:
                child_box.height = row_height
        cursor += row_height
    else:
        # x of the next inline-block on the open line, or None when no line is open
        line_x = None
        line_top = line_height = 0.0
        for child in node.children:
            margin_top, margin_bottom = vertical_margins(child.style)
            if child.style.get("display") == "inline-block":
                child_width = _inline_width(child, _resolve_style(child, style), inner_width)
                if line_x is None or (line_x > inner_x and line_x + child_width > inner_x + inner_width):
                    line_x, line_top, line_height = inner_x, cursor, 0.0
                child_box = layout(child, child_width, line_x, line_top + margin_top, style)
                box.children.append(child_box)
                line_x += child_box.width + to_px(child.style.get("margin-right"))
                line_height = max(line_height, margin_top + child_box.height + margin_bottom)
                cursor = line_top + line_height
                continue

            line_x = None
            child_x = inner_x
            if child.style.get("align-self") == "center":
                child_x += max(inner_width - _own_width(child.style, inner_width), 0.0) / 2
            cursor += margin_top
            child_box = layout(child, inner_width, child_x, cursor, style)
            box.children.append(child_box)
            cursor += child_box.height + margin_bottom

    cursor += pad_bottom + border_width(style.get("border-bottom"))
    height = cursor - y
    if "height" in style:
        height = to_px(style["height"]) + pad_top + pad_bottom
    box.height = max(height, to_px(style.get("min-height"), 0.0))
    return box


def measure(node: PreviewNode, available_width: float) -> Tuple[int, int]:
    """Rendered (width, height) of a node, rounded up to whole pixels."""
    box = layout(node, available_width)
    return math.ceil(box.width), math.ceil(box.height)
