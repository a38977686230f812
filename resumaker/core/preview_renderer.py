import io
from html import escape
from typing import Callable, Dict, List, Optional

from PIL import Image

from .layout import PreviewNode
from .rasterizer import capture
from .resume_models import ColorTheme, ResumeData

PREVIEW_ROOT_ID = "resume-preview-content"

HEADER_BLUE = "#EFF6FF"
ACCENT_TEAL = "#39A2DB"
PRIMARY_DEEP_BLUE = "#30475E"
MAIN_TEXT_COLOR = "#333333"
MUTED_TEXT_COLOR = "#555555"
WHITE = "#FFFFFF"


def _node(tag: str, style: Optional[Dict[str, str]] = None, text: str = "",
          children: Optional[List[PreviewNode]] = None) -> PreviewNode:
    return PreviewNode(tag=tag, style=dict(style or {}), text=text, children=list(children or []))


class _Styles:
    """Style dictionaries derived from one color theme."""

    def __init__(self, theme: ColorTheme):
        self.theme = theme
        # Borders contrast with the sidebar text color.
        self.contrast = WHITE if theme.left_column_text_color.upper() == WHITE else PRIMARY_DEEP_BLUE

    def section_title(self) -> Dict[str, str]:
        return {
            "font-size": "14px",
            "font-weight": "bold",
            "color": PRIMARY_DEEP_BLUE,
            "border-bottom": f"2px solid {ACCENT_TEAL}",
            "padding": "0 0 3px 0",
            "margin-bottom": "10px",
            "text-transform": "uppercase",
        }

    def sidebar_title(self, first: bool = False) -> Dict[str, str]:
        style = {
            "font-size": "13px",
            "font-weight": "bold",
            "color": self.theme.left_column_text_color,
            "padding": "0 0 3px 0",
            "margin-bottom": "8px",
            "text-transform": "uppercase",
        }
        if not first:
            style["margin-top"] = "15px"
        return style

    def sidebar_text(self, **extra: str) -> Dict[str, str]:
        style = {"font-size": "11px", "color": self.theme.left_column_text_color, "margin-bottom": "3px"}
        style.update({key.replace("_", "-"): value for key, value in extra.items()})
        if "margin" in style:
            style.pop("margin-bottom")
        return style

    def tag(self) -> Dict[str, str]:
        return {
            "background-color": self.theme.skill_tag_bg_color,
            "color": self.theme.skill_tag_text_color,
            "padding": "5px 10px",
            "border-radius": "4px",
            "display": "inline-block",
            "margin-right": "6px",
            "margin-bottom": "6px",
            "font-size": "11px",
            "border-bottom": f"2px solid {self.contrast}",
        }


def _bullet_list(items: List[str], item_style: Optional[Dict[str, str]] = None) -> PreviewNode:
    return _node(
        "ul",
        {"padding-left": "20px", "margin": "5px 0 0 0"},
        children=[_node("li", {"margin-bottom": "4px", **(item_style or {})}, text=item) for item in items],
    )


def _tag_section(title: str, items: List[str], styles: _Styles) -> List[PreviewNode]:
    if not items:
        return []
    return [_node("h2", styles.sidebar_title(), text=title)] + [
        _node("span", styles.tag(), text=item) for item in items
    ]


def _sidebar(resume: ResumeData, styles: _Styles) -> PreviewNode:
    personal = resume.personal_details
    professional = resume.professional_details
    theme = styles.theme
    children = []

    if personal.photo_preview:
        photo = PreviewNode(
            tag="img",
            style={
                "width": "100px",
                "height": "100px",
                "border-radius": "50%",
                "border": f"3px solid {styles.contrast}",
                "align-self": "center",
                "margin-bottom": "25px",
            },
            image=personal.photo_preview,
        )
        children.append(photo)

    children.append(_node("h2", styles.sidebar_title(first=True), text="Personal Info"))
    children.append(_node("p", styles.sidebar_text(), text=personal.email))
    children.append(_node("p", styles.sidebar_text(), text=personal.phone))
    children.append(_node("p", styles.sidebar_text(margin_bottom="15px"), text=personal.address))
    if personal.linkedin:
        children.append(_node(
            "p",
            styles.sidebar_text(margin_bottom="15px", word_break="break-all"),
            text=f"LinkedIn: {personal.linkedin}",
        ))

    if professional.education:
        children.append(_node("h2", styles.sidebar_title(), text="Education"))
        for edu in professional.education:
            entry = _node("div", {"margin-bottom": "10px"}, children=[
                _node("p", styles.sidebar_text(font_weight="bold", margin="0 0 2px 0"), text=edu.degree),
                _node("p", styles.sidebar_text(), text=edu.institution),
                _node("p", styles.sidebar_text(font_style="italic", margin="0"), text=edu.graduation_year),
            ])
            if edu.details:
                entry.children.append(
                    _node("p", styles.sidebar_text(font_size="10px", margin_top="3px"), text=edu.details)
                )
            children.append(entry)

    children.extend(_tag_section("Skills", professional.skills, styles))
    children.extend(_tag_section("Strengths", professional.strengths, styles))
    children.extend(_tag_section("Weaknesses", professional.weaknesses, styles))

    return _node(
        "div",
        {
            "width": "35%",
            "background-color": theme.left_column_bg_color,
            "color": theme.left_column_text_color,
            "padding": "25px 20px",
        },
        children=children,
    )


def _main(resume: ResumeData, styles: _Styles) -> PreviewNode:
    personal = resume.personal_details
    professional = resume.professional_details

    header = _node("div", {"background-color": HEADER_BLUE, "padding": "30px 25px 20px 25px"}, children=[
        _node(
            "h1",
            {"font-size": "30px", "font-weight": "bold", "color": PRIMARY_DEEP_BLUE,
             "margin-bottom": "5px", "line-height": "1.1"},
            text=personal.name or "Your Name",
        ),
    ])

    sections = []
    if resume.objective:
        sections.append(_node("section", {"margin-bottom": "20px"}, children=[
            _node("h2", styles.section_title(), text="Summary"),
            _node("p", {"font-size": "12px", "line-height": "1.6", "color": MAIN_TEXT_COLOR}, text=resume.objective),
        ]))

    if professional.experience:
        entries = []
        for exp in professional.experience:
            entries.append(_node("div", {"margin-bottom": "15px"}, children=[
                _node("h3", {"font-size": "14px", "font-weight": "bold", "color": PRIMARY_DEEP_BLUE,
                             "margin": "0 0 2px 0"}, text=exp.role),
                _node("p", {"font-size": "12px", "color": MAIN_TEXT_COLOR, "margin": "0 0 2px 0"}, text=exp.company),
                _node("p", {"font-size": "11px", "font-style": "italic", "color": MUTED_TEXT_COLOR,
                            "margin-bottom": "5px"}, text=exp.duration),
                _bullet_list(exp.responsibilities, {"font-size": "12px", "color": MAIN_TEXT_COLOR}),
            ]))
        sections.append(_node("section", {"margin-bottom": "20px"}, children=[
            _node("h2", styles.section_title(), text="Work Experience"),
            *entries,
        ]))

    if professional.achievements:
        sections.append(_node("section", {"margin-bottom": "20px"}, children=[
            _node("h2", styles.section_title(), text="Achievements"),
            _node("div", {"font-size": "12px", "color": MAIN_TEXT_COLOR},
                  children=[_bullet_list(professional.achievements)]),
        ]))

    sections.append(_node("section", children=[
        _node("h2", styles.section_title(), text="References"),
        _node("p", {"font-size": "12px", "font-style": "italic", "color": MAIN_TEXT_COLOR},
              text="References available upon request."),
    ]))

    return _node("div", {"width": "65%", "color": MAIN_TEXT_COLOR, "display": "flex", "flex-direction": "column"},
                 children=[header, _node("div", {"padding": "20px 25px 25px 25px"}, children=sections)])


def render_preview(resume: ResumeData, theme: ColorTheme) -> PreviewNode:
    """
    Builds the fixed A4-width visual tree of a resume.

    The output depends only on `resume` and `theme`; neither is modified.
    """
    styles = _Styles(theme)
    root = _node(
        "div",
        {
            "width": "210mm",
            "min-height": "297mm",
            "display": "flex",
            "flex-direction": "row",
            "background-color": WHITE,
            "font-size": "12px",
        },
        children=[_sidebar(resume, styles), _main(resume, styles)],
    )
    root.node_id = PREVIEW_ROOT_ID
    return root


def preview_to_png(node: PreviewNode, scale: int = 1, rasterizer: Callable[..., Image.Image] = capture) -> bytes:
    """Renders a preview tree to PNG bytes for display next to the form."""
    buffer = io.BytesIO()
    rasterizer(node, scale=scale).save(buffer, format="PNG")
    return buffer.getvalue()


BASE_CSS = (
    "*{box-sizing:border-box;margin:0;padding:0}"
    "body{font-family:Arial,Helvetica,sans-serif;font-size:16px;line-height:1.3;background:#FFFFFF}"
    "img{display:block;object-fit:cover}"
)


def _style_attribute(style: Dict[str, str]) -> str:
    declarations = dict(style)
    if declarations.get("align-self") == "center":
        # Centers the node in block containers too.
        declarations.setdefault("margin-left", "auto")
        declarations.setdefault("margin-right", "auto")
    return ";".join(f"{key}:{value}" for key, value in declarations.items())


def _element_html(node: PreviewNode) -> str:
    attributes = ""
    if node.node_id:
        attributes += f' id="{escape(node.node_id)}"'
    if node.style:
        attributes += f' style="{escape(_style_attribute(node.style))}"'
    if node.tag == "img":
        return f'<img{attributes} src="{escape(node.image or "")}" alt="">'
    text = escape(node.text).replace("\n", "<br>")
    children = "".join(_element_html(child) for child in node.children)
    return f"<{node.tag}{attributes}>{text}{children}</{node.tag}>"


def preview_to_html(node: PreviewNode) -> str:
    """Serializes a preview tree into a standalone HTML document for a browser to render."""
    return (
        '<!DOCTYPE html><html><head><meta charset="utf-8">'
        f"<style>{BASE_CSS}</style></head>"
        f"<body>{_element_html(node)}</body></html>"
    )
