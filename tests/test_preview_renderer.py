import base64
import io
import unittest

from PIL import Image

from resumaker.core.display_surface import DisplaySurface
from resumaker.core.layout import PreviewNode, layout, measure, to_px, wrap_text, get_font
from resumaker.core.preview_renderer import PREVIEW_ROOT_ID, preview_to_html, preview_to_png, render_preview
from resumaker.core.rasterizer import capture
from resumaker.core.resume_models import ColorTheme, EducationEntry, ExperienceEntry, ResumeData


def _texts(node):
    return [n.text for n in node.iter_nodes() if n.text]


def _boxes(box):
    yield box
    for child in box.children:
        yield from _boxes(child)


def _photo_data_url():
    buffer = io.BytesIO()
    Image.new("RGB", (20, 20), "#FF0000").save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


class TestPreviewRenderer(unittest.TestCase):

    def setUp(self):
        self.resume = ResumeData()
        personal = self.resume.personal_details
        personal.name = "Jane Doe"
        personal.email = "jane@example.com"
        personal.phone = "555-0100"
        personal.address = "1 Main St"
        personal.linkedin = "https://linkedin.com/in/jane"
        professional = self.resume.professional_details
        professional.education.append(EducationEntry(
            institution="State University", degree="BSc Computer Science", graduation_year="2019",
            details="Graduated with honors",
        ))
        professional.experience.append(ExperienceEntry(
            company="Acme", role="Engineer", duration="2020-2024", responsibilities=["Built things", "Fixed things"],
        ))
        professional.skills = ["Python", "SQL"]
        professional.strengths = ["Ownership"]
        professional.weaknesses = ["Public speaking"]
        professional.achievements = ["Shipped v2"]
        self.resume.objective = "Engineer who ships."

    def test_root_is_fixed_a4_width(self):
        root = render_preview(self.resume, ColorTheme())
        self.assertEqual(root.node_id, PREVIEW_ROOT_ID)
        self.assertEqual(root.style["width"], "210mm")
        self.assertEqual(root.style["min-height"], "297mm")

    def test_renders_every_section(self):
        texts = _texts(render_preview(self.resume, ColorTheme()))
        for expected in [
            "Jane Doe", "Personal Info", "jane@example.com", "LinkedIn: https://linkedin.com/in/jane",
            "Education", "BSc Computer Science", "Graduated with honors", "Skills", "Python", "Strengths",
            "Weaknesses", "Summary", "Engineer who ships.", "Work Experience", "Built things", "Fixed things",
            "Achievements", "Shipped v2", "References", "References available upon request.",
        ]:
            self.assertIn(expected, texts)

    def test_empty_resume_has_placeholder_and_references_only(self):
        texts = _texts(render_preview(ResumeData(), ColorTheme()))
        self.assertIn("Your Name", texts)
        self.assertIn("References", texts)
        for absent in ["Summary", "Work Experience", "Achievements", "Education", "Skills"]:
            self.assertNotIn(absent, texts)

    def test_rendering_is_deterministic_and_pure(self):
        before = self.resume.model_dump()
        first = render_preview(self.resume, ColorTheme())
        second = render_preview(self.resume, ColorTheme())
        self.assertEqual(first, second)
        self.assertEqual(self.resume.model_dump(), before)

    def test_theme_colors_reach_the_sidebar_and_tags(self):
        theme = ColorTheme(left_column_bg_color="#112233", skill_tag_bg_color="#445566",
                           skill_tag_text_color="#000000", left_column_text_color="#EEEEEE")
        root = render_preview(self.resume, theme)
        sidebar = root.children[0]
        self.assertEqual(sidebar.style["background-color"], "#112233")
        python_tag = next(n for n in root.iter_nodes() if n.text == "Python")
        self.assertEqual(python_tag.style["background-color"], "#445566")
        self.assertEqual(python_tag.style["color"], "#000000")

    def test_photo_is_rendered_as_image(self):
        self.resume.personal_details.photo_preview = _photo_data_url()
        root = render_preview(self.resume, ColorTheme())
        images = [n for n in root.iter_nodes() if n.tag == "img"]
        self.assertEqual(len(images), 1)
        self.assertEqual(images[0].image, self.resume.personal_details.photo_preview)

    def test_capture_is_reproducible(self):
        root = render_preview(self.resume, ColorTheme())
        again = render_preview(self.resume, ColorTheme())
        self.assertEqual(capture(root, scale=1).tobytes(), capture(again, scale=1).tobytes())

    def test_preview_to_png(self):
        self.resume.personal_details.photo_preview = _photo_data_url()
        png = preview_to_png(render_preview(self.resume, ColorTheme()))
        image = Image.open(io.BytesIO(png))
        self.assertEqual(image.format, "PNG")
        self.assertEqual(image.width, 794)


class TestPreviewHtml(unittest.TestCase):

    def test_document_carries_root_id_and_styles(self):
        document = preview_to_html(render_preview(ResumeData(), ColorTheme()))
        self.assertTrue(document.startswith("<!DOCTYPE html>"))
        self.assertIn(f'<div id="{PREVIEW_ROOT_ID}" style="width:210mm;min-height:297mm;display:flex', document)
        self.assertIn(">Your Name</h1>", document)

    def test_text_and_attributes_are_escaped(self):
        node = PreviewNode(tag="p", style={"font-family": '"Quoted"'}, text="R&D <lead>")
        document = preview_to_html(node)
        self.assertIn('style="font-family:&quot;Quoted&quot;"', document)
        self.assertIn(">R&amp;D &lt;lead&gt;</p>", document)

    def test_photo_becomes_centered_img(self):
        resume = ResumeData()
        resume.personal_details.photo_preview = _photo_data_url()
        document = preview_to_html(render_preview(resume, ColorTheme()))
        self.assertIn(f'src="{resume.personal_details.photo_preview}"', document)
        self.assertIn("align-self:center;margin-bottom:25px;margin-left:auto;margin-right:auto", document)


class TestLayout(unittest.TestCase):

    def test_to_px_units(self):
        self.assertAlmostEqual(to_px("210mm"), 793.7, places=1)
        self.assertEqual(to_px("35%", 200), 70)
        self.assertEqual(to_px("12px"), 12)
        self.assertEqual(to_px(None), 0)

    def test_display_none_measures_zero(self):
        node = PreviewNode(tag="div", style={"display": "none", "width": "100px"}, text="hidden")
        self.assertEqual(measure(node, 500), (0, 0))

    def test_min_height_applies(self):
        root = render_preview(ResumeData(), ColorTheme())
        width, height = measure(root, 794)
        self.assertEqual(width, 794)
        self.assertEqual(height, 1123)

    def test_flex_row_places_columns_side_by_side(self):
        root = render_preview(ResumeData(), ColorTheme())
        box = layout(root, 794)
        sidebar, main = box.children
        self.assertEqual(sidebar.x, 0)
        self.assertAlmostEqual(main.x, sidebar.width)
        self.assertEqual(sidebar.height, main.height)

    def test_long_text_wraps(self):
        font = get_font(12)
        lines = wrap_text("word " * 60, font, 100)
        self.assertGreater(len(lines), 1)
        for line in lines:
            self.assertLessEqual(font.getlength(line), 100)

    def test_skill_tags_sit_side_by_side(self):
        resume = ResumeData()
        resume.professional_details.skills = ["Python", "SQL"]
        boxes = {b.node.text: b for b in _boxes(layout(render_preview(resume, ColorTheme()), 794)) if b.node.text}
        python, sql = boxes["Python"], boxes["SQL"]
        self.assertEqual(python.y, sql.y)
        self.assertGreater(sql.x, python.x + python.width)
        self.assertLess(python.width, boxes["Skills"].width)
        self.assertEqual(len(python.lines), 1)

    def test_inline_blocks_wrap_and_following_block_starts_below(self):
        chip = {"display": "inline-block", "width": "60px", "height": "10px", "margin-right": "5px"}
        node = PreviewNode(tag="div", style={"width": "100px"}, children=[
            PreviewNode(tag="span", style=chip),
            PreviewNode(tag="span", style=chip),
            PreviewNode(tag="p", style={"height": "10px"}),
        ])
        first, second, after = layout(node, 100).children
        self.assertEqual((first.x, first.y), (0, 0))
        self.assertEqual((second.x, second.y), (0, 10))
        self.assertEqual(after.y, 20)

    def test_capture_scales_bitmap(self):
        node = PreviewNode(tag="div", style={"width": "100px", "height": "50px", "background-color": "#000000"})
        image = capture(node, scale=2)
        self.assertEqual(image.size, (200, 100))
        self.assertEqual(image.getpixel((100, 50)), (0, 0, 0))


class TestDisplaySurface(unittest.TestCase):

    def test_get_element_by_id_follows_latest_mount(self):
        surface = DisplaySurface()
        self.assertIsNone(surface.get_element_by_id(PREVIEW_ROOT_ID))
        first = render_preview(ResumeData(), ColorTheme())
        surface.mount(first)
        self.assertIs(surface.get_element_by_id(PREVIEW_ROOT_ID), first)
        second = render_preview(ResumeData(), ColorTheme())
        surface.mount(second)
        self.assertIs(surface.get_element_by_id(PREVIEW_ROOT_ID), second)
        surface.unmount()
        self.assertIsNone(surface.get_element_by_id(PREVIEW_ROOT_ID))


if __name__ == '__main__':
    unittest.main()
