import unittest

from playwright.sync_api import sync_playwright

from resumaker.core.browser_capture import capture_in_browser, rasterizer_for
from resumaker.core.config import Settings
from resumaker.core.form_controller import ResumeFormController
from resumaker.core.layout import PreviewNode
from resumaker.core.preview_renderer import render_preview
from resumaker.core.rasterizer import capture
from resumaker.core.resume_models import ColorTheme, ResumeData


class TestCaptureBackends(unittest.TestCase):

    def test_backend_names(self):
        self.assertIs(rasterizer_for("pillow"), capture)
        self.assertIs(rasterizer_for("browser"), capture_in_browser)
        with self.assertRaises(ValueError):
            rasterizer_for("gpu")

    def test_settings_default_to_pillow(self):
        self.assertEqual(Settings().capture_backend, "pillow")
        with self.assertRaises(ValueError):
            Settings(capture_backend="gpu")

    def test_controller_hands_backend_to_exporter(self):
        controller = ResumeFormController(rasterizer=rasterizer_for("browser"))
        self.assertIs(controller.exporter.rasterizer, capture_in_browser)


class TestBrowserCapture(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        try:
            with sync_playwright() as p:
                p.chromium.launch(headless=True).close()
        except Exception as e:
            raise unittest.SkipTest(f"Chromium is not installed: {e}")

    def test_bitmap_follows_scale(self):
        node = PreviewNode(tag="div", style={"width": "100px", "height": "50px", "background-color": "#000000"})
        image = capture_in_browser(node, scale=2)
        self.assertEqual(image.size, (200, 100))
        self.assertEqual(image.getpixel((100, 50)), (0, 0, 0))

    def test_resume_preview_is_a4_wide(self):
        image = capture_in_browser(render_preview(ResumeData(), ColorTheme()), scale=1)
        self.assertIn(image.width, (793, 794))
        self.assertGreaterEqual(image.height, 1122)


if __name__ == '__main__':
    unittest.main()
