"""
Capture of the preview with headless Chromium.

The preview tree is serialized to HTML and screenshotted by Playwright, so the
bitmap comes from a real browser engine instead of the built-in Pillow
painter. Chromium must be installed once with `python -m playwright install chromium`.
"""
import io
import logging
import math
from typing import Callable

from PIL import Image
from playwright.sync_api import sync_playwright

from .layout import PreviewNode
from .preview_renderer import preview_to_html
from .rasterizer import DEFAULT_VIEWPORT_WIDTH, capture

# 297mm at 96 dpi; element screenshots extend past the viewport when needed.
DEFAULT_VIEWPORT_HEIGHT = 1123
CAPTURE_BACKENDS = ("pillow", "browser")


def capture_in_browser(node: PreviewNode, scale: float = 2,
                       viewport_width: float = DEFAULT_VIEWPORT_WIDTH) -> Image.Image:
    """
    Rasterizes a preview node by rendering its HTML in Chromium.

    Args:
        node: The node to capture, as currently styled.
        scale: Device scale factor; the bitmap is `scale` times the CSS pixel size.
        viewport_width: Width of the browser viewport in CSS pixels.

    Returns:
        An RGB Pillow image of the node's border box.
    """
    document = preview_to_html(node)
    logging.info(f"Capturing preview node in Chromium at scale {scale}")

    with sync_playwright() as p:
        browser = p.chromium.launch(headless=True)
        try:
            page = browser.new_page(
                viewport={"width": math.ceil(viewport_width), "height": DEFAULT_VIEWPORT_HEIGHT},
                device_scale_factor=scale,
            )
            page.set_content(document, wait_until="load")
            png = page.locator("body > *").first.screenshot(type="png")
        finally:
            browser.close()

    return Image.open(io.BytesIO(png)).convert("RGB")


def rasterizer_for(backend: str) -> Callable[..., Image.Image]:
    """Capture function for a configured backend name ("pillow" or "browser")."""
    if backend == "pillow":
        return capture
    if backend == "browser":
        return capture_in_browser
    raise ValueError(f"Unknown capture backend '{backend}'. Expected one of: {', '.join(CAPTURE_BACKENDS)}")
