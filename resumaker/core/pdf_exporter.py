import io
import logging
import math
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .display_surface import DisplaySurface
from .errors import InvalidCaptureError, PdfExportError, PreviewNotFoundError, PreviewNotVisibleError
from .layout import PreviewNode
from .preview_renderer import PREVIEW_ROOT_ID
from .rasterizer import capture
from .resume_models import ResumeData

CAPTURE_WIDTH = "210mm"
CAPTURE_DISPLAY = "flex"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
# Overflow below this many points stays on the last page; rounding the
# capture to whole pixels alone can exceed A4 by a fraction of a point.
PAGE_TOLERANCE = 1.0


@dataclass
class ExportedDocument:
    filename: str
    content: bytes
    page_count: int


def resume_filename(name: Optional[str]) -> str:
    """'Jane Q. Doe' -> 'Jane_Q._Doe_Resume.pdf'; an empty name -> 'Resume_Resume.pdf'."""
    base = re.sub(r"\s+", "_", (name or "").strip()) or "Resume"
    return f"{base}_Resume.pdf"


def page_windows(image_height: float, page_height: float,
                 tolerance: float = PAGE_TOLERANCE) -> List[Tuple[float, float]]:
    """
    Splits a tall image into consecutive page-height windows.

    Breaks are purely arithmetic: content can be cut mid-line at a boundary.

    Returns:
        (top, bottom) offsets of each window, tiling [0, image_height) with
        no gap or overlap. The last window may be shorter than a page, or
        longer by at most `tolerance`.
    """
    if page_height <= 0:
        raise ValueError("Page height must be positive.")
    count = max(math.ceil((image_height - tolerance) / page_height), 1)
    windows = [(k * page_height, (k + 1) * page_height) for k in range(count)]
    windows[-1] = (windows[-1][0], image_height)
    return windows


@contextmanager
def forced_capture_style(node: PreviewNode, width: str = CAPTURE_WIDTH,
                         display: str = CAPTURE_DISPLAY) -> Iterator[PreviewNode]:
    """Pins a node's width and display for the duration of a capture, then restores them."""
    original = {"width": node.style.get("width"), "display": node.style.get("display")}
    node.style["width"] = width
    node.style["display"] = display
    try:
        yield node
    finally:
        for key, value in original.items():
            if value is None:
                node.style.pop(key, None)
            else:
                node.style[key] = value


class PdfExporter:
    """
    Turns the mounted resume preview into a multi-page A4 PDF.

    The preview is rasterized as one tall bitmap which is then laid across as
    many pages as its height needs.
    """

    def __init__(self, surface: DisplaySurface,
                 rasterizer: Callable[..., Image.Image] = capture,
                 scale: float = 2,
                 page_size: Tuple[float, float] = A4,
                 download: Optional[Callable[[str, bytes], None]] = None):
        """
        Args:
            surface: The display surface the preview is mounted on.
            rasterizer: Callable `(node, scale=, viewport_width=) -> PIL.Image`.
            scale: Capture quality multiplier; higher is sharper and slower.
            page_size: PDF page size in points, portrait.
            download: Optional `(filename, bytes)` callback that saves the file.
        """
        self.surface = surface
        self.rasterizer = rasterizer
        self.scale = scale
        self.page_size = page_size
        self.download = download

    def _find_visible_node(self, root_id: str) -> PreviewNode:
        node = self.surface.get_element_by_id(root_id)
        if node is None:
            raise PreviewNotFoundError("Resume preview element not found. Cannot generate PDF.")
        width, height = self.surface.measure(node)
        if width <= 0 or height <= 0:
            raise PreviewNotVisibleError(
                f"Resume preview is not visible or not rendered ({width}x{height} px)."
            )
        return node

    def _encode(self, bitmap: Image.Image) -> bytes:
        buffer = io.BytesIO()
        try:
            bitmap.save(buffer, format="PNG")
        except Exception as e:
            raise InvalidCaptureError(f"Capture produced an invalid image: {e}") from e
        data = buffer.getvalue()
        if len(data) <= len(PNG_SIGNATURE) or not data.startswith(PNG_SIGNATURE):
            raise InvalidCaptureError("Capture produced an invalid image.")
        return data

    def _paginate(self, png: bytes, image_size: Tuple[int, int], title: str) -> Tuple[bytes, int]:
        page_width, page_height = self.page_size
        image_width, image_height = image_size
        # Scale the bitmap to the page width, keeping its aspect ratio.
        pdf_image_height = image_height * page_width / image_width
        windows = page_windows(pdf_image_height, page_height)

        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=self.page_size)
        pdf.setTitle(title)
        image = ImageReader(io.BytesIO(png))
        for top, _ in windows:
            # reportlab's origin is bottom-left: shift the image up by `top`
            # so the window starts at the top edge of the page.
            pdf.drawImage(image, 0, page_height - pdf_image_height + top,
                          width=page_width, height=pdf_image_height)
            pdf.showPage()
        pdf.save()
        return buffer.getvalue(), len(windows)

    def export(self, resume: ResumeData, root_id: str = PREVIEW_ROOT_ID) -> ExportedDocument:
        """
        Captures the mounted preview and produces the PDF.

        Args:
            resume: The document being exported; only its name is used, for the filename.
            root_id: Id of the mounted preview node to capture.

        Returns:
            The exported document. It is also handed to `download` when set.

        Raises:
            PdfExportError: For any failure, with the underlying cause appended.
        """
        filename = resume_filename(resume.personal_details.name)
        logging.info(f"Generating PDF file: {filename}")
        try:
            node = self._find_visible_node(root_id)
            with forced_capture_style(node):
                bitmap = self.rasterizer(node, scale=self.scale, viewport_width=self.surface.viewport_width)
                png = self._encode(bitmap)
            content, page_count = self._paginate(png, bitmap.size, filename[:-len(".pdf")].replace("_", " "))
            document = ExportedDocument(filename=filename, content=content, page_count=page_count)
            if self.download is not None:
                self.download(filename, content)
        except Exception as e:
            logging.error(f"Error generating PDF: {e}")
            raise PdfExportError(e) from e

        logging.info(f"PDF generation complete: {page_count} page(s).")
        return document
