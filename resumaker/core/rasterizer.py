import base64
import io
import logging
import math
from typing import Optional

from PIL import Image, ImageDraw

from .layout import LayoutBox, PreviewNode, border_color, border_width, get_font, layout, to_px

# 210mm at 96 dpi; used when a node's width is relative and no viewport is given.
DEFAULT_VIEWPORT_WIDTH = 794


def decode_data_url(data_url: str) -> Optional[Image.Image]:
    """Decodes a `data:image/...;base64,` string into an RGB image."""
    if not data_url or not data_url.startswith("data:image") or "," not in data_url:
        return None
    try:
        _, data = data_url.split(",", 1)
        img = Image.open(io.BytesIO(base64.b64decode(data)))
        return img.convert("RGB")
    except Exception as e:
        logging.warning(f"Could not decode preview image: {e}")
        return None


def _paint_image(image: Image.Image, box: LayoutBox, scale: float):
    photo = decode_data_url(box.node.image)
    left, top = round(box.x * scale), round(box.y * scale)
    size = (max(round(box.width * scale), 1), max(round(box.height * scale), 1))
    draw = ImageDraw.Draw(image)
    ring = border_width(box.style.get("border")) * scale
    round_mask = box.style.get("border-radius") == "50%"

    if photo is not None:
        photo = photo.resize(size, Image.Resampling.LANCZOS)
        mask = Image.new("L", size, 0)
        if round_mask:
            ImageDraw.Draw(mask).ellipse((0, 0, size[0] - 1, size[1] - 1), fill=255)
        else:
            mask.paste(255, (0, 0, size[0], size[1]))
        image.paste(photo, (left, top), mask)

    if ring:
        bounds = (left, top, left + size[0] - 1, top + size[1] - 1)
        color = border_color(box.style.get("border"))
        if round_mask:
            draw.ellipse(bounds, outline=color, width=max(round(ring), 1))
        else:
            draw.rectangle(bounds, outline=color, width=max(round(ring), 1))


def _paint(image: Image.Image, draw: ImageDraw.ImageDraw, box: LayoutBox, scale: float):
    if box.width <= 0 or box.height <= 0:
        return

    x0, y0 = box.x * scale, box.y * scale
    x1, y1 = (box.x + box.width) * scale, (box.y + box.height) * scale

    background = box.node.style.get("background-color")
    if background:
        radius = to_px(box.style.get("border-radius")) * scale
        if radius:
            draw.rounded_rectangle((x0, y0, x1, y1), radius=radius, fill=background)
        else:
            draw.rectangle((x0, y0, x1, y1), fill=background)

    bottom = border_width(box.style.get("border-bottom")) * scale
    if bottom:
        draw.rectangle((x0, y1 - bottom, x1, y1), fill=border_color(box.style.get("border-bottom")))

    if box.node.tag == "img":
        _paint_image(image, box, scale)

    for index, line in enumerate(box.lines):
        size = round(line.font_size * scale)
        font = get_font(size)
        text_y = (line.y + (line.height - line.font_size) / 2) * scale
        if box.node.tag == "li" and index == 0:
            radius = max(line.font_size * scale / 6, 1)
            cx = line.x * scale - 10 * scale
            cy = text_y + size * 0.55
            draw.ellipse((cx - radius, cy - radius, cx + radius, cy + radius), fill=line.color)
        # The bundled font has no bold or italic faces: bold is drawn with a
        # stroke, italic is drawn upright.
        stroke = max(round(scale / 2), 1) if line.bold else 0
        draw.text((line.x * scale, text_y), line.text, font=font, fill=line.color,
                  stroke_width=stroke, stroke_fill=line.color)

    for child in box.children:
        _paint(image, draw, child, scale)


def capture(node: PreviewNode, scale: float = 2, viewport_width: float = DEFAULT_VIEWPORT_WIDTH) -> Image.Image:
    """
    Rasterizes a preview node into a bitmap.

    Args:
        node: The node to capture, as currently styled.
        scale: Quality multiplier; the bitmap is `scale` times the CSS pixel size.
        viewport_width: Width that relative node widths resolve against.

    Returns:
        An RGB Pillow image on a white background.
    """
    box = layout(node, viewport_width)
    size = (math.ceil(box.width * scale), math.ceil(box.height * scale))
    logging.info(f"Capturing preview node at scale {scale}: {size[0]}x{size[1]} px")

    image = Image.new("RGB", size, "#FFFFFF")
    _paint(image, ImageDraw.Draw(image), box, scale)
    return image
