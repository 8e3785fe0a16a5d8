"""
Flyer page rasterization with Pillow.

A page is drawn in CSS pixels (A4 at 96 dpi: 794 px wide) multiplied by the
capture scale, on a white background. Header, a full 5x4 card grid and footer
fit inside A4 portrait (794 x 1123 px), so every page keeps A4 proportions and
the PDF page follows the raster's aspect ratio.

Images are never downloaded while drawing: the caller hands in the bytes it
already fetched (see probe_images), and anything missing is drawn as the
"No Image" placeholder.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from functools import lru_cache
from io import BytesIO
from typing import Callable, Dict, Iterable, Optional, Set

import requests
from PIL import Image, ImageDraw, ImageFont, ImageOps

from saleflyer.services.flyer_layout import (
    ALERT_COLOR, GRID_COLUMNS, GRID_ROWS, FlyerDocument, FlyerPage, ProductCard
)

logger = logging.getLogger(__name__)

# Device-pixel multiplier; 2x keeps text crisp in print without tripling memory
CAPTURE_SCALE = 2
JPEG_QUALITY = 95
IMAGE_PROBE_TIMEOUT = 10

# Page geometry in CSS pixels
PAGE_WIDTH = 794
PAGE_MIN_HEIGHT = 1123
HEADER_HEIGHT = 180
FOOTER_HEIGHT = 130
GRID_PADDING = 16
GRID_GAP = 12
CARD_HEIGHT = 184
CARD_IMAGE_HEIGHT = 56

WHITE = '#FFFFFF'
CARD_BORDER = '#E5E7EB'
IMAGE_BACKGROUND = '#F9FAFB'
TEXT_DARK = '#111827'
TEXT_MUTED = '#6B7280'
TEXT_FAINT = '#9CA3AF'


@lru_cache(maxsize=64)
def load_font(size: int, bold: bool = False):
    """DejaVu when the system has it, otherwise Pillow's bundled font."""
    name = 'DejaVuSans-Bold.ttf' if bold else 'DejaVuSans.ttf'
    try:
        return ImageFont.truetype(name, size)
    except OSError:
        return ImageFont.load_default(size=size)


def page_height(page: FlyerPage) -> int:
    """Rendered height of a page in CSS pixels."""
    rows = max(page.rows, 1)
    grid = GRID_PADDING * 2 + rows * CARD_HEIGHT + (rows - 1) * GRID_GAP
    return max(PAGE_MIN_HEIGHT, HEADER_HEIGHT + grid + FOOTER_HEIGHT)


def decode_image(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    image.load()
    return image


def encode_jpeg(image: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    buffer = BytesIO()
    image.convert('RGB').save(buffer, format='JPEG', quality=quality)
    return buffer.getvalue()


class PageRasterizer:
    """Draws FlyerPages of one document."""

    def __init__(self, document: FlyerDocument, images: Optional[Dict[str, bytes]] = None,
                 scale: int = CAPTURE_SCALE):
        self.document = document
        self.images = images or {}
        self.scale = scale
        self._decoded: Dict[str, Optional[Image.Image]] = {}

    def _s(self, value: float) -> int:
        return int(round(value * self.scale))

    def _font(self, size: int, bold: bool = False):
        return load_font(self._s(size), bold)

    def _image(self, url: Optional[str]) -> Optional[Image.Image]:
        if not url:
            return None
        if url not in self._decoded:
            data = self.images.get(url)
            try:
                self._decoded[url] = decode_image(data) if data else None
            except (OSError, ValueError) as e:
                logger.warning(f"[FLYER] Could not decode image {url}: {e}")
                self._decoded[url] = None
        return self._decoded[url]

    def _center_text(self, draw, text, center_x, y, font, fill):
        width = draw.textlength(text, font=font)
        draw.text((center_x - width / 2, y), text, font=font, fill=fill)

    def _wrap(self, draw, text, font, max_width, max_lines=2):
        lines, current = [], ''
        for word in text.split():
            candidate = f"{current} {word}".strip()
            if not current or draw.textlength(candidate, font=font) <= max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        if current:
            lines.append(current)
        if len(lines) > max_lines:
            lines = lines[:max_lines]
            lines[-1] = lines[-1].rstrip('.') + '...'
        return lines

    def render(self, page: FlyerPage) -> Image.Image:
        """Rasterize one page; the result is an RGB image at capture scale."""
        height = page_height(page)
        canvas = Image.new('RGB', (self._s(PAGE_WIDTH), self._s(height)), WHITE)
        self._draw_header(canvas, page)
        self._draw_grid(canvas, page)
        self._draw_footer(canvas, page, height)
        return canvas

    def _draw_header(self, canvas: Image.Image, page: FlyerPage) -> None:
        box = (0, 0, self._s(PAGE_WIDTH), self._s(HEADER_HEIGHT))
        band = Image.new('RGB', (box[2], box[3]), self.document.colors.background)

        header_image = self._image(page.header.image_url)
        if header_image is not None:
            cover = ImageOps.fit(header_image.convert('RGB'), band.size)
            band = Image.blend(band, cover, 0.2)
        canvas.paste(band, box)

        draw = ImageDraw.Draw(canvas)
        center = self._s(PAGE_WIDTH / 2)
        header = page.header
        self._center_text(draw, header.business_name, center, self._s(32), self._font(36, True), WHITE)
        self._center_text(draw, header.sale_name, center, self._s(80), self._font(24, True), WHITE)
        self._center_text(draw, header.date_range, center, self._s(116), self._font(18), WHITE)
        if header.theme_caption:
            self._center_text(draw, header.theme_caption, center, self._s(150), self._font(13), '#F3F4F6')

    def _draw_grid(self, canvas: Image.Image, page: FlyerPage) -> None:
        card_width = (PAGE_WIDTH - GRID_PADDING * 2 - GRID_GAP * (GRID_COLUMNS - 1)) / GRID_COLUMNS
        top = HEADER_HEIGHT + GRID_PADDING
        for index, card in enumerate(page.cards[:GRID_COLUMNS * GRID_ROWS]):
            row, column = divmod(index, GRID_COLUMNS)
            x = GRID_PADDING + column * (card_width + GRID_GAP)
            y = top + row * (CARD_HEIGHT + GRID_GAP)
            self._draw_card(canvas, card, x, y, card_width)

    def _draw_card(self, canvas: Image.Image, card: ProductCard, x: float, y: float, width: float) -> None:
        draw = ImageDraw.Draw(canvas)
        s = self._s
        colors = self.document.colors
        draw.rounded_rectangle(
            (s(x), s(y), s(x + width), s(y + CARD_HEIGHT)),
            radius=s(8), fill=WHITE, outline=CARD_BORDER, width=s(2)
        )

        # Image area
        inner_x, inner_w = x + 10, width - 20
        image_box = (s(inner_x), s(y + 10), s(inner_x + inner_w), s(y + 10 + CARD_IMAGE_HEIGHT))
        draw.rounded_rectangle(image_box, radius=s(4), fill=IMAGE_BACKGROUND)
        product_image = self._image(card.image_url)
        if product_image is not None:
            fitted = ImageOps.contain(product_image, (image_box[2] - image_box[0], image_box[3] - image_box[1]))
            offset = (
                image_box[0] + (image_box[2] - image_box[0] - fitted.width) // 2,
                image_box[1] + (image_box[3] - image_box[1] - fitted.height) // 2,
            )
            if fitted.mode in ('RGBA', 'LA', 'P'):
                fitted = fitted.convert('RGBA')
                canvas.paste(fitted, offset, fitted)
            else:
                canvas.paste(fitted.convert('RGB'), offset)
        else:
            self._center_text(draw, 'No Image', s(x + width / 2), s(y + 10 + CARD_IMAGE_HEIGHT / 2 - 6),
                              self._font(11), TEXT_FAINT)

        center = s(x + width / 2)
        cursor = y + CARD_IMAGE_HEIGHT + 16

        name_font = self._font(12, True)
        for line in self._wrap(draw, card.name, name_font, s(inner_w)):
            self._center_text(draw, line, center, s(cursor), name_font, TEXT_DARK)
            cursor += 15
        cursor += 2

        if card.size:
            self._center_text(draw, card.size, center, s(cursor), self._font(11), TEXT_MUTED)
            cursor += 14

        # Regular price, struck through
        regular = f"Reg. ${card.original_price}"
        regular_font = self._font(11)
        regular_width = draw.textlength(regular, font=regular_font)
        draw.text((center - regular_width / 2, s(cursor)), regular, font=regular_font, fill=TEXT_MUTED)
        strike_y = s(cursor + 6)
        draw.line((center - regular_width / 2, strike_y, center + regular_width / 2, strike_y),
                  fill=TEXT_MUTED, width=max(1, s(1)))
        cursor += 16

        # Sale price and savings pills
        pill_box = (s(inner_x), s(cursor), s(inner_x + inner_w), s(cursor + 24))
        draw.rounded_rectangle(pill_box, radius=s(4), fill=colors.background)
        self._center_text(draw, f"${card.sale_price}", center, s(cursor + 4), self._font(15, True), WHITE)
        cursor += 28

        save_box = (s(inner_x), s(cursor), s(inner_x + inner_w), s(cursor + 18))
        draw.rounded_rectangle(save_box, radius=s(4), fill=ALERT_COLOR)
        self._center_text(draw, f"SAVE ${card.savings}", center, s(cursor + 3), self._font(10, True), WHITE)

        if card.badge_text:
            badge_font = self._font(10, True)
            badge_width = draw.textlength(card.badge_text, font=badge_font)
            right, top = s(x + width - 8), s(y + 8)
            draw.rounded_rectangle(
                (right - badge_width - s(12), top, right, top + s(20)),
                radius=s(4), fill=colors.accent
            )
            draw.text((right - badge_width - s(6), top + s(4)), card.badge_text, font=badge_font, fill=WHITE)

    def _draw_footer(self, canvas: Image.Image, page: FlyerPage, height: int) -> None:
        top = height - FOOTER_HEIGHT
        draw = ImageDraw.Draw(canvas)
        draw.rectangle((0, self._s(top), self._s(PAGE_WIDTH), self._s(height)), fill=self.document.colors.accent)

        footer = page.footer
        self._center_text(draw, footer.slogan, self._s(PAGE_WIDTH / 2), self._s(top + 12),
                          self._font(16, True), WHITE)

        column_width = PAGE_WIDTH / 3
        columns = (
            ('STORE HOURS', footer.store_hours),
            ('PAYMENT METHODS', footer.payment_methods),
            ('CONTACT', footer.contact),
        )
        for index, (title, lines) in enumerate(columns):
            center = self._s(column_width * index + column_width / 2)
            self._center_text(draw, title, center, self._s(top + 40), self._font(12, True), WHITE)
            for line_index, line in enumerate(lines):
                self._center_text(draw, line, center, self._s(top + 58 + line_index * 16),
                                  self._font(11), WHITE)

        if footer.page_label:
            self._center_text(draw, footer.page_label, self._s(PAGE_WIDTH / 2), self._s(top + 110),
                              self._font(10), WHITE)


# Image probes ---------------------------------------------------------------

@dataclass
class ProbeResult:
    loaded: Dict[str, bytes] = field(default_factory=dict)
    failed: Set[str] = field(default_factory=set)


def fetch_image(url: str, timeout: float = IMAGE_PROBE_TIMEOUT) -> bytes:
    """Download an image and make sure Pillow can read it."""
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    Image.open(BytesIO(response.content)).verify()
    return response.content


def probe_images(urls: Iterable[str], timeout: float = IMAGE_PROBE_TIMEOUT,
                 fetch: Optional[Callable[[str], bytes]] = None) -> ProbeResult:
    """
    Fetch every image in parallel; anything that errors or is still pending
    after `timeout` seconds is reported as failed and left behind.

    Each image gets its own worker, so all fetches start together and the
    timeout applies to every image individually.
    """
    urls = list(dict.fromkeys(u for u in urls if u))
    result = ProbeResult()
    if not urls:
        return result

    fetch = fetch or (lambda url: fetch_image(url, timeout))
    executor = ThreadPoolExecutor(max_workers=len(urls), thread_name_prefix='flyer-probe')
    try:
        futures = {executor.submit(fetch, url): url for url in urls}
        done, pending = wait(futures, timeout=timeout)
        for future in done:
            url = futures[future]
            try:
                result.loaded[url] = future.result()
            except Exception as e:
                logger.warning(f"[FLYER] ✗ Image failed to load, hiding it: {url} ({e})")
                result.failed.add(url)
        for future in pending:
            url = futures[future]
            logger.warning(f"[FLYER] ✗ Image timed out after {timeout}s, hiding it: {url}")
            result.failed.add(url)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    logger.info(f"[FLYER] Probed {len(urls)} images: {len(result.loaded)} ok, {len(result.failed)} hidden")
    return result


def load_images(urls: Iterable[str], timeout: float = IMAGE_PROBE_TIMEOUT) -> Dict[str, bytes]:
    """Sequential download without probing; any failure propagates."""
    return {url: fetch_image(url, timeout) for url in dict.fromkeys(u for u in urls if u)}
