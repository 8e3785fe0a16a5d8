"""
Flyer export: rasterized pages packed into a multi-page PDF.

Two entry points share the layout, rasterizer and PDF assembly:

- export_flyer_pdf: probes images first, renders pages in small chunks, turns
  broken page encodes into placeholder pages and retries the whole document
  with linear backoff. After the last failed attempt it falls back to the
  print view.
- generate_flyer_pdf: single attempt, no probe, no chunking. Any failure
  falls straight back to the print view.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from io import BytesIO
from typing import Callable, Dict, List, Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as pdf_canvas

from saleflyer.exceptions import ValidationError
from saleflyer.services.flyer_layout import (
    DEFAULT_BUSINESS_NAME, DEFAULT_TOWN, FlyerDocument, build_flyer, flyer_filename
)
from saleflyer.services.flyer_render_service import (
    CAPTURE_SCALE, IMAGE_PROBE_TIMEOUT, JPEG_QUALITY, PageRasterizer,
    encode_jpeg, load_images, probe_images
)
from saleflyer.services.optimistic_service import Notice, error_notice, success_notice
from saleflyer.services.product_service import list_products
from saleflyer.services.sales_service import get_sale_with_theme

logger = logging.getLogger(__name__)

A4_WIDTH, A4_HEIGHT = A4

# Pages rendered before yielding; bounds peak memory to a couple of decoded pages
RENDER_CHUNK_SIZE = 2
CHUNK_PAUSE_SECONDS = 0.1
MAX_EXPORT_ATTEMPTS = 3
RETRY_BASE_SECONDS = 1.0
PRINT_FALLBACK_DELAY = 1.0

NO_PRODUCTS_MESSAGE = 'No products added to this sale yet.'


class ExportState(str, Enum):
    IDLE = 'idle'
    ATTEMPTING = 'attempting'
    SUCCESS = 'success'
    FAILED_TERMINAL = 'failed_terminal'


@dataclass(frozen=True)
class ExportSettings:
    capture_scale: int = CAPTURE_SCALE
    jpeg_quality: int = JPEG_QUALITY
    chunk_size: int = RENDER_CHUNK_SIZE
    chunk_pause: float = CHUNK_PAUSE_SECONDS
    max_attempts: int = MAX_EXPORT_ATTEMPTS
    retry_base: float = RETRY_BASE_SECONDS
    probe_timeout: float = IMAGE_PROBE_TIMEOUT
    fallback_delay: float = PRINT_FALLBACK_DELAY

    @classmethod
    def from_config(cls, config) -> 'ExportSettings':
        """Read FLYER_* keys from a Flask config (missing keys keep the defaults)."""
        defaults = cls()
        return cls(
            capture_scale=int(config.get('FLYER_CAPTURE_SCALE', defaults.capture_scale)),
            jpeg_quality=int(config.get('FLYER_JPEG_QUALITY', defaults.jpeg_quality)),
            chunk_size=max(1, int(config.get('FLYER_RENDER_CHUNK_SIZE', defaults.chunk_size))),
            chunk_pause=float(config.get('FLYER_CHUNK_PAUSE_SECONDS', defaults.chunk_pause)),
            max_attempts=max(1, int(config.get('FLYER_MAX_ATTEMPTS', defaults.max_attempts))),
            retry_base=float(config.get('FLYER_RETRY_BASE_SECONDS', defaults.retry_base)),
            probe_timeout=float(config.get('FLYER_IMAGE_PROBE_TIMEOUT', defaults.probe_timeout)),
            fallback_delay=float(config.get('FLYER_PRINT_FALLBACK_DELAY', defaults.fallback_delay)),
        )


@dataclass
class ExportResult:
    state: ExportState
    filename: Optional[str] = None
    pdf: Optional[bytes] = None
    attempts: int = 0
    page_count: int = 0
    placeholder_pages: List[int] = field(default_factory=list)
    hidden_images: List[str] = field(default_factory=list)
    notices: List[Notice] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == ExportState.SUCCESS

    @property
    def fell_back_to_print(self) -> bool:
        return self.state == ExportState.FAILED_TERMINAL


class PageEncodeError(Exception):
    """A rendered page could not be encoded or placed in the document."""


class PdfAssembler:
    """Collects page rasters into an A4-wide PDF."""

    def __init__(self, title: Optional[str] = None):
        self.buffer = BytesIO()
        self.canvas = pdf_canvas.Canvas(self.buffer, pagesize=A4, pageCompression=1)
        if title:
            self.canvas.setTitle(title)
        self.page_count = 0

    def add_image_page(self, jpeg: bytes, pixel_width: int, pixel_height: int) -> None:
        """Append a page at A4 width whose height follows the raster's aspect ratio."""
        height = pixel_height * A4_WIDTH / pixel_width
        try:
            self.canvas.setPageSize((A4_WIDTH, height))
            self.canvas.drawImage(ImageReader(BytesIO(jpeg)), 0, 0, width=A4_WIDTH, height=height)
        except Exception as e:
            raise PageEncodeError(str(e)) from e
        self.canvas.showPage()
        self.page_count += 1

    def add_placeholder_page(self, number: int) -> None:
        self.canvas.setPageSize(A4)
        self.canvas.setFont('Helvetica-Bold', 20)
        self.canvas.drawCentredString(A4_WIDTH / 2, A4_HEIGHT / 2, f"Page {number} - Image Generation Failed")
        self.canvas.showPage()
        self.page_count += 1

    def finish(self) -> bytes:
        self.canvas.save()
        return self.buffer.getvalue()


def load_sale_flyer(session, sale_id: str, business_name: str = DEFAULT_BUSINESS_NAME,
                    town: str = DEFAULT_TOWN) -> FlyerDocument:
    """Lay out the flyer of a stored sale (theme colors win when the theme still exists)."""
    sale, theme = get_sale_with_theme(session, sale_id)
    products = list_products(session, sale.id)
    return build_flyer(sale, products, theme, business_name=business_name, town=town)


def _require_pages(document: FlyerDocument) -> None:
    if document.page_count == 0:
        raise ValidationError(NO_PRODUCTS_MESSAGE)


class FlyerExporter:
    """
    Retrying PDF export for one flyer document.

    State moves Idle -> Attempting(n) -> Success | Attempting(n+1) | FailedTerminal.
    `progress` receives every Notice as it is produced; `on_fallback` is called
    after the fallback delay once all attempts failed.
    """

    def __init__(self, settings: Optional[ExportSettings] = None,
                 progress: Optional[Callable[[Notice], None]] = None,
                 on_fallback: Optional[Callable[[], None]] = None,
                 fetch: Optional[Callable[[str], bytes]] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], datetime] = datetime.now):
        self.settings = settings or ExportSettings()
        self.progress = progress
        self.on_fallback = on_fallback
        self.fetch = fetch
        self.sleep = sleep
        self.clock = clock
        self.state = ExportState.IDLE
        self.attempt = 0

    def _notify(self, result: ExportResult, notice: Notice) -> None:
        result.notices.append(notice)
        if self.progress:
            self.progress(notice)

    def export(self, document: FlyerDocument) -> ExportResult:
        _require_pages(document)
        settings = self.settings
        result = ExportResult(state=self.state, page_count=document.page_count)

        probe = probe_images(document.image_urls(), timeout=settings.probe_timeout, fetch=self.fetch)
        result.hidden_images = sorted(probe.failed)
        prepared = document.without_images(probe.failed)

        for attempt in range(1, settings.max_attempts + 1):
            self.attempt = attempt
            self.state = ExportState.ATTEMPTING
            result.attempts = attempt
            self._notify(result, Notice('Generating PDF', f"Attempt {attempt}/{settings.max_attempts}"))
            started = time.monotonic()
            try:
                pdf, placeholders = self._attempt(prepared, probe.loaded)
            except Exception as e:
                logger.warning(f"[FLYER] ✗ Attempt {attempt}/{settings.max_attempts} failed for "
                               f"sale {document.sale_id}: {e}")
                result.error = str(e)
                if attempt == settings.max_attempts:
                    return self._fail(result)
                delay = attempt * settings.retry_base
                self._notify(result, Notice('Retrying', f"Retrying in {delay:g} seconds"))
                self.sleep(delay)
                continue

            self.state = ExportState.SUCCESS
            result.state = self.state
            result.pdf = pdf
            result.placeholder_pages = placeholders
            result.error = None
            result.filename = flyer_filename(document.sale_name, self.clock())
            logger.info(f"[FLYER] ✓ Exported {result.filename} ({document.page_count} pages, "
                        f"attempt {attempt}, {time.monotonic() - started:.2f}s)")
            self._notify(result, success_notice(f"Flyer exported as {result.filename}"))
            return result

        return self._fail(result)

    def _attempt(self, document: FlyerDocument, images: Dict[str, bytes]):
        settings = self.settings
        rasterizer = PageRasterizer(document, images, scale=settings.capture_scale)
        assembler = PdfAssembler(title=document.sale_name)
        placeholders: List[int] = []
        pages = list(document.pages)

        for start in range(0, len(pages), settings.chunk_size):
            if start and settings.chunk_pause:
                self.sleep(settings.chunk_pause)
            for page in pages[start:start + settings.chunk_size]:
                raster = rasterizer.render(page)
                try:
                    jpeg = encode_jpeg(raster, settings.jpeg_quality)
                    assembler.add_image_page(jpeg, raster.width, raster.height)
                except Exception as e:
                    logger.error(f"[FLYER] ✗ Page {page.number} could not be placed: {e}")
                    assembler.add_placeholder_page(page.number)
                    placeholders.append(page.number)
                finally:
                    raster.close()

        return assembler.finish(), placeholders

    def _fail(self, result: ExportResult) -> ExportResult:
        self.state = ExportState.FAILED_TERMINAL
        result.state = self.state
        logger.error(f"[FLYER] ✗ Export gave up after {result.attempts} attempts: {result.error}")
        self._notify(result, error_notice('Failed to generate PDF after multiple attempts. Opening print view instead.'))
        if self.settings.fallback_delay:
            self.sleep(self.settings.fallback_delay)
        if self.on_fallback:
            self.on_fallback()
        return result


def export_flyer_pdf(document: FlyerDocument, settings: Optional[ExportSettings] = None,
                     **kwargs) -> ExportResult:
    """Hardened export; see FlyerExporter."""
    return FlyerExporter(settings, **kwargs).export(document)


def generate_flyer_pdf(document: FlyerDocument, settings: Optional[ExportSettings] = None,
                       on_fallback: Optional[Callable[[], None]] = None,
                       loader: Callable = load_images,
                       clock: Callable[[], datetime] = datetime.now) -> ExportResult:
    """Single-attempt export; any failure falls back to the print view."""
    _require_pages(document)
    settings = settings or ExportSettings()
    result = ExportResult(state=ExportState.ATTEMPTING, attempts=1, page_count=document.page_count)
    try:
        images = loader(document.image_urls(), settings.probe_timeout)
        rasterizer = PageRasterizer(document, images, scale=settings.capture_scale)
        assembler = PdfAssembler(title=document.sale_name)
        for page in document.pages:
            raster = rasterizer.render(page)
            assembler.add_image_page(encode_jpeg(raster, settings.jpeg_quality), raster.width, raster.height)
        result.pdf = assembler.finish()
    except Exception as e:
        logger.error(f"[FLYER] ✗ PDF generation failed for sale {document.sale_id}: {e}")
        result.state = ExportState.FAILED_TERMINAL
        result.error = str(e)
        result.notices.append(error_notice('Failed to generate PDF. Opening print view instead.'))
        if on_fallback:
            on_fallback()
        return result

    result.state = ExportState.SUCCESS
    result.filename = flyer_filename(document.sale_name, clock())
    result.notices.append(success_notice(f"Flyer exported as {result.filename}"))
    return result
