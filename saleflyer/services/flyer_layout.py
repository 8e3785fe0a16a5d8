"""
Flyer layout model.

Turns a sale, its ordered products and an optional theme into a list of
independent pages (header band, product grid, footer band). The same model
feeds the Pillow rasterizer, the print view and the preview summary, so the
pagination and pricing math live here only.
"""
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from saleflyer.utils.formatters import date_range, money, savings, slugify

# Grid capacity of one A4 page: 5 columns x 4 rows
GRID_COLUMNS = 5
GRID_ROWS = 4
PRODUCTS_PER_PAGE = GRID_COLUMNS * GRID_ROWS

# "SAVE $X.XX" pill
ALERT_COLOR = '#DC2626'

DEFAULT_BUSINESS_NAME = 'MY LIQUOR'
DEFAULT_TOWN = 'Drayton Valley'

STORE_HOURS = ('Monday - Saturday: 10 AM - 10 PM', 'Sunday: 11 AM - 8 PM')
PAYMENT_METHODS = ('Interac • Visa • Mastercard • Amex', 'Cash • Debit')


@dataclass(frozen=True)
class FlyerColors:
    background: str
    accent: str


@dataclass(frozen=True)
class ProductCard:
    id: str
    name: str
    image_url: Optional[str]
    size: Optional[str]
    original_price: str
    sale_price: str
    savings: str
    badge_text: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)


@dataclass(frozen=True)
class FlyerHeader:
    business_name: str
    sale_name: str
    date_range: str
    theme_caption: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class FlyerFooter:
    slogan: str
    store_hours: Tuple[str, ...]
    payment_methods: Tuple[str, ...]
    contact: Tuple[str, ...]
    page_label: Optional[str] = None


@dataclass(frozen=True)
class FlyerPage:
    number: int
    header: FlyerHeader
    cards: Tuple[ProductCard, ...]
    footer: FlyerFooter

    @property
    def rows(self) -> int:
        return math.ceil(len(self.cards) / GRID_COLUMNS)


@dataclass(frozen=True)
class FlyerDocument:
    sale_id: str
    sale_name: str
    colors: FlyerColors
    theme_name: Optional[str]
    pages: Tuple[FlyerPage, ...] = field(default_factory=tuple)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def product_count(self) -> int:
        return sum(len(page.cards) for page in self.pages)

    def image_urls(self) -> List[str]:
        """Every distinct image referenced by the document, in page order."""
        urls: List[str] = []
        for page in self.pages:
            candidates = [page.header.image_url] + [card.image_url for card in page.cards]
            for url in candidates:
                if url and url not in urls:
                    urls.append(url)
        return urls

    def without_images(self, failed: Iterable[str]) -> 'FlyerDocument':
        """Copy of the document with the given image URLs hidden."""
        failed = set(failed)
        if not failed:
            return self

        def _page(page: FlyerPage) -> FlyerPage:
            header = page.header
            if header.image_url in failed:
                header = replace(header, image_url=None)
            cards = tuple(
                replace(card, image_url=None) if card.image_url in failed else card
                for card in page.cards
            )
            return replace(page, header=header, cards=cards)

        return replace(self, pages=tuple(_page(page) for page in self.pages))

    def summary(self) -> Dict[str, Any]:
        """Preview payload for the admin console."""
        return {
            'sale_id': self.sale_id,
            'sale_name': self.sale_name,
            'theme_name': self.theme_name,
            'background_color': self.colors.background,
            'accent_color': self.colors.accent,
            'page_count': self.page_count,
            'product_count': self.product_count,
            'pages': [
                {
                    'number': page.number,
                    'product_count': len(page.cards),
                    'page_label': page.footer.page_label,
                    'product_ids': [card.id for card in page.cards],
                }
                for page in self.pages
            ],
        }


def _get(record, key, default=None):
    if isinstance(record, dict):
        return record.get(key, default)
    return getattr(record, key, default)


def resolve_colors(sale, theme=None) -> FlyerColors:
    """Theme palette when the theme was loaded, otherwise the sale's own colors."""
    source = theme if theme is not None else sale
    return FlyerColors(_get(source, 'background_color'), _get(source, 'accent_color'))


def page_count(product_count: int, per_page: int = PRODUCTS_PER_PAGE) -> int:
    return math.ceil(product_count / per_page) if product_count > 0 else 0


def paginate(products: Sequence, per_page: int = PRODUCTS_PER_PAGE) -> List[List]:
    """
    Split products into page slices.

    Examples:
        45 products -> 3 slices of 20, 20 and 5 (indices 40-44 on the last)
        0 products -> []
    """
    products = list(products)
    return [products[i * per_page:(i + 1) * per_page] for i in range(page_count(len(products), per_page))]


def build_card(product) -> ProductCard:
    original = _get(product, 'original_price')
    sale_price = _get(product, 'sale_price')
    return ProductCard(
        id=str(_get(product, 'id')),
        name=_get(product, 'product_name'),
        image_url=_get(product, 'product_image') or None,
        size=_get(product, 'size') or None,
        original_price=money(original),
        sale_price=money(sale_price),
        savings=savings(original, sale_price),
        badge_text=_get(product, 'badge_text') or None,
    )


def build_flyer(sale, products: Sequence, theme=None,
                business_name: str = DEFAULT_BUSINESS_NAME,
                town: str = DEFAULT_TOWN,
                per_page: int = PRODUCTS_PER_PAGE) -> FlyerDocument:
    """Lay out the flyer for `sale`; products must already be in display order."""
    colors = resolve_colors(sale, theme)
    theme_name = _get(theme, 'name') if theme is not None else None

    header = FlyerHeader(
        business_name=business_name,
        sale_name=_get(sale, 'name'),
        date_range=date_range(_get(sale, 'start_date'), _get(sale, 'end_date')),
        theme_caption=f"{theme_name} Theme" if theme_name else None,
        image_url=(_get(theme, 'header_image_url') or None) if theme is not None else None,
    )

    slices = paginate(products, per_page)
    total = len(slices)
    pages = []
    for index, page_products in enumerate(slices):
        footer = FlyerFooter(
            slogan=f"WE MATCH ALL {town.upper()} COMPETITOR FLYER PRICES",
            store_hours=STORE_HOURS,
            payment_methods=PAYMENT_METHODS,
            contact=(f"Visit us in {town}", '19+ Valid ID Required'),
            page_label=f"Page {index + 1} of {total}" if total > 1 else None,
        )
        pages.append(FlyerPage(
            number=index + 1,
            header=header,
            cards=tuple(build_card(p) for p in page_products),
            footer=footer,
        ))

    return FlyerDocument(
        sale_id=str(_get(sale, 'id')),
        sale_name=_get(sale, 'name'),
        colors=colors,
        theme_name=theme_name,
        pages=tuple(pages),
    )


def flyer_filename(sale_name: str, now: Optional[datetime] = None) -> str:
    """<slug>_flyer_<YYYYMMDDHHMMSS>.pdf"""
    now = now or datetime.now()
    return f"{slugify(sale_name)}_flyer_{now:%Y%m%d%H%M%S}.pdf"
