"""Sale model."""
import enum
from sqlalchemy import Column, String, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from saleflyer.database import Base
from saleflyer.models.columns import new_id, utcnow, iso


class SaleTheme(str, enum.Enum):
    """Seasonal tag a sale is created with."""
    EASTER = 'easter'
    HALLOWEEN = 'halloween'
    VICTORIA_DAY = 'victoria-day'
    CHRISTMAS = 'christmas'
    GENERAL = 'general'


# Default palette per seasonal tag, used when a sale is created without explicit colors
THEME_COLORS = {
    SaleTheme.EASTER: {'background': '#FF8C00', 'accent': '#8B4513'},
    SaleTheme.HALLOWEEN: {'background': '#FF8C00', 'accent': '#000000'},
    SaleTheme.VICTORIA_DAY: {'background': '#DC2626', 'accent': '#FFFFFF'},
    SaleTheme.CHRISTMAS: {'background': '#DC2626', 'accent': '#059669'},
    SaleTheme.GENERAL: {'background': '#F59E0B', 'accent': '#1A1A1A'},
}


class Sale(Base):
    """Time-boxed promotional campaign (one flyer)."""

    __tablename__ = 'sales'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    theme = Column(String(32), nullable=False, default=SaleTheme.GENERAL.value)
    theme_id = Column(String(36), ForeignKey('themes.id', ondelete='SET NULL'), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    background_color = Column(String(16), nullable=False, default=THEME_COLORS[SaleTheme.GENERAL]['background'])
    accent_color = Column(String(16), nullable=False, default=THEME_COLORS[SaleTheme.GENERAL]['accent'])
    header_image = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Relationships
    theme_record = relationship('Theme', foreign_keys=[theme_id])
    products = relationship(
        'SaleProduct',
        back_populates='sale',
        cascade='all, delete-orphan',
        order_by='SaleProduct.position'
    )

    def __repr__(self):
        return f"<Sale(id={self.id}, name='{self.name}', active={self.is_active})>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'theme': self.theme,
            'theme_id': self.theme_id,
            'start_date': iso(self.start_date),
            'end_date': iso(self.end_date),
            'is_active': bool(self.is_active),
            'background_color': self.background_color,
            'accent_color': self.accent_color,
            'header_image': self.header_image,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
