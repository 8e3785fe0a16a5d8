"""SaleProduct model."""
import enum
from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from saleflyer.database import Base
from saleflyer.models.columns import new_id, utcnow, iso


class ProductCategory(str, enum.Enum):
    """Product category; drives the price policy table."""
    SPIRITS = 'spirits'
    WINE = 'wine'
    BEER = 'beer'
    COOLERS = 'coolers'
    MIXERS = 'mixers'
    ACCESSORIES = 'accessories'


class SaleProduct(Base):
    """Item advertised within a Sale."""

    __tablename__ = 'sale_products'

    id = Column(String(36), primary_key=True, default=new_id)
    sale_id = Column(String(36), ForeignKey('sales.id', ondelete='CASCADE'), nullable=False, index=True)
    product_name = Column(String(200), nullable=False)
    product_image = Column(String(512), nullable=True)
    original_price = Column(Numeric(10, 2), nullable=False)
    sale_price = Column(Numeric(10, 2), nullable=False)
    size = Column(String(50), nullable=True)
    category = Column(String(20), nullable=False, default=ProductCategory.SPIRITS.value)
    badge_text = Column(String(50), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Relationships
    sale = relationship('Sale', back_populates='products')

    def __repr__(self):
        return f"<SaleProduct(id={self.id}, name='{self.product_name}', position={self.position})>"

    @property
    def savings(self):
        """Original minus sale price."""
        return (self.original_price or 0) - (self.sale_price or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'sale_id': self.sale_id,
            'product_name': self.product_name,
            'product_image': self.product_image,
            'original_price': str(self.original_price) if self.original_price is not None else None,
            'sale_price': str(self.sale_price) if self.sale_price is not None else None,
            'size': self.size,
            'category': self.category,
            'badge_text': self.badge_text,
            'position': self.position,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
