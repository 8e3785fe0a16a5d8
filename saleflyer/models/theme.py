"""Theme model - reusable flyer palette."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from saleflyer.database import Base
from saleflyer.models.columns import new_id, utcnow, iso


class Theme(Base):
    """Named color palette (and optional header image) a Sale can point at."""

    __tablename__ = 'themes'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(120), nullable=False)
    background_color = Column(String(16), nullable=False, default='#F59E0B')
    accent_color = Column(String(16), nullable=False, default='#1A1A1A')
    header_image_url = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    def __repr__(self):
        return f"<Theme(id={self.id}, name='{self.name}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'background_color': self.background_color,
            'accent_color': self.accent_color,
            'header_image_url': self.header_image_url,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
