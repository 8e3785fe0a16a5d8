"""FlyerTemplate model (stored layout presets; rendering uses fixed constants)."""
from sqlalchemy import Column, String, Boolean, DateTime, JSON
from sqlalchemy.sql import func
from saleflyer.database import Base
from saleflyer.models.columns import new_id, utcnow, iso
from saleflyer.models.sale import SaleTheme


DEFAULT_LAYOUT_CONFIG = {
    'columns': 5,
    'rows': 4,
    'header_height': 200,
    'footer_height': 150,
}


class FlyerTemplate(Base):
    """Named layout preset bound to a seasonal tag."""

    __tablename__ = 'flyer_templates'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(120), nullable=False)
    theme = Column(String(32), nullable=False, default=SaleTheme.GENERAL.value)
    layout_config = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_LAYOUT_CONFIG))
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)

    def __repr__(self):
        return f"<FlyerTemplate(id={self.id}, name='{self.name}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'theme': self.theme,
            'layout_config': dict(self.layout_config or {}),
            'is_default': bool(self.is_default),
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
