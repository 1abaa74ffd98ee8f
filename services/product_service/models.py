from sqlalchemy import Boolean, CheckConstraint, Column, Integer, JSON, String, Float
from shared.config.database import Base

class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_qty >= 0", name="ck_products_stock_qty_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    stock_qty = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def primary_image(self) -> str | None:
        return self.images[0] if self.images else None
