from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import relationship

from .base import Base, BigIntPK


class Product(Base):
    __tablename__ = 'products'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    seller_id = Column(ForeignKey('users.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Numeric(12, 2))
    status = Column(String(32), nullable=False, server_default=text("'active'"), default="active")
    location = Column(String(255))

    # Relationships
    seller = relationship('User', back_populates='products')
    photos = relationship(
        'ProductPhoto',
        back_populates='product',
        order_by='ProductPhoto.position',
        cascade='all, delete-orphan',
    )
    conversations = relationship('Conversation', back_populates='product', uselist=True, lazy="select")

    @property
    def image_url(self):
        """URL of the first photo, or None for products without photos."""
        return self.photos[0].url if self.photos else None


class ProductPhoto(Base):
    __tablename__ = 'product_photos'
    __table_args__ = (
        Index('product_photo_product_position_idx', 'product_id', 'position'),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    product_id = Column(ForeignKey('products.id', ondelete='CASCADE', onupdate='RESTRICT'), nullable=False)
    url = Column('photo_url', Text, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    product = relationship('Product', back_populates='photos')
