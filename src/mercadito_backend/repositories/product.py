"""
Product repository (read-only use from the conversation flows).
"""

from sqlalchemy.orm import Session

from .base import BaseRepository
from ..model.product import Product


class ProductRepository(BaseRepository[Product]):

    def __init__(self, db: Session):
        super().__init__(db, Product)

