from sqlalchemy import BigInteger, Column, String, Text
from sqlalchemy.orm import relationship

from .base import Base, BigIntPK


class User(Base):
    __tablename__ = 'users'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    dni = Column(String(32))
    email = Column(String(320), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    lastname = Column(String(255), nullable=False)
    password_hash = Column(String(255))
    phone = Column(String(64))
    avatar_url = Column(Text)
    rating = Column(BigInteger)

    # Relationships
    products = relationship("Product", back_populates="seller", uselist=True, lazy="select")
    notifications = relationship("Notification", back_populates="user", uselist=True, lazy="select")

    @property
    def display_name(self) -> str:
        """Name shown next to chat messages ("first last")."""
        return f"{self.name} {self.lastname}"
