from sqlalchemy import Boolean, Column, Integer, String, Text, ForeignKey, Numeric, JSON, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, expression
from .db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    email = Column(String, nullable=False, unique=True, index=True)
    photo = Column(String, nullable=True)
    # simple RBAC: 'user' or 'admin'
    role = Column(String, nullable=False, default='user', index=True)


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    recipe = Column(Text, nullable=True)
    image = Column(String, nullable=True)
    category = Column(String, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    # shown in the chef recommends section
    recommended = Column(Boolean, nullable=False, default=False, server_default=expression.false())


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, index=True)
    # references a menu item without owning it; no FK so menu deletes never cascade into carts
    menu_item_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=True)
    image = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    transaction_id = Column(String, nullable=True, unique=True)
    status = Column(String, nullable=False, default="settled")
    cart_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    lines = relationship(
        "PaymentLine",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentLine.id",
    )

    @property
    def menu_item_ids(self) -> list[int]:
        return [line.menu_item_id for line in self.lines]


class PaymentLine(Base):
    """One purchased menu item of a payment; duplicates are kept as separate rows."""
    __tablename__ = "payment_lines"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, nullable=False, index=True)

    payment = relationship("Payment", back_populates="lines")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    details = Column(Text, nullable=True)
    rating = Column(Numeric(2, 1), nullable=True)
