from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _money(value):
    return float(value) if value is not None else None


def _iso(value):
    return value.isoformat() if value is not None else None


# --- Catalog side: owned by the restaurantes/auth services, read-only here ---


class RestaurantORM(Base):
    __tablename__ = "restaurants"

    id = Column(String, primary_key=True, index=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    max_delivery_time = Column(Integer, nullable=False, default=60)
    rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)

    menu = relationship("MenuItemORM", back_populates="restaurant")


class MenuItemORM(Base):
    __tablename__ = "menu_items"

    id = Column(String, primary_key=True, index=True)
    restaurant_id = Column(String, ForeignKey("restaurants.id"), index=True)
    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    restaurant = relationship("RestaurantORM", back_populates="menu")
    customizations = relationship("MenuCustomizationORM", back_populates="menu_item")


class MenuCustomizationORM(Base):
    __tablename__ = "menu_customizations"

    id = Column(String, primary_key=True, index=True)
    menu_item_id = Column(String, ForeignKey("menu_items.id"), index=True)
    name = Column(String, nullable=False)

    menu_item = relationship("MenuItemORM", back_populates="customizations")
    options = relationship("CustomizationOptionORM", back_populates="customization")


class CustomizationOptionORM(Base):
    __tablename__ = "customization_options"

    id = Column(String, primary_key=True, index=True)
    customization_id = Column(
        String, ForeignKey("menu_customizations.id"), index=True
    )
    name = Column(String, nullable=False)
    price_modifier = Column(Numeric(10, 2), nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)

    customization = relationship("MenuCustomizationORM", back_populates="options")


class AddressORM(Base):
    __tablename__ = "addresses"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    street = Column(String, nullable=True)
    city = Column(String, nullable=True)


class ReviewORM(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("order_id", name="uq_reviews_order"),)

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, nullable=False)
    restaurant_id = Column(String, ForeignKey("restaurants.id"), index=True)
    order_id = Column(String, ForeignKey("orders.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "restaurant_id": self.restaurant_id,
            "order_id": self.order_id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": _iso(self.created_at),
        }


# --- Order engine ---


class OrderORM(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, index=True)
    customer_id = Column(String, nullable=False, index=True)
    restaurant_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    tip = Column(Numeric(10, 2), nullable=False, default=0)
    delivery_address_id = Column(String, nullable=False)
    payment_method_type = Column(String, nullable=False)
    # opaque, stored as submitted
    payment_details = Column(JSON, nullable=True)
    special_instructions = Column(String, nullable=True)
    estimated_delivery_time = Column(DateTime, nullable=True)
    actual_delivery_time = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    items = relationship("OrderItemORM", back_populates="order")
    tracking_updates = relationship(
        "TrackingUpdateORM",
        back_populates="order",
        order_by="TrackingUpdateORM.created_at",
    )

    @property
    def total(self):
        return self.subtotal + self.delivery_fee + self.tax + self.tip

    def to_dict(self, tracking_desc: bool = True):
        updates = sorted(
            self.tracking_updates, key=lambda t: t.created_at, reverse=tracking_desc
        )
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "restaurant_id": self.restaurant_id,
            "status": self.status,
            "subtotal": _money(self.subtotal),
            "delivery_fee": _money(self.delivery_fee),
            "tax": _money(self.tax),
            "tip": _money(self.tip),
            "total": _money(self.total),
            "delivery_address_id": self.delivery_address_id,
            "payment_method_type": self.payment_method_type,
            "payment_details": self.payment_details,
            "special_instructions": self.special_instructions,
            "estimated_delivery_time": _iso(self.estimated_delivery_time),
            "actual_delivery_time": _iso(self.actual_delivery_time),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "items": [it.to_dict() for it in self.items],
            "tracking_updates": [t.to_dict() for t in updates],
        }


class OrderItemORM(Base):
    """Snapshot of a cart line; never follows later catalog changes."""

    __tablename__ = "order_items"

    id = Column(String, primary_key=True, index=True)
    order_id = Column(String, ForeignKey("orders.id"), index=True, nullable=False)
    menu_item_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    customizations_data = Column(JSON, nullable=True)
    special_instructions = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    order = relationship("OrderORM", back_populates="items")

    def to_dict(self):
        return {
            "id": self.id,
            "menu_item_id": self.menu_item_id,
            "name": self.name,
            "price": _money(self.price),
            "quantity": self.quantity,
            "customizations_data": self.customizations_data,
            "special_instructions": self.special_instructions,
        }


class TrackingUpdateORM(Base):
    __tablename__ = "tracking_updates"

    id = Column(String, primary_key=True, index=True)
    order_id = Column(String, ForeignKey("orders.id"), index=True, nullable=False)
    status = Column(String, nullable=False)
    message = Column(String, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, index=True)

    order = relationship("OrderORM", back_populates="tracking_updates")

    def to_dict(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": self.status,
            "message": self.message,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "created_at": _iso(self.created_at),
        }
