"""Restaurant rating aggregate.

The rating and review count shown for a restaurant are derived values. They
are recomputed here, behind ``RatingAggregate``, whenever a review is written;
the order engine itself never touches them. Swapping the synchronous
implementation for a queued one only means passing a different aggregate.
"""
import logging
import uuid

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database_sql import transaction
from .errors import ConflictError, NotFoundError, StateError
from .identity import Caller
from .models import OrderORM, RestaurantORM, ReviewORM
from .status import OrderStatus

logger = logging.getLogger("pedidos.ratings")


class RatingAggregate:
    def recompute(self, restaurant_id: str) -> None:
        raise NotImplementedError


class SqlRatingAggregate(RatingAggregate):
    def __init__(self, db: Session):
        self.db = db

    def recompute(self, restaurant_id):
        with transaction(self.db):
            count, avg = (
                self.db.query(func.count(ReviewORM.id), func.avg(ReviewORM.rating))
                .filter(ReviewORM.restaurant_id == restaurant_id)
                .one()
            )
            self.db.query(RestaurantORM).filter(RestaurantORM.id == restaurant_id).update(
                {
                    "rating": round(float(avg), 2) if avg is not None else 0.0,
                    "review_count": int(count or 0),
                },
                synchronize_session=False,
            )
        logger.info("[PEDIDOS][RATINGS] restaurant %s now has %s reviews", restaurant_id, count)


def submit_review(
    db: Session,
    caller: Caller,
    order_id: str,
    rating: int,
    comment=None,
    aggregate: RatingAggregate = None,
) -> ReviewORM:
    """Record the customer's review of a delivered order, then refresh the aggregate."""
    aggregate = aggregate or SqlRatingAggregate(db)
    review_id = str(uuid.uuid4())

    with transaction(db):
        order = db.query(OrderORM).filter(OrderORM.id == order_id).first()
        if order is None or order.customer_id != caller.id:
            raise NotFoundError("Order not found or doesn't belong to user")
        if order.status != OrderStatus.DELIVERED.value:
            raise StateError(
                "Can only review delivered orders", current=order.status
            )
        if db.query(ReviewORM).filter(ReviewORM.order_id == order_id).first():
            raise ConflictError("Review already exists for this order")
        restaurant_id = order.restaurant_id
        db.add(
            ReviewORM(
                id=review_id,
                user_id=caller.id,
                restaurant_id=restaurant_id,
                order_id=order_id,
                rating=rating,
                comment=comment,
            )
        )
        try:
            db.flush()
        except IntegrityError:
            # lost a race with a concurrent review of the same order
            raise ConflictError("Review already exists for this order")

    aggregate.recompute(restaurant_id)
    return db.query(ReviewORM).filter(ReviewORM.id == review_id).one()
