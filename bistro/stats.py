"""Sales reporting for the admin dashboard.

Both reports are read-only and run as SQL aggregates: the revenue total is a
single SUM over payments, and the per-category report explodes each payment
into its purchased menu items (``payment_lines``), joins them to the menu and
groups by category.
"""
import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models, schemas

logger = logging.getLogger(__name__)


def total_revenue(db: Session) -> float:
    # COALESCE so an empty payments table reports 0, never NULL
    total = db.query(func.coalesce(func.sum(models.Payment.price), 0)).scalar()
    return round(float(total or 0), 2)


def admin_stats(db: Session) -> schemas.AdminStats:
    users = db.query(func.count(models.User.id)).scalar()
    menu_items = db.query(func.count(models.MenuItem.id)).scalar()
    orders = db.query(func.count(models.Payment.id)).scalar()
    return schemas.AdminStats(
        users=users,
        menuItems=menu_items,
        orders=orders,
        revenue=total_revenue(db),
    )


def order_stats(db: Session) -> List[schemas.CategoryStat]:
    """Quantity sold and revenue per menu category.

    Revenue uses the menu item's current price. Lines whose menu item no
    longer exists drop out of the inner join; categories with no sales are
    absent rather than zero-filled.
    """
    rows = (
        db.query(
            models.MenuItem.category,
            func.count(models.PaymentLine.id),
            func.sum(models.MenuItem.price),
        )
        .select_from(models.PaymentLine)
        .join(models.MenuItem, models.MenuItem.id == models.PaymentLine.menu_item_id)
        .group_by(models.MenuItem.category)
        .order_by(models.MenuItem.category)
        .all()
    )
    logger.debug("order stats: %d categories", len(rows))
    return [
        schemas.CategoryStat(category=category, quantity=quantity, revenue=round(float(revenue or 0), 2))
        for category, quantity, revenue in rows
    ]
