import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .utils import sanitize_input

logger = logging.getLogger(__name__)

# Business rule: money stored rounded to 2 decimals

def round_amount(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class DuplicatePaymentError(ValueError):
    def __init__(self, transaction_id: str, payment_id: Optional[int] = None):
        self.transaction_id = transaction_id
        self.payment_id = payment_id
        super().__init__(f"payment already recorded for transaction {transaction_id}")


# -------------------- users --------------------

def list_users(db: Session) -> List[models.User]:
    return db.query(models.User).order_by(models.User.id).all()


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == email).first()


def create_user_if_absent(db: Session, user: schemas.UserCreate) -> Tuple[models.User, bool]:
    existing = get_user_by_email(db, user.email)
    if existing:
        return existing, False
    db_user = models.User(name=user.name, email=user.email, photo=user.photo, role=schemas.Role.user.value)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race against a concurrent sign-in with the same email
        db.rollback()
        return get_user_by_email(db, user.email), False
    db.refresh(db_user)
    return db_user, True


def make_admin(db: Session, user_id: int) -> schemas.UpdateResult:
    user = db.get(models.User, user_id)
    if not user:
        return schemas.UpdateResult()
    if user.role == schemas.Role.admin.value:
        return schemas.UpdateResult(matchedCount=1)
    user.role = schemas.Role.admin.value
    db.commit()
    logger.info("user %s elevated to admin", user.email)
    return schemas.UpdateResult(matchedCount=1, modifiedCount=1)


def delete_user(db: Session, user_id: int) -> schemas.DeleteResult:
    user = db.get(models.User, user_id)
    if not user:
        return schemas.DeleteResult()
    db.delete(user)
    db.commit()
    return schemas.DeleteResult(deletedCount=1)


# -------------------- menu --------------------

def list_menu(db: Session) -> List[models.MenuItem]:
    return db.query(models.MenuItem).order_by(models.MenuItem.id).all()


def get_menu_item(db: Session, item_id: int) -> models.MenuItem | None:
    return db.get(models.MenuItem, item_id)


def create_menu_item(db: Session, item: schemas.MenuItemCreate) -> models.MenuItem:
    db_item = models.MenuItem(
        name=sanitize_input(item.name),
        recipe=sanitize_input(item.recipe) if item.recipe is not None else None,
        image=item.image,
        category=sanitize_input(item.category),
        price=round_amount(item.price),
        recommended=item.recommended,
    )
    db.add(db_item)
    db.commit()
    db.refresh(db_item)
    return db_item


def update_menu_item(db: Session, item_id: int, item: schemas.MenuItemUpdate) -> schemas.UpdateResult:
    db_item = db.get(models.MenuItem, item_id)
    if not db_item:
        return schemas.UpdateResult()
    changes = item.model_dump(exclude_unset=True, exclude_none=True)
    for field in ("name", "recipe", "category"):
        if field in changes:
            changes[field] = sanitize_input(changes[field])
    if "price" in changes:
        changes["price"] = round_amount(changes["price"])

    modified = False
    for field, value in changes.items():
        if getattr(db_item, field) != value:
            setattr(db_item, field, value)
            modified = True
    if modified:
        db.commit()
    return schemas.UpdateResult(matchedCount=1, modifiedCount=int(modified))


def delete_menu_item(db: Session, item_id: int) -> schemas.DeleteResult:
    db_item = db.get(models.MenuItem, item_id)
    if not db_item:
        return schemas.DeleteResult()
    db.delete(db_item)
    db.commit()
    return schemas.DeleteResult(deletedCount=1)


def list_recommended(db: Session) -> List[models.MenuItem]:
    return db.query(models.MenuItem).filter(models.MenuItem.recommended.is_(True)).order_by(models.MenuItem.id).all()


def list_reviews(db: Session) -> List[models.Review]:
    return db.query(models.Review).order_by(models.Review.id).all()


# -------------------- carts --------------------

def list_cart(db: Session, email: Optional[str]) -> List[models.CartItem]:
    return db.query(models.CartItem).filter(models.CartItem.email == email).order_by(models.CartItem.id).all()


def add_to_cart(db: Session, item: schemas.CartItemCreate) -> models.CartItem:
    db_item = models.CartItem(
        email=item.email,
        menu_item_id=item.menu_item_id,
        name=item.name,
        image=item.image,
        price=round_amount(item.price),
    )
    db.add(db_item)
    db.commit()
    db.refresh(db_item)
    return db_item


def delete_cart_item(db: Session, item_id: int) -> schemas.DeleteResult:
    db_item = db.get(models.CartItem, item_id)
    if not db_item:
        return schemas.DeleteResult()
    db.delete(db_item)
    db.commit()
    return schemas.DeleteResult(deletedCount=1)


# -------------------- payments --------------------

def get_payment_by_transaction(db: Session, transaction_id: str) -> models.Payment | None:
    return db.query(models.Payment).filter(models.Payment.transaction_id == transaction_id).first()


def list_payments(db: Session, email: str) -> List[models.Payment]:
    return (
        db.query(models.Payment)
        .options(selectinload(models.Payment.lines))
        .filter(models.Payment.email == email)
        .order_by(models.Payment.created_at.desc(), models.Payment.id.desc())
        .all()
    )


def settle_payment(db: Session, payment: schemas.PaymentCreate) -> schemas.SettlementResult:
    """Record a payment and retire the cart items it paid for.

    The insert and the cart deletion share one transaction: if either write
    fails the session is rolled back and the store error is re-raised, so a
    payment never becomes visible while its cart items remain. Cart ids that
    are already gone are skipped silently.

    Without a transaction id every call records a new payment. With one, a
    second settlement of the same transaction raises DuplicatePaymentError.
    """
    if payment.transaction_id:
        existing = get_payment_by_transaction(db, payment.transaction_id)
        if existing:
            raise DuplicatePaymentError(payment.transaction_id, existing.id)

    db_payment = models.Payment(
        email=payment.email,
        price=round_amount(payment.price),
        transaction_id=payment.transaction_id,
        status=schemas.PaymentStatus.settled.value,
        cart_ids=list(payment.cart_ids),
        lines=[models.PaymentLine(menu_item_id=mid) for mid in payment.menu_item_ids],
    )
    try:
        db.add(db_payment)
        db.flush()
        deleted = 0
        if payment.cart_ids:
            deleted = (
                db.query(models.CartItem)
                .filter(models.CartItem.id.in_(payment.cart_ids))
                .delete()
            )
        db.commit()
    except IntegrityError:
        db.rollback()
        if payment.transaction_id:
            existing = get_payment_by_transaction(db, payment.transaction_id)
            if existing:
                raise DuplicatePaymentError(payment.transaction_id, existing.id)
        logger.exception("settlement failed for %s", payment.email)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("settlement failed for %s", payment.email)
        raise

    logger.info("payment %s settled for %s, %d cart item(s) retired", db_payment.id, payment.email, deleted)
    return schemas.SettlementResult(
        paymentResult=schemas.InsertResult(insertedId=db_payment.id),
        deleteResult=schemas.DeleteResult(deletedCount=deleted),
    )
