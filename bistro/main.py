import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .db import Base, engine, get_db
from . import crud, schemas, stats
from . import config
from .auth import (
    AuthError,
    TokenClaims,
    ensure_self,
    get_current_claims,
    issue_token,
    require_admin,
)
from .payment import BasePaymentGateway, PaymentGatewayError, get_payment_gateway, to_minor_units

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.setup_logging()
    # Create tables if not existing. In production, use Alembic.
    Base.metadata.create_all(bind=engine)
    logger.info("bistro API ready (payments: %s)", config.settings().payment_provider)
    yield
    engine.dispose()


app = FastAPI(title="Bistro Ordering API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(config.settings().cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(crud.DuplicatePaymentError)
async def duplicate_payment_handler(request: Request, exc: crud.DuplicatePaymentError):
    return JSONResponse(status_code=409, content={"message": "payment already recorded", "paymentId": exc.payment_id})


@app.exception_handler(PaymentGatewayError)
async def payment_gateway_handler(request: Request, exc: PaymentGatewayError):
    return JSONResponse(status_code=502, content={"message": exc.message})


@app.get("/")
async def root():
    return {"message": "Bistro is open"}


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- tokens & users --------------------

@app.post("/jwt")
async def create_token(claims: TokenClaims):
    return {"token": issue_token(claims)}


@app.get("/users", response_model=List[schemas.UserRead])
def get_users(claims: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    return crud.list_users(db)


@app.get("/users/admin/{email}", response_model=schemas.AdminFlag)
def get_admin_flag(email: str, claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)):
    ensure_self(email, claims)
    user = crud.get_user_by_email(db, email)
    return {"admin": user is not None and user.role == schemas.Role.admin.value}


@app.post("/users")
def create_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    created_user, created = crud.create_user_if_absent(db, user)
    if not created:
        return schemas.UserExists(message="user already exists")
    return schemas.InsertResult(insertedId=created_user.id)


@app.patch("/users/admin/{user_id}", response_model=schemas.UpdateResult)
def make_admin(user_id: int, claims: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    return crud.make_admin(db, user_id)


@app.delete("/users/{user_id}", response_model=schemas.DeleteResult)
def delete_user(user_id: int, claims: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    return crud.delete_user(db, user_id)


# -------------------- catalog --------------------

@app.get("/menu", response_model=List[schemas.MenuItemRead])
def get_menu(db: Session = Depends(get_db)):
    return crud.list_menu(db)


@app.get("/menu/{item_id}", response_model=schemas.MenuItemRead)
def get_menu_item(item_id: int, db: Session = Depends(get_db)):
    item = crud.get_menu_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="menu item not found")
    return item


@app.post("/menu", response_model=schemas.InsertResult)
def add_menu_item(item: schemas.MenuItemCreate, claims: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    created = crud.create_menu_item(db, item)
    return schemas.InsertResult(insertedId=created.id)


@app.patch("/menu/{item_id}", response_model=schemas.UpdateResult)
def update_menu_item(item_id: int, item: schemas.MenuItemUpdate, claims: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    return crud.update_menu_item(db, item_id, item)


@app.delete("/menu/{item_id}", response_model=schemas.DeleteResult)
def delete_menu_item(item_id: int, claims: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    return crud.delete_menu_item(db, item_id)


@app.get("/chefsRecommend", response_model=List[schemas.MenuItemRead])
def get_chef_recommendations(db: Session = Depends(get_db)):
    return crud.list_recommended(db)


@app.get("/testimonials", response_model=List[schemas.ReviewRead])
def get_testimonials(db: Session = Depends(get_db)):
    return crud.list_reviews(db)


# -------------------- carts --------------------

@app.get("/carts", response_model=List[schemas.CartItemRead])
def get_cart(email: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
    return crud.list_cart(db, email)


@app.post("/carts", response_model=schemas.InsertResult)
def add_to_cart(item: schemas.CartItemCreate, db: Session = Depends(get_db)):
    created = crud.add_to_cart(db, item)
    return schemas.InsertResult(insertedId=created.id)


@app.delete("/carts/{item_id}", response_model=schemas.DeleteResult)
def remove_from_cart(item_id: int, db: Session = Depends(get_db)):
    return crud.delete_cart_item(db, item_id)


# -------------------- payments --------------------

@app.post("/create-payment-intent", response_model=schemas.PaymentIntentResponse)
async def create_payment_intent(body: schemas.PaymentIntentRequest, gateway: BasePaymentGateway = Depends(get_payment_gateway)):
    amount = to_minor_units(body.price)
    logger.info("creating %s payment intent for %d minor units", gateway.provider_name, amount)
    intent = await gateway.create_payment_intent(amount, currency=config.settings().payment_currency)
    return {"clientSecret": intent.client_secret}


@app.post("/payment", response_model=schemas.SettlementResult)
def settle_payment(payment: schemas.PaymentCreate, db: Session = Depends(get_db)):
    return crud.settle_payment(db, payment)


@app.get("/payment/{email}", response_model=List[schemas.PaymentRead])
def get_payments(email: str, claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)):
    ensure_self(email, claims, message="forbidden access")
    return crud.list_payments(db, email)


# -------------------- analytics --------------------

@app.get("/admin-stats", response_model=schemas.AdminStats)
def get_admin_stats(claims: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    return stats.admin_stats(db)


@app.get("/order-stats", response_model=List[schemas.CategoryStat])
def get_order_stats(claims: TokenClaims = Depends(require_admin), db: Session = Depends(get_db)):
    return stats.order_stats(db)
