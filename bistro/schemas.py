from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, PlainSerializer, field_validator
from pydantic.config import ConfigDict

from .payment import to_minor_units

# Prices and ratings are stored as Decimal but the client expects JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Rating = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json"), Field(ge=0, le=5)]


class Role(str, Enum):
    user = "user"
    admin = "admin"


class PaymentStatus(str, Enum):
    pending = "pending"
    settled = "settled"


# -------------------- write results --------------------

class InsertResult(BaseModel):
    acknowledged: bool = True
    insertedId: Optional[int] = None


class UpdateResult(BaseModel):
    acknowledged: bool = True
    matchedCount: int = 0
    modifiedCount: int = 0


class DeleteResult(BaseModel):
    acknowledged: bool = True
    deletedCount: int = 0


class Message(BaseModel):
    message: str


class UserExists(Message):
    insertedId: None = None


# -------------------- users --------------------

class UserCreate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    photo: Optional[str] = Field(default=None)


class UserRead(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    photo: Optional[str] = None
    role: Role = Role.user

    model_config = ConfigDict(from_attributes=True)


class AdminFlag(BaseModel):
    admin: bool


# -------------------- catalog --------------------

class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    recipe: Optional[str] = None
    image: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=50)
    price: Money = Field(..., gt=0)
    recommended: bool = False


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    recipe: Optional[str] = None
    image: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    price: Optional[Money] = Field(default=None, gt=0)
    recommended: Optional[bool] = None


class MenuItemRead(BaseModel):
    id: int
    name: str
    recipe: Optional[str] = None
    image: Optional[str] = None
    category: str
    price: Money
    recommended: bool = False

    model_config = ConfigDict(from_attributes=True)


class ReviewRead(BaseModel):
    id: int
    name: str
    details: Optional[str] = None
    rating: Optional[Rating] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------- carts --------------------

class CartItemCreate(BaseModel):
    email: str = Field(..., min_length=3)
    menu_item_id: int = Field(..., alias="menuItemId")
    name: Optional[str] = None
    image: Optional[str] = None
    price: Money = Field(..., ge=0)

    model_config = ConfigDict(populate_by_name=True)


class CartItemRead(BaseModel):
    id: int
    email: str
    menu_item_id: int = Field(serialization_alias="menuItemId")
    name: Optional[str] = None
    image: Optional[str] = None
    price: Money

    model_config = ConfigDict(from_attributes=True)


# -------------------- payments --------------------

class PaymentIntentRequest(BaseModel):
    price: Money = Field(..., gt=0)

    @field_validator("price")
    def at_least_one_cent(cls, v: Decimal):
        # the processor works in cents; 0.004 would round to a zero charge
        if to_minor_units(v) < 1:
            raise ValueError("price must be at least 0.01")
        return v


class PaymentIntentResponse(BaseModel):
    clientSecret: str


class PaymentCreate(BaseModel):
    email: str = Field(..., min_length=3)
    price: Money = Field(..., ge=0)
    transaction_id: Optional[str] = Field(default=None, alias="transactionId", min_length=1)
    cart_ids: List[int] = Field(default_factory=list, alias="cartIds")
    menu_item_ids: List[int] = Field(default_factory=list, alias="menuItemIds")
    # clients send "pending"; a recorded payment is always settled
    status: Optional[PaymentStatus] = None

    model_config = ConfigDict(populate_by_name=True)


class PaymentRead(BaseModel):
    id: int
    email: str
    price: Money
    transaction_id: Optional[str] = Field(default=None, serialization_alias="transactionId")
    status: str
    cart_ids: List[int] = Field(default_factory=list, serialization_alias="cartIds")
    menu_item_ids: List[int] = Field(default_factory=list, serialization_alias="menuItemIds")
    created_at: Optional[datetime] = Field(default=None, serialization_alias="date")

    model_config = ConfigDict(from_attributes=True)


class SettlementResult(BaseModel):
    paymentResult: InsertResult
    deleteResult: DeleteResult


# -------------------- analytics --------------------

class AdminStats(BaseModel):
    users: int
    menuItems: int
    orders: int
    revenue: float


class CategoryStat(BaseModel):
    category: str
    quantity: int
    revenue: float
