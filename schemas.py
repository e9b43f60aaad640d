"""
Schemas for the PogoJump store

Collection models describe the records kept in the JSON document. Each class
maps to a collection (User -> "users") and is dumped with camelCase aliases,
the key style the stored document uses.

Request models are the validation boundary for each operation: anything that
reaches the service layer has already been parsed and coerced here.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def reject_bool(v: Any) -> Any:
    # JSON true/false would otherwise coerce to 1/0
    if isinstance(v, bool):
        raise ValueError("Input should be a number, not a boolean")
    return v


Number = Annotated[float, BeforeValidator(reject_bool)]
WholeNumber = Annotated[int, BeforeValidator(reject_bool)]


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# Collections

class User(Record):
    id: str
    email: str
    name: str
    password: str = Field(..., description="BCrypt hash of password")
    is_admin: bool = False
    avatar: Optional[str] = None
    flag: Optional[str] = None
    created_at: str = Field(default_factory=utcnow_iso)


class Product(Record):
    id: str
    name: str
    description: str = ""
    price: Number = Field(..., ge=0, allow_inf_nan=False)
    image: str = "default"
    featured: bool = False


class Review(Record):
    id: str
    product_id: str = Field(..., description="Reference to products id")
    user_id: str = Field(..., description="Reference to users id (author)")
    user_name: str
    rating: WholeNumber = Field(..., ge=1, le=5)
    review: str
    created_at: str = Field(default_factory=utcnow_iso)
    updated_at: Optional[str] = None


class Order(Record):
    id: str
    user_id: str
    user_name: str
    user_email: str
    items: List[Any]
    total: Number = Field(..., ge=0, allow_inf_nan=False)
    status: str = "pending"
    created_at: str = Field(default_factory=utcnow_iso)


# Identity / responses

class Identity(Record):
    id: str
    email: str
    is_admin: bool = False


class PublicUser(Record):
    id: str
    email: str
    name: str
    is_admin: bool
    avatar: Optional[str] = None
    flag: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "PublicUser":
        return cls(
            id=str(doc["id"]),
            email=doc["email"],
            name=doc["name"],
            is_admin=bool(doc.get("isAdmin")),
            avatar=doc.get("avatar"),
            flag=doc.get("flag"),
        )


class TokenResponse(BaseModel):
    token: str
    user: PublicUser


# Requests

class RegisterRequest(BaseModel):
    # matched byte for byte against stored emails, so no normalisation
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    price: Number = Field(..., ge=0, allow_inf_nan=False)
    description: Optional[str] = None
    image: Optional[str] = None
    featured: Optional[bool] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    price: Optional[Number] = Field(None, ge=0, allow_inf_nan=False)
    description: Optional[str] = None
    image: Optional[str] = Field(None, min_length=1)
    featured: Optional[bool] = None


class ReviewCreate(BaseModel):
    rating: WholeNumber = Field(..., ge=1, le=5)
    review: str = Field(..., min_length=1)


class ReviewUpdate(BaseModel):
    rating: Optional[WholeNumber] = Field(None, ge=1, le=5)
    review: Optional[str] = None


class OrderCreate(BaseModel):
    items: List[Any] = Field(..., min_length=1)
    total: Number = Field(..., ge=0, allow_inf_nan=False)


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None
    flag: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_length(cls, v: Optional[str]) -> str:
        if v is None or len(v.strip()) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v.strip()
