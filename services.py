import logging
from typing import Any, Dict, List, Optional

from database import DocumentStore, new_id
from errors import Conflict, InvalidCredentials, NotFound
from schemas import (
    Identity,
    LoginRequest,
    Order,
    OrderCreate,
    OrderStatusUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
    ProfileUpdate,
    PublicUser,
    RegisterRequest,
    Review,
    ReviewCreate,
    ReviewUpdate,
    TokenResponse,
    User,
    utcnow_iso,
)
from security import IdentityService, require_admin, require_owner_or_admin

logger = logging.getLogger(__name__)

Doc = Dict[str, Any]


# Helpers

def find_index(items: List[Doc], item_id: Any) -> int:
    """Position of the record with ``item_id`` or -1.

    Ids compare as strings so documents written with numeric ids still match.
    """
    key = str(item_id)
    for i, item in enumerate(items):
        if str(item.get("id")) == key:
            return i
    return -1


def find_one(items: List[Doc], item_id: Any) -> Optional[Doc]:
    i = find_index(items, item_id)
    return items[i] if i >= 0 else None


def average_rating(reviews: List[Doc]) -> float:
    if not reviews:
        return 0
    return round(sum(r["rating"] for r in reviews) / len(reviews), 1)


class ShopService:
    """Business rules of the store, each run as one document transaction.

    Deleting a product does not cascade: its reviews and orders stay in the
    document and keep pointing at the removed id.
    """

    def __init__(self, store: DocumentStore, identity: IdentityService):
        self.store = store
        self.identity = identity

    def _token_response(self, user: Doc) -> TokenResponse:
        token = self.identity.issue_token(user["id"], user["email"], user["isAdmin"])
        return TokenResponse(token=token, user=PublicUser.from_document(user))

    # Auth

    def register(self, payload: RegisterRequest) -> TokenResponse:
        # hashing is slow, keep it outside the document lock
        hashed = self.identity.hash_password(payload.password)
        with self.store.transaction() as db:
            if any(u["email"] == payload.email for u in db["users"]):
                raise Conflict("Email already registered")
            user = User(
                id=new_id(),
                email=payload.email,
                name=payload.name,
                password=hashed,
                is_admin=len(db["users"]) == 0,
            ).to_document()
            db["users"].append(user)
        logger.info("Registered user %s (admin=%s)", user["id"], user["isAdmin"])
        return self._token_response(user)

    def login(self, payload: LoginRequest) -> TokenResponse:
        db = self.store.snapshot()
        user = next((u for u in db["users"] if u["email"] == payload.email), None)
        hashed = user.get("password", "") if user else self.identity.dummy_hash
        if not self.identity.verify_password(payload.password, hashed) or not user:
            logger.info("Failed login attempt")
            raise InvalidCredentials()
        return self._token_response(user)

    def me(self, identity: Identity) -> PublicUser:
        user = find_one(self.store.snapshot()["users"], identity.id)
        if not user:
            raise NotFound("User not found")
        return PublicUser.from_document(user)

    # Products

    def list_products(self) -> List[Doc]:
        return self.store.snapshot()["products"]

    def get_product(self, product_id: str) -> Doc:
        product = find_one(self.store.snapshot()["products"], product_id)
        if not product:
            raise NotFound("Product not found")
        return product

    def create_product(self, identity: Identity, payload: ProductCreate) -> Doc:
        require_admin(identity)
        product = Product(
            id=new_id(),
            name=payload.name,
            price=payload.price,
            description=payload.description or "",
            image=payload.image or "default",
            featured=bool(payload.featured),
        ).to_document()
        with self.store.transaction() as db:
            db["products"].append(product)
        logger.info("Product %s created by %s", product["id"], identity.id)
        return product

    def update_product(self, identity: Identity, product_id: str, payload: ProductUpdate) -> Doc:
        require_admin(identity)
        changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        with self.store.transaction() as db:
            index = find_index(db["products"], product_id)
            if index == -1:
                raise NotFound("Product not found")
            db["products"][index] = {**db["products"][index], **changes}
            product = db["products"][index]
        logger.info("Product %s updated by %s: %s", product_id, identity.id, sorted(changes))
        return product

    def delete_product(self, identity: Identity, product_id: str) -> None:
        require_admin(identity)
        with self.store.transaction() as db:
            index = find_index(db["products"], product_id)
            if index == -1:
                raise NotFound("Product not found")
            db["products"].pop(index)
        logger.info("Product %s deleted by %s", product_id, identity.id)

    def get_product_with_reviews(self, product_id: str) -> Doc:
        db = self.store.snapshot()
        product = find_one(db["products"], product_id)
        if not product:
            raise NotFound("Product not found")
        reviews = [r for r in db["reviews"] if str(r.get("productId")) == str(product_id)]
        return {
            **product,
            "reviews": reviews,
            "avgRating": average_rating(reviews),
            "reviewCount": len(reviews),
        }

    # Reviews

    def list_reviews(self, product_id: str) -> List[Doc]:
        return [r for r in self.store.snapshot()["reviews"] if str(r.get("productId")) == str(product_id)]

    def get_review(self, review_id: str) -> Doc:
        review = find_one(self.store.snapshot()["reviews"], review_id)
        if not review:
            raise NotFound("Review not found")
        return review

    def create_review(self, identity: Identity, product_id: str, payload: ReviewCreate) -> Doc:
        with self.store.transaction() as db:
            product = find_one(db["products"], product_id)
            if not product:
                raise NotFound("Product not found")
            author = find_one(db["users"], identity.id)
            review = Review(
                id=new_id(),
                product_id=str(product["id"]),
                user_id=identity.id,
                user_name=author["name"] if author else "Anonymous",
                rating=payload.rating,
                review=payload.review,
            ).to_document()
            db["reviews"].append(review)
        return review

    def update_review(self, identity: Identity, review_id: str, payload: ReviewUpdate) -> Doc:
        with self.store.transaction() as db:
            index = find_index(db["reviews"], review_id)
            if index == -1:
                raise NotFound("Review not found")
            review = db["reviews"][index]
            require_owner_or_admin(identity, review.get("userId"), "You can only edit your own reviews")
            updated = dict(review)
            if payload.rating is not None:
                updated["rating"] = payload.rating
            if payload.review is not None:
                updated["review"] = payload.review
            updated["updatedAt"] = utcnow_iso()
            db["reviews"][index] = updated
        return updated

    def delete_review(self, identity: Identity, review_id: str) -> None:
        with self.store.transaction() as db:
            index = find_index(db["reviews"], review_id)
            if index == -1:
                raise NotFound("Review not found")
            require_owner_or_admin(identity, db["reviews"][index].get("userId"), "You can only delete your own reviews")
            db["reviews"].pop(index)
        logger.info("Review %s deleted by %s", review_id, identity.id)

    # Orders

    def create_order(self, identity: Identity, payload: OrderCreate) -> Doc:
        with self.store.transaction() as db:
            user = find_one(db["users"], identity.id)
            order = Order(
                id=new_id(),
                user_id=identity.id,
                user_name=user["name"] if user else "Unknown",
                user_email=user["email"] if user else "Unknown",
                items=payload.items,
                total=payload.total,
            ).model_dump(by_alias=True)
            db["orders"].append(order)
        return order

    def list_my_orders(self, identity: Identity) -> List[Doc]:
        return [o for o in self.store.snapshot()["orders"] if str(o.get("userId")) == identity.id]

    def list_orders(self, identity: Identity) -> List[Doc]:
        require_admin(identity)
        return self.store.snapshot()["orders"]

    def update_order_status(self, identity: Identity, order_id: str, payload: OrderStatusUpdate) -> Doc:
        require_admin(identity)
        with self.store.transaction() as db:
            order = find_one(db["orders"], order_id)
            if not order:
                raise NotFound("Order not found")
            if payload.status:
                order["status"] = payload.status
        logger.info("Order %s status is now %r", order_id, order["status"])
        return order

    def delete_order(self, identity: Identity, order_id: str) -> None:
        require_admin(identity)
        with self.store.transaction() as db:
            index = find_index(db["orders"], order_id)
            if index == -1:
                raise NotFound("Order not found")
            db["orders"].pop(index)
        logger.info("Order %s deleted by %s", order_id, identity.id)

    # Users

    def list_users(self, identity: Identity) -> List[Doc]:
        require_admin(identity)
        return [
            {**PublicUser.from_document(u).model_dump(by_alias=True), "createdAt": u.get("createdAt")}
            for u in self.store.snapshot()["users"]
        ]

    def update_profile(self, identity: Identity, payload: ProfileUpdate) -> PublicUser:
        # only fields present in the request body are touched
        changes = payload.model_dump(include=payload.model_fields_set)
        with self.store.transaction() as db:
            user = find_one(db["users"], identity.id)
            if not user:
                raise NotFound("User not found")
            user.update(changes)
        return PublicUser.from_document(user)
