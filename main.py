import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer

from config import DEFAULT_SECRET_KEY, Settings
from database import COLLECTIONS, DocumentStore
from errors import ShopError, StorageFailure, ValidationError
from schemas import (
    Identity,
    LoginRequest,
    OrderCreate,
    OrderStatusUpdate,
    ProductCreate,
    ProductUpdate,
    ProfileUpdate,
    PublicUser,
    RegisterRequest,
    ReviewCreate,
    ReviewUpdate,
    TokenResponse,
)
from security import IdentityService, authenticate, require_admin
from services import ShopService

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# Dependencies

def get_shop(request: Request) -> ShopService:
    return request.app.state.shop


def current_identity(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> Identity:
    return authenticate(request.app.state.identity, token)


def admin_identity(identity: Identity = Depends(current_identity)) -> Identity:
    require_admin(identity)
    return identity


# Error handlers

async def shop_error_handler(request: Request, exc: ShopError):
    if isinstance(exc, StorageFailure):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_detail})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    reasons = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        reasons.append(f"{field}: {err.get('msg')}" if field else err.get("msg"))
    return await shop_error_handler(request, ValidationError("; ".join(reasons)))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.secret_key == DEFAULT_SECRET_KEY:
        logger.warning("SECRET_KEY not set, using the development signing key")

    app = FastAPI(title="PogoJump Store API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    store = DocumentStore(settings.data_file)
    identity = IdentityService(settings)
    app.state.settings = settings
    app.state.identity = identity
    app.state.shop = ShopService(store, identity)

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    # Utility endpoints
    @app.get("/")
    def root():
        return {"message": "PogoJump Store API running"}

    @app.get("/test")
    def test_database(shop: ShopService = Depends(get_shop)):
        db = shop.store.snapshot()
        return {"backend": "ok", "database": "ok", "collections": {name: len(db[name]) for name in COLLECTIONS}}

    # Auth Routes
    @app.post("/api/auth/register", response_model=TokenResponse)
    def register(payload: RegisterRequest, shop: ShopService = Depends(get_shop)):
        return shop.register(payload)

    @app.post("/api/auth/login", response_model=TokenResponse)
    def login(payload: LoginRequest, shop: ShopService = Depends(get_shop)):
        return shop.login(payload)

    @app.get("/api/auth/me", response_model=PublicUser)
    def me(identity: Identity = Depends(current_identity), shop: ShopService = Depends(get_shop)):
        return shop.me(identity)

    # Product Routes
    @app.get("/api/products")
    def list_products(shop: ShopService = Depends(get_shop)) -> List[Dict[str, Any]]:
        return shop.list_products()

    @app.get("/api/products/{product_id}")
    def get_product(product_id: str, shop: ShopService = Depends(get_shop)) -> Dict[str, Any]:
        return shop.get_product(product_id)

    @app.post("/api/products")
    def create_product(payload: ProductCreate, admin: Identity = Depends(admin_identity),
                       shop: ShopService = Depends(get_shop)) -> Dict[str, Any]:
        return shop.create_product(admin, payload)

    @app.put("/api/products/{product_id}")
    def update_product(product_id: str, payload: ProductUpdate, admin: Identity = Depends(admin_identity),
                       shop: ShopService = Depends(get_shop)) -> Dict[str, Any]:
        return shop.update_product(admin, product_id, payload)

    @app.delete("/api/products/{product_id}")
    def delete_product(product_id: str, admin: Identity = Depends(admin_identity),
                       shop: ShopService = Depends(get_shop)) -> Dict[str, str]:
        shop.delete_product(admin, product_id)
        return {"message": "Product deleted"}

    # Review Routes
    @app.get("/api/products/{product_id}/reviews")
    def list_reviews(product_id: str, shop: ShopService = Depends(get_shop)) -> List[Dict[str, Any]]:
        return shop.list_reviews(product_id)

    @app.post("/api/products/{product_id}/reviews")
    def create_review(product_id: str, payload: ReviewCreate, identity: Identity = Depends(current_identity),
                      shop: ShopService = Depends(get_shop)) -> Dict[str, Any]:
        return shop.create_review(identity, product_id, payload)

    @app.get("/api/products/{product_id}/with-reviews")
    def product_with_reviews(product_id: str, shop: ShopService = Depends(get_shop)) -> Dict[str, Any]:
        return shop.get_product_with_reviews(product_id)

    @app.get("/api/reviews/{review_id}")
    def get_review(review_id: str, shop: ShopService = Depends(get_shop)) -> Dict[str, Any]:
        return shop.get_review(review_id)

    @app.put("/api/reviews/{review_id}")
    def update_review(review_id: str, payload: ReviewUpdate, identity: Identity = Depends(current_identity),
                      shop: ShopService = Depends(get_shop)) -> Dict[str, Any]:
        return shop.update_review(identity, review_id, payload)

    @app.delete("/api/reviews/{review_id}")
    def delete_review(review_id: str, identity: Identity = Depends(current_identity),
                      shop: ShopService = Depends(get_shop)) -> Dict[str, str]:
        shop.delete_review(identity, review_id)
        return {"message": "Review deleted"}

    # Order Routes
    @app.get("/api/orders")
    def list_orders(admin: Identity = Depends(admin_identity), shop: ShopService = Depends(get_shop)) -> List[Dict[str, Any]]:
        return shop.list_orders(admin)

    @app.get("/api/orders/my")
    def my_orders(identity: Identity = Depends(current_identity), shop: ShopService = Depends(get_shop)) -> List[Dict[str, Any]]:
        return shop.list_my_orders(identity)

    @app.post("/api/orders")
    def create_order(payload: OrderCreate, identity: Identity = Depends(current_identity),
                     shop: ShopService = Depends(get_shop)) -> Dict[str, Any]:
        return shop.create_order(identity, payload)

    @app.put("/api/orders/{order_id}")
    def update_order(order_id: str, payload: OrderStatusUpdate, admin: Identity = Depends(admin_identity),
                     shop: ShopService = Depends(get_shop)) -> Dict[str, Any]:
        return shop.update_order_status(admin, order_id, payload)

    @app.delete("/api/orders/{order_id}")
    def delete_order(order_id: str, admin: Identity = Depends(admin_identity),
                     shop: ShopService = Depends(get_shop)) -> Dict[str, str]:
        shop.delete_order(admin, order_id)
        return {"message": "Order deleted"}

    # User Routes
    @app.get("/api/users")
    def list_users(admin: Identity = Depends(admin_identity), shop: ShopService = Depends(get_shop)) -> List[Dict[str, Any]]:
        return shop.list_users(admin)

    @app.put("/api/users/profile", response_model=PublicUser)
    def update_profile(payload: ProfileUpdate, identity: Identity = Depends(current_identity),
                       shop: ShopService = Depends(get_shop)):
        return shop.update_profile(identity, payload)


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
