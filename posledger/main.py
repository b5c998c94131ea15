# posledger/main.py
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import database
from .auth import (
    create_access_token, get_current_user, hash_password, require_admin,
    role_for_email, verify_password,
)
from .config import get_settings
from .core import (
    LoginIn, ProductIn, ProductUpdateIn, ProfileUpdateIn, RegisterIn,
    SaleCreateIn, SaleUpdateIn, UserUpdateIn, make_product,
)
from .errors import ConflictError, NotFoundError, PosError, ValidationError
from .models import Alert, Identity, User
from .workflow import SaleWorkflow

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

workflow = SaleWorkflow(database.inventory, database.ledger, database.users, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.app_name} {settings.version} starting")
    logger.info(f"Environment: {'Development' if settings.debug else 'Production'}")
    logger.info(f"Token expire: {settings.access_token_expire_minutes} minutes")
    yield
    logger.info(f"{settings.app_name} shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {process_time:.4f}s"
    )
    return response


# ---------------------------
# Error handlers
# ---------------------------
@app.exception_handler(PosError)
async def pos_error_handler(request: Request, exc: PosError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"message": "Validation error", "detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unexpected error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Unexpected error"})


# ---------------------------
# Helpers
# ---------------------------
def _now() -> datetime:
    return datetime.now(timezone.utc)


def _with_alerts(body: dict, alerts: List[Alert]) -> dict:
    if alerts:
        body["alerts"] = [a.to_json() for a in alerts]
    return body


async def _get_user_or_404(user_id: str) -> User:
    user = await database.users.get(user_id)
    if not user:
        raise NotFoundError("User not found", detail={"userId": user_id})
    return user


async def _ensure_email_free(email: str, user_id: Optional[str] = None):
    existing = await database.users.find_by_email(email)
    if existing and existing.id != user_id:
        raise ConflictError("A user with that email already exists")


async def _ensure_product_name_free(name: str, product_id: Optional[str] = None):
    existing = await database.inventory.find_by_name(name)
    if existing and existing.id != product_id:
        raise ConflictError("A product with that name already exists")


# ---------------------------
# Service endpoints
# ---------------------------
@app.get("/")
async def root():
    return {
        "message": f"{settings.app_name}",
        "version": settings.version,
        "status": "running",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "api": "/api",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.app_name, "version": settings.version}


# ---------------------------
# User endpoints
# ---------------------------
@app.post("/api/users/register", status_code=201)
async def register_user(payload: RegisterIn):
    await _ensure_email_free(payload.email)
    now = _now()
    user = User(
        id=uuid.uuid4().hex,
        name=payload.name,
        email=payload.email,
        role=role_for_email(payload.email, settings),
        password_hash=hash_password(payload.password),
        created_at=now,
        updated_at=now,
    )
    await database.users.save(user)
    logger.info(f"User {user.id} registered with role {user.role.value}")
    return {"message": "User registered", "role": user.role.value}


@app.post("/api/users/login")
async def login(payload: LoginIn, response: Response):
    user = await database.users.find_by_email(payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        raise ValidationError("Invalid credentials")
    token = create_access_token(user, settings)
    response.set_cookie(
        settings.token_cookie_name,
        token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=settings.access_token_expire_minutes * 60,
        path="/",
    )
    return {"role": user.role.value, "name": user.name, "accessToken": token}


@app.post("/api/users/logout")
async def logout(response: Response):
    response.delete_cookie(settings.token_cookie_name, path="/")
    return {"message": "Logged out"}


@app.get("/api/users/me")
async def get_profile(user: Identity = Depends(get_current_user)):
    return (await _get_user_or_404(user.id)).to_json()


@app.put("/api/users/me")
async def update_profile(payload: ProfileUpdateIn, user: Identity = Depends(get_current_user)):
    current = await _get_user_or_404(user.id)
    changes = {"updated_at": _now()}
    if payload.name is not None:
        changes["name"] = payload.name
    if payload.email is not None:
        await _ensure_email_free(payload.email, current.id)
        changes["email"] = payload.email
    if payload.password is not None:
        changes["password_hash"] = hash_password(payload.password)
    updated = current.model_copy(update=changes)
    await database.users.save(updated)
    return {"message": "Profile updated", "user": updated.to_json()}


@app.get("/api/users")
async def list_users(admin: Identity = Depends(require_admin)):
    return [u.to_json() for u in await database.users.list()]


@app.put("/api/users/{user_id}")
async def update_user(user_id: str, payload: UserUpdateIn, admin: Identity = Depends(require_admin)):
    current = await _get_user_or_404(user_id)
    changes = {"updated_at": _now()}
    if payload.name is not None:
        changes["name"] = payload.name
    if payload.email is not None:
        await _ensure_email_free(payload.email, current.id)
        changes["email"] = payload.email
    if payload.role is not None:
        changes["role"] = payload.role
    updated = current.model_copy(update=changes)
    await database.users.save(updated)
    return {"message": "User updated", "user": updated.to_json()}


@app.delete("/api/users/{user_id}")
async def delete_user(user_id: str, admin: Identity = Depends(require_admin)):
    if not await database.users.delete(user_id):
        raise NotFoundError("User not found", detail={"userId": user_id})
    database.discard_lock(f"seller:{user_id}")
    return {"message": "User deleted"}


# ---------------------------
# Product endpoints
# ---------------------------
@app.post("/api/products", status_code=201)
async def create_product(payload: ProductIn, admin: Identity = Depends(require_admin)):
    await _ensure_product_name_free(payload.name)
    product = make_product(uuid.uuid4().hex, payload, _now())
    await database.inventory.save(product)
    return {"message": "Product created", "product": product.to_json()}


@app.get("/api/products")
async def list_products(user: Identity = Depends(get_current_user)):
    return [p.to_json() for p in await database.inventory.list()]


@app.get("/api/products/{product_id}")
async def get_product(product_id: str, user: Identity = Depends(get_current_user)):
    product = await database.inventory.get(product_id)
    if not product:
        raise NotFoundError("Product not found", detail={"productId": product_id})
    return product.to_json()


@app.put("/api/products/{product_id}")
async def update_product(product_id: str, payload: ProductUpdateIn, admin: Identity = Depends(require_admin)):
    async with database.locked([f"product:{product_id}"], settings.storage_timeout_seconds):
        product = await database.inventory.get(product_id)
        if not product:
            raise NotFoundError("Product not found", detail={"productId": product_id})
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            await _ensure_product_name_free(changes["name"], product_id)
        if "image_url" in changes:
            changes["image_url"] = str(changes["image_url"])
        changes["updated_at"] = _now()
        updated = product.model_copy(update=changes)
        await database.inventory.save(updated)
    return {"message": "Product updated", "product": updated.to_json()}


@app.delete("/api/products/{product_id}")
async def delete_product(product_id: str, admin: Identity = Depends(require_admin)):
    async with database.locked([f"product:{product_id}"], settings.storage_timeout_seconds):
        if not await database.inventory.delete(product_id):
            raise NotFoundError("Product not found", detail={"productId": product_id})
    database.discard_lock(f"product:{product_id}")
    return {"message": "Product deleted"}


# ---------------------------
# Sale endpoints
# ---------------------------
@app.post("/api/sales", status_code=201)
async def create_sale(payload: SaleCreateIn, user: Identity = Depends(get_current_user)):
    sale, alerts = await workflow.create_sale(user, payload.products, payload.payment_method)
    return _with_alerts({"message": "Sale registered", "sale": sale.to_json()}, alerts)


@app.get("/api/sales")
async def list_sales(user: Identity = Depends(get_current_user)):
    sales, alerts = await workflow.list_sales()
    return _with_alerts({"sales": [s.to_json() for s in sales]}, alerts)


@app.get("/api/sales/{sale_id}")
async def get_sale(sale_id: str, user: Identity = Depends(get_current_user)):
    sale, alerts = await workflow.get_sale(sale_id)
    return _with_alerts({"sale": sale.to_json()}, alerts)


@app.put("/api/sales/{sale_id}")
async def update_sale(sale_id: str, payload: SaleUpdateIn, admin: Identity = Depends(require_admin)):
    sale = await workflow.update_sale(
        sale_id,
        lines=payload.products,
        payment_method=payload.payment_method,
        status=payload.status,
    )
    return {"message": "Sale updated", "sale": sale.to_json()}


@app.delete("/api/sales/{sale_id}")
async def delete_sale(sale_id: str, admin: Identity = Depends(require_admin)):
    await workflow.delete_sale(sale_id)
    return {"message": "Sale deleted and stock restored"}


# ---------------------------
# Utility: reset (for tests/demo)
# ---------------------------
@app.post("/reset")
async def reset_all():
    if not settings.enable_reset:
        raise NotFoundError("Not found")
    database.reset_all()
    return {"status": "reset"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("posledger.main:app", host=settings.host, port=settings.port, reload=settings.debug)
