import logging
import os
import smtplib
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from fastapi.staticfiles import StaticFiles
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from auth import create_access_token, get_current_user, get_password_hash, require_admin, verify_password
from cart import CartService, add_product, item_count, remove_item, set_quantity, summarize
from catalog import catalog_page, columns_for_width, find_category, list_categories, search_products
from checkout import CheckoutService, list_orders
from config import configure_logging, settings
from database import connect, create_document, get_db, get_documents, init_indexes, object_id, serialize_doc
from errors import (
    CartConflictError,
    ConfirmationRequiredError,
    ImageRequiredError,
    ImageUploadError,
    InvalidCategoryError,
    InvalidQuantityError,
    LineItemNotFoundError,
    ProductNotFoundError,
    ProductSaveError,
    ProductUnavailableError,
    ShopError,
    StoreUnavailableError,
)
from notifications import OrderNotifier, send_order_email
from schemas import (
    AccountSummary,
    AddToCartPayload,
    CartView,
    CatalogPage,
    Category as CategorySchema,
    CheckoutResult,
    NotificationPayload,
    Product as ProductSchema,
    ProfilePayload,
    QuantityPayload,
    RegisterPayload,
    Token,
    User as UserSchema,
)
from storage import LocalStorage

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Click Store API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(settings.upload_dir, exist_ok=True)
app.mount(settings.assets_url, StaticFiles(directory=settings.upload_dir), name="assets")

app.state.storage = LocalStorage(settings.upload_dir, settings.assets_url)
app.state.notifier = OrderNotifier(settings)


@app.on_event("startup")
def _startup() -> None:
    app.state.db = connect(settings)
    try:
        init_indexes(app.state.db)
    except PyMongoError as e:
        logger.error("Could not create indexes: %s", e)


def get_storage(request: Request) -> LocalStorage:
    return request.app.state.storage


def get_notifier(request: Request) -> OrderNotifier:
    return request.app.state.notifier


# Errors

ERROR_STATUS_CODES: dict[type, int] = {
    InvalidQuantityError: 400,
    LineItemNotFoundError: 404,
    ProductNotFoundError: 404,
    ProductUnavailableError: 409,
    CartConflictError: 409,
    ImageRequiredError: 400,
    ImageUploadError: 502,
    ProductSaveError: 500,
    ConfirmationRequiredError: 400,
    InvalidCategoryError: 400,
    StoreUnavailableError: 503,
}


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


@app.get("/")
def root():
    return {"message": "Click Store API running"}


# Auth
@app.post("/api/auth/register", response_model=Token)
def register(payload: RegisterPayload, db: Database = Depends(get_db)):
    email = payload.email.lower()
    if db["users"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    doc = UserSchema(email=email, password_hash=get_password_hash(payload.password), name=payload.name)
    try:
        create_document(db, "users", doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")
    logger.info("Registered %s", email)
    return Token(access_token=create_access_token({"sub": email}))


@app.post("/api/auth/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Database = Depends(get_db)):
    user = db["users"].find_one({"email": form_data.username.lower()})
    if not user or not verify_password(form_data.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return Token(access_token=create_access_token({"sub": user["email"]}))


# Account
def _profile(user: dict) -> dict:
    user = serialize_doc(user)
    user.pop("password_hash", None)
    user.pop("cart", None)
    user.pop("cart_version", None)
    return user


@app.get("/api/user/profile")
def get_profile(current_user=Depends(get_current_user)):
    return _profile(current_user)


@app.put("/api/user/profile")
def update_profile(payload: ProfilePayload, current_user=Depends(get_current_user), db: Database = Depends(get_db)):
    update = {k: v for k, v in payload.model_dump().items() if v is not None}
    if update:
        db["users"].update_one({"email": current_user["email"]}, {"$set": update})
    user = db["users"].find_one({"email": current_user["email"]}, {"password_hash": 0})
    return _profile(user)


@app.get("/api/me", response_model=AccountSummary)
def me(current_user=Depends(get_current_user), db: Database = Depends(get_db)):
    name = current_user.get("name")
    first_name = name.split()[0] if name and name.strip() else "User"
    try:
        items, _ = CartService(db).read(current_user["email"])
    except StoreUnavailableError:
        items = []
    return AccountSummary(email=current_user["email"], name=name, first_name=first_name, cart_count=item_count(items))


# Catalog
@app.get("/api/products", response_model=CatalogPage)
def list_products(
    q: Optional[str] = None,
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    page: int = 1,
    columns: Optional[int] = Query(None, ge=1, le=3),
    viewport_width: Optional[int] = Query(None, ge=0),
    db: Database = Depends(get_db),
):
    try:
        products = search_products(db, q, category, subcategory)
    except PyMongoError as e:
        logger.error("Error fetching items: %s", e)
        products = []
    return catalog_page(products, page, columns or columns_for_width(viewport_width))


def _find_product(db: Database, pid: str) -> dict:
    try:
        p = db["products"].find_one({"_id": object_id(pid)})
    except PyMongoError as e:
        logger.error("Error fetching product %s: %s", pid, e)
        raise StoreUnavailableError("fetching the product")
    if not p:
        raise ProductNotFoundError(pid)
    return p


@app.get("/api/products/{pid}")
def product_detail(pid: str, db: Database = Depends(get_db)):
    return serialize_doc(_find_product(db, pid))


@app.get("/api/categories")
def categories(db: Database = Depends(get_db)):
    try:
        return list_categories(db)
    except PyMongoError as e:
        logger.error("Error fetching categories: %s", e)
        return []


# Cart
@app.get("/api/cart", response_model=CartView)
def get_cart(current_user=Depends(get_current_user), db: Database = Depends(get_db)):
    try:
        items, _ = CartService(db).read(current_user["email"])
    except StoreUnavailableError:
        items = []
    return summarize(items, settings.delivery_fee)


@app.post("/api/cart/items", response_model=CartView)
def add_to_cart(payload: AddToCartPayload, current_user=Depends(get_current_user), db: Database = Depends(get_db)):
    product = serialize_doc(_find_product(db, payload.product_id))
    if not product.get("is_available", True):
        raise ProductUnavailableError(product["name"])
    write = CartService(db).mutate(current_user["email"], lambda items: add_product(items, product))
    return summarize(write.items, settings.delivery_fee, write.persisted)


@app.patch("/api/cart/items/{item_id}", response_model=CartView)
def update_quantity(item_id: str, payload: QuantityPayload, current_user=Depends(get_current_user), db: Database = Depends(get_db)):
    if payload.quantity < 1:
        raise InvalidQuantityError(payload.quantity)
    write = CartService(db).mutate(current_user["email"], lambda items: set_quantity(items, item_id, payload.quantity))
    return summarize(write.items, settings.delivery_fee, write.persisted)


@app.delete("/api/cart/items/{item_id}", response_model=CartView)
def remove_from_cart(item_id: str, current_user=Depends(get_current_user), db: Database = Depends(get_db)):
    write = CartService(db).mutate(current_user["email"], lambda items: remove_item(items, item_id))
    return summarize(write.items, settings.delivery_fee, write.persisted)


# Checkout
@app.post("/api/checkout", response_model=CheckoutResult)
def checkout(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    current_user=Depends(get_current_user),
    db: Database = Depends(get_db),
    notifier: OrderNotifier = Depends(get_notifier),
):
    service = CheckoutService(db, notifier, settings.delivery_fee)
    return service.confirm(current_user["email"], idempotency_key)


@app.get("/api/orders")
def orders(current_user=Depends(get_current_user), db: Database = Depends(get_db)):
    return {"items": list_orders(db, current_user["email"])}


@app.post("/api/send-email")
def send_email(payload: NotificationPayload):
    if not settings.smtp_enabled:
        logger.error("Error sending email: SMTP is not configured")
        return JSONResponse(status_code=500, content={"error": "Email is not configured"})
    try:
        send_order_email(settings, payload.email, payload.cart, payload.totalPrice)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Error while sending email: %s", e)
        return JSONResponse(status_code=500, content={"error": "Failed to send email"})
    return {"success": "Email sent"}


# Admin product management
@app.get("/api/admin/products")
def admin_products(_=Depends(require_admin), db: Database = Depends(get_db)):
    return [serialize_doc(p) for p in get_documents(db, "products", {}, sort=[("created_at", DESCENDING)])]


def _check_category(db: Database, category: str, subcategory: str) -> None:
    if not category or not subcategory:
        return
    cat = find_category(db, category)
    if cat and subcategory not in cat.get("subcategories", []):
        raise InvalidCategoryError(category, subcategory)


def _has_file(image: Optional[UploadFile]) -> bool:
    return image is not None and bool(image.filename)


async def _upload(storage: LocalStorage, image: UploadFile) -> str:
    return storage.upload(image.filename, await image.read())


@app.post("/api/admin/products", status_code=201)
async def create_product(
    name: str = Form(...),
    price: float = Form(..., ge=0),
    category: str = Form(""),
    subcategory: str = Form(""),
    is_available: bool = Form(True),
    image: Optional[UploadFile] = File(None),
    _=Depends(require_admin),
    db: Database = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
):
    if not _has_file(image):
        raise ImageRequiredError(new_product=True)
    _check_category(db, category, subcategory)
    image_url = await _upload(storage, image)
    product = ProductSchema(
        name=name, price=price, image_url=image_url,
        category=category, subcategory=subcategory, is_available=is_available,
    )
    try:
        new_id = create_document(db, "products", product)
    except PyMongoError as e:
        logger.error("Error saving product %s: %s", name, e)
        raise ProductSaveError()
    logger.info("Created product %s (%s)", new_id, name)
    return {"id": new_id, **product.model_dump()}


@app.put("/api/admin/products/{pid}")
async def update_product(
    pid: str,
    name: str = Form(...),
    price: float = Form(..., ge=0),
    category: str = Form(""),
    subcategory: str = Form(""),
    is_available: bool = Form(True),
    image: Optional[UploadFile] = File(None),
    _=Depends(require_admin),
    db: Database = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
):
    existing = _find_product(db, pid)
    if not _has_file(image) and not existing.get("image_url"):
        raise ImageRequiredError(new_product=False)
    _check_category(db, category, subcategory)
    image_url = existing.get("image_url")
    if _has_file(image):
        image_url = await _upload(storage, image)
    product = ProductSchema(
        name=name, price=price, image_url=image_url,
        category=category, subcategory=subcategory, is_available=is_available,
    )
    try:
        db["products"].update_one(
            {"_id": existing["_id"]},
            {"$set": {**product.model_dump(), "updated_at": datetime.now(timezone.utc)}},
        )
    except PyMongoError as e:
        logger.error("Error saving product %s: %s", pid, e)
        raise ProductSaveError()
    return {"id": pid, **product.model_dump()}


@app.delete("/api/admin/products/{pid}")
def delete_product(pid: str, confirm: bool = False, _=Depends(require_admin), db: Database = Depends(get_db)):
    if not confirm:
        raise ConfirmationRequiredError(pid)
    try:
        result = db["products"].delete_one({"_id": object_id(pid)})
    except PyMongoError as e:
        logger.error("Error deleting product %s: %s", pid, e)
        raise StoreUnavailableError("deleting the product")
    if not result.deleted_count:
        raise ProductNotFoundError(pid)
    logger.info("Deleted product %s", pid)
    return {"deleted": True, "id": pid}


@app.patch("/api/admin/products/{pid}/availability")
def toggle_availability(pid: str, _=Depends(require_admin), db: Database = Depends(get_db)):
    p = _find_product(db, pid)
    current = bool(p.get("is_available", True))
    try:
        db["products"].update_one({"_id": p["_id"]}, {"$set": {"is_available": not current}})
    except PyMongoError as e:
        logger.error("Error toggling availability of %s: %s", pid, e)
        return {"id": pid, "is_available": current, "updated": False}
    return {"id": pid, "is_available": not current, "updated": True}


@app.put("/api/admin/categories")
def upsert_category(payload: CategorySchema, _=Depends(require_admin), db: Database = Depends(get_db)):
    db["categories"].update_one(
        {"name": payload.name},
        {"$set": {"subcategories": payload.subcategories}},
        upsert=True,
    )
    return serialize_doc(db["categories"].find_one({"name": payload.name}))


@app.get("/test")
def test_database(request: Request):
    db = getattr(request.app.state, "db", None)
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
                response["connection_status"] = "Connected"
            except PyMongoError as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
