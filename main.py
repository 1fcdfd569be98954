import os
import shutil
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Header, Request, UploadFile
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, EmailStr, Field
from pymongo.database import Database

from accounts import AccountService
from cart import CartEngine
from database import connect, ensure_indexes
from errors import InvalidToken, ShopError, Unauthenticated
from log_config import configure_logging, get_logger
from security import TokenService
from settings import Settings
from stores import ProductStore, UserStore, store_errors

logger = get_logger(__name__)

router = APIRouter()

# Routes whose failures use the {success: false, errors} body
ACCOUNT_PATHS = ("/signup", "/login")


# Models for requests
class SignupRequest(BaseModel):
    username: str
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class ProductCreateRequest(BaseModel):
    name: str
    image: str
    category: str
    new_price: float = Field(..., ge=0)
    old_price: float = Field(..., ge=0)


class ProductRemoveRequest(BaseModel):
    id: int


class CartItemRequest(BaseModel):
    itemId: int


# Dependencies

def get_products(request: Request) -> ProductStore:
    return request.app.state.products


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def get_cart_engine(request: Request) -> CartEngine:
    return request.app.state.cart


def fetch_user(request: Request, auth_token: Optional[str] = Header(None)) -> str:
    """Session gate: resolve the ``auth-token`` header to a user id or fail with 401."""
    if not auth_token:
        raise Unauthenticated()
    try:
        return request.app.state.tokens.verify(auth_token)
    except InvalidToken as exc:
        logger.info("Rejected token: %s", exc)
        raise Unauthenticated() from exc


@router.get("/", response_class=PlainTextResponse)
def read_root():
    return "Shop API is running"


@router.get("/test")
def test_database(request: Request):
    settings: Settings = request.app.state.settings
    db: Database = request.app.state.db
    response = {
        "backend": "Running",
        "database": "Not Available",
        "mongo_url": "Set" if os.getenv("MONGO_URL") else "Default",
        "database_name": settings.database_name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        with store_errors():
            response["collections"] = db.list_collection_names()
        response["database"] = "Connected"
        response["connection_status"] = "Connected"
    except ShopError as exc:
        response["database"] = exc.message
    return response


# Images

@router.post("/upload")
def upload_image(request: Request, product: UploadFile = File(...)):
    settings: Settings = request.app.state.settings
    ext = os.path.splitext(product.filename or "")[1]
    filename = f"product_{int(time.time() * 1000)}{ext}"
    with open(os.path.join(settings.upload_dir, filename), "wb") as out:
        shutil.copyfileobj(product.file, out)
    logger.info("Stored upload %s", filename)
    return {"success": 1, "image_url": f"{settings.base_url}/images/{filename}"}


# Catalog endpoints

@router.post("/addproduct")
def add_product(payload: ProductCreateRequest, products: ProductStore = Depends(get_products)):
    product = products.insert_with_next_id(payload.model_dump())
    logger.info("Product saved: id=%s name=%s", product.id, product.name)
    return {"success": True, "name": product.name}


@router.post("/removeproduct")
def remove_product(payload: ProductRemoveRequest, products: ProductStore = Depends(get_products)):
    removed = products.delete_by_id(payload.id)
    logger.info("Product removed: id=%s found=%s", payload.id, removed is not None)
    return {"success": True, "name": removed["name"] if removed else None}


@router.get("/allproducts")
def all_products(products: ProductStore = Depends(get_products)) -> List[dict]:
    logger.info("All products fetched")
    return products.find_all()


@router.get("/newcollections")
def new_collections(products: ProductStore = Depends(get_products)) -> List[dict]:
    return products.new_collection(8)


@router.get("/popularinwomen")
def popular_in_women(products: ProductStore = Depends(get_products)) -> List[dict]:
    return products.find_by_category("women", limit=4)


# Auth endpoints

@router.post("/signup")
def signup(payload: SignupRequest, accounts: AccountService = Depends(get_accounts)):
    token = accounts.signup(payload.username, payload.email, payload.password)
    return {"success": True, "token": token}


@router.post("/login")
def login(payload: LoginRequest, accounts: AccountService = Depends(get_accounts)):
    token = accounts.login(payload.email, payload.password)
    return {"success": True, "token": token}


# Cart endpoints

@router.post("/addtocart", response_class=PlainTextResponse)
def add_to_cart(
    payload: CartItemRequest,
    user_id: str = Depends(fetch_user),
    cart: CartEngine = Depends(get_cart_engine),
):
    return cart.add_item(user_id, payload.itemId)


@router.post("/removefromcart", response_class=PlainTextResponse)
def remove_from_cart(
    payload: CartItemRequest,
    user_id: str = Depends(fetch_user),
    cart: CartEngine = Depends(get_cart_engine),
):
    return cart.remove_item(user_id, payload.itemId)


@router.post("/getcart")
def get_cart(user_id: str = Depends(fetch_user), cart: CartEngine = Depends(get_cart_engine)):
    return cart.get_cart(user_id)


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)
    if settings.uses_default_secret:
        logger.warning("SECRET_KEY is not set; signing tokens with the built-in default secret")
    db = db if db is not None else connect(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        with store_errors():
            ensure_indexes(db)
        yield

    app = FastAPI(title="Shop API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    users = UserStore(db)
    tokens = TokenService(settings.secret_key.get_secret_value())
    app.state.settings = settings
    app.state.db = db
    app.state.tokens = tokens
    app.state.products = ProductStore(db)
    app.state.accounts = AccountService(users, tokens)
    app.state.cart = CartEngine(users)

    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        if request.url.path not in ACCOUNT_PATHS:
            return await request_validation_exception_handler(request, exc)
        errors = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
            for err in exc.errors()
        )
        logger.warning("%s %s -> 400 %s", request.method, request.url.path, errors)
        return JSONResponse(status_code=400, content={"success": False, "errors": errors})

    app.include_router(router)
    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount("/images", StaticFiles(directory=settings.upload_dir), name="images")
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=Settings().port)
