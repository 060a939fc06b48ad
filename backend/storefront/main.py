from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.api.health import router as health_router
from storefront.api.routes_admin import router as admin_router
from storefront.api.routes_auth import router as auth_router
from storefront.api.routes_cart import router as cart_router
from storefront.api.routes_catalogue import router as catalogue_router
from storefront.api.routes_order import router as order_router
from storefront.config import settings
from storefront.db import init_db
from storefront.errors import ErrorKind, StoreError
from storefront.utils.logging import get_logger

log = get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.EMPTY_CART: 400,
    ErrorKind.VALIDATION: 422,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.STORAGE: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup; RESET_DB=1 drops and recreates the schema
    init_db()
    yield


app = FastAPI(title="Storefront - Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content={"error": jsonable_encoder(exc.to_dict())},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    body = {
        "kind": ErrorKind.VALIDATION.value,
        "message": "Invalid request data",
        "errors": jsonable_encoder(exc.errors()),
    }
    return JSONResponse(status_code=422, content={"error": body})


app.include_router(health_router, prefix="/api", tags=["health"])

app.include_router(auth_router)

app.include_router(catalogue_router)

app.include_router(admin_router)

app.include_router(cart_router)

app.include_router(order_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront.main:app", host=settings.APP_HOST, port=settings.APP_PORT)
