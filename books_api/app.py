import logging
import uuid
from contextlib import asynccontextmanager
from typing import List

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import metrics, trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from .config import get_settings
from .metrics import ApiMetrics, format_uptime, uptime_seconds
from .models import Book, CreateBook, Health, UpdateBook
from .otel import configure_otel
from .store import BookNotFound, BookStore

settings = get_settings()
configure_otel(settings)
api_metrics = ApiMetrics()

logger = logging.getLogger("books_api.app")

SEED_BOOKS = (
    ("Go Programming", "John Doe"),
    ("Concurrency in Go", "Jane Smith"),
)


def get_book_store(request: Request) -> BookStore:
    return request.app.state.store


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = BookStore()
    if settings.seed_books:
        for name, author in SEED_BOOKS:
            store.add(name, author)
    app.state.store = store
    logger.info("store.ready", extra={"books": len(store)})
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="A minimal in-memory book catalog.",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False,
)

if settings.allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

router = APIRouter(tags=["books"])


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    bad_path = any(error.get("loc", ("",))[0] == "path" for error in exc.errors())
    detail = "Invalid book ID" if bad_path else "Invalid request body"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")


@app.get("/health", response_model=Health, tags=["health"])
def health() -> Health:
    return Health(uptime=format_uptime(uptime_seconds()))


@app.get("/metrics", tags=["health"], include_in_schema=False)
def prometheus_metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


@router.get("/books", response_model=List[Book])
@router.get("/books/", response_model=List[Book], include_in_schema=False)
def list_books(store: BookStore = Depends(get_book_store)) -> List[Book]:
    return store.list()


@router.post("/books", response_model=Book, status_code=status.HTTP_201_CREATED)
@router.post("/books/", response_model=Book, status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_book(payload: CreateBook, store: BookStore = Depends(get_book_store)) -> Book:
    return store.add(payload.name, payload.author)


@router.get("/books/{book_id}", response_model=Book)
@router.get("/books/{book_id}/", response_model=Book, include_in_schema=False)
def get_book(book_id: int, store: BookStore = Depends(get_book_store)) -> Book:
    try:
        return store.get(book_id)
    except BookNotFound as exc:
        raise _not_found() from exc


@router.put("/books/{book_id}", response_model=Book)
@router.put("/books/{book_id}/", response_model=Book, include_in_schema=False)
def update_book(book_id: int, payload: UpdateBook, store: BookStore = Depends(get_book_store)) -> Book:
    try:
        return store.update(book_id, payload.name, payload.author)
    except BookNotFound as exc:
        raise _not_found() from exc


@router.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
@router.delete("/books/{book_id}/", status_code=status.HTTP_204_NO_CONTENT, include_in_schema=False)
def delete_book(book_id: int, store: BookStore = Depends(get_book_store)) -> None:
    try:
        store.remove(book_id)
    except BookNotFound as exc:
        raise _not_found() from exc


@router.put("/books", include_in_schema=False)
@router.put("/books/", include_in_schema=False)
@router.delete("/books", include_in_schema=False)
@router.delete("/books/", include_in_schema=False)
def missing_book_id() -> None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Book ID is required")


app.include_router(router)


@app.middleware("http")
async def api_call_counter(request: Request, call_next):
    path = request.url.path
    if path == "/books" or path.startswith("/books/"):
        api_metrics.record_call("/books", request.method)
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    if settings.require_https:
        forwarded_proto = request.headers.get("x-forwarded-proto", "")
        if forwarded_proto and forwarded_proto.lower() != "https":
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "HTTPS required"})
        if request.url.scheme != "https" and not forwarded_proto:
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "HTTPS required"})

    response = await call_next(request)
    response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'; base-uri 'none'")
    response.headers.setdefault("Cross-Origin-Resource-Policy", "same-origin")
    return response


request_logger = logging.getLogger("books_api.requests")


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    request_logger.info("request.start", extra={"path": request.url.path, "method": request.method})
    response = await call_next(request)
    request_logger.info(
        "request.end",
        extra={"path": request.url.path, "method": request.method, "status": response.status_code},
    )
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


FastAPIInstrumentor.instrument_app(
    app,
    tracer_provider=trace.get_tracer_provider(),
    meter_provider=metrics.get_meter_provider(),
)
