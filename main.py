from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from database import Database
from errors import ShopError
from reviews import ensure_indexes
from routes import order_router, review_router, user_router
from uploads import LocalImageStore

logger = structlog.get_logger(__name__)


# ----------------------- Error envelope -----------------------
def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ShopError)
    async def shop_error(request: Request, exc: ShopError):
        return _failure(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
            message = f"{field}: {first.get('msg')}" if field else first.get("msg")
        else:
            message = "Invalid request"
        return _failure(400, message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _failure(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled server error", path=request.url.path)
        message = str(exc) if config.is_development() else "Internal server error"
        return _failure(500, message)


# ----------------------- App -----------------------
def create_app(database: Optional[Database] = None, images: Optional[LocalImageStore] = None) -> FastAPI:
    if database is None:
        database = Database(config.DATABASE_URL, config.DATABASE_NAME, initializers=[ensure_indexes])
    if images is None:
        images = LocalImageStore(config.UPLOAD_DIR, config.UPLOAD_URL, config.MAX_IMAGE_BYTES)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if database.connect() is None:
            logger.warning("Starting without a database; requests will retry the connection")
        yield
        database.close()

    app = FastAPI(title="Shop Backend", lifespan=lifespan)
    app.state.database = database
    app.state.images = images

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["token"],
    )
    register_exception_handlers(app)

    app.include_router(order_router)
    app.include_router(review_router)
    app.include_router(user_router)
    app.mount(config.UPLOAD_URL, StaticFiles(directory=images.directory, check_dir=False), name="uploads")

    # ----------------------- Health -----------------------
    @app.get("/")
    def root():
        return {
            "success": True,
            "message": "Shop backend API is working",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "status": "connected" if database.connected else "disconnected",
        }

    @app.get("/health")
    def health():
        healthy = database.connect() is not None
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "success": healthy,
                "message": "Server is healthy" if healthy else "Server is not healthy",
                "database": "connected" if healthy else "disconnected",
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
