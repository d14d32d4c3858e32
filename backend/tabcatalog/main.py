from contextlib import asynccontextmanager
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from tabcatalog.api.tabs import router as tabs_router
from tabcatalog.db import close_db, init_db, make_engine, make_session_factory
from tabcatalog.errors import DuplicateRatingError, NotFound, StorageError, TabCatalogError, ValidationError
from tabcatalog.logger import get_logger
from tabcatalog.services.seed import seed_example_tabs

load_dotenv()

FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "*")
STATIC_DIR = os.getenv("STATIC_DIR", "public")
SEED_EXAMPLE_TABS = os.getenv("SEED_EXAMPLE_TABS", "true").lower() == "true"

logger = get_logger("tabcatalog")

ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    DuplicateRatingError: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def create_app(database_url: str | None = None, seed: bool | None = None) -> FastAPI:
    """
    Build the API. The store is opened once on startup and closed on shutdown;
    request handlers get sessions from it through tabcatalog.db.get_db.
    """
    seed = SEED_EXAMPLE_TABS if seed is None else seed

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = make_engine(database_url)
        init_db(engine)
        app.state.engine = engine
        app.state.session_factory = make_session_factory(engine)
        if seed:
            with app.state.session_factory() as db:
                seed_example_tabs(db)
        logger.info("Tab catalog is up")
        try:
            yield
        finally:
            close_db(engine)

    app = FastAPI(title="Tab Catalog API", lifespan=lifespan)

    origins = [o.strip() for o in FRONTEND_ORIGIN.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TabCatalogError)
    async def catalog_error(request: Request, exc: TabCatalogError):
        code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return JSONResponse(status_code=code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())})

    app.include_router(tabs_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    # static frontend last, so it never shadows the API routes
    if os.path.isdir(STATIC_DIR):
        app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")

    return app


app = create_app()


def run():
    import uvicorn

    uvicorn.run(
        "tabcatalog.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
    )


if __name__ == "__main__":
    run()
