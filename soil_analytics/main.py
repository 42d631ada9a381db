import logging
from fastapi import Depends, FastAPI, Request, status
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from soil_analytics.config import settings
from soil_analytics.errors import InvalidEvent, InvalidQuery, StoreError
from soil_analytics.limiter import limiter
from soil_analytics.api import events
from soil_analytics.store import ObjectStore, create_store, get_store

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger("SoilAnalytics.Main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")

    # Tests may install their own store before startup
    owns_store = getattr(app.state, "store", None) is None
    if owns_store:
        logger.info("Initializing object store...")
        app.state.store = create_store(settings)
    logger.info(f"Object store ready (mode={app.state.store.mode}).")
    yield
    logger.info("Application shutdown.")

    if owns_store:
        logger.info("Closing object store...")
        app.state.store.close()
        app.state.store = None
        logger.info("Object store closed.")


app = FastAPI(
    title="Soil Analytics",
    lifespan=lifespan
)

# Initialize the limiter with app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Set up CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(InvalidEvent)
async def invalid_event_handler(request: Request, exc: InvalidEvent):
    logger.info(f"Rejected event: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid event type"}
    )


@app.exception_handler(InvalidQuery)
async def invalid_query_handler(request: Request, exc: InvalidQuery):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid type"}
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal error", "details": str(exc)}
    )


# Routers
app.include_router(events.router)

@app.get("/")
def read_root():
    return {"message": "Welcome to the Soil Analytics API"}

@app.get("/health")
def health(store: ObjectStore = Depends(get_store)):
    reachable = store.ping()
    return {
        "ok": reachable,
        "service": "soil-analytics",
        "store": store.mode,
        "storeReachable": reachable,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
