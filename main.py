from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import DATABASE_URL, ALLOWED_ORIGINS
from app.controllers.auth import oauth_router, router as auth_router
from app.controllers.itinerary import router as itinerary_router
from app.controllers.sharing import router as sharing_router, public_router as shared_router
from app.controllers.travel import router as travel_router
from app.database.connection import Database
from app.services.errors import ServiceError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = Database(DATABASE_URL)
    db.connect()
    await db.create_all()
    app.state.db = db
    try:
        yield
    finally:
        await db.dispose()


app = FastAPI(title="Location Scheduler API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every error leaves as {"success": false, "error": "..."}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "error": message})


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


app.include_router(oauth_router, prefix="/auth", tags=["auth"])
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(itinerary_router, prefix="/api/itineraries", tags=["itineraries"])
app.include_router(sharing_router, prefix="/api/itineraries", tags=["sharing"])
app.include_router(shared_router, prefix="/api", tags=["sharing"])
app.include_router(travel_router, prefix="/api", tags=["travel"])


@app.get("/")
async def root():
    return {"message": "Location Scheduler API is running"}
