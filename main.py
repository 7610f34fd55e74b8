from logging_config import setup_logging

# Initialize logging BEFORE anything else
setup_logging()

from contextlib import asynccontextmanager
from logging_config import get_logger
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from middleware.request_lifecycle import RequestLifecycleMiddleware
from routes import auth, users, companies, projects, finances, approvals, resources, attendance, materials
from database import ensure_indexes
from config import config

logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.CREATE_INDEXES_ON_STARTUP:
        await ensure_indexes()
    yield


app = FastAPI(title="BizHub API", lifespan=lifespan)

# CORS remains here as it's a global setting
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL] if config.ENV == "production" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request lifecycle middleware (request ID, context vars, duration logging)
app.add_middleware(RequestLifecycleMiddleware)


# ERROR ENVELOPE: every failure is {"success": false, "message": ...}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
    # drop the "body"/"query" location prefix
    field = ".".join(str(part) for part in error.get("loc", ())[1:])
    return f"{field}: {message}" if field else message


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = _first_validation_message(exc)
    logger.warning("Request validation failed", extra={"data": {"path": request.url.path, "message": message}})
    return JSONResponse(status_code=400, content={"success": False, "message": message})


# REGISTER ROUTERS
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(companies.router)
app.include_router(projects.router)
app.include_router(finances.router)
app.include_router(approvals.router)
app.include_router(resources.router)
app.include_router(attendance.router)
app.include_router(materials.router)

logger.info("All routers registered, BizHub API ready")

@app.get("/")
async def root():
    return {"status": "online", "message": "BizHub API is running"}
