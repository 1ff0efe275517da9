import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import router as auth_router
from core import config, db, log, responses
from recipes import router as recipes_router
from recipes.errors import InvalidRecipeError, RecipeError, RecipeForbiddenError, RecipeNotFoundError
from users import router as users_router

logger = logging.getLogger(__name__)

RECIPE_ERROR_STATUS = {
    InvalidRecipeError: status.HTTP_400_BAD_REQUEST,
    RecipeNotFoundError: status.HTTP_404_NOT_FOUND,
    RecipeForbiddenError: status.HTTP_403_FORBIDDEN,
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Initialize the DB pool once per process.
    await db.init_pool()
    try:
        yield
    finally:
        await db.close_pool()


log.configure_logging()

app = FastAPI(title="Recipe Box API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router.router, tags=["auth"])
app.include_router(users_router.router, tags=["users"])
app.include_router(recipes_router.router, tags=["recipes"])


@app.exception_handler(StarletteHTTPException)
async def http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=responses.failure(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", ""))}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=responses.failure("Validation failed.", details=details),
    )


@app.exception_handler(RecipeError)
async def recipe_error(_: Request, exc: RecipeError) -> JSONResponse:
    code = next(
        (code for cls, code in RECIPE_ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    return JSONResponse(status_code=code, content=responses.failure(str(exc)))


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    # Store errors land here after the writer's transaction has rolled back.
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=responses.failure("Internal server error."),
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "recipe-box api"}
