from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import decks, game
from app.core.config import settings
from app.core.errors import GameError
from app.core.logging_config import configure_logging
from app.core.store import Store, close_store, get_store


logger = configure_logging()

app = FastAPI(
    title="Debate Dueler Backend",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(game.router)
app.include_router(decks.router)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return _error(400, f"{where}: {message}" if where else message)


@app.get("/")
async def root():
    return {"message": "Hello, Debate Dueler!"}


@app.on_event("startup")
async def startup():
    await get_store()
    logger.info("Debate Dueler backend started (store: %s)", settings.STORE_BACKEND)


@app.on_event("shutdown")
async def shutdown():
    await close_store()


@app.get("/ping-store")
async def ping_store(store: Store = Depends(get_store)):
    return {"ok": await store.ping()}
