from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from walkytalky.api.party_routes import router as party_router
from walkytalky.api.routes import router as api_router
from walkytalky.core.config import ENVIRONMENT
from walkytalky.core.exceptions import WalkyTalkyError
from walkytalky.core.logging import get_logger

logger = get_logger("walkytalky.api")

app = FastAPI(title="WalkyTalky API", version="0.1.0")

LOCALHOST_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:5174",
]

CORS_ORIGINS = {
    "development": LOCALHOST_ORIGINS,
    "production": [
        "https://walkytalky.vercel.app",
        *LOCALHOST_ORIGINS,  # Allow local dev against the deployed API
    ],
}

origins = CORS_ORIGINS.get(ENVIRONMENT, CORS_ORIGINS["development"])

# Allow Vercel preview deployments in production
allow_origin_regex = (
    r"https://walkytalky-.*\.vercel\.app" if ENVIRONMENT == "production" else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(WalkyTalkyError)
async def walkytalky_error_handler(request: Request, exc: WalkyTalkyError) -> JSONResponse:
    """Render domain errors as ``{"success": false, "error", "kind", ...details}``."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router)
app.include_router(party_router)
