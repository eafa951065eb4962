import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import uvicorn

from productbird.config import settings
from productbird.routers import auth, magic_descriptions, webhooks

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title=settings.app_name)

# Configure CORS for the store admin UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.site_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(magic_descriptions.router)
app.include_router(webhooks.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "service": "productbird_magic_descriptions"}


if __name__ == "__main__":
    uvicorn.run(
        "productbird.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        loop="asyncio",  # Explicitly use asyncio instead of auto (which tries uvloop)
    )
