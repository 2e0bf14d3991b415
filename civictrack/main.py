# File: civictrack/main.py

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from civictrack.core.config import cors_origins_list, settings
from civictrack.core.errors import register_error_handlers
from civictrack.core.ratelimit import limiter
from civictrack.routers import admin, auth, issues

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="CivicTrack API")
app.state.limiter = limiter
# RateLimitExceeded is an HTTPException, so it gets the same error body
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def root():
    return {"message": "CivicTrack API is running!", "version": "1.0.0"}

@app.get("/health")
def health():
    return {"ok": True}

app.include_router(auth.router)
app.include_router(issues.router)
app.include_router(admin.router)
