import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from padelmatch.database import init_db
from padelmatch.routes import courts, cycles, matches, players, sms

app = FastAPI(title="Padel Match Engine API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(players.router, prefix="/api", tags=["players"])
app.include_router(courts.router, prefix="/api", tags=["courts"])
app.include_router(matches.router, prefix="/api", tags=["matches"])

# Daily cycle and confirmation scan, triggered by an external scheduler
app.include_router(cycles.router, prefix="/api", tags=["cycles"])

# SMS endpoints (router carries its own /sms prefix)
app.include_router(sms.router, prefix="/api")


@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/api/health")
def health_check():
    return {"app_name": "Padel Match Engine API", "status": "healthy"}
