import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings

from app.routers.meta import router as meta_router
from app.routers.sync import router as sync_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

s = get_settings()
app = FastAPI(title=s.APP_TITLE)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(o).rstrip("/") for o in s.CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(meta_router)
app.include_router(sync_router)

@app.get("/", tags=["root"])
def read_root():
    return {"message": "Workiz -> Google Sheets sync. POST /api/sync to run."}
