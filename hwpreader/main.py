import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hwpreader.api import hwp_api
from hwpreader.core.config import _env_str

log = logging.getLogger("hwpreader")
if not log.handlers:
    _h = logging.StreamHandler()
    _h.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    log.addHandler(_h)
    log.setLevel(getattr(logging, _env_str("HWP_LOG_LEVEL", "INFO").upper(), logging.INFO))

app = FastAPI(title="HWP Reader Server")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 라우터 등록
app.include_router(hwp_api.router)


@app.get("/", include_in_schema=False)
async def root():
    return {"message": "HWP Reader Server is running"}


@app.get("/health", include_in_schema=False)
async def health():
    return {"ok": True}
