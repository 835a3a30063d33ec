# mediaqueue/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mediaqueue.core.logging_config import logger, setup_logging
from mediaqueue.observability.metrics import router as metrics_router
from mediaqueue.routers import uploads


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("startup")
    yield
    # previews opruimen bij afsluiten
    if uploads.get_uploader.cache_info().currsize:
        uploads.get_uploader().close()
    logger.info("shutdown")


# ----------------------------------------------------
# App init
# ----------------------------------------------------
app = FastAPI(title="Media upload queue", version="0.1.0", lifespan=lifespan)

app.include_router(uploads.router)
app.include_router(metrics_router)


@app.get("/health")
def health():
    return {"status": "ok"}
