from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException

from src.api.admin.routes import admin_router
from src.api.payments.exceptions import PaymentError
from src.api.payments.routes import payments_router
from src.config.settings import settings
from src.database.connection import init_models
from src.middleware.error import http_exception_handler
from src.middleware.timing import add_process_time_header
from src.shared.utils import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info(f"SpaceRemit reconciliation service started ({settings.ENVIRONMENT})")
    yield


app = FastAPI(
    title="SpaceRemit Reconciliation API",
    description="Payment status reconciliation between SpaceRemit and the store's orders.",
    version=settings.VERSION,
    lifespan=lifespan,
)

app.include_router(payments_router)
app.include_router(admin_router)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(PaymentError, http_exception_handler)
app.add_exception_handler(Exception, http_exception_handler)

app.middleware("http")(add_process_time_header)


@app.get("/", tags=["App"])
async def read_root():
    return {"service": "spaceremit-reconciliation", "version": settings.VERSION}
