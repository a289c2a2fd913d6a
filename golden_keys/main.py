import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from golden_keys.config import get_settings
from golden_keys.routers import api_router
from golden_keys.services.golden_key_gateway import GatewayError
from golden_keys.services.golden_key_workflow import get_golden_key_workflow

settings = get_settings()
log_level_name = (settings.log_level or "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
logging.getLogger("golden_keys").setLevel(log_level)

app = FastAPI(title=settings.app_name)

logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix="/api")


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, str]:
    return {"status": "ok"}


@app.on_event("startup")
async def load_golden_keys() -> None:
    workflow = get_golden_key_workflow()
    try:
        records = workflow.catalog.reload()
    except GatewayError:
        logger.exception("Failed to load golden keys")
        return
    logger.info("Loaded %d golden keys", len(records))
