from fastapi import FastAPI
import logging

from blackjack.api.routes import router
from blackjack.settings import settings_from_env

app = FastAPI(title="blackjack-sessions", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=settings_from_env().log_level)
logger = logging.getLogger(__name__)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "blackjack-sessions", "version": "0.1.0"}
