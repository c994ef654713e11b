import logging
import os

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .prompts import list_templates

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="ATS Real Score Backend")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health(current: Settings = Depends(get_settings)):
    return {"ok": True, "model": current.model, "templates": list_templates()}


from .api.routes_analysis import router as analysis_router
from .api.routes_chat import router as chat_router
app.include_router(analysis_router)
app.include_router(chat_router)

logger.info("ATS Real Score backend ready (model=%s, base_url=%s)", settings.model, settings.base_url)


def run():
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    run()
