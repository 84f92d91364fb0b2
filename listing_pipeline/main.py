# listing_pipeline/main.py
from fastapi import FastAPI
from listing_pipeline.db import Base, engine
import listing_pipeline.models  # noqa: F401 ensure models are imported so tables are known
from listing_pipeline.api.routes import router as api_router
from listing_pipeline.scheduler import start_scheduler, stop_scheduler
from listing_pipeline.utils import logger

# create FastAPI instance
app = FastAPI(title="Listing Pipeline")
app.include_router(api_router)


@app.on_event("startup")
async def on_startup():
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
    start_scheduler()
    logger.info("Listing pipeline started")


@app.on_event("shutdown")
async def on_shutdown():
    stop_scheduler()
