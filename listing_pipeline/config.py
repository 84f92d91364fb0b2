# listing_pipeline/config.py
"""Environment-driven settings for the generation pipeline."""
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("POSTGRES_URL") or "sqlite:///./listings.db"
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 5))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 10))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

AI_SERVICE_URL = os.getenv("AI_SERVICE_URL")
AI_SERVICE_KEY = os.getenv("AI_SERVICE_KEY")
KEYWORD_SERVICE_URL = os.getenv("KEYWORD_SERVICE_URL")
AI_CALL_TIMEOUT_SECONDS = float(os.getenv("AI_CALL_TIMEOUT_SECONDS", "60"))

# pacing between items of a bulk run; the analysis service is rate limited
GENERATION_DELAY_SECONDS = float(os.getenv("GENERATION_DELAY_SECONDS", "1.0"))
STALE_ANALYZING_MINUTES = float(os.getenv("STALE_ANALYZING_MINUTES", "10"))
SWEEP_INTERVAL_MINUTES = float(os.getenv("SWEEP_INTERVAL_MINUTES", "5"))
LINK_RETRY_TRIES = int(os.getenv("LINK_RETRY_TRIES", "3"))
