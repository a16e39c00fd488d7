import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./jobradar.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ OpenAI
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL")
MATCHER_MODEL = os.getenv("MATCHER_MODEL", "gpt-4o-mini")

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ✅ Scraper
SCRAPER_USER_AGENT = os.getenv("SCRAPER_USER_AGENT", "Mozilla/5.0 (compatible; JobRadar/1.0)")
SCRAPER_HTTP_TIMEOUT_SECONDS = float(os.getenv("SCRAPER_HTTP_TIMEOUT_SECONDS", "30"))
SCRAPER_HTTP_RETRIES = int(os.getenv("SCRAPER_HTTP_RETRIES", "3"))

# ✅ CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
