from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from .env file in project root
# backend/typetalk/main.py -> backend -> project root
env_path = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(env_path)

from typetalk.api.routes import router as api_router  # noqa: E402
from typetalk.core.config import get_settings  # noqa: E402

app = FastAPI(title="TypeTalk API", version="0.1.0")

ENVIRONMENT = get_settings().environment

LOCALHOST_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8080",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8080",
]

CORS_ORIGINS = {
    "development": LOCALHOST_ORIGINS,
    "production": [],
}

origins = CORS_ORIGINS.get(ENVIRONMENT, CORS_ORIGINS["development"])

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
