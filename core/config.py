"""
POSTUREFIT Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "POSTUREFIT"
    DEBUG: bool = True

    # Firebase
    FIREBASE_PROJECT_ID: str = "posturefit-dev"
    FIREBASE_CREDENTIALS_PATH: str = "service-account.json"

    # Result persistence ("local" JSON history or "firestore")
    RESULT_STORE: str = "local"
    RESULT_HISTORY_LIMIT: int = 100
    RESULTS_COLLECTION: str = "exercise_results"

    # Local Storage (Firestore fallback)
    LOCAL_MEDIA_PATH: str = "media"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    # WebSocket
    WS_MAX_CONNECTIONS: int = 100
    WS_HEARTBEAT_INTERVAL: int = 30

    # Pose input
    MIN_VISIBILITY: float = 0.5

    # Calibration pre-roll (seconds)
    CALIBRATION_ANNOUNCE_SECONDS: float = 3.0
    CALIBRATION_COUNTDOWN_STEPS: int = 3
    CALIBRATION_COUNTDOWN_INTERVAL_SECONDS: float = 1.0
    CALIBRATION_START_DELAY_SECONDS: float = 2.0
    CALIBRATION_FALLBACK_BASELINE: float = 0.5

    # Session timing (seconds)
    REST_TICK_SECONDS: float = 1.0
    SET_COMPLETE_CUE_DELAY_SECONDS: float = 0.5
    VISIBILITY_HINT_INTERVAL_SECONDS: float = 3.0

    # Voice feedback
    VOICE_ENABLED: bool = True
    FEEDBACK_DEDUP_SECONDS: float = 1.5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
