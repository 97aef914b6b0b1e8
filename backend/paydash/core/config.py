# core/config.py
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional


class Settings(BaseSettings):
    # ────────────────────────────────
    # 1. APP & ENVIRONMENT
    # ────────────────────────────────
    PROJECT_NAME: str = "Paydash"
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=True)
    BACKEND_URL: str = "http://127.0.0.1:8000"

    CORS_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:8081",
            "http://127.0.0.1:8000",
        ],
        description="Origins allowed to call the API (Expo dev server, local docs)"
    )

    # ────────────────────────────────
    # 2. PAYMENT STORE
    # ────────────────────────────────
    PAYMENT_STORE: Literal["firestore", "memory"] = Field(
        default="firestore",
        description="'memory' keeps payments in-process (demo runs, tests)"
    )
    PAYMENTS_COLLECTION: str = "payments"
    TRANSACTION_IDS_COLLECTION: str = "payment_transaction_ids"
    USERS_COLLECTION: str = "users"
    STORE_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # ────────────────────────────────
    # 3. FIREBASE / FIRESTORE
    # ────────────────────────────────
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = Field(
        default=None,
        description="Path to Firebase service account JSON"
    )
    # Base64-encoded Firebase service account JSON
    PAYDASH_FIREBASE_KEY: Optional[str] = Field(
        default=None,
        description="Base64-encoded Firebase service account JSON"
    )

    # ────────────────────────────────
    # 4. REAL-TIME
    # ────────────────────────────────
    DASHBOARD_CHANNEL: str = "dashboard"
    WS_SEND_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # ────────────────────────────────
    # 5. PAYMENTS
    # ────────────────────────────────
    DEFAULT_CURRENCY: str = "USD"
    SEED_SAMPLE_DATA: bool = False

    # ────────────────────────────────
    # 6. SECURITY
    # ────────────────────────────────
    # Skips Firebase token verification. Never enable outside local demos.
    AUTH_DISABLED: bool = False

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Create singleton
settings = Settings()
