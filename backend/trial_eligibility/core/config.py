from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pathlib import Path

# Find the backend directory (where .env is located)
BACKEND_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(BACKEND_DIR / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # API Settings
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "Clinical Trial Eligibility Matcher"
    LOG_LEVEL: str = "INFO"

    # CORS
    FRONTEND_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: Optional[str] = None

    # ClinicalTrials.gov API
    CLINICAL_TRIALS_API_BASE: str = "https://clinicaltrials.gov/api/v2"
    CLINICAL_TRIALS_TIMEOUT_SECONDS: float = 30.0
    CLINICAL_TRIALS_PAGE_SIZE: int = 20
    CLINICAL_TRIALS_FALLBACK_PAGE_SIZE: int = 5

    # LLM Settings - supports multiple keys for rate limit fallback
    # Fallback order: Groq 1 -> Gemini 1 -> Gemini 2 -> Groq 2 (last resort)
    GROQ_API_KEY: Optional[str] = None
    GROQ_API_KEY_2: Optional[str] = None  # Last resort backup
    GROQ_MODEL: str = "llama-3.3-70b-versatile"

    # Google Gemini
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_API_KEY_2: Optional[str] = None  # Gemini backup
    GEMINI_MODEL: str = "gemini-2.0-flash"

    # Eligibility analysis
    ANALYSIS_BATCH_SIZE: int = 5
    ANALYSIS_TIMEOUT_SECONDS: float = 60.0
    ANALYSIS_TEMPERATURE: float = 0.2
    ANALYSIS_MAX_TOKENS: int = 2048
    STREAM_DELAY_SECONDS: float = 0.5
    USE_DEMO_ASSESSOR: bool = False
    DEMO_ASSESSOR_SEED: Optional[int] = None

    # Score bands for disqualified patients (demo constants, not clinical policy)
    EXCLUSION_VETO_SCORE_MIN: int = 0
    EXCLUSION_VETO_SCORE_MAX: int = 29
    INCLUSION_FAILURE_SCORE_MIN: int = 10
    INCLUSION_FAILURE_SCORE_MAX: int = 39
    PARTIAL_CREDIT_FLOOR: int = 40


settings = Settings()
