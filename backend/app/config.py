"""
Application settings loaded from environment variables
"""
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Runtime configuration for the TalentDesk backend"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Supabase
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    DEBUG: bool = False

    # CORS
    ALLOWED_ORIGINS: List[str] = Field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])

    # Candidate list
    CANDIDATE_FETCH_PAGE_SIZE: int = 1000
    LIST_PAGE_SIZE: int = 10

    # Position matching
    MATCH_LIMIT: int = 50

    # Statistics
    STATS_FETCH_LIMIT: int = 5000
    RECENT_UPLOADS_LIMIT: int = 20
    MY_STATS_RECENT_LIMIT: int = 1000

    # Storage
    UPLOAD_BUCKET: str = "resume"
    SIGNED_URL_BUCKETS: List[str] = Field(default_factory=lambda: ["resumes", "resume"])
    SIGNED_URL_EXPIRES_IN: int = 3600
    ALLOWED_UPLOAD_EXTENSIONS: List[str] = Field(default_factory=lambda: [".pdf", ".docx", ".doc"])
    MAX_FILE_SIZE: int = 20 * 1024 * 1024

    # Access control
    BOOTSTRAP_SUPER_ADMIN_EMAILS: List[str] = Field(default_factory=list)
    MIN_PASSWORD_LENGTH: int = 8

    # Scroll restoration (seconds)
    SCROLL_RESTORE_SCHEDULE: List[float] = Field(default_factory=lambda: [0.0, 0.5, 1.5, 3.0, 5.0])
    SCROLL_WAIT_TIMEOUT: float = 7.0
    SCROLL_POLL_INTERVAL: float = 0.05

    # Tab sessions
    TAB_SESSION_TTL_SECONDS: float = 8 * 3600
    MAX_TAB_SESSIONS: int = 10000

    def require_service_credentials(self) -> None:
        """Fail fast when the privileged credential for admin calls is missing"""
        if not self.SUPABASE_URL:
            raise ConfigurationError("SUPABASE_URL")
        if not self.SUPABASE_SERVICE_ROLE_KEY:
            raise ConfigurationError("SUPABASE_SERVICE_ROLE_KEY")


settings = Settings()
