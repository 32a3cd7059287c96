from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DEVICECAST_",
        env_file=".env",
        extra="ignore",
    )

    LOG_LEVEL: str = "INFO"

    # Timeouts, in milliseconds
    PLAY_ACTION_TIMEOUT_MS: int = 10_000
    SESSION_READY_TIMEOUT_MS: int = 180_000
    CLIENT_READY_TIMEOUT_MS: int = 30_000
    APP_LAUNCH_TIMEOUT_MS: int = 60_000
    SCREENSHOT_TIMEOUT_MS: int = 60_000
    UI_DUMP_TIMEOUT_MS: int = 30_000
    EVENT_TIMEOUT_MS: int = 10_000


settings = Settings()
