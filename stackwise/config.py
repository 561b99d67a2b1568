import os


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upload limits (manifests)
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB

    # Timezone used when rendering timestamps
    APP_TZ = os.getenv("APP_TZ", "UTC")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Yard
    BLOCK_NAME_MAX_LENGTH = int(os.getenv("BLOCK_NAME_MAX_LENGTH", "10"))
    DEFAULT_TIERS = int(os.getenv("DEFAULT_TIERS", "4"))
    PLACEMENT_RETRIES = int(os.getenv("PLACEMENT_RETRIES", "3"))
