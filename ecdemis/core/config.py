from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    ENV: str = "dev"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./ecdemis.db"

    # Tokens are issued by the identity provider; we only verify them
    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    JWT_AUDIENCE: str | None = None
    JWT_EXPIRES_MINUTES: int = 60

    # UPI format: <jurisdiction><institution code><zero padded sequence>
    UPI_JURISDICTION_LETTER: str = "B"
    UPI_FALLBACK_INSTITUTION_CODE: str = "T"
    UPI_SEQUENCE_WIDTH: int = 3
    UPI_MAX_ATTEMPTS: int = 5

    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    LEARNER_PHOTO_FOLDER: str = "learner-photos"
    DOCUMENT_FOLDER: str = "receipts"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024  # 10MB

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
