import os
from typing import List

from pydantic import BaseModel, Field

DEFAULT_SECRET_KEY = "pogojump-dev-secret"


class Settings(BaseModel):
    data_file: str = "database.json"
    secret_key: str = DEFAULT_SECRET_KEY
    algorithm: str = "HS256"
    token_expire_days: int = Field(7, ge=1)
    bcrypt_rounds: int = Field(10, ge=4, le=31)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            data_file=os.getenv("DATA_FILE", "database.json"),
            secret_key=os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY),
            algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            token_expire_days=int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", 7)),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", 10)),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
