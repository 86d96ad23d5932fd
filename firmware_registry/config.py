import logging

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    port: int = 3000
    host: str = "0.0.0.0"
    storage_dir: str = "firmware"
    initial_version: str = "1.0.0"
    chunk_size: int = 64 * 1024  # Bytes per read/write when streaming or hashing
    checksum_algorithm: str = "md5"  # Still reported as x-MD5
    strict_versions: bool = False  # Reject malformed versions at upload time
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
