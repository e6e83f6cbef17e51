# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Application configuration via environment variables and .env files."""

from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STASHKV_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )

    # Store selection
    backend: str = "sqlite"
    namespace: str = ""  # empty uses the backend default
    table: str = "kv_store"
    expiration: float = 0  # default TTL in seconds; <0 means store indefinitely
    reset: bool = False

    # SQLite
    sqlite_path: Path = Path("stashkv.db")

    # PostgreSQL
    postgres_url: str = "postgresql://postgres@localhost:5432/postgres"
    postgres_pool_min: int = 1
    postgres_pool_max: int = 10

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Cassandra / ScyllaDB
    cassandra_hosts: Annotated[list[str], NoDecode] = ["127.0.0.1"]
    cassandra_port: int = 9042
    cassandra_consistency: str = "ONE"
    cassandra_username: str = ""
    cassandra_password: str = ""

    @field_validator("cassandra_hosts", mode="before")
    @classmethod
    def _parse_cassandra_hosts(cls, v: object) -> list[str]:
        if isinstance(v, str):
            return [h.strip() for h in v.split(",") if h.strip()]
        return v if isinstance(v, list) else []

    # MongoDB
    mongodb_url: str = "mongodb://127.0.0.1:27017"

    # S3-compatible object storage
    s3_endpoint: str = ""
    s3_region: str = "us-east-1"
    s3_access_key: str = ""
    s3_secret_key: str = ""

    # NATS JetStream key-value
    nats_urls: Annotated[list[str], NoDecode] = ["nats://127.0.0.1:4222"]

    @field_validator("nats_urls", mode="before")
    @classmethod
    def _parse_nats_urls(cls, v: object) -> list[str]:
        if isinstance(v, str):
            return [u.strip() for u in v.split(",") if u.strip()]
        return v if isinstance(v, list) else []

    # SurrealDB
    surrealdb_url: str = "ws://127.0.0.1:8000/rpc"
    surrealdb_database: str = "stashkv"
    surrealdb_username: str = ""
    surrealdb_password: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"


def get_settings() -> Settings:
    return Settings()
