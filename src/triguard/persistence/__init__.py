"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from typing import NamedTuple

from triguard.core.config import AppSettings
from triguard.persistence.dynamodb_backend import (
    DynamoDBDraftStore,
    DynamoDBEmailLedger,
    DynamoDBReferenceDirectory,
    DynamoDBTaskStore,
)
from triguard.persistence.redis_backend import RedisCacheBackend
from triguard.persistence.s3_backend import S3FileStore


class Persistence(NamedTuple):
    draft_store: DynamoDBDraftStore
    email_ledger: DynamoDBEmailLedger
    task_store: DynamoDBTaskStore
    directory: DynamoDBReferenceDirectory
    cache: RedisCacheBackend
    file_store: S3FileStore


def create_persistence(settings: AppSettings | None = None) -> Persistence:
    """Create wired-up persistence backends from application settings."""
    if settings is None:
        settings = AppSettings()

    cache = RedisCacheBackend(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
    )

    ddb_kwargs = dict(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
    )

    file_store = S3FileStore(
        bucket=settings.s3.bucket,
        region=settings.s3.region,
        endpoint_url=settings.s3.endpoint_url,
        public_url_base=settings.s3.public_url_base,
    )

    return Persistence(
        draft_store=DynamoDBDraftStore(**ddb_kwargs),
        email_ledger=DynamoDBEmailLedger(**ddb_kwargs),
        task_store=DynamoDBTaskStore(**ddb_kwargs),
        directory=DynamoDBReferenceDirectory(
            **ddb_kwargs, cache=cache, cache_ttl=settings.redis.cache_ttl,
        ),
        cache=cache,
        file_store=file_store,
    )
