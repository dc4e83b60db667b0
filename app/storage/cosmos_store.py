"""Cosmos DB persistence for form tracking records."""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Optional

from azure.cosmos.aio import CosmosClient

from app.core.config import get_settings
from app.forms.form_schemas import FormPage

logger = logging.getLogger("forms.store")

DATABASE_NAME = "ocrPoc"
FORMS_CONTAINER_NAME = "forms"


class PersistenceError(RuntimeError):
    """Raised when a record cannot be written to the forms container."""


class CosmosClientProvider:
    """Builds the Cosmos client on first use and hands out the same one afterwards.

    Constructed once per process and passed to the store; the client handle is
    never replaced after creation.
    """

    def __init__(self, connection_string: str, factory: Optional[Callable[[str], Any]] = None):
        self._connection_string = connection_string
        self._factory = factory or CosmosClient.from_connection_string
        self._client = None

    def get(self):
        if self._client is None:
            if not self._connection_string:
                raise PersistenceError("COSMOS_CONNECTION_STRING is not set")
            self._client = self._factory(self._connection_string)
            logger.info("cosmos_client_created")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class FormStore:
    def __init__(
        self,
        provider: CosmosClientProvider,
        database_name: str = DATABASE_NAME,
        container_name: str = FORMS_CONTAINER_NAME,
    ):
        self.provider = provider
        self.database_name = database_name
        self.container_name = container_name

    def _container(self):
        return (
            self.provider.get()
            .get_database_client(self.database_name)
            .get_container_client(self.container_name)
        )

    async def upsert(self, record: FormPage) -> FormPage:
        """Insert or replace ``record`` (keyed by id), stamping last_updated.

        Idempotent: writing the same record twice leaves one stored item.
        """
        record.last_updated = datetime.now(timezone.utc)
        try:
            await self._container().upsert_item(body=record.to_cosmos())
        except PersistenceError:
            logger.error("form_upsert_failed id=%s page=%d err=not_configured", record.id, record.page_number)
            raise
        except Exception as exc:
            logger.error(
                "form_upsert_failed id=%s page=%d status=%s err=%s",
                record.id,
                record.page_number,
                record.processing_status.value,
                exc,
                exc_info=True,
            )
            raise PersistenceError(f"upsert_failed id={record.id}: {exc}") from exc
        logger.debug(
            "form_upserted id=%s page=%d status=%s", record.id, record.page_number, record.processing_status.value
        )
        return record


@lru_cache
def get_cosmos_provider() -> CosmosClientProvider:
    return CosmosClientProvider(get_settings().COSMOS_CONNECTION_STRING)


@lru_cache
def get_form_store() -> FormStore:
    return FormStore(get_cosmos_provider())
