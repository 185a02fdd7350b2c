"""Collaborators and per-run state shared by pipeline stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from notice_digest.core.config import AppSettings
from notice_digest.core.interfaces import (
    CompletionClient,
    ItemRepository,
    LinkResolver,
    MessageSource,
    ReadingSource,
    ReportPublisher,
)
from notice_digest.core.models import (
    ClassificationReport,
    DigestOutcome,
    PublishResult,
    SensorReading,
)
from notice_digest.digest import DigestBuilder
from notice_digest.intelligence import ClassificationEngine, OllamaClient
from notice_digest.storage import SqliteItemRepository
from notice_digest.transport import (
    TICKET_COLLECTION_KEYS,
    FilesystemPublisher,
    HttpLinkResolver,
    HttpMessageSource,
    HttpReadingSource,
    SmtpDigestDelivery,
)

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RunState:
    """Values produced by stages during a single run."""

    inserted: int = 0
    resolved: int = 0
    classification: ClassificationReport | None = None
    readings: list[SensorReading] | None = None
    digest: DigestOutcome | None = None
    publish: PublishResult | None = None


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class PipelineContext:
    """Everything a stage may touch: store, engine, builder and adapters."""

    settings: AppSettings
    repository: ItemRepository
    engine: ClassificationEngine
    builder: DigestBuilder
    sources: list[MessageSource] = field(default_factory=list)
    resolver: LinkResolver | None = None
    reading_source: ReadingSource | None = None
    publisher: ReportPublisher | None = None
    completion_client: CompletionClient | None = None
    send_requested: bool = False
    state: RunState = field(default_factory=RunState)

    def reset(self) -> RunState:
        """Start a fresh run and return its state holder."""
        self.state = RunState()
        return self.state

    async def aclose(self) -> None:
        """Release adapter sessions and close the store."""
        closables: list[object] = [*self.sources, self.resolver, self.reading_source]
        closables.append(self.completion_client)
        for adapter in closables:
            aclose = getattr(adapter, "aclose", None)
            if aclose is None:
                continue
            try:
                await aclose()
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.warning("Failed to close %s: %s", type(adapter).__name__, exc)
        self.repository.close()


def build_context(
    settings: AppSettings, *, send_requested: bool = False, publish: bool = True
) -> PipelineContext:
    """Wire the default adapters described by ``settings``.

    Raises ``StoreInitializationError`` when the store cannot be opened.
    """
    repository = SqliteItemRepository(settings.storage)
    source_settings = settings.sources

    sources: list[MessageSource] = []
    if source_settings.messages_url:
        sources.append(
            HttpMessageSource(
                "messages",
                source_settings.messages_url,
                source_settings,
                collection_keys=(source_settings.messages_key,),
                expect_results=source_settings.expect_messages,
            )
        )
    if source_settings.tickets_url:
        sources.append(
            HttpMessageSource(
                "tasks",
                source_settings.tickets_url,
                source_settings,
                collection_keys=TICKET_COLLECTION_KEYS,
                id_prefix="task-",
            )
        )
    if not sources:
        LOGGER.warning("No message sources configured; ingest will be skipped")

    completion_client = OllamaClient(settings.llm) if settings.llm.enabled else None
    delivery = SmtpDigestDelivery(settings.smtp) if settings.smtp.host else None

    return PipelineContext(
        settings=settings,
        repository=repository,
        engine=ClassificationEngine(completion_client, retry=settings.retry),
        builder=DigestBuilder(repository, settings.digest, delivery=delivery),
        sources=sources,
        resolver=(
            HttpLinkResolver(source_settings)
            if source_settings.resolver_enabled
            else None
        ),
        reading_source=(
            HttpReadingSource(source_settings.readings_url, source_settings)
            if source_settings.readings_url
            else None
        ),
        publisher=(
            FilesystemPublisher(settings.publish, title=settings.digest.title)
            if publish and settings.publish.enabled
            else None
        ),
        completion_client=completion_client,
        send_requested=send_requested,
    )


__all__ = ["PipelineContext", "RunState", "build_context"]
