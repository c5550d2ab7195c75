"""
Consistency manager: the write path of the fact store.

Owns the version chain. Every write goes through one of two independent
contradiction checks:

- Lexical (``write_fact`` / ``create_fact``): scans a bounded window of
  the owner's facts in the same tag scope, dedups exact normalized
  matches and supersedes the first fact stating the same property with a
  different value.
- Semantic (``check_and_supersede``): called after a fact with an
  embedding is saved; supersedes highly similar facts that share its
  (entity, attribute) signature.

Supersede is two separate store writes (flag the old fact, insert the new
one). There is no transaction spanning them, so concurrent updaters of
the same fact can fork a chain.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from fact_memory.config import ConsistencyConfig
from fact_memory.consistency.signatures import (
    detect_lexical_contradiction,
    extract_entity_attribute,
)
from fact_memory.encoding.embedder import BaseEmbedder
from fact_memory.extraction.filters import normalize_content
from fact_memory.models.fact import FactKind, MemoryFact, _utcnow
from fact_memory.storage.base import (
    AccessDeniedError,
    BaseFactStore,
    FactNotFoundError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

METADATA_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


# Results

class WriteStatus(str, Enum):
    """What a lexical write did to the store."""

    CREATED = "created"
    DUPLICATE = "duplicate"
    SUPERSEDED = "superseded"


@dataclass
class WriteOutcome:
    """What a lexical write did."""

    fact_id: str
    status: WriteStatus
    version: int = 1
    superseded_id: str | None = None

    @property
    def created(self) -> bool:
        return self.status != WriteStatus.DUPLICATE


@dataclass
class FactInput:
    """One item of a direct batch create."""

    content: str
    is_core: bool = False
    metadata: dict[str, Any] | None = None


@dataclass
class CreatedFact:
    id: str
    content: str
    is_core: bool
    version: int
    created_at: datetime


@dataclass
class CreateFactsResult:
    facts: list[CreatedFact] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class UpdateResult:
    old_id: str
    new_id: str
    version: int


@dataclass
class BatchForgetResult:
    forgotten: list[str] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def forgotten_count(self) -> int:
        return len(self.forgotten)


# Validation

def validate_content(content: Any, max_length: int) -> str:
    """
    Return the trimmed content.

    Raises:
        ValidationError: If content is missing, blank or too long
    """
    if not content or not isinstance(content, str):
        raise ValidationError("Content is required and must be a string", code="INVALID_CONTENT")

    trimmed = content.strip()
    if not trimmed:
        raise ValidationError("Content cannot be empty", code="INVALID_CONTENT")
    if len(trimmed) > max_length:
        raise ValidationError(
            f"Content exceeds maximum length of {max_length} characters",
            code="CONTENT_TOO_LONG",
            details={"length": len(trimmed), "max_length": max_length},
        )
    return trimmed


def sanitize_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    """Keep only keys made of letters, digits, underscore and hyphen."""
    if not metadata or not isinstance(metadata, dict):
        return {}

    sanitized = {}
    for key, value in metadata.items():
        if not isinstance(key, str) or not METADATA_KEY_PATTERN.match(key):
            logger.warning(f"Skipping invalid metadata key: {key!r}")
            continue
        if value is None or callable(value):
            continue
        sanitized[key] = value
    return sanitized


def _require(value: str, name: str) -> None:
    if not value:
        raise ValidationError(f"{name} is required", code="MISSING_FIELD", details={"field": name})


class ConsistencyManager:
    """
    Dedup, contradiction handling and direct fact operations.

    Args:
        store: Fact store
        embedder: Embedder for facts created without a vector
        config: Scan window, thresholds and size limits
    """

    def __init__(
        self,
        store: BaseFactStore,
        embedder: BaseEmbedder,
        config: ConsistencyConfig | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.config = config or ConsistencyConfig()

    # ------------------------------------------------------------------
    # Lexical path
    # ------------------------------------------------------------------

    async def write_fact(
        self,
        owner_id: str,
        content: str,
        is_core: bool = False,
        kind: FactKind = FactKind.FACT,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        embedding: list[float] | None = None,
        expires_at: datetime | None = None,
        source_document: str | None = None,
    ) -> WriteOutcome | None:
        """
        Create a fact with lexical dedup and contradiction handling.

        Returns:
            The write outcome, or None when the normalized content is too
            short to be worth storing

        Raises:
            ValidationError: On a missing owner or invalid content
            StorageError: If the supersede or insert fails. When flagging
                the old fact fails, the new fact is not inserted.
        """
        _require(owner_id, "owner_id")
        content = validate_content(content, self.config.max_content_length)
        tags = list(tags or [])

        normalized = normalize_content(content)
        if len(normalized) < self.config.min_normalized_length:
            logger.debug(f"Skipping fact with too little content: {content!r}")
            return None

        existing = await self.store.list_by_owner(owner_id, limit=self.config.scan_limit)
        in_scope = [fact for fact in existing if fact.shares_scope(tags)]

        for fact in in_scope:
            if normalize_content(fact.content) == normalized:
                logger.debug(f"Duplicate of {fact.id}: {content[:50]!r}")
                return WriteOutcome(fact_id=fact.id, status=WriteStatus.DUPLICATE, version=fact.version)

        contradicted: MemoryFact | None = None
        for fact in in_scope:
            if not fact.is_latest:
                continue
            prop = detect_lexical_contradiction(content, fact.content)
            if prop:
                logger.info(
                    f"Contradiction on {prop!r}: {fact.content[:50]!r} -> {content[:50]!r}"
                )
                contradicted = fact
                break

        if embedding is None:
            embedding = await self._embed(content)

        new_fact = MemoryFact(
            owner_id=owner_id,
            content=content,
            is_core=is_core,
            kind=kind,
            tags=tags,
            metadata=sanitize_metadata(metadata),
            embedding=embedding,
            expires_at=expires_at,
            source_document=source_document,
        )

        if contradicted is None:
            fact_id = await self.store.insert(new_fact)
            return WriteOutcome(fact_id=fact_id, status=WriteStatus.CREATED)

        await self.store.patch(contradicted.id, is_latest=False)
        new_fact.version = contradicted.version + 1
        new_fact.previous_version = contradicted.id
        fact_id = await self.store.insert(new_fact)
        logger.info(f"Superseded {contradicted.id} with {fact_id} (v{new_fact.version})")
        return WriteOutcome(
            fact_id=fact_id,
            status=WriteStatus.SUPERSEDED,
            version=new_fact.version,
            superseded_id=contradicted.id,
        )

    async def create_fact(self, owner_id: str, content: str, **options: Any) -> str | None:
        """
        Create a fact and return its id.

        An exact normalized duplicate in the same scope returns the existing
        id. Accepts the keyword options of ``write_fact``.
        """
        outcome = await self.write_fact(owner_id, content, **options)
        return outcome.fact_id if outcome else None

    # ------------------------------------------------------------------
    # Semantic path
    # ------------------------------------------------------------------

    async def check_and_supersede(
        self,
        owner_id: str,
        content: str,
        embedding: list[float],
        exclude_id: str | None = None,
    ) -> list[str]:
        """
        Supersede similar facts that state the same attribute of the same entity.

        Returns:
            IDs of superseded facts. Search failures are logged and give [].
        """
        superseded: list[str] = []
        if not embedding:
            return superseded

        signature = extract_entity_attribute(content)
        if signature is None:
            return superseded

        try:
            candidates = await self.store.search(
                owner_id,
                embedding,
                k=self.config.semantic_limit,
                min_score=self.config.semantic_min_score,
            )
        except Exception as e:
            logger.warning(f"Contradiction check failed: {e}")
            return []

        logger.debug(
            f"Checking contradictions for entity={signature.entity!r} attribute={signature.attribute!r}"
        )

        for fact, score in candidates:
            if fact.id == exclude_id or not fact.is_latest or fact.content == content:
                continue
            if extract_entity_attribute(fact.content) != signature:
                continue

            try:
                await self.store.patch(fact.id, is_latest=False)
            except StorageError as e:
                logger.warning(f"Could not supersede {fact.id}: {e}")
                continue
            logger.info(f"Semantic contradiction ({score:.2f}): superseded {fact.id} {fact.content[:50]!r}")
            superseded.append(fact.id)

        return superseded

    # ------------------------------------------------------------------
    # Direct operations
    # ------------------------------------------------------------------

    async def create_facts_direct(
        self,
        owner_id: str,
        items: list[FactInput],
        tags: list[str] | None = None,
    ) -> CreateFactsResult:
        """
        Create facts without extraction.

        Invalid items are reported by index in ``errors``; the rest are
        embedded in one batch and written through the lexical path.

        Raises:
            ValidationError: On a missing owner, an empty batch or a batch
                over the size limit (before anything is written)
        """
        _require(owner_id, "owner_id")
        if not items:
            raise ValidationError("Facts list is required and cannot be empty", code="EMPTY_BATCH")
        if len(items) > self.config.max_batch_size:
            raise ValidationError(
                f"Maximum {self.config.max_batch_size} facts per request",
                code="BATCH_TOO_LARGE",
                details={"size": len(items)},
            )

        result = CreateFactsResult()
        valid: list[tuple[int, FactInput, str]] = []

        for index, item in enumerate(items):
            try:
                valid.append((index, item, validate_content(item.content, self.config.max_content_length)))
            except ValidationError as e:
                result.errors.append({"index": index, "error": e.message})

        if not valid:
            return result

        embeddings = await self.embedder.embed_batch([content for _, _, content in valid])

        for (index, item, content), embedding in zip(valid, embeddings):
            try:
                outcome = await self.write_fact(
                    owner_id,
                    content,
                    is_core=item.is_core,
                    tags=tags,
                    metadata=item.metadata,
                    embedding=embedding,
                )
            except (StorageError, ValidationError) as e:
                result.errors.append({"index": index, "error": str(e)})
                continue

            if outcome is None:
                result.errors.append({"index": index, "error": "Failed to create fact"})
                continue

            result.facts.append(
                CreatedFact(
                    id=outcome.fact_id,
                    content=content,
                    is_core=item.is_core,
                    version=outcome.version,
                    created_at=_utcnow(),
                )
            )

        return result

    async def get_owned(self, owner_id: str, fact_id: str) -> MemoryFact:
        """
        Fetch a fact and check ownership.

        Raises:
            FactNotFoundError: If the fact does not exist
            AccessDeniedError: If it belongs to another owner
        """
        _require(owner_id, "owner_id")
        _require(fact_id, "fact_id")

        fact = await self.store.get(fact_id)
        if fact is None:
            raise FactNotFoundError(f"Fact not found: {fact_id}")
        if fact.owner_id != owner_id:
            raise AccessDeniedError("Access denied: you do not own this fact", details={"fact_id": fact_id})
        return fact

    async def update_fact(
        self,
        owner_id: str,
        fact_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> UpdateResult:
        """
        Replace a fact's content by creating a new version.

        The old version is superseded; the new one inherits core status,
        kind, tags and source, and the metadata unless new metadata is given.
        """
        content = validate_content(content, self.config.max_content_length)
        existing = await self.get_owned(owner_id, fact_id)

        if existing.is_forgotten:
            raise ValidationError(
                "Cannot update a forgotten fact. Restore it first.", code="FACT_FORGOTTEN"
            )
        if existing.content == content:
            raise ValidationError(
                "New content is identical to existing content", code="CONTENT_UNCHANGED"
            )

        embedding = await self._embed(content)
        new_metadata = sanitize_metadata(metadata) if metadata is not None else existing.metadata

        await self.store.patch(fact_id, is_latest=False)
        new_fact = MemoryFact(
            owner_id=owner_id,
            content=content,
            is_core=existing.is_core,
            kind=existing.kind,
            version=existing.version + 1,
            previous_version=fact_id,
            tags=existing.tags,
            source_document=existing.source_document,
            metadata=new_metadata,
            embedding=embedding,
        )
        new_id = await self.store.insert(new_fact)
        logger.info(f"Updated {fact_id} -> {new_id} (v{new_fact.version})")

        return UpdateResult(old_id=fact_id, new_id=new_id, version=new_fact.version)

    async def forget_fact(self, owner_id: str, fact_id: str) -> bool:
        """Soft-delete a fact. Returns False if it was already forgotten."""
        fact = await self.get_owned(owner_id, fact_id)
        if fact.is_forgotten:
            return False
        await self.store.patch(fact_id, is_forgotten=True, forgotten_at=_utcnow())
        logger.info(f"Forgot fact {fact_id}")
        return True

    async def restore_fact(self, owner_id: str, fact_id: str) -> bool:
        """
        Undo a forget. Returns False if the fact was not forgotten.

        ``is_latest`` is left as it is: a superseded fact stays superseded.
        """
        fact = await self.get_owned(owner_id, fact_id)
        if not fact.is_forgotten:
            return False
        await self.store.patch(fact_id, is_forgotten=False, forgotten_at=None)
        logger.info(f"Restored fact {fact_id}")
        return True

    async def promote_fact(self, owner_id: str, fact_id: str) -> bool:
        """Mark a fact as core. Returns False if it already was."""
        return await self._set_core(owner_id, fact_id, True)

    async def demote_fact(self, owner_id: str, fact_id: str) -> bool:
        """Mark a fact as dynamic. Returns False if it already was."""
        return await self._set_core(owner_id, fact_id, False)

    async def _set_core(self, owner_id: str, fact_id: str, is_core: bool) -> bool:
        fact = await self.get_owned(owner_id, fact_id)
        if fact.is_core == is_core:
            return False
        await self.store.patch(fact_id, is_core=is_core)
        return True

    async def set_expiration(
        self,
        owner_id: str,
        fact_id: str,
        expires_at: datetime | None,
    ) -> MemoryFact:
        """Set or clear a fact's expiry."""
        fact = await self.get_owned(owner_id, fact_id)
        if fact.is_forgotten:
            raise ValidationError(
                "Cannot set expiration on a forgotten fact", code="FACT_FORGOTTEN"
            )
        return await self.store.patch(fact_id, expires_at=expires_at)

    async def batch_forget(self, owner_id: str, fact_ids: list[str]) -> BatchForgetResult:
        """Forget several facts; per-id failures are collected, not raised."""
        _require(owner_id, "owner_id")
        if not fact_ids:
            raise ValidationError("Fact id list is required and cannot be empty", code="EMPTY_BATCH")
        if len(fact_ids) > self.config.max_batch_size:
            raise ValidationError(
                f"Maximum {self.config.max_batch_size} facts per batch forget request",
                code="BATCH_TOO_LARGE",
                details={"size": len(fact_ids)},
            )

        result = BatchForgetResult()
        for fact_id in fact_ids:
            try:
                await self.forget_fact(owner_id, fact_id)
                result.forgotten.append(fact_id)
            except (StorageError, ValidationError) as e:
                result.errors.append({"id": fact_id, "error": str(e)})
        return result

    async def purge_fact(self, owner_id: str, fact_id: str) -> bool:
        """Hard delete. This is the only way a fact is destroyed."""
        await self.get_owned(owner_id, fact_id)
        deleted = await self.store.delete(fact_id)
        if deleted:
            logger.info(f"Purged fact {fact_id}")
        return deleted

    async def version_history(self, owner_id: str, fact_id: str) -> list[MemoryFact]:
        """The chain from ``fact_id`` back to its first version, newest first."""
        fact = await self.get_owned(owner_id, fact_id)

        history = [fact]
        seen = {fact.id}
        while fact.previous_version and fact.previous_version not in seen:
            fact = await self.store.get(fact.previous_version)
            if fact is None:
                break
            seen.add(fact.id)
            history.append(fact)
        return history

    async def forget_expired(self, now: datetime | None = None) -> int:
        """Forget every fact whose expiry has passed. Returns how many."""
        now = now or _utcnow()
        expired = await self.store.list_expired(now)
        for fact in expired:
            await self.store.patch(fact.id, is_forgotten=True, forgotten_at=now)
        if expired:
            logger.info(f"Forgot {len(expired)} expired facts")
        return len(expired)

    async def stats(self, owner_id: str) -> dict[str, int]:
        """Counts of an owner's facts by status."""
        _require(owner_id, "owner_id")
        facts = await self.store.list_by_owner(owner_id, include_forgotten=True, limit=1_000_000)
        return {
            "total": len(facts),
            "core": sum(1 for f in facts if f.is_core and not f.is_forgotten),
            "dynamic": sum(1 for f in facts if not f.is_core and not f.is_forgotten),
            "forgotten": sum(1 for f in facts if f.is_forgotten),
            "versioned": sum(1 for f in facts if f.version > 1),
            "active": sum(1 for f in facts if f.is_latest and not f.is_forgotten),
        }

    async def _embed(self, content: str) -> list[float]:
        try:
            return await self.embedder.embed(content)
        except Exception as e:
            logger.warning(f"Embedding failed, storing fact without vector: {e}")
            return []
