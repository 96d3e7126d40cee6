"""
Stage Orchestrator

The find-or-generate-then-propagate procedure every stage handler runs.

For one message:
    1. Validate the payload into the stage's request model
       (InvalidInput on failure, never retried)
    2. Derive the identity from the natural key and get() it
    3. Absent: generate, then put(). A Conflict means another worker won
       the race; the local result is discarded and the winner re-read
    4. Present: use the stored entity as is
    5. Create the stage's links (best-effort)
    6. Publish the stage's propagation messages

Steps 5 and 6 run on every path. A re-delivered or late message still
drives its downstream branch forward, which is what lets partially
completed branches converge.

A MissingPrerequisite raised while generating drops the message: it is
logged, nothing is stored and nothing is propagated.
"""

from __future__ import annotations

import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Mapping, TypeVar

from pydantic import BaseModel

from customer_intel.errors import Conflict, GenerationFailure, InvalidInput, MissingPrerequisite
from customer_intel.messaging.base import MessageBus
from customer_intel.storage.base import EntityStore, identity_of
from customer_intel.types.messages import StageMessage
from customer_intel.types.results import LinkSpec, OutboundMessage, StageOutcome, StageResult
from customer_intel.types.validation import validate_message

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=StageMessage)


@dataclass
class Generated:
    """A freshly generated entity and the vectors stored with it."""

    entity: BaseModel
    vectors: dict[str, list[float]] | None = None


@dataclass
class Resolved:
    """The stored entity a find-or-generate settled on."""

    entity: BaseModel
    entity_id: str
    outcome: StageOutcome


class Stage(ABC, Generic[M]):
    """
    One pipeline stage.

    Subclasses set the class attributes and implement natural_key() and
    generate(). links() and propagate() receive the stored entity, never
    a locally generated one that lost a race, and are called whether the
    entity was generated or found.
    """

    name: str
    queue: str
    collection: str
    request_model: type[M]

    @abstractmethod
    def natural_key(self, message: M) -> str:
        ...

    @abstractmethod
    async def generate(self, message: M) -> Generated:
        """
        Produce the entity for a message.

        Raises:
            MissingPrerequisite: A required upstream entity is absent
            GenerationFailure: The generation service failed
        """
        ...

    def links(self, message: M, entity: BaseModel) -> list[LinkSpec]:
        return []

    async def propagate(self, message: M, entity: BaseModel) -> list[OutboundMessage]:
        return []


async def find_or_generate(
    store: EntityStore,
    collection: str,
    key: str,
    generate: Callable[[], Awaitable[Generated]],
) -> Resolved:
    """
    Get the entity for a natural key, generating and inserting it when absent.

    Raises:
        GenerationFailure: If the generated entity's key does not match
    """
    entity_id = identity_of(key)
    existing = await store.get(collection, entity_id)
    if existing is not None:
        logger.info(f"{collection}[{key}] found, skipping generation")
        return Resolved(existing, entity_id, StageOutcome.FOUND)

    logger.info(f"{collection}[{key}] not found, generating")
    generated = await generate()

    schema = store.schema(collection)
    if schema.identity_of(generated.entity) != entity_id:
        raise GenerationFailure(
            f"Generated {collection} entity has key '{schema.key_of(generated.entity)}', expected '{key}'"
        )

    try:
        await store.put(collection, generated.entity, generated.vectors)
    except Conflict:
        logger.info(f"{collection}[{key}] was stored concurrently, using the stored copy")
        winner = await store.get(collection, entity_id)
        if winner is None:
            raise
        return Resolved(winner, entity_id, StageOutcome.CONFLICT)

    return Resolved(generated.entity, entity_id, StageOutcome.GENERATED)


class StageOrchestrator:
    """
    Runs stages against a store and a bus.

    Usage:
        orchestrator = StageOrchestrator(store, bus)
        result = await orchestrator.run(MasterDataStage(deps), payload)

        # or as a queue handler
        handlers = {stage.queue: orchestrator.handler(stage) for stage in stages}
    """

    def __init__(self, store: EntityStore, bus: MessageBus):
        self.store = store
        self.bus = bus

    async def run(self, stage: Stage[Any], payload: Mapping[str, Any]) -> StageResult:
        validation = validate_message(stage.request_model, payload)
        if not validation.ok or validation.value is None:
            raise InvalidInput(stage.name, validation.issues)
        message = validation.value
        key = stage.natural_key(message)

        try:
            resolved = await find_or_generate(
                self.store, stage.collection, key, lambda: stage.generate(message)
            )
        except MissingPrerequisite as e:
            logger.warning(f"[{stage.name}] {key}: {e}, dropping message")
            return StageResult(stage=stage.name, outcome=StageOutcome.DROPPED, key=key)

        links_created = await self._create_links(stage.links(message, resolved.entity))

        try:
            messages = await stage.propagate(message, resolved.entity)
        except MissingPrerequisite as e:
            logger.warning(f"[{stage.name}] {key}: {e}, nothing to propagate")
            messages = []

        for outbound in messages:
            await self.bus.publish(outbound.queue, outbound.payload)

        logger.info(
            f"[{stage.name}] {key}: {resolved.outcome.value}, "
            f"{links_created} link(s), {len(messages)} message(s)"
        )
        return StageResult(
            stage=stage.name,
            outcome=resolved.outcome,
            key=key,
            entity_id=resolved.entity_id,
            links_created=links_created,
            messages=messages,
        )

    async def _create_links(self, specs: list[LinkSpec]) -> int:
        created = 0
        for spec in specs:
            try:
                await self.store.link(
                    spec.collection,
                    identity_of(spec.from_key),
                    spec.relation,
                    identity_of(spec.to_key),
                )
            except MissingPrerequisite as e:
                logger.warning(f"Skipping link {spec.collection}.{spec.relation} {spec.from_key} -> {spec.to_key}: {e}")
                continue
            created += 1
        return created

    def handler(self, stage: Stage[Any]) -> Callable[[Mapping[str, Any]], Awaitable[StageResult]]:
        """Bind a stage into a queue handler."""
        return functools.partial(self.run, stage)
