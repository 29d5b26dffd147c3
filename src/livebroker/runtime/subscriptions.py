from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Iterator, Optional

from livebroker.config.models import BrokerConfiguration
from livebroker.contracts.registry import MethodIdentity, MethodTypeRegistry, entity_of
from livebroker.domain.ports import Observer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EngagedMethodData:
    """Live call kept fresh by push-triggered reinvocation."""

    identity: MethodIdentity
    args: tuple[Any, ...]
    observer: Observer
    config: BrokerConfiguration
    return_type: Optional[str] = None


class SubscriptionRegistry:
    """At most one engaged record per method identity.

    Re-engaging an identity replaces its args and observer: only the most
    recent subscriber is reinvoked on push events. Records are indexed by
    the entity type their method returns so dispatch never scans the table.
    """

    def __init__(self, method_types: MethodTypeRegistry) -> None:
        self._method_types = method_types
        self._records: dict[MethodIdentity, EngagedMethodData] = {}
        self._by_entity: dict[str, set[MethodIdentity]] = {}

    def engage(
        self,
        identity: MethodIdentity,
        args: tuple[Any, ...],
        observer: Observer,
        config: BrokerConfiguration,
    ) -> bool:
        """Record ``identity`` as engaged. Returns True when a new record was created."""

        record = self._records.get(identity)
        if record is not None:
            record.args = tuple(args)
            record.observer = observer
            record.config = config
            logger.debug("Re-engaged %s with new args", identity)
            return False

        return_type = self._method_types.return_type(identity)
        self._records[identity] = EngagedMethodData(identity, tuple(args), observer, config, return_type)
        if return_type is None:
            logger.warning("No return type registered for %s; push events will not refresh it", identity)
        else:
            self._by_entity.setdefault(entity_of(return_type), set()).add(identity)
        logger.debug("Engaged %s (returns %s)", identity, return_type)
        return True

    def disengage(self, identity: MethodIdentity, observer: Optional[Observer] = None) -> bool:
        """Remove the record for ``identity``.

        When ``observer`` is given the record is only removed if that observer
        is still the one receiving updates.
        """

        record = self._records.get(identity)
        if record is None:
            return False
        if observer is not None and record.observer is not observer:
            return False

        del self._records[identity]
        if record.return_type is not None:
            key = entity_of(record.return_type)
            engaged = self._by_entity.get(key)
            if engaged is not None:
                engaged.discard(identity)
                if not engaged:
                    del self._by_entity[key]
        logger.debug("Disengaged %s", identity)
        return True

    def get(self, identity: MethodIdentity) -> Optional[EngagedMethodData]:
        return self._records.get(identity)

    def engaged_for(self, entity_type: str) -> list[EngagedMethodData]:
        """Records whose return type is ``entity_type`` or ``entity_type[]``."""

        identities = self._by_entity.get(entity_of(entity_type), ())
        records = []
        for identity in identities:
            record = self._records[identity]
            if record.return_type in (entity_type, f"{entity_type}[]"):
                records.append(record)
        return records

    def identities(self) -> list[MethodIdentity]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()
        self._by_entity.clear()

    def __contains__(self, identity: object) -> bool:
        return identity in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EngagedMethodData]:
        return iter(list(self._records.values()))


__all__ = ["EngagedMethodData", "SubscriptionRegistry"]
