from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

COLLECTION_SUFFIX = "[]"

MethodReturnTypes = Mapping[str, str]


@dataclass(frozen=True, slots=True)
class MethodIdentity:
    """Service + method pair identifying one engaged call."""

    service: str
    method: str

    @property
    def combined(self) -> str:
        return f"{self.service}.{self.method}"

    @classmethod
    def parse(cls, combined: str) -> MethodIdentity:
        service, sep, method = combined.rpartition(".")
        if not sep or not service or not method:
            raise ValueError(f"Invalid method identity: {combined!r}")
        return cls(service, method)

    def __str__(self) -> str:
        return self.combined


def entity_of(return_type: str) -> str:
    """Strip the collection marker so ``User[]`` and ``User`` share a key."""

    if return_type.endswith(COLLECTION_SUFFIX):
        return return_type[: -len(COLLECTION_SUFFIX)]
    return return_type


class MethodTypeRegistry:
    """Static table of declared method return types, filled once per service."""

    def __init__(self) -> None:
        self._services: dict[str, dict[str, str]] = {}

    def register(self, service: str, return_types: MethodReturnTypes) -> None:
        """Register or override the return types of a service's methods."""

        self._services[service] = dict(return_types)

    def return_type(self, identity: MethodIdentity) -> str | None:
        methods = self._services.get(identity.service)
        if methods is None:
            return None
        return methods.get(identity.method)

    def return_types(self, service: str) -> dict[str, str]:
        try:
            return dict(self._services[service])
        except KeyError as exc:
            raise KeyError(f"Unknown service: {service}") from exc

    def services(self) -> list[str]:
        return list(self._services)

    def clear(self) -> None:
        self._services.clear()

    def __contains__(self, service: object) -> bool:
        return service in self._services


_DEFAULT_REGISTRY = MethodTypeRegistry()


def default_registry() -> MethodTypeRegistry:
    return _DEFAULT_REGISTRY


def register_method_types(service: str, return_types: MethodReturnTypes) -> None:
    """Register a generated service's method return types with the shared registry."""

    _DEFAULT_REGISTRY.register(service, return_types)


__all__ = [
    "COLLECTION_SUFFIX",
    "MethodIdentity",
    "MethodReturnTypes",
    "MethodTypeRegistry",
    "default_registry",
    "entity_of",
    "register_method_types",
]
