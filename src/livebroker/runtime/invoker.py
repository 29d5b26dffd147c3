from __future__ import annotations

import inspect
import logging
from typing import Any, Sequence

from livebroker.config.models import BrokerConfiguration
from livebroker.contracts.registry import MethodIdentity
from livebroker.domain.ports import Observer
from livebroker.runtime.bindings import ServiceBindings
from livebroker.runtime.outcome import Outcome, RpcError, RpcResult

logger = logging.getLogger(__name__)


class RpcInvoker:
    """Perform single RPC calls and route their outcome to an observer."""

    def __init__(self, bindings: ServiceBindings) -> None:
        self._bindings = bindings
        self._calls = 0

    @property
    def calls(self) -> int:
        """Number of RPC calls issued so far."""
        return self._calls

    async def call(self, config: BrokerConfiguration, identity: MethodIdentity, args: Sequence[Any]) -> Outcome:
        """Issue the call and return its outcome; never raises for RPC failures."""

        binding = await self._bindings.resolve(config, identity.service)
        method = getattr(binding, identity.method, None) if binding is not None else None
        if method is None:
            reason = "service is not loaded" if binding is None else "method not found"
            return RpcError(f"Cannot invoke {identity}: {reason}")

        self._calls += 1
        logger.debug("rpc.invoke", extra={"identity": identity.combined, "arg_count": len(args)})
        try:
            result = method(*args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            return RpcError.from_exception(exc)
        return RpcResult(result)

    async def invoke(
        self,
        config: BrokerConfiguration,
        identity: MethodIdentity,
        args: Sequence[Any],
        observer: Observer,
        *,
        complete: bool = False,
    ) -> Outcome:
        """Call ``identity`` with ``args`` and emit the outcome to ``observer``.

        Results are emitted without completing the observer so later
        reinvocations can keep delivering. With ``complete`` the observer is
        completed after the first outcome.
        """

        outcome = await self.call(config, identity, args)
        if isinstance(outcome, RpcResult):
            observer.on_next(outcome.value)
        else:
            logger.error(
                "RPC call %s failed: %s",
                identity,
                outcome.message,
                exc_info=outcome.exception if isinstance(outcome.exception, BaseException) else None,
            )
            observer.on_error(outcome)
        if complete:
            observer.on_completed()
        return outcome


__all__ = ["RpcInvoker"]
