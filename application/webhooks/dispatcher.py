"""
Method-table dispatch shared by the three webhook protocols.

A protocol handler is a table of ``name -> coroutine`` plus a
``WebhookProtocol`` codec. Methods return the ``result`` payload or raise
``ProtocolError``; the dispatcher encodes both, and turns any other exception
(store or callback failure) into the protocol's internal error so the
provider re-delivers the webhook.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, Optional

from domain.common.exceptions import BusinessException


MethodHandler = Callable[..., Awaitable[dict[str, Any]]]
MethodTable = Mapping[Any, MethodHandler]


class ProtocolError(BusinessException):
    """A domain or request-shape failure reported to the provider as a wire error."""

    def __init__(self, code: int, data: Optional[str] = None):
        name = getattr(code, "name", str(code))
        super().__init__(
            code=int(code),
            message=name,
            error_type="ProtocolError",
            details={"data": data} if data is not None else None,
        )
        self.data = data


class WebhookProtocol(ABC):
    """Envelope codec of one provider protocol."""

    provider: str
    method_not_found: int
    internal_error: int

    @abstractmethod
    def success(self, request_id: Any, result: Mapping[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    def error(self, request_id: Any, code: int, data: Optional[str] = None) -> dict[str, Any]:
        ...


async def dispatch(
    protocol: WebhookProtocol,
    methods: MethodTable,
    method: Any,
    request_id: Any,
    logger: Any,
    *args: Any,
) -> dict[str, Any]:
    """Route ``method`` through ``methods`` and encode the outcome with ``protocol``."""
    handler = methods.get(method)
    if handler is None:
        logger.warning("webhook_method_not_found", provider=protocol.provider, method=str(method))
        return protocol.error(request_id, protocol.method_not_found, str(method))
    return await invoke(protocol, handler, method, request_id, logger, *args)


async def invoke(
    protocol: WebhookProtocol,
    handler: MethodHandler,
    method: Any,
    request_id: Any,
    logger: Any,
    *args: Any,
) -> dict[str, Any]:
    """Run one handler and encode its result or failure with ``protocol``."""
    try:
        result = await handler(*args)
    except ProtocolError as exc:
        logger.info(
            "webhook_rejected",
            provider=protocol.provider,
            method=str(method),
            code=exc.code,
            reason=exc.message,
        )
        return protocol.error(request_id, exc.code, exc.data)
    except Exception as exc:
        logger.error(
            "webhook_method_failed",
            provider=protocol.provider,
            method=str(method),
            error=str(exc),
            exc_info=True,
        )
        return protocol.error(request_id, protocol.internal_error)

    return protocol.success(request_id, result)
