"""Product and order lookups through Dapr service invocation."""

from reviews.errors import LookupUnavailable
from reviews.lookup.port import ServiceLookups


class DaprLookups(ServiceLookups):
    """Asks product-service and order-service via the sidecar's invoke API."""

    def __init__(self, provider, product_app_id: str, order_app_id: str, timeout: float = 3.0) -> None:
        self.provider = provider
        self.product_app_id = product_app_id
        self.order_app_id = order_app_id
        self.timeout = timeout

    async def product_exists(self, product_id: str, trace=None) -> bool:
        status, body = await self.provider.invoke(
            self.product_app_id,
            f"api/products/internal/{product_id}/exists",
            "GET",
            headers=_trace_headers(trace),
            timeout=self.timeout,
        )
        if status == 404:
            return False
        if status >= 400:
            raise LookupUnavailable(f"product lookup answered {status}")
        return bool(body.get("exists"))

    async def validate_purchase(
        self, user_id: str, product_id: str, order_reference: str, trace=None
    ) -> bool:
        status, body = await self.provider.invoke(
            self.order_app_id,
            "api/v1/internal/orders/validate-purchase",
            "POST",
            payload={"userId": user_id, "productId": product_id, "orderReference": order_reference},
            headers=_trace_headers(trace),
            timeout=self.timeout,
        )
        if status >= 400:
            return False
        return bool(body.get("isValid"))


def _trace_headers(trace) -> dict:
    traceparent = trace.traceparent() if trace is not None else None
    return {"traceparent": traceparent} if traceparent else {}
