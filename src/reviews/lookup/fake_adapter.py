"""Configurable fake lookups for development and testing."""

from reviews.errors import LookupUnavailable
from reviews.lookup.port import ServiceLookups


class FakeLookups(ServiceLookups):
    """Answers lookups from configured values and records every call."""

    def __init__(self) -> None:
        self.product_found: bool = True
        self.purchase_valid: bool = False
        self.reachable: bool = True
        self.calls: list[dict] = []

    def configure(
        self, product_found: bool = True, purchase_valid: bool = False, reachable: bool = True
    ) -> None:
        self.product_found = product_found
        self.purchase_valid = purchase_valid
        self.reachable = reachable

    async def product_exists(self, product_id: str, trace=None) -> bool:
        self.calls.append({"method": "product_exists", "product_id": product_id})
        if not self.reachable:
            raise LookupUnavailable("product-service unreachable")
        return self.product_found

    async def validate_purchase(
        self, user_id: str, product_id: str, order_reference: str, trace=None
    ) -> bool:
        self.calls.append(
            {
                "method": "validate_purchase",
                "user_id": user_id,
                "product_id": product_id,
                "order_reference": order_reference,
            }
        )
        if not self.reachable:
            raise LookupUnavailable("order-service unreachable")
        return self.purchase_valid


class UnavailableLookups(ServiceLookups):
    """Used when no service-invocation channel exists (non-Dapr transports)."""

    async def product_exists(self, product_id: str, trace=None) -> bool:
        raise LookupUnavailable("service invocation requires the Dapr provider")

    async def validate_purchase(
        self, user_id: str, product_id: str, order_reference: str, trace=None
    ) -> bool:
        raise LookupUnavailable("service invocation requires the Dapr provider")
