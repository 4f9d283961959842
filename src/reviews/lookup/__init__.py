"""Sibling-service lookups: Dapr service invocation when available."""

from reviews.lookup.port import LookupResult, ServiceLookups, with_fallback

__all__ = ["LookupResult", "ServiceLookups", "build_lookups", "with_fallback"]


def build_lookups(provider, settings) -> ServiceLookups:
    """Pick lookups matching the active messaging provider.

    Only the Dapr sidecar offers service invocation; with any other transport
    every lookup reports itself unavailable and the permissive default applies.
    """
    if getattr(provider, "name", None) == "dapr":
        from reviews.lookup.dapr_adapter import DaprLookups

        return DaprLookups(
            provider,
            settings.PRODUCT_SERVICE_APP_ID,
            settings.ORDER_SERVICE_APP_ID,
            timeout=settings.LOOKUP_TIMEOUT_SECONDS,
        )

    from reviews.lookup.fake_adapter import UnavailableLookups

    return UnavailableLookups()
