"""Reviews bounded context: product reviews, helpfulness voting and moderation.

Owns the review lifecycle and publishes CloudEvents-style lifecycle events
(review.created / updated / deleted / approved) so the product catalog can
recompute rating aggregates. Events leave the service through a pluggable
messaging provider (Dapr sidecar, RabbitMQ or Azure Service Bus).
"""

from protean.domain import Domain

reviews = Domain(name="reviews")
