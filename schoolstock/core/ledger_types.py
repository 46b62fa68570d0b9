"""Shared ledger vocabulary: transaction kinds and row statuses."""

KIND_PURCHASE = "purchase"
KIND_SALE = "sale"
KIND_DISTRIBUTION = "distribution"
KIND_RETURN = "return"

# Kinds callers may write directly. Distribution rows only come from the
# distribution coordinator, paired with a class distribution.
DIRECT_KINDS = (KIND_PURCHASE, KIND_SALE, KIND_RETURN)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_DELETED = "deleted"

STATUS_CHOICES = (
    STATUS_PENDING,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_DELETED,
)

# Only these rows participate in stock math.
COUNTED_STATUSES = (STATUS_COMPLETED,)

DISTRIBUTION_ACTIVE = "active"
DISTRIBUTION_CANCELLED = "cancelled"


def normalize_choice(value: str | None, default: str | None = None) -> str | None:
    """Return a lowercase, trimmed choice value with an optional default."""

    if value is None:
        return default
    cleaned = value.strip().lower()
    return cleaned or default


__all__ = [
    "COUNTED_STATUSES",
    "DIRECT_KINDS",
    "DISTRIBUTION_ACTIVE",
    "DISTRIBUTION_CANCELLED",
    "KIND_DISTRIBUTION",
    "KIND_PURCHASE",
    "KIND_RETURN",
    "KIND_SALE",
    "STATUS_CANCELLED",
    "STATUS_CHOICES",
    "STATUS_COMPLETED",
    "STATUS_DELETED",
    "STATUS_PENDING",
    "normalize_choice",
]
