"""Activity tiers used to colour trip and booking counts."""

# (upper bound exclusive, tier name), checked in order.
_TIERS = (
    (1, "inactive"),
    (5, "starter"),
    (10, "active"),
    (20, "frequent"),
    (50, "high"),
)


def activity_level(count: int) -> str:
    """Return the tier name for a trip or booking count."""
    for bound, name in _TIERS:
        if count < bound:
            return name
    return "elite"
