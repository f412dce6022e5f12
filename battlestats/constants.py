"""
Engine-wide constants for the battle report statistics engine.

This module contains the magic numbers used throughout the codebase so that
record-format heuristics and grouping rules are defined in one place.
"""

class TimestampConstants:
    """Constants for unit-ambiguous timestamp recovery."""

    # Values at or above this are microseconds
    MICROSECONDS_THRESHOLD = 1e14

    # Values below this are seconds
    SECONDS_THRESHOLD = 1e12

    MILLIS_PER_SECOND = 1000
    MILLIS_PER_DAY = 24 * 60 * 60 * 1000
    MONTHS_PER_YEAR = 12

class OpponentConstants:
    """Constants for opponent identity handling."""

    # Environmental (non-player) opponent
    NPC_PLAYER_ID = -2

    # Empty structure / invalid opponent
    EMPTY_PLAYER_ID = 0

    INVALID_PLAYER_IDS = frozenset({NPC_PLAYER_ID, EMPTY_PLAYER_ID})

class LoadoutConstants:
    """Constants for loadout parsing and canonicalization."""

    GRANULARITY_EXACT = "exact"
    GRANULARITY_NORMALIZED = "normalized"
    GRANULARITIES = (GRANULARITY_EXACT, GRANULARITY_NORMALIZED)

    # Enemy breakdowns may also be requested across every loadout
    GRANULARITY_OVERALL = "overall"

    # Empty inscription slot sentinel
    EMPTY_INSCRIPTION_ID = -1

    # Equipment attribute tiers are bucketed by this width in normalized mode
    ATTR_TIER_WIDTH = 10

    NO_FORMATION = "none"

class PaginationConstants:
    """Constants for cursor pagination."""

    DIRECTION_FORWARD = "forward"
    DIRECTION_BACKWARD = "backward"

    # Hard cap for any single page, regardless of configuration
    ABSOLUTE_MAX_PAGE_SIZE = 500
