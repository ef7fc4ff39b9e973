"""
Constants used across the review and moderation workflow.
"""

# Rating bounds for reviews (inclusive)
RATING_MIN = 1
RATING_MAX = 10

# Distinct non-admin moderator approvals needed to publish a review
REQUIRED_REVIEW_APPROVALS = 2

# Default page size for moderation queues
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

EQUIPMENT_CATEGORIES = ("blade", "rubber", "ball")
EQUIPMENT_SUBCATEGORIES = ("inverted", "long_pips", "anti", "short_pips")

# Only rubbers carry a subcategory
SUBCATEGORIES_BY_CATEGORY = {
    "blade": (),
    "rubber": EQUIPMENT_SUBCATEGORIES,
    "ball": (),
}

PLAYING_STYLES = (
    "attacker",
    "all_rounder",
    "defender",
    "counter_attacker",
    "chopper",
    "unknown",
)

# Player fields a moderator-approved edit may overwrite
PLAYER_EDITABLE_FIELDS = (
    "name",
    "highest_rating",
    "active_years",
    "active",
    "playing_style",
    "birth_country",
    "represents",
)

REVIEWER_CONTEXT_FIELDS = (
    "playing_level",
    "style_of_play",
    "testing_duration",
    "testing_quantity",
    "testing_type",
    "other_equipment",
    "purchase_location",
    "purchase_price",
)
