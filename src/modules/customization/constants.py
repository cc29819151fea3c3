"""Customization pricing constants.

Keys are plain strings so grid look-ups work with values coming from
the database, the API layer or the enums below alike.
"""

from decimal import Decimal

from django.db import models

TEXT = "text"
IMAGE = "image"
COMBO = "combo"

FRONT = "front"
BACK = "back"
BOTH = "both"
ANY = "any"
NO_PLACEMENT = "none"


class CustomizationType(models.TextChoices):
    TEXT = TEXT, "Text"
    IMAGE = IMAGE, "Image"
    COMBO = COMBO, "Text + image"


class Placement(models.TextChoices):
    FRONT = FRONT, "Front"
    BACK = BACK, "Back"
    BOTH = BOTH, "Front and back"
    ANY = ANY, "Any"


SIDED_PLACEMENTS: tuple[str, ...] = (FRONT, BACK, BOTH)

ALLOWED_PLACEMENTS: dict[str, tuple[str, ...]] = {
    TEXT: SIDED_PLACEMENTS,
    IMAGE: SIDED_PLACEMENTS,
    COMBO: (ANY,),
}

# Used whenever the rule store has no active row for a key.
DEFAULT_GRID: dict[str, dict[str, Decimal]] = {
    TEXT: {FRONT: Decimal("5.00"), BACK: Decimal("5.00"), BOTH: Decimal("8.00")},
    IMAGE: {FRONT: Decimal("10.00"), BACK: Decimal("10.00"), BOTH: Decimal("15.00")},
    COMBO: {ANY: Decimal("12.00")},
}
