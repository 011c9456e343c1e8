"""Shopping-aisle classification by keyword."""

from __future__ import annotations

# Scanned in order; the first keyword found anywhere in the item name wins.
# Earlier keywords shadow later ones ("tomato" before "tomatoes").
CATEGORY_KEYWORDS: tuple[tuple[str, str], ...] = (
    # Proteins
    ("chicken", "Proteins"),
    ("beef", "Proteins"),
    ("pork", "Proteins"),
    ("fish", "Proteins"),
    ("salmon", "Proteins"),
    ("tuna", "Proteins"),
    ("shrimp", "Proteins"),
    ("turkey", "Proteins"),
    ("bacon", "Proteins"),
    ("sausage", "Proteins"),
    ("eggs", "Proteins"),
    ("tofu", "Proteins"),
    # Dairy
    ("milk", "Dairy"),
    ("cheese", "Dairy"),
    ("yogurt", "Dairy"),
    ("butter", "Dairy"),
    ("cream", "Dairy"),
    ("sour", "Dairy"),
    # Produce
    ("lettuce", "Produce"),
    ("tomato", "Produce"),
    ("onion", "Produce"),
    ("garlic", "Produce"),
    ("pepper", "Produce"),
    ("carrot", "Produce"),
    ("celery", "Produce"),
    ("broccoli", "Produce"),
    ("spinach", "Produce"),
    ("kale", "Produce"),
    ("avocado", "Produce"),
    ("cucumber", "Produce"),
    ("zucchini", "Produce"),
    ("mushroom", "Produce"),
    ("potato", "Produce"),
    ("apple", "Produce"),
    ("banana", "Produce"),
    ("lemon", "Produce"),
    ("lime", "Produce"),
    ("orange", "Produce"),
    ("berry", "Produce"),
    ("strawberry", "Produce"),
    ("blueberry", "Produce"),
    # Grains
    ("rice", "Grains"),
    ("pasta", "Grains"),
    ("bread", "Grains"),
    ("flour", "Grains"),
    ("oats", "Grains"),
    ("quinoa", "Grains"),
    ("tortilla", "Grains"),
    ("noodle", "Grains"),
    # Pantry
    ("oil", "Pantry"),
    ("vinegar", "Pantry"),
    ("sauce", "Pantry"),
    ("broth", "Pantry"),
    ("stock", "Pantry"),
    ("sugar", "Pantry"),
    ("honey", "Pantry"),
    ("syrup", "Pantry"),
    ("salt", "Pantry"),
    ("spice", "Pantry"),
    ("herb", "Pantry"),
    # Canned
    ("beans", "Canned"),
    ("tomatoes", "Canned"),
    ("corn", "Canned"),
    ("coconut", "Canned"),
)

DEFAULT_CATEGORY = "Other"


def classify(item_name: str) -> str:
    """Classify an ingredient name into a shopping category."""
    name_lower = item_name.lower()
    for keyword, category in CATEGORY_KEYWORDS:
        if keyword in name_lower:
            return category
    return DEFAULT_CATEGORY
