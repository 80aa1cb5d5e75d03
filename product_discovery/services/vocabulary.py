# product_discovery/services/vocabulary.py
"""Static word lists and domain tables used across the search pipeline."""

import re
from typing import Dict, List, Optional

KNOWN_BRANDS: List[str] = [
    # Skincare
    "CeraVe", "Cetaphil", "Neutrogena", "The Ordinary", "Skinceuticals", "Olay", "L'Oreal",
    "Minimalist", "Vanicream", "La Roche-Posay", "Eucerin", "Aveeno", "Dove", "Garnier",
    "Paula's Choice", "Mad Hippie", "Timeless", "Drunk Elephant", "Glossier",
    "First Aid Beauty", "Youth to the People", "Tatcha", "Sunday Riley",
    "Kiehl's", "Clinique", "Estee Lauder", "Lancome", "Shiseido", "Dermalogica",
    "Pixi", "Bioderma", "Vichy", "Avene", "COSRX", "Some By Mi", "Innisfree",
    "Yuderma", "Eclipse Solaire",
    # Indian brands
    "Himalaya", "Lakme", "Lotus", "Biotique", "Forest Essentials", "Kama Ayurveda",
    "Plum", "MCaffeine", "Mamaearth", "The Body Shop", "Nykaa", "Sugar Cosmetics",
    "Colorbar", "Faces Canada", "Blue Heaven", "Revlon", "WOW Skin Science",
]

# Substrings that pin a query to one product. Longest match wins.
SPECIFIC_PRODUCT_PATTERNS: List[str] = [
    "CeraVe Hydrating Cleanser", "CeraVe Foaming Cleanser", "CeraVe Moisturizing Cream",
    "CeraVe PM Facial Moisturizing Lotion", "Cetaphil Gentle Skin Cleanser",
    "Neutrogena Hydro Boost", "The Ordinary Niacinamide", "La Roche-Posay Anthelios",
    "Eclipse Solaire", "Hyaluronic Acid", "Niacinamide", "Vitamin C Serum",
    "Retinol", "Salicylic Acid", "AHA BHA", "Sunscreen SPF",
    "Atomic Habits", "Think and Grow Rich", "Rich Dad Poor Dad",
]

COMPARISON_CONNECTIVES: List[str] = [" vs ", " vs. ", " versus ", "compare", "difference between"]

BRAND_RANGE_KEYWORDS: List[str] = ["products", "range", "collection", "all"]

CATEGORY_KEYWORDS: List[str] = [
    "cleanser", "moisturizer", "serum", "sunscreen", "toner", "exfoliant",
    "mask", "cream", "lotion", "oil", "treatment", "foundation", "concealer",
]

PRODUCT_TYPE_NOUNS: List[str] = [
    "Cleanser", "Moisturizer", "Moisturiser", "Cream", "Lotion", "Serum", "Sunscreen",
    "SPF", "Toner", "Gel", "Balm", "Mask", "Oil", "Acid", "Niacinamide", "Hyaluronic",
    "Mattifying", "Foundation", "Concealer",
]

CATEGORY_HINT_PATTERNS: Dict[str, re.Pattern] = {
    "beauty": re.compile(
        r"(cream|serum|cleanser|moisturi[sz]er|sunscreen|makeup|foundation|lipstick|skincare|spf)"
    ),
    "food": re.compile(r"(recipe|restaurant|food|dish|cuisine|taste|flavou?r)"),
    "books": re.compile(
        r"(book|novel|author|\bread\b|story|fiction|biography|habits|james clear|"
        r"think and grow rich|napoleon hill|rich dad poor dad|robert kiyosaki|self.?help|"
        r"personal development|bestseller|paperback|hardcover|kindle|audiobook|"
        r"literature|memoir|non.?fiction)"
    ),
    "movies": re.compile(r"(movie|film|actor|director|cinema|\bwatch\b)"),
}

CATEGORY_DOMAINS: Dict[str, Dict[str, List[str]]] = {
    "beauty": {
        "high_quality": [
            "cosmopolitan.com", "allure.com", "byrdie.com", "harpersbazaar.com",
            "elle.com", "vogue.com", "refinery29.com", "healthline.com",
            "dermatologytimes.com", "skincareedit.com", "beautypedia.com",
            "paulaschoice.com", "reddit.com", "makeupalley.com",
        ],
        "moderate": ["youtube.com", "medium.com", "quora.com", "beautytips.in"],
        "blocklist": ["amazon.", "flipkart.", "myntra.", "collection", "category"],
    },
    "food": {
        "high_quality": [
            "foodnetwork.com", "bonappetit.com", "seriouseats.com", "epicurious.com",
            "allrecipes.com", "food52.com", "tastingtable.com", "reddit.com",
        ],
        "moderate": ["youtube.com", "medium.com", "quora.com", "indianfood.in"],
        "blocklist": ["swiggy.", "zomato.", "delivery", "order"],
    },
    "books": {
        "high_quality": [
            "goodreads.com", "bookish.com", "npr.org", "nytimes.com",
            "theguardian.com", "reddit.com", "kirkusreviews.com",
            "publishersweekly.com", "booklist.ala.org", "libraryjournal.com",
            "bookreviews.org", "shelfawareness.com",
        ],
        "moderate": [
            "youtube.com", "medium.com", "quora.com", "booklist.in",
            "wordpress.com", "blogspot.com",
        ],
        "blocklist": ["amazon.", "flipkart.", "buy", "purchase", "shop", "cart"],
    },
}

POPULAR_DOMAINS: List[str] = ["youtube.com", "medium.com", "quora.com"]

EXPERT_DOMAINS: List[str] = [
    "healthline", "dermato", "byrdie", "allure", "paulaschoice", "beautypedia",
    "goodreads", "kirkusreviews", "publishersweekly", "seriouseats",
]

ECOMMERCE_DOMAINS: List[str] = [
    "amazon.", "flipkart.", "myntra.", "nykaa.com", "ebay.", "walmart.", "target.com",
    "sephora.", "ulta.com", "purplle.com",
]

FORUM_DOMAINS: List[str] = ["reddit.com", "quora.com", "makeupalley.com", "stackexchange.com"]

# Curated catalogue matched before asking an LLM when the query is about books
CURATED_BOOKS: Dict[str, Dict[str, str]] = {
    "atomic habits": {"name": "Atomic Habits", "author": "James Clear"},
    "think and grow rich": {"name": "Think and Grow Rich", "author": "Napoleon Hill"},
    "rich dad poor dad": {"name": "Rich Dad Poor Dad", "author": "Robert Kiyosaki"},
}

FRESHNESS_KEYWORDS: List[str] = ["latest", "new"]


def find_brand(text: str) -> Optional[str]:
    """Longest known brand contained in `text`, case-insensitive."""
    lowered = text.lower()
    matches = [b for b in KNOWN_BRANDS if b.lower() in lowered]
    if not matches:
        return None
    return max(matches, key=len)


def find_category(text: str) -> Optional[str]:
    lowered = text.lower()
    return next((c for c in CATEGORY_KEYWORDS if c in lowered), None)
