"""
SkinAI — Product Catalog Module
Static mock catalog, search, and keyword-based recommendations.
"""

SKIN_TYPE_FILTERS = ["All", "Oily", "Dry", "Sensitive", "Combination", "Mature"]

# Mock product database
PRODUCTS = [
    {
        "id": 1,
        "name": "Hydrating Vitamin C Serum",
        "brand": "GlowTech",
        "category": "Serum",
        "price": 45,
        "rating": 4.8,
        "reviews": 1234,
        "skin_types": ["All", "Dry", "Combination"],
        "concerns": ["Dullness", "Fine Lines"],
        "ingredients": ["vitamin c", "hyaluronic acid"],
        "benefits": "Brightens & Hydrates",
    },
    {
        "id": 2,
        "name": "Gentle Foam Cleanser",
        "brand": "PureSkin",
        "category": "Cleanser",
        "price": 28,
        "rating": 4.6,
        "reviews": 892,
        "skin_types": ["Sensitive", "Dry"],
        "concerns": ["Irritation", "Dryness"],
        "ingredients": ["glycerin", "ceramides"],
        "benefits": "Soothes & Cleanses",
    },
    {
        "id": 3,
        "name": "Niacinamide Treatment",
        "brand": "ClearPath",
        "category": "Treatment",
        "price": 32,
        "rating": 4.7,
        "reviews": 756,
        "skin_types": ["Oily", "Acne-Prone"],
        "concerns": ["Acne", "Large Pores"],
        "ingredients": ["niacinamide", "zinc"],
        "benefits": "Controls Oil & Minimizes Pores",
    },
    {
        "id": 4,
        "name": "Retinol Night Cream",
        "brand": "AgeReverse",
        "category": "Moisturizer",
        "price": 68,
        "rating": 4.9,
        "reviews": 543,
        "skin_types": ["Mature", "Normal"],
        "concerns": ["Aging", "Fine Lines"],
        "ingredients": ["retinol", "peptides"],
        "benefits": "Anti-Aging & Renewal",
    },
    {
        "id": 5,
        "name": "SPF 50 Daily Moisturizer",
        "brand": "SunGuard",
        "category": "Sunscreen",
        "price": 38,
        "rating": 4.5,
        "reviews": 1098,
        "skin_types": ["All"],
        "concerns": ["Sun Protection"],
        "ingredients": ["zinc oxide", "hyaluronic acid"],
        "benefits": "Protects & Moisturizes",
    },
    {
        "id": 6,
        "name": "Exfoliating Toner",
        "brand": "GlowTech",
        "category": "Toner",
        "price": 42,
        "rating": 4.4,
        "reviews": 687,
        "skin_types": ["Oily", "Combination"],
        "concerns": ["Dullness", "Texture"],
        "ingredients": ["glycolic acid", "salicylic acid"],
        "benefits": "Exfoliates & Refines",
    },
]

# Maps words in AI concerns to catalog concern tags
CONCERN_KEYWORDS = {
    "acne": "Acne",
    "breakout": "Acne",
    "pore": "Large Pores",
    "oil": "Large Pores",
    "dull": "Dullness",
    "uneven": "Dullness",
    "pigment": "Dullness",
    "line": "Fine Lines",
    "wrinkle": "Fine Lines",
    "aging": "Aging",
    "dry": "Dryness",
    "dehydrat": "Dryness",
    "red": "Irritation",
    "irritat": "Irritation",
    "texture": "Texture",
    "rough": "Texture",
    "sun": "Sun Protection",
}


def search_products(query: str = "", skin_type: str = "All") -> list:
    """Filter by name/brand substring and skin type tag."""
    q = (query or "").strip().lower()
    skin_type = skin_type or "All"

    results = []
    for product in PRODUCTS:
        matches_search = (
            not q
            or q in product["name"].lower()
            or q in product["brand"].lower()
        )
        matches_filter = skin_type == "All" or skin_type in product["skin_types"]
        if matches_search and matches_filter:
            results.append(product)
    return results


def _words(values) -> str:
    return " ".join(str(v).lower() for v in values if v)


def recommend_products(result, limit: int = 4) -> list:
    """
    Score catalog products against an analysis result.

    Args:
        result: AnalysisResult

    Returns:
        [{"product": {...}, "score": n, "why": "..."}], best first
    """
    profile = result.skin_profile
    filters = result.product_filters
    skin_type = (profile.type or "").strip().lower()
    tags = {t.lower() for t in (filters.skin_type_tags if filters else [])}
    if skin_type:
        tags.add(skin_type)

    concern_text = _words(
        list(profile.concerns) + [c.issue for c in result.immediate_concerns]
    )
    wanted_concerns = {
        tag for key, tag in CONCERN_KEYWORDS.items() if key in concern_text
    }
    preferred = {i.lower() for i in (filters.preferred_ingredients if filters else []) if i}
    avoided = {i.lower() for i in (filters.avoid_ingredients if filters else []) if i}

    scored = []
    for product in PRODUCTS:
        ingredients = set(product["ingredients"])
        if any(a in ing or ing in a for a in avoided for ing in ingredients):
            continue

        score = 0
        reasons = []
        type_hits = [t for t in product["skin_types"] if t.lower() in tags]
        if type_hits:
            score += 3
            reasons.append(f"suited to {type_hits[0].lower()} skin")
        elif "All" in product["skin_types"]:
            score += 1
            reasons.append("works for all skin types")

        concern_hits = [c for c in product["concerns"] if c in wanted_concerns]
        if concern_hits:
            score += 2 * len(concern_hits)
            reasons.append("targets " + ", ".join(c.lower() for c in concern_hits))

        ingredient_hits = sorted(
            ing for ing in ingredients
            if any(p in ing or ing in p for p in preferred)
        )
        if ingredient_hits:
            score += len(ingredient_hits)
            reasons.append("contains " + ", ".join(ingredient_hits))

        if score == 0:
            continue

        why = "; ".join(reasons)
        scored.append({
            "product": product,
            "score": score,
            "why": why[0].upper() + why[1:],
        })

    scored.sort(key=lambda r: (-r["score"], -r["product"]["rating"]))
    return scored[:limit]
