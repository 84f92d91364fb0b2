# listing_pipeline/vocabulary.py
"""Map free-text category and condition vocabulary onto the closed enumerations.

Both normalizers are total: anything unrecognised falls back to a default.
"""
import re

from .domain import Category, Condition

DEFAULT_CATEGORY = Category.OTHER
DEFAULT_CONDITION = Condition.GOOD

CONDITION_SYNONYMS = {
    "like new": Condition.LIKE_NEW,
    "new": Condition.LIKE_NEW,
    "new with tags": Condition.LIKE_NEW,
    "new without tags": Condition.LIKE_NEW,
    "excellent": Condition.LIKE_NEW,
    "mint": Condition.LIKE_NEW,
    "near mint": Condition.LIKE_NEW,
    "very good": Condition.GOOD,
    "good": Condition.GOOD,
    "gently used": Condition.GOOD,
    "used": Condition.GOOD,
    "pre owned": Condition.GOOD,
    "fair": Condition.FAIR,
    "acceptable": Condition.FAIR,
    "worn": Condition.FAIR,
    "poor": Condition.POOR,
    "damaged": Condition.POOR,
    "for parts": Condition.POOR,
}

CATEGORY_SYNONYMS = {
    # clothing
    "clothing": Category.CLOTHING,
    "apparel": Category.CLOTHING,
    "leather jacket": Category.CLOTHING,
    "jacket": Category.CLOTHING,
    "coat": Category.CLOTHING,
    "shirt": Category.CLOTHING,
    "t shirt": Category.CLOTHING,
    "blouse": Category.CLOTHING,
    "dress": Category.CLOTHING,
    "pants": Category.CLOTHING,
    "jeans": Category.CLOTHING,
    "shorts": Category.CLOTHING,
    "skirt": Category.CLOTHING,
    "sweater": Category.CLOTHING,
    "cardigan": Category.CLOTHING,
    "hoodie": Category.CLOTHING,
    "top": Category.CLOTHING,
    "bottom": Category.CLOTHING,
    "vest": Category.CLOTHING,
    # shoes
    "shoes": Category.SHOES,
    "shoe": Category.SHOES,
    "sneakers": Category.SHOES,
    "boots": Category.SHOES,
    "sandals": Category.SHOES,
    "heels": Category.SHOES,
    "footwear": Category.SHOES,
    # accessories
    "accessories": Category.ACCESSORIES,
    "bag": Category.ACCESSORIES,
    "handbag": Category.ACCESSORIES,
    "purse": Category.ACCESSORIES,
    "backpack": Category.ACCESSORIES,
    "wallet": Category.ACCESSORIES,
    "belt": Category.ACCESSORIES,
    "hat": Category.ACCESSORIES,
    "scarf": Category.ACCESSORIES,
    "sunglasses": Category.ACCESSORIES,
    # electronics
    "electronics": Category.ELECTRONICS,
    "phone": Category.ELECTRONICS,
    "smartphone": Category.ELECTRONICS,
    "tablet": Category.ELECTRONICS,
    "laptop": Category.ELECTRONICS,
    "computer": Category.ELECTRONICS,
    "tv": Category.ELECTRONICS,
    "television": Category.ELECTRONICS,
    "speaker": Category.ELECTRONICS,
    "headphones": Category.ELECTRONICS,
    "camera": Category.ELECTRONICS,
    "gaming": Category.ELECTRONICS,
    "console": Category.ELECTRONICS,
    "xbox": Category.ELECTRONICS,
    "playstation": Category.ELECTRONICS,
    "nintendo": Category.ELECTRONICS,
    # home & garden
    "home garden": Category.HOME_GARDEN,
    "home": Category.HOME_GARDEN,
    "kitchen": Category.HOME_GARDEN,
    "cookware": Category.HOME_GARDEN,
    "appliance": Category.HOME_GARDEN,
    "furniture": Category.HOME_GARDEN,
    "decor": Category.HOME_GARDEN,
    "lamp": Category.HOME_GARDEN,
    "vase": Category.HOME_GARDEN,
    "garden": Category.HOME_GARDEN,
    # toys & games
    "toys games": Category.TOYS_GAMES,
    "toy": Category.TOYS_GAMES,
    "doll": Category.TOYS_GAMES,
    "action figure": Category.TOYS_GAMES,
    "lego": Category.TOYS_GAMES,
    "puzzle": Category.TOYS_GAMES,
    "board game": Category.TOYS_GAMES,
    "card game": Category.TOYS_GAMES,
    "video game": Category.TOYS_GAMES,
    # sports & outdoors
    "sports outdoors": Category.SPORTS_OUTDOORS,
    "sports": Category.SPORTS_OUTDOORS,
    "fitness": Category.SPORTS_OUTDOORS,
    "exercise": Category.SPORTS_OUTDOORS,
    "gym": Category.SPORTS_OUTDOORS,
    "camping": Category.SPORTS_OUTDOORS,
    "hiking": Category.SPORTS_OUTDOORS,
    "fishing": Category.SPORTS_OUTDOORS,
    "golf": Category.SPORTS_OUTDOORS,
    "tennis": Category.SPORTS_OUTDOORS,
    "basketball": Category.SPORTS_OUTDOORS,
    "football": Category.SPORTS_OUTDOORS,
    "soccer": Category.SPORTS_OUTDOORS,
    "baseball": Category.SPORTS_OUTDOORS,
    # books & media
    "books media": Category.BOOKS_MEDIA,
    "book": Category.BOOKS_MEDIA,
    "novel": Category.BOOKS_MEDIA,
    "textbook": Category.BOOKS_MEDIA,
    "manual": Category.BOOKS_MEDIA,
    "dvd": Category.BOOKS_MEDIA,
    "blu ray": Category.BOOKS_MEDIA,
    "cd": Category.BOOKS_MEDIA,
    "vinyl": Category.BOOKS_MEDIA,
    "record": Category.BOOKS_MEDIA,
    "music": Category.BOOKS_MEDIA,
    "movie": Category.BOOKS_MEDIA,
    "film": Category.BOOKS_MEDIA,
    # jewelry
    "jewelry": Category.JEWELRY,
    "jewellery": Category.JEWELRY,
    "watch": Category.JEWELRY,
    "necklace": Category.JEWELRY,
    "bracelet": Category.JEWELRY,
    "ring": Category.JEWELRY,
    "earrings": Category.JEWELRY,
    # collectibles
    "collectibles": Category.COLLECTIBLES,
    "collectible": Category.COLLECTIBLES,
    "vintage": Category.COLLECTIBLES,
    "antique": Category.COLLECTIBLES,
    "rare": Category.COLLECTIBLES,
    "limited edition": Category.COLLECTIBLES,
    "memorabilia": Category.COLLECTIBLES,
    "trading card": Category.COLLECTIBLES,
    "comic": Category.COLLECTIBLES,
    "figurine": Category.COLLECTIBLES,
    "other": Category.OTHER,
}

# marketplace breadcrumb and category id per canonical category
CATEGORY_PATHS = {
    Category.CLOTHING: ("Clothing, Shoes & Accessories > Clothing", "11450"),
    Category.SHOES: ("Clothing, Shoes & Accessories > Shoes", "93427"),
    Category.ACCESSORIES: ("Clothing, Shoes & Accessories > Accessories", "169291"),
    Category.ELECTRONICS: ("Consumer Electronics", "293"),
    Category.HOME_GARDEN: ("Home & Garden", "11700"),
    Category.TOYS_GAMES: ("Toys & Hobbies", "220"),
    Category.SPORTS_OUTDOORS: ("Sporting Goods", "888"),
    Category.BOOKS_MEDIA: ("Books & Magazines", "267"),
    Category.JEWELRY: ("Jewelry & Watches", "281"),
    Category.COLLECTIBLES: ("Collectibles", "1"),
    Category.OTHER: ("Everything Else", "99"),
}

_SEPARATORS = re.compile(r"[\s_\-/&,]+")


def _clean(raw) -> str:
    if isinstance(raw, (Category, Condition)):
        raw = raw.value
    if not isinstance(raw, str):
        return ""
    return _SEPARATORS.sub(" ", raw).strip().lower()


def _word_candidates(phrase: str):
    # last word first: the head noun of "men's denim jacket" is "jacket"
    for word in reversed(phrase.split(" ")):
        word = word.replace("'s", "").strip("'.")
        if not word:
            continue
        yield word
        if word.endswith("s") and len(word) > 3:
            yield word[:-1]


def normalize_condition(raw) -> Condition:
    phrase = _clean(raw)
    if not phrase:
        return DEFAULT_CONDITION
    for candidate in (phrase, phrase.replace(" ", "_")):
        if candidate in Condition._value2member_map_:
            return Condition(candidate)
    return CONDITION_SYNONYMS.get(phrase, DEFAULT_CONDITION)


def normalize_category(raw) -> Category:
    phrase = _clean(raw)
    if not phrase:
        return DEFAULT_CATEGORY
    canonical = phrase.replace(" ", "_")
    if canonical in Category._value2member_map_:
        return Category(canonical)
    if phrase in CATEGORY_SYNONYMS:
        return CATEGORY_SYNONYMS[phrase]
    for word in _word_candidates(phrase):
        if word in CATEGORY_SYNONYMS:
            return CATEGORY_SYNONYMS[word]
    return DEFAULT_CATEGORY


def category_path(category) -> str:
    return CATEGORY_PATHS[normalize_category(category)][0]


def category_id(category) -> str:
    return CATEGORY_PATHS[normalize_category(category)][1]
