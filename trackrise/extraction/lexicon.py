"""
Keyword lexicons for the extraction engine.

Each table is an ordered list of ``(keywords, category_id)``. Lookups walk
the list in order and stop at the first row with a keyword contained in
the text, so row order decides ties. Matching is case-insensitive
substring matching: "pay" matches "payment" and "payday", and "rent" also
matches "current".

Voice and receipt text use separate tables. Receipts are shop printouts,
so their table is about what was bought rather than how it was said.
"""

Lexicon = list[tuple[tuple[str, ...], str]]

# Words that make spoken text income rather than expense
INCOME_SIGNALS: tuple[str, ...] = ("sold", "received", "earned", "income", "revenue", "profit")

FREE_TEXT_INCOME_CATEGORIES: Lexicon = [
    (("tomato", "vegetable", "fruit", "maize", "produce", "crop", "harvest"), "sales"),
    (("service", "repair", "work", "labor"), "services"),
    (("loan", "borrow", "credit"), "loans"),
]

FREE_TEXT_EXPENSE_CATEGORIES: Lexicon = [
    (("stock", "inventory", "goods", "purchase", "buy"), "inventory"),
    (("rent", "lease"), "rent"),
    (("salary", "wage", "pay", "staff"), "salaries"),
    (("transport", "travel", "fuel", "bus", "matatu", "boda"), "transport"),
    (("electricity", "water", "power", "utility"), "utilities"),
]

RECEIPT_CATEGORIES: Lexicon = [
    (
        ("food", "grocery", "supermarket", "fruit", "vegetable",
         "tomato", "onion", "rice", "flour", "sugar"),
        "inventory",
    ),
    (("transport", "taxi", "boda", "bus", "matatu", "travel"), "transport"),
    (("rent", "lease"), "rent"),
    (("electricity", "water", "utility", "power"), "utilities"),
]


def contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def match_category(text: str, lexicon: Lexicon, default: str) -> str:
    """First category in ``lexicon`` with a keyword found in ``text``."""
    lowered = text.lower()
    for keywords, category_id in lexicon:
        if any(keyword in lowered for keyword in keywords):
            return category_id
    return default
