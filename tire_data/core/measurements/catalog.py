"""
Known tire brands and models offered to clients as picklists.

Anything not listed is entered as "other" plus a free-text value.
"""

OTHER = "other"

TIRE_MODELS: dict[str, list[str]] = {
    "Michelin": ["Pilot Sport 4S", "Pilot Sport Cup 2", "Primacy 4"],
    "Continental": ["SportContact 7", "EcoContact 6", "PremiumContact 6"],
    "Bridgestone": ["Potenza Sport", "Turanza T005", "Weather Control A005"],
    "Goodyear": ["Eagle F1", "Efficient Grip", "Vector 4Seasons"],
    "Pirelli": ["P Zero", "Cinturato P7", "Scorpion Verde"],
    "Dunlop": ["Sport Maxx RT2", "SP Sport Maxx", "SP Winter Sport"],
    "Hankook": ["Ventus S1 Evo3", "Kinergy Eco2", "Winter i*cept"],
    "Yokohama": ["Advan Sport V105", "BluEarth-GT", "Geolandar"],
}

TIRE_BRANDS: list[str] = list(TIRE_MODELS)


def models_for_brand(brand: str) -> list[str]:
    """Models known for a brand; empty for unknown brands."""
    return list(TIRE_MODELS.get(brand, []))


def resolve_choice(selected: str, custom: str | None) -> str:
    """
    Collapse a picklist value and its free-text companion.

    "other" means the user typed the value themselves.
    """
    if selected == OTHER:
        return (custom or "").strip()
    return (selected or "").strip()
