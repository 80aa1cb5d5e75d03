# product_discovery/services/spell_corrector.py
import logging
import re
from typing import Dict, List

logger = logging.getLogger(__name__)

COMMON_CORRECTIONS: Dict[str, str] = {
    # beauty
    "eclips": "eclipse",
    "cerav": "cerave",
    "cetaphyl": "cetaphil",
    "neutrogina": "neutrogena",
    "moistrizer": "moisturizer",
    "moisturiser": "moisturizer",
    "sunscren": "sunscreen",
    "sunscrean": "sunscreen",
    "niacinimide": "niacinamide",
    "hyaluronik": "hyaluronic",
    "serim": "serum",
    # books
    "atomic habbits": "atomic habits",
    "atomic habbit": "atomic habits",
    "atomic habit": "atomic habits",
    "james claire": "james clear",
    "james cleer": "james clear",
    "habbits": "habits",
    "habbit": "habits",
}


class SpellCorrector:
    """Maps a query to zero or more corrected variants using a static table."""

    def __init__(self, corrections: Dict[str, str] = None):
        self.corrections = {
            wrong.lower(): right.lower()
            for wrong, right in (corrections or COMMON_CORRECTIONS).items()
            if wrong.lower() != right.lower()
        }
        # Longest entries first so "atomic habbit" wins over "habbit"
        alternatives = sorted(self.corrections, key=len, reverse=True)
        self._pattern = re.compile(
            r"\b(" + "|".join(re.escape(a) for a in alternatives) + r")\b"
        ) if alternatives else None

    def corrections_for(self, query: str) -> List[str]:
        if not self._pattern or not query:
            return []

        lowered = " ".join(query.lower().split())
        corrected = self._pattern.sub(lambda m: self.corrections[m.group(1)], lowered)

        if corrected == lowered:
            return []

        logger.info(f"Spell correction: '{query}' -> '{corrected}'")
        return [corrected]


def generate_spell_corrections(query: str) -> List[str]:
    return SpellCorrector().corrections_for(query)
