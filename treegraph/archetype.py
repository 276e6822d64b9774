"""Rule-based build archetype detection from keystones and notables."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .models import Node


class Confidence(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


UNSPECIFIED = "Unspecified"
ENERGY_SHIELD = "Energy Shield"

# Keystone name -> archetype tag, all detected with high confidence.
KEYSTONE_ARCHETYPES: Dict[str, str] = {
    "Resolute Technique": "Attack-based (Non-crit)",
    "Chaos Inoculation": ENERGY_SHIELD,
    "Acrobatics": "Evasion/Dodge",
    "Phase Acrobatics": "Evasion/Dodge",
    "Avatar of Fire": "Fire Conversion",
    "Elemental Overload": "Elemental (Non-crit scaling)",
    "Point Blank": "Projectile Attack",
}

# Only consulted when the keystone's stats do not mention Critical.
LATE_KEYSTONE_ARCHETYPES: Dict[str, str] = {
    "Pain Attunement": "Low Life",
}

CRITICAL_MARKER = "Critical Strike"
LIFE_MARKER = "Life-based"
HYBRID_MARKER = "Hybrid Life/ES"

# Only the first notables are sampled for the life/ES lean.
NOTABLE_SAMPLE = 20
# A lean must beat the other side by more than this many notables.
LEAN_MARGIN = 2


def _keystone_marker(keystone: Node) -> Optional[Tuple[str, Confidence]]:
    tag = KEYSTONE_ARCHETYPES.get(keystone.name)
    if tag is not None:
        return tag, Confidence.HIGH
    if "Critical" in keystone.stat_text():
        return CRITICAL_MARKER, Confidence.MEDIUM
    tag = LATE_KEYSTONE_ARCHETYPES.get(keystone.name)
    if tag is not None:
        return tag, Confidence.HIGH
    return None


def detect_archetype(keystones: Sequence[Node], notables: Sequence[Node]) -> Tuple[str, str]:
    """Infer a build archetype label and a confidence tier.

    Returns:
        ``(archetype, confidence)`` where archetype is a comma-joined list of
        markers, or ``("Unspecified", "Low")`` when nothing matched.
    """
    markers: List[str] = []
    confidence = Confidence.LOW

    for keystone in keystones:
        found = _keystone_marker(keystone)
        if found is None:
            continue
        tag, tier = found
        markers.append(tag)
        if tier is Confidence.HIGH or confidence is Confidence.LOW:
            confidence = tier

    life_count = 0
    es_count = 0
    for notable in notables[:NOTABLE_SAMPLE]:
        text = notable.stat_text().lower()
        if "maximum life" in text:
            life_count += 1
        if "energy shield" in text:
            es_count += 1

    lean = None
    if ENERGY_SHIELD not in markers:
        if life_count > es_count + LEAN_MARGIN:
            lean = LIFE_MARKER
        elif es_count > life_count + LEAN_MARGIN:
            lean = HYBRID_MARKER
    if lean is not None:
        markers.append(lean)
        if confidence is Confidence.LOW:
            confidence = Confidence.MEDIUM

    if not markers:
        return UNSPECIFIED, Confidence.LOW.value
    return ", ".join(markers), confidence.value
