"""Tests for build archetype detection."""

from treegraph.archetype import detect_archetype
from treegraph.models import Node


def keystone(name, *stats):
    return Node("1", name=name, stats=stats, is_keystone=True)


def notable(index, *stats):
    return Node(str(index), name=f"Notable {index}", stats=stats, is_notable=True)


def life_notables(count, start=0):
    return [notable(start + i, "+30 to maximum Life") for i in range(count)]


def es_notables(count, start=100):
    return [notable(start + i, "12% increased maximum Energy Shield") for i in range(count)]


def test_nothing_matches():
    assert detect_archetype([], []) == ("Unspecified", "Low")


def test_known_keystone_is_high_confidence():
    assert detect_archetype([keystone("Resolute Technique")], []) == ("Attack-based (Non-crit)", "High")


def test_multiple_keystones_join_in_order():
    archetype, confidence = detect_archetype(
        [keystone("Point Blank"), keystone("Avatar of Fire")], [],
    )
    assert archetype == "Projectile Attack, Fire Conversion"
    assert confidence == "High"


def test_critical_keystone_is_medium():
    crit = keystone("Perfect Agony", "Modifiers to Critical Strike Multiplier also apply to Damage over Time")
    assert detect_archetype([crit], []) == ("Critical Strike", "Medium")


def test_critical_never_downgrades_high():
    crit = keystone("Perfect Agony", "Critical Strike Multiplier applies")
    archetype, confidence = detect_archetype([keystone("Acrobatics"), crit], [])
    assert archetype == "Evasion/Dodge, Critical Strike"
    assert confidence == "High"


def test_pain_attunement_is_low_life():
    assert detect_archetype([keystone("Pain Attunement", "30% more Spell Damage")], []) == ("Low Life", "High")


def test_critical_stats_win_over_pain_attunement():
    """The critical stat check runs before the Pain Attunement name check."""
    pain = keystone("Pain Attunement", "30% more Critical Strike Chance while on Low Life")
    assert detect_archetype([pain], []) == ("Critical Strike", "Medium")


def test_life_lean_needs_margin():
    """Life must beat ES by more than two notables."""
    assert detect_archetype([], life_notables(3) + es_notables(1))[0] == "Unspecified"
    assert detect_archetype([], life_notables(4) + es_notables(1)) == ("Life-based", "Medium")


def test_es_lean():
    assert detect_archetype([], es_notables(3)) == ("Hybrid Life/ES", "Medium")


def test_only_first_twenty_notables_count():
    notables = [notable(i) for i in range(20)] + life_notables(5, start=500)
    assert detect_archetype([], notables)[0] == "Unspecified"


def test_chaos_inoculation_suppresses_lean():
    archetype, confidence = detect_archetype([keystone("Chaos Inoculation")], es_notables(6))
    assert archetype == "Energy Shield"
    assert confidence == "High"


def test_lean_keeps_high_confidence():
    archetype, confidence = detect_archetype([keystone("Resolute Technique")], life_notables(5))
    assert archetype == "Attack-based (Non-crit), Life-based"
    assert confidence == "High"
