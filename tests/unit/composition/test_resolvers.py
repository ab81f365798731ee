from __future__ import annotations

from typing import Dict, List

import pytest

from strata import InvalidArgumentError
from strata.core.composition.slots import RESOLVER


def make_enemy():
    class Enemy:
        def get_hp(self) -> int:
            return 1

        def take_damage(self, amount: int) -> int:
            return amount

    return Enemy


def _sum_resolver(seen: List[List[str]]):
    def resolver(refinements: Dict, original):
        seen.append(sorted(refinements))

        def combined(self, *args, **kwargs):
            total = original(self, *args, **kwargs)
            for fn in refinements.values():
                total += fn(self, *args, **kwargs)
            return total

        return combined

    return resolver


def test_sum_resolver_sees_current_active_set(chain_composer) -> None:
    Enemy = make_enemy()
    seen: List[List[str]] = []
    bonus = chain_composer.deploy({"name": "Bonus"})
    armour = chain_composer.deploy({"name": "Armour"})
    chain_composer.add_refinement(bonus, Enemy, "get_hp", lambda self, proceed: 10)
    chain_composer.add_refinement(armour, Enemy, "get_hp", lambda self, proceed: 5)
    chain_composer.set_resolution_order(Enemy, "get_hp", [bonus, armour], _sum_resolver(seen))

    chain_composer.activate(bonus)
    chain_composer.activate(armour)
    assert Enemy().get_hp() == 16

    chain_composer.deactivate(armour)
    assert Enemy().get_hp() == 11
    assert seen == [["Armour", "Bonus"], ["Bonus"]]


def test_guard_resolver(chain_composer) -> None:
    Enemy = make_enemy()
    shield = chain_composer.deploy({"name": "Shield"})
    rage = chain_composer.deploy({"name": "Rage"})
    chain_composer.add_refinement(shield, Enemy, "take_damage", lambda self, proceed, amount: 0)
    chain_composer.add_refinement(rage, Enemy, "take_damage", lambda self, proceed, amount: amount * 3)

    def guard(refinements, original):
        if "Shield" in refinements:
            return refinements["Shield"]
        return next(iter(refinements.values()), original)

    chain_composer.set_resolution_order(Enemy, "take_damage", [rage, shield], guard)
    chain_composer.activate(rage)
    assert Enemy().take_damage(4) == 12

    chain_composer.activate(shield)
    assert Enemy().take_damage(4) == 0


def test_contender_proceed_reaches_original(chain_composer) -> None:
    Enemy = make_enemy()
    a = chain_composer.deploy({"name": "A"})
    b = chain_composer.deploy({"name": "B"})
    chain_composer.add_refinement(a, Enemy, "get_hp", lambda self, proceed: proceed() + 100)
    chain_composer.add_refinement(b, Enemy, "get_hp", lambda self, proceed: proceed() + 200)

    def first_match(refinements, original):
        return refinements["A"]

    chain_composer.set_resolution_order(Enemy, "get_hp", [a, b], first_match)
    chain_composer.activate(a)
    chain_composer.activate(b)

    assert Enemy().get_hp() == 101


def test_resolver_slot_and_original_restore(chain_composer) -> None:
    Enemy = make_enemy()
    original = Enemy.__dict__["get_hp"]
    a = chain_composer.deploy({"name": "A"})
    chain_composer.add_refinement(a, Enemy, "get_hp", lambda self, proceed: 2)
    chain_composer.set_resolution_order(Enemy, "get_hp", [a], lambda refinements, orig: refinements["A"])

    chain_composer.activate(a)
    slot = chain_composer.slots.get(Enemy, "get_hp")
    assert slot is not None and slot.kind == RESOLVER
    assert chain_composer.installed_layer(Enemy, "get_hp") is None
    assert Enemy().get_hp() == 2

    chain_composer.deactivate(a)
    assert Enemy.__dict__["get_hp"] is original


def test_non_callable_resolver_is_rejected(chain_composer) -> None:
    Enemy = make_enemy()
    a = chain_composer.deploy({"name": "A"})

    with pytest.raises(InvalidArgumentError):
        chain_composer.set_resolution_order(Enemy, "get_hp", [a], resolver="sum")  # type: ignore[arg-type]
