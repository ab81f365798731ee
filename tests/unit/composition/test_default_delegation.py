"""Default ("original") delegation: the most recently activated layer wins."""
from __future__ import annotations

from typing import List

import pytest

from strata import InvalidArgumentError, Proceed


def make_enemy():
    class Enemy:
        def get_hp(self) -> int:
            return 1

        def damage(self, amount: int, *, critical: bool = False) -> int:
            return amount * (2 if critical else 1)

    return Enemy


def test_most_recent_activation_wins_and_proceed_reaches_original(composer) -> None:
    Enemy = make_enemy()
    calls: List[str] = []

    def refine(label: str):
        def impl(self, proceed):
            calls.append(label)
            return proceed() + 10

        return impl

    a = composer.deploy({"name": "A"})
    b = composer.deploy({"name": "B"})
    composer.add_refinement(a, Enemy, "get_hp", refine("A"))
    composer.add_refinement(b, Enemy, "get_hp", refine("B"))

    composer.activate(a)
    composer.activate(b)

    assert Enemy().get_hp() == 11
    assert calls == ["B"]
    assert composer.installed_layer(Enemy, "get_hp") is b


def test_deactivating_the_winner_falls_back_to_next_most_recent(composer) -> None:
    Enemy = make_enemy()
    original = Enemy.__dict__["get_hp"]
    a = composer.deploy({"name": "A"})
    b = composer.deploy({"name": "B"})
    composer.add_refinement(a, Enemy, "get_hp", lambda self, proceed: 2)
    composer.add_refinement(b, Enemy, "get_hp", lambda self, proceed: 3)
    composer.activate(a)
    composer.activate(b)

    composer.deactivate(b)
    assert Enemy().get_hp() == 2
    assert composer.installed_layer(Enemy, "get_hp") is a

    composer.deactivate(a)
    assert Enemy.__dict__["get_hp"] is original
    assert composer.installed_layer(Enemy, "get_hp") is None


def test_reactivation_moves_layer_to_front(composer) -> None:
    Enemy = make_enemy()
    a = composer.deploy({"name": "A"})
    b = composer.deploy({"name": "B"})
    composer.add_refinement(a, Enemy, "get_hp", lambda self, proceed: 2)
    composer.add_refinement(b, Enemy, "get_hp", lambda self, proceed: 3)
    composer.activate(a)
    composer.activate(b)

    composer.deactivate(a)
    composer.activate(a)

    assert Enemy().get_hp() == 2


def test_proceed_forwards_or_replaces_arguments(composer) -> None:
    Enemy = make_enemy()
    seen: List[Proceed] = []

    def forward(self, proceed, amount, **kwargs):
        seen.append(proceed)
        return proceed()

    def doubled(self, proceed, amount, **kwargs):
        return proceed(amount * 2, **kwargs)

    fwd = composer.deploy({"name": "Forward"})
    dbl = composer.deploy({"name": "Doubled"})
    composer.add_refinement(fwd, Enemy, "damage", forward)
    composer.add_refinement(dbl, Enemy, "damage", doubled)

    composer.activate(fwd)
    assert Enemy().damage(5, critical=True) == 10
    assert seen[0].args == (5,) and seen[0].kwargs == {"critical": True}
    assert seen[0].layer is fwd

    composer.activate(dbl)
    assert Enemy().damage(5, critical=True) == 20


def test_refined_subclass_inherits_original_from_base(composer) -> None:
    Enemy = make_enemy()

    class Boss(Enemy):
        pass

    spec = composer.deploy({"name": "Armoured"})
    composer.add_refinement(spec, Boss, "get_hp", lambda self, proceed: proceed() + 100)
    composer.activate(spec)

    assert Boss().get_hp() == 101
    assert Enemy().get_hp() == 1

    composer.deactivate(spec)
    assert "get_hp" not in Boss.__dict__
    assert Boss().get_hp() == 1


def test_instance_target_is_refined_alone(composer) -> None:
    Enemy = make_enemy()
    special, plain = Enemy(), Enemy()
    spec = composer.deploy({"name": "Elite"})
    composer.add_refinement(spec, special, "get_hp", lambda self, proceed: proceed() * 5)
    composer.activate(spec)

    assert special.get_hp() == 5
    assert plain.get_hp() == 1

    composer.deactivate(spec)
    assert "get_hp" not in vars(special)


def test_refinement_added_to_active_layer_installs_immediately(composer) -> None:
    Enemy = make_enemy()
    spec = composer.deploy({"name": "Hard"})
    composer.activate(spec)

    composer.add_refinement(spec, Enemy, "get_hp", lambda self, proceed: 3)

    assert Enemy().get_hp() == 3


def test_re_registering_replaces_live_refinement(composer) -> None:
    Enemy = make_enemy()
    spec = composer.deploy({"name": "Hard"})
    composer.add_refinement(spec, Enemy, "get_hp", lambda self, proceed: 3)
    composer.activate(spec)

    composer.add_refinement(spec, Enemy, "get_hp", lambda self, proceed: 4)

    assert Enemy().get_hp() == 4


def test_multiple_targets_share_one_refinement(composer) -> None:
    Enemy = make_enemy()

    class Turret:
        def get_hp(self) -> int:
            return 7

    spec = composer.deploy({"name": "Fragile"})
    added = composer.add_refinement(spec, [Enemy, Turret], "get_hp", lambda self, proceed: proceed() - 1)
    composer.activate(spec)

    assert len(added) == 2
    assert (Enemy().get_hp(), Turret().get_hp()) == (0, 6)


def test_round_trip_restores_identical_original(composer) -> None:
    Enemy = make_enemy()
    original = Enemy.__dict__["get_hp"]
    spec = composer.deploy({"name": "Hard"})
    composer.add_refinement(spec, Enemy, "get_hp", lambda self, proceed: 3)

    composer.activate(spec)
    assert composer.installed_layer(Enemy, "get_hp") is spec
    composer.deactivate(spec)

    assert Enemy.__dict__["get_hp"] is original
    assert composer.original_of(Enemy, "get_hp").raw is original


def test_installed_dispatcher_keeps_method_name(composer) -> None:
    Enemy = make_enemy()

    def get_hp(self, proceed):
        """Hard mode hit points."""
        return 3

    spec = composer.deploy({"name": "Hard"})
    composer.add_refinement(spec, Enemy, "get_hp", get_hp)
    composer.activate(spec)

    assert Enemy.get_hp.__name__ == "get_hp"
    assert Enemy.get_hp.__qualname__ == "Hard.get_hp"
    assert Enemy.get_hp.__doc__ == "Hard mode hit points."


def test_refinement_of_and_original_of(composer) -> None:
    Enemy = make_enemy()
    spec = composer.deploy({"name": "Hard"})

    def impl(self, proceed):
        return 3

    assert composer.original_of(Enemy, "get_hp") is None
    composer.add_refinement(spec, Enemy, "get_hp", impl)

    assert composer.refinement_of(spec, Enemy, "get_hp") is impl
    assert composer.refinement_of("Hard", Enemy, "damage") is None
    assert not composer.original_of(Enemy, "get_hp").inherited


@pytest.mark.parametrize(
    "targets, method, impl",
    [
        (None, "get_hp", lambda self, proceed: 1),
        ([], "get_hp", lambda self, proceed: 1),
        (object, "", lambda self, proceed: 1),
        (object, "get_hp", "not callable"),
        (42, "real", lambda self, proceed: 1),
    ],
)
def test_add_refinement_rejects_bad_arguments(composer, targets, method, impl) -> None:
    spec = composer.deploy({"name": "Hard"})

    with pytest.raises(InvalidArgumentError):
        composer.add_refinement(spec, targets, method, impl)


def test_unnamed_layer_uses_generated_name(composer) -> None:
    Enemy = make_enemy()
    spec = composer.deploy({})
    composer.add_refinement(spec, Enemy, "get_hp", lambda self, proceed: 3)
    composer.activate(spec)

    assert composer.layer_name(spec) == "Layer_1"
    assert Enemy.get_hp.__qualname__ == "Layer_1.get_hp"
