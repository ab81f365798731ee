from __future__ import annotations

import pytest

from strata import InvalidArgumentError, MissingOriginalError
from strata.core.registries.originals import ABSENT, OriginalRegistry, own_slot


def _enemy_classes():
    class Enemy:
        def get_hp(self) -> int:
            return 1

        @staticmethod
        def kind() -> str:
            return "enemy"

    class Boss(Enemy):
        pass

    return Enemy, Boss


def test_capture_records_raw_slot_value() -> None:
    Enemy, _ = _enemy_classes()
    registry = OriginalRegistry()

    entry = registry.capture(Enemy, "get_hp")

    assert entry.raw is Enemy.__dict__["get_hp"]
    assert not entry.inherited
    assert registry.has(Enemy, "get_hp")
    assert len(registry) == 1


def test_capture_is_write_once() -> None:
    Enemy, _ = _enemy_classes()
    registry = OriginalRegistry()
    original = Enemy.__dict__["get_hp"]
    first = registry.capture(Enemy, "get_hp")

    Enemy.get_hp = lambda self: 99
    second = registry.capture(Enemy, "get_hp")

    assert second is first
    assert second.raw is original


def test_inherited_method_is_recorded_as_absent() -> None:
    Enemy, Boss = _enemy_classes()
    registry = OriginalRegistry()

    entry = registry.capture(Boss, "get_hp")

    assert entry.raw is ABSENT
    assert entry.inherited
    assert entry.bind(Boss())() == 1


def test_restore_of_inherited_slot_deletes_override() -> None:
    _, Boss = _enemy_classes()
    registry = OriginalRegistry()
    entry = registry.capture(Boss, "get_hp")
    Boss.get_hp = lambda self: 5

    entry.restore()

    assert "get_hp" not in Boss.__dict__
    assert Boss().get_hp() == 1


def test_restore_puts_back_identical_object() -> None:
    Enemy, _ = _enemy_classes()
    registry = OriginalRegistry()
    original = Enemy.__dict__["get_hp"]
    entry = registry.capture(Enemy, "get_hp")
    Enemy.get_hp = lambda self: 5

    entry.restore()

    assert Enemy.__dict__["get_hp"] is original


def test_bind_handles_staticmethods() -> None:
    Enemy, _ = _enemy_classes()
    entry = OriginalRegistry().capture(Enemy, "kind")

    assert entry.bind(Enemy())() == "enemy"


def test_instance_target_binds_class_method_to_instance() -> None:
    Enemy, _ = _enemy_classes()
    enemy = Enemy()
    entry = OriginalRegistry().capture(enemy, "get_hp")

    assert entry.inherited
    assert entry.bind(enemy)() == 1


def test_bind_without_any_definition_raises() -> None:
    Enemy, _ = _enemy_classes()
    entry = OriginalRegistry().capture(Enemy, "shield")

    with pytest.raises(MissingOriginalError) as excinfo:
        entry.bind(Enemy())
    assert excinfo.value.context["method"] == "shield"


def test_require_missing_entry_raises() -> None:
    Enemy, _ = _enemy_classes()

    with pytest.raises(MissingOriginalError, match="Enemy.get_hp"):
        OriginalRegistry().require(Enemy, "get_hp")


def test_own_slot_rejects_objects_without_namespace() -> None:
    with pytest.raises(InvalidArgumentError):
        own_slot(42, "real")


def test_reset_forgets_everything() -> None:
    Enemy, Boss = _enemy_classes()
    registry = OriginalRegistry()
    registry.capture(Enemy, "get_hp")
    registry.capture(Boss, "get_hp")

    assert [e.target for e in registry] == [Enemy, Boss]
    registry.reset()
    assert len(registry) == 0
    assert registry.get(Enemy, "get_hp") is None
