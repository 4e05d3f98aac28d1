"""Tests for host state and world loading."""

import json
import logging

import pytest

from narrative_forge.logic.errors import AuthoringError, RegistrationError
from narrative_forge.state import FlagStore, FragmentLibrary
from narrative_forge.world import WorldError, build_engine, load_world


class TestFlagStore:
    """Test container-scoped flags."""

    def test_unknown_flag_is_zero(self):
        """Flags that were never set read as 0."""
        assert FlagStore().get("gold") == 0

    def test_scoped_access(self):
        """container.flag addresses another container."""
        store = FlagStore(current="tavern", flags={"tavern": {"gold": 5}, "cave": {"gold": 1}})

        assert store.get("gold") == 5
        assert store.get("cave.gold") == 1
        store.set("cave.gold", 3)
        assert store.get("cave.gold") == 3
        assert store.get("gold") == 5

    def test_apply_string(self):
        """= sets, > adds and < subtracts."""
        store = FlagStore(flags={"main": {"gold": 10, "hp": 5}})
        store.apply("gold<3, hp>2, met=1")

        assert store.get("gold") == 7
        assert store.get("hp") == 7
        assert store.get("met") == 1

    def test_apply_mapping(self):
        """A mapping sets every key."""
        store = FlagStore()
        store.apply({"gold": 4, "cave.visited": 1})

        assert store.get("gold") == 4
        assert store.get("cave.visited") == 1

    def test_apply_rejects_non_numbers(self, caplog):
        """Non-numeric values are logged and skipped."""
        store = FlagStore()

        with caplog.at_level(logging.ERROR):
            store.apply("gold=lots, hp=3, broken")

        assert store.get("gold") == 0
        assert store.get("hp") == 3
        assert "Flags must be numbers" in caplog.text
        assert 'Invalid flag format: "broken"' in caplog.text

    def test_apply_rejects_empty_key(self, caplog):
        """Operations without a key are logged and skipped."""
        store = FlagStore()

        with caplog.at_level(logging.ERROR):
            store.apply("=5, gold>2")

        assert store.to_dict()["flags"]["main"] == {"gold": 2}
        assert 'Invalid flag format: "=5"' in caplog.text

    def test_integral_values_stay_int(self):
        """Whole numbers are stored as ints."""
        store = FlagStore()
        store.apply("gold=5")

        assert isinstance(store.get("gold"), int)

    def test_to_dict(self):
        """The snapshot holds the current container and all flags."""
        store = FlagStore(current="tavern", flags={"tavern": {"gold": 5}})
        assert store.to_dict() == {"current": "tavern", "flags": {"tavern": {"gold": 5}}}


class TestFragmentLibrary:
    """Test named fragments."""

    def test_current_container(self):
        """Without a container the flag store's current container is used."""
        store = FlagStore(current="tavern")
        library = FragmentLibrary(store, {"tavern": {"$hello": "Hi"}})

        assert library.get("$hello") == "Hi"

    def test_named_container(self):
        """An explicit container is used as given."""
        library = FragmentLibrary()
        library.add("cave", "$intro", "Dark.")

        assert library.get("$intro", "cave") == "Dark."

    def test_missing_fragment(self):
        """Unknown fragments and containers are authoring errors."""
        library = FragmentLibrary(FlagStore(), {"main": {}})

        with pytest.raises(AuthoringError, match="not found in container main"):
            library.get("$nothing")
        with pytest.raises(AuthoringError, match="Container cave not found"):
            library.get("$nothing", "cave")


class TestWorld:
    """Test building engines from world files."""

    def test_build_engine(self):
        """Flags, fragments, placeholders and conditions come from the world."""
        engine = build_engine(
            {
                "current": "tavern",
                "flags": {"tavern": {"gold": 20}},
                "fragments": {"tavern": {"$greeting": "Barkeep: Welcome, |name|!"}},
                "placeholders": {"name": "Aria"},
                "conditions": {"_is_night": True},
                "settings": {"max_template_depth": 2, "unknown_setting": 1},
            }
        )

        resolution = engine.resolve_string("|$greeting| if{_is_night=true, gold>10}Stay the night?fi{}")

        assert resolution.output == "Welcome, Aria! Stay the night?"
        assert resolution.speaker is None
        assert engine.settings.max_template_depth == 2

    def test_flag_action_registered(self):
        """World engines always carry the flag action."""
        engine = build_engine()
        engine.resolve_string('{"flag": "gold=3"}')

        assert engine.flags.get("gold") == 3

    def test_bad_condition_name(self):
        """World conditions still need the sigil."""
        with pytest.raises(RegistrationError):
            build_engine({"conditions": {"is_night": True}})

    def test_load_world(self, tmp_path):
        """World files are JSON objects."""
        path = tmp_path / "world.json"
        path.write_text(json.dumps({"current": "cave"}), encoding="utf-8")

        assert load_world(path) == {"current": "cave"}

    def test_load_world_rejects_bad_json(self, tmp_path):
        """Invalid JSON and non-objects are rejected."""
        broken = tmp_path / "broken.json"
        broken.write_text("{nope", encoding="utf-8")
        listed = tmp_path / "list.json"
        listed.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(WorldError):
            load_world(broken)
        with pytest.raises(WorldError):
            load_world(listed)
