"""Tests for LogicEngine.resolve_string and the text pipeline passes."""

import logging

import pytest

from narrative_forge import FlagStore, FragmentLibrary, LogicEngine
from narrative_forge.logic import EngineSettings, Propagation, WiringError


def make_engine(flags=None, fragments=None, settings=None):
    """Create an engine over the main container with a few test actions."""
    store = FlagStore(flags={"main": flags or {}})
    engine = LogicEngine(store, FragmentLibrary(store, fragments or {}), settings)
    engine.calls = []
    engine.register_action("music", lambda payload: engine.calls.append(("music", payload)))
    engine.register_action("quest", lambda payload: engine.calls.append(("quest", payload)), event_delayed=True)
    return engine


class TestScenarios:
    """End-to-end resolution examples."""

    def test_placeholder(self):
        """A registered placeholder is substituted."""
        engine = make_engine()
        engine.register_placeholder("name", lambda: "World")

        assert engine.resolve_string("Hello |name|!").output == "Hello World!"

    def test_if_else_on_flags(self):
        """Branches follow flag values."""
        text = "if{gold>10}Rich!else{}Poor.fi{}"

        assert make_engine({"gold": 20}).resolve_string(text).output == "Rich!"
        assert make_engine({"gold": 5}).resolve_string(text).output == "Poor."

    def test_immediate_action(self):
        """An immediate action fires during resolution and is reported."""
        engine = make_engine()
        resolution = engine.resolve_string('{"music": "theme1"}Hello')

        assert resolution.output == "Hello"
        assert resolution.actions.to_dict() == {"music": "theme1"}
        assert engine.calls == [("music", "theme1")]

    def test_delayed_action(self):
        """A delayed action is reported but not invoked."""
        engine = make_engine()
        resolution = engine.resolve_string('{"quest": "start"}Go forth.')

        assert engine.calls == []
        assert resolution.actions.to_dict() == {"quest": "start"}
        assert engine.get_delayed_actions(resolution.actions).to_dict() == {"quest": "start"}

    def test_idempotent(self):
        """Resolving the same static text twice gives the same output."""
        engine = make_engine({"gold": 3})
        engine.register_placeholder("name", lambda: "Aria")
        text = "|name|: if{gold>1}*Welcome* back.else{}Who are you?fi{}"

        first = engine.resolve_string(text).output
        assert engine.resolve_string(text).output == first


class TestPlaceholders:
    """Test |placeholder| substitution."""

    def test_arguments(self):
        """Arguments are passed as raw strings."""
        engine = make_engine()
        engine.register_placeholder("mood", lambda who, mood: f"{who} is {mood}")

        assert engine.resolve_string("|mood(Aria, happy)|").output == "Aria is happy"

    def test_values_are_stringified(self):
        """Numbers and booleans render the way authors write them."""
        engine = make_engine()
        engine.register_placeholder("count", lambda: 3.0)
        engine.register_placeholder("open", lambda: True)

        assert engine.resolve_string("|count| doors, open: |open|").output == "3 doors, open: true"

    def test_unregistered_left_literal(self, caplog):
        """Unknown placeholders are logged and left as written."""
        engine = make_engine()

        with caplog.at_level(logging.ERROR):
            output = engine.resolve_string("Hello |stranger|").output

        assert output == "Hello |stranger|"
        assert "stranger" in caplog.text

    def test_wrong_argument_count_left_literal(self, caplog):
        """A placeholder called with arguments it does not take is left as written."""
        engine = make_engine()
        engine.register_placeholder("name", lambda: "Aria")

        with caplog.at_level(logging.ERROR):
            output = engine.resolve_string("Hello |name(x)|!").output

        assert output == "Hello |name(x)|!"
        assert "name(x)" in caplog.text

    def test_failing_placeholder_left_literal(self, caplog):
        """Errors raised by the host callable are logged and the text is kept."""
        engine = make_engine()
        characters = {"alice": "Alice"}
        engine.register_placeholder("char", lambda key: characters[key])

        with caplog.at_level(logging.ERROR):
            output = engine.resolve_string("Hi |char(bob)|, |char(alice)|").output

        assert output == "Hi |char(bob)|, Alice"
        assert "char(bob)" in caplog.text

    def test_failing_condition_takes_else(self, caplog):
        """A condition callable that cannot be called skips its branch."""
        engine = make_engine()
        engine.register_condition("_is_night", lambda: True)

        with caplog.at_level(logging.ERROR):
            output = engine.resolve_string("if{_is_night(x)=true}Dark.else{}Light.fi{}").output

        assert output == "Light."
        assert "_is_night(x)" in caplog.text

    def test_placeholder_inside_condition(self):
        """Placeholders resolve before branches are evaluated."""
        engine = make_engine({"gold": 20})
        engine.register_placeholder("threshold", lambda: 10)

        assert engine.resolve_string("if{gold>|threshold|}Rich fi{}").output == "Rich "


class TestTemplates:
    """Test |$template| substitution."""

    def test_current_container(self):
        """$name reads from the current container and is resolved recursively."""
        engine = make_engine(fragments={"main": {"$greeting": "Hello |name|!"}})
        engine.register_placeholder("name", lambda: "World")

        assert engine.resolve_string("|$greeting| How are you?").output == "Hello World! How are you?"

    def test_named_container(self):
        """$container.name reads from that container."""
        engine = make_engine(fragments={"cave": {"$intro": "It is dark."}})
        assert engine.resolve_string("|$cave.intro|").output == "It is dark."

    def test_missing_template_left_literal(self, caplog):
        """A missing fragment is logged and left as written."""
        engine = make_engine()

        with caplog.at_level(logging.ERROR):
            output = engine.resolve_string("A |$nowhere| B").output

        assert output == "A |$nowhere| B"
        assert "$nowhere" in caplog.text

    def test_template_actions_collected(self):
        """Actions inside a template run and are merged into the result."""
        engine = make_engine(fragments={"main": {"$door": '{"music": "creak"}The door opens.'}})
        resolution = engine.resolve_string("|$door| You step inside.")

        assert resolution.output == "The door opens. You step inside."
        assert resolution.actions.to_dict() == {"music": "creak"}
        assert engine.calls == [("music", "creak")]

    def test_template_redirect_propagates(self):
        """A redirect inside a template redirects the whole fragment."""
        engine = make_engine(fragments={"main": {"$trap": '{"redirect": "cave.pit"}'}})
        resolution = engine.resolve_string('Careful |$trap| {"music": "calm"}')

        assert resolution.redirected is True
        assert resolution.output == ""
        assert resolution.actions.to_dict() == {"redirect": "cave.pit"}
        assert engine.calls == []

    def test_recursion_is_bounded(self, caplog):
        """Self-referencing templates stop at the configured depth."""
        engine = make_engine(
            fragments={"main": {"$loop": "again |$loop|"}}, settings=EngineSettings(max_template_depth=3)
        )

        with caplog.at_level(logging.ERROR):
            output = engine.resolve_string("|$loop|").output

        assert output == "again again again |$loop|"
        assert "nesting deeper than 3" in caplog.text


class TestMarkup:
    """Test code escaping, speaker detection and styles."""

    def test_code_is_escaped(self):
        """Markup inside [code] is escaped and never interpreted."""
        engine = make_engine()
        output = engine.resolve_string("[code]{x} |y|[/code]").output

        assert output == '<span class="output_code">&#123;x&#125; &#124;y&#124;</span>'
        assert engine.calls == []

    def test_speaker(self):
        """A leading SpeakerId: sets the talking character."""
        engine = make_engine()
        resolution = engine.resolve_string("Barkeep: Welcome!")

        assert resolution.output == "Welcome!"
        assert resolution.speaker == "Barkeep"
        assert engine.talking_character_id == "Barkeep"

        engine.resolve_string("The fire crackles.")
        assert engine.talking_character_id is None

    def test_styles(self):
        """*x* is bold and **x** is italic."""
        output = make_engine().resolve_string("A *bold* and **italic** word").output
        assert output == "A <b>bold</b> and <i>italic</i> word"

    def test_custom_tags(self):
        """Style tags come from the settings."""
        engine = make_engine(settings=EngineSettings(bold_tag="strong", italic_tag="em"))
        assert engine.resolve_string("*a* **b**").output == "<strong>a</strong> <em>b</em>"


class TestEngine:
    """Test the engine facade."""

    def test_redirect(self):
        """A redirect returns empty output and keeps the previous speaker."""
        engine = make_engine()
        engine.resolve_string("Barkeep: Hi")
        resolution = engine.resolve_string('Ignored {"redirect": "cave.entrance"} text')

        assert resolution.redirected is True
        assert resolution.output == ""
        assert resolution.actions["redirect"] == "cave.entrance"
        assert engine.talking_character_id == "Barkeep"

    def test_unmatched_brace_truncates(self, caplog):
        """Output stops at an unmatched brace and nothing raises."""
        engine = make_engine()

        with caplog.at_level(logging.ERROR):
            resolution = engine.resolve_string('Hello {"music": "a"}there {oops')

        assert resolution.output == "Hello there "
        assert engine.calls == [("music", "a")]

    def test_dry_run(self):
        """no_execute_actions collects without invoking."""
        engine = make_engine()
        resolution = engine.resolve_string('{"music": "theme1"}Hi', no_execute_actions=True)

        assert resolution.actions.to_dict() == {"music": "theme1"}
        assert engine.calls == []

    def test_flag_action(self):
        """The built-in flag action mutates flag storage."""
        engine = make_engine({"gold": 1})
        engine.register_flag_action()
        engine.resolve_string('{"flag": "gold>5, met_barkeep=1"}Paid.')

        assert engine.flags.get("gold") == 6
        assert engine.flags.get("met_barkeep") == 1

    def test_resolve_before_can_stop(self):
        """A resolve_before callback returning STOP cancels resolution."""
        engine = make_engine()
        engine.triggers.on("resolve_before", lambda text: Propagation.STOP)
        resolution = engine.resolve_string('{"music": "a"}Hello')

        assert resolution.output == ""
        assert len(resolution.actions) == 0
        assert engine.calls == []

    def test_resolve_before_continue(self):
        """Callbacks returning None let resolution proceed."""
        engine = make_engine()
        seen = []
        engine.triggers.on("resolve_before", seen.append)

        assert engine.resolve_string("Hi").output == "Hi"
        assert seen == ["Hi"]

    def test_condition_lookup_fails_loudly(self):
        """Direct condition lookups and evaluations raise on unknown conditions."""
        engine = make_engine()

        with pytest.raises(WiringError):
            engine.get_condition_value("_unknown")
        with pytest.raises(WiringError):
            engine.perform_conditional_evaluation({"if": "_unknown=1"})

    def test_perform_conditional_evaluation(self):
        """The engine exposes the evaluator's clause semantics."""
        engine = make_engine({"a": 1, "b": 3})

        assert engine.perform_conditional_evaluation() is True
        assert engine.perform_conditional_evaluation({"if": "a=1, b=2"}) is False
        assert engine.perform_conditional_evaluation({"ifOr": "a=1, b=2"}) is True

    def test_reload_actions(self):
        """Reload actions are the on_game_load subset."""
        engine = make_engine()
        engine.register_action("weather", lambda payload: engine.calls.append(("weather", payload)), on_game_load=True)
        resolution = engine.resolve_string('{"weather": "rain", "music": "a"}Storm.', no_execute_actions=True)

        engine.resolve_actions(engine.get_reload_actions(resolution.actions))

        assert engine.calls == [("weather", "rain")]

    def test_fix_json(self):
        """fix_json is available on the engine."""
        assert LogicEngine.fix_json("{a: 1,}") == '{"a": 1}'
