"""Tests for CommandChain value object."""

import pytest

from termbridge.domain.value_objects.command_chain import CommandChain, Connective


class TestParse:
    def test_single_command(self):
        chain = CommandChain.parse("ls -la")
        assert chain.commands == ("ls -la",)
        assert chain.operators == ()
        assert not chain.is_chained

    def test_and_then_or(self):
        chain = CommandChain.parse("a && b || c")
        assert chain.commands == ("a", "b", "c")
        assert chain.operators == (Connective.AND, Connective.OR)

    def test_or_then_and(self):
        chain = CommandChain.parse("a || b && c")
        assert chain.commands == ("a", "b", "c")
        assert chain.operators == (Connective.OR, Connective.AND)

    def test_fragments_are_trimmed(self):
        chain = CommandChain.parse("  cd /tmp   &&pwd ")
        assert chain.commands == ("cd /tmp", "pwd")

    def test_empty_fragments_dropped(self):
        chain = CommandChain.parse("a && && b")
        assert chain.commands == ("a", "b")
        assert chain.operators == (Connective.AND,)

    def test_leading_connective_dropped(self):
        chain = CommandChain.parse("|| a")
        assert chain.commands == ("a",)
        assert chain.operators == ()

    def test_only_connectives(self):
        chain = CommandChain.parse("&& ||")
        assert len(chain) == 0
        assert chain.render() == ""

    def test_quoted_connective_is_split(self):
        # Splitting is lexical; quotes are not honoured.
        chain = CommandChain.parse('echo "x && y"')
        assert chain.commands == ('echo "x', 'y"')


class TestStructure:
    def test_operator_count_must_match(self):
        with pytest.raises(ValueError, match="needs 1 operators"):
            CommandChain(("a", "b"), ())

    def test_empty_chain_cannot_have_operators(self):
        with pytest.raises(ValueError):
            CommandChain((), (Connective.AND,))

    def test_preceding_and_following(self):
        chain = CommandChain.parse("a && b || c")
        assert chain.preceding(0) is None
        assert chain.preceding(1) is Connective.AND
        assert chain.preceding(2) is Connective.OR
        assert chain.following(0) is Connective.AND
        assert chain.following(1) is Connective.OR
        assert chain.following(2) is None

    def test_render_normalizes_spacing(self):
        chain = CommandChain.parse("a&&b||c")
        assert chain.render() == "a && b || c"
        assert str(chain) == "a && b || c"

    def test_frozen(self):
        chain = CommandChain.parse("a")
        with pytest.raises(AttributeError):
            chain.commands = ("b",)

    def test_connective_symbols(self):
        assert Connective.AND.symbol == "&&"
        assert Connective.OR.symbol == "||"
