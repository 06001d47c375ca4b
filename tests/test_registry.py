"""Tests for the parser registry."""

import pytest

from skillc.errors import DetectionError, ParseError
from skillc.instructions.models import SpecSource
from skillc.ir.models import IntermediateRepr, Operation
from skillc.ir.registry import Registry, Severity, SpecParser, ValidationWarning, default_registry


class FakeParser(SpecParser):
    """Claims sources of one type and returns one operation per source."""

    def __init__(self, name: str, fail_parse: bool = False):
        self.name = name
        self.fail_parse = fail_parse
        self.fetched: list[str] = []

    def detect(self, source):
        return source.type == self.name

    def fetch(self, source):
        self.fetched.append(source.path)
        return source.path.encode()

    def parse(self, data, source):
        if self.fail_parse:
            raise ParseError(source, "broken")
        return IntermediateRepr(
            operations=[Operation(id=data.decode())],
            metadata={"last": self.name},
        )

    def validate(self, ir):
        return [ValidationWarning(self.name, f"checked {ir.operations[0].id}")]


def test_detect_first_match_wins():
    registry = Registry()
    first, second = FakeParser("x"), FakeParser("x")
    registry.register(first)
    registry.register(second)
    assert registry.detect(SpecSource(type="x")) is first


def test_detect_no_match_raises():
    registry = Registry()
    registry.register(FakeParser("x"))
    with pytest.raises(DetectionError) as exc:
        registry.detect(SpecSource(type="y", path="spec.txt"))
    assert exc.value.code == "detect"
    assert "spec.txt" in str(exc.value)


def test_process_sources_merges_in_order():
    registry = Registry()
    registry.register(FakeParser("a"))
    registry.register(FakeParser("b"))

    ir, warnings = registry.process_sources(
        [
            SpecSource(type="b", path="one"),
            SpecSource(type="a", path="two"),
            SpecSource(type="b", path="three"),
        ]
    )
    assert ir.operation_ids() == ["one", "two", "three"]
    assert ir.metadata == {"last": "b"}
    assert [w.message for w in warnings] == ["checked one", "checked two", "checked three"]


def test_process_sources_empty_list():
    ir, warnings = Registry().process_sources([])
    assert ir.operations == []
    assert warnings == []


def test_process_sources_fails_fast():
    registry = Registry()
    good, bad = FakeParser("good"), FakeParser("bad", fail_parse=True)
    registry.register(good)
    registry.register(bad)

    with pytest.raises(ParseError):
        registry.process_sources(
            [
                SpecSource(type="good", path="first"),
                SpecSource(type="bad", path="second"),
                SpecSource(type="good", path="third"),
            ]
        )
    # Nothing after the failing source is fetched
    assert good.fetched == ["first"]


def test_undetected_source_aborts_before_fetch():
    registry = Registry()
    parser = FakeParser("a")
    registry.register(parser)
    with pytest.raises(DetectionError):
        registry.process_sources([SpecSource(type="zzz"), SpecSource(type="a", path="x")])
    assert parser.fetched == []


def test_duplicate_ids_reported_as_info():
    registry = Registry()
    registry.register(FakeParser("a"))
    ir, warnings = registry.process_sources(
        [SpecSource(type="a", path="same"), SpecSource(type="a", path="same")]
    )
    assert ir.operation_ids() == ["same", "same"]
    dupes = [w for w in warnings if w.source == "registry"]
    assert len(dupes) == 1
    assert dupes[0].severity is Severity.INFO
    assert "same" in dupes[0].message


def test_default_registry_order():
    names = [p.name for p in default_registry().parsers]
    assert names == ["openapi", "cli", "codebase"]


def test_warning_str():
    w = ValidationWarning("openapi", "operation 'x' has no description")
    assert str(w) == "[warning] openapi: operation 'x' has no description"
