import copy

import pytest

from agency.core.errors import ConfigurationError
from agency.core.resolver import (
    UNRESOLVED,
    InputPath,
    ResolutionSources,
    Scope,
    parse_mapping,
    resolve_path,
)


@pytest.fixture
def sources():
    return ResolutionSources(
        initial_inputs={"topic": "rabbits", "tags": ["pets", "care"]},
        results={"research": {"notes": {"summary": "short"}}, "draft": "text"},
        context={"audience": "new owners"},
    )


def test_parse_splits_scope_and_keys():
    path = InputPath.parse("results.research.notes")
    assert path == InputPath(Scope.RESULTS, ("research", "notes"))
    assert str(path) == "results.research.notes"


def test_parse_accepts_snake_case_scope():
    assert InputPath.parse("initial_inputs.topic").scope is Scope.INITIAL_INPUTS


def test_parse_scope_only():
    assert InputPath.parse("context").keys == ()


@pytest.mark.parametrize("bad", ["", "   ", "results..notes", "results.", "outputs.x"])
def test_parse_rejects_malformed_paths(bad):
    with pytest.raises(ConfigurationError):
        InputPath.parse(bad)


def test_resolves_each_scope(sources):
    assert resolve_path("initialInputs.topic", sources) == "rabbits"
    assert resolve_path("results.research.notes.summary", sources) == "short"
    assert resolve_path("context.audience", sources) == "new owners"


def test_resolves_sequence_index(sources):
    assert resolve_path("initialInputs.tags.1", sources) == "care"
    assert resolve_path("initialInputs.tags.5", sources) is UNRESOLVED
    assert resolve_path("initialInputs.tags.first", sources) is UNRESOLVED


def test_missing_paths_never_raise(sources):
    assert resolve_path("results.missing", sources) is UNRESOLVED
    assert resolve_path("results.research.notes.summary.deeper", sources) is UNRESOLVED
    assert resolve_path("results.draft.length", sources) is UNRESOLVED
    assert resolve_path("nowhere.at.all", sources) is UNRESOLVED


def test_only_plain_non_negative_indexes_resolve(sources):
    assert resolve_path("initialInputs.tags.0", sources) == "pets"
    assert resolve_path("initialInputs.tags.-1", sources) is UNRESOLVED
    assert resolve_path("initialInputs.tags.01", sources) is UNRESOLVED
    assert resolve_path("initialInputs.tags.+1", sources) is UNRESOLVED


def test_resolution_is_idempotent(sources):
    path = InputPath.parse("results.research.notes")
    first = resolve_path(path, sources)
    assert resolve_path(path, sources) == first == {"summary": "short"}


def test_resolved_falsy_values_are_not_unresolved():
    sources = ResolutionSources(results={"count": 0, "empty": "", "none": None})
    assert resolve_path("results.count", sources) == 0
    assert resolve_path("results.empty", sources) == ""
    assert resolve_path("results.none", sources) is None


def test_unresolved_is_a_falsy_singleton():
    assert not UNRESOLVED
    assert repr(UNRESOLVED) == "<unresolved>"
    assert copy.copy(UNRESOLVED) is UNRESOLVED
    assert copy.deepcopy({"x": UNRESOLVED})["x"] is UNRESOLVED


def test_parse_mapping():
    assert parse_mapping(None) is None
    parsed = parse_mapping({"a": "results.x", "b": "context.y"})
    assert parsed["a"].scope is Scope.RESULTS
    assert parsed["b"].keys == ("y",)
    with pytest.raises(ConfigurationError):
        parse_mapping({"a": "results.x", "b": "bogus.y"})
