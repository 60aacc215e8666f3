from __future__ import annotations

import pytest

from pathstorex import PathPattern, ValidationError, compile_pattern, join_path, split_path


def test_named_parameter_is_extracted() -> None:
    pattern = PathPattern("users/:id")
    assert pattern.match("users/42") == {"id": "42"}
    assert pattern.keys == ("id",)
    assert pattern.is_parametrized


def test_non_matching_paths_return_none() -> None:
    pattern = PathPattern("users/:id")
    assert pattern.match("users") is None
    assert pattern.match("users/42/posts") is None
    assert pattern.match("groups/42") is None


def test_trailing_slash_is_tolerated() -> None:
    assert PathPattern("users/:id").match("users/42/") == {"id": "42"}


def test_literal_pattern_has_no_keys() -> None:
    pattern = PathPattern("a/b")
    assert pattern.match("a/b") == {}
    assert not pattern.is_parametrized


def test_alternation_in_custom_parameter_pattern() -> None:
    pattern = PathPattern(":kind(users|groups)/:id")
    assert pattern.match("groups/7") == {"kind": "groups", "id": "7"}
    assert pattern.match("teams/7") is None


def test_optional_parameter() -> None:
    pattern = PathPattern("files/:name?")
    assert pattern.match("files") == {}
    assert pattern.match("files/readme") == {"name": "readme"}


def test_unnamed_group_uses_positional_key() -> None:
    assert PathPattern("(a|b)/c").match("b/c") == {0: "b"}


def test_repeated_parameter_spans_segments() -> None:
    pattern = PathPattern("docs/:path+")
    assert pattern.match("docs/a/b") == {"path": "a/b"}
    assert pattern.to_path({"path": ["a", "b"]}) == "docs/a/b"


def test_wildcard_matches_rest_of_path() -> None:
    assert PathPattern("a/*").match("a/b/c") == {0: "b/c"}


def test_prefix_pattern_matches_descendants_only_at_segment_boundary() -> None:
    pattern = PathPattern("items/:id", end=False)
    assert pattern.test("items/1")
    assert pattern.test("items/1/detail")
    assert not pattern.test("itemsx/1")


def test_matching_is_case_sensitive() -> None:
    assert not PathPattern("Users").test("users")


def test_to_path_substitutes_parameters_and_ignores_extra_keys() -> None:
    pattern = PathPattern("users/:id/posts/:post")
    assert pattern.to_path({"id": 42, "post": "p1", "$$path": "ignored"}) == "users/42/posts/p1"


def test_to_path_requires_parameters() -> None:
    with pytest.raises(ValidationError):
        PathPattern("users/:id").to_path({})


def test_to_path_rejects_values_outside_parameter_pattern() -> None:
    with pytest.raises(ValidationError):
        PathPattern("users/:id").to_path({"id": "a/b"})
    with pytest.raises(ValidationError):
        PathPattern(r"users/:id(\d+)").to_path({"id": "abc"})


def test_to_path_skips_missing_optional_parameter() -> None:
    assert PathPattern("files/:name?").to_path({}) == "files"


def test_compile_pattern_is_memoized() -> None:
    assert compile_pattern("a/:b") is compile_pattern("a/:b")


def test_split_and_join_ignore_empty_segments() -> None:
    assert split_path("/a//b/") == ["a", "b"]
    assert join_path("a", 0, "c") == "a/0/c"
    assert join_path("", "x") == "x"
