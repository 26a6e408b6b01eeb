from editforge.patching.models import Replacement
from editforge.patching.search_replace import apply_search_replace, parse_search_replace_response


def test_first_occurrence_only():
    result = apply_search_replace("foo foo", [{"search": "foo", "replace": "bar"}])
    assert result.content == "bar foo"
    assert result.applied_count == 1
    assert result.failed_searches == []


def test_pairs_apply_in_order():
    result = apply_search_replace(
        "alpha beta",
        [Replacement(search="alpha", replace="one"), Replacement(search="beta", replace="two")],
    )
    assert result.content == "one two"
    assert result.applied_count == 2


def test_missing_search_is_reported():
    result = apply_search_replace("abc", [{"search": "xyz", "replace": "q"}])
    assert result.content == "abc"
    assert result.failed_searches == ["xyz"]


def test_line_endings_are_normalized():
    result = apply_search_replace("a\r\nb\r\n", [{"search": "a\nb", "replace": "X"}])
    assert result.content == "X\n"


def test_parse_search_replace_response():
    text = (
        '{"changes": {"src/a.ts": {"replacements": [{"search": "foo", "replace": "bar"}]},'
        ' "src/new.ts": {"isNew": true, "content": "export const x = 1;"}},'
        ' "explanation": "e", "deletedFiles": ["src/old.ts"]}'
    )
    response = parse_search_replace_response(text)
    assert response.explanation == "e"
    assert response.deleted_files == ["src/old.ts"]
    assert response.changes["src/a.ts"].replacements[0].replace == "bar"
    assert response.changes["src/new.ts"].is_new
    assert response.changes["src/new.ts"].content == "export const x = 1;"


def test_parse_search_replace_response_without_json():
    assert parse_search_replace_response("no json here") is None
