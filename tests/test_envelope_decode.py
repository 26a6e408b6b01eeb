import json

import pytest

from editforge.config import Settings
from editforge.decoding import decode, extract_files_object
from editforge.failures import (
    FailureTag,
    NoFileEntriesError,
    NoPayloadError,
    PayloadTooLargeError,
)


def test_plan_header_and_missing_braces():
    raw = '// PLAN: {"create":["a.txt"],"update":[],"delete":[],"total":1}\n{"files":{"a.txt":"hello"'
    edit = decode(raw)
    assert edit.files == {"a.txt": "hello"}
    assert edit.truncated is True


def test_fenced_json_with_explanation():
    raw = 'Here you go:\n```json\n{"files": {"src/a.ts": "export const a = 1;"}, "explanation": "done"}\n```'
    edit = decode(raw)
    assert edit.files == {"src/a.ts": "export const a = 1;"}
    assert edit.explanation == "done"
    assert edit.truncated is False


def test_root_level_files_shape():
    edit = decode(json.dumps({"src/a.ts": "export const a = 1;", "explanation": "x"}))
    assert edit.files == {"src/a.ts": "export const a = 1;"}


def test_extract_files_object_priority():
    payload = {"changes": {"src/b.ts": "b"}, "files": {"src/a.ts": "a"}}
    assert extract_files_object(payload) == {"src/a.ts": "a"}
    assert extract_files_object({"files": {"notes": "x"}}) is None


def test_object_entries_use_content_or_are_skipped():
    raw = json.dumps(
        {
            "files": {
                "src/a.ts": {"content": "export const a = 1;"},
                "src/b.ts": {"path": "src/b.ts"},
            }
        }
    )
    edit = decode(raw)
    assert edit.files == {"src/a.ts": "export const a = 1;"}
    assert [entry.reason for entry in edit.skipped] == [FailureTag.OBJECT_WITHOUT_CONTENT]


def test_invalid_entries_are_recorded():
    raw = json.dumps(
        {
            "files": {
                "src/a.ts": "export const a = 1;",
                "node_modules/x/index.js": "module.exports = 1;",
                "src/components/.tsx": "x = 1",
                "src/b.ts": "ts",
                "src/c.ts": "",
                "src/d.ts": 42,
            }
        }
    )
    edit = decode(raw)
    assert list(edit.files) == ["src/a.ts"]
    reasons = {entry.path: entry.reason for entry in edit.skipped}
    assert reasons == {
        "node_modules/x/index.js": FailureTag.IGNORED_PATH,
        "src/components/.tsx": FailureTag.MALFORMED_PATH,
        "src/b.ts": FailureTag.EXTENSION_ONLY,
        "src/c.ts": FailureTag.CONTENT_TOO_SHORT,
        "src/d.ts": FailureTag.INVALID_CONTENT_TYPE,
    }


def test_truncated_string_value_is_repaired():
    raw = '{"files": {"src/a.ts": "export const a = 1;", "src/b.ts": "export const b'
    edit = decode(raw)
    assert edit.files == {"src/a.ts": "export const a = 1;", "src/b.ts": "export const b"}
    assert edit.truncated is True
    assert edit.recovered_by == "repair"


def test_prose_raises_in_strict_mode_and_returns_none_otherwise():
    with pytest.raises(NoPayloadError):
        decode("just some prose", strict=True)
    assert decode("just some prose", strict=False) is None


def test_payload_without_files():
    with pytest.raises(NoFileEntriesError):
        decode('{"explanation": "nothing to do"}')


def test_every_entry_rejected_carries_skipped():
    with pytest.raises(NoFileEntriesError) as excinfo:
        decode('{"files": {"src/a.ts": ""}}')
    assert excinfo.value.skipped[0].reason == FailureTag.CONTENT_TOO_SHORT


def test_oversized_response():
    settings = Settings(response_max_chars=10)
    with pytest.raises(PayloadTooLargeError):
        decode('{"files": {"src/a.ts": "export const a = 1;"}}', settings=settings)
    assert decode('{"files": {}}' * 2, strict=False, settings=settings) is None


def test_legacy_continuation_becomes_generation_meta():
    raw = json.dumps(
        {
            "files": {"src/a.ts": "export const a = 1;"},
            "continuation": {"remainingFiles": ["src/b.ts"], "currentBatch": 1, "totalBatches": 2},
        }
    )
    meta = decode(raw).generation_meta
    assert meta.total_files_planned == 2
    assert meta.completed_files == ["src/a.ts"]
    assert meta.remaining_files == ["src/b.ts"]
    assert meta.total_batches == 2
    assert meta.is_complete is False


def test_generation_meta_camel_case():
    raw = json.dumps(
        {
            "files": {"src/a.ts": "export const a = 1;"},
            "generationMeta": {"totalFilesPlanned": 3, "currentBatch": 1, "totalBatches": 2, "isComplete": False},
        }
    )
    meta = decode(raw).generation_meta
    assert meta.total_files_planned == 3
    assert meta.is_complete is False


def test_deleted_files_drop_ignored_paths():
    raw = json.dumps(
        {"files": {"src/a.ts": "export const a = 1;"}, "deletedFiles": ["src/old.ts", ".git/HEAD"]}
    )
    assert decode(raw).deleted_files == ["src/old.ts"]


def test_envelope_decodes_back_to_same_files():
    edit = decode('{"files":{"src/a.ts":"export const a = 1;","src/b.ts":"export const b = 2;"', strict=True)
    again = decode(edit.to_json())
    assert again.files == edit.files
    assert again.truncated is False


def test_unparseable_payload_falls_back_to_salvage():
    raw = '{"files": {"src/a.ts": "export const a = 1;" "src/b.ts": "export const b = 2;"}}'
    edit = decode(raw)
    assert edit.files == {"src/a.ts": "export const a = 1;", "src/b.ts": "export const b = 2;"}
    assert edit.recovered_by == "quoted_pairs"
    assert edit.truncated is True
    assert "recovered 2 file(s)" in edit.explanation


def test_code_fence_without_json_is_salvaged():
    raw = "Here it is:\n```tsx\nexport default function App() {\n  return <div>Hello world</div>;\n}\n```"
    edit = decode(raw)
    assert edit.recovered_by == "fenced_blocks"
    assert list(edit.files) == ["component1.tsx"]
