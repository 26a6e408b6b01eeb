from editforge.decoding import batch_continuation_prompt, decode, parse_plan_header
from editforge.decoding.models import EditSet, GenerationMeta

PLAN = '// PLAN: {"create": ["src/a.ts", "src/b.ts"], "update": ["src/App.tsx"], "delete": [], "total": 3}\n'


def test_parse_plan_header_reads_lists_and_total():
    plan = parse_plan_header("\ufeff" + PLAN + '{"files": {}}')
    assert plan is not None
    assert plan.create == ["src/a.ts", "src/b.ts"]
    assert plan.update == ["src/App.tsx"]
    assert plan.total == 3
    assert plan.planned_files == ["src/a.ts", "src/b.ts", "src/App.tsx"]


def test_parse_plan_header_missing_or_broken():
    assert parse_plan_header('{"files": {}}') is None
    assert parse_plan_header('// PLAN: {"create": ["a.ts"\n{"files": {}}') is None
    assert parse_plan_header('// PLAN: {"create": "a.ts"}\n{}') is None


def test_parse_plan_header_defaults_null_fields():
    plan = parse_plan_header('// PLAN: {"create": ["a.ts"], "update": null}\n{}')
    assert plan is not None
    assert plan.update == []
    assert plan.total == 0


def test_truncated_decode_lists_planned_files_not_reached():
    raw = PLAN + '{"files": {"src/a.ts": "export const a = 1;", "src/b.ts": "export con'
    edit = decode(raw)
    assert edit.truncated
    meta = edit.generation_meta
    assert meta is not None
    assert meta.is_complete is False
    assert meta.remaining_files == ["src/App.tsx"]
    assert meta.completed_files == ["src/a.ts", "src/b.ts"]
    assert meta.total_files_planned == 3


def test_complete_decode_ignores_plan():
    raw = PLAN + '{"files": {"src/a.ts": "export const a = 1;"}}'
    assert decode(raw).generation_meta is None


def test_payload_generation_meta_wins_over_plan():
    raw = PLAN + (
        '{"generationMeta": {"remainingFiles": ["src/z.ts"], "isComplete": false},'
        ' "files": {"src/a.ts": "export const a = 1;"'
    )
    assert decode(raw).generation_meta.remaining_files == ["src/z.ts"]


def test_continuation_prompt_lists_remaining_files():
    edit = EditSet(
        files={"a.tsx": "content"},
        truncated=True,
        generation_meta=GenerationMeta(
            total_files_planned=3,
            completed_files=["a.tsx"],
            remaining_files=["b.tsx", "c.tsx"],
            current_batch=1,
            total_batches=2,
            is_complete=False,
        ),
    )
    prompt = batch_continuation_prompt(edit)
    assert prompt is not None
    assert "remaining 2 file(s)" in prompt
    assert "- a.tsx" in prompt
    assert "- b.tsx" in prompt and "- c.tsx" in prompt
    assert "batch 2 of 2" in prompt


def test_continuation_prompt_none_when_complete():
    assert batch_continuation_prompt(EditSet(files={"a.tsx": "x"})) is None
    done = EditSet(files={"a.tsx": "x"}, generation_meta=GenerationMeta(is_complete=True))
    assert batch_continuation_prompt(done) is None


def test_decoded_truncation_feeds_continuation_prompt():
    raw = PLAN + '{"files": {"src/a.ts": "export const a = 1;"'
    prompt = batch_continuation_prompt(decode(raw))
    assert "- src/b.ts" in prompt
    assert "- src/App.tsx" in prompt
