import json

from editforge.cli import load_snapshot, main


def _project(tmp_path):
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "a.ts").write_text("export const a = 1;", encoding="utf-8")
    (root / "node_modules" / "x").mkdir(parents=True)
    (root / "node_modules" / "x" / "index.js").write_text("module.exports = 1;", encoding="utf-8")
    return root


def test_load_snapshot_skips_ignored(tmp_path):
    assert load_snapshot(_project(tmp_path)) == {"src/a.ts": "export const a = 1;"}


def test_decode_command(tmp_path, capsys):
    response = tmp_path / "response.txt"
    response.write_text('{"files": {"src/a.ts": "export const a = 2;"', encoding="utf-8")
    assert main(["decode", str(response)]) == 0
    output = json.loads(capsys.readouterr().out)
    assert output["files"] == {"src/a.ts": "export const a = 2;"}
    assert output["truncated"] is True


def test_decode_command_prints_continuation_for_missing_planned_files(tmp_path, capsys):
    response = tmp_path / "response.txt"
    response.write_text(
        '// PLAN: {"create": ["src/a.ts", "src/b.ts"], "total": 2}\n'
        '{"files": {"src/a.ts": "export const a = 2;"',
        encoding="utf-8",
    )
    assert main(["decode", str(response)]) == 0
    captured = capsys.readouterr()
    assert json.loads(captured.out)["generation_meta"]["remaining_files"] == ["src/b.ts"]
    assert "- src/b.ts" in captured.err


def test_decode_command_failure(tmp_path, capsys):
    response = tmp_path / "response.txt"
    response.write_text("I cannot help with that.", encoding="utf-8")
    assert main(["decode", str(response)]) == 1
    assert "Decode failed" in capsys.readouterr().err


def test_apply_dry_run_leaves_files(tmp_path, capsys):
    root = _project(tmp_path)
    response = tmp_path / "response.txt"
    response.write_text('{"files": {"src/a.ts": "export const a = 2;"}}', encoding="utf-8")
    assert main(["apply", str(response), "--root", str(root), "--dry-run"]) == 0
    output = json.loads(capsys.readouterr().out)
    assert output["success"] is True
    assert output["stats"]["updated"] == 1
    assert output["written"] == []
    assert (root / "src" / "a.ts").read_text(encoding="utf-8") == "export const a = 1;"


def test_apply_writes_and_deletes(tmp_path, capsys):
    root = _project(tmp_path)
    (root / "src" / "old.ts").write_text("export const old = 1;", encoding="utf-8")
    response = tmp_path / "response.txt"
    response.write_text(
        json.dumps(
            {
                "files": {"src/a.ts": "export const a = 2;", "src/b.ts": "export const b = 1;"},
                "deletedFiles": ["src/old.ts"],
            }
        ),
        encoding="utf-8",
    )
    assert main(["apply", str(response), "--root", str(root)]) == 0
    output = json.loads(capsys.readouterr().out)
    assert sorted(output["written"]) == ["src/a.ts", "src/b.ts", "src/old.ts"]
    assert (root / "src" / "a.ts").read_text(encoding="utf-8") == "export const a = 2;"
    assert (root / "src" / "b.ts").read_text(encoding="utf-8") == "export const b = 1;"
    assert not (root / "src" / "old.ts").exists()


def test_apply_search_replace_response(tmp_path, capsys):
    root = _project(tmp_path)
    response = tmp_path / "response.txt"
    response.write_text(
        '{"changes": {"src/a.ts": {"replacements": [{"search": "= 1", "replace": "= 3"}]}}}',
        encoding="utf-8",
    )
    assert main(["apply", str(response), "--root", str(root)]) == 0
    assert (root / "src" / "a.ts").read_text(encoding="utf-8") == "export const a = 3;"


def test_apply_reports_failed_merge(tmp_path, capsys):
    root = _project(tmp_path)
    response = tmp_path / "response.txt"
    response.write_text(
        '{"changes": {"src/a.ts": {"replacements": [{"search": "missing", "replace": "x"}]}}}',
        encoding="utf-8",
    )
    assert main(["apply", str(response), "--root", str(root)]) == 1
    output = json.loads(capsys.readouterr().out)
    assert output["errors"] == ["src/a.ts: 1 search(es) not found"]


def test_fix_with_mock_model(tmp_path, capsys):
    root = _project(tmp_path)
    exit_code = main(
        [
            "--max-attempts",
            "1",
            "fix",
            "--root",
            str(root),
            "--target",
            "src/a.ts",
            "--error",
            "Type 'string' is not assignable to type 'number'.",
            "--mock",
        ]
    )
    assert exit_code == 1
    assert "max_attempts_reached: Failed after 1 attempts" in capsys.readouterr().out


def test_fix_requires_known_target(tmp_path, capsys):
    root = _project(tmp_path)
    assert main(["fix", "--root", str(root), "--target", "src/missing.ts", "--error", "boom", "--mock"]) == 1
    assert "Target file not found" in capsys.readouterr().err
