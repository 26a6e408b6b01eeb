"""Command-line interface."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from editforge.config import Settings
from editforge.decoding.models import EditSet
from editforge.decoding.plan import batch_continuation_prompt
from editforge.factory import build_model, build_session
from editforge.failures import DecodeError, NoPayloadError
from editforge.fix.session import AgentLogEntry, AgentState, FixCallbacks
from editforge.paths import is_ignored_path
from editforge.patching.merge import merge_changes
from editforge.patching.models import PatchInstruction
from editforge.patching.search_replace import parse_search_replace_response
from editforge.protocol import parse_response


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="editforge CLI")
    parser.add_argument("--base-url", dest="base_url")
    parser.add_argument("--api-key", dest="api_key")
    parser.add_argument("--model", dest="model")
    parser.add_argument("--max-attempts", type=int, dest="max_attempts")
    parser.add_argument("--min-content-chars", type=int, dest="min_content_chars")
    parser.add_argument("--settle-seconds", type=float, dest="settle_seconds")
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode_parser = subparsers.add_parser("decode", help="Decode a model response file")
    decode_parser.add_argument("file", type=Path)
    decode_parser.add_argument("--lenient", action="store_true")

    apply_parser = subparsers.add_parser("apply", help="Decode a response and merge it into a directory")
    apply_parser.add_argument("file", type=Path)
    apply_parser.add_argument("--root", type=Path, required=True)
    apply_parser.add_argument("--dry-run", action="store_true", dest="dry_run")

    fix_parser = subparsers.add_parser("fix", help="Run a fix session for one error")
    fix_parser.add_argument("--root", type=Path, required=True)
    fix_parser.add_argument("--target", required=True)
    fix_parser.add_argument("--error", required=True)
    fix_parser.add_argument("--stack")
    fix_parser.add_argument("--mock", action="store_true")
    fix_parser.add_argument("--dry-run", action="store_true", dest="dry_run")
    return parser.parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    data: dict[str, Any] = settings.model_dump()
    if args.base_url:
        data["openai_base_url"] = args.base_url
    if args.api_key:
        data["openai_api_key"] = args.api_key
    if args.model:
        data["openai_model"] = args.model
    if args.max_attempts:
        data["max_attempts"] = args.max_attempts
    if args.min_content_chars is not None:
        data["min_content_chars"] = args.min_content_chars
    if args.settle_seconds is not None:
        data["fix_settle_seconds"] = args.settle_seconds
    return Settings(**data)


def load_snapshot(root: Path) -> dict[str, str]:
    """Text files under ``root`` keyed by POSIX relative path, ignored paths left out."""
    snapshot: dict[str, str] = {}
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(root).as_posix()
        if is_ignored_path(relative):
            continue
        try:
            snapshot[relative] = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            continue
    return snapshot


def _instructions(
    text: str, settings: Settings
) -> tuple[dict[str, PatchInstruction | str], list[str]]:
    if '"replacements"' in text or '"diff"' in text:
        response = parse_search_replace_response(text)
        if response is not None and (response.changes or response.deleted_files):
            return dict(response.changes), response.deleted_files
    edit = parse_response(text, strict=True, settings=settings)
    if edit is None:
        raise NoPayloadError()
    return dict(edit.files), edit.deleted_files


def _write_changes(root: Path, before: dict[str, str], after: dict[str, str]) -> list[str]:
    touched: list[str] = []
    for relative, content in after.items():
        if before.get(relative) == content:
            continue
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        touched.append(relative)
    for relative in before:
        if relative not in after:
            (root / relative).unlink(missing_ok=True)
            touched.append(relative)
    return touched


def run_decode(args: argparse.Namespace, settings: Settings) -> int:
    text = args.file.read_text(encoding="utf-8")
    try:
        edit: EditSet | None = parse_response(text, strict=not args.lenient, settings=settings)
    except DecodeError as exc:
        print(f"Decode failed: {exc}", file=sys.stderr)
        return 1
    if edit is None:
        print("Decode failed: no usable payload", file=sys.stderr)
        return 1
    print(edit.model_dump_json(indent=2))
    continuation = batch_continuation_prompt(edit)
    if continuation:
        print(continuation, file=sys.stderr)
    return 0


def run_apply(args: argparse.Namespace, settings: Settings) -> int:
    text = args.file.read_text(encoding="utf-8")
    snapshot = load_snapshot(args.root)
    try:
        instructions, deleted = _instructions(text, settings)
    except DecodeError as exc:
        print(f"Decode failed: {exc}", file=sys.stderr)
        return 1
    result = merge_changes(snapshot, instructions, deleted, settings=settings)
    written = [] if args.dry_run else _write_changes(args.root, snapshot, result.files)
    summary = {
        "success": result.success,
        "stats": result.stats.model_dump(),
        "errors": result.errors,
        "written": written,
        "dry_run": args.dry_run,
    }
    print(json.dumps(summary, indent=2))
    return 0 if result.success else 1


def run_fix(args: argparse.Namespace, settings: Settings) -> int:
    files = load_snapshot(args.root)
    if args.target not in files:
        print(f"Target file not found under {args.root}: {args.target}", file=sys.stderr)
        return 1

    def on_log(entry: AgentLogEntry) -> None:
        print(f"[{entry.type}] {entry.title}: {entry.content}")

    def on_file_update(path: str, content: str) -> None:
        if args.dry_run:
            return
        target = args.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    session = build_session(settings, model=build_model(settings, use_mock=args.mock))
    callbacks = FixCallbacks(on_log=on_log, on_file_update=on_file_update)
    asyncio.run(session.start(args.error, args.stack, args.target, files, callbacks=callbacks))
    print(f"{session.state.value}: {session.completion_message}")
    return 0 if session.state is AgentState.SUCCESS else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    settings = apply_overrides(Settings(), args)
    if args.command == "decode":
        return run_decode(args, settings)
    if args.command == "apply":
        return run_apply(args, settings)
    return run_fix(args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
