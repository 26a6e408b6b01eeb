from editforge.decoding.salvage import (
    backtick_pairs,
    fenced_blocks,
    quoted_pairs,
    salvage,
    string_scan,
)


def test_backtick_pairs():
    text = '"src/a.tsx": `export default function A() {}`'
    assert backtick_pairs(text) == {"src/a.tsx": "export default function A() {}"}


def test_quoted_pairs_unescape_newlines():
    text = '{"files": {"src/a.ts": "export const a = 1;\\nexport const b = 2;"'
    assert quoted_pairs(text) == {"src/a.ts": "export const a = 1;\nexport const b = 2;"}


def test_string_scan_reads_closed_values_only():
    body = "export const a = 1;\\n" * 4
    text = '{"files": {"src/a.ts": "' + body + '", "src/b.ts": "export const b'
    files = string_scan(text)
    assert list(files) == ["src/a.ts"]
    assert files["src/a.ts"].startswith("export const a = 1;\nexport")


def test_string_scan_value_bound():
    body = "export const a = 1;\\n" * 4
    text = '{"src/a.ts": "' + body + '"}'
    assert string_scan(text, value_max_chars=10) is None


def test_fenced_blocks_name_by_content():
    text = "```tsx\nexport default function App() {\n  return <div>Hello world</div>;\n}\n```"
    files = fenced_blocks(text)
    assert list(files) == ["component1.tsx"]


def test_salvage_returns_first_stage_with_results():
    text = '"src/a.tsx": `export const a = 1;` "src/b.ts": "export const b = 2;"'
    result = salvage(text)
    assert result.stage == "backtick_pairs"
    assert result.files == {"src/a.tsx": "export const a = 1;"}
    assert salvage("no code here") is None
