from editforge.fix.local_fixes import (
    LocalFixer,
    fix_bare_specifier,
    fix_missing_import,
    fix_undefined_variable,
)

APP = "import React from 'react';\n\nexport default function App() {\n  const [a] = useState(0);\n  return a;\n}\n"


def test_missing_react_hook_import():
    result = fix_missing_import("useState is not defined", "src/App.tsx", {"src/App.tsx": APP})
    assert result.success
    assert result.fix_type == "missing-import"
    assert result.fixed_files["src/App.tsx"].startswith(
        "import React from 'react';\nimport { useState } from 'react';\n"
    )


def test_missing_import_merges_into_existing_named_import():
    content = "import { useEffect } from 'react';\n\nexport function A() { useState(0); useEffect(() => {}); }\n"
    result = fix_missing_import("useState is not defined", "src/A.tsx", {"src/A.tsx": content})
    assert "import { useEffect, useState } from 'react';" in result.fixed_files["src/A.tsx"]


def test_type_only_import():
    content = "export function A(props: { children: ReactNode }) { return null; }\n"
    result = fix_missing_import("Cannot find name 'ReactNode'", "src/A.tsx", {"src/A.tsx": content})
    assert result.fixed_files["src/A.tsx"].startswith("import type { ReactNode } from 'react';\n")


def test_already_imported_is_not_fixed():
    content = "import { useState } from 'react';\nexport function A() { useState(0); }\n"
    result = fix_missing_import("useState is not defined", "src/A.tsx", {"src/A.tsx": content})
    assert not result.success
    assert result.explanation == "Already imported"


def test_bare_specifier_rewritten_in_importers():
    files = {
        "src/App.tsx": "import Button from 'src/components/Button';\n\nexport default function App() { return <Button />; }\n",
        "src/components/Button.tsx": "export default function Button() { return null; }\n",
    }
    message = 'The specifier "src/components/Button" was a bare specifier'
    result = fix_bare_specifier(message, "src/components/Button.tsx", files)
    assert result.success
    assert result.fix_type == "bare-specifier"
    assert list(result.fixed_files) == ["src/App.tsx"]
    assert "from './components/Button'" in result.fixed_files["src/App.tsx"]


def test_bare_specifier_ignores_packages():
    result = fix_bare_specifier('"lodash" was a bare specifier', "src/App.tsx", {"src/App.tsx": "x"})
    assert not result.success


def test_undefined_variable_imports_local_export():
    files = {
        "src/App.tsx": "import React from 'react';\n\nexport default function App() { return <Card />; }\n",
        "src/components/Card.tsx": "export function Card() { return null; }\n",
    }
    result = fix_undefined_variable("Card is not defined", "src/App.tsx", files)
    assert result.fix_type == "undefined-var"
    assert "import { Card } from './components/Card';" in result.fixed_files["src/App.tsx"]


def test_undefined_variable_default_export():
    files = {
        "src/App.tsx": "export default function App() { return <Card />; }\n",
        "src/components/Card.tsx": "export default function Card() { return null; }\n",
    }
    result = fix_undefined_variable("Card is not defined", "src/App.tsx", files)
    assert result.fixed_files["src/App.tsx"].startswith("import Card from './components/Card';\n")


def test_local_fixer_falls_through():
    result = LocalFixer().try_fix("Something weird happened", None, "src/App.tsx", {"src/App.tsx": APP})
    assert not result.success
    assert result.explanation == "No local fix available"


def test_local_fixer_uses_first_successful_strategy():
    result = LocalFixer().try_fix("ReferenceError: useState is not defined", None, "src/App.tsx", {"src/App.tsx": APP})
    assert result.fix_type == "missing-import"
