"""Tests for React/TypeScript fact extraction."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from stampgraph.contracts import build_contract
from stampgraph.errors import ParseError
from stampgraph.extractors import extract_source, read_source, try_extract
from stampgraph.extractors.parser import grammar_for, normalize_type_text, parse_source
from stampgraph.extractors.react import extract_exports, normalize_prop_type
from stampgraph.logging import Diagnostics
from stampgraph.models import (
    ContractKind,
    DefaultExport,
    NamedExports,
    NoExports,
    OpaqueNamedExport,
)


def _extract(path: str, source: str):
    return extract_source(path, textwrap.dedent(source).lstrip("\n"))


CARD_SOURCE = """
import React, { useState } from 'react';
import { Button } from './Button';

interface CardProps {
  title: string;
  variant?: 'primary' | 'secondary';
  onSelect: (id: string) => void;
}

export default function Card({ title, variant, onSelect }: CardProps) {
  const [open, setOpen] = useState(false);
  return (
    <div className={variant}>
      <Button onClick={() => onSelect(title)} />
      <span>{open ? 'open' : 'closed'}</span>
    </div>
  );
}
"""


def test_component_facts() -> None:
    fact = _extract("src/Card.tsx", CARD_SOURCE)

    assert fact.kind is ContractKind.REACT_COMPONENT
    assert fact.imports == ("./Button", "react")
    assert fact.hooks == ("useState",)
    assert fact.components == ("Button",)
    assert fact.functions == ("Card",)
    assert fact.state == {"open": "boolean"}
    assert isinstance(fact.exports, DefaultExport)
    assert fact.main_export == "Card"
    assert fact.main_export_is_function is True
    assert fact.has_markup is True


def test_props_are_normalised() -> None:
    fact = _extract("src/Card.tsx", CARD_SOURCE)

    assert fact.props["title"] == "string"
    assert fact.props["variant"] == {
        "type": "literal-union",
        "literals": ["primary", "secondary"],
        "optional": True,
    }
    assert fact.props["onSelect"] == {"type": "function", "signature": "(id: string) => void"}


def test_events_only_keep_declared_handlers() -> None:
    fact = _extract("src/Card.tsx", CARD_SOURCE)

    # onClick is wired to a child but is not one of Card's own props.
    assert fact.emits == {"onSelect": {"type": "function", "signature": "(id: string) => void"}}


def test_custom_hook_is_classified_as_hook() -> None:
    fact = _extract(
        "src/hooks/useCounter.ts",
        """
        import { useEffect, useState } from 'react';

        export function useCounter(start: number) {
          const [count, setCount] = useState(start);
          useEffect(() => {}, []);
          return { count, increment: () => setCount(count + 1) };
        }
        """,
    )

    assert fact.kind is ContractKind.REACT_HOOK
    assert fact.exports == NamedExports(("useCounter",))
    assert fact.hooks == ("useEffect", "useState")


def test_variables_skip_state_setters() -> None:
    fact = _extract(
        "src/store.ts",
        """
        import { useState } from 'react';

        const LIMIT = 10;
        const [value, setValue] = useState(0);
        """,
    )

    assert fact.variables == ("LIMIT", "value")


def test_require_calls_are_imports() -> None:
    fact = _extract(
        "scripts/build.js",
        """
        const path = require('path');
        const { run } = require('./runner');

        module.exports = function build() {
          return run(path.join(process.argv[2], 'dist'));
        };
        """,
    )

    assert fact.imports == ("./runner", "path")
    assert isinstance(fact.exports, DefaultExport)
    assert fact.kind is ContractKind.CLI


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("const x = 1;\n", NoExports()),
        ("export const a = 1;\nexport function b() {}\n", NamedExports(("a", "b"))),
        ("const a = 1;\nexport { a, a as alias };\n", NamedExports(("a", "alias"))),
        ("export * from './other';\n", OpaqueNamedExport()),
        ("const obj = { a: 1 };\nexport const { a } = obj;\n", OpaqueNamedExport()),
        ("export const a = 1;\nexport default a;\n", DefaultExport()),
        ("exports.helper = () => 1;\n", NamedExports(("helper",))),
        ("export interface Props { a: string }\nexport type Id = string;\n", NoExports()),
    ],
)
def test_export_shapes(source: str, expected: object) -> None:
    tree = parse_source(source, "src/mod.ts")

    assert extract_exports(tree).shape == expected


def test_named_exports_keep_declaration_order() -> None:
    tree = parse_source("export function zeta() {}\nexport const alpha = 1;\n", "src/mod.ts")

    assert extract_exports(tree).shape == NamedExports(("zeta", "alpha"))


def test_normalize_prop_type_variants() -> None:
    assert normalize_prop_type("string | undefined", True) == "string"
    assert normalize_prop_type("User", True) == {"type": "User", "optional": True}
    assert normalize_prop_type("() => void", False) == {
        "type": "function",
        "signature": "() => void",
    }
    assert normalize_prop_type("number", False) == "number"


def test_whitespace_and_comments_do_not_change_facts() -> None:
    base = _extract("src/Card.tsx", CARD_SOURCE)
    noisy = _extract("src/Card.tsx", "// Card component\n" + CARD_SOURCE.replace("\n\n", "\n\n\n"))

    assert base == noisy


TIDY_BUTTON = """
import React, { useState } from 'react';

interface ButtonProps {
  onChange: (value: string) => void;
  // rows to render
  items?: Array<{ id: number }>;
}

export default function Button({ onChange, items }: ButtonProps) {
  const [rows, setRows] = useState<{ a: number }[]>([]);
  return <Menu onChange={onChange}>{rows.length}</Menu>;
}
"""

COMPACT_BUTTON = """
import React, { useState } from 'react';
interface ButtonProps {
  onChange:(value:string)=>void;
  items?: Array< {id: number /* key */} >;
}
export default function Button({ onChange, items }: ButtonProps) {
  const [rows, setRows] = useState<{a: number}[]>([]);
  return <Menu onChange={onChange}>{rows.length}</Menu>;
}
"""


@pytest.mark.parametrize(
    "tidy, compact",
    [
        (TIDY_BUTTON, COMPACT_BUTTON),
        (
            "export function Toolbar() {\n  return <Menu onSelect={(a, b) => a} onOpen={(event: Event) => event} />;\n}\n",
            "export function Toolbar() {\n  return <Menu onSelect={(a,b)=>a} onOpen={( event:Event )=>event} />;\n}\n",
        ),
    ],
)
def test_type_spacing_does_not_change_semantic_hash(tidy: str, compact: str) -> None:
    first = _extract("src/Button.tsx", tidy)
    second = _extract("src/Button.tsx", compact)

    assert (first.props, first.emits, first.state) == (second.props, second.emits, second.state)
    assert (
        build_contract(first, tidy).contract.semantic_hash
        == build_contract(second, compact).contract.semantic_hash
    )


def test_type_text_is_canonical() -> None:
    fact = _extract("src/Button.tsx", COMPACT_BUTTON)

    assert fact.props == {
        "onChange": {"type": "function", "signature": "(value: string) => void"},
        "items": {"type": "Array<{ id: number }>", "optional": True},
    }
    assert fact.state == {"rows": "{ a: number }[]"}

    toolbar = _extract("src/Toolbar.tsx", "export const Toolbar = () => <Menu onSelect={(a,b)=>a} />;\n")
    assert toolbar.emits == {"onSelect": {"type": "function", "signature": "(a, b) => void"}}


def test_normalize_type_text_spacing() -> None:
    assert normalize_type_text("(a:number,b ?:string)=>Promise< void >") == "(a: number, b?: string) => Promise<void>"
    assert normalize_type_text("{\n  a: number;\n  b: 'x'|'y';\n}") == "{ a: number; b: 'x' | 'y'; }"
    assert normalize_type_text("{ }") == "{}"


def test_syntax_error_raises_parse_error() -> None:
    with pytest.raises(ParseError) as excinfo:
        extract_source("src/broken.ts", "const = ;\n")

    assert excinfo.value.path == "src/broken.ts"
    assert "syntax error" in excinfo.value.reason


def test_grammar_selection() -> None:
    assert grammar_for("src/a.ts") == "typescript"
    assert grammar_for("src/a.tsx") == "tsx"
    assert grammar_for("src/a.jsx") == "tsx"
    assert grammar_for("src/a.js") == "tsx"


def test_try_extract_records_broken_source(diagnostics: Diagnostics) -> None:
    assert try_extract("src/broken.ts", "export const = ;\n", diagnostics=diagnostics) is None

    fact = try_extract("src/util.ts", "export const answer = 42;\n", diagnostics=diagnostics)

    assert fact is not None
    assert fact.kind is ContractKind.MODULE
    assert [warning for warning in diagnostics.warnings if "src/broken.ts" in warning]


def test_read_source_reports_unreadable_file(tmp_path: Path, diagnostics: Diagnostics) -> None:
    assert read_source(tmp_path / "missing.ts", "missing.ts", diagnostics) is None
    assert any("missing.ts: unreadable" in warning for warning in diagnostics.warnings)
