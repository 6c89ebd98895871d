"""Tests for Next.js app-router annotations."""

from __future__ import annotations

import pytest

from stampgraph.extractors import extract_source
from stampgraph.extractors.nextjs import detect_directive, route_role, segment_path


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("'use client';\nexport default function A() {}\n", "client"),
        ('// header\n/* block\n comment */\n"use server"\nexport const a = 1;\n', "server"),
        ("import x from 'y';\n'use client';\n", None),
        ("export const a = 1;\n", None),
    ],
)
def test_detect_directive(text: str, expected: str | None) -> None:
    assert detect_directive(text) == expected


@pytest.mark.parametrize(
    ("entry_id", "expected"),
    [
        ("app/page.tsx", "/"),
        ("app/(marketing)/blog/page.tsx", "/blog"),
        ("src/app/users/[id]/layout.tsx", "/users/[id]"),
        ("src/components/Button.tsx", None),
    ],
)
def test_segment_path(entry_id: str, expected: str | None) -> None:
    assert segment_path(entry_id) == expected


def test_route_role() -> None:
    assert route_role("app/blog/page.tsx") == "page"
    assert route_role("app/not-found.tsx") == "not-found"
    assert route_role("app/blog/BlogCard.tsx") is None


def test_app_router_page_annotations() -> None:
    fact = extract_source(
        "app/(marketing)/blog/page.tsx",
        "'use client';\n"
        "export const metadata = { title: 'Blog', revalidate: 60 };\n"
        "export default function Page() {\n"
        "  return <main />;\n"
        "}\n",
    )

    meta = fact.nextjs
    assert meta is not None
    assert meta.is_in_app_dir is True
    assert meta.directive == "client"
    assert meta.route_role == "page"
    assert meta.segment_path == "/blog"
    assert meta.static_metadata == {"title": "Blog", "revalidate": 60}
    assert meta.dynamic_metadata is False


def test_generate_metadata_is_dynamic() -> None:
    fact = extract_source(
        "app/docs/layout.tsx",
        "export async function generateMetadata() {\n"
        "  return { title: 'Docs' };\n"
        "}\n"
        "export default function Layout({ children }) {\n"
        "  return <section>{children}</section>;\n"
        "}\n",
    )

    assert fact.nextjs.dynamic_metadata is True
    assert fact.nextjs.to_dict()["metadata"] == {"dynamic": True}


def test_files_outside_app_only_keep_directive() -> None:
    with_directive = extract_source("src/Widget.tsx", "'use client';\nexport const a = 1;\n")
    without = extract_source("src/Widget.tsx", "export const a = 1;\n")

    assert with_directive.nextjs is not None
    assert with_directive.nextjs.to_dict() == {"directive": "client"}
    assert without.nextjs is None
