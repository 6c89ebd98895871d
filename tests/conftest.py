from __future__ import annotations

from pathlib import Path

import pytest

from stampgraph.logging import Diagnostics
from tests._fixtures.repo_builder import RepoBuilder

SAMPLE_PROJECT = {
    "src/App.tsx": """
        import React from 'react';
        import Button from './components/Button';

        export default function App() {
          return (
            <main>
              <Button label="Go" />
            </main>
          );
        }
    """,
    "src/components/Button.tsx": """
        import React from 'react';

        interface ButtonProps {
          label: string;
          onClick?: () => void;
        }

        export default function Button({ label, onClick }: ButtonProps) {
          return <button onClick={onClick}>{label}</button>;
        }
    """,
    "src/utils/format.ts": """
        export function formatDate(value: Date): string {
          return value.toISOString();
        }
    """,
}


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable repo builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def sample_project(repo_builder: RepoBuilder) -> RepoBuilder:
    """A small React project: App renders Button, plus a standalone utility module."""
    repo_builder.write(SAMPLE_PROJECT)
    return repo_builder


@pytest.fixture
def diagnostics() -> Diagnostics:
    return Diagnostics()
