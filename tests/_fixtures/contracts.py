"""Factories for hand-built contracts used by graph, packer and drift tests."""

from __future__ import annotations

from typing import Dict, Sequence

from stampgraph.hashing import semantic_hash
from stampgraph.models import (
    Composition,
    Contract,
    DefaultExport,
    ExportShape,
    Interface,
    export_shape_to_json,
)

PLACEHOLDER_FILE_HASH = "uif:" + "0" * 24


def make_contract(
    entry_id: str,
    *,
    components: Sequence[str] = (),
    functions: Sequence[str] = (),
    hooks: Sequence[str] = (),
    imports: Sequence[str] = (),
    props: Dict[str, object] | None = None,
    exports: ExportShape | None = None,
    kind: str = "react:component",
    file_hash: str = PLACEHOLDER_FILE_HASH,
) -> Contract:
    """Build a contract whose semantic hash is consistent with its fields."""
    composition = Composition(
        hooks=tuple(sorted(hooks)),
        components=tuple(sorted(components)),
        functions=tuple(sorted(functions)),
        imports=tuple(sorted(imports)),
    )
    interface = Interface(props=dict(props or {}))
    shape = exports if exports is not None else DefaultExport()
    return Contract(
        kind=kind,
        entry_id=entry_id,
        description=f"{entry_id} - test contract",
        composition=composition,
        interface=interface,
        exports=shape,
        semantic_hash=semantic_hash(
            composition.to_dict(), interface.to_dict(), export_shape_to_json(shape)
        ),
        file_hash=file_hash,
    )


__all__ = ["PLACEHOLDER_FILE_HASH", "make_contract"]
