from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple

VIEW_SUFFIXES = (
    "_frente",
    "_costas",
    "_back",
    "_front",
    "_total_look",
    "_detalhe",
    "_side",
    "_lado",
)

_TRIM_RE = re.compile(r"^[\s\ufeff\xa0]+|[\s\ufeff\xa0]+$")
_SEPARATORS_RE = re.compile(r"[\u2010-\u2015\s-]+")
_NUMERIC_SUFFIX_RE = re.compile(r"_(\d{1,2})$")


def normalize_sku(value: Any) -> str:
    """' ab-12 c ' -> 'AB_12_C' (dashes of any kind and whitespace runs become '_')."""
    if value is None:
        return ""
    text = _TRIM_RE.sub("", str(value))
    return _SEPARATORS_RE.sub("_", text).upper()


def get_base_name(file_name: str) -> str:
    """'CAM-01_frente_2.jpg' -> 'CAM-01'."""
    base = os.path.splitext(file_name or "")[0].strip()
    while True:
        before = base
        lowered = base.lower()
        for suffix in VIEW_SUFFIXES:
            if lowered.endswith(suffix):
                base = base[: -len(suffix)]
                break
        else:
            base = _NUMERIC_SUFFIX_RE.sub("", base)
        if base == before:
            return base


@dataclass
class FileGroup:
    sku: str
    base_name: str
    files: List[Any] = field(default_factory=list)


def group_files(entries: Iterable[Tuple[str, Any]]) -> List[FileGroup]:
    """
    Groups (file_name, payload) pairs by SKU, keeping upload order.
    The first file of a group names it.
    """
    groups: Dict[str, FileGroup] = {}
    for name, payload in entries:
        base = get_base_name(name)
        key = normalize_sku(base)
        group = groups.get(key)
        if group is None:
            group = FileGroup(sku=key, base_name=base)
            groups[key] = group
        group.files.append(payload)
    return list(groups.values())
