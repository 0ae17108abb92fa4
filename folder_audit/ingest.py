#!/usr/bin/env python3
"""Ingest forensic folder ACL JSON files into Parquet snapshots for auditing.

Usage:
  python -m folder_audit.ingest --run-path runs/run-20260202-124902 --out-dir out/parquet

Each folder entry of a `folderacls/*.json` file becomes one row per ACE (in ACL
order, `ace_index`). Folders with an empty ACL or a collection `Error` keep a
single row with null ACE columns so they still show up as folders.
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import pandas as pd
from tqdm import tqdm

from folder_audit.errors import SnapshotError

logger = logging.getLogger(__name__)

ACL_KEYS = ("access", "acl", "acls", "aces", "acllist", "accesslist")

ROW_COLUMNS = [
    "source_file",
    "folder_path",
    "folder_name",
    "owner",
    "acl_protected",
    "last_modified",
    "acl_error",
    "ace_index",
    "ace_identity",
    "ace_rights",
    "ace_type",
    "ace_inheritance_flags",
    "ace_propagation_flags",
    "ace_inherited",
    "ace_raw",
]


def find_folderacl_files(run_path: Path) -> List[Path]:
    p1 = run_path / "folderacls"
    if p1.exists():
        return sorted(p1.glob("*.json"))
    # fallback: search recursively
    return sorted(Path(run_path).rglob("*folderacls/*.json"))


def _get_ci(d: Dict[str, Any], *keys: str) -> Any:
    low = {k.lower(): v for k, v in d.items()}
    for key in keys:
        v = low.get(key.lower())
        if v is not None:
            return v
    return None


def _last_path_component(p: str) -> str:
    if not p:
        return ''
    s = str(p).rstrip('/\\')
    parts = [seg for seg in s.replace('\\', '/').split('/') if seg]
    return parts[-1] if parts else ''


def _as_text(v: Any) -> Optional[str]:
    # exporters mix numeric masks and enum strings; parquet needs one type per column
    if v is None:
        return None
    return str(v)


def as_bool(v: Any) -> Optional[bool]:
    if v is None:
        return None
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("true", "1", "yes")


def find_folder_nodes(obj: Any) -> Iterator[Dict[str, Any]]:
    """Yield dicts that describe a folder: they carry a path and/or an ACL list."""
    if isinstance(obj, dict):
        keys = {k.lower() for k in obj}
        has_path = bool(keys & {"uncpath", "path", "folderpath", "fullname"})
        has_acl = any(k.lower() in ACL_KEYS and isinstance(v, list) for k, v in obj.items())
        if has_path and (has_acl or "error" in keys):
            yield obj
            return
        for v in obj.values():
            yield from find_folder_nodes(v)
    elif isinstance(obj, list):
        for item in obj:
            yield from find_folder_nodes(item)


def extract_rows(data: Any, source_file: str) -> Iterable[Dict[str, Any]]:
    for node in find_folder_nodes(data):
        path = _get_ci(node, 'UncPath', 'Path', 'FolderPath', 'FullName')
        if not isinstance(path, str) or not path.strip():
            continue
        path = path.strip()

        acl_list: List[Any] = []
        for k, v in node.items():
            if k.lower() in ACL_KEYS and isinstance(v, list):
                acl_list = v
                break

        folder = {
            "source_file": source_file,
            "folder_path": path,
            "folder_name": _get_ci(node, 'Name') or _last_path_component(path),
            "owner": _as_text(_get_ci(node, 'Owner')),
            "acl_protected": as_bool(_get_ci(node, 'AreAccessRulesProtected', 'IsProtected', 'Protected')),
            "last_modified": _as_text(_get_ci(node, 'LastWriteTimeUtc', 'LastWriteTime', 'LastModified')),
            "acl_error": _as_text(_get_ci(node, 'Error')),
        }

        aces = [a for a in acl_list if isinstance(a, dict)]
        if not aces or folder["acl_error"]:
            yield {**folder, **{c: None for c in ROW_COLUMNS if c not in folder}}
            continue

        for idx, ace in enumerate(aces):
            yield {
                **folder,
                "ace_index": idx,
                "ace_identity": _as_text(_get_ci(ace, 'Identity', 'IdentityReference', 'Name', 'Account', 'Principal', 'Sid')),
                "ace_rights": _as_text(_get_ci(ace, 'Rights', 'FileSystemRights', 'Mask', 'AccessMask')),
                "ace_type": _as_text(_get_ci(ace, 'Type', 'AccessControlType', 'AceType')),
                "ace_inheritance_flags": _as_text(_get_ci(ace, 'InheritanceFlags')),
                "ace_propagation_flags": _as_text(_get_ci(ace, 'PropagationFlags')),
                "ace_inherited": as_bool(_get_ci(ace, 'IsInherited', 'Inherited')),
                "ace_raw": json.dumps(ace, ensure_ascii=False),
            }


def load_json_file(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8-sig") as fh:
            return json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Failed to parse {path}: {e}") from e


def rows_to_frame(rows: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(list(rows), columns=ROW_COLUMNS)
    # explicit dtypes so all-null columns still get a parquet type
    df["ace_index"] = df["ace_index"].astype("Int64")
    for col in ("acl_protected", "ace_inherited"):
        df[col] = df[col].astype("boolean")
    for col in ROW_COLUMNS:
        if col not in ("ace_index", "acl_protected", "ace_inherited"):
            df[col] = df[col].astype("string")
    return df


def load_run_frame(run_path: Path) -> pd.DataFrame:
    """All folder rows of a run directory, without writing Parquet."""
    files = find_folderacl_files(Path(run_path))
    if not files:
        raise SnapshotError(f"No folder ACL JSON files found under {run_path}")
    rows: List[Dict[str, Any]] = []
    for f in files:
        try:
            rows.extend(extract_rows(load_json_file(f), str(f)))
        except SnapshotError as e:
            logger.warning("%s", e)
    return rows_to_frame(rows)


def process_run(run_path: str, out_dir: str, preview: bool = False) -> List[Path]:
    run_path_p = Path(run_path)
    if not run_path_p.exists():
        raise SnapshotError(f"Run path does not exist: {run_path}")

    files = find_folderacl_files(run_path_p)
    if not files:
        print(f"No folder ACL JSON files found under {run_path}")
        return []

    run_id = run_path_p.name
    target_dir = Path(out_dir) / run_id
    # create target directory only when not previewing (preview only lists paths)
    if not preview:
        target_dir.mkdir(parents=True, exist_ok=True)

    written: List[Path] = []
    for f in tqdm(files, desc="processing files"):
        try:
            data = load_json_file(f)
        except SnapshotError as e:
            print(e)
            continue

        df = rows_to_frame(extract_rows(data, str(f)))
        if df.empty:
            continue

        out_file = target_dir / (f.stem + ".parquet")
        print(str(out_file))
        if preview:
            continue

        df.to_parquet(out_file, index=False)
        written.append(out_file)

    print(f"Finished. Parquet files written to: {target_dir}")
    return written


def main():
    parser = argparse.ArgumentParser(description="Ingest folder ACL JSON files to Parquet snapshots")
    parser.add_argument("--run-path", required=True, help="Path to a run directory (e.g., runs/run-20260202-124902)")
    parser.add_argument("--out-dir", required=True, help="Output directory for Parquet files")
    parser.add_argument("--preview", action="store_true", help="Print the target Parquet paths and do not write files")
    args = parser.parse_args()
    process_run(args.run_path, args.out_dir, preview=args.preview)


if __name__ == "__main__":
    main()
