"""Flatten audit results into DataFrames and CSV files.

Files written by `write_report`:
  folders.csv     one row per reported folder (errors included)
  deviations.csv  one row per Missing/Unexpected ACE
  aces.csv        one row per ACE with its inheritance source
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import pandas as pd

from folder_audit.models import AuditRecord, DeviationKind, FolderAuditFailure

FOLDER_COLUMNS = ["path", "name", "owner", "last_modified", "inheritance_enabled", "is_deviant", "deviation_count", "error"]
DEVIATION_COLUMNS = ["path", "principal", "right_name", "access_type", "applies_to", "kind"]
ACE_COLUMNS = ["path", "principal", "right_name", "access_type", "applies_to", "is_inherited", "inherited_from"]


def results_to_frames(results: Iterable[AuditRecord]) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    folders: List[Dict[str, Any]] = []
    deviations: List[Dict[str, Any]] = []
    aces: List[Dict[str, Any]] = []

    for r in results:
        if isinstance(r, FolderAuditFailure):
            folders.append({
                "path": r.path,
                "name": r.name,
                "owner": None,
                "last_modified": r.last_modified,
                "inheritance_enabled": None,
                "is_deviant": None,
                "deviation_count": None,
                "error": r.error,
            })
            continue

        folders.append({
            "path": r.path,
            "name": r.name,
            "owner": r.owner,
            "last_modified": r.last_modified,
            "inheritance_enabled": r.inheritance_enabled,
            "is_deviant": r.is_deviant,
            "deviation_count": len(r.deviations),
            "error": None,
        })
        for d in r.deviations:
            deviations.append({
                "path": r.path,
                "principal": d.principal,
                "right_name": d.right_name,
                "access_type": d.access_type,
                "applies_to": d.applies_to,
                "kind": d.kind.value,
            })
        for a in r.aces:
            aces.append({
                "path": r.path,
                "principal": a.ace.principal,
                "right_name": a.ace.right_name,
                "access_type": a.ace.access_type,
                "applies_to": a.ace.applies_to,
                "is_inherited": a.is_inherited,
                "inherited_from": a.inherited_from,
            })

    return (
        pd.DataFrame(folders, columns=FOLDER_COLUMNS),
        pd.DataFrame(deviations, columns=DEVIATION_COLUMNS),
        pd.DataFrame(aces, columns=ACE_COLUMNS),
    )


def summarize(results: Iterable[AuditRecord]) -> Dict[str, int]:
    out = {"folders": 0, "deviant": 0, "errors": 0, "missing": 0, "unexpected": 0, "aces": 0}
    for r in results:
        out["folders"] += 1
        if isinstance(r, FolderAuditFailure):
            out["errors"] += 1
            continue
        if r.is_deviant:
            out["deviant"] += 1
        out["missing"] += sum(1 for d in r.deviations if d.kind is DeviationKind.MISSING)
        out["unexpected"] += sum(1 for d in r.deviations if d.kind is DeviationKind.UNEXPECTED)
        out["aces"] += len(r.aces)
    return out


def split_deviations(deviations: pd.DataFrame, out_dir: Path) -> Dict[str, Path]:
    outs = {
        DeviationKind.MISSING.value: out_dir / 'deviations_missing.csv',
        DeviationKind.UNEXPECTED.value: out_dir / 'deviations_unexpected.csv',
    }
    for kind, path in outs.items():
        deviations[deviations['kind'] == kind].to_csv(path, index=False)
    return outs


def write_report(results: List[AuditRecord], out_dir: Path, split: bool = False) -> List[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    folders_df, deviations_df, aces_df = results_to_frames(results)

    written = []
    for name, df in (("folders.csv", folders_df), ("deviations.csv", deviations_df), ("aces.csv", aces_df)):
        path = out_dir / name
        df.to_csv(path, index=False)
        written.append(path)

    if split:
        written.extend(split_deviations(deviations_df, out_dir).values())
    return written
