"""ACL providers: the ListSubfolders / GetAcl collaborators of the audit engine.

`AclProvider` is the interface the orchestrator consumes. `SnapshotAclProvider`
implements it over a forensic ACL collection, loaded from the raw JSON run, from
Parquet files written by folder_audit.ingest (read with duckdb) or from a
DataFrame with the same columns.
"""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

import duckdb
import pandas as pd

from folder_audit.errors import AclAccessDeniedError, AclFetchError, AclNotFoundError, SnapshotError
from folder_audit.ingest import as_bool, load_run_frame
from folder_audit.inheritance import pure_path
from folder_audit.models import AclSnapshot, FolderDescriptor, RawAce
from folder_audit.vocabulary import parse_access_type

logger = logging.getLogger(__name__)

SNAPSHOT_SQL = '''
SELECT *
FROM read_parquet('{parquet}', union_by_name = true)
ORDER BY folder_path, ace_index NULLS FIRST;'''


class AclProvider(Protocol):
    def list_subfolders(self, parent_path: str) -> List[FolderDescriptor]: ...

    def get_acl(self, path: str) -> AclSnapshot: ...


def path_key(path: str) -> str:
    """Lookup key for a folder path: no trailing separator, Windows paths casefolded."""
    s = str(path).strip()
    stripped = s.rstrip("/\\")
    if stripped and not (len(stripped) == 2 and stripped[1] == ":"):
        s = stripped
    if "\\" in s or (len(s) >= 2 and s[1] == ":"):
        return s.casefold()
    return s


def parent_key(path: str) -> Optional[str]:
    p = pure_path(path)
    if p.parent == p:
        return None
    return path_key(str(p.parent))


def _clean(v: Any) -> Any:
    if v is None:
        return None
    try:
        if pd.isna(v):
            return None
    except (TypeError, ValueError):
        pass
    return v


def _to_datetime(v: Any) -> Optional[datetime]:
    v = _clean(v)
    if v is None:
        return None
    ts = pd.to_datetime(v, utc=True, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


class _Folder:
    __slots__ = ("descriptor", "owner", "protected", "error", "entries")

    def __init__(self, descriptor: FolderDescriptor, owner: str, protected: bool, error: Optional[str]) -> None:
        self.descriptor = descriptor
        self.owner = owner
        self.protected = protected
        self.error = error
        self.entries: List[RawAce] = []


class SnapshotAclProvider:
    """Serve folder listings and ACLs from a point-in-time collection."""

    def __init__(self, folders: Dict[str, _Folder]) -> None:
        self._folders = folders

    def __len__(self) -> int:
        return len(self._folders)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "SnapshotAclProvider":
        for needed in ("folder_path", "ace_identity"):
            if needed not in df.columns:
                raise SnapshotError(f"Snapshot is missing column '{needed}'")
        df = df.copy()
        if "ace_index" in df.columns:
            df = df.sort_values(["folder_path", "ace_index"], kind="stable", na_position="first")

        folders: Dict[str, _Folder] = {}
        for row in df.to_dict("records"):
            path = _clean(row.get("folder_path"))
            if not path or not str(path).strip():
                continue
            path = str(path).strip()
            key = path_key(path)
            folder = folders.get(key)
            if folder is None:
                name = _clean(row.get("folder_name")) or pure_path(path).name or path
                folder = _Folder(
                    FolderDescriptor(path=path, name=str(name), last_modified=_to_datetime(row.get("last_modified"))),
                    owner=str(_clean(row.get("owner")) or ""),
                    protected=bool(as_bool(_clean(row.get("acl_protected")))),
                    error=_clean(row.get("acl_error")),
                )
                folders[key] = folder

            identity = _clean(row.get("ace_identity"))
            if identity is None:
                continue
            folder.entries.append(
                RawAce(
                    identity=str(identity),
                    rights=_clean(row.get("ace_rights")) or "",
                    access_type=parse_access_type(_clean(row.get("ace_type"))),
                    inheritance_flags=_clean(row.get("ace_inheritance_flags")) or "None",
                    propagation_flags=_clean(row.get("ace_propagation_flags")) or "None",
                    is_inherited=bool(as_bool(_clean(row.get("ace_inherited")))),
                )
            )
        logger.info("Loaded snapshot with %d folders", len(folders))
        return cls(folders)

    @classmethod
    def from_json_run(cls, run_path: Union[str, Path]) -> "SnapshotAclProvider":
        return cls.from_frame(load_run_frame(Path(run_path)))

    @classmethod
    def from_parquet(cls, parquet_dir: Union[str, Path]) -> "SnapshotAclProvider":
        parquet_dir = Path(parquet_dir)
        if not any(parquet_dir.glob("*.parquet")):
            raise SnapshotError(f"No parquet files found in {parquet_dir}")
        pattern = str(parquet_dir / "*.parquet").replace("'", "''")
        con = duckdb.connect(database=":memory:")
        try:
            df = con.execute(SNAPSHOT_SQL.format(parquet=pattern)).fetchdf()
        except duckdb.Error as e:
            raise SnapshotError(f"Failed to read parquet snapshot {parquet_dir}: {e}") from e
        finally:
            con.close()
        df.columns = [c.lower() for c in df.columns]
        return cls.from_frame(df)

    def list_subfolders(self, parent_path: str) -> List[FolderDescriptor]:
        want = path_key(parent_path)
        children = [f.descriptor for k, f in self._folders.items() if k != want and parent_key(f.descriptor.path) == want]
        return sorted(children, key=lambda d: d.path)

    def get_acl(self, path: str) -> AclSnapshot:
        key = path_key(path)
        folder = self._folders.get(key)
        if folder is None:
            raise AclNotFoundError(path)
        if folder.error:
            if "denied" in folder.error.lower():
                raise AclAccessDeniedError(path)
            raise AclFetchError(path, folder.error)
        return AclSnapshot(owner=folder.owner, is_protected=folder.protected, entries=tuple(folder.entries))
