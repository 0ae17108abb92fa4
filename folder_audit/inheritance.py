"""Resolve which ancestor directory introduced an inherited ACE.

The walk goes upward one directory at a time starting at the folder's parent.
The first ancestor whose own ACL holds an ACE with the same identity and type
and inheritable flags is the source. Ancestor ACLs are memoized in an AclCache
owned by the audit run.
"""
from __future__ import annotations

import logging
import threading
from pathlib import PurePosixPath, PureWindowsPath
from typing import Callable, Dict, Iterator, Union

from folder_audit.errors import AclAccessDeniedError, AclFetchError, AclNotFoundError
from folder_audit.models import (
    SOURCE_NOT_ACCESSIBLE,
    SOURCE_THIS_FOLDER,
    SOURCE_UNKNOWN,
    AclSnapshot,
    RawAce,
)
from folder_audit.vocabulary import is_inheritable

logger = logging.getLogger(__name__)

AclFetcher = Callable[[str], AclSnapshot]


def pure_path(path: str) -> Union[PurePosixPath, PureWindowsPath]:
    if "\\" in path or (len(path) >= 2 and path[1] == ":"):
        return PureWindowsPath(path)
    return PurePosixPath(path)


def iter_ancestors(path: str) -> Iterator[str]:
    """Yield parent, grandparent, ... up to and including the root."""
    p = pure_path(path)
    cur = p.parent
    if cur == p:
        return
    while str(cur) != ".":
        yield str(cur)
        if cur.parent == cur:
            return
        cur = cur.parent


class AclCache:
    """Path -> ACL snapshot memo for one audit run.

    Entries are never replaced or invalidated: the filesystem is treated as
    static for the duration of a run. Fetch failures are remembered too, so a
    path reaches the provider at most once. get_or_fetch holds a lock across
    the lookup and the fetch.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Union[AclSnapshot, AclFetchError]] = {}
        self._lock = threading.Lock()
        self.hits = 0

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_fetch(self, path: str, fetch: AclFetcher) -> AclSnapshot:
        with self._lock:
            if path in self._entries:
                self.hits += 1
                logger.debug("ACL cache hit: %s", path)
            else:
                logger.debug("ACL cache miss: %s", path)
                self._entries[path] = _fetch(path, fetch)
            entry = self._entries[path]
        if isinstance(entry, AclFetchError):
            # cached failures are raised again on every hit; start from a clean traceback
            raise entry.with_traceback(None)
        return entry


def _fetch(path: str, fetch: AclFetcher) -> Union[AclSnapshot, AclFetchError]:
    try:
        return fetch(path)
    except AclFetchError as e:
        return e.with_traceback(None)
    except PermissionError:
        return AclAccessDeniedError(path)
    except (FileNotFoundError, NotADirectoryError):
        return AclNotFoundError(path)
    except OSError as e:
        return AclFetchError(path, str(e))


def _same_principal(a: str, b: str, case_sensitive: bool) -> bool:
    return a == b if case_sensitive else a.casefold() == b.casefold()


def _is_source_of(candidate: RawAce, ace: RawAce, case_sensitive: bool) -> bool:
    return (
        _same_principal(candidate.identity, ace.identity, case_sensitive)
        and candidate.access_type == ace.access_type
        and is_inheritable(candidate.inheritance_flags)
    )


def resolve_source(
    folder_path: str,
    ace: RawAce,
    cache: AclCache,
    fetch: AclFetcher,
    case_sensitive: bool = True,
) -> str:
    """Path of the nearest ancestor that propagates `ace`, or a sentinel.

    An ancestor whose ACL cannot be read ends the walk with
    SOURCE_NOT_ACCESSIBLE; ancestors above it are not consulted.
    """
    if not ace.is_inherited:
        return SOURCE_THIS_FOLDER

    for ancestor in iter_ancestors(folder_path):
        try:
            snapshot = cache.get_or_fetch(ancestor, fetch)
        except AclFetchError as e:
            logger.debug("Inheritance walk for %s stopped at %s: %s", folder_path, ancestor, e)
            return SOURCE_NOT_ACCESSIBLE
        if any(_is_source_of(c, ace, case_sensitive) for c in snapshot.entries):
            return ancestor

    return SOURCE_UNKNOWN
