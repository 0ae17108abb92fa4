#!/usr/bin/env python3
"""Single entrypoint for snapshot ingest, folder audits and tests.

Usage:
  python run.py ingest --run-path runs/run-20260202-124902 --out-parquet out/parquet
  python run.py audit --snapshot runs/run-20260202-124902 --parent "\\\\filer\\share\\Departments" --out-dir out/audit
  python run.py audit --parquet out/parquet/run-20260202-124902 --parent "\\\\filer\\share\\Departments" \\
      --template templates/departments.json --split
  python run.py test
"""
from __future__ import annotations

import argparse
import logging
import subprocess
import sys
from pathlib import Path


def run_ingest(args: argparse.Namespace) -> int:
    from folder_audit import ingest
    from folder_audit.errors import SnapshotError

    print(f"Ingesting run {args.run_path} -> {args.out_parquet}")
    try:
        written = ingest.process_run(args.run_path, args.out_parquet, preview=args.preview)
    except SnapshotError as e:
        print(e)
        return 2
    return 0 if written or args.preview else 3


def run_audit(args: argparse.Namespace) -> int:
    from tqdm import tqdm

    from folder_audit.audit import AuditOptions, audit_folders
    from folder_audit.errors import ConfigurationError, SnapshotError
    from folder_audit.inheritance import AclCache
    from folder_audit.providers import SnapshotAclProvider
    from folder_audit.report import summarize, write_report
    from folder_audit.template import load_template

    # the template is loaded before anything else: a bad template fails the whole run
    template = None
    if args.template:
        try:
            template = load_template(Path(args.template))
        except ConfigurationError as e:
            print(f"Configuration error: {e}")
            return 2

    try:
        if args.parquet:
            provider = SnapshotAclProvider.from_parquet(args.parquet)
        else:
            provider = SnapshotAclProvider.from_json_run(args.snapshot)
    except SnapshotError as e:
        print(f"Snapshot error: {e}")
        return 3

    folders = provider.list_subfolders(args.parent)
    if not folders:
        print(f"No subfolders of {args.parent} found in snapshot")
        return 4

    options = AuditOptions(
        template=template,
        include_aces=not args.no_aces,
        case_sensitive=not args.case_insensitive,
    )
    mode = "audit" if template else "enumeration"
    print(f"Auditing {len(folders)} folders under {args.parent} ({mode} mode)")
    results = audit_folders(tqdm(folders, desc="auditing folders"), provider, options, AclCache())

    out_dir = Path(args.out_dir)
    for path in write_report(results, out_dir, split=args.split):
        print(f"Wrote {path}")

    counts = summarize(results)
    print(
        f"Reported {counts['folders']} folders: {counts['deviant']} deviant, {counts['errors']} unreadable, "
        f"{counts['missing']} missing and {counts['unexpected']} unexpected ACEs"
    )
    return 0


def run_tests(args: argparse.Namespace) -> int:
    # Run pytest using the same Python interpreter
    print("Running pytest...")
    res = subprocess.run([sys.executable, '-m', 'pytest', '-q'])
    py_res = res.returncode

    # Run pyright if available
    from shutil import which

    pr = which('pyright') or which(str(Path('.venv') / 'Scripts' / 'pyright'))
    if pr:
        print("Running pyright...")
        pr_res = subprocess.run([pr])
        return pr_res.returncode or py_res
    return py_res


def main():
    p = argparse.ArgumentParser(prog='run.py')
    p.add_argument('--log-level', default='WARNING', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    sp = p.add_subparsers(dest='cmd')

    i = sp.add_parser('ingest')
    i.add_argument('--run-path', required=True)
    i.add_argument('--out-parquet', default='out/parquet')
    i.add_argument('--preview', action='store_true')

    a = sp.add_parser('audit')
    src = a.add_mutually_exclusive_group(required=True)
    src.add_argument('--snapshot', help='Forensic ACL run directory (folderacls/*.json)')
    src.add_argument('--parquet', help='Parquet directory written by ingest')
    a.add_argument('--parent', required=True, help='Parent folder whose direct subfolders are audited')
    a.add_argument('--template', default=None, help='JSON template of required permissions (audit mode)')
    a.add_argument('--out-dir', default='out/audit')
    a.add_argument('--no-aces', action='store_true', help='Skip per-ACE inheritance source resolution')
    a.add_argument('--case-insensitive', action='store_true', help='Compare principals and labels case-insensitively')
    a.add_argument('--split', action='store_true', help='Write missing/unexpected deviation CSVs')

    sp.add_parser('test')

    args = p.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level), format='%(levelname)s %(name)s: %(message)s')
    if args.cmd == 'ingest':
        raise SystemExit(run_ingest(args))
    elif args.cmd == 'audit':
        raise SystemExit(run_audit(args))
    elif args.cmd == 'test':
        raise SystemExit(run_tests(args))
    else:
        p.print_help()


if __name__ == '__main__':
    main()
