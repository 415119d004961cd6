#!/usr/bin/env python3
"""
Command line front end for the note store.

    python -m notesearch add "buy oat milk"
    python -m notesearch search "oat milk" --limit 5
    python -m notesearch list
    python -m notesearch show 3
    python -m notesearch rebuild
    python -m notesearch inspect

--data-dir (or NOTESEARCH_DATA_DIR) picks the directory holding notes.log and index.snap.
"""

import argparse
import logging
import sys
import time

from notesearch.config import EngineConfig
from notesearch.errors import CorruptIndexError, NotFoundError, StorageIOError
from notesearch.service import NotesService
from notesearch.snapshot import read_header


def _fmt_time(ts: float) -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(ts))


def _preview(text: str, width: int = 70) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[:width - 3] + "..."


def cmd_add(svc: NotesService, args) -> int:
    res = svc.add_note(args.content)
    print(f"added note {res['id']}")
    return 0


def cmd_search(svc: NotesService, args) -> int:
    t0 = time.perf_counter()
    results = svc.search_notes(args.query, limit=args.limit)
    ms = (time.perf_counter() - t0) * 1000
    if not results:
        print(f"no matches ({ms:.1f} ms)")
        return 0
    for r in results:
        print(f"  {r['id']:>6}  {r['score']:.4f}  {_preview(r['content'])}")
    print(f"{len(results)} results in {ms:.1f} ms")
    return 0


def cmd_list(svc: NotesService, args) -> int:
    for n in svc.get_notes():
        print(f"  {n['id']:>6}  {_fmt_time(n['created_at'])}  {_preview(n['content'])}")
    return 0


def cmd_show(svc: NotesService, args) -> int:
    n = svc.get_note(args.id)
    print(f"[note {n['id']}] {_fmt_time(n['created_at'])}")
    print(n["content"])
    return 0


def cmd_rebuild(svc: NotesService, args) -> int:
    svc.rebuild_index()
    svc.persistence.write_snapshot(force=True)
    print(f"rebuilt index: {len(svc.index)} terms over {len(svc.store)} notes")
    return 0


def cmd_inspect(svc: NotesService, args) -> int:
    st = svc.stats()
    print(f"[Inspecting {svc.config.data_dir}]")
    print(f"  notes: {st['notes']}  log bytes: {st['log_bytes']}  terms: {st['terms']}")
    print(f"  index loaded from snapshot: {st['loaded_from_snapshot']}")
    try:
        h = read_header(svc.persistence.snapshot_path)
        print(f"  snapshot v{h.version}: {h.note_count} notes, last id {h.last_note_id}, {h.n_terms} terms")
    except FileNotFoundError:
        print("  snapshot: none")
    except CorruptIndexError as e:
        print(f"  snapshot: unusable ({e})")
    # most common terms by document frequency
    terms = sorted(svc.index.terms(), key=lambda t: -svc.index.document_frequency(t))
    for t in terms[:args.limit]:
        print(f"    {t!r}: df={svc.index.document_frequency(t)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="notesearch", description="Local note store with full-text search")
    ap.add_argument("--data-dir", default=None, help="directory for notes.log / index.snap")
    ap.add_argument("--min-token-length", type=int, default=None)
    ap.add_argument("-v", "--verbose", action="store_true", help="log progress to stderr")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="add a note")
    p.add_argument("content")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("search", help="ranked full-text search")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=None)
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("list", help="list all notes")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("show", help="print one note")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("rebuild", help="rebuild the index from the note log")
    p.set_defaults(func=cmd_rebuild)

    p = sub.add_parser("inspect", help="summarize the log, index and snapshot")
    p.add_argument("--limit", type=int, default=10, help="how many top terms to print")
    p.set_defaults(func=cmd_inspect)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = EngineConfig.from_env(data_dir=args.data_dir, min_token_length=args.min_token_length)
    try:
        with NotesService(config) as svc:
            return args.func(svc, args)
    except NotFoundError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except StorageIOError as e:
        print(f"storage error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
