"""
forward_indexer.py: forward indexing of bridge events, one chain at a time

Overview
--------
Each invocation runs at most one pass per chain. A pass scans the block
window after the chain's checkpoint for bridge events, turns every event into
a partial bridge record and upserts it under its kappa. Records are merged
idempotently, so a window can be replayed any number of times; the checkpoint
therefore only moves once the whole window went through.

Workflow (per chain)
--------------------
1) Take the chain's indexing flag; if another pass holds it, do nothing.
2) Read the network head and the checkpoint (seeded to the head on first run).
3) Stop if the checkpoint is already at the head.
4) Window = [checkpoint, min(head, checkpoint + window_size)].
5) Fetch bridge logs for the known topics in the window, in block/log order.
6) Classify -> extract -> upsert each event; per-event skips are logged.
7) Persist checkpoint = window end and clear the flag.
Any failure in 2-6 clears the flag and leaves the checkpoint untouched; the
next invocation retries the same window.

Configuration knobs
-------------------
- `chains`: RPC endpoints, bridge address and token registry per chain.
- `window_size`: max blocks per pass (500).
- `checkpoint_store`: `redis` (atomic flag) or `json` (single host).
- `db_path`: SQLite file holding bridge transactions.
- `poll_interval_seconds`: sleep between rounds in `watch` mode.
- `flag_ttl_seconds`: expiry of the Redis indexing flag after a killed pass.
"""

import argparse
import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from bridge_indexer.core.chain import ChainReader
from bridge_indexer.core.config import ChainConfig, load_config
from bridge_indexer.core.correlator import upsert_bridge_transaction
from bridge_indexer.core.errors import EventSkipped
from bridge_indexer.core.extractor import extract_partial_record
from bridge_indexer.core.pools import PoolResolver
from bridge_indexer.core.stores import (
    JsonFileKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    SqliteDocumentStore,
    indexing_flag_key,
    latest_block_key,
)
from bridge_indexer.core.topics import all_topics, classify

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 500

LOCKED = "locked"
UP_TO_DATE = "up_to_date"
INDEXED = "indexed"
FAILED = "failed"


@dataclass
class PassResult:
    chain: str
    status: str
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    processed: int = 0
    skipped: int = 0
    error: Optional[str] = None


def window_end(checkpoint: int, head: int, window_size: int = DEFAULT_WINDOW_SIZE) -> int:
    return min(head, checkpoint + window_size)


def process_events(reader: ChainReader, doc_store, events: Sequence[Any], result: PassResult,
                   log: logging.Logger) -> None:
    pools = PoolResolver(reader)
    for event in events:
        try:
            info = classify(event["topics"][0])
            partial = extract_partial_record(reader, pools, info, event)
        except EventSkipped as skip:
            result.skipped += 1
            getattr(log, skip.log_level)(
                "Skipping event %s#%s: %s", event["transactionHash"], event.get("logIndex"), skip
            )
            continue
        upsert_bridge_transaction(doc_store, partial)
        result.processed += 1
        log.info("%s %s with kappa %s saved", partial.direction.value, info.event_name, partial.kappa)


def index_forward(chain: ChainConfig, reader: ChainReader, kv_store: KeyValueStore, doc_store,
                  window_size: int = DEFAULT_WINDOW_SIZE) -> PassResult:
    log = logging.getLogger(f"bridge_indexer.forward.{chain.name}")
    flag_key = indexing_flag_key(chain.name)
    result = PassResult(chain=chain.name, status=INDEXED)

    if not kv_store.acquire_flag(flag_key):
        log.debug("already in progress, skipping interval call.")
        result.status = LOCKED
        return result

    try:
        log.info("start indexing forward")
        network_latest = reader.block_number()
        stored = kv_store.get(latest_block_key(chain.name))
        if stored is None:
            log.info("no checkpoint yet, seeding at network head %s", network_latest)
            kv_store.set(latest_block_key(chain.name), network_latest)
            indexed_latest = network_latest
        else:
            indexed_latest = int(stored)

        if indexed_latest >= network_latest:
            log.info("forward indexing is up to date with latest network block %s", indexed_latest)
            result.status = UP_TO_DATE
            return result

        end_block = window_end(indexed_latest, network_latest, window_size)
        result.from_block, result.to_block = indexed_latest, end_block
        log.info("network latest block: %s, indexed latest block: %s, indexing until block: %s",
                 network_latest, indexed_latest, end_block)

        events = reader.get_bridge_logs(all_topics(), indexed_latest, end_block)
        log.info("fetched %d bridge events", len(events))

        start_time = time.time()
        process_events(reader, doc_store, events, result, log)
        log.info("processing took %.1f seconds (%d saved, %d skipped)",
                 time.time() - start_time, result.processed, result.skipped)

        kv_store.set(latest_block_key(chain.name), end_block)
        return result
    except Exception as exc:
        log.exception("forward indexing pass failed")
        result.status = FAILED
        result.error = str(exc)
        return result
    finally:
        kv_store.release_flag(flag_key)


# ---------------- Wiring ----------------
def build_kv_store(cfg: Dict[str, Any]) -> KeyValueStore:
    if cfg["checkpoint_store"] == "redis":
        return RedisKeyValueStore.from_url(cfg["redis_url"], cfg["flag_ttl_seconds"])
    return JsonFileKeyValueStore(cfg["checkpoint_path"])


def select_chains(cfg: Dict[str, Any], names: Optional[List[str]]) -> List[ChainConfig]:
    chains: List[ChainConfig] = cfg["chains"]
    if not names:
        return chains
    known = {c.name: c for c in chains}
    missing = [n for n in names if n not in known]
    if missing:
        raise SystemExit(f"Unknown chain(s): {', '.join(missing)}. Configured: {', '.join(known)}")
    return [known[n] for n in names]


def run_once(cfg: Dict[str, Any], chains: List[ChainConfig], kv_store: KeyValueStore,
             doc_store: SqliteDocumentStore) -> List[PassResult]:
    """One pass per chain; a chain whose RPC cannot be reached fails alone."""
    results = []
    for chain in chains:
        try:
            reader = ChainReader.from_config(chain, timeout=cfg["request_timeout"])
        except Exception as exc:
            logging.getLogger(f"bridge_indexer.forward.{chain.name}").exception("could not connect to RPC")
            results.append(PassResult(chain=chain.name, status=FAILED, error=str(exc)))
            continue
        results.append(index_forward(chain, reader, kv_store, doc_store, cfg["window_size"]))
    return results


def cmd_run(cfg: Dict[str, Any], args: argparse.Namespace) -> int:
    kv_store = build_kv_store(cfg)
    doc_store = SqliteDocumentStore(cfg["db_path"])
    try:
        results = run_once(cfg, select_chains(cfg, args.chain), kv_store, doc_store)
    finally:
        doc_store.close()
        kv_store.close()
    for res in results:
        logger.info("%s: %s blocks %s-%s (%d saved, %d skipped)",
                    res.chain, res.status, res.from_block, res.to_block, res.processed, res.skipped)
    return 1 if any(res.status == FAILED for res in results) else 0


def cmd_watch(cfg: Dict[str, Any], args: argparse.Namespace) -> int:
    interval = args.interval if args.interval is not None else cfg["poll_interval_seconds"]
    kv_store = build_kv_store(cfg)
    doc_store = SqliteDocumentStore(cfg["db_path"])
    chains = select_chains(cfg, args.chain)
    try:
        while True:
            run_once(cfg, chains, kv_store, doc_store)
            time.sleep(interval)
    except KeyboardInterrupt:
        logger.info("stopping")
    finally:
        doc_store.close()
        kv_store.close()
    return 0


def cmd_show(cfg: Dict[str, Any], args: argparse.Namespace) -> int:
    doc_store = SqliteDocumentStore(cfg["db_path"])
    try:
        record = doc_store.find_one(args.kappa.lower())
    finally:
        doc_store.close()
    if record is None:
        print(f"No bridge transaction with kappa {args.kappa}", file=sys.stderr)
        return 1
    print(json.dumps(record, indent=2, sort_keys=True))
    return 0


def cmd_pending(cfg: Dict[str, Any], args: argparse.Namespace) -> int:
    doc_store = SqliteDocumentStore(cfg["db_path"])
    try:
        records = doc_store.find_pending(args.limit)
    finally:
        doc_store.close()
    for rec in records:
        print(f"{rec['kappa']}  {rec.get('fromChainId')} -> {rec.get('toChainId')}  "
              f"{rec.get('sentValue')} {rec.get('sentTokenSymbol')}  {rec.get('fromTxnHash')}")
    print(f"{len(records)} pending")
    return 0


def cmd_status(cfg: Dict[str, Any], args: argparse.Namespace) -> int:
    kv_store = build_kv_store(cfg)
    try:
        for chain in select_chains(cfg, args.chain):
            print(f"{chain.name} ({chain.id}): latest block indexed "
                  f"{kv_store.get(latest_block_key(chain.name))}, "
                  f"indexing={kv_store.get(indexing_flag_key(chain.name))}")
    finally:
        kv_store.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Forward indexer for cross-chain bridge transactions")
    parser.add_argument("--config", default=None, help="YAML config (default: $BRIDGE_INDEXER_CONFIG_PATH)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="run one forward pass per chain")
    p_run.add_argument("--chain", action="append", help="limit to this chain (repeatable)")
    p_run.set_defaults(func=cmd_run)

    p_watch = sub.add_parser("watch", help="run passes forever")
    p_watch.add_argument("--chain", action="append")
    p_watch.add_argument("--interval", type=float, default=None, help="seconds between rounds")
    p_watch.set_defaults(func=cmd_watch)

    p_show = sub.add_parser("show", help="print a bridge transaction")
    p_show.add_argument("kappa")
    p_show.set_defaults(func=cmd_show)

    p_pending = sub.add_parser("pending", help="list transactions waiting for their IN leg")
    p_pending.add_argument("--limit", type=int, default=100)
    p_pending.set_defaults(func=cmd_pending)

    p_status = sub.add_parser("status", help="print checkpoints and indexing flags")
    p_status.add_argument("--chain", action="append")
    p_status.set_defaults(func=cmd_status)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    cfg = load_config(args.config)
    logging.getLogger().setLevel(getattr(logging, cfg["log_level"], logging.INFO))
    return args.func(cfg, args)


if __name__ == "__main__":
    sys.exit(main())
