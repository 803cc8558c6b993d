"""
Persistence collaborators.

Key-value stores hold the per-chain checkpoint and indexing flag:
  `{chain}_LATEST_BLOCK_INDEXED`, `{chain}_IS_INDEXING_FORWARD`.
The document store holds one bridge transaction per kappa.
"""

import json
import os
import sqlite3
import tempfile
import threading
from typing import Any, Dict, List, Optional

import redis

FLAG_SET = "true"
FLAG_CLEAR = "false"


def latest_block_key(chain_name: str) -> str:
    return f"{chain_name}_LATEST_BLOCK_INDEXED"


def indexing_flag_key(chain_name: str) -> str:
    return f"{chain_name}_IS_INDEXING_FORWARD"


# ---------------- Key-value stores ----------------
class KeyValueStore:
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def acquire_flag(self, key: str) -> bool:
        """Set `key` to "true" unless it already is; return whether we set it."""
        if self.get(key) == FLAG_SET:
            return False
        self.set(key, FLAG_SET)
        return True

    def release_flag(self, key: str) -> None:
        self.set(key, FLAG_CLEAR)

    def close(self) -> None:
        pass


# Atomic check-and-set on the server. The flag expires after ARGV[2] seconds
# so a killed pass cannot hold it forever.
_ACQUIRE_FLAG_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return 0
end
redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[2])
return 1
"""

DEFAULT_FLAG_TTL_SECONDS = 3600


class RedisKeyValueStore(KeyValueStore):
    def __init__(self, client: "redis.Redis", flag_ttl: int = DEFAULT_FLAG_TTL_SECONDS):
        self.client = client
        self.flag_ttl = int(flag_ttl)
        self._acquire = client.register_script(_ACQUIRE_FLAG_LUA)

    @classmethod
    def from_url(cls, url: str, flag_ttl: int = DEFAULT_FLAG_TTL_SECONDS) -> "RedisKeyValueStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), flag_ttl)

    def get(self, key: str) -> Optional[str]:
        value = self.client.get(key)
        if isinstance(value, bytes):
            return value.decode()
        return value

    def set(self, key: str, value: Any) -> None:
        self.client.set(key, str(value))

    def acquire_flag(self, key: str) -> bool:
        return bool(self._acquire(keys=[key], args=[FLAG_SET, self.flag_ttl]))

    def close(self) -> None:
        self.client.close()


class JsonFileKeyValueStore(KeyValueStore):
    """
    Keys persisted in one JSON file, rewritten atomically on every set.
    The flag check-and-set is only atomic within this process.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r") as f:
            return json.load(f)

    def _write(self, payload: Dict[str, str]) -> None:
        d = os.path.dirname(os.path.abspath(self.path)) or "."
        os.makedirs(d, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".ckpt_", dir=d, text=True)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f, separators=(",", ":"), sort_keys=True)
            os.replace(tmp, self.path)
        except Exception:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            payload = self._load()
            payload[key] = str(value)
            self._write(payload)

    def acquire_flag(self, key: str) -> bool:
        with self._lock:
            payload = self._load()
            if payload.get(key) == FLAG_SET:
                return False
            payload[key] = FLAG_SET
            self._write(payload)
            return True


# ---------------- Document store ----------------
class SqliteDocumentStore:
    """
    Bridge transactions as JSON documents keyed by kappa. JSON keeps token
    amounts as exact integers regardless of size.
    """

    def __init__(self, db_path: str):
        if db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        self.conn = sqlite3.connect(db_path)
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS bridge_transactions (
                kappa TEXT PRIMARY KEY,
                document TEXT NOT NULL,
                pending INTEGER NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_bridge_transactions_pending ON bridge_transactions(pending)"
        )
        self.conn.commit()

    def find_one(self, kappa: str) -> Optional[Dict[str, Any]]:
        row = self.conn.execute(
            "SELECT document FROM bridge_transactions WHERE kappa = ?", (kappa,)
        ).fetchone()
        return json.loads(row[0]) if row else None

    def insert(self, record: Dict[str, Any]) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO bridge_transactions (kappa, document, pending) VALUES (?, ?, ?)",
                (record["kappa"], json.dumps(record, sort_keys=True), int(bool(record.get("pending")))),
            )

    def find_one_and_update(self, kappa: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply `fields` to the stored document and return the updated document."""
        with self.conn:
            row = self.conn.execute(
                "SELECT document FROM bridge_transactions WHERE kappa = ?", (kappa,)
            ).fetchone()
            if row is None:
                return None
            document = json.loads(row[0])
            document.update(fields)
            self.conn.execute(
                "UPDATE bridge_transactions SET document = ?, pending = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE kappa = ?",
                (json.dumps(document, sort_keys=True), int(bool(document.get("pending"))), kappa),
            )
        return document

    def find_pending(self, limit: int = 100) -> List[Dict[str, Any]]:
        rows = self.conn.execute(
            "SELECT document FROM bridge_transactions WHERE pending = 1 ORDER BY updated_at LIMIT ?",
            (limit,),
        ).fetchall()
        return [json.loads(r[0]) for r in rows]

    def count(self) -> int:
        return int(self.conn.execute("SELECT COUNT(*) FROM bridge_transactions").fetchone()[0])

    def close(self) -> None:
        self.conn.close()
