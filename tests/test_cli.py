import json

import yaml

from bridge_indexer.core.config import load_config
from bridge_indexer.core.correlator import derive_out_kappa
from bridge_indexer.core.harvesters import forward_indexer
from bridge_indexer.core.harvesters.forward_indexer import FAILED, INDEXED, main, run_once
from bridge_indexer.core.stores import (
    JsonFileKeyValueStore,
    SqliteDocumentStore,
    indexing_flag_key,
    latest_block_key,
)

from conftest import USDC, USER, FakeChainReader, bridge_log, transfer_log, tx_hash


def write_config(tmp_path):
    cfg = {
        "chains": [{
            "name": "ethereum", "id": 1, "bridge": "0x" + "b" * 40,
            "json_rpc_urls": ["http://localhost:8545"],
        }],
        "checkpoint_store": "json",
        "checkpoint_path": str(tmp_path / "checkpoints.json"),
        "db_path": str(tmp_path / "bridge.db"),
    }
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(cfg))
    return cfg, str(path)


def test_show_prints_stored_transaction(tmp_path, capsys):
    cfg, path = write_config(tmp_path)
    store = SqliteDocumentStore(cfg["db_path"])
    store.insert({"kappa": "0xabc", "pending": True, "sentValue": 5})
    store.close()

    assert main(["--config", path, "show", "0xABC"]) == 0
    assert json.loads(capsys.readouterr().out) == {"kappa": "0xabc", "pending": True, "sentValue": 5}

    assert main(["--config", path, "show", "0xdef"]) == 1


def test_pending_lists_open_transactions(tmp_path, capsys):
    cfg, path = write_config(tmp_path)
    store = SqliteDocumentStore(cfg["db_path"])
    store.insert({"kappa": "0x1", "pending": True, "fromChainId": 1, "toChainId": 56})
    store.insert({"kappa": "0x2", "pending": False})
    store.close()

    assert main(["--config", path, "pending"]) == 0
    out = capsys.readouterr().out
    assert "0x1" in out
    assert "0x2" not in out
    assert "1 pending" in out


def test_status_reports_checkpoint(tmp_path, capsys):
    cfg, path = write_config(tmp_path)
    JsonFileKeyValueStore(cfg["checkpoint_path"]).set(latest_block_key("ethereum"), 123)

    assert main(["--config", path, "status"]) == 0
    assert "ethereum (1): latest block indexed 123" in capsys.readouterr().out


def write_two_chain_config(tmp_path):
    chain = {"id": 10, "bridge": "0x" + "b" * 40, "json_rpc_urls": ["http://localhost:8545"],
             "tokens": {USDC: "USDC"}}
    cfg = {
        "chains": [dict(chain, name="dead"), dict(chain, name="live", id=56)],
        "checkpoint_store": "json",
        "checkpoint_path": str(tmp_path / "checkpoints.json"),
        "db_path": str(tmp_path / "bridge.db"),
    }
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(cfg))
    JsonFileKeyValueStore(cfg["checkpoint_path"]).set(latest_block_key("live"), 100)
    return cfg, str(path)


def connect_all_but_dead(chain, timeout=60.0):
    if chain.name == "dead":
        raise ConnectionError("eth_chainId check failed")
    reader = FakeChainReader(chain)
    h = tx_hash(1)
    event = bridge_log("TokenDeposit", {"to": USER, "chainId": 1, "token": USDC, "amount": 50},
                       h, block_number=150)
    reader.add_transaction(h, event, [transfer_log(USDC, 50, h, block_number=150), event])
    return reader


def test_unreachable_chain_does_not_block_the_others(tmp_path, monkeypatch):
    cfg, path = write_two_chain_config(tmp_path)
    monkeypatch.setattr(forward_indexer.ChainReader, "from_config", connect_all_but_dead)
    loaded = load_config(path)
    kv_store = JsonFileKeyValueStore(cfg["checkpoint_path"])
    doc_store = SqliteDocumentStore(cfg["db_path"])

    results = run_once(loaded, loaded["chains"], kv_store, doc_store)

    assert [r.status for r in results] == [FAILED, INDEXED]
    assert "eth_chainId" in results[0].error
    assert kv_store.get(latest_block_key("live")) == "600"
    assert kv_store.get(latest_block_key("dead")) is None
    assert kv_store.get(indexing_flag_key("dead")) is None
    assert doc_store.find_one(derive_out_kappa(tx_hash(1)))["sentValue"] == 50
    doc_store.close()


def test_run_exits_nonzero_when_a_pass_fails(tmp_path, monkeypatch):
    cfg, path = write_two_chain_config(tmp_path)
    monkeypatch.setattr(forward_indexer.ChainReader, "from_config", connect_all_but_dead)

    assert main(["--config", path, "run"]) == 1
    assert JsonFileKeyValueStore(cfg["checkpoint_path"]).get(latest_block_key("live")) == "600"

    assert main(["--config", path, "run", "--chain", "live"]) == 0


def test_watch_keeps_polling_past_a_failing_chain(tmp_path, monkeypatch):
    cfg, path = write_two_chain_config(tmp_path)
    monkeypatch.setattr(forward_indexer.ChainReader, "from_config", connect_all_but_dead)
    rounds = []

    def sleep(seconds):
        rounds.append(seconds)
        if len(rounds) == 2:
            raise KeyboardInterrupt

    monkeypatch.setattr(forward_indexer.time, "sleep", sleep)

    assert main(["--config", path, "watch", "--interval", "5"]) == 0
    assert rounds == [5.0, 5.0]
    assert JsonFileKeyValueStore(cfg["checkpoint_path"]).get(latest_block_key("live")) == "1000"
