import pytest
import yaml

from bridge_indexer.core.config import DEFAULT_CONFIG, ChainConfig, checksum, load_config
from bridge_indexer.core.errors import ConfigError


def write_config(tmp_path, payload):
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump(payload))
    return str(path)


def test_missing_file_falls_back_to_defaults(tmp_path):
    cfg = load_config(str(tmp_path / "absent.yml"))
    assert cfg["window_size"] == DEFAULT_CONFIG["window_size"] == 500
    assert [c.name for c in cfg["chains"]] == ["ethereum"]
    assert isinstance(cfg["chains"][0], ChainConfig)


def test_chain_addresses_are_checksummed(tmp_path):
    path = write_config(tmp_path, {
        "chains": [{
            "name": "avalanche",
            "id": 43114,
            "json_rpc_urls": [" https://api.avax.network/ext/bc/C/rpc ", ""],
            "bridge": "0xc05e61d0e7a63d27546389b7ad62fdff5a91aace",
            "tokens": {"0x62edc0692bd897d2295872a9ffcac5425011c661": "GMX"},
        }],
        "window_size": 200,
        "log_level": "debug",
    })
    cfg = load_config(path)
    chain = cfg["chains"][0]

    assert chain.bridge == checksum("0xc05e61d0e7a63d27546389b7ad62fdff5a91aace")
    assert chain.bridge != "0xc05e61d0e7a63d27546389b7ad62fdff5a91aace"
    assert chain.json_rpc_urls == ["https://api.avax.network/ext/bc/C/rpc"]
    assert chain.token_symbol("0x62EDC0692BD897D2295872A9FFCAC5425011C661") == "GMX"
    assert cfg["window_size"] == 200
    assert cfg["log_level"] == "DEBUG"


def test_avalanche_remap():
    chain = ChainConfig(name="avalanche", id=43114, json_rpc_urls=["http://x"],
                        bridge="0xC05e61d0E7a63D27546389B7aD62FdFf5A91aACE")
    assert chain.remap_token("0x20a9dc684b4d0407ef8c9a302beaaa18ee15f656").lower() == \
        "0x62edc0692bd897d2295872a9ffcac5425011c661"


@pytest.mark.parametrize("payload", [
    {"chains": []},
    {"chains": [{"name": "x", "id": 1, "bridge": "0x" + "b" * 40, "json_rpc_urls": []}]},
    {"chains": [{"name": "x", "id": 1, "bridge": "not-an-address", "json_rpc_urls": ["http://x"]}]},
    {"chains": [{"id": 1, "bridge": "0x" + "b" * 40, "json_rpc_urls": ["http://x"]}]},
    {"window_size": 0},
    {"checkpoint_store": "memcached"},
    {"flag_ttl_seconds": 0},
])
def test_invalid_config_is_rejected(tmp_path, payload):
    with pytest.raises(ConfigError):
        load_config(write_config(tmp_path, payload))


def test_duplicate_chain_names_are_rejected(tmp_path):
    entry = {"name": "x", "id": 1, "bridge": "0x" + "b" * 40, "json_rpc_urls": ["http://x"]}
    with pytest.raises(ConfigError):
        load_config(write_config(tmp_path, {"chains": [entry, dict(entry, id=2)]}))


def test_flag_ttl_defaults_and_overrides(tmp_path):
    assert load_config(str(tmp_path / "absent.yml"))["flag_ttl_seconds"] == 3600
    assert load_config(write_config(tmp_path, {"flag_ttl_seconds": "120"}))["flag_ttl_seconds"] == 120
