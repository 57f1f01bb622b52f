from vaults_monitor.cache import cache_key, clear_cache, get_cache_dir, get_cached, set_cached
from vaults_monitor.constants import CACHE_DIR_NAME


def test_cache_key_is_deterministic():
    assert cache_key("spot_market", "0xabc", 0) == cache_key("spot_market", "0xabc", 0)
    assert cache_key("spot_market", "0xabc", 0) != cache_key("spot_market", "0xabc", 1)


def test_cache_round_trip(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    key = cache_key("spot_market", "0xabc", 0)

    assert get_cached(key) is None
    set_cached(key, {"market_index": 0, "symbol": "USDC", "decimals": 6})
    assert get_cached(key) == {"market_index": 0, "symbol": "USDC", "decimals": 6}
    assert get_cache_dir() == tmp_path / CACHE_DIR_NAME


def test_corrupt_cache_entry_is_ignored(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    key = cache_key("spot_market", "0xabc", 0)
    (get_cache_dir() / f"{key}.json").write_text("{not json", encoding="utf-8")

    assert get_cached(key) is None


def test_clear_cache(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    set_cached(cache_key("x"), [1, 2, 3])

    clear_cache()

    assert not (tmp_path / CACHE_DIR_NAME).exists()
    assert "Cache cleared" in capsys.readouterr().err
