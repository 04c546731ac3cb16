import pytest

from dnilookup.config import (
    DEFAULT_TARGET_URL,
    ConfigError,
    Settings,
    load_settings,
    read_yaml_config,
    settings_from_env,
    settings_from_mapping,
)


def _write(tmp_path, text):
    p = tmp_path / "config.yaml"
    p.write_text(text, encoding="utf-8")
    return p


def test_defaults_without_file_or_env():
    s = load_settings(env={})
    assert s == Settings()
    assert s.target_url == DEFAULT_TARGET_URL
    assert s.port == 3000
    assert s.navigation_timeout_ms == 45000
    assert s.settle_timeout_ms == 12000
    assert (s.block_limit, s.bare_limit, s.extra_max_chars) == (12, 25, 240)


def test_yaml_sections_are_applied(tmp_path):
    path = _write(tmp_path, """
target:
  url: https://site.test/buscar/
  proxy: http://proxy.test:3128
server:
  port: 8080
browser:
  navigation_timeout_ms: 30000
  headless: false
extraction:
  bare_limit: 10
ops:
  log_path: ops.jsonl
  stdout: true
""")
    s = load_settings(path, env={})
    assert s.target_url == "https://site.test/buscar/"
    assert s.proxy_url == "http://proxy.test:3128"
    assert s.port == 8080
    assert s.navigation_timeout_ms == 30000
    assert s.headless is False
    assert s.bare_limit == 10
    assert s.block_limit == 12
    assert s.ops_log_path == "ops.jsonl"
    assert s.ops_stdout is True


def test_env_overrides_yaml(tmp_path):
    path = _write(tmp_path, "target:\n  url: https://from-yaml.test/\nserver:\n  port: 8080\n")
    env = {"TARGET_URL": "https://from-env.test/", "PORT": "9000", "DNL_OPS_JSON": "1"}
    s = load_settings(path, env=env)
    assert s.target_url == "https://from-env.test/"
    assert s.port == 9000
    assert s.ops_stdout is True


def test_empty_env_values_are_ignored():
    s = settings_from_env({"TARGET_URL": "", "PROXY_URL": "", "DNL_OPS_JSON": "0"})
    assert s.target_url == DEFAULT_TARGET_URL
    assert s.proxy_url == ""
    assert s.ops_stdout is False


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigError, match="file not found"):
        load_settings(tmp_path / "nope.yaml", env={})


def test_invalid_yaml_raises(tmp_path):
    path = _write(tmp_path, "target: [unclosed\n")
    with pytest.raises(ConfigError, match="invalid YAML"):
        read_yaml_config(path)


def test_non_mapping_yaml_raises(tmp_path):
    path = _write(tmp_path, "- a\n- b\n")
    with pytest.raises(ConfigError, match="must be a mapping"):
        read_yaml_config(path)


def test_non_integer_value_raises():
    with pytest.raises(ConfigError, match="server.port"):
        settings_from_mapping({"server": {"port": "eighty"}})
    with pytest.raises(ConfigError, match="DNL_NAV_TIMEOUT_MS"):
        settings_from_env({"DNL_NAV_TIMEOUT_MS": "soon"})


def test_empty_yaml_file_keeps_defaults(tmp_path):
    path = _write(tmp_path, "")
    assert load_settings(path, env={}) == Settings()


def test_name_pattern_from_yaml(tmp_path):
    path = _write(tmp_path, "extraction:\n  name_pattern: '\\D+?([A-Z][a-z]+)'\n")
    s = load_settings(path, env={})
    assert s.name_pattern == r"\D+?([A-Z][a-z]+)"


def test_example_config_keeps_default_name_pattern():
    from pathlib import Path

    example = Path(__file__).resolve().parents[2] / "config" / "example.yaml"
    s = load_settings(example, env={})
    assert s.name_pattern == Settings().name_pattern


def test_invalid_name_pattern_raises():
    with pytest.raises(ConfigError, match="not a valid regular expression"):
        settings_from_mapping({"extraction": {"name_pattern": "([A-Z"}})
    with pytest.raises(ConfigError, match="capture group"):
        settings_from_mapping({"extraction": {"name_pattern": "[A-Z]+"}})
