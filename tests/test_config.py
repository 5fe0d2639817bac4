from __future__ import annotations

from pathlib import Path

import pytest

from pagestream.config import RunConfig, dump_config, load_run_config
from pagestream.descriptor import DEFAULT_DESCRIPTOR, PageDescriptor
from pagestream.util.errors import ConfigurationError
from pagestream.util.serialization import REDACTED_VALUE

ENV_VARS = (
    "PAGESTREAM_URL",
    "PAGESTREAM_REQUEST_TOKEN_FIELD",
    "PAGESTREAM_RESPONSE_TOKEN_FIELD",
    "PAGESTREAM_RESOURCE_FIELD",
    "PAGESTREAM_TIMEOUT",
    "PAGESTREAM_RETRIES",
    "PAGESTREAM_OUTPUT",
    "PAGESTREAM_PROGRESS",
    "PAGESTREAM_JSON_LOGS",
    "PAGESTREAM_LOG_LEVEL",
    "PAGESTREAM_LOG_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    command, cfg = load_run_config(argv=["list"])
    assert command == "list"
    assert isinstance(cfg, RunConfig)
    assert cfg.url is None
    assert cfg.descriptor() == DEFAULT_DESCRIPTOR
    assert cfg.timeout > 0
    assert cfg.limit is None
    assert cfg.progress is False
    assert cfg.log_level == "INFO"


def test_config_file_used_when_env_and_cli_missing(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(
        "url: https://api.example.com/v1/things\n"
        "request_token_field: page\n"
        "response_token_field: next\n"
        "resource_field: items\n"
        "params:\n"
        "  filter: active\n"
        "  pageSize: 50\n",
        encoding="utf-8",
    )

    _, cfg = load_run_config(argv=["pages", "--config", str(cfg_path)])
    assert cfg.url == "https://api.example.com/v1/things"
    assert cfg.descriptor() == PageDescriptor("page", "next", "items")
    assert cfg.params == {"filter": "active", "pageSize": "50"}


def test_json_config_file(tmp_path) -> None:
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text('{"url": "https://api.example.com", "retries": 0}', encoding="utf-8")

    _, cfg = load_run_config(argv=["list", "--config", str(cfg_path)])
    assert cfg.url == "https://api.example.com"
    assert cfg.retries == 0


def test_env_overrides_config_file(monkeypatch, tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("url: from-config\ntimeout: 10\n", encoding="utf-8")
    monkeypatch.setenv("PAGESTREAM_URL", "from-env")
    monkeypatch.setenv("PAGESTREAM_TIMEOUT", "2.5")

    _, cfg = load_run_config(argv=["list", "--config", str(cfg_path)])
    assert cfg.url == "from-env"
    assert cfg.timeout == 2.5


def test_cli_overrides_env_and_config(monkeypatch, tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("url: from-config\nretries: 7\nprogress: true\n", encoding="utf-8")
    monkeypatch.setenv("PAGESTREAM_URL", "from-env")
    monkeypatch.setenv("PAGESTREAM_RETRIES", "9")

    _, cfg = load_run_config(
        argv=["list", "--config", str(cfg_path), "--url", "from-cli", "--retries", "1", "--no-progress"]
    )
    assert cfg.url == "from-cli"
    assert cfg.retries == 1
    assert cfg.progress is False


def test_params_merge_across_sources(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("params:\n  filter: active\n  pageSize: 10\n", encoding="utf-8")

    _, cfg = load_run_config(
        argv=["list", "--config", str(cfg_path), "--param", "pageSize=100", "--param", "orderBy=name"]
    )
    assert cfg.params == {"filter": "active", "pageSize": "100", "orderBy": "name"}


def test_limit_and_output_from_cli(tmp_path) -> None:
    out = tmp_path / "items.jsonl"
    _, cfg = load_run_config(argv=["list", "--limit", "5", "--output", str(out)])
    assert cfg.limit == 5
    assert cfg.output == out


def test_bad_key_value_argument_raises() -> None:
    with pytest.raises(ConfigurationError):
        load_run_config(argv=["list", "--param", "novalue"])


def test_unknown_config_keys_warn(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("url: from-config\nunknown_key: value\n", encoding="utf-8")

    with pytest.warns(UserWarning):
        _, cfg = load_run_config(argv=["list", "--config", str(cfg_path)])
    assert cfg.url == "from-config"


@pytest.mark.parametrize(
    "text",
    [
        "retries: not-a-number\n",
        "progress: maybe\n",
        "params: [a, b]\n",
        "timeout: 0\n",
        "resource_field: ''\n",
    ],
)
def test_invalid_config_values_raise(tmp_path, text) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(text, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_run_config(argv=["list", "--config", str(cfg_path)])


def test_missing_config_file_raises(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_run_config(argv=["list", "--config", str(tmp_path / "missing.yaml")])


def test_dump_config_redacts_credentials() -> None:
    _, cfg = load_run_config(
        argv=["list", "--url", "https://api.example.com", "--header", "Authorization=Bearer abc"]
    )
    dumped = dump_config(cfg)
    assert dumped["headers"] == {"Authorization": REDACTED_VALUE}
    assert dumped["url"] == "https://api.example.com"
    assert cfg.headers == {"Authorization": "Bearer abc"}


def test_repo_example_config_file_loads() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    cfg_path = repo_root / "config" / "example.yaml"

    _, cfg = load_run_config(argv=["list", "--config", str(cfg_path)])
    assert cfg.descriptor() == PageDescriptor("pageToken", "nextPageToken", "items")
    assert cfg.params == {"maxResults": "100"}
    assert cfg.retries == 3
