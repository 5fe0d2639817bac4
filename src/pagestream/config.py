from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .descriptor import DEFAULT_DESCRIPTOR, PageDescriptor
from .transport.http import DEFAULT_RETRIES, DEFAULT_TIMEOUT
from .util.errors import ConfigurationError
from .util.serialization import redact_mapping

# --------
# Defaults
# --------
ALLOWED_CONFIG_KEYS = {
    "url",
    "params",
    "headers",
    "request_token_field",
    "response_token_field",
    "resource_field",
    "timeout",
    "retries",
    "limit",
    "output",
    "progress",
    "json_logs",
    "log_level",
    "log_file",
}
BOOL_CONFIG_KEYS = {"progress", "json_logs"}
INT_CONFIG_KEYS = {"retries", "limit"}
FLOAT_CONFIG_KEYS = {"timeout"}
MAPPING_CONFIG_KEYS = {"params", "headers"}
STR_CONFIG_KEYS = {
    "url",
    "output",
    "log_file",
    "log_level",
    "request_token_field",
    "response_token_field",
    "resource_field",
}


@dataclass(frozen=True)
class RunConfig:
    url: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    # Page descriptor
    request_token_field: str = DEFAULT_DESCRIPTOR.request_token_field
    response_token_field: str = DEFAULT_DESCRIPTOR.response_token_field
    resource_field: str = DEFAULT_DESCRIPTOR.resource_field

    # Transport
    timeout: float = DEFAULT_TIMEOUT
    retries: int = DEFAULT_RETRIES

    # Output
    limit: Optional[int] = None
    output: Optional[Path] = None
    progress: bool = False
    json_logs: bool = False
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def descriptor(self) -> PageDescriptor:
        return PageDescriptor(
            request_token_field=self.request_token_field,
            response_token_field=self.response_token_field,
            resource_field=self.resource_field,
        )


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            # YAML is a superset of JSON
            data = yaml.safe_load(text) or {}
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip().lower()
    if not raw:
        return None
    return raw in {"1", "true", "yes", "on"}


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ConfigurationError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise ConfigurationError(f"Config field '{key}' must be an integer")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            pass
    raise ConfigurationError(f"Config field '{key}' must be a number")


def _coerce_mapping(key: str, value: Any) -> Dict[str, str]:
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    raise ConfigurationError(f"Config field '{key}' must be a mapping")


def parse_key_values(key: str, pairs: Optional[List[str]]) -> Optional[Dict[str, str]]:
    """
    Parse repeated KEY=VALUE command line arguments into a dict.
    """
    if not pairs:
        return None
    out: Dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ConfigurationError(f"--{key} expects KEY=VALUE, got '{pair}'")
        out[name.strip()] = value
    return out


def _coerce_value(key: str, value: Any) -> Any:
    if key in BOOL_CONFIG_KEYS:
        return _coerce_bool(key, value)
    if key in INT_CONFIG_KEYS:
        return _coerce_int(key, value)
    if key in FLOAT_CONFIG_KEYS:
        return _coerce_float(key, value)
    if key in MAPPING_CONFIG_KEYS:
        return _coerce_mapping(key, value)
    if key in STR_CONFIG_KEYS:
        if isinstance(value, (str, Path)):
            return str(value)
        raise ConfigurationError(f"Config field '{key}' must be a string")
    return value


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS or value is None:
            continue
        normalized[key] = _coerce_value(key, value)
    return normalized


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a, except mappings which merge key-wise.
    """
    merged = dict(a)
    for key, value in b.items():
        if key in MAPPING_CONFIG_KEYS and isinstance(merged.get(key), dict):
            combined = dict(merged[key])
            combined.update(value)
            merged[key] = combined
        else:
            merged[key] = value
    return merged


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pagestream", description="Stream items from paged list APIs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument("--url", default=None, help="List endpoint URL")
        p.add_argument(
            "--param",
            dest="params",
            action="append",
            default=None,
            metavar="KEY=VALUE",
            help="Query parameter sent with every page request (repeatable)",
        )
        p.add_argument(
            "--header",
            dest="headers",
            action="append",
            default=None,
            metavar="KEY=VALUE",
            help="HTTP header sent with every page request (repeatable)",
        )
        p.add_argument("--request-token-field", default=None, help="Request page token field (default pageToken)")
        p.add_argument(
            "--response-token-field", default=None, help="Response next page token field (default nextPageToken)"
        )
        p.add_argument("--resource-field", default=None, help="Response resource list field (default resources)")
        p.add_argument(
            "--timeout", type=float, default=None, help=f"Request timeout seconds (default {DEFAULT_TIMEOUT})"
        )
        p.add_argument(
            "--retries", type=int, default=None, help=f"Transport retries per page request (default {DEFAULT_RETRIES})"
        )
        p.add_argument("--output", type=Path, default=None, help="Write JSONL here instead of stdout")
        p.add_argument(
            "--progress",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Show a progress spinner and summary table on stderr",
        )
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")
        p.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")

    p_list = subparsers.add_parser("list", help="Write every item as one JSON line")
    add_common(p_list)
    p_list.add_argument("--limit", type=int, default=None, help="Stop after this many items")

    p_pages = subparsers.add_parser("pages", help="Write one summary line per page")
    add_common(p_pages)
    return parser


def load_run_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[list[str]] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, RunConfig) where command is list|pages
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = ns.command

    base: Dict[str, Any] = {
        "url": None,
        "params": {},
        "headers": {},
        "request_token_field": DEFAULT_DESCRIPTOR.request_token_field,
        "response_token_field": DEFAULT_DESCRIPTOR.response_token_field,
        "resource_field": DEFAULT_DESCRIPTOR.resource_field,
        "timeout": DEFAULT_TIMEOUT,
        "retries": DEFAULT_RETRIES,
        "limit": None,
        "output": None,
        "progress": False,
        "json_logs": False,
        "log_level": "INFO",
        "log_file": None,
    }

    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    env_raw = _compact_dict(
        {
            "url": _env_str("PAGESTREAM_URL"),
            "request_token_field": _env_str("PAGESTREAM_REQUEST_TOKEN_FIELD"),
            "response_token_field": _env_str("PAGESTREAM_RESPONSE_TOKEN_FIELD"),
            "resource_field": _env_str("PAGESTREAM_RESOURCE_FIELD"),
            "timeout": _env_str("PAGESTREAM_TIMEOUT"),
            "retries": _env_str("PAGESTREAM_RETRIES"),
            "output": _env_str("PAGESTREAM_OUTPUT"),
            "progress": _env_bool("PAGESTREAM_PROGRESS"),
            "json_logs": _env_bool("PAGESTREAM_JSON_LOGS"),
            "log_level": _env_str("PAGESTREAM_LOG_LEVEL"),
            "log_file": _env_str("PAGESTREAM_LOG_FILE"),
        }
    )
    env_cfg = {k: _coerce_value(k, v) for k, v in env_raw.items()}

    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "url": getattr(ns, "url", None),
            "params": parse_key_values("param", getattr(ns, "params", None)),
            "headers": parse_key_values("header", getattr(ns, "headers", None)),
            "request_token_field": getattr(ns, "request_token_field", None),
            "response_token_field": getattr(ns, "response_token_field", None),
            "resource_field": getattr(ns, "resource_field", None),
            "timeout": getattr(ns, "timeout", None),
            "retries": getattr(ns, "retries", None),
            "limit": getattr(ns, "limit", None),
            "output": getattr(ns, "output", None),
            "progress": getattr(ns, "progress", None),
            "json_logs": getattr(ns, "json_logs", None),
            "log_level": getattr(ns, "log_level", None),
            "log_file": getattr(ns, "log_file", None),
        }
    )

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    timeout = float(merged["timeout"])
    if timeout <= 0:
        raise ConfigurationError("timeout must be positive")
    retries = int(merged["retries"])
    if retries < 0:
        raise ConfigurationError("retries must not be negative")
    limit = merged.get("limit")
    if limit is not None and int(limit) < 0:
        raise ConfigurationError("limit must not be negative")

    cfg = RunConfig(
        url=str(merged["url"]) if merged.get("url") else None,
        params=dict(merged["params"]),
        headers=dict(merged["headers"]),
        request_token_field=str(merged["request_token_field"]),
        response_token_field=str(merged["response_token_field"]),
        resource_field=str(merged["resource_field"]),
        timeout=timeout,
        retries=retries,
        limit=int(limit) if limit is not None else None,
        output=Path(merged["output"]) if merged.get("output") else None,
        progress=bool(merged["progress"]),
        json_logs=bool(merged["json_logs"]),
        log_level=str(merged.get("log_level") or "INFO").upper(),
        log_file=Path(merged["log_file"]) if merged.get("log_file") else None,
    )
    # Fail fast on an unusable descriptor
    cfg.descriptor()
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    return {
        "url": cfg.url,
        "params": dict(cfg.params),
        "headers": redact_mapping(cfg.headers),
        "request_token_field": cfg.request_token_field,
        "response_token_field": cfg.response_token_field,
        "resource_field": cfg.resource_field,
        "timeout": cfg.timeout,
        "retries": cfg.retries,
        "limit": cfg.limit,
        "output": str(cfg.output) if cfg.output else None,
        "progress": cfg.progress,
        "json_logs": cfg.json_logs,
        "log_level": cfg.log_level,
        "log_file": str(cfg.log_file) if cfg.log_file else None,
    }
