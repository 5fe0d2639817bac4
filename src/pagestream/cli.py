from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Callable, Dict, Iterator, Optional, TextIO

from .accessor import PagedSequence
from .config import RunConfig, dump_config, load_run_config
from .fields import NO_PAGE_TOKEN
from .logging import LogConfig, add_run_log_file, get_logger, setup_logging
from .transport.http import HttpJsonFetcher
from .util.errors import ConfigurationError, as_exit_code
from .util.rich_progress import PageProgress, render_summary_table
from .util.serialization import sanitize_for_json

LOG = get_logger(__name__)

Fetcher = Callable[..., Any]


def _log_event(level: int, message: str, *, step: str, phase: str, **extra: Any) -> None:
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    payload.update(extra)
    LOG.log(level, message, extra=payload)


def _dumps(value: Any) -> str:
    return json.dumps(sanitize_for_json(value), sort_keys=True, ensure_ascii=False)


@contextmanager
def _open_output(cfg: RunConfig) -> Iterator[TextIO]:
    if cfg.output is None:
        yield sys.stdout
        return
    cfg.output.parent.mkdir(parents=True, exist_ok=True)
    with cfg.output.open("w", encoding="utf-8") as fh:
        yield fh


def build_sequence(cfg: RunConfig, fetcher: Fetcher) -> PagedSequence[Any]:
    """
    Paged sequence over cfg.params; a --param for the token field sets the starting page.
    """
    descriptor = cfg.descriptor()
    request: Dict[str, Any] = dict(cfg.params)
    request.setdefault(descriptor.request_token_field, NO_PAGE_TOKEN)
    return PagedSequence(request, fetcher, descriptor)


def _make_fetcher(cfg: RunConfig) -> HttpJsonFetcher:
    if not cfg.url:
        raise ConfigurationError("--url is required (or set url in the config file / PAGESTREAM_URL)")
    return HttpJsonFetcher(cfg.url, timeout=cfg.timeout, retries=cfg.retries, headers=cfg.headers)


def cmd_list(cfg: RunConfig, fetcher: Fetcher) -> int:
    seq = build_sequence(cfg, fetcher)
    started = perf_counter()
    _log_event(logging.INFO, "Listing items", step="list", phase="start", config=dump_config(cfg))
    status = "FAILED"
    try:
        with _open_output(cfg) as out, PageProgress(enabled=cfg.progress) as progress:
            while (cfg.limit is None or seq.num_results < cfg.limit) and seq.has_next():
                out.write(_dumps(seq.next()) + "\n")
                progress.update(pages=seq.page_number, items=seq.num_results)
        status = "OK"
    finally:
        render_summary_table(
            enabled=cfg.progress,
            status=status,
            metrics={"url": cfg.url, "pages": seq.page_number, "items": seq.num_results, "output": cfg.output},
        )
    _log_event(
        logging.INFO,
        "Listing complete",
        step="list",
        phase="complete",
        pages=seq.page_number,
        items=seq.num_results,
        duration_ms=int((perf_counter() - started) * 1000),
    )
    return 0


def cmd_pages(cfg: RunConfig, fetcher: Fetcher) -> int:
    seq = build_sequence(cfg, fetcher)
    started = perf_counter()
    _log_event(logging.INFO, "Listing pages", step="pages", phase="start", config=dump_config(cfg))
    items = 0
    status = "FAILED"
    try:
        with _open_output(cfg) as out, PageProgress(enabled=cfg.progress) as progress:
            for page in seq.iter_pages():
                items += len(page)
                summary = {
                    "page": seq.page_number,
                    "items": len(page),
                    "hasNextPage": bool(seq.next_page_token()),
                }
                out.write(_dumps(summary) + "\n")
                progress.update(pages=seq.page_number, items=items)
        status = "OK"
    finally:
        render_summary_table(
            enabled=cfg.progress,
            status=status,
            metrics={"url": cfg.url, "pages": seq.page_number, "items": items, "output": cfg.output},
        )
    _log_event(
        logging.INFO,
        "Page listing complete",
        step="pages",
        phase="complete",
        pages=seq.page_number,
        items=items,
        duration_ms=int((perf_counter() - started) * 1000),
    )
    return 0


COMMANDS = {
    "list": cmd_list,
    "pages": cmd_pages,
}


def main(argv: Optional[list[str]] = None) -> None:
    try:
        command, cfg = load_run_config(argv=argv)
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))
        if cfg.log_file:
            add_run_log_file(cfg.log_file)

        handler = COMMANDS.get(command)
        if handler is None:
            raise ConfigurationError(f"Unknown command: {command}")
        with _make_fetcher(cfg) as fetcher:
            code = handler(cfg, fetcher)

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Piping into `head` closes stdout early; treat as a normal exit.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
