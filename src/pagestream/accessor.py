from __future__ import annotations

from enum import Enum
from time import perf_counter
from typing import Any, Callable, Dict, Generator, Generic, List, Mapping, Optional, TypeVar

from .descriptor import PageDescriptor
from .fields import NO_PAGE_TOKEN, PageFields, as_page_fields
from .logging import get_logger
from .util.errors import ExhaustedSequence, InvalidArgumentError

LOG = get_logger(__name__)

T = TypeVar("T")

Fetcher = Callable[..., Any]


class _State(Enum):
    UNFETCHED = "unfetched"
    IN_PAGE = "in_page"
    EXHAUSTED = "exhausted"


class PagedSequence(Generic[T]):
    """
    Lazy, restartable sequence over the items of a paged list call.

    The first page is fetched on first access. When the items of a page are
    used up, the response's next page token is copied into the request and
    the fetcher is called again; an empty token ends the sequence. Empty
    pages that still carry a token are skipped transparently.

    The caller's request is never modified: every fetch receives a copy of
    it carrying the token for that page.

    Iterating with `for` restarts from the first page, so a has_next() check
    before the loop fetches the first page twice. Use has_next()/next() to
    continue from the current position instead.

    Not safe for concurrent use; one consumer per instance.
    """

    def __init__(
        self,
        request: Any,
        fetcher: Fetcher,
        descriptor: PageDescriptor | PageFields,
        *,
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if request is None:
            raise InvalidArgumentError("A request object is required")
        if not callable(fetcher):
            raise InvalidArgumentError("fetcher must be callable")
        self._fields = as_page_fields(descriptor)
        self._template = request
        self._fetcher = fetcher
        self._options: Dict[str, Any] = dict(options or {})
        self._initial_token = self._fields.get_token(request)
        self._reset()

    def _reset(self) -> None:
        self._state = _State.UNFETCHED
        self._request: Any = None
        self._items: List[T] = []
        self._next_token: str = NO_PAGE_TOKEN
        self._cursor = 0
        self._page_number = 0
        self._num_results = 0

    @property
    def initial_token(self) -> Any:
        return self._initial_token

    @property
    def page_number(self) -> int:
        """Pages fetched since construction or the last restart."""
        return self._page_number

    @property
    def num_results(self) -> int:
        """Items returned by next() since construction or the last restart."""
        return self._num_results

    @property
    def exhausted(self) -> bool:
        return self._state is _State.EXHAUSTED

    def restart(self) -> None:
        """
        Go back to the first page. The next access fetches again using the
        token the request carried at construction.
        """
        self._reset()

    def has_next(self) -> bool:
        return self._advance()

    def next(self) -> T:
        if not self._advance():
            raise ExhaustedSequence()
        item = self._items[self._cursor]
        self._cursor += 1
        self._num_results += 1
        return item

    def peek(self) -> T:
        if not self._advance():
            raise ExhaustedSequence()
        return self._items[self._cursor]

    def current_page_items(self) -> List[T]:
        self._ensure_fetched()
        return list(self._items)

    def next_page_token(self) -> str:
        self._ensure_fetched()
        return self._next_token

    def current_request(self) -> Any:
        """
        Request as sent for the page being iterated. Before the first fetch
        this is the request that will be sent for the first page.
        """
        if self._state is _State.UNFETCHED:
            return self._fields.with_token(self._template, self._initial_token)
        return self._request

    def iter_pages(self) -> Generator[List[T], None, None]:
        """
        Yield the rest of the sequence page by page, empty pages included.
        The first page yielded holds only the items next() has not returned
        yet; a page already used up is skipped. Yielded items count as
        consumed.
        """
        self._ensure_fetched()
        if self._state is _State.IN_PAGE and self._items and self._cursor >= len(self._items):
            self._next_page()
        while self._state is _State.IN_PAGE:
            items = self._items[self._cursor :]
            self._cursor = len(self._items)
            self._num_results += len(items)
            yield items
            self._next_page()

    def __iter__(self) -> PagedSequence[T]:
        # Every for-loop starts from the first page.
        self.restart()
        return self

    def __next__(self) -> T:
        return self.next()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(state={self._state.value}, page_number={self._page_number}, "
            f"num_results={self._num_results})"
        )

    def _ensure_fetched(self) -> None:
        if self._state is _State.UNFETCHED:
            self._fetch(self._initial_token)

    def _advance(self) -> bool:
        """
        Make sure the cursor points at an item, crossing page boundaries as
        needed. Returns False once the sequence is exhausted.
        """
        self._ensure_fetched()
        while self._state is _State.IN_PAGE and self._cursor >= len(self._items):
            self._next_page()
        return self._state is _State.IN_PAGE

    def _next_page(self) -> None:
        if self._next_token:
            self._fetch(self._next_token)
        else:
            self._exhaust()

    def _fetch(self, token: Any) -> None:
        request = self._fields.with_token(self._template, token)
        page_number = self._page_number + 1
        LOG.debug(
            "Fetching page",
            extra={"step": "paging", "phase": "fetch", "page_number": page_number},
        )
        started = perf_counter()
        response = self._fetcher(request, **self._options)
        items = self._fields.get_items(response)
        next_token = self._fields.get_next_token(response)

        self._request = request
        self._items = items
        self._next_token = next_token
        self._cursor = 0
        self._page_number = page_number
        self._state = _State.IN_PAGE
        LOG.debug(
            "Fetched page",
            extra={
                "step": "paging",
                "phase": "complete",
                "page_number": page_number,
                "item_count": len(items),
                "has_next_page": bool(next_token),
                "duration_ms": int((perf_counter() - started) * 1000),
            },
        )

    def _exhaust(self) -> None:
        self._state = _State.EXHAUSTED
        LOG.debug(
            "Paged sequence exhausted",
            extra={
                "step": "paging",
                "phase": "exhausted",
                "page_number": self._page_number,
                "num_results": self._num_results,
            },
        )
