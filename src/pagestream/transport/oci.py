from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping

from ..descriptor import PageDescriptor
from ..util.errors import map_fetch_error

OCI_PAGE_KWARG = "page"
OCI_NEXT_PAGE_HEADER = "opc-next-page"
OCI_ITEMS_FIELD = "items"

OCI_DESCRIPTOR = PageDescriptor(
    request_token_field=OCI_PAGE_KWARG,
    response_token_field=OCI_NEXT_PAGE_HEADER,
    resource_field=OCI_ITEMS_FIELD,
)


def _response_items(resp: Any) -> List[Any]:
    data = getattr(resp, "data", None)
    # Search and some list APIs wrap the page in a collection model
    if data is not None and not isinstance(data, (list, tuple, dict)) and getattr(data, "items", None) is not None:
        data = data.items
    return list(data or [])


def oci_list_fetcher(method: Callable[..., Any], *args: Any, **fixed_kwargs: Any) -> Callable[..., Dict[str, Any]]:
    """
    Adapt an OCI SDK list/search method to the fetcher contract.

    The request is a mapping of keyword arguments for the method; its 'page'
    entry carries the page token. Pair the returned fetcher with
    OCI_DESCRIPTOR:

        fetch = oci_list_fetcher(identity.list_compartments, tenancy_id, access_level="ANY")
        seq = PagedSequence({"page": None, "limit": 1000}, fetch, OCI_DESCRIPTOR)
    """
    context = getattr(method, "__name__", "list call")

    def fetch(request: Mapping[str, Any], **options: Any) -> Dict[str, Any]:
        kwargs = dict(fixed_kwargs)
        kwargs.update(request)
        kwargs.update(options)
        try:
            resp = method(*args, **kwargs)
        except Exception as e:
            mapped = map_fetch_error(e, f"OCI SDK error during {context}")
            if mapped:
                raise mapped from e
            raise
        headers = getattr(resp, "headers", None) or {}
        return {
            OCI_ITEMS_FIELD: _response_items(resp),
            OCI_NEXT_PAGE_HEADER: headers.get(OCI_NEXT_PAGE_HEADER),
        }

    return fetch
