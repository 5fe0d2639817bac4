from __future__ import annotations

import copy
from typing import Any, List, Mapping, MutableMapping, Protocol, runtime_checkable

from .descriptor import PageDescriptor
from .util.errors import ConfigurationError, InvalidArgumentError, ProtocolError

# Single sentinel for "no further page"; absent and None tokens normalize to it.
NO_PAGE_TOKEN = ""

_MISSING = object()


@runtime_checkable
class PageFields(Protocol):
    """
    Field access contract for one list method.
    Implementations must not mutate the request or response they are given.
    """

    def get_token(self, request: Any) -> Any:
        ...

    def with_token(self, request: Any, token: Any) -> Any:
        ...

    def get_next_token(self, response: Any) -> str:
        ...

    def get_items(self, response: Any) -> List[Any]:
        ...


def _lookup(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name, _MISSING)
    return getattr(value, name, _MISSING)


class DescriptorFields:
    """
    PageFields backed by a PageDescriptor. Mappings are read by key, anything
    else by attribute.
    """

    def __init__(self, descriptor: PageDescriptor) -> None:
        self.descriptor = descriptor

    def __repr__(self) -> str:
        return f"DescriptorFields({self.descriptor!r})"

    def get_token(self, request: Any) -> Any:
        name = self.descriptor.request_token_field
        value = _lookup(request, name)
        if value is _MISSING:
            raise InvalidArgumentError(
                f"Request of type {type(request).__name__} has no page token field '{name}'"
            )
        return value

    def with_token(self, request: Any, token: Any) -> Any:
        name = self.descriptor.request_token_field
        if isinstance(request, Mapping):
            if isinstance(request, MutableMapping):
                updated = copy.copy(request)
            else:
                updated = dict(request)
            updated[name] = token
            return updated
        updated = copy.copy(request)
        setattr(updated, name, token)
        return updated

    def get_next_token(self, response: Any) -> str:
        value = _lookup(response, self.descriptor.response_token_field)
        if value is _MISSING or value is None:
            return NO_PAGE_TOKEN
        return value

    def get_items(self, response: Any) -> List[Any]:
        name = self.descriptor.resource_field
        value = _lookup(response, name)
        if value is _MISSING or value is None:
            raise ProtocolError(f"Response of type {type(response).__name__} has no resource field '{name}'")
        if isinstance(value, (str, bytes, Mapping)):
            raise ProtocolError(f"Response field '{name}' is not a list of resources")
        try:
            return list(value)
        except TypeError as e:
            raise ProtocolError(f"Response field '{name}' is not a list of resources") from e


def as_page_fields(value: PageDescriptor | PageFields) -> PageFields:
    if isinstance(value, PageDescriptor):
        return DescriptorFields(value)
    if isinstance(value, PageFields):
        return value
    raise ConfigurationError(
        f"Expected a PageDescriptor or PageFields implementation, got {type(value).__name__}"
    )
