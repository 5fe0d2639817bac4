from __future__ import annotations

from .accessor import PagedSequence
from .descriptor import DEFAULT_DESCRIPTOR, PageDescriptor
from .fields import NO_PAGE_TOKEN, DescriptorFields, PageFields
from .util.errors import (
    ConfigurationError,
    ExhaustedSequence,
    FetchError,
    InvalidArgumentError,
    PagingError,
    ProtocolError,
)

__all__ = [
    "PagedSequence",
    "PageDescriptor",
    "DEFAULT_DESCRIPTOR",
    "PageFields",
    "DescriptorFields",
    "NO_PAGE_TOKEN",
    "PagingError",
    "ConfigurationError",
    "InvalidArgumentError",
    "FetchError",
    "ProtocolError",
    "ExhaustedSequence",
]
