from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from .util.errors import ConfigurationError


@dataclass(frozen=True)
class PageDescriptor:
    """
    Names the three fields that drive page streaming for one list method:
    the request page-token field, the response next-page-token field and
    the response field holding the page's resources.
    """

    request_token_field: str
    response_token_field: str
    resource_field: str

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"Page descriptor field '{f.name}' must be a non-empty string")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PageDescriptor:
        expected = {f.name for f in fields(cls)}
        unknown = sorted(set(data.keys()) - expected)
        if unknown:
            raise ConfigurationError(f"Unknown page descriptor keys: {', '.join(unknown)}")
        missing = sorted(expected - set(data.keys()))
        if missing:
            raise ConfigurationError(f"Missing page descriptor keys: {', '.join(missing)}")
        return cls(
            request_token_field=data["request_token_field"],
            response_token_field=data["response_token_field"],
            resource_field=data["resource_field"],
        )


DEFAULT_DESCRIPTOR = PageDescriptor(
    request_token_field="pageToken",
    response_token_field="nextPageToken",
    resource_field="resources",
)
