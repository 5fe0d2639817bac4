from __future__ import annotations

import dataclasses
import types
from types import MappingProxyType

import pytest

from pagestream.descriptor import DEFAULT_DESCRIPTOR, PageDescriptor
from pagestream.fields import NO_PAGE_TOKEN, DescriptorFields, PageFields, as_page_fields
from pagestream.util.errors import ConfigurationError, ProtocolError


def test_descriptor_exposes_field_names() -> None:
    d = PageDescriptor("pageToken", "nextPageToken", "resources")
    assert d.request_token_field == "pageToken"
    assert d.response_token_field == "nextPageToken"
    assert d.resource_field == "resources"
    assert d == DEFAULT_DESCRIPTOR


@pytest.mark.parametrize(
    "args",
    [
        ("", "nextPageToken", "resources"),
        ("pageToken", "  ", "resources"),
        ("pageToken", "nextPageToken", None),
    ],
)
def test_descriptor_rejects_empty_field_names(args) -> None:
    with pytest.raises(ConfigurationError):
        PageDescriptor(*args)


def test_descriptor_is_immutable() -> None:
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_DESCRIPTOR.resource_field = "items"  # type: ignore[misc]


def test_descriptor_from_mapping() -> None:
    d = PageDescriptor.from_mapping(
        {"request_token_field": "page", "response_token_field": "opc-next-page", "resource_field": "items"}
    )
    assert d == PageDescriptor("page", "opc-next-page", "items")

    with pytest.raises(ConfigurationError):
        PageDescriptor.from_mapping({"request_token_field": "page", "resource_field": "items"})
    with pytest.raises(ConfigurationError):
        PageDescriptor.from_mapping(
            {
                "request_token_field": "page",
                "response_token_field": "next",
                "resource_field": "items",
                "limit_field": "limit",
            }
        )


def test_descriptor_fields_with_token_copies_mappings() -> None:
    fields = DescriptorFields(DEFAULT_DESCRIPTOR)
    request = {"pageToken": "", "filter": "x"}

    updated = fields.with_token(request, "T1")

    assert updated == {"pageToken": "T1", "filter": "x"}
    assert request == {"pageToken": "", "filter": "x"}

    frozen = MappingProxyType({"pageToken": ""})
    assert fields.with_token(frozen, "T2") == {"pageToken": "T2"}


def test_descriptor_fields_with_token_copies_objects() -> None:
    fields = DescriptorFields(PageDescriptor("page", "next", "items"))
    request = types.SimpleNamespace(page=None, limit=10)

    updated = fields.with_token(request, "p2")

    assert updated.page == "p2"
    assert updated.limit == 10
    assert request.page is None


def test_descriptor_fields_get_token_requires_field() -> None:
    fields = DescriptorFields(DEFAULT_DESCRIPTOR)
    assert fields.get_token({"pageToken": None}) is None
    with pytest.raises(ConfigurationError):
        fields.get_token({"page": ""})
    with pytest.raises(ConfigurationError):
        fields.get_token(types.SimpleNamespace(page=""))


def test_descriptor_fields_normalize_missing_next_token() -> None:
    fields = DescriptorFields(DEFAULT_DESCRIPTOR)
    assert fields.get_next_token({}) == NO_PAGE_TOKEN
    assert fields.get_next_token({"nextPageToken": None}) == NO_PAGE_TOKEN
    assert fields.get_next_token(types.SimpleNamespace()) == NO_PAGE_TOKEN
    assert fields.get_next_token({"nextPageToken": "abc"}) == "abc"


def test_descriptor_fields_get_items_validates_collection() -> None:
    fields = DescriptorFields(DEFAULT_DESCRIPTOR)
    assert fields.get_items({"resources": ("a", "b")}) == ["a", "b"]
    assert fields.get_items(types.SimpleNamespace(resources=[])) == []

    for bad in ({}, {"resources": None}, {"resources": "abc"}, {"resources": 5}, {"resources": {"a": 1}}):
        with pytest.raises(ProtocolError):
            fields.get_items(bad)


def test_as_page_fields() -> None:
    wrapped = as_page_fields(DEFAULT_DESCRIPTOR)
    assert isinstance(wrapped, DescriptorFields)
    assert isinstance(wrapped, PageFields)
    assert as_page_fields(wrapped) is wrapped
    with pytest.raises(ConfigurationError):
        as_page_fields({"request_token_field": "pageToken"})  # type: ignore[arg-type]
