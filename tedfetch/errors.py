"""Exceptions raised while resolving talks."""

from __future__ import annotations


class TalkFetchError(RuntimeError):
    """Base class for every failure surfaced by tedfetch."""


class InvalidTalkURLError(TalkFetchError):
    """The identifier is not a ``/talks/<slug>`` URL; nothing was requested."""


class TransportError(TalkFetchError):
    """A request could not be completed or returned a non-success status."""


class UpstreamError(TalkFetchError):
    """The structured API answered with an explicit error payload."""


class EmptyResultError(TalkFetchError):
    """A source answered but carried no usable talk data."""


class PayloadDecodeError(TalkFetchError):
    """A response body was not the JSON document we expected."""
