"""Protocol dissector interface, errors and registry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from wiretap.packet import Packet


class DissectorError(Exception):
    """Base class for errors raised while dissecting protocol data."""

    default_message = "dissector error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class InvalidProtocolError(DissectorError):
    """The data does not follow the protocol's format."""

    default_message = "invalid protocol data"


class IncompleteDataError(DissectorError):
    """The data ends before a complete unit could be parsed."""

    default_message = "incomplete data for parsing"


class UnsupportedMethodError(DissectorError):
    """The data uses a method the dissector does not support."""

    default_message = "unsupported method"


class Dissector(ABC):
    """A parser for one application-layer protocol."""

    @abstractmethod
    def name(self) -> str:
        """The protocol name."""

    @abstractmethod
    def detect(self, data: bytes) -> bool:
        """Report whether the data looks like this protocol."""

    @abstractmethod
    def parse(self, data: bytes, pkt: Packet) -> None:
        """Parse the data and store the results on ``pkt``.

        Raises a :class:`DissectorError` when the data cannot be parsed.
        """


class DissectorRegistry:
    """An ordered collection of dissectors tried in registration order."""

    def __init__(self, dissectors: Optional[Iterable[Dissector]] = None) -> None:
        self._dissectors: List[Dissector] = list(dissectors or ())

    def register(self, dissector: Dissector) -> None:
        """Add a dissector after those already registered."""
        self._dissectors.append(dissector)

    def detect(self, data: bytes) -> Optional[Dissector]:
        """Return the first dissector that recognises the data, or None."""
        return next((d for d in self._dissectors if d.detect(data)), None)

    def parse(self, data: bytes, pkt: Packet) -> Optional[Dissector]:
        """Parse with the first matching dissector and return it.

        Returns None when no dissector recognises the data; errors raised by
        the matching dissector propagate.
        """
        dissector = self.detect(data)
        if dissector is None:
            return None
        dissector.parse(data, pkt)
        return dissector

    def get(self, name: str) -> Optional[Dissector]:
        """Return the dissector with the given name, or None."""
        return next((d for d in self._dissectors if d.name() == name), None)

    def list(self) -> List[str]:
        """Return the names of all registered dissectors, in order."""
        return [d.name() for d in self._dissectors]

    def __len__(self) -> int:
        return len(self._dissectors)

    def __iter__(self):
        return iter(list(self._dissectors))