"""Exceptions raised by the connpass event harvester."""


class ScrapeError(RuntimeError):
    """Base class for harvester failures."""


class ListPageError(ScrapeError):
    """A listing page could not be fetched or read. Aborts the run."""


class EventPageError(ScrapeError):
    """An event detail page returned a non-200 status."""

    def __init__(self, url: str, status: int):
        super().__init__(f"unexpected status {status} for {url}")
        self.url = url
        self.status = status


class ExtractionError(ScrapeError):
    """A required field could not be extracted from an event page."""


class UnsupportedModeError(ScrapeError):
    """Incremental (non-rebuild) mode was requested."""
