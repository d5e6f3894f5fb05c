"""Exceptions raised while executing a crawl."""


class CrawlError(Exception):
    """A crawl could not produce a usable result."""

    pass


class UnknownCrawlTypeError(CrawlError):
    """No handler is registered for a crawl type."""

    pass
