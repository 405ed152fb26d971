"""
Web Crawlers for Cantor Rate Pages

This package contains the crawlers that fetch buy/sell rates from cantor
websites by parsing HTML, and the registry that maps strategy tags to them.
"""

from cantorx.adapters.crawlers.base import BaseCrawler
from cantorx.adapters.crawlers.registry import ScraperRegistry, default_registry

__all__ = ["BaseCrawler", "ScraperRegistry", "default_registry"]
