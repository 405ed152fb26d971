# src/cantorx/__init__.py
"""
CantorX - Exchange Rate Harvesting Service

Continuously scrapes buy/sell quotes from cantor (currency exchange) web pages,
keeps an hourly-queryable history, fronts it with a short-TTL hot cache and
streams freshly harvested quotes to subscribed clients.
"""

__version__ = "1.0.0"
