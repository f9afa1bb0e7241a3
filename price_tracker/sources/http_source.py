# price_tracker/sources/http_source.py

"""Price source that scrapes the product page at ``Product.url``."""

from bs4 import BeautifulSoup, Tag
from curl_cffi import requests as curl_requests

from price_tracker.models.product import Product
from price_tracker.sources.base_source import PriceSource


class HttpPriceSource(PriceSource):
    """Fetch a product page once and read the price from it.

    Failures are reported as 0.0 (unavailable); the tracker does not
    retry within a round.
    """

    def __init__(self, selectors: list[str] | None = None) -> None:
        super().__init__("http")
        self.selectors = selectors or list(self.settings.PRICE_SELECTORS)
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    def _read_price(self, soup: BeautifulSoup) -> float:
        """Return the first positive price matched by the selectors."""
        for selector in self.selectors:
            el = soup.select_one(selector)
            if not isinstance(el, Tag):
                continue
            content = el.get("content")
            text = (
                str(content)
                if content
                else el.get_text(" ", strip=True)
            )
            price = self.extract_price(text)
            if price > 0:
                return price
        return 0.0

    def fetch_price(self, product: Product) -> float:
        """GET ``product.url`` and parse the price; 0.0 on any failure."""
        if not product.url:
            return 0.0
        try:
            resp = self.session.get(
                product.url,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=self._request_timeout,
            )
        except Exception as exc:
            self.logger.warning(
                "[http] Request for %s failed: %s",
                product.id,
                exc,
            )
            return 0.0

        if resp.status_code != 200:
            self.logger.warning(
                "[http] HTTP %d for %s",
                resp.status_code,
                product.id,
            )
            return 0.0

        price = self._read_price(BeautifulSoup(resp.text, "lxml"))
        if price <= 0:
            self.logger.info(
                "[http] No price found on page for %s", product.id
            )
        return price
