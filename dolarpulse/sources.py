"""Concrete extractors for the two USD/PEN sources.

- ``FintechAveragesExtractor``: exchange-house listing with buy/sell quotes
- ``SpotReferenceExtractor``: single spot price on a market-quote page

The listing's generated class suffixes change between deployments, so
entries are matched with ``[class*=...]`` prefixes taken from the config.
"""

from dataclasses import dataclass, field
from typing import Any

from dolarpulse.browser import PageSession
from dolarpulse.extractor import BaseExtractor
from dolarpulse.logger import get_logger
from dolarpulse.models import PRICE_DIGITS, Offer
from dolarpulse.numeric import parse_number, round_or_none

log = get_logger(__name__)

# Returns one {name, prices} record per entry; filtering happens in Python.
FINTECH_ROWS_JS = """
([itemSelector, priceSelector]) => {
    const items = document.querySelectorAll(itemSelector);
    return Array.from(items).map(it => ({
        name: it.querySelector('img')?.alt?.trim() || null,
        prices: Array.from(it.querySelectorAll(priceSelector))
            .map(el => el.textContent?.trim() || ''),
    }));
}
"""

SPOT_TEXT_JS = """
(selector) => {
    const el = document.querySelector(selector);
    return el ? el.textContent.trim() : null;
}
"""


@dataclass(frozen=True)
class FintechResult:
    """Offers extracted from the listing in one cycle.

    Attributes:
        offers: Entries with at least two price fields, in page order.
        dropped: Entries discarded for missing price fields.
    """

    offers: tuple[Offer, ...] = field(default_factory=tuple)
    dropped: int = 0

    @property
    def sample_count(self) -> int:
        return len(self.offers)


def rows_to_offers(rows: list[dict[str, Any]] | None) -> FintechResult:
    """Turn raw page rows into offers, dropping entries with < 2 prices.

    Only the first two prices are used, in buy-then-sell order.
    """
    offers: list[Offer] = []
    dropped = 0
    for row in rows or []:
        prices = row.get("prices") or []
        if len(prices) < 2:
            dropped += 1
            continue
        offers.append(Offer(name=row.get("name"), buy_text=prices[0], sell_text=prices[1]))
    return FintechResult(offers=tuple(offers), dropped=dropped)


class FintechAveragesExtractor(BaseExtractor[FintechResult]):
    """Reads every exchange house's buy/sell quote from the listing page."""

    wait_until = "domcontentloaded"

    @property
    def name(self) -> str:
        return "fintech"

    @property
    def url(self) -> str:
        return self.config.fintech_url

    @property
    def ready_selector(self) -> str:
        return self.config.fintech_item_selector

    @property
    def timeout_ms(self) -> int:
        return self.config.fintech_timeout_ms

    async def parse(self, session: PageSession) -> FintechResult:
        rows = await session.evaluate(
            FINTECH_ROWS_JS,
            [self.config.fintech_item_selector, self.config.fintech_price_selector],
        )
        result = rows_to_offers(rows)

        total = result.sample_count + result.dropped
        if total and result.dropped / total > self.config.layout_drift_threshold:
            log.warning(
                "Many exchange-house entries without prices - possible layout drift",
                dropped=result.dropped,
                total=total,
                threshold=f"{self.config.layout_drift_threshold:.0%}",
            )

        return result


class SpotReferenceExtractor(BaseExtractor[float | None]):
    """Reads the USD/PEN spot quote, rounded to 4 decimals."""

    wait_until = "networkidle"

    @property
    def name(self) -> str:
        return "spot"

    @property
    def url(self) -> str:
        return self.config.spot_url

    @property
    def ready_selector(self) -> str:
        return self.config.spot_selector

    @property
    def timeout_ms(self) -> int:
        return self.config.spot_timeout_ms

    async def parse(self, session: PageSession) -> float | None:
        text = await session.evaluate(SPOT_TEXT_JS, self.config.spot_selector)
        return round_or_none(parse_number(text), PRICE_DIGITS)
