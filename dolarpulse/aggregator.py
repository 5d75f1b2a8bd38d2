"""Bid/ask averages and best-offer rankings.

The buy/sell inversion is deliberate: the price at which a house *sells*
dollars is what the user pays to buy them, so ``best_buy`` ranks by the
lowest sell quote and ``best_sell`` by the highest buy quote.
"""

from collections.abc import Iterable, Sequence
from statistics import fmean

from dolarpulse.models import Aggregate, Offer, RankedOffer
from dolarpulse.numeric import is_valid_price


def _mean(values: Sequence[float]) -> float | None:
    return fmean(values) if values else None


def _rank(candidates: Iterable[tuple[str, float]], lowest: bool) -> RankedOffer | None:
    best: tuple[str, float] | None = None
    for name, price in candidates:
        # strict comparison keeps the first offer on ties
        if best is None or (price < best[1] if lowest else price > best[1]):
            best = (name, price)
    if best is None:
        return None
    return RankedOffer(name=best[0], price=best[1])


def aggregate(offers: Sequence[Offer]) -> Aggregate:
    """Compute averages and rankings over strictly positive parsed prices.

    Args:
        offers: Offers extracted this cycle, in page order.

    Returns:
        Aggregate with ``None`` wherever no valid price exists.
    """
    buys = [(offer.name, offer.buy) for offer in offers if is_valid_price(offer.buy)]
    sells = [(offer.name, offer.sell) for offer in offers if is_valid_price(offer.sell)]

    return Aggregate(
        bid_average=_mean([price for _, price in buys]),
        ask_average=_mean([price for _, price in sells]),
        best_buy=_rank(sells, lowest=True),
        best_sell=_rank(buys, lowest=False),
    )
