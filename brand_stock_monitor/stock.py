"""Stock evaluation and per-brand state transitions."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, Optional

from .catalog import Product


OUT_OF_STOCK = "out_of_stock"
BACK_IN_STOCK = "back_in_stock"


class BrandStatus(str, enum.Enum):
    IN_STOCK = "IN_STOCK"
    OOS = "OOS"


@dataclass(frozen=True)
class StockVerdict:
    total_products: int = 0
    oos_products: int = 0
    in_stock_products: int = 0
    all_oos: bool = False

    def to_dict(self) -> dict:
        return {
            "allOOS": self.all_oos,
            "totalProducts": self.total_products,
            "oosProducts": self.oos_products,
            "inStockProducts": self.in_stock_products,
        }


@dataclass(frozen=True)
class Transition:
    """Outcome of :func:`decide`.

    ``event`` is the notification to send (or None); ``new_status`` is the
    status to persist (or None to leave the stored state alone).
    """

    event: Optional[str] = None
    new_status: Optional[BrandStatus] = None
    first_check: bool = False

    @property
    def notify(self) -> bool:
        return self.event is not None


def evaluate(products: Iterable[Product]) -> StockVerdict:
    """Reduce *products* to a :class:`StockVerdict`.

    A product is out of stock when its variants sum to zero or less.  An
    empty list is never "all out of stock".
    """
    total = 0
    oos = 0
    for product in products:
        total += 1
        if product.total_stock <= 0:
            oos += 1
    return StockVerdict(
        total_products=total,
        oos_products=oos,
        in_stock_products=total - oos,
        all_oos=total > 0 and total == oos,
    )


def decide(previous: Optional[BrandStatus], verdict: StockVerdict) -> Transition:
    """Decide whether *verdict* changes a brand's status.

    | previous | verdict     | event          | new status |
    |----------|-------------|----------------|------------|
    | None     | all OOS     | out_of_stock*  | OOS        |
    | None     | some stock  | -              | IN_STOCK   |
    | IN_STOCK | all OOS     | out_of_stock   | OOS        |
    | IN_STOCK | some stock  | -              | IN_STOCK   |
    | OOS      | all OOS     | -              | OOS        |
    | OOS      | some stock  | back_in_stock  | IN_STOCK   |

    (*) flagged as the first check.  An empty catalog yields no event and
    no new status, so a known state is never overwritten by a lookup that
    returned nothing.
    """
    if verdict.total_products == 0:
        return Transition()

    if verdict.all_oos:
        if previous is BrandStatus.OOS:
            return Transition(new_status=BrandStatus.OOS)
        return Transition(
            event=OUT_OF_STOCK,
            new_status=BrandStatus.OOS,
            first_check=previous is None,
        )

    if verdict.in_stock_products > 0:
        if previous is BrandStatus.OOS:
            return Transition(event=BACK_IN_STOCK, new_status=BrandStatus.IN_STOCK)
        return Transition(new_status=BrandStatus.IN_STOCK)

    return Transition()


__all__ = [
    "BACK_IN_STOCK",
    "OUT_OF_STOCK",
    "BrandStatus",
    "StockVerdict",
    "Transition",
    "decide",
    "evaluate",
]
