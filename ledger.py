"""
Position ledger: cash and asset balances for a simulated account.

Replaces module-level balance state with an explicit object, so every
backtest or paper session owns its own ledger.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from errors import InsufficientBalanceError


logger = logging.getLogger(__name__)

# Rounding noise tolerated when an asset is spent down to zero
BALANCE_TOLERANCE = 1e-9


@dataclass
class Ledger:
    """Asset balances, always >= 0."""
    balances: Dict[str, float] = field(default_factory=dict)
    initial_balances: Dict[str, float] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        for asset, amount in self.balances.items():
            if amount < 0:
                raise ValueError(f"Initial {asset} balance must be >= 0, got {amount}")
        self.initial_balances = dict(self.balances)

    @classmethod
    def seeded(cls, initial_capital: float, quote_asset: str = "USD") -> "Ledger":
        """Fresh ledger holding only quote currency."""
        return cls(balances={quote_asset: float(initial_capital)})

    def balance(self, asset: str) -> float:
        return self.balances.get(asset, 0.0)

    def apply(self, deltas: Mapping[str, float]) -> None:
        """
        Apply balance changes as one atomic step.

        Args:
            deltas: Asset -> signed change

        Raises:
            InsufficientBalanceError: If any balance would go negative.
                No balance is changed in that case.
        """
        updated = {}
        for asset, delta in deltas.items():
            current = self.balance(asset)
            new_balance = current + delta
            if new_balance < 0:
                if new_balance < -BALANCE_TOLERANCE:
                    raise InsufficientBalanceError(asset, current, -delta)
                new_balance = 0.0
            updated[asset] = new_balance

        self.balances.update(updated)

    def buy(self, base: str, quote: str, amount: float, price: float) -> None:
        """Spend quote currency for base currency."""
        self.apply({quote: -amount * price, base: amount})

    def sell(self, base: str, quote: str, amount: float, price: float) -> None:
        """Sell base currency for quote currency."""
        self.apply({base: -amount, quote: amount * price})

    def _mark_price(self, prices: Mapping[str, float], asset: str, quote_asset: str) -> Optional[float]:
        price = prices.get(f"{asset}/{quote_asset}")
        if price is None or price <= 0:
            return None
        return price

    def unrealized_pnl(self, prices: Mapping[str, float], quote_asset: str = "USD") -> float:
        """
        Mark non-quote holdings to market against the balances the ledger started with.

        Args:
            prices: Latest price per symbol, e.g. {'BTC/USD': 43000.0}
            quote_asset: Currency the P&L is expressed in

        Returns:
            Unrealized P&L; assets without a price are left out
        """
        pnl = 0.0
        for asset, amount in self.balances.items():
            if asset == quote_asset or amount <= 0:
                continue
            price = self._mark_price(prices, asset, quote_asset)
            if price is None:
                logger.debug("No %s/%s price, %s left out of unrealized P&L", asset, quote_asset, asset)
                continue
            pnl += (amount - self.initial_balances.get(asset, 0.0)) * price
        return pnl

    def valuation(self, prices: Mapping[str, float], quote_asset: str = "USD") -> float:
        """Quote balance plus every priced holding marked to market."""
        total = self.balance(quote_asset)
        for asset, amount in self.balances.items():
            if asset == quote_asset:
                continue
            price = self._mark_price(prices, asset, quote_asset)
            if price is not None:
                total += amount * price
        return total

    def snapshot(self) -> Dict[str, float]:
        return dict(self.balances)

    def to_json(self) -> str:
        """Serialize balances to JSON."""
        return json.dumps({"balances": self.balances}, indent=2)
