"""Ordered keyword rule tables used by the default classifier.

Order is significant: the first rule with a matching keyword wins, so moving a
rule changes the category assigned to records that match several rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple


class Category(str, Enum):
    """Closed set of primary catalog categories."""

    DEX = "DEX"
    NFT = "NFT"
    LENDING = "Lending"
    STAKING = "Staking"
    DEFI = "DeFi"
    GOVERNANCE = "Governance"
    TRADING = "Trading"
    INFRASTRUCTURE = "Infrastructure"

    def __str__(self) -> str:
        return self.value


ALL_CATEGORIES = "All"
DEFAULT_CATEGORY = Category.INFRASTRUCTURE


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """Assigns ``label`` when any keyword is a substring of the classified text."""

    keywords: Tuple[str, ...]
    label: str

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


def _rule(label: str, *keywords: str) -> KeywordRule:
    return KeywordRule(keywords=tuple(keyword.lower() for keyword in keywords), label=label)


CATEGORY_RULES: Sequence[KeywordRule] = (
    _rule(Category.DEX.value, "dex", "swap", "amm"),
    _rule(Category.NFT.value, "nft", "metaplex", "token"),
    _rule(Category.LENDING.value, "lend", "borrow", "yield"),
    _rule(Category.STAKING.value, "stake", "validator"),
    _rule(Category.GOVERNANCE.value, "governance", "dao", "vote"),
    _rule(Category.TRADING.value, "trading", "bot", "sniper"),
    _rule(Category.INFRASTRUCTURE.value, "wallet", "adapter"),
    _rule(Category.DEFI.value, "bridge", "cross-chain"),
)

SUB_CATEGORY_RULES: Sequence[KeywordRule] = (
    # exchanges
    _rule("Raydium", "raydium"),
    _rule("Orca", "orca"),
    _rule("Jupiter", "jupiter"),
    _rule("AMM", "amm"),
    _rule("Orderbook", "orderbook"),
    # collectibles
    _rule("Marketplace", "marketplace"),
    _rule("Minting", "mint"),
    _rule("Metaplex", "metaplex"),
    # trading
    _rule("Sniper", "sniper"),
    _rule("Trading Bot", "bot"),
    _rule("Arbitrage", "arbitrage"),
    # infrastructure
    _rule("Anchor", "anchor"),
    _rule("SDK", "sdk"),
    _rule("Client", "client"),
)


__all__ = [
    "ALL_CATEGORIES",
    "CATEGORY_RULES",
    "Category",
    "DEFAULT_CATEGORY",
    "KeywordRule",
    "SUB_CATEGORY_RULES",
]
