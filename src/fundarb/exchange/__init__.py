"""Venue clients and their response models."""

from fundarb.exchange.binance import BinanceFuturesClient, build_quotes, split_contract_symbol
from fundarb.exchange.models import FundingInfo, PremiumIndex, VariationalAsset
from fundarb.exchange.variational import VariationalClient, parse_supported_assets


__all__ = [
    "BinanceFuturesClient",
    "FundingInfo",
    "PremiumIndex",
    "VariationalAsset",
    "VariationalClient",
    "build_quotes",
    "parse_supported_assets",
    "split_contract_symbol",
]
