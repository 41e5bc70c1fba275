"""Strategy module for building and ranking funding arbitrage opportunities."""

from fundarb.strategy.aggregator import OpportunityAggregator, RefreshCallback, sort_opportunities
from fundarb.strategy.builder import OpportunityBuilder, choose_direction, strategy_label


__all__ = [
    "OpportunityAggregator",
    "OpportunityBuilder",
    "RefreshCallback",
    "choose_direction",
    "sort_opportunities",
    "strategy_label",
]
