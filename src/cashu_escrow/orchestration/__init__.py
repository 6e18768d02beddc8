"""Trade flow orchestration."""

from cashu_escrow.orchestration.trade_flow import run_trade

__all__ = ["run_trade"]
