"""Plain-text formatting for portfolio summaries."""

from __future__ import annotations

from tracker_server.portfolio.models import DisplayHolding, PortfolioState

FINANCIAL_DISCLAIMER = "Informational use only. This is not financial advice."
PROPORTION_OK_TOLERANCE = 0.001


def _fmt_number(value: float | None, decimals: int = 2) -> str:
    if value is None:
        return "n/a"
    return f"{value:,.{decimals}f}"


def _fmt_proportion(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value * 100:.1f}%"


def fmt_money(value: float | None, decimals: int = 2) -> str:
    if value is None:
        return "n/a"
    sign = "-" if value < 0 else ""
    return f"{sign}${_fmt_number(abs(value), decimals)}"


def fmt_change(change: float | None, percent: float | None) -> str:
    if change is None or percent is None:
        return "--"
    sign = "+" if change >= 0 else ""
    return f"{sign}{change:.2f} ({percent:.2f}%)"


def format_holding_line(item: DisplayHolding) -> str:
    quote = item.quote
    if item.fetch_failed:
        price = "fetch failed"
    elif quote is None or quote.price is None:
        price = "no quote"
    else:
        price = f"{fmt_money(quote.price)} {fmt_change(quote.change, quote.change_percent)}"
    name = f" {quote.display_name}" if quote is not None and quote.display_name else ""
    return (
        f"{item.symbol}{name} | target {_fmt_proportion(item.target_proportion)}"
        f" = {fmt_money(item.managed_value)} | qty {_fmt_number(item.implied_quantity, 4)}"
        f" | value {fmt_money(item.current_value)} | {price}"
    )


def format_portfolio_summary(state: PortfolioState, include_disclaimer: bool = True) -> str:
    total_proportion = state.proportion_total
    balanced = abs(total_proportion - 1.0) < PROPORTION_OK_TOLERANCE or not state.display_holdings
    chunks: list[str] = ["Portfolio Allocation"]
    if state.is_loading:
        chunks.append("Status: refreshing quotes")
    chunks.append(f"Managed total: {fmt_money(state.managed_total, 0)}")
    chunks.append(f"Actual total: {fmt_money(state.actual_total)}")
    chunks.append(f"Drift: {fmt_money(state.drift)}")
    chunks.append(
        f"Target proportions: {_fmt_proportion(total_proportion)}" + ("" if balanced else " (not 100%)")
    )
    if state.display_holdings:
        chunks.extend(format_holding_line(item) for item in state.display_holdings)
    else:
        chunks.append("No holdings tracked.")
    if include_disclaimer:
        chunks.extend(["---", FINANCIAL_DISCLAIMER])
    return "\n".join(chunks)
