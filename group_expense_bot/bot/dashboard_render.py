from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from group_expense_bot.bot.text import esc, format_money, format_net, round_money
from group_expense_bot.services.ledger import MemberBalance, SettlementPlan
from group_expense_bot.services.reports import GroupReport

TELEGRAM_TEXT_LIMIT = 4096
DEFAULT_LINE_LIMIT = 30


def _more(hidden: int) -> list[str]:
    return [f"... and {hidden} more"] if hidden > 0 else []


def render_balances(balances: list[MemberBalance], *, currency_symbol: str, limit: int = DEFAULT_LINE_LIMIT) -> str:
    shown = balances[:limit]
    width = max((len(b.member) for b in shown), default=0)
    lines: list[str] = []
    for b in shown:
        net = b.net_balance
        status = "gets back" if net > 0 else "owes" if net < 0 else "settled"
        lines.append(
            f"{b.member:<{width}}  paid {format_money(b.paid, currency_symbol)}"
            f"  share {format_money(b.owes, currency_symbol)}"
            f"  net {format_net(net, currency_symbol)} ({status})"
        )
    if not lines:
        return "No members yet."
    return "\n".join(lines + _more(len(balances) - len(shown)))


def render_plan(plan: SettlementPlan, *, currency_symbol: str, limit: int = DEFAULT_LINE_LIMIT) -> str:
    # Sub-cent transfers are rounding dust nobody can pay.
    transfers = [t for t in plan.transfers if round_money(t.amount) > 0]
    lines = [
        f"{t.from_member} → {t.to_member}: {format_money(t.amount, currency_symbol)}" for t in transfers[:limit]
    ]
    lines += _more(len(transfers) - limit)
    if not lines:
        lines = ["Everyone is settled up."]
    if plan.unbalanced is not None:
        lines.append(f"⚠️ {plan.unbalanced}")
    return "\n".join(lines)


def _render(report: GroupReport, *, currency_symbol: str, updated: Optional[datetime], limit: int) -> str:
    members = [esc(m) for m in report.members[:limit]] + _more(len(report.members) - limit)
    text = (
        f"💰 <b>{esc(report.name)}</b> (#{report.group_id})\n\n"
        f"<b>Members:</b> {', '.join(members) or '<i>none</i>'}\n"
        f"<b>Total expenses:</b> {format_money(report.total_expenses, currency_symbol)}"
        f" in {report.transaction_count} entries\n\n"
        f"<b>Balances:</b>\n"
        f"<pre>{esc(render_balances(report.balances, currency_symbol=currency_symbol, limit=limit))}</pre>\n"
        f"<b>Suggested payments:</b>\n"
        f"<pre>{esc(render_plan(report.plan, currency_symbol=currency_symbol, limit=limit))}</pre>"
    )
    if updated is not None:
        text += f"\n<i>Updated: {updated.strftime('%Y-%m-%d %H:%M UTC')}</i>"
    return text


def render_report(report: GroupReport, *, currency_symbol: str, updated: Optional[datetime] = None) -> str:
    """
    HTML summary of a group. Long rosters are shortened line by line until the
    message fits Telegram's limit, so tags are never cut.
    """
    limit = DEFAULT_LINE_LIMIT
    text = _render(report, currency_symbol=currency_symbol, updated=updated, limit=limit)
    while len(text) > TELEGRAM_TEXT_LIMIT and limit > 1:
        limit //= 2
        text = _render(report, currency_symbol=currency_symbol, updated=updated, limit=limit)
    return text


def render_dashboard(report: GroupReport, *, currency_symbol: str) -> str:
    return render_report(report, currency_symbol=currency_symbol, updated=datetime.now(timezone.utc))
