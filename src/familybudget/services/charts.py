"""SVG chart rendering for the dashboard."""

from __future__ import annotations

from io import BytesIO
from typing import Mapping, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402

from .dashboard import MonthComparison, MonthlySplit, TopExpenseRow  # noqa: E402
from .projection import ProjectionResult  # noqa: E402

_PALETTE = "tab20c"
_EMPTY_COLOR = "#666"


def figure_to_svg(fig: Figure) -> str:
    """Serialize ``fig`` as inline SVG markup and release it."""

    buffer = BytesIO()
    try:
        fig.savefig(buffer, format="svg", bbox_inches="tight")
    finally:
        plt.close(fig)
    svg = buffer.getvalue().decode("utf-8")
    # drop the XML prolog and doctype so the markup can be embedded in HTML
    start = svg.find("<svg")
    return svg[start:] if start >= 0 else svg


def _empty(ax, message: str) -> None:
    ax.text(0.5, 0.5, message, ha="center", va="center", fontsize=12, color=_EMPTY_COLOR)
    ax.axis("off")


def breakdown_pie_svg(items: Sequence[tuple[str, float]], *, title: str) -> str:
    """Donut chart of ``(label, amount)`` pairs."""

    fig, ax = plt.subplots(figsize=(6, 4.5))
    sizes = [amount for _, amount in items if amount > 0]
    labels = [label for label, amount in items if amount > 0]
    if sizes:
        cmap = plt.get_cmap(_PALETTE)
        colors = [cmap(i / max(len(sizes), 1)) for i in range(len(sizes))]
        total = sum(sizes)
        wedges, _texts, _autotexts = ax.pie(
            sizes,
            labels=None,
            autopct=lambda pct: f"{pct:.1f}%" if pct > 4 else "",
            wedgeprops=dict(width=0.45, edgecolor="white", linewidth=1.5),
            startangle=90,
            colors=colors,
            pctdistance=0.78,
        )
        ax.text(0, 0, f"{total:,.2f}", ha="center", va="center", fontsize=14, fontweight="bold")
        ax.legend(
            wedges,
            [f"{label}: {amount:,.2f}" for label, amount in zip(labels, sizes)],
            loc="center left",
            bbox_to_anchor=(1.02, 0.5),
            fontsize=9,
        )
        ax.axis("equal")
    else:
        _empty(ax, "No expenses this month")
    ax.set_title(title, fontsize=13, fontweight="bold")
    return figure_to_svg(fig)


def subscriptions_vs_one_time_svg(split: MonthlySplit) -> str:
    fig, ax = plt.subplots(figsize=(8, 4))
    if split.max_value > 0:
        positions = range(len(split.labels))
        width = 0.4
        ax.bar([p - width / 2 for p in positions], split.subscriptions, width, label="Subscriptions", color="#6366F1")
        ax.bar([p + width / 2 for p in positions], split.one_time, width, label="One-time", color="#F59E0B")
        ax.set_xticks(list(positions))
        ax.set_xticklabels(split.labels)
        ax.legend(fontsize=9)
        ax.grid(axis="y", alpha=0.3)
    else:
        _empty(ax, "No expenses in the last months")
    ax.set_title("Subscriptions vs one-time", fontsize=13, fontweight="bold")
    return figure_to_svg(fig)


def top_expenses_svg(rows: Sequence[TopExpenseRow], *, period_label: str) -> str:
    fig, ax = plt.subplots(figsize=(7, 3.5))
    if rows:
        labels = [f"{row.name} ({row.user_name})" if row.user_name else row.name for row in rows]
        amounts = [row.amount for row in rows]
        bars = ax.barh(labels[::-1], amounts[::-1], color="#10B981")
        ax.bar_label(bars, labels=[f"{amount:,.2f}" for amount in amounts[::-1]], padding=3, fontsize=9)
        ax.grid(axis="x", alpha=0.3)
    else:
        _empty(ax, "No expenses this month")
    ax.set_title(f"Top expenses - {period_label}", fontsize=13, fontweight="bold")
    return figure_to_svg(fig)


def _plot_series(ax, series: Mapping[int, float], **kwargs) -> None:
    days = sorted(series)
    ax.plot(days, [series[day] for day in days], **kwargs)


def month_comparison_svg(comparison: MonthComparison) -> str:
    fig, ax = plt.subplots(figsize=(8, 4))
    if any(comparison.current.values()) or any(comparison.previous.values()):
        _plot_series(ax, comparison.previous, label=comparison.previous_label, color="#9CA3AF", linestyle="--")
        _plot_series(ax, comparison.current, label=comparison.current_label, color="#2563EB", linewidth=2)
        ax.set_xlabel("Day of month")
        ax.legend(fontsize=9)
        ax.grid(alpha=0.3)
    else:
        _empty(ax, "No expenses to compare")
    ax.set_title("Selected month vs last month", fontsize=13, fontweight="bold")
    return figure_to_svg(fig)


def projection_svg(result: ProjectionResult, *, label: str, budget: float | None) -> str:
    """Actual cumulative spend, the projected path to month end and the budget line."""

    fig, ax = plt.subplots(figsize=(8, 4))
    if result.cumulative:
        actual = {day: value for day, value in result.cumulative.items() if day <= result.compare_index}
        _plot_series(ax, actual, label="Actual", color="#2563EB", linewidth=2)
        if result.compare_index < result.days_in_month:
            ax.plot(
                [result.compare_index, result.days_in_month],
                [result.current_to_date, result.projected_total],
                label="Projected",
                color="#F97316",
                linestyle="--",
            )
        if budget:
            ax.axhline(budget, color="#DC2626", linewidth=1, label="Budget")
        if result.budget_hit_date is not None:
            ax.axvline(result.budget_hit_date.day, color="#DC2626", linestyle=":", linewidth=1)
        ax.set_xlim(1, max(result.days_in_month, 2))
        ax.set_xlabel("Day of month")
        ax.legend(fontsize=9)
        ax.grid(alpha=0.3)
    elif result.projected_total > 0:
        ax.bar([label], [result.projected_total], color="#F97316")
        ax.text(0, result.projected_total, f"{result.projected_total:,.2f}", ha="center", va="bottom")
        if budget:
            ax.axhline(budget, color="#DC2626", linewidth=1)
    else:
        _empty(ax, "Not enough history for a projection")
    ax.set_title(f"Projected spending - {label}", fontsize=13, fontweight="bold")
    return figure_to_svg(fig)
