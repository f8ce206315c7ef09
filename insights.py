"""
insights.py
===========
Rule-based, prioritized recommendations from computed analytics.

Product Thinking:
- Growth and decline both deserve a headline; silence means "nothing unusual"
- Benchmarks (3.5% conversion, $75 AOV) turn raw ratios into a judgement
- Concentration on a single product is a risk even when revenue is up
- Forecast-driven insights only fire when the forecast had enough data

Each rule measures one signal and emits at most one Insight: the first of its
variants whose predicate holds. Rules run in table order; the final list is
ranked by impact weight × confidence, keeping table order for equal scores.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from config import Settings, settings as default_settings
from schemas import (
    DailyBucket,
    Impact,
    Insight,
    InsightType,
    Overview,
    Prediction,
    ProductStat,
    Trend,
)
from utils import fmt_currency, fmt_pct, pct, pct_change, safe_div

logger = logging.getLogger(__name__)

IMPACT_WEIGHT = {Impact.HIGH: 3, Impact.MEDIUM: 2, Impact.LOW: 1}


@dataclass(frozen=True)
class InsightContext:
    overview: Overview
    top_products: Sequence[ProductStat]
    prediction: Prediction
    time_series: Sequence[DailyBucket]
    settings: Settings


class InsightTemplate(NamedTuple):
    predicate: Callable[[float, InsightContext], bool]
    type: InsightType
    impact: Impact
    title: str
    describe: Callable[[float, InsightContext], str]
    actions: Tuple[str, ...]
    confidence: Callable[[InsightContext], float]


class InsightRule(NamedTuple):
    signal: str
    measure: Callable[[InsightContext], Optional[float]]
    variants: Tuple[InsightTemplate, ...]

    def evaluate(self, ctx: InsightContext) -> Optional[Insight]:
        value = self.measure(ctx)
        if value is None:
            return None
        for template in self.variants:
            if template.predicate(value, ctx):
                return Insight(
                    type=template.type,
                    title=template.title,
                    description=template.describe(value, ctx),
                    impact=template.impact,
                    actionable=bool(template.actions),
                    actions=list(template.actions),
                    confidence=template.confidence(ctx),
                    metrics={self.signal: float(value)},
                )
        return None


def _fixed(confidence: float) -> Callable[[InsightContext], float]:
    return lambda ctx: confidence


# ── Signals ───────────────────────────────────────────────────────────────────
# A signal returns None when it is undefined for the data at hand; its rule is skipped.

def revenue_growth(ctx: InsightContext) -> Optional[float]:
    return ctx.overview.revenue_growth


def projected_monthly_growth(ctx: InsightContext) -> Optional[float]:
    """Next week's forecast extended to four weeks, versus revenue of the period."""
    if not ctx.prediction.sufficient_data or ctx.overview.total_revenue <= 0:
        return None
    return pct_change(ctx.prediction.next_week_revenue * 4, ctx.overview.total_revenue)


def conversion_rate(ctx: InsightContext) -> Optional[float]:
    if not ctx.overview.total_clicks:
        return None
    return ctx.overview.conversion_rate


def product_concentration(ctx: InsightContext) -> Optional[float]:
    """Top product's share of total revenue (%)."""
    if not ctx.top_products or ctx.overview.total_revenue <= 0:
        return None
    return pct(ctx.top_products[0].revenue, ctx.overview.total_revenue)


def rising_stars(ctx: InsightContext) -> Optional[float]:
    """Number of top products trending up with above-benchmark conversion."""
    if not ctx.top_products:
        return None
    benchmark = ctx.settings.BENCHMARK_CONVERSION_RATE
    return float(sum(
        1 for p in ctx.top_products
        if p.trend == Trend.UP and p.conversion_rate > benchmark
    ))


def seasonal_factor(ctx: InsightContext) -> Optional[float]:
    return ctx.prediction.seasonal_factor if ctx.prediction.sufficient_data else None


def volatility(ctx: InsightContext) -> Optional[float]:
    return ctx.prediction.volatility if ctx.prediction.sufficient_data else None


def week_over_week_growth(ctx: InsightContext) -> Optional[float]:
    """Average daily revenue of the last 7 days versus the 7 before (%)."""
    recent = ctx.time_series[-7:]
    previous = ctx.time_series[-14:-7]
    if not recent or not previous:
        return None
    previous_avg = safe_div(sum(d.revenue for d in previous), len(previous))
    if previous_avg <= 0:
        return None
    recent_avg = safe_div(sum(d.revenue for d in recent), len(recent))
    return pct_change(recent_avg, previous_avg)


def average_order_value(ctx: InsightContext) -> Optional[float]:
    if not ctx.overview.total_conversions:
        return None
    return ctx.overview.average_order_value


# ── Rule table ────────────────────────────────────────────────────────────────

def _cr_benchmark(ctx: InsightContext) -> float:
    return ctx.settings.BENCHMARK_CONVERSION_RATE


def _aov_benchmark(ctx: InsightContext) -> float:
    return ctx.settings.BENCHMARK_AVERAGE_ORDER_VALUE


INSIGHT_RULES: Tuple[InsightRule, ...] = (
    InsightRule("revenue_growth", revenue_growth, (
        InsightTemplate(
            lambda v, ctx: v > 15,
            InsightType.SUCCESS, Impact.HIGH,
            "Exceptional Revenue Growth",
            lambda v, ctx: (
                f"Revenue has surged by {fmt_pct(v)}. This momentum suggests strong "
                "market positioning and effective strategies."
            ),
            ("Scale successful campaigns", "Expand product catalog", "Increase inventory"),
            _fixed(0.9),
        ),
        InsightTemplate(
            lambda v, ctx: v > 5,
            InsightType.SUCCESS, Impact.MEDIUM,
            "Steady Revenue Growth",
            lambda v, ctx: f"Revenue growth of {fmt_pct(v)} indicates healthy business expansion.",
            ("Maintain current strategies", "Test new marketing channels"),
            _fixed(0.8),
        ),
        InsightTemplate(
            lambda v, ctx: v < -10,
            InsightType.WARNING, Impact.HIGH,
            "Significant Revenue Decline",
            lambda v, ctx: (
                f"Revenue has dropped by {fmt_pct(abs(v))}. Immediate action required "
                "to identify and address root causes."
            ),
            ("Audit top-performing products", "Review marketing spend", "Analyze competitor activity"),
            _fixed(0.95),
        ),
    )),
    InsightRule("projected_monthly_growth", projected_monthly_growth, (
        InsightTemplate(
            lambda v, ctx: ctx.prediction.confidence > 0.8 and v > 20,
            InsightType.OPPORTUNITY, Impact.HIGH,
            "High-Confidence Growth Prediction",
            lambda v, ctx: (
                f"Forecast models predict {fmt_pct(v)} monthly growth with "
                f"{fmt_pct(ctx.prediction.confidence * 100, 0)} confidence."
            ),
            ("Prepare for increased demand", "Optimize fulfillment capacity"),
            lambda ctx: ctx.prediction.confidence,
        ),
    )),
    InsightRule("conversion_rate", conversion_rate, (
        InsightTemplate(
            lambda v, ctx: v < _cr_benchmark(ctx) * 0.7,
            InsightType.OPPORTUNITY, Impact.HIGH,
            "Conversion Rate Below Industry Standard",
            lambda v, ctx: (
                f"Current conversion rate of {fmt_pct(v, 2)} is "
                f"{fmt_pct(-pct_change(v, _cr_benchmark(ctx)), 0)} below industry average."
            ),
            ("A/B test product pages", "Improve call-to-action buttons", "Optimize checkout flow"),
            _fixed(0.85),
        ),
        InsightTemplate(
            lambda v, ctx: v > _cr_benchmark(ctx) * 1.2,
            InsightType.SUCCESS, Impact.MEDIUM,
            "Above-Average Conversion Performance",
            lambda v, ctx: (
                f"Conversion rate of {fmt_pct(v, 2)} exceeds industry standards by "
                f"{fmt_pct(pct_change(v, _cr_benchmark(ctx)), 0)}."
            ),
            ("Document successful strategies", "Apply learnings to underperforming products"),
            _fixed(0.8),
        ),
    )),
    InsightRule("product_concentration", product_concentration, (
        InsightTemplate(
            lambda v, ctx: v > 40,
            InsightType.WARNING, Impact.MEDIUM,
            "High Revenue Concentration Risk",
            lambda v, ctx: (
                f"{ctx.top_products[0].name} accounts for {fmt_pct(v)} of total revenue. "
                "This concentration poses business risk."
            ),
            ("Diversify product portfolio", "Develop backup products", "Reduce dependency"),
            _fixed(0.9),
        ),
    )),
    InsightRule("rising_stars", rising_stars, (
        InsightTemplate(
            lambda v, ctx: v > 0,
            InsightType.OPPORTUNITY, Impact.MEDIUM,
            "Rising Star Products Identified",
            lambda v, ctx: (
                f"{int(v)} products showing strong upward trends with above-average "
                "conversion rates."
            ),
            ("Increase marketing budget for rising products", "Expand similar product lines"),
            _fixed(0.75),
        ),
    )),
    InsightRule("seasonal_factor", seasonal_factor, (
        InsightTemplate(
            lambda v, ctx: v > 1.15,
            InsightType.OPPORTUNITY, Impact.MEDIUM,
            "Positive Seasonal Trend",
            lambda v, ctx: (
                f"Current seasonal patterns suggest {fmt_pct((v - 1) * 100, 0)} "
                "performance boost expected."
            ),
            ("Increase inventory", "Boost marketing spend", "Prepare for higher traffic"),
            _fixed(0.7),
        ),
        InsightTemplate(
            lambda v, ctx: v < 0.85,
            InsightType.WARNING, Impact.MEDIUM,
            "Seasonal Downturn Expected",
            lambda v, ctx: (
                f"Seasonal patterns indicate {fmt_pct((1 - v) * 100, 0)} "
                "performance decline likely."
            ),
            ("Adjust marketing spend", "Focus on retention", "Plan promotional campaigns"),
            _fixed(0.7),
        ),
    )),
    InsightRule("volatility", volatility, (
        InsightTemplate(
            lambda v, ctx: v > 0.4,
            InsightType.WARNING, Impact.MEDIUM,
            "High Performance Volatility",
            lambda v, ctx: (
                f"Recent performance shows high volatility ({fmt_pct(v * 100, 0)}), "
                "indicating unpredictable patterns."
            ),
            ("Investigate volatility causes", "Implement risk management", "Diversify traffic sources"),
            _fixed(0.8),
        ),
    )),
    InsightRule("week_over_week_growth", week_over_week_growth, (
        InsightTemplate(
            lambda v, ctx: v > 25,
            InsightType.SUCCESS, Impact.HIGH,
            "Accelerating Weekly Growth",
            lambda v, ctx: f"Week-over-week revenue growth of {fmt_pct(v)} shows strong acceleration.",
            ("Identify growth drivers", "Scale successful initiatives"),
            _fixed(0.85),
        ),
    )),
    InsightRule("average_order_value", average_order_value, (
        InsightTemplate(
            lambda v, ctx: v < _aov_benchmark(ctx) * 0.8,
            InsightType.OPPORTUNITY, Impact.MEDIUM,
            "Average Order Value Optimization",
            lambda v, ctx: (
                f"AOV of {fmt_currency(v)} is below optimal range. Potential for "
                f"{fmt_pct(pct_change(_aov_benchmark(ctx), v), 0)} improvement."
            ),
            ("Implement upselling strategies", "Create product bundles", "Offer volume discounts"),
            _fixed(0.8),
        ),
    )),
)


def insight_score(insight: Insight) -> float:
    return IMPACT_WEIGHT[insight.impact] * insight.confidence


def rank_insights(insights: Sequence[Insight]) -> List[Insight]:
    """Highest impact × confidence first; equal scores keep their incoming order."""
    return sorted(insights, key=insight_score, reverse=True)


def generate_insights(
    overview: Overview,
    top_products: Sequence[ProductStat],
    prediction: Prediction,
    time_series: Sequence[DailyBucket],
    settings: Optional[Settings] = None,
    rules: Sequence[InsightRule] = INSIGHT_RULES,
) -> List[Insight]:
    ctx = InsightContext(
        overview=overview,
        top_products=list(top_products),
        prediction=prediction,
        time_series=list(time_series),
        settings=settings or default_settings,
    )
    fired = [insight for insight in (rule.evaluate(ctx) for rule in rules) if insight is not None]
    logger.debug("%d of %d insight rules fired", len(fired), len(rules))
    return rank_insights(fired)
