"""
Disclaimer text and "could do" framing for generated insights.

Every recommendation, forecast or insight shown to a business owner carries
one of these disclaimers and is phrased as a possibility, never as advice.
"""
import re
from typing import Dict, Literal

from simplegrowth.cashflow.forecast import round_half_up


DisclaimerType = Literal["insight", "recommendation", "forecast", "roi", "hiring", "benchmark", "general"]
DisclaimerLength = Literal["short", "medium", "full"]
ConfidenceLevel = Literal["high", "medium", "low"]


DISCLAIMER_TEMPLATES: Dict[str, Dict[str, str]] = {
    "insight": {
        "short": "This insight shows what you could do, not what you should do.",
        "medium": (
            "Based on your data patterns, here's a possible approach. "
            "Results may vary based on your specific circumstances."
        ),
        "full": (
            "This insight is generated based on your data patterns and is meant for educational "
            "purposes only. It shows what you could consider, not a prescription for action. "
            "Consult with a qualified professional before making financial or business decisions."
        ),
    },
    "recommendation": {
        "short": "Educational insight based on your data.",
        "medium": (
            "This recommendation is one possible approach based on available data. "
            "Your situation may require different considerations."
        ),
        "full": (
            "This recommendation is provided as an educational tool to help you understand possible "
            "approaches. It is not financial, legal, or professional advice. Always consult with "
            "qualified professionals before making significant business decisions."
        ),
    },
    "forecast": {
        "short": "Projection based on current data - actual results may vary.",
        "medium": (
            "This forecast is based on historical patterns and current data. "
            "Future conditions may differ significantly from projections."
        ),
        "full": (
            "Cash flow forecasts are projections based on historical data patterns and are not "
            "guarantees of future performance. Actual results may differ materially due to market "
            "conditions, client behavior changes, and other factors outside the scope of this analysis."
        ),
    },
    "roi": {
        "short": "Estimated value based on typical outcomes.",
        "medium": (
            "ROI calculations are estimates based on industry averages and your specific data. "
            "Individual results vary."
        ),
        "full": (
            "Return on investment calculations are estimates based on industry benchmarks and your "
            "historical data. These figures represent potential outcomes, not guaranteed results. "
            "Actual value delivered depends on implementation, market conditions, and other variables."
        ),
    },
    "hiring": {
        "short": "Data-informed hiring perspective for consideration.",
        "medium": (
            "Based on your metrics, here's what businesses like yours could consider regarding "
            "staffing. This is not a recommendation to hire or not hire."
        ),
        "full": (
            "Hiring insights are educational tools based on industry benchmarks and your business "
            "data. Employment decisions should be made with consideration of legal requirements, "
            "local market conditions, and consultation with HR and legal professionals."
        ),
    },
    "benchmark": {
        "short": "Industry comparison for reference only.",
        "medium": (
            "This benchmark compares your metrics to industry averages. "
            "Your unique circumstances may justify different results."
        ),
        "full": (
            "Industry benchmarks are aggregated from various sources and represent general patterns. "
            "Your business may have legitimate reasons for metrics that differ from industry averages. "
            "Use this data as one input among many in your decision-making process."
        ),
    },
    "general": {
        "short": "For informational purposes only.",
        "medium": (
            "This information is provided for educational purposes. "
            "Professional consultation recommended for major decisions."
        ),
        "full": (
            "Simple Growth Solutions provides data analysis and educational insights to help you "
            "understand your business patterns. This platform is not a substitute for professional "
            "financial, legal, tax, or business advice. Always consult qualified professionals before "
            "making significant business decisions."
        ),
    },
}


def get_disclaimer(disclaimer_type: DisclaimerType, length: DisclaimerLength = "short") -> str:
    """Return the disclaimer text for a content type."""
    return DISCLAIMER_TEMPLATES[disclaimer_type][length]


# =============================================================================
# Confidence levels
# =============================================================================

CONFIDENCE_LEVELS = {
    "high": {
        "label": "High confidence",
        "description": "Based on substantial data with consistent patterns",
        "threshold": 0.8,
        "color": "green",
    },
    "medium": {
        "label": "Medium confidence",
        "description": "Based on available data, some variability expected",
        "threshold": 0.5,
        "color": "yellow",
    },
    "low": {
        "label": "Low confidence",
        "description": "Limited data available, use with caution",
        "threshold": 0,
        "color": "orange",
    },
}


def get_confidence_level(score: float) -> ConfidenceLevel:
    if score >= CONFIDENCE_LEVELS["high"]["threshold"]:
        return "high"
    if score >= CONFIDENCE_LEVELS["medium"]["threshold"]:
        return "medium"
    return "low"


def get_confidence_info(score: float) -> dict:
    """Confidence level with its display metadata and a whole-number percentage."""
    level = get_confidence_level(score)
    return {
        "level": level,
        **CONFIDENCE_LEVELS[level],
        "score": score,
        "percentage": round_half_up(score * 100),
    }


# =============================================================================
# Suggestive language
# =============================================================================

SUGGESTIVE_TRANSFORMS = {
    "You should": "You could consider",
    "You need to": "You might want to",
    "You must": "You could",
    "Do this": "Consider doing this",
    "Take action": "Consider taking action",
    "Implement": "Consider implementing",
    "Require": "Consider requiring",
    "Increase": "Consider increasing",
    "Decrease": "Consider decreasing",
    "Send a": "Consider sending a",
    "Make a": "Consider making a",
    "Review": "Consider reviewing",
    "Offer": "Consider offering",
    "Set up": "Consider setting up",
    "Add": "Consider adding",
}

SUGGESTIVE_PREFIXES = [
    "Based on your data, you could",
    "One possible approach is to",
    "Businesses in similar situations often",
    "Your data suggests you might consider",
    "A potential strategy could be to",
]

DIRECTIVE_PATTERN = re.compile(r"\b(should|must|need to)\b", re.IGNORECASE)


def soften_language(text: str) -> str:
    """
    Rewrite directive phrasing into suggestive phrasing.

    Only phrases at the start of a sentence are rewritten, so "Review" becomes
    "Consider reviewing" while "a review of" is left alone.
    """
    result = text
    for directive, suggestive in SUGGESTIVE_TRANSFORMS.items():
        pattern = re.compile(r"(^|(?<=[.!?]\s))" + re.escape(directive) + r"\b")
        result = pattern.sub(lambda m: m.group(1) + suggestive, result)
    return result


def is_directive(text: str) -> bool:
    """True when the text tells the reader what they should, must or need to do."""
    return bool(DIRECTIVE_PATTERN.search(text))


AI_CONTENT_BADGES = {
    "insight": {
        "label": "AI Insight",
        "tooltip": "This insight was generated using AI analysis of your data",
    },
    "recommendation": {
        "label": "Learning Tool",
        "tooltip": "Educational suggestion based on data patterns - not professional advice",
    },
    "forecast": {
        "label": "AI Projection",
        "tooltip": "Forecast based on historical patterns - actual results may vary",
    },
    "benchmark": {
        "label": "Industry Data",
        "tooltip": "Comparison based on aggregated industry benchmarks",
    },
}
