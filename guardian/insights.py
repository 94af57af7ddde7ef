"""
guardian/insights.py  -  AI portfolio commentary via the Groq chat API

The engine's numbers are sent to an OpenAI-compatible chat endpoint that
is asked to answer with a fixed JSON schema. Nothing here feeds back into
the valuation or risk figures.
"""

import json
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from guardian.models import Holding

GROQ_API_URL = "https://api.groq.com/openai/v1/chat/completions"
GROQ_MODEL   = "llama-3.3-70b-versatile"

SYSTEM_PROMPT = ("You are a professional financial analyst. Answer ONLY with valid "
                 "JSON, no extra text, no markdown, no code fences.")


class InsightError(Exception):
    """Provider or parsing failure, message fit to show the user."""


@dataclass
class Insight:
    title:       str
    kind:        str             # "bullish", "bearish", "neutral" or "alert"
    confidence:  str             # "high", "medium" or "low"
    category:    str
    description: str
    ticker:      Optional[str] = None


@dataclass
class InsightReport:
    summary:   str
    sentiment: str               # "optimistic", "pessimistic" or "neutral"
    insights:  List[Insight] = field(default_factory=list)


def _holding_line(h: Holding) -> str:
    sign = "+" if h.change_percent >= 0 else ""
    return (f"- {h.ticker}: Price {h.price:.2f}, Change {sign}{h.change_percent:.2f}%, "
            f"EPS {h.lpa:.2f}, BVPS {h.vpa:.2f}, ROE {h.roe * 100:.1f}%, "
            f"DY {h.dividend_yield * 100:.1f}%, P/E {h.pl:.1f}, P/B {h.pvp:.2f}, "
            f"Debt/EBITDA {h.debt_to_ebitda:.1f}x, Net margin {h.net_margin * 100:.1f}%, "
            f"Score {h.score}/100")


def build_prompt(holdings: List[Holding]) -> str:
    lines = "\n".join(_holding_line(h) for h in holdings)
    return f"""You are a professional financial analyst covering the Brazilian (B3) and international markets.
Analyse the portfolio below and produce actionable, detailed insights.

INVESTOR PORTFOLIO:
{lines}

INSTRUCTIONS:
1. Answer EXCLUSIVELY with valid JSON, no markdown, no code blocks.
2. Use exactly this schema:
{{
  "summary": "Short sentence summarising the overall sentiment of the portfolio",
  "sentiment": "optimistic" | "pessimistic" | "neutral",
  "insights": [
    {{
      "title": "Short, direct title",
      "kind": "bullish" | "bearish" | "neutral" | "alert",
      "confidence": "high" | "medium" | "low",
      "category": "Trend" | "Valuation" | "Fundamentals" | "Risk" | "Dividends" | "Momentum" | "Volatility",
      "description": "Two or three sentences of fundamental analysis with a practical recommendation",
      "ticker": "TICKER or null for a portfolio-wide insight"
    }}
  ]
}}

ANALYSIS RULES:
- Produce between 4 and 8 relevant insights
- Cover price trend, valuation (P/E, P/B), financial health (Debt/EBITDA), profitability (ROE) and dividends (DY)
- Point out buying opportunities (good Graham score and high ROE)
- Warn about risks (excess leverage, very high P/E, compressed margins)
- Compare holdings with each other when relevant
- Consider the current Brazilian macro backdrop (SELIC, inflation, FX)
- Never use emojis

Answer ONLY with the JSON."""


def _strip_fences(text: str) -> str:
    clean = text.strip()
    if clean.startswith("```json"):
        clean = clean[7:]
    if clean.startswith("```"):
        clean = clean[3:]
    if clean.endswith("```"):
        clean = clean[:-3]
    return clean.strip()


def parse_insights(text: str) -> InsightReport:
    try:
        data = json.loads(_strip_fences(text))
    except ValueError as e:
        raise InsightError("Could not read the AI response. Try again.") from e
    if not isinstance(data, dict) or not isinstance(data.get("insights"), list):
        raise InsightError("Unexpected AI response format.")

    insights = [
        Insight(
            title=str(item.get("title", "")),
            kind=str(item.get("kind", "neutral")),
            confidence=str(item.get("confidence", "low")),
            category=str(item.get("category", "")),
            description=str(item.get("description", "")),
            ticker=item.get("ticker") or None,
        )
        for item in data["insights"] if isinstance(item, dict)
    ]
    return InsightReport(summary=str(data.get("summary", "")),
                         sentiment=str(data.get("sentiment", "neutral")),
                         insights=insights)


class InsightClient:
    def __init__(self, api_key: str, session=None, timeout: float = 60.0):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, holdings: List[Holding]) -> InsightReport:
        if not self.api_key:
            raise InsightError("Groq API key is not configured.")
        if not holdings:
            raise InsightError("No holdings to analyse.")

        payload = {
            "model": GROQ_MODEL,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(holdings)},
            ],
            "temperature": 0.7,
            "max_tokens": 2048,
            "response_format": {"type": "json_object"},
        }
        try:
            response = self.session.post(
                GROQ_API_URL, json=payload, timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"})
        except requests.RequestException as e:
            raise InsightError(f"Network error talking to Groq: {e}") from e

        status = response.status_code
        if status == 401:
            raise InsightError("Invalid Groq API key. Check it at console.groq.com.")
        if status == 429:
            raise InsightError("Groq rate limit reached. Wait a few minutes.")
        if status == 413:
            raise InsightError("Portfolio too large to analyse. Try with fewer holdings.")
        if status != 200:
            raise InsightError(f"Groq API error: HTTP {status}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise InsightError("Empty response from Groq.")
        return parse_insights(content)
