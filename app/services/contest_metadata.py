"""
Derive result data-source metadata from a contest's category
"""

import logging
from typing import Dict, Optional

# Configure logging
logger = logging.getLogger(__name__)

CRYPTO_IDS = {
    "bitcoin": "bitcoin",
    "btc": "bitcoin",
    "ethereum": "ethereum",
    "eth": "ethereum",
    "cardano": "cardano",
    "ada": "cardano",
    "solana": "solana",
    "sol": "solana",
    "ripple": "ripple",
    "xrp": "ripple",
    "dogecoin": "dogecoin",
    "doge": "dogecoin",
    "polkadot": "polkadot",
    "dot": "polkadot",
    "litecoin": "litecoin",
    "ltc": "litecoin",
    "chainlink": "chainlink",
    "link": "chainlink",
    "avalanche": "avalanche-2",
    "avax": "avalanche-2",
}

STOCK_SYMBOLS = {
    "apple": "AAPL",
    "microsoft": "MSFT",
    "google": "GOOGL",
    "alphabet": "GOOGL",
    "amazon": "AMZN",
    "tesla": "TSLA",
    "meta": "META",
    "facebook": "META",
    "nvidia": "NVDA",
    "netflix": "NFLX",
    "disney": "DIS",
    "walmart": "WMT",
    "coca-cola": "KO",
    "pepsi": "PEP",
    "mcdonalds": "MCD",
    "visa": "V",
    "mastercard": "MA",
    "jpmorgan": "JPM",
    "bank of america": "BAC",
    "intel": "INTC",
    "amd": "AMD",
    "ibm": "IBM",
    "oracle": "ORCL",
    "salesforce": "CRM",
}

# Matched by substring, in order
ECONOMIC_SERIES = [
    ("consumer price index", "CPIAUCSL"),
    ("cpi", "CPIAUCSL"),
    ("inflation", "CPIAUCSL"),
    ("gdp", "GDP"),
    ("unemployment", "UNRATE"),
    ("10 year treasury", "DGS10"),
    ("treasury", "DGS10"),
    ("federal funds rate", "FEDFUNDS"),
    ("fed funds rate", "FEDFUNDS"),
    ("housing starts", "HOUST"),
    ("retail sales", "RSXFS"),
    ("industrial production", "INDPRO"),
]

# Category group aliases -> result category
CATEGORY_GROUPS = {
    "crypto": "crypto",
    "cryptocurrency": "crypto",
    "stock": "stock",
    "stocks": "stock",
    "sports": "sports",
    "sport": "sports",
    "economic": "economic",
    "economy": "economic",
    "energy": "energy",
    "oil": "energy",
    "commodities": "energy",
    "entertainment": "entertainment",
    "movies": "entertainment",
    "social": "entertainment",
}


def normalize_category_group(category_group: Optional[str]) -> str:
    """First word of the group, lower-cased: "Crypto Currency" -> "crypto" """
    words = (category_group or "").strip().split()
    return words[0].lower() if words else ""


def result_category(category_group: Optional[str]) -> Optional[str]:
    """Map a category group to the result source category, or None if unknown"""
    return CATEGORY_GROUPS.get(normalize_category_group(category_group))


def _sports_info(text: str) -> Dict[str, str]:
    text = text.lower()
    if "nfl" in text:
        if "passing" in text:
            stat_type = "PassingYards"
        elif "rushing" in text:
            stat_type = "RushingYards"
        elif "receiving" in text:
            stat_type = "ReceivingYards"
        else:
            stat_type = "Points"
        return {"league": "nfl", "stat_type": stat_type}
    if "nba" in text:
        if "rebounds" in text:
            stat_type = "Rebounds"
        elif "assists" in text:
            stat_type = "Assists"
        else:
            stat_type = "Points"
        return {"league": "nba", "stat_type": stat_type}
    if "mlb" in text:
        if "home run" in text:
            stat_type = "HomeRuns"
        elif "rbi" in text:
            stat_type = "RunsBattedIn"
        elif "stolen base" in text:
            stat_type = "StolenBases"
        else:
            stat_type = "Hits"
        return {"league": "mlb", "stat_type": stat_type}
    return {}


def build_contest_metadata(
    category_group: Optional[str],
    category_name: str,
    contest_name: Optional[str] = None,
) -> Optional[Dict[str, str]]:
    """
    Build the metadata the result source needs for a contest.

    Args:
        category_group: e.g. "Crypto", "Stocks", "Social Media"
        category_name: e.g. "Bitcoin", "Apple", "CPI"
        contest_name: Used for sports contests, e.g. "NFL - Mahomes Passing Yards"

    Returns:
        Metadata dict, or None for an unknown category group
    """
    group = normalize_category_group(category_group)
    name = (category_name or "").strip()
    category = CATEGORY_GROUPS.get(group)

    if category == "crypto":
        crypto_id = CRYPTO_IDS.get(name.lower())
        if crypto_id is None:
            logger.warning(f"Unknown coin {name!r}, contest needs a crypto_id before it can settle")
        return {
            "crypto_id": crypto_id,
            "data_source": "CoinGecko",
            "result_unit": "USD",
        }

    if category == "stock":
        symbol = STOCK_SYMBOLS.get(name.lower())
        if symbol is None:
            logger.warning(f"Unknown company {name!r}, contest needs a stock_symbol before it can settle")
        return {
            "stock_symbol": symbol,
            "data_source": "Alpha Vantage",
            "result_unit": "USD",
        }

    if category == "sports":
        info = _sports_info(contest_name or name)
        return {
            **info,
            "data_source": "SportsData.io",
            "result_unit": "points" if info.get("stat_type") == "Points" else "yards",
        }

    if category == "economic":
        lowered = name.lower()
        series = next((code for key, code in ECONOMIC_SERIES if key in lowered), "CPIAUCSL")
        return {
            "economic_series": series,
            "data_source": "FRED",
            "result_unit": "percentage",
        }

    if category == "energy":
        return {
            "data_source": "EIA",
            "result_unit": "USD per barrel" if "oil" in name.lower() else "USD",
        }

    if category == "entertainment":
        if group == "social":
            return {"data_source": "YouTube", "metric_type": "views", "result_unit": "count"}
        return {"data_source": "TMDB", "metric_type": "revenue", "result_unit": "USD"}

    logger.warning(f"Unknown category group: {group} (original: {category_group})")
    return None
