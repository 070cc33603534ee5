"""
Fetch a contest's actual outcome from public data APIs.

Each contest category maps to one provider: CoinGecko (crypto), Alpha
Vantage (stocks), SportsData.io (player season stats), FRED (economic
series), EIA (WTI spot price), TMDB (movie revenue) and YouTube (video
views). Every failure surfaces as ResultUnavailable so settlement can be
retried later with a manually supplied value.
"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from app.core.config import Settings, settings as default_settings
from app.core.errors import ResultUnavailable
from app.services.contest_metadata import result_category

# Configure logging
logger = logging.getLogger(__name__)

SPORTS_LEAGUES = ("nfl", "nba", "mlb")


def _decimal(value: Any, what: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ResultUnavailable(f"Could not parse {what} value {value!r}")
    if not result.is_finite():
        raise ResultUnavailable(f"Could not parse {what} value {value!r}")
    return result


class ContestResultSource:
    """
    Result collaborator used by settlement.

    Args:
        settings: Provider URLs and API keys
        transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        max_retries: Retries after the first attempt on 5xx or network errors
        retry_backoff: Base seconds for exponential backoff between retries
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 2,
        retry_backoff: float = 1.0,
    ):
        self.settings = settings or default_settings
        self.transport = transport
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

    async def fetch_actual_value(self, contest) -> Decimal:
        """
        Resolve the contest's actual value from its category's provider.

        Raises:
            ResultUnavailable: unknown category, missing identifiers, HTTP or
                parse failure
        """
        category = result_category(contest.category_group) or (contest.category or "").strip().lower()
        metadata = contest.contest_metadata or {}

        fetchers = {
            "crypto": self._fetch_crypto,
            "stock": self._fetch_stock,
            "sports": self._fetch_sports,
            "economic": self._fetch_economic,
            "energy": self._fetch_energy,
            "entertainment": self._fetch_entertainment,
        }
        fetcher = fetchers.get(category)
        if fetcher is None:
            raise ResultUnavailable(f"Unknown contest category: {category}")

        value = await fetcher(metadata)
        logger.info(f"Fetched actual value {value} for contest {contest.id} ({category})")
        return value

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        """GET url and decode JSON, retrying 5xx and network errors."""
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.settings.result_fetch_timeout_seconds,
                    transport=self.transport,
                ) as client:
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPStatusError as exc:
                last_error = exc
                status_code = exc.response.status_code
                if status_code < 500 or attempt >= self.max_retries:
                    raise ResultUnavailable(
                        f"Result provider returned HTTP {status_code}", {"url": url}
                    ) from exc
                logger.warning(f"Result provider returned {status_code}, retrying (attempt {attempt + 1})")
            except httpx.RequestError as exc:
                last_error = exc
                if attempt >= self.max_retries:
                    raise ResultUnavailable(f"Result provider unreachable: {exc}", {"url": url}) from exc
                logger.warning(f"Result provider network error, retrying (attempt {attempt + 1}): {exc}")
            except ValueError as exc:
                raise ResultUnavailable("Result provider returned invalid JSON", {"url": url}) from exc

            await asyncio.sleep(self.retry_backoff * 2 ** attempt)

        raise ResultUnavailable("Result provider retries exhausted") from last_error

    async def _fetch_crypto(self, metadata: Dict[str, Any]) -> Decimal:
        crypto_id = metadata.get("crypto_id")
        if not crypto_id:
            raise ResultUnavailable("Crypto ID not provided")

        data = await self._get_json(
            f"{self.settings.coingecko_base_url}/simple/price",
            {"ids": crypto_id, "vs_currencies": "usd"},
        )
        price = (data.get(crypto_id) or {}).get("usd")
        if not price:
            raise ResultUnavailable("Crypto price not found", {"crypto_id": crypto_id})
        return _decimal(price, "crypto price")

    async def _fetch_stock(self, metadata: Dict[str, Any]) -> Decimal:
        symbol = metadata.get("stock_symbol")
        if not symbol:
            raise ResultUnavailable("Stock symbol not provided")

        data = await self._get_json(
            f"{self.settings.alphavantage_base_url}/query",
            {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.settings.alphavantage_api_key},
        )
        quote = data.get("Global Quote") or {}
        if not quote.get("05. price"):
            raise ResultUnavailable("Stock data not found", {"symbol": symbol})
        return _decimal(quote["05. price"], "stock price")

    async def _fetch_sports(self, metadata: Dict[str, Any]) -> Decimal:
        player_id = metadata.get("player_id")
        league = metadata.get("league")
        if not player_id or not league:
            raise ResultUnavailable("Player ID and league are required")
        if league not in SPORTS_LEAGUES:
            raise ResultUnavailable(f"Invalid league: {league}")

        season = metadata.get("season") or datetime.now(timezone.utc).year
        data = await self._get_json(
            f"{self.settings.sportsdata_base_url}/{league}/stats/json/PlayerSeasonStats/{season}",
            {"key": self.settings.sportsdata_api_key},
        )
        stats = next((p for p in data or [] if str(p.get("PlayerID")) == str(player_id)), None)
        if stats is None:
            raise ResultUnavailable("Player stats not found", {"player_id": player_id})

        stat_type = metadata.get("stat_type")
        if not stat_type:
            raise ResultUnavailable("Stat type not provided", {"player_id": player_id})
        if stats.get(stat_type) is None:
            raise ResultUnavailable(
                f"Stat {stat_type} not reported for player", {"player_id": player_id, "stat_type": stat_type}
            )
        return _decimal(stats[stat_type], stat_type)

    async def _fetch_economic(self, metadata: Dict[str, Any]) -> Decimal:
        series = metadata.get("economic_series")
        if not series:
            raise ResultUnavailable("Economic series not provided")

        data = await self._get_json(
            f"{self.settings.fred_base_url}/series/observations",
            {
                "series_id": series,
                "api_key": self.settings.fred_api_key,
                "file_type": "json",
                "sort_order": "desc",
                "limit": 1,
            },
        )
        observations = data.get("observations") or []
        if not observations:
            raise ResultUnavailable("Economic data not found", {"series": series})

        latest = observations[0].get("value")
        # FRED reports missing observations as "."
        if latest in (None, "."):
            raise ResultUnavailable("No valid economic data available", {"series": series})
        return _decimal(latest, "economic series")

    async def _fetch_energy(self, metadata: Dict[str, Any]) -> Decimal:
        data = await self._get_json(
            f"{self.settings.eia_base_url}/petroleum/pri/spt/data/",
            {
                "api_key": self.settings.eia_api_key,
                "frequency": "daily",
                "data[0]": "value",
                "facets[product][]": metadata.get("product", "EPCWTI"),
                "sort[0][column]": "period",
                "sort[0][direction]": "desc",
                "length": 1,
            },
        )
        rows = (data.get("response") or {}).get("data") or []
        if not rows:
            raise ResultUnavailable("Oil price data not found")
        return _decimal(rows[0].get("value"), "oil price")

    async def _fetch_entertainment(self, metadata: Dict[str, Any]) -> Decimal:
        if metadata.get("movie_id"):
            data = await self._get_json(
                f"{self.settings.tmdb_base_url}/movie/{metadata['movie_id']}",
                {"api_key": self.settings.tmdb_api_key},
            )
            revenue = data.get("revenue")
            if revenue is None:
                raise ResultUnavailable("Movie revenue not reported", {"movie_id": metadata["movie_id"]})
            return _decimal(revenue, "movie revenue")

        if metadata.get("video_id"):
            data = await self._get_json(
                f"{self.settings.youtube_base_url}/videos",
                {"part": "statistics", "id": metadata["video_id"], "key": self.settings.youtube_api_key},
            )
            items = data.get("items") or []
            if not items:
                raise ResultUnavailable("Video not found", {"video_id": metadata["video_id"]})
            return _decimal(items[0].get("statistics", {}).get("viewCount"), "view count")

        raise ResultUnavailable("Movie ID or Video ID required")
