"""
Eastmoney Fund Data Provider
Fetches live NAV estimates, confirmed NAV history and fund search results

Every public call is best-effort: upstream failures degrade to None / []
and are never raised to the caller.
"""

import asyncio
import json
import logging
import math
import re
import time
from datetime import date
from typing import Dict, List, Optional

import httpx

from fund_valuation.config import settings
from fund_valuation.domain.models import FundInfo, NavRecord, RawEstimate
from fund_valuation.infrastructure.market_data.request_queue import RequestQueue, get_estimate_queue
from fund_valuation.utils.time import parse_iso_date

logger = logging.getLogger(__name__)

_JSONP_ESTIMATE = re.compile(r"jsonpgz\((.*)\)", re.S)

# Known fund categories, matched as substrings of the directory's type label
FUND_TYPES = ("股票型", "混合型", "债券型", "指数型", "货币型", "QDII", "ETF", "LOF", "FOF")

PERIOD_DAYS = {"1w": 7, "1m": 30, "3m": 90, "6m": 180, "1y": 365}


class UpstreamError(RuntimeError):
    pass


def _to_float(value: object) -> float:
    """Parse a loosely typed number; anything unusable becomes 0."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def parse_estimate_payload(code: str, text: str) -> Optional[RawEstimate]:
    """
    Parse the live-estimate JSONP envelope: jsonpgz({...});

    Funds without an intraday estimate answer with an empty envelope.
    """
    match = _JSONP_ESTIMATE.search(text or "")
    if not match or not match.group(1).strip():
        return None
    try:
        data = json.loads(match.group(1))
    except ValueError:
        logger.debug(f"Malformed estimate payload for {code}")
        return None
    if not isinstance(data, dict):
        return None

    return RawEstimate(
        code=str(data.get("fundcode") or code),
        name=str(data.get("name") or ""),
        last_nav=_to_float(data.get("dwjz")),
        last_nav_date=str(data.get("jzrq") or ""),
        estimate_nav=_to_float(data.get("gsz")),
        estimate_change_percent=_to_float(data.get("gszzl")),
        estimate_time=str(data.get("gztime") or ""),
    )


def parse_nav_page(page: Dict) -> List[NavRecord]:
    """Records of one NAV history page, in feed order (newest first)."""
    data = page.get("Data")
    items = data.get("LSJZList") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []

    records: List[NavRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        nav_date = parse_iso_date(item.get("FSRQ"))
        if nav_date is None:
            continue
        records.append(
            NavRecord(
                date=nav_date,
                nav=_to_float(item.get("DWJZ")),
                accumulated_nav=_to_float(item.get("LJJZ")),
                change_percent=_to_float(item.get("JZZZL")),
            )
        )
    return records


def normalize_fund_type(raw: str) -> str:
    for known in FUND_TYPES:
        if known in raw:
            return known
    return raw or "其他"


class EastmoneyProvider:
    """
    Eastmoney fund data provider

    Live estimates are serialized through a process-wide request queue;
    NAV history and search run fully concurrently.
    """

    HEADERS = {
        'User-Agent': (
            'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
            '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
        ),
        'Accept': '*/*',
        'Accept-Language': 'zh-CN,zh;q=0.9,en;q=0.8',
    }

    def __init__(
        self,
        estimate_url: Optional[str] = None,
        nav_history_url: Optional[str] = None,
        search_url: Optional[str] = None,
        referer: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        page_size: Optional[int] = None,
        estimate_queue: Optional[RequestQueue] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.estimate_url = estimate_url or settings.ESTIMATE_URL
        self.nav_history_url = nav_history_url or settings.NAV_HISTORY_URL
        self.search_url = search_url or settings.FUND_SEARCH_URL
        self.referer = referer or settings.UPSTREAM_REFERER
        self.timeout_seconds = timeout_seconds or settings.UPSTREAM_TIMEOUT_SECONDS
        self.page_size = page_size or settings.HISTORY_PAGE_SIZE
        self.estimate_queue = estimate_queue or get_estimate_queue()
        self.session: Optional[httpx.AsyncClient] = client

    async def _get_session(self) -> httpx.AsyncClient:
        """Get or create HTTP session"""
        if self.session is None:
            self.session = httpx.AsyncClient(
                headers={**self.HEADERS, 'Referer': self.referer},
                timeout=self.timeout_seconds,
                follow_redirects=True,
            )
        return self.session

    async def close(self):
        """Close HTTP session"""
        if self.session:
            await self.session.aclose()
            self.session = None

    async def _get(self, url: str, params: Optional[Dict] = None) -> httpx.Response:
        """
        Single GET bounded by the upstream timeout. No retries.
        """
        session = await self._get_session()
        try:
            response = await asyncio.wait_for(
                session.get(url, params=params, headers={'Referer': self.referer}),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamError(f"timeout after {self.timeout_seconds}s: {url}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"request failed: {url} -> {exc}") from exc
        if response.status_code != 200:
            raise UpstreamError(f"status {response.status_code} for {url}")
        return response

    async def _request_text(self, url: str, params: Optional[Dict] = None) -> str:
        response = await self._get(url, params)
        return response.text

    async def _request_json(self, url: str, params: Optional[Dict] = None) -> Dict:
        text = await self._request_text(url, params)
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise UpstreamError(f"non-JSON payload from {url}") from exc
        if not isinstance(data, dict):
            raise UpstreamError(f"unexpected payload shape from {url}")
        return data

    # ------------------------------------------------------------------
    # LIVE ESTIMATE
    # ------------------------------------------------------------------

    async def fetch_estimate(self, code: str) -> Optional[RawEstimate]:
        """
        Live intraday estimate for one fund, or None when unavailable.
        """
        url = self.estimate_url.format(code=code)
        params = {"rt": _timestamp_ms()}
        try:
            text = await self.estimate_queue.run(lambda: self._request_text(url, params))
        except UpstreamError as exc:
            logger.debug(f"Estimate fetch failed for {code}: {exc}")
            return None

        estimate = parse_estimate_payload(code, text)
        if estimate is None:
            logger.debug(f"No live estimate for {code}")
        return estimate

    # ------------------------------------------------------------------
    # CONFIRMED NAV HISTORY
    # ------------------------------------------------------------------

    async def _fetch_history_page(
        self,
        code: str,
        page_index: int,
        page_size: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Optional[Dict]:
        params = {
            "fundCode": code,
            "pageIndex": page_index,
            "pageSize": page_size,
            "startDate": start_date.isoformat() if start_date else "",
            "endDate": end_date.isoformat() if end_date else "",
            "_": _timestamp_ms(),
        }
        try:
            data = await self._request_json(self.nav_history_url, params)
        except UpstreamError as exc:
            logger.debug(f"NAV history page {page_index} failed for {code}: {exc}")
            return None

        # A non-zero (or missing) error code makes the whole page unusable
        if data.get("ErrCode") != 0:
            logger.debug(f"NAV history page {page_index} for {code} rejected: ErrCode={data.get('ErrCode')}")
            return None
        return data

    async def fetch_recent_navs(self, code: str, count: int = 2) -> List[NavRecord]:
        """
        Most recent confirmed NAV records, newest first.
        """
        page = await self._fetch_history_page(code, 1, count)
        if page is None:
            return []
        return parse_nav_page(page)[:count]

    async def fetch_nav_history(self, code: str, start_date: date, end_date: date) -> List[NavRecord]:
        """
        All confirmed NAV records within [start_date, end_date], oldest first.
        """
        if start_date > end_date:
            return []

        first = await self._fetch_history_page(code, 1, self.page_size, start_date, end_date)
        if first is None:
            return []

        pages = [first]
        total = int(_to_float(first.get("TotalCount")))
        page_size = int(_to_float(first.get("PageSize"))) or self.page_size
        page_count = math.ceil(total / page_size) if total > 0 else 1

        if page_count > 1:
            rest = await asyncio.gather(
                *(
                    self._fetch_history_page(code, index, page_size, start_date, end_date)
                    for index in range(2, page_count + 1)
                ),
                return_exceptions=True,
            )
            for index, result in enumerate(rest, start=2):
                if isinstance(result, BaseException) or result is None:
                    logger.warning(f"⚠️  NAV history page {index}/{page_count} missing for {code}")
                    continue
                pages.append(result)

        by_date: Dict[date, NavRecord] = {}
        for page in pages:
            for record in parse_nav_page(page):
                if start_date <= record.date <= end_date:
                    by_date.setdefault(record.date, record)

        return [by_date[d] for d in sorted(by_date)]

    async def fetch_history_by_period(self, code: str, period: str = "1m") -> List[NavRecord]:
        """
        Last N postings for a chart period (1w/1m/3m/6m/1y), oldest first.
        """
        days = PERIOD_DAYS.get(period, PERIOD_DAYS["1m"])
        page_count = math.ceil(days / self.page_size)

        results = await asyncio.gather(
            *(self._fetch_history_page(code, index, self.page_size) for index in range(1, page_count + 1)),
            return_exceptions=True,
        )

        records: List[NavRecord] = []
        for result in results:
            if isinstance(result, BaseException) or result is None:
                continue
            records.extend(parse_nav_page(result))

        return list(reversed(records[:days]))

    # ------------------------------------------------------------------
    # SEARCH
    # ------------------------------------------------------------------

    async def search_funds(self, query: str) -> List[FundInfo]:
        """
        Search the fund directory by code or name (max 20 hits).
        """
        key = (query or "").strip()
        if not key:
            return []

        try:
            data = await self._request_json(self.search_url, {"callback": "", "m": 1, "key": key})
        except UpstreamError as exc:
            logger.warning(f"⚠️  Fund search failed for {key!r}: {exc}")
            return []

        items = data.get("Datas")
        if data.get("ErrCode") != 0 or not isinstance(items, list) or not items:
            logger.debug(f"Fund search returned nothing for {key!r}: {data.get('ErrMsg')}")
            return []

        funds: List[FundInfo] = []
        for item in items[:20]:
            if not isinstance(item, dict) or not item.get("CODE"):
                continue
            base_info = item.get("FundBaseInfo")
            if not isinstance(base_info, dict):
                base_info = {}
            funds.append(
                FundInfo(
                    code=str(item["CODE"]),
                    name=str(item.get("NAME") or ""),
                    type=normalize_fund_type(str(base_info.get("FTYPE") or "")),
                )
            )
        return funds


# Singleton instance
_eastmoney_provider: Optional[EastmoneyProvider] = None


def get_eastmoney_provider() -> EastmoneyProvider:
    """Get singleton Eastmoney provider instance"""
    global _eastmoney_provider
    if _eastmoney_provider is None:
        _eastmoney_provider = EastmoneyProvider()
    return _eastmoney_provider
