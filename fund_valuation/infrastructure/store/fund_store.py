"""
Fund Store
Single owner of the watchlist, groups, positions and DCA config

All mutations serialize through one asyncio.Lock and replace whole values;
readers only ever see complete snapshots.
"""

import asyncio
import copy
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fund_valuation.domain.models import (
    DEFAULT_GROUP_ID,
    FundGroup,
    Position,
    default_group,
    make_holding_key,
    parse_holding_key,
)
from fund_valuation.domain.services.holdings_valuation import cost_nav_from_profit
from fund_valuation.infrastructure.store.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

WATCHLIST_KEY = "watchlist"
HOLDINGS_KEY = "holdings"
GROUPS_KEY = "groups"
DCA_CONFIG_KEY = "dca-config"

EXPORT_VERSION = 4


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _parse_position(value: Any) -> Optional[Position]:
    """Accepts a bare share count or a {shares, costNav} object."""
    if isinstance(value, dict):
        shares = _number(value.get("shares"))
        cost_nav = max(_number(value.get("costNav")), 0.0)
    else:
        shares = _number(value)
        cost_nav = 0.0
    if shares <= 0:
        return None
    return Position(shares=shares, cost_nav=cost_nav)


def _normalize_key(key: str) -> str:
    if parse_holding_key(key) is None:
        return make_holding_key(DEFAULT_GROUP_ID, key)
    return key


def _parse_holdings(raw: Any) -> Dict[str, Position]:
    """
    Holdings from either a list of [key, value] pairs or a flat
    {code: shares} mapping. Bare codes are keyed under the default group.
    """
    if isinstance(raw, dict):
        entries = list(raw.items())
    elif isinstance(raw, list):
        entries = [tuple(item) for item in raw if isinstance(item, (list, tuple)) and len(item) == 2]
    else:
        return {}

    holdings: Dict[str, Position] = {}
    for key, value in entries:
        if not isinstance(key, str) or not key:
            continue
        position = _parse_position(value)
        if position is not None:
            holdings[_normalize_key(key)] = position
    return holdings


def _has_bare_keys(raw: Any) -> bool:
    if isinstance(raw, dict):
        keys = list(raw)
    elif isinstance(raw, list):
        keys = [item[0] for item in raw if isinstance(item, (list, tuple)) and item]
    else:
        return False
    return any(isinstance(k, str) and k and parse_holding_key(k) is None for k in keys)


def _parse_groups(raw: Any) -> List[FundGroup]:
    if not isinstance(raw, list):
        return []
    groups = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("id"):
            continue
        try:
            groups.append(FundGroup.from_dict(item))
        except (TypeError, ValueError) as exc:
            logger.warning(f"⚠️  Skipping malformed group {item.get('id')!r}: {exc}")
    return groups


def _attach_orphans(groups: List[FundGroup], watchlist: Sequence[str]) -> List[FundGroup]:
    """Watchlist codes held by no group join the default group."""
    grouped = {code for g in groups for code in g.funds}
    orphans = [code for code in watchlist if code not in grouped]

    default = next((g for g in groups if g.id == DEFAULT_GROUP_ID), None)
    if default is None:
        return [default_group(orphans)] + groups
    if orphans:
        merged = FundGroup(
            id=default.id,
            name=default.name,
            funds=default.funds + tuple(orphans),
            order=default.order,
        )
        return [merged if g.id == DEFAULT_GROUP_ID else g for g in groups]
    return groups


def _generate_group_id() -> str:
    return f"group_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class FundStore:
    """
    Fund Store
    Explicit query/command boundary over a flat key-value backend
    """

    def __init__(self, backend: KeyValueStore):
        self.backend = backend
        self._lock = asyncio.Lock()
        self._watchlist: Tuple[str, ...] = ()
        self._holdings: Dict[str, Position] = {}
        self._groups: Tuple[FundGroup, ...] = (default_group(),)
        self._dca_config: Optional[Dict[str, Any]] = None

    # ------------------------------------------------------------------
    # PERSISTENCE
    # ------------------------------------------------------------------

    def _serialize(self, key: str) -> Any:
        if key == WATCHLIST_KEY:
            return list(self._watchlist)
        if key == HOLDINGS_KEY:
            return [[k, p.to_dict()] for k, p in self._holdings.items()]
        if key == GROUPS_KEY:
            return [g.to_dict() for g in self._groups]
        if key == DCA_CONFIG_KEY:
            return self._dca_config
        raise KeyError(key)

    async def _persist(self, *keys: str) -> None:
        """Write the given keys in one backend call, off the event loop."""
        values = {key: self._serialize(key) for key in keys}
        await asyncio.to_thread(self.backend.set_many, values)

    def _read_state(self) -> Dict[str, Any]:
        return {key: self.backend.get(key) for key in (WATCHLIST_KEY, HOLDINGS_KEY, GROUPS_KEY, DCA_CONFIG_KEY)}

    async def load(self) -> None:
        """
        Load state from the backend, migrating older layouts:
        bare-code holding keys move to the default group, orphan codes
        join the default group, a missing default group is recreated.
        """
        async with self._lock:
            state = await asyncio.to_thread(self._read_state)

            raw_watchlist = state[WATCHLIST_KEY] or []
            watchlist = tuple(c for c in raw_watchlist if isinstance(c, str) and c)

            raw_holdings = state[HOLDINGS_KEY]
            holdings = _parse_holdings(raw_holdings)
            migrated_keys = _has_bare_keys(raw_holdings)

            raw_groups = state[GROUPS_KEY]
            groups = _parse_groups(raw_groups)
            if groups:
                groups = _attach_orphans(groups, watchlist)
            else:
                groups = [default_group(list(watchlist))]

            self._watchlist = watchlist
            self._holdings = holdings
            self._groups = tuple(groups)
            self._dca_config = state[DCA_CONFIG_KEY] if isinstance(state[DCA_CONFIG_KEY], dict) else None

            if migrated_keys:
                logger.info("STORE_MIGRATED | holdings moved to default group")
                await self._persist(HOLDINGS_KEY)
            if raw_groups != [g.to_dict() for g in self._groups]:
                await self._persist(GROUPS_KEY)

            logger.info(
                "STORE_LOADED | funds=%s groups=%s positions=%s",
                len(self._watchlist),
                len(self._groups),
                len(self._holdings),
            )

    # ------------------------------------------------------------------
    # QUERIES
    # ------------------------------------------------------------------

    @property
    def watchlist(self) -> List[str]:
        return list(self._watchlist)

    @property
    def groups(self) -> List[FundGroup]:
        return list(self._groups)

    def get_group(self, group_id: str) -> Optional[FundGroup]:
        return next((g for g in self._groups if g.id == group_id), None)

    def get_group_funds(self, group_id: str) -> List[str]:
        group = self.get_group(group_id)
        return list(group.funds) if group else []

    def get_holding(self, group_id: str, code: str) -> Optional[Position]:
        return self._holdings.get(make_holding_key(group_id, code))

    def get_shares(self, group_id: str, code: str) -> float:
        holding = self.get_holding(group_id, code)
        return holding.shares if holding else 0.0

    def group_positions(self, group_id: str) -> Dict[str, Position]:
        """Positions of one group keyed by fund code."""
        positions = {}
        for key, position in self._holdings.items():
            parsed = parse_holding_key(key)
            if parsed and parsed[0] == group_id:
                positions[parsed[1]] = position
        return positions

    # ------------------------------------------------------------------
    # WATCHLIST
    # ------------------------------------------------------------------

    async def add_to_watchlist(self, code: str, group_id: str = DEFAULT_GROUP_ID) -> bool:
        """Add a fund to a group. False if the group is unknown or already holds it."""
        code = code.strip()
        if not code:
            raise ValueError("Fund code cannot be empty")

        async with self._lock:
            group = self.get_group(group_id)
            if group is None or code in group.funds:
                return False

            if code not in self._watchlist:
                self._watchlist = self._watchlist + (code,)
                await self._persist(WATCHLIST_KEY)

            self._groups = tuple(
                FundGroup(id=g.id, name=g.name, funds=g.funds + (code,), order=g.order) if g.id == group_id else g
                for g in self._groups
            )
            await self._persist(GROUPS_KEY)

        logger.info("WATCHLIST_ADD | code=%s group=%s", code, group_id)
        return True

    async def remove_from_watchlist(self, code: str, group_id: str = DEFAULT_GROUP_ID) -> bool:
        """
        Remove a fund from one group, dropping that group's position.
        The code leaves the watchlist once no group holds it.
        """
        async with self._lock:
            group = self.get_group(group_id)
            if group is None or code not in group.funds:
                return False

            self._groups = tuple(
                FundGroup(id=g.id, name=g.name, funds=tuple(c for c in g.funds if c != code), order=g.order)
                if g.id == group_id
                else g
                for g in self._groups
            )
            await self._persist(GROUPS_KEY)

            key = make_holding_key(group_id, code)
            if key in self._holdings:
                self._holdings = {k: v for k, v in self._holdings.items() if k != key}
                await self._persist(HOLDINGS_KEY)

            if not any(code in g.funds for g in self._groups):
                self._watchlist = tuple(c for c in self._watchlist if c != code)
                await self._persist(WATCHLIST_KEY)

        logger.info("WATCHLIST_REMOVE | code=%s group=%s", code, group_id)
        return True

    # ------------------------------------------------------------------
    # POSITIONS
    # ------------------------------------------------------------------

    async def set_holding(self, group_id: str, code: str, shares: float) -> Optional[Position]:
        """Set shares, keeping any cost basis. shares <= 0 deletes the position."""
        key = make_holding_key(group_id, code)
        async with self._lock:
            holdings = dict(self._holdings)
            if shares > 0:
                existing = holdings.get(key)
                holdings[key] = Position(shares=shares, cost_nav=existing.cost_nav if existing else 0.0)
            else:
                holdings.pop(key, None)
            self._holdings = holdings
            await self._persist(HOLDINGS_KEY)
            return holdings.get(key)

    async def set_cost_nav(self, group_id: str, code: str, cost_nav: float) -> Optional[Position]:
        """Set the cost basis of an existing position; None if there is none."""
        key = make_holding_key(group_id, code)
        async with self._lock:
            existing = self._holdings.get(key)
            if existing is None:
                return None
            updated = existing.with_cost(cost_nav)
            self._holdings = {**self._holdings, key: updated}
            await self._persist(HOLDINGS_KEY)
            return updated

    async def set_cost_from_profit(
        self,
        group_id: str,
        code: str,
        target_profit: float,
        last_nav: float,
    ) -> Optional[Position]:
        """
        Back-solve and store the cost NAV that yields target_profit.
        None when there is no position or the solved cost is not positive.
        """
        existing = self.get_holding(group_id, code)
        if existing is None:
            return None
        cost_nav = cost_nav_from_profit(target_profit, existing.shares, last_nav)
        if cost_nav is None:
            return None
        return await self.set_cost_nav(group_id, code, cost_nav)

    # ------------------------------------------------------------------
    # GROUPS
    # ------------------------------------------------------------------

    async def add_group(self, name: str) -> str:
        name = name.strip()
        if not name:
            raise ValueError("Group name cannot be empty")

        group_id = _generate_group_id()
        async with self._lock:
            order = max((g.order for g in self._groups), default=-1) + 1
            self._groups = self._groups + (FundGroup(id=group_id, name=name, funds=(), order=order),)
            await self._persist(GROUPS_KEY)

        logger.info("GROUP_ADDED | id=%s name=%s", group_id, name)
        return group_id

    async def remove_group(self, group_id: str) -> bool:
        """
        Remove a group with its positions. Codes held by no remaining group
        leave the watchlist. The default group cannot be removed.
        """
        if group_id == DEFAULT_GROUP_ID:
            return False

        async with self._lock:
            removed = self.get_group(group_id)
            if removed is None:
                return False

            self._groups = tuple(g for g in self._groups if g.id != group_id)
            self._holdings = {
                k: v for k, v in self._holdings.items() if (parse_holding_key(k) or ("", ""))[0] != group_id
            }
            still_used = {code for g in self._groups for code in g.funds}
            self._watchlist = tuple(
                c for c in self._watchlist if c in still_used or c not in removed.funds
            )
            await self._persist(WATCHLIST_KEY, HOLDINGS_KEY, GROUPS_KEY)

        logger.info("GROUP_REMOVED | id=%s", group_id)
        return True

    async def rename_group(self, group_id: str, name: str) -> bool:
        name = name.strip()
        if not name:
            raise ValueError("Group name cannot be empty")

        async with self._lock:
            if self.get_group(group_id) is None:
                return False
            self._groups = tuple(
                FundGroup(id=g.id, name=name, funds=g.funds, order=g.order) if g.id == group_id else g
                for g in self._groups
            )
            await self._persist(GROUPS_KEY)
        return True

    async def reorder_groups(self, group_ids: Sequence[str]) -> List[FundGroup]:
        """Listed groups first in the given order; unlisted ones appended."""
        async with self._lock:
            by_id = {g.id: g for g in self._groups}
            ordered: List[FundGroup] = []
            seen = set()
            for group_id in group_ids:
                group = by_id.get(group_id)
                if group is None or group_id in seen:
                    continue
                seen.add(group_id)
                ordered.append(group)
            ordered.extend(g for g in self._groups if g.id not in seen)

            self._groups = tuple(
                FundGroup(id=g.id, name=g.name, funds=g.funds, order=index) for index, g in enumerate(ordered)
            )
            await self._persist(GROUPS_KEY)
            return list(self._groups)

    # ------------------------------------------------------------------
    # EXPORT / IMPORT
    # ------------------------------------------------------------------

    def export_data(self) -> Dict[str, Any]:
        return {
            "watchlist": list(self._watchlist),
            "holdings": [[key, p.to_dict()] for key, p in self._holdings.items()],
            "groups": [g.to_dict() for g in self._groups],
            "exportTime": datetime.now(timezone.utc).isoformat(),
            "version": EXPORT_VERSION,
        }

    async def import_data(self, payload: Any) -> bool:
        """
        Replace all state from an export. Accepts the current format,
        older exports with bare share counts, and a flat {code: shares}
        holdings map. Returns False when the payload is unusable.
        """
        if not isinstance(payload, dict):
            return False

        raw_watchlist = payload.get("watchlist")
        raw_holdings = payload.get("holdings")

        if isinstance(raw_watchlist, list):
            watchlist = [c for c in raw_watchlist if isinstance(c, str) and c]
        elif isinstance(raw_holdings, dict):
            watchlist = [c for c in raw_holdings if isinstance(c, str) and c]
        elif payload and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in payload.values()):
            # Whole payload is a legacy {code: shares} map
            raw_holdings = payload
            watchlist = [c for c in payload if c]
        else:
            logger.warning("IMPORT_REJECTED | reason=no watchlist")
            return False

        holdings = _parse_holdings(raw_holdings)

        # Codes with a default-group position must be on the watchlist
        for key in holdings:
            parsed = parse_holding_key(key)
            if parsed and parsed[0] == DEFAULT_GROUP_ID and parsed[1] not in watchlist:
                watchlist.append(parsed[1])

        groups = _parse_groups(payload.get("groups"))
        if groups:
            groups = _attach_orphans(groups, watchlist)
        else:
            groups = [default_group(watchlist)]

        async with self._lock:
            self._watchlist = tuple(dict.fromkeys(watchlist))
            self._holdings = holdings
            self._groups = tuple(groups)
            await self._persist(WATCHLIST_KEY, HOLDINGS_KEY, GROUPS_KEY)

        logger.info(
            "STORE_IMPORTED | version=%s funds=%s positions=%s",
            payload.get("version", "legacy"),
            len(self._watchlist),
            len(self._holdings),
        )
        return True

    # ------------------------------------------------------------------
    # DCA CONFIG
    # ------------------------------------------------------------------

    async def save_dca_config(self, config: Dict[str, Any]) -> None:
        async with self._lock:
            self._dca_config = copy.deepcopy(config)
            await self._persist(DCA_CONFIG_KEY)

    def load_dca_config(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._dca_config)
