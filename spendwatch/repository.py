"""SQLite persistence for sources, entries, budgets, alerts and conversions.

Every public method opens its own connection, commits and closes it, so a
repository instance can be shared freely. Money values are stored as TEXT
and read back as Decimal; timestamps are ISO strings with microseconds so
lexical order equals chronological order.

Uniqueness rules live in the schema:

* one budget per (month, year, source) - the global budget uses an empty
  source key in the index;
* one alert per (budget, alert type, period start) - alerts are written
  with ``INSERT OR IGNORE`` so concurrent writers cannot duplicate them;
* one conversion per (entry, order).

Usage::

    repo = SpendRepository("data/spendwatch.db")
    entries = repo.find_entries(EntryFilter(start=start, end=end))
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from spendwatch.errors import DuplicateBudgetError, DuplicateSourceError
from spendwatch.schema import (
    AdSource,
    AlertType,
    BudgetAlert,
    BudgetFilter,
    Currency,
    EntryFilter,
    ExchangeRate,
    LeadConversion,
    MediaBuyingBudget,
    MediaBuyingEntry,
    Order,
)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS ad_sources (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE,
    slug        TEXT NOT NULL UNIQUE,
    icon        TEXT,
    color       TEXT,
    is_active   INTEGER NOT NULL DEFAULT 1,
    sort_order  INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS media_buying_entries (
    id                TEXT PRIMARY KEY,
    date              TEXT NOT NULL,
    date_range_start  TEXT,
    date_range_end    TEXT,
    source_id         TEXT NOT NULL REFERENCES ad_sources(id),
    total_spend       TEXT NOT NULL,
    total_leads       INTEGER NOT NULL,
    currency          TEXT NOT NULL DEFAULT 'USD',
    exchange_rate     TEXT,
    spend_in_dzd      TEXT,
    store_id          TEXT,
    product_id        TEXT,
    metadata          TEXT,
    created_by_id     TEXT,
    created_at        TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS media_buying_entries_date_idx
    ON media_buying_entries(date);
CREATE INDEX IF NOT EXISTS media_buying_entries_source_idx
    ON media_buying_entries(source_id);

CREATE TABLE IF NOT EXISTS media_buying_budgets (
    id               TEXT PRIMARY KEY,
    month            INTEGER NOT NULL,
    year             INTEGER NOT NULL,
    source_id        TEXT REFERENCES ad_sources(id) ON DELETE SET NULL,
    budget_amount    TEXT NOT NULL,
    currency         TEXT NOT NULL DEFAULT 'DZD',
    alert_threshold  TEXT NOT NULL DEFAULT '80',
    alert_enabled    INTEGER NOT NULL DEFAULT 1,
    created_by_id    TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS media_buying_budgets_scope_key
    ON media_buying_budgets(month, year, IFNULL(source_id, ''));

CREATE TABLE IF NOT EXISTS budget_alerts (
    id             TEXT PRIMARY KEY,
    budget_id      TEXT NOT NULL REFERENCES media_buying_budgets(id) ON DELETE CASCADE,
    alert_type     TEXT NOT NULL,
    threshold      TEXT NOT NULL,
    current_spend  TEXT NOT NULL,
    budget_amount  TEXT NOT NULL,
    period_start   TEXT NOT NULL,
    is_read        INTEGER NOT NULL DEFAULT 0,
    read_at        TEXT,
    read_by_id     TEXT,
    created_at     TEXT NOT NULL,
    UNIQUE (budget_id, alert_type, period_start)
);
CREATE INDEX IF NOT EXISTS budget_alerts_created_idx ON budget_alerts(created_at);

CREATE TABLE IF NOT EXISTS orders (
    id         TEXT PRIMARY KEY,
    reference  TEXT NOT NULL,
    total      TEXT NOT NULL,
    status     TEXT NOT NULL DEFAULT 'PENDING'
);

CREATE TABLE IF NOT EXISTS lead_conversions (
    id                TEXT PRIMARY KEY,
    entry_id          TEXT NOT NULL REFERENCES media_buying_entries(id) ON DELETE CASCADE,
    order_id          TEXT NOT NULL REFERENCES orders(id),
    conversion_date   TEXT NOT NULL,
    order_value       TEXT,
    attribution_type  TEXT NOT NULL DEFAULT 'direct',
    UNIQUE (entry_id, order_id)
);

CREATE TABLE IF NOT EXISTS exchange_rates (
    id              TEXT PRIMARY KEY,
    from_currency   TEXT NOT NULL,
    to_currency     TEXT NOT NULL,
    rate            TEXT NOT NULL,
    effective_date  TEXT NOT NULL,
    created_by_id   TEXT
);
CREATE INDEX IF NOT EXISTS exchange_rates_pair_idx
    ON exchange_rates(from_currency, to_currency, effective_date);
"""


def new_id() -> str:
    """Return a fresh opaque record id."""
    return uuid.uuid4().hex


# ── Column codecs ─────────────────────────────────────────────────────────────

def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="microseconds") if value is not None else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value is not None else None


def _dec(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _parse_dec(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


# ─────────────────────────────────────────────────────────────────────────────
# Repository
# ─────────────────────────────────────────────────────────────────────────────

class SpendRepository:
    """Persistent store for the media-buying module, backed by SQLite."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    # ── DB setup ──────────────────────────────────────────────────────────────

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ── Ad sources ────────────────────────────────────────────────────────────

    def add_source(self, source: AdSource) -> AdSource:
        with self._unique_source(source):
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO ad_sources (id, name, slug, icon, color, is_active, sort_order) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (source.id, source.name, source.slug, source.icon, source.color,
                     int(source.is_active), source.sort_order),
                )
        return source

    def update_source(self, source: AdSource) -> AdSource:
        with self._unique_source(source):
            with self._connect() as conn:
                conn.execute(
                    "UPDATE ad_sources SET name = ?, icon = ?, color = ?, is_active = ?, "
                    "sort_order = ? WHERE id = ?",
                    (source.name, source.icon, source.color, int(source.is_active),
                     source.sort_order, source.id),
                )
        return source

    @contextmanager
    def _unique_source(self, source: AdSource) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" not in str(exc):
                raise
            raise DuplicateSourceError(
                f"An ad source named '{source.name}' or with slug '{source.slug}' already exists"
            ) from exc

    def get_source(self, source_id: str) -> Optional[AdSource]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM ad_sources WHERE id = ?", (source_id,)
            ).fetchone()
        return self._row_to_source(row) if row else None

    def list_sources(self, include_inactive: bool = False) -> List[AdSource]:
        sql = "SELECT * FROM ad_sources"
        if not include_inactive:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY sort_order ASC, name ASC"
        with self._connect() as conn:
            rows = conn.execute(sql).fetchall()
        return [self._row_to_source(r) for r in rows]

    # ── Entries ───────────────────────────────────────────────────────────────

    def add_entry(self, entry: MediaBuyingEntry) -> MediaBuyingEntry:
        if entry.created_at is None:
            entry.created_at = datetime.now()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO media_buying_entries (id, date, date_range_start, date_range_end, "
                "source_id, total_spend, total_leads, currency, exchange_rate, spend_in_dzd, "
                "store_id, product_id, metadata, created_by_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._entry_params(entry) + (_ts(entry.created_at),),
            )
        return entry

    def update_entry(self, entry: MediaBuyingEntry) -> MediaBuyingEntry:
        with self._connect() as conn:
            conn.execute(
                "UPDATE media_buying_entries SET date = ?, date_range_start = ?, "
                "date_range_end = ?, source_id = ?, total_spend = ?, total_leads = ?, "
                "currency = ?, exchange_rate = ?, spend_in_dzd = ?, store_id = ?, "
                "product_id = ?, metadata = ?, created_by_id = ? WHERE id = ?",
                self._entry_params(entry)[1:] + (entry.id,),
            )
        return entry

    def delete_entry(self, entry_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM media_buying_entries WHERE id = ?", (entry_id,))
        return cur.rowcount == 1

    def get_entry(self, entry_id: str) -> Optional[MediaBuyingEntry]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM media_buying_entries WHERE id = ?", (entry_id,)
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def find_entries(
        self, flt: Optional[EntryFilter] = None, newest_first: bool = True
    ) -> List[MediaBuyingEntry]:
        """Return entries matching *flt*, ordered by date."""
        flt = flt or EntryFilter()
        where, params = self._entry_where(flt)
        direction = "DESC" if newest_first else "ASC"
        sql = (
            f"SELECT * FROM media_buying_entries{where} "
            f"ORDER BY date {direction}, rowid {direction}"
        )
        if flt.limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params += [flt.limit, (max(flt.page, 1) - 1) * flt.limit]
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def count_entries(self, flt: Optional[EntryFilter] = None) -> int:
        where, params = self._entry_where(flt or EntryFilter())
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) FROM media_buying_entries{where}", params
            ).fetchone()
        return row[0]

    # ── Budgets ───────────────────────────────────────────────────────────────

    def add_budget(self, budget: MediaBuyingBudget) -> MediaBuyingBudget:
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO media_buying_budgets (id, month, year, source_id, "
                    "budget_amount, currency, alert_threshold, alert_enabled, created_by_id) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (budget.id, budget.month, budget.year, budget.source_id,
                     _dec(budget.budget_amount), budget.currency.value,
                     _dec(budget.alert_threshold), int(budget.alert_enabled),
                     budget.created_by_id),
                )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" not in str(exc):
                raise
            scope = budget.source_id or "global"
            raise DuplicateBudgetError(
                f"A budget already exists for {budget.month:02d}/{budget.year} ({scope})"
            ) from exc
        return budget

    def update_budget(self, budget: MediaBuyingBudget) -> MediaBuyingBudget:
        with self._connect() as conn:
            conn.execute(
                "UPDATE media_buying_budgets SET budget_amount = ?, currency = ?, "
                "alert_threshold = ?, alert_enabled = ? WHERE id = ?",
                (_dec(budget.budget_amount), budget.currency.value,
                 _dec(budget.alert_threshold), int(budget.alert_enabled), budget.id),
            )
        return budget

    def get_budget(self, budget_id: str) -> Optional[MediaBuyingBudget]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM media_buying_budgets WHERE id = ?", (budget_id,)
            ).fetchone()
        return self._row_to_budget(row) if row else None

    def find_budgets(self, flt: Optional[BudgetFilter] = None) -> List[MediaBuyingBudget]:
        """Return budgets matching *flt*, newest period first."""
        flt = flt or BudgetFilter()
        clauses: List[str] = []
        params: list = []
        if flt.month is not None:
            clauses.append("month = ?")
            params.append(flt.month)
        if flt.year is not None:
            clauses.append("year = ?")
            params.append(flt.year)
        if flt.global_only:
            clauses.append("source_id IS NULL")
        elif flt.source_id is not None:
            clauses.append("source_id = ?")
            params.append(flt.source_id)
        if flt.alert_enabled is not None:
            clauses.append("alert_enabled = ?")
            params.append(int(flt.alert_enabled))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM media_buying_budgets{where} "
                "ORDER BY year DESC, month DESC, rowid ASC",
                params,
            ).fetchall()
        return [self._row_to_budget(r) for r in rows]

    # ── Alerts ────────────────────────────────────────────────────────────────

    def create_alert(self, alert: BudgetAlert) -> bool:
        """Insert *alert* unless one exists for the same budget, type and period.

        Returns True when a row was written.
        """
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO budget_alerts (id, budget_id, alert_type, threshold, "
                "current_spend, budget_amount, period_start, is_read, read_at, read_by_id, "
                "created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (alert.id, alert.budget_id, alert.alert_type.value, _dec(alert.threshold),
                 _dec(alert.current_spend), _dec(alert.budget_amount),
                 alert.period_start.isoformat(), int(alert.is_read), _ts(alert.read_at),
                 alert.read_by_id, _ts(alert.created_at)),
            )
        return cur.rowcount == 1

    def find_existing_alert(
        self, budget_id: str, alert_type: AlertType, since: datetime
    ) -> Optional[BudgetAlert]:
        """Return the first alert of *alert_type* for the budget created at or after *since*."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM budget_alerts WHERE budget_id = ? AND alert_type = ? "
                "AND created_at >= ? ORDER BY created_at ASC LIMIT 1",
                (budget_id, alert_type.value, _ts(since)),
            ).fetchone()
        return self._row_to_alert(row) if row else None

    def get_alert(self, alert_id: str) -> Optional[BudgetAlert]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM budget_alerts WHERE id = ?", (alert_id,)
            ).fetchone()
        return self._row_to_alert(row) if row else None

    def list_alerts(self, unread_only: bool = False, limit: int = 50) -> List[BudgetAlert]:
        sql = "SELECT * FROM budget_alerts"
        if unread_only:
            sql += " WHERE is_read = 0"
        sql += " ORDER BY created_at DESC LIMIT ?"
        with self._connect() as conn:
            rows = conn.execute(sql, (limit,)).fetchall()
        return [self._row_to_alert(r) for r in rows]

    def mark_alert_read(self, alert_id: str, user_id: str, read_at: datetime) -> bool:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE budget_alerts SET is_read = 1, read_at = ?, read_by_id = ? WHERE id = ?",
                (_ts(read_at), user_id, alert_id),
            )
        return cur.rowcount == 1

    # ── Orders & conversions ──────────────────────────────────────────────────

    def add_order(self, order: Order) -> Order:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO orders (id, reference, total, status) VALUES (?, ?, ?, ?)",
                (order.id, order.reference, _dec(order.total), order.status),
            )
        return order

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
        if not row:
            return None
        return Order(
            id=row["id"], reference=row["reference"],
            total=Decimal(row["total"]), status=row["status"],
        )

    def add_conversion(self, conversion: LeadConversion) -> LeadConversion:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO lead_conversions (id, entry_id, order_id, conversion_date, "
                "order_value, attribution_type) VALUES (?, ?, ?, ?, ?, ?)",
                (conversion.id, conversion.entry_id, conversion.order_id,
                 _ts(conversion.conversion_date), _dec(conversion.order_value),
                 conversion.attribution_type),
            )
        return conversion

    def delete_conversion(self, conversion_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM lead_conversions WHERE id = ?", (conversion_id,))
        return cur.rowcount == 1

    def find_conversions(
        self, flt: Optional[EntryFilter] = None, entry_id: Optional[str] = None
    ) -> List[LeadConversion]:
        """Return conversions whose entry matches *flt*, newest first."""
        where, params = self._entry_where(flt or EntryFilter(), alias="e.")
        if entry_id is not None:
            where += " AND c.entry_id = ?" if where else " WHERE c.entry_id = ?"
            params.append(entry_id)
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT c.* FROM lead_conversions c "
                f"JOIN media_buying_entries e ON e.id = c.entry_id{where} "
                "ORDER BY c.conversion_date DESC",
                params,
            ).fetchall()
        return [self._row_to_conversion(r) for r in rows]

    def count_conversions(self, flt: Optional[EntryFilter] = None) -> int:
        """Count conversions linked to entries matching *flt*."""
        where, params = self._entry_where(flt or EntryFilter(), alias="e.")
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM lead_conversions c "
                f"JOIN media_buying_entries e ON e.id = c.entry_id{where}",
                params,
            ).fetchone()
        return row[0]

    # ── Exchange rates ────────────────────────────────────────────────────────

    def add_exchange_rate(self, rate: ExchangeRate) -> ExchangeRate:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO exchange_rates (id, from_currency, to_currency, rate, "
                "effective_date, created_by_id) VALUES (?, ?, ?, ?, ?, ?)",
                (rate.id, rate.from_currency, rate.to_currency, _dec(rate.rate),
                 _ts(rate.effective_date), rate.created_by_id),
            )
        return rate

    def list_exchange_rates(self, limit: int = 30) -> List[ExchangeRate]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM exchange_rates ORDER BY effective_date DESC LIMIT ?", (limit,)
            ).fetchall()
        return [self._row_to_rate(r) for r in rows]

    def latest_exchange_rate(
        self, from_currency: str = "USD", to_currency: str = "DZD"
    ) -> Optional[ExchangeRate]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM exchange_rates WHERE from_currency = ? AND to_currency = ? "
                "ORDER BY effective_date DESC, rowid DESC LIMIT 1",
                (from_currency, to_currency),
            ).fetchone()
        return self._row_to_rate(row) if row else None

    # ── Helpers ───────────────────────────────────────────────────────────────

    @staticmethod
    def _entry_where(flt: EntryFilter, alias: str = "") -> Tuple[str, list]:
        clauses: List[str] = []
        params: list = []
        if flt.start is not None:
            clauses.append(f"{alias}date >= ?")
            params.append(_ts(flt.start))
        if flt.end is not None:
            clauses.append(f"{alias}date <= ?")
            params.append(_ts(flt.end))
        if flt.source_id is not None:
            clauses.append(f"{alias}source_id = ?")
            params.append(flt.source_id)
        if flt.store_id is not None:
            clauses.append(f"{alias}store_id = ?")
            params.append(flt.store_id)
        if flt.product_id is not None:
            clauses.append(f"{alias}product_id = ?")
            params.append(flt.product_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    @staticmethod
    def _entry_params(entry: MediaBuyingEntry) -> tuple:
        return (
            entry.id, _ts(entry.date), _ts(entry.date_range_start), _ts(entry.date_range_end),
            entry.source_id, _dec(entry.total_spend), entry.total_leads, entry.currency.value,
            _dec(entry.exchange_rate), _dec(entry.spend_in_dzd), entry.store_id,
            entry.product_id, json.dumps(entry.metadata or {}, ensure_ascii=False),
            entry.created_by_id,
        )

    @staticmethod
    def _row_to_source(row: sqlite3.Row) -> AdSource:
        return AdSource(
            id=row["id"], name=row["name"], slug=row["slug"], color=row["color"],
            icon=row["icon"], sort_order=row["sort_order"], is_active=bool(row["is_active"]),
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> MediaBuyingEntry:
        return MediaBuyingEntry(
            id=row["id"],
            date=_parse_ts(row["date"]),
            source_id=row["source_id"],
            total_spend=Decimal(row["total_spend"]),
            total_leads=row["total_leads"],
            currency=Currency(row["currency"]),
            exchange_rate=_parse_dec(row["exchange_rate"]),
            spend_in_dzd=_parse_dec(row["spend_in_dzd"]),
            created_by_id=row["created_by_id"],
            date_range_start=_parse_ts(row["date_range_start"]),
            date_range_end=_parse_ts(row["date_range_end"]),
            store_id=row["store_id"],
            product_id=row["product_id"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            created_at=_parse_ts(row["created_at"]),
        )

    @staticmethod
    def _row_to_budget(row: sqlite3.Row) -> MediaBuyingBudget:
        return MediaBuyingBudget(
            id=row["id"],
            month=row["month"],
            year=row["year"],
            budget_amount=Decimal(row["budget_amount"]),
            source_id=row["source_id"],
            currency=Currency(row["currency"]),
            alert_threshold=Decimal(row["alert_threshold"]),
            alert_enabled=bool(row["alert_enabled"]),
            created_by_id=row["created_by_id"],
        )

    @staticmethod
    def _row_to_alert(row: sqlite3.Row) -> BudgetAlert:
        return BudgetAlert(
            id=row["id"],
            budget_id=row["budget_id"],
            alert_type=AlertType(row["alert_type"]),
            threshold=Decimal(row["threshold"]),
            current_spend=Decimal(row["current_spend"]),
            budget_amount=Decimal(row["budget_amount"]),
            period_start=date.fromisoformat(row["period_start"]),
            created_at=_parse_ts(row["created_at"]),
            is_read=bool(row["is_read"]),
            read_at=_parse_ts(row["read_at"]),
            read_by_id=row["read_by_id"],
        )

    @staticmethod
    def _row_to_conversion(row: sqlite3.Row) -> LeadConversion:
        return LeadConversion(
            id=row["id"],
            entry_id=row["entry_id"],
            order_id=row["order_id"],
            conversion_date=_parse_ts(row["conversion_date"]),
            order_value=_parse_dec(row["order_value"]),
            attribution_type=row["attribution_type"],
        )

    @staticmethod
    def _row_to_rate(row: sqlite3.Row) -> ExchangeRate:
        return ExchangeRate(
            id=row["id"],
            from_currency=row["from_currency"],
            to_currency=row["to_currency"],
            rate=Decimal(row["rate"]),
            effective_date=_parse_ts(row["effective_date"]),
            created_by_id=row["created_by_id"],
        )
