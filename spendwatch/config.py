"""Load and validate config.yaml."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class DatabaseConfig:
    path: str = "data/spendwatch.db"


@dataclass
class CurrencyConfig:
    """USD to DZD conversion defaults."""

    default_exchange_rate: Optional[Decimal] = Decimal("140")
    from_currency: str = "USD"
    to_currency: str = "DZD"

    def __post_init__(self) -> None:
        # YAML yields floats; keep money math in Decimal
        if self.default_exchange_rate is not None:
            self.default_exchange_rate = Decimal(str(self.default_exchange_rate))


@dataclass
class BudgetDefaultsConfig:
    alert_threshold: Decimal = Decimal("80")
    currency: str = "DZD"

    def __post_init__(self) -> None:
        self.alert_threshold = Decimal(str(self.alert_threshold))


@dataclass
class DashboardConfig:
    recent_entries: int = 5
    max_alerts: int = 50
    page_size: int = 20


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    currency: CurrencyConfig = field(default_factory=CurrencyConfig)
    budgets: BudgetDefaultsConfig = field(default_factory=BudgetDefaultsConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """Load config from YAML file, falling back to defaults."""
    p = Path(path)
    raw: dict = {}
    if p.exists():
        with open(p, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    return AppConfig(
        database=DatabaseConfig(**(raw.get("database") or {})),
        currency=CurrencyConfig(**(raw.get("currency") or {})),
        budgets=BudgetDefaultsConfig(**(raw.get("budgets") or {})),
        dashboard=DashboardConfig(**(raw.get("dashboard") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )
