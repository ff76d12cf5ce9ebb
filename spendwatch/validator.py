"""
SpendWatch DZD - Data Validation Module.

This module validates spend entries and budgets before they are stored,
and parses CSV files of daily spend entries. All monetary values are
converted to Decimal with error reporting including row numbers.

Algerian Market Context:
    - Spend is reported in USD ("$120.50") or DZD ("16 500 DA")
    - Exchange rates are USD to DZD (e.g. 140)
    - Budgets are always positive DZD ceilings

Classes:
    RowError: A single CSV row validation failure.
    EntryInput: A validated spend entry awaiting persistence.
    ImportResult: Container for CSV validation outcomes.
    DataValidator: Main validation class.
"""

import csv
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from spendwatch.errors import ValidationError
from spendwatch.schema import HUNDRED, ZERO, Currency


@dataclass
class RowError:
    """
    Represents a single validation error with context.

    Attributes:
        row_number: The 1-based row number in the CSV (header is row 1).
        field_name: The name of the field that failed validation.
        value: The invalid value that was provided.
        message: A client-facing error message.
    """

    row_number: int
    field_name: str
    value: str
    message: str

    def __str__(self) -> str:
        """Returns a formatted error message for client display."""
        return f"Error: Row {self.row_number} '{self.field_name}' - {self.message}"


@dataclass
class EntryInput:
    """
    A validated spend entry, not yet stored.

    ``source`` is the source slug or name as written in the input; the
    service resolves it to a source id.
    """

    date: datetime
    source: str
    total_spend: Decimal
    total_leads: int
    currency: Currency
    exchange_rate: Optional[Decimal] = None
    store_id: Optional[str] = None
    product_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImportResult:
    """
    Container for CSV validation results.

    Attributes:
        entries: Successfully validated entries.
        errors: RowError objects for failed rows.
        total_rows: Total number of data rows processed.
    """

    entries: List[EntryInput] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)
    total_rows: int = 0

    @property
    def is_valid(self) -> bool:
        """Returns True if validation produced no errors."""
        return len(self.errors) == 0

    @property
    def valid_count(self) -> int:
        """Returns the number of successfully validated entries."""
        return len(self.entries)

    @property
    def error_count(self) -> int:
        """Returns the number of validation errors."""
        return len(self.errors)


class DataValidator:
    """
    Validates entry and budget input.

    Attributes:
        REQUIRED_COLUMNS: Mandatory CSV column names.
        OPTIONAL_COLUMNS: Optional CSV column names.
        METADATA_COLUMNS: Optional CSV columns copied into entry metadata.

    Example:
        >>> validator = DataValidator()
        >>> result = validator.validate_csv("spend.csv")
        >>> if result.is_valid:
        ...     for entry in result.entries:
        ...         print(entry.source, entry.total_spend)
    """

    REQUIRED_COLUMNS = ["Date", "Source", "Total_Spend", "Currency", "Total_Leads"]
    OPTIONAL_COLUMNS = ["Exchange_Rate", "Store", "Product"]
    METADATA_COLUMNS = {
        "CTR": "ctr",
        "CPM": "cpm",
        "Impressions": "impressions",
        "Clicks": "clicks",
        "Campaign_Name": "campaignName",
    }

    # Pattern to clean currency strings (removes $, DZD, DA, spaces, commas)
    CURRENCY_CLEAN_PATTERN = re.compile(r"(?i)(dzd|da|usd|\$|\s|,)")

    DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S", "%d/%m/%Y")

    def validate_csv(self, file_path: Union[str, Path]) -> ImportResult:
        """
        Validates a CSV file of spend entries.

        Args:
            file_path: Path to the CSV file.

        Returns:
            ImportResult with entries list and any errors.

        Raises:
            FileNotFoundError: If the CSV file does not exist.
            ValueError: If required columns are missing.
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"CSV file not found: {file_path}")

        with open(file_path, "r", encoding="utf-8-sig") as csvfile:
            reader = csv.DictReader(csvfile)

            missing = self._check_required_columns(reader.fieldnames or [])
            if missing:
                raise ValueError(f"Missing required columns: {', '.join(missing)}")

            return self.validate_rows(list(reader))

    def validate_rows(self, rows: List[dict], start_row: int = 2) -> ImportResult:
        """
        Validates a list of row dictionaries.

        Args:
            rows: Dictionaries keyed by CSV column name.
            start_row: Starting row number for error reporting.

        Returns:
            ImportResult with entries list and any errors.
        """
        result = ImportResult()
        result.total_rows = len(rows)

        for idx, row in enumerate(rows):
            entry, errors = self._validate_row(row, start_row + idx)
            if entry:
                result.entries.append(entry)
            result.errors.extend(errors)

        return result

    # Boundary checks for service calls

    def validate_entry_values(
        self,
        total_spend: Decimal,
        total_leads: int,
        currency: Union[str, Currency],
        exchange_rate: Optional[Decimal] = None
    ) -> Currency:
        """
        Validates the numeric fields of an entry.

        Returns:
            The parsed Currency.

        Raises:
            ValidationError: On a negative spend or lead count, an unknown
                currency or a non-positive exchange rate.
        """
        currency = self.parse_currency(currency)
        if total_spend is None or total_spend < ZERO:
            raise ValidationError("Total spend must be a non-negative number")
        if total_leads is None or total_leads < 0:
            raise ValidationError("Total leads must be a non-negative integer")
        if exchange_rate is not None and exchange_rate <= ZERO:
            raise ValidationError("Exchange rate must be a positive number")
        return currency

    def validate_budget_values(
        self,
        month: int,
        year: int,
        budget_amount: Optional[Decimal],
        alert_threshold: Optional[Decimal] = None
    ) -> None:
        """
        Validates budget creation input.

        Raises:
            ValidationError: If the amount is missing or not positive, the
                month is outside 1-12, the year is implausible or the
                threshold is outside 0-100.
        """
        if budget_amount is None or budget_amount <= ZERO:
            raise ValidationError("Budget amount is required and must be positive")
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {month}")
        if not 2000 <= year <= 2100:
            raise ValidationError(f"Year must be between 2000 and 2100, got {year}")
        if alert_threshold is not None and not ZERO < alert_threshold <= HUNDRED:
            raise ValidationError("Alert threshold must be between 0 and 100")

    def parse_currency(self, value: Union[str, Currency]) -> Currency:
        """
        Parses a currency code.

        Raises:
            ValidationError: If the code is not USD or DZD.
        """
        if isinstance(value, Currency):
            return value
        try:
            return Currency(str(value or "").strip().upper())
        except ValueError:
            raise ValidationError(
                f"Currency must be USD or DZD (received: '{value}')"
            ) from None

    def _check_required_columns(self, columns: List[str]) -> List[str]:
        """
        Checks if all required columns are present.

        Args:
            columns: List of column names from CSV header.

        Returns:
            List of missing column names (empty if all present).
        """
        columns_lower = [c.lower().strip() for c in columns]
        return [
            required for required in self.REQUIRED_COLUMNS
            if required.lower() not in columns_lower
        ]

    def _validate_row(
        self,
        row: dict,
        row_number: int
    ) -> Tuple[Optional[EntryInput], List[RowError]]:
        """
        Validates a single row and converts it to an EntryInput.

        Args:
            row: Dictionary with row data.
            row_number: Row number for error reporting.

        Returns:
            Tuple of (EntryInput or None, list of errors).
        """
        errors: List[RowError] = []

        entry_date = self._parse_date(row.get("Date") or "", row_number, errors)

        source = (row.get("Source") or "").strip()
        if not source:
            errors.append(RowError(
                row_number=row_number,
                field_name="Source",
                value=row.get("Source") or "",
                message="Source cannot be empty"
            ))

        currency: Optional[Currency] = None
        try:
            currency = self.parse_currency(row.get("Currency") or "")
        except ValidationError as exc:
            errors.append(RowError(
                row_number=row_number,
                field_name="Currency",
                value=row.get("Currency") or "",
                message=str(exc)
            ))

        total_spend, spend_error = self._parse_decimal(
            row.get("Total_Spend") or "",
            "Total_Spend",
            row_number
        )
        if spend_error:
            errors.append(spend_error)

        total_leads = self._parse_int(row.get("Total_Leads") or "", row_number, errors)

        exchange_rate: Optional[Decimal] = None
        rate_str = (row.get("Exchange_Rate") or "").strip()
        if rate_str:
            exchange_rate, rate_error = self._parse_decimal(
                rate_str,
                "Exchange_Rate",
                row_number,
                must_be_positive=True,
                places=None
            )
            if rate_error:
                errors.append(rate_error)

        if errors or entry_date is None or currency is None \
                or total_spend is None or total_leads is None:
            return None, errors

        metadata = {
            key: row[column].strip()
            for column, key in self.METADATA_COLUMNS.items()
            if (row.get(column) or "").strip()
        }

        entry = EntryInput(
            date=entry_date,
            source=source,
            total_spend=total_spend,
            total_leads=total_leads,
            currency=currency,
            exchange_rate=exchange_rate,
            store_id=(row.get("Store") or "").strip() or None,
            product_id=(row.get("Product") or "").strip() or None,
            metadata=metadata,
        )
        return entry, errors

    def _parse_date(
        self,
        value: str,
        row_number: int,
        errors: List[RowError]
    ) -> Optional[datetime]:
        """Parses a date cell in one of DATE_FORMATS."""
        value = value.strip()
        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(value, fmt)
            except ValueError:
                continue
        errors.append(RowError(
            row_number=row_number,
            field_name="Date",
            value=value,
            message="Date must look like YYYY-MM-DD"
                    if value else "Date cannot be empty"
        ))
        return None

    def _parse_int(
        self,
        value: str,
        row_number: int,
        errors: List[RowError]
    ) -> Optional[int]:
        """Parses a non-negative lead count."""
        cleaned = value.strip().replace(",", "")
        if not re.match(r"^\d+$", cleaned):
            errors.append(RowError(
                row_number=row_number,
                field_name="Total_Leads",
                value=value,
                message="Total_Leads must be a non-negative whole number "
                        f"(received: '{value}')"
            ))
            return None
        return int(cleaned)

    def _parse_decimal(
        self,
        value: str,
        field_name: str,
        row_number: int,
        must_be_positive: bool = False,
        places: Optional[str] = "0.01"
    ) -> Tuple[Optional[Decimal], Optional[RowError]]:
        """
        Parses a string value to Decimal with validation.

        Handles common spend formats:
        - "12000" (plain number)
        - "12,000" (with thousands separator)
        - "$ 120.50" / "120.50 USD"
        - "16 500 DA" / "16500 DZD"

        Args:
            value: String value to parse.
            field_name: Name of the field for error messages.
            row_number: Row number for error messages.
            must_be_positive: If True, value must be > 0.
            places: Quantum to round to, or None to keep full precision.

        Returns:
            Tuple of (Decimal value or None, RowError or None).
        """
        if value is None:
            value = ""

        original_value = value
        value = value.strip()

        if not value:
            return None, RowError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} cannot be empty"
            )

        # Comma as decimal separator, e.g. "100,50"
        if re.match(r"^\$?\s*\d+,\d{2}$", value):
            return None, RowError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} appears to use a comma as decimal separator. "
                        f"Please use a period (e.g., '100.50' not '100,50')"
            )

        cleaned = self.CURRENCY_CLEAN_PATTERN.sub("", value)

        if not re.match(r"^-?\d+\.?\d*$", cleaned):
            return None, RowError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} must be a valid number "
                        f"(received: '{original_value}')"
            )

        try:
            decimal_value = Decimal(cleaned)
        except InvalidOperation:
            return None, RowError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} must be a valid number "
                        f"(received: '{original_value}')"
            )

        if places is not None:
            decimal_value = decimal_value.quantize(
                Decimal(places),
                rounding=ROUND_HALF_EVEN
            )

        if must_be_positive and decimal_value <= ZERO:
            return None, RowError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} must be a positive number "
                        f"(received: '{original_value}')"
            )

        if decimal_value < ZERO:
            return None, RowError(
                row_number=row_number,
                field_name=field_name,
                value=original_value,
                message=f"{field_name} must be a non-negative number "
                        f"(received: '{original_value}')"
            )

        return decimal_value, None
