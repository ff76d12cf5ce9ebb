"""
SpendWatch DZD - Currency Normalisation Module.

Converts spend amounts between USD and DZD. All arithmetic uses Decimal.

Algerian Market Context:
    - Platforms bill in USD, budgets are held in DZD
    - The USD to DZD rate is captured per entry when the buyer knows it
    - A single configured default rate covers amounts without a rate

Classes:
    CurrencyNormalizer: Converts amounts into a (DZD, USD) pair.
"""

from decimal import Decimal
from typing import Optional, Union

from spendwatch.schema import ZERO, Currency, NormalisedAmount


def as_currency(value: Union[str, Currency]) -> Currency:
    """
    Coerces a currency code into a Currency.

    Raises:
        ValueError: If the code is not USD or DZD.
    """
    if isinstance(value, Currency):
        return value
    return Currency(str(value).strip().upper())


def compute_spend_in_dzd(
    total_spend: Decimal,
    currency: Currency,
    exchange_rate: Optional[Decimal] = None
) -> Optional[Decimal]:
    """
    Derives the stored DZD spend of an entry.

    DZD spend is taken as-is. USD spend is multiplied by the entry's own
    rate. USD spend without a rate stays underived (None). The default
    rate is never applied here.

    Args:
        total_spend: Spend in entry currency.
        currency: Entry currency.
        exchange_rate: Optional USD to DZD rate.

    Returns:
        DZD spend, or None when it cannot be derived.
    """
    if currency == Currency.DZD:
        return total_spend
    if exchange_rate:
        return total_spend * exchange_rate
    return None


class CurrencyNormalizer:
    """
    Converts an amount into both DZD and USD.

    When no rate is supplied the normalizer uses its default rate. A
    normalizer built without a default passes the amount through
    unconverted, treating it as already expressed in the other currency.

    Example:
        >>> normalizer = CurrencyNormalizer(Decimal("140"))
        >>> normalizer.normalise(Decimal("10"), Currency.USD)
        NormalisedAmount(dzd=Decimal('1400'), usd=Decimal('10'))
    """

    def __init__(self, default_rate: Optional[Decimal] = None):
        """
        Initialises the CurrencyNormalizer.

        Args:
            default_rate: USD to DZD rate used when none is supplied.
        """
        if default_rate is not None and default_rate <= ZERO:
            raise ValueError("Default exchange rate must be positive")
        self._default_rate = default_rate

    @property
    def default_rate(self) -> Optional[Decimal]:
        return self._default_rate

    def resolve_rate(self, exchange_rate: Optional[Decimal]) -> Optional[Decimal]:
        """Returns the supplied rate if usable, else the default rate."""
        if exchange_rate:
            return exchange_rate
        return self._default_rate

    def normalise(
        self,
        amount: Optional[Decimal],
        currency: Union[str, Currency],
        exchange_rate: Optional[Decimal] = None
    ) -> NormalisedAmount:
        """
        Expresses an amount in DZD and USD.

        Args:
            amount: Amount in ``currency``. None counts as zero.
            currency: Currency of the amount.
            exchange_rate: Optional USD to DZD rate.

        Returns:
            NormalisedAmount with dzd and usd values.
        """
        amount = amount if amount is not None else ZERO
        currency = as_currency(currency)
        rate = self.resolve_rate(exchange_rate)

        if currency == Currency.DZD:
            usd = amount / rate if rate else amount
            return NormalisedAmount(dzd=amount, usd=usd)

        dzd = amount * rate if rate else amount
        return NormalisedAmount(dzd=dzd, usd=amount)

    def to_dzd(
        self,
        amount: Optional[Decimal],
        currency: Union[str, Currency],
        exchange_rate: Optional[Decimal] = None
    ) -> Decimal:
        """Shortcut for the DZD side of :meth:`normalise`."""
        return self.normalise(amount, currency, exchange_rate).dzd

    def to_usd(
        self,
        amount: Optional[Decimal],
        currency: Union[str, Currency],
        exchange_rate: Optional[Decimal] = None
    ) -> Decimal:
        """Shortcut for the USD side of :meth:`normalise`."""
        return self.normalise(amount, currency, exchange_rate).usd
