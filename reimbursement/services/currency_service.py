"""
Currency Service
Converts amounts between currencies using the exchangerate-api rates endpoint
"""

import requests

from reimbursement.config.settings import settings
from reimbursement.utils.exceptions import ConversionUnavailable
from reimbursement.utils.helpers import round_money, normalize_currency_code
from reimbursement.utils.logger import setup_logger

logger = setup_logger()


class CurrencyService:
    """Service for currency conversion"""

    def __init__(self, api_url: str = None, timeout: float = None):
        self.api_url = (api_url or settings.CURRENCY_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.CURRENCY_API_TIMEOUT_SECONDS

    def fetch_rate(self, from_currency: str, to_currency: str) -> float:
        """
        Fetch the exchange rate from one currency to another

        Raises:
            ConversionUnavailable: transport error, timeout, bad payload or missing rate
        """
        url = f"{self.api_url}/{from_currency}"
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise ConversionUnavailable(from_currency, to_currency, str(e)) from e
        except ValueError as e:
            raise ConversionUnavailable(from_currency, to_currency, "malformed response") from e

        rates = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(rates, dict):
            raise ConversionUnavailable(from_currency, to_currency, "response carries no rates")

        rate = rates.get(to_currency)
        if not isinstance(rate, (int, float)) or isinstance(rate, bool) or rate <= 0:
            raise ConversionUnavailable(from_currency, to_currency, "rate not available")

        return float(rate)

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        """
        Convert an amount between currencies

        Args:
            amount: Amount in from_currency
            from_currency: ISO-4217 source code
            to_currency: ISO-4217 target code

        Returns:
            float: Converted amount rounded to cents

        Raises:
            ConversionUnavailable: when no rate can be obtained
        """
        source = normalize_currency_code(from_currency)
        target = normalize_currency_code(to_currency)
        if source is None or target is None:
            raise ConversionUnavailable(str(from_currency), str(to_currency), "invalid currency code")

        if source == target:
            return round_money(amount)

        rate = self.fetch_rate(source, target)
        converted = round_money(amount * rate)
        logger.debug(f"Converted {amount} {source} -> {converted} {target} at rate {rate}")
        return converted


# Create singleton instance
currency_service = CurrencyService()
