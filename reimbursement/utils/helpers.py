"""
Helper Utilities
Common helper functions
"""

from typing import Optional


def format_currency(amount: float, currency: str = "USD") -> str:
    """
    Format amount as currency

    Args:
        amount: Amount to format
        currency: Currency code

    Returns:
        str: Formatted currency string
    """
    symbols = {"USD": "$", "EUR": "€", "GBP": "£", "INR": "₹"}
    symbol = symbols.get(currency.upper())
    if symbol:
        return f"{symbol}{amount:,.2f}"
    return f"{currency.upper()} {amount:,.2f}"


def round_money(amount: float) -> float:
    """Round a monetary amount to cents"""
    return round(float(amount), 2)


def normalize_currency_code(code: Optional[str]) -> Optional[str]:
    """
    Normalize an ISO-4217 currency code

    Returns:
        str: Upper-cased code, or None when it is not three letters
    """
    if not isinstance(code, str) or not code:
        return None
    code = code.strip().upper()
    if len(code) != 3 or not code.isalpha():
        return None
    return code


def get_client_ip(request) -> str:
    """
    Get client IP address from request

    Args:
        request: FastAPI request object

    Returns:
        str: Client IP address
    """
    # Prefer the original client behind a proxy
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
