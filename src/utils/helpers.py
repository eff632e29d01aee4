"""
Helper Utilities
Common helper functions
"""

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder

from src.config.settings import settings


def format_currency(amount: float, symbol: Optional[str] = None) -> str:
    """
    Format amount as currency

    Args:
        amount: Amount to format
        symbol: Currency symbol, defaults to the configured one

    Returns:
        str: Formatted currency string
    """
    return f"{symbol if symbol is not None else settings.CURRENCY_SYMBOL}{amount:,.2f}"


def get_client_ip(request) -> str:
    """
    Get client IP address from request

    Args:
        request: FastAPI request object

    Returns:
        str: Client IP address
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


def success_response(data: Any = None, message: Optional[str] = None) -> dict:
    """Wrap a payload in the standard success envelope"""
    return {
        "success": True,
        "data": jsonable_encoder(data),
        "message": message
    }
