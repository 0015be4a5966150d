"""Helpers for Kubernetes resource quantities"""

from typing import Dict, Optional

from kubernetes.utils import parse_quantity

from kubewit.core.errors import MalformedResponseError


def quantity_to_float(quantity: Optional[str]) -> float:
    """Convert a quantity string such as "500m" or "1Gi" to a float

    Floating point gives enough precision for quota and limit display.
    A missing quantity counts as zero.

    Args:
        quantity: Quantity string, or None

    Returns:
        The quantity in base units (cores, bytes)

    Raises:
        MalformedResponseError: If the string is not a valid quantity
    """
    if quantity is None or quantity == "":
        return 0.0
    try:
        return float(parse_quantity(quantity))
    except (ValueError, TypeError) as e:
        raise MalformedResponseError(f"invalid resource quantity {quantity!r}") from e


def resource_to_float(resources: Dict[str, str], name: str) -> float:
    """Look up a named quantity in a resource map and convert it"""
    return quantity_to_float(resources.get(name))
