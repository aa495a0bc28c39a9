from typing import Iterable, List, Optional, Sequence


class InvariantError(Exception):
    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(message)


class NotFoundError(InvariantError):
    pass


# ===========================
# WRITE-BOUNDARY CHECKS
# ===========================

def validate_order_index(order: Optional[int], what: str = "order") -> Optional[int]:
    if order is None:
        return None
    if isinstance(order, bool) or not isinstance(order, int):
        raise InvariantError("INVALID_ORDER", f"{what} must be an integer, got {order!r}")
    if order < 0:
        raise InvariantError("NEGATIVE_ORDER", f"{what} must be >= 0, got {order}")
    return order


def validate_text(text: Optional[str], what: str = "text") -> str:
    if text is None or not str(text).strip():
        raise InvariantError("EMPTY_TEXT", f"{what} must not be empty")
    return str(text).strip()


def validate_permutation(ordered_ids: Sequence[str], current_ids: Iterable[str], what: str = "items") -> List[str]:
    """
    A reorder must name every current member exactly once.
    Partial or duplicated orderings are rejected instead of being patched up.
    """
    ordered = list(ordered_ids)
    current = list(current_ids)
    if len(set(ordered)) != len(ordered):
        raise InvariantError("DUPLICATE_IDS", f"{what} ordering contains duplicate ids")
    if set(ordered) != set(current):
        missing = sorted(set(current) - set(ordered))
        unknown = sorted(set(ordered) - set(current))
        raise InvariantError(
            "NOT_A_PERMUTATION",
            f"{what} ordering must list every member exactly once (missing={missing}, unknown={unknown})",
        )
    return ordered
