"""Display label and badge colour for requisition status codes."""

FALLBACK_STATUS_COLOR = "bg-gray-100 text-gray-800"

STATUS_COLORS = {
    "PENDING": "bg-yellow-100 text-yellow-800",
    "APPROVED": "bg-blue-100 text-blue-800",
    "REJECTED": "bg-red-100 text-red-800",
    "FULFILLED": "bg-green-100 text-green-800",
    "CONFIRMED": "bg-emerald-100 text-emerald-800",
    "PARTIALLY_FULFILLED": "bg-orange-100 text-orange-800",
    "CANCELLED": FALLBACK_STATUS_COLOR,
}


def get_status_color(status: str) -> str:
    return STATUS_COLORS.get(status, FALLBACK_STATUS_COLOR)


def format_status(status: str) -> str:
    """``PARTIALLY_FULFILLED`` -> ``Partially Fulfilled``."""
    return " ".join(word[:1] + word[1:].lower() for word in status.split("_"))
