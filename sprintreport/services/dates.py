"""Report date rendering shared by the tracker adapter and the page builder."""

from datetime import datetime
from typing import Optional

MONTHS = {
    "en": [
        "January", "February", "March", "April", "May", "June",
        "July", "August", "September", "October", "November", "December",
    ],
    # Genitive forms, as used in dates
    "ru": [
        "января", "февраля", "марта", "апреля", "мая", "июня",
        "июля", "августа", "сентября", "октября", "ноября", "декабря",
    ],
}


def format_report_date(value: Optional[str], language: str = "en") -> Optional[str]:
    """
    Render an ISO timestamp as a human date in the report language.

    Unparseable values are returned unchanged.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value

    month = MONTHS.get(language, MONTHS["en"])[parsed.month - 1]
    if language == "ru":
        return f"{parsed.day} {month} {parsed.year} г."
    return f"{month} {parsed.day}, {parsed.year}"
