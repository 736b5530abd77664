"""
CSV export of review lists.

Produces the dashboard's download format:

    ID,User,Rating,Date,Store,Region,Version,Review

The User and Review fields are always quoted with embedded double quotes
doubled; the other fields are written as-is.
"""

from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from review_hub.config.settings import CSV_HEADERS, DATA_DIR
from review_hub.models.review import Review
from review_hub.utils.logger import get_logger

logger = get_logger("storage")


def quote_field(value: str) -> str:
    return '"' + (value or "").replace('"', '""') + '"'


def review_to_csv_line(review: Review) -> str:
    review_id, user, rating, date, store, region, version, text = review.to_csv_row()
    return ",".join([
        str(review_id),
        quote_field(user),
        str(rating),
        str(date),
        str(store),
        str(region),
        str(version),
        quote_field(text),
    ])


def reviews_to_csv(reviews: Iterable[Review]) -> str:
    """Render reviews as CSV text, header included, one line per review."""
    lines = [",".join(CSV_HEADERS)]
    lines.extend(review_to_csv_line(review) for review in reviews)
    return "\n".join(lines) + "\n"


def export_filename(app_name: str) -> str:
    """Download name for an app's export, whitespace runs become '_'."""
    return "_".join(app_name.split()) + "_reviews.csv"


def save_reviews_csv(
    reviews: Iterable[Review],
    filename: Optional[str] = None,
    output_dir: Optional[Path] = None
) -> Path:
    """
    Save reviews to a CSV file.

    Args:
        reviews: Reviews to save
        filename: Output filename (default: auto-generated)
        output_dir: Directory for the file (default: DATA_DIR)

    Returns:
        Path to the saved file
    """
    output_dir = Path(output_dir) if output_dir else DATA_DIR
    output_dir.mkdir(parents=True, exist_ok=True)

    if filename is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"reviews_{timestamp}.csv"

    filepath = output_dir / filename
    reviews = list(reviews)
    content = reviews_to_csv(reviews)

    with open(filepath, 'w', encoding='utf-8', newline='') as f:
        f.write(content)

    logger.info(f"Saved {len(reviews)} reviews to {filepath}")
    return filepath
