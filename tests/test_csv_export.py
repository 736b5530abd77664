"""
Tests for the CSV download format.
"""

from conftest import make_review

from review_hub.storage.csv_export import (
    export_filename,
    quote_field,
    reviews_to_csv,
    save_reviews_csv,
)


def test_header_and_row_layout():
    review = make_review(
        "as-1", rating=4, user_name="Ann", text="Nice app",
        date="2024-01-05T00:00:00Z", region="US", version="2.0",
    )

    csv = reviews_to_csv([review])

    assert csv == (
        "ID,User,Rating,Date,Store,Region,Version,Review\n"
        'as-1,"Ann",4,2024-01-05T00:00:00Z,app-store,US,2.0,"Nice app"\n'
    )


def test_quotes_are_doubled():
    assert quote_field('say "hi"') == '"say ""hi"""'


def test_user_and_text_are_escaped_in_rows():
    review = make_review("x", user_name='The "Pro"', text='He said "meh", then left')

    row = reviews_to_csv([review]).splitlines()[1]

    assert '"The ""Pro"""' in row
    assert row.endswith('"He said ""meh"", then left"')


def test_empty_export_is_header_only():
    assert reviews_to_csv([]) == "ID,User,Rating,Date,Store,Region,Version,Review\n"


def test_export_filename_replaces_whitespace():
    assert export_filename("My  Great\tApp") == "My_Great_App_reviews.csv"


def test_save_writes_file(tmp_path):
    path = save_reviews_csv([make_review("a")], filename="out.csv", output_dir=tmp_path)

    assert path == tmp_path / "out.csv"
    assert path.read_text(encoding="utf-8").startswith("ID,User,Rating")
