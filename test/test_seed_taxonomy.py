"""
Default taxonomy seeding.
"""
from database.models import ComplaintCategory, ComplaintStatus
from scripts.seed_taxonomy import seed_taxonomy, DEFAULT_CATEGORIES, DEFAULT_STATUSES


def test_seed_is_idempotent(db):
    db.add(ComplaintCategory(name="Other", description="Custom wording"))
    db.commit()

    first = seed_taxonomy(db)
    second = seed_taxonomy(db)

    assert first == (len(DEFAULT_CATEGORIES) - 1, len(DEFAULT_STATUSES))
    assert second == (0, 0)
    assert db.query(ComplaintCategory).filter(ComplaintCategory.name == "Other").one().description == "Custom wording"
    assert db.query(ComplaintStatus).filter(ComplaintStatus.name == "Resolved").one().color == "#2ecc71"
