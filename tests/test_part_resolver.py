"""
Tests for part resolution by id, number and name
"""
import pytest
from sqlalchemy.orm import Session

from evdms.core.exceptions import UnresolvablePartError, ValidationError
from evdms.services.inventory.part_resolver import (
    RESOLVERS, PartReference, by_id, by_name_exact, by_name_substring,
    by_number, by_number_and_name, resolve_part
)


@pytest.fixture
def catalogue(make_part):
    return {
        "pad": make_part(part_name="Brake Pad Set", part_number="BP-100"),
        "disc": make_part(part_name="Brake Disc", part_number="BD-200"),
        "coolant": make_part(part_name="Battery Coolant", part_number="BC-220", category="Battery"),
    }


class TestPartResolver:
    """Test suite for the resolver chain"""

    def test_chain_order(self):
        """Id first, then joint number+name, number, exact name, name substring"""
        assert RESOLVERS == [by_id, by_number_and_name, by_number, by_name_exact, by_name_substring]

    def test_resolve_by_id(self, db_session: Session, catalogue):
        """Exact id match"""
        part = resolve_part(db_session, PartReference(part_id=catalogue["disc"].id))
        assert part.id == catalogue["disc"].id

    def test_stale_id_falls_back_to_number_and_name(self, db_session: Session, catalogue):
        """An id contradicted by the supplied number and name is not trusted"""
        ref = PartReference(part_id=catalogue["pad"].id, part_number="BC-220", part_name="Battery Coolant")

        part = resolve_part(db_session, ref)

        assert part.id == catalogue["coolant"].id

    def test_number_only_is_case_insensitive_and_trimmed(self, db_session: Session, catalogue):
        """Part numbers compare without case or surrounding space"""
        part = resolve_part(db_session, PartReference(part_number="  bd-200 "))
        assert part.id == catalogue["disc"].id

    def test_name_exact(self, db_session: Session, catalogue):
        """Exact name wins over substring candidates"""
        part = resolve_part(db_session, PartReference(part_name="brake disc"))
        assert part.id == catalogue["disc"].id

    def test_name_substring(self, db_session: Session, catalogue):
        """Substring of a name is the last resort"""
        part = resolve_part(db_session, PartReference(part_name="coolant"))
        assert part.id == catalogue["coolant"].id

    def test_name_wildcards_match_literally(self, db_session: Session, catalogue, make_part):
        """Underscore and percent in a name are not LIKE wildcards"""
        tie = make_part(part_name="Cable_Tie Pack", part_number="CT-10")

        assert resolve_part(db_session, PartReference(part_name="cable_tie")).id == tie.id
        for name in ("brake_pad", "%"):
            with pytest.raises(UnresolvablePartError):
                resolve_part(db_session, PartReference(part_name=name))

    def test_number_and_name_must_agree(self, db_session: Session, catalogue):
        """When both are given, a part matching only one of them is not accepted"""
        ref = PartReference(part_number="BP-100", part_name="Brake Disc")

        with pytest.raises(UnresolvablePartError):
            resolve_part(db_session, ref)

    def test_unresolvable_carries_suggestions(self, db_session: Session, catalogue):
        """No match reports similar parts by shared words"""
        with pytest.raises(UnresolvablePartError) as exc_info:
            resolve_part(db_session, PartReference(part_name="Brake Shoe"))

        error = exc_info.value
        assert error.suggestions == ["Brake Disc (BD-200)", "Brake Pad Set (BP-100)"]
        assert "Brake Disc" in error.message
        assert error.context["identifier"] == "name=Brake Shoe"

    def test_unknown_id_without_other_identifiers(self, db_session: Session, catalogue):
        """A bare unknown id cannot be resolved"""
        with pytest.raises(UnresolvablePartError) as exc_info:
            resolve_part(db_session, PartReference(part_id=9999))
        assert exc_info.value.suggestions == []

    def test_empty_reference_rejected(self, db_session: Session):
        """A line must identify its part somehow"""
        with pytest.raises(ValidationError):
            resolve_part(db_session, PartReference(part_name="   "))
