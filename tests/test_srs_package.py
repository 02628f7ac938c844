"""Tests for the universal SRS package model."""

import uuid

import pytest

from apkg_srs.universal import (
    BASIC_AND_REVERSE_NOTE_TYPE,
    BASIC_NOTE_TYPE,
    CLOZE_NOTE_TYPE,
    SrsNoteField,
    SrsNoteTemplate,
    SrsPackage,
    create_card,
    create_complete_deck_structure,
    create_deck,
    create_note,
    create_note_type,
    create_review,
    extract_timestamp_from_uuid,
    generate_uuid,
    is_cloze_note_type,
)


@pytest.fixture
def package():
    pkg = SrsPackage()
    deck = create_deck("Deck")
    pkg.add_deck(deck)
    pkg.add_note_type(BASIC_AND_REVERSE_NOTE_TYPE)
    note = create_note(BASIC_AND_REVERSE_NOTE_TYPE, deck.id, [("Front", "f"), ("Back", "b")])
    pkg.add_note(note)
    card = create_card(note.id, 0)
    pkg.add_card(card)
    pkg.add_review(create_review(card.id, 1700000000000, 3))
    return pkg


class TestIds:
    def test_generated_ids_are_version_7(self):
        value = uuid.UUID(generate_uuid())
        assert value.version == 7

    def test_timestamp_prefix(self):
        assert extract_timestamp_from_uuid("018bcfe5-6800-7000-8000-000000000000") == 1700000000000

    def test_generated_id_carries_current_time(self):
        first = extract_timestamp_from_uuid(generate_uuid())
        assert first > 1700000000000

    def test_invalid_uuid(self):
        with pytest.raises(ValueError):
            extract_timestamp_from_uuid("not-a-uuid")


class TestFactories:
    def test_create_note_requires_exact_fields(self):
        with pytest.raises(ValueError, match="do not match"):
            create_note(BASIC_NOTE_TYPE, "deck", [("Question", "q")])
        with pytest.raises(ValueError):
            create_note(BASIC_NOTE_TYPE, "deck", [("Question", "q"), ("Answer", "a"), ("Extra", "")])
        with pytest.raises(ValueError):
            create_note(BASIC_NOTE_TYPE, "deck", [("Question", "q"), ("Question", "a")])

    def test_create_note_accepts_any_order(self):
        note = create_note(BASIC_NOTE_TYPE, "deck", [("Answer", "a"), ("Question", "q")])
        assert note.get_field("Question") == "q"
        assert note.get_field("Missing") is None

    def test_create_note_type(self):
        note_type = create_note_type(
            "Custom",
            [SrsNoteField(0, "One"), SrsNoteField(1, "Two")],
            [SrsNoteTemplate(0, "Card", "{{One}}", "{{Two}}")],
        )
        assert note_type.field_names == ["One", "Two"]
        assert not is_cloze_note_type(note_type)

    def test_cloze_detection(self):
        assert is_cloze_note_type(CLOZE_NOTE_TYPE)
        assert not is_cloze_note_type(BASIC_AND_REVERSE_NOTE_TYPE)

    def test_explicit_ids_are_kept(self):
        assert create_deck("D", id="fixed").id == "fixed"
        assert create_card("n", 0, id="c").id == "c"
        assert create_review("c", 1, 1, id="r").id == "r"


class TestPackage:
    def test_add_note_checks_references(self, package):
        deck = package.get_decks()[0]
        orphan = create_note(BASIC_NOTE_TYPE, deck.id, [("Question", "q"), ("Answer", "a")])
        with pytest.raises(ValueError, match="Note type"):
            package.add_note(orphan)

        package.add_note_type(BASIC_NOTE_TYPE)
        lost = create_note(BASIC_NOTE_TYPE, "elsewhere", [("Question", "q"), ("Answer", "a")])
        with pytest.raises(ValueError, match="Deck elsewhere does not exist"):
            package.add_note(lost)

    def test_add_card_checks_note_and_template(self, package):
        note = package.get_notes()[0]
        with pytest.raises(ValueError, match="does not exist"):
            package.add_card(create_card("missing", 0))
        with pytest.raises(ValueError, match="Invalid template ID 2"):
            package.add_card(create_card(note.id, 2))
        package.add_card(create_card(note.id, 1))
        assert len(package.get_cards()) == 2

    def test_cloze_cards_skip_template_range(self, package):
        deck = package.get_decks()[0]
        package.add_note_type(CLOZE_NOTE_TYPE)
        note = create_note(CLOZE_NOTE_TYPE, deck.id, [("Text", "{{c4::x}}")])
        package.add_note(note)
        package.add_card(create_card(note.id, 3))
        assert package.get_cards()[-1].template_id == 3

    def test_remove_note_cascades(self, package):
        note = package.get_notes()[0]
        package.remove_note(note.id)
        assert package.get_notes() == []
        assert package.get_cards() == []
        assert package.get_reviews() == []

    def test_remove_card_cascades(self, package):
        package.remove_card(package.get_cards()[0].id)
        assert package.get_reviews() == []
        assert len(package.get_notes()) == 1

    def test_remove_unused(self, package):
        package.add_deck(create_deck("Empty"))
        package.add_note_type(BASIC_NOTE_TYPE)
        deck = package.get_decks()[0]
        package.add_note(create_note(BASIC_AND_REVERSE_NOTE_TYPE, deck.id, [("Front", "x"), ("Back", "y")]))

        package.remove_unused()
        assert [d.name for d in package.get_decks()] == ["Deck"]
        assert package.get_note_types() == [BASIC_AND_REVERSE_NOTE_TYPE]
        assert len(package.get_notes()) == 1

    def test_copy_is_independent(self, package):
        clone = package.copy()
        clone.remove_note(package.get_notes()[0].id)
        assert len(package.get_notes()) == 1
        assert len(package.get_cards()) == 1
        assert "notes=1" in repr(package)

    def test_getters_return_copies(self, package):
        package.get_decks().clear()
        assert len(package.get_decks()) == 1


def test_complete_deck_structure():
    package = create_complete_deck_structure(
        "Languages",
        [
            (
                BASIC_AND_REVERSE_NOTE_TYPE,
                [
                    {
                        "field_values": [("Front", "hola"), ("Back", "hello")],
                        "cards": [
                            {"template_id": 0, "reviews": [{"timestamp": 1, "score": 4}]},
                            {"template_id": 1},
                        ],
                    }
                ],
            ),
            (CLOZE_NOTE_TYPE, [{"field_values": [("Text", "{{c1::adios}}")]}]),
        ],
        deck_description="Spanish",
    )
    (deck,) = package.get_decks()
    assert (deck.name, deck.description) == ("Languages", "Spanish")
    assert len(package.get_note_types()) == 2
    assert all(n.deck_id == deck.id for n in package.get_notes())
    assert len(package.get_cards()) == 2
    assert [r.score for r in package.get_reviews()] == [4]
