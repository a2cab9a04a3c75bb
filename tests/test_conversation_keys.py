from tesipedia.models.message import Message
from tesipedia.services.chat_service import (
    conversation_id_for,
    derive_conversation_id,
    generate_public_id,
    sanitize_text,
)
from tesipedia.services.identity_service import UserIdentity, VisitorIdentity, is_public_id

VISITOR = VisitorIdentity("0123456789abcdef0123456789abcdef")
ALICE = UserIdentity("usr-1f2e3d4c-5b6a-4798-8a1b-2c3d4e5f6a7b")
BOB = UserIdentity("usr-8b7f1c2e-3a4d-4e5f-8a6b-7c8d9e0f1a2b")


def test_direct_key_is_symmetric():
    assert derive_conversation_id(ALICE, BOB, False) == derive_conversation_id(BOB, ALICE, False)
    assert derive_conversation_id(ALICE, BOB, False) == f"{ALICE.id}_{BOB.id}"


def test_public_key_is_the_visitor_id_in_both_directions():
    assert derive_conversation_id(VISITOR, ALICE, True) == VISITOR.id
    assert derive_conversation_id(ALICE, VISITOR, True) == VISITOR.id


def test_explicit_key_wins():
    assert derive_conversation_id(ALICE, BOB, False, "pinned") == "pinned"
    assert derive_conversation_id(VISITOR, ALICE, True, "pinned") == "pinned"


def test_missing_party_has_no_key():
    assert derive_conversation_id(ALICE, None, False) is None


def test_stored_rows_without_key_are_derived():
    msg = Message(sender=BOB.id, receiver=ALICE.id, is_public=False)
    assert conversation_id_for(msg) == f"{ALICE.id}_{BOB.id}"

    msg.conversation_id = "kept"
    assert conversation_id_for(msg) == "kept"


def test_generated_public_ids_are_valid():
    ids = {generate_public_id() for _ in range(20)}
    assert len(ids) == 20
    assert all(is_public_id(i) for i in ids)


def test_sanitize_text_strips_markup():
    assert sanitize_text("<b>hola</b> <script>alert(1)</script>mundo") == "hola mundo"
    assert sanitize_text("<p> </p>") is None
    assert sanitize_text(None) is None
