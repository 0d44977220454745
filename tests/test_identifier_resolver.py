import pytest

from app.services.identifier_resolver import IdentifierKind, IdentifierResolver, normalize_phone


def test_normalize_phone():
    assert normalize_phone("whatsapp:+584121234567") == "+584121234567"
    assert normalize_phone("58 (412) 123-4567") == "+584121234567"
    assert normalize_phone("not-a-phone") is None
    assert normalize_phone("") is None


def test_resolves_by_document_id(session, make_client):
    client = make_client()
    resolved = IdentifierResolver(session).resolve(str(client.id))
    assert resolved.kind == IdentifierKind.DOC_ID
    assert resolved.client.id == client.id


def test_resolves_by_uid(session, make_client):
    client = make_client(uid="firebase-uid-1")
    resolved = IdentifierResolver(session).resolve("firebase-uid-1")
    assert resolved.kind == IdentifierKind.EXTERNAL_UID
    assert resolved.canonical_id == str(client.id)


def test_resolves_by_phone(session, make_client):
    client = make_client(phone="+584121234567")
    resolved = IdentifierResolver(session).resolve("whatsapp:+584121234567")
    assert resolved.kind == IdentifierKind.PHONE_NUMBER
    assert resolved.client.id == client.id


def test_uid_takes_precedence_over_phone(session, make_client):
    by_phone = make_client(phone="+584121234567")
    by_uid = make_client(phone="+584129999999", uid="+584121234567")
    resolved = IdentifierResolver(session).resolve("+584121234567")
    assert resolved.kind == IdentifierKind.EXTERNAL_UID
    assert resolved.client.id == by_uid.id
    assert resolved.client.id != by_phone.id


def test_unknown_phone_resolves_without_client(session):
    resolved = IdentifierResolver(session).resolve("+584120000000")
    assert resolved.client is None
    assert resolved.canonical_id == "+584120000000"
    with pytest.raises(FileNotFoundError):
        IdentifierResolver(session).resolve_client("+584120000000")


@pytest.mark.parametrize("identifier", ["", "   ", "nobody"])
def test_unmatched_identifier_raises(session, identifier):
    with pytest.raises(FileNotFoundError):
        IdentifierResolver(session).resolve(identifier)
