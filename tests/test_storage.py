import json

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from foodrescue import config, ledger, main, models, reports, storage, tasks
from foodrescue.database import Base, make_engine
from foodrescue.errors import StoreUnavailable

LEGACY_DOC = {
    "users": [
        {"id": 1, "email": "a@x.com", "name": "Asha", "createdAt": "2024-11-02T10:00:00.000Z"},
        {"id": 2, "email": "c@x.com", "name": "Chen", "createdAt": "2024-11-02T10:05:00.000Z"},
    ],
    "reports": [
        {"id": 1, "userId": 1, "location": "Canteen", "wasteType": "Rice", "amount": "2 kg",
         "status": "verified", "createdAt": "2024-11-02T11:00:00.000Z", "collectorId": 2},
    ],
    "rewards": [
        {"id": 1, "userId": 1, "name": "Default Reward", "collectionInfo": "Default Collection Info",
         "points": 10, "level": 1, "isAvailable": True,
         "createdAt": "2024-11-02T11:00:00.000Z", "updatedAt": "2024-11-02T11:00:00.000Z"},
        {"id": 2, "userId": 2, "name": "Waste Collection Reward", "collectionInfo": "Points earned from waste collection",
         "points": 33, "level": 1, "isAvailable": True,
         "createdAt": "2024-11-02T12:00:00.000Z", "updatedAt": "2024-11-02T12:00:00.000Z"},
    ],
    "notifications": [
        {"id": 1, "userId": 1, "message": "You've earned 10 points for reporting waste!", "type": "reward",
         "isRead": False, "createdAt": "2024-11-02T11:00:00.000Z"},
    ],
    "transactions": [
        {"id": 1, "userId": 1, "type": "earned_report", "amount": 10, "description": "r", "date": "2024-11-02T11:00:00.000Z"},
        {"id": 2, "userId": 2, "type": "earned_collect", "amount": 33, "description": "c", "date": "2024-11-02T12:00:00.000Z"},
        {"id": 3, "userId": 2, "type": "redeemed", "amount": 0, "description": "redeemed all points: 0", "date": "2024-11-02T12:30:00.000Z"},
    ],
    "collectedWastes": [
        {"id": 1, "reportId": 1, "collectorId": 2, "collectionDate": "2024-11-02T12:00:00.000Z",
         "status": "verified", "verificationResult": {"confidence": 1}},
    ],
}


def test_load_missing_file_is_empty(tmp_path):
    assert storage.load(tmp_path / "nope.json") == storage.empty_dataset()


def test_load_malformed_file(tmp_path):
    p = tmp_path / "data.json"
    p.write_text("{not json")
    with pytest.raises(StoreUnavailable):
        storage.load(p)


def test_load_rejects_non_list_collection(tmp_path):
    p = tmp_path / "data.json"
    p.write_text(json.dumps({"users": {"id": 1}}))
    with pytest.raises(StoreUnavailable):
        storage.load(p)


def test_load_fills_missing_collections(tmp_path):
    p = tmp_path / "data.json"
    p.write_text(json.dumps({"users": [{"id": 1, "email": "a@x.com", "name": "A"}]}))
    data = storage.load(p)
    assert set(data) == set(storage.COLLECTIONS)
    assert data["transactions"] == []


def test_save_then_load(tmp_path):
    p = tmp_path / "nested" / "data.json"
    assert storage.save(LEGACY_DOC, p) is True
    assert storage.load(p) == LEGACY_DOC
    assert list(p.parent.glob("*.tmp")) == []


def test_save_to_unwritable_location(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    with pytest.raises(StoreUnavailable):
        storage.save(storage.empty_dataset(), blocker / "data.json")


def test_import_legacy_document(db):
    counts = storage.import_dataset(db, LEGACY_DOC)

    assert counts["transactions"] == 2  # the zero-amount redeem-all row is dropped
    report = reports.get_report(db, 1)
    assert report.food_type == "Rice" and report.quantity == "2 kg"
    assert report.status == models.VERIFIED
    assert ledger.balance(db, 1) == 10
    assert ledger.balance(db, 2) == 33
    assert ledger.get_or_create_account(db, 2).points == 33
    assert tasks.list_collections(db, 2)[0].report_id == 1


def test_imported_ids_do_not_collide_with_new_rows(db):
    storage.import_dataset(db, LEGACY_DOC)
    new = reports.create_report(db, 1, "Library", "Sandwiches", "12")
    assert new.id == 2


def test_export_uses_document_layout(db, user):
    reports.create_report(db, user.id, "Canteen", "Rice", "2 kg", verification_result={"confidence": 0.9})
    data = storage.export_dataset(db)

    assert set(data) == set(storage.COLLECTIONS)
    rep = data["reports"][0]
    assert rep["foodType"] == "Rice"
    assert rep["userId"] == user.id
    assert rep["status"] == "pending"
    assert rep["verificationResult"] == {"confidence": 0.9}
    assert rep["createdAt"].endswith("Z")
    assert "collectorId" not in rep
    assert data["transactions"][0]["type"] == "earned_report"
    assert data["rewards"][0]["isAccount"] is True


def test_export_import_between_databases(db, user):
    reports.create_report(db, user.id, "Canteen", "Rice", "2 kg")
    snapshot = storage.export_dataset(db)

    other = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=other)
    target = sessionmaker(bind=other, autoflush=False)()
    try:
        storage.import_dataset(target, snapshot)
        assert ledger.balance(target, user.id) == 10
        assert storage.export_dataset(target) == snapshot
    finally:
        target.close()
        other.dispose()


@pytest.mark.parametrize("doc", [
    {"users": [{"email": "a@x.com"}]},
    {"users": [{"id": 1, "email": "a@x.com", "createdAt": "yesterday"}]},
    {"users": [{"id": 1, "email": None}]},
    {"users": [{"id": 1, "email": "a@x.com"}], "transactions": [{"id": 1, "userId": 1, "type": "earned_report", "amount": "ten"}]},
    {"reports": [{"id": 1, "location": "Canteen", "foodType": "Rice"}]},
])
def test_import_rejects_malformed_records(db, doc):
    with pytest.raises(StoreUnavailable):
        storage.import_dataset(db, doc)
    assert db.query(models.User).count() == 0
    assert db.query(models.Transaction).count() == 0


def test_import_rejects_id_collisions(session_factory, user):
    doc = {"users": [{"id": user.id, "email": "other@x.com", "name": "Other"}]}
    s = session_factory()
    try:
        with pytest.raises(StoreUnavailable):
            storage.import_dataset(s, doc)
        assert [u.email for u in s.query(models.User)] == ["a@x.com"]
    finally:
        s.close()


def test_startup_survives_a_broken_seed(tmp_path, monkeypatch, engine, session_factory):
    seed = tmp_path / "seed.json"
    seed.write_text(json.dumps({"users": [{"email": "a@x.com"}]}))
    monkeypatch.setattr(config, "SEED_DATA_PATH", str(seed))
    monkeypatch.setattr(main, "engine", engine)
    monkeypatch.setattr(main, "SessionLocal", session_factory)

    main.on_startup()

    s = session_factory()
    try:
        assert s.query(models.User).count() == 0
    finally:
        s.close()
