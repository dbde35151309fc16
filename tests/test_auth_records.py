from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.legacy_secret import LegacyTotpSecret
from models.two_factor_auth import TwoFactorAuth, AuthMethod
from security import auth_records, totp


def _legacy(user_id, secret):
    db.session.add(LegacyTotpSecret(user_id=user_id, secret=secret))
    db.session.commit()


def test_upsert_inserts_then_updates(ctx, make_user):
    user_id = make_user()

    auth_records.upsert(user_id, AuthMethod.APP, "aa" * 10)
    db.session.commit()
    record = auth_records.get_record(user_id)
    assert record.auth_method == AuthMethod.APP
    assert record.recovery_codes is None
    assert not auth_records.has_recovery(user_id)

    record.recovery_codes = ["hash"]
    db.session.commit()

    auth_records.upsert(user_id, AuthMethod.EMAIL, "bb" * 10)
    db.session.commit()
    record = auth_records.get_record(user_id)
    assert record.method == AuthMethod.EMAIL
    assert record.secret == "bb" * 10
    assert record.recovery_codes == ["hash"]
    assert TwoFactorAuth.query.count() == 1


def test_missing_record(ctx, make_user):
    user_id = make_user()
    assert auth_records.get_record(user_id) is None
    assert not auth_records.has_recovery(user_id)


def test_repair_moves_legacy_secret(ctx, make_user):
    user_id = make_user()
    _legacy(user_id, "MZXW6YTBOI======")

    record = auth_records.repair_migration_gaps(user_id)

    assert record is not None
    assert record.secret == b"foobar".hex()
    assert record.auth_method == AuthMethod.APP
    assert record.recovery_codes is None
    assert LegacyTotpSecret.query.filter_by(user_id=user_id).count() == 0


def test_repair_keeps_existing_record(ctx, make_user):
    user_id = make_user()
    auth_records.upsert(user_id, AuthMethod.EMAIL, "cc" * 10)
    db.session.commit()
    _legacy(user_id, "MZXW6YTBOI======")

    record = auth_records.repair_migration_gaps(user_id)
    assert record.secret == "cc" * 10
    assert LegacyTotpSecret.query.count() == 1


def test_repair_with_nothing_to_move(ctx, make_user):
    assert auth_records.repair_migration_gaps(make_user()) is None


def test_repair_rejects_undecodable_secret(ctx, make_user):
    user_id = make_user()
    _legacy(user_id, "NOT-BASE32!")

    assert auth_records.repair_migration_gaps(user_id) is None
    assert auth_records.get_record(user_id) is None
    assert LegacyTotpSecret.query.filter_by(user_id=user_id).count() == 1


def test_repair_rolls_back_on_storage_error(ctx, make_user, monkeypatch):
    user_id = make_user()
    _legacy(user_id, "MZXW6YTBOI======")

    def boom():
        raise SQLAlchemyError("lost connection")

    monkeypatch.setattr(db.session, "commit", boom)
    assert auth_records.repair_migration_gaps(user_id) is None
    monkeypatch.undo()

    assert auth_records.get_record(user_id) is None
    assert LegacyTotpSecret.query.filter_by(user_id=user_id).count() == 1


def test_migrated_secret_verifies_codes(ctx, make_user):
    user_id = make_user()
    secret = totp.generate_secret()
    _legacy(user_id, secret["base32"])

    record = auth_records.repair_migration_gaps(user_id)
    code = totp.hotp(secret["raw"], totp.time_slice(30))
    assert totp.verify_code(record.secret, code, 30)


def test_bulk_migration(ctx, make_user):
    migrated_a = make_user("a@example.com")
    migrated_b = make_user("b@example.com")
    already = make_user("c@example.com")
    broken = make_user("d@example.com")

    auth_records.upsert(already, AuthMethod.EMAIL, "dd" * 10)
    db.session.commit()
    _legacy(migrated_a, "MZXW6YTBOI======")
    _legacy(migrated_b, "MZXW6YQ=")
    _legacy(already, "MZXW6YTBOI======")
    _legacy(broken, "M1")

    assert auth_records.migrate_legacy_secrets(batch_size=2) == 2

    assert auth_records.get_record(migrated_a).secret == b"foobar".hex()
    assert auth_records.get_record(migrated_b).secret == b"foob".hex()
    assert auth_records.get_record(already).secret == "dd" * 10
    assert auth_records.get_record(broken) is None
    remaining = {row.user_id for row in LegacyTotpSecret.query.all()}
    assert remaining == {already, broken}
