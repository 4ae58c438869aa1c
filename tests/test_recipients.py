import pytest

from poop_backend.errors import InvalidStateError, MismatchError, NotFoundError, ValidationError
from poop_backend.services.recipients import verify_user_and_associate_gift


class TestVerifyUserAndAssociateGift:
    def test_funded_gift_becomes_verified(self, gift_store, user_store, fake_db, sender, recipient):
        gift = fake_db.add_gift(sender["id"], state="FUNDED")

        result = verify_user_and_associate_gift(gift_store, user_store, recipient["id"], gift["id"])

        assert result == {
            "success": True,
            "userId": recipient["id"],
            "poopId": gift["id"],
            "verified": True,
            "state": "VERIFIED",
        }
        row = fake_db.row("poops", gift["id"])
        assert row["state"] == "VERIFIED"
        assert row["recipient_user_id"] == recipient["id"]
        assert fake_db.row("users", recipient["id"])["verified"] is True

    def test_email_comparison_ignores_case(self, gift_store, user_store, fake_db, sender):
        user = fake_db.add_user(username="bob", address="0x3333333333333333333333333333333333333333", email="Bob@Example.com")
        gift = fake_db.add_gift(sender["id"], state="FUNDED", recipient_email="bob@example.com")

        result = verify_user_and_associate_gift(gift_store, user_store, user["id"], gift["id"])

        assert result["state"] == "VERIFIED"

    def test_email_mismatch_leaves_records_untouched(self, gift_store, user_store, fake_db, sender):
        mallory = fake_db.add_user(username="mallory", email="mallory@example.com")
        gift = fake_db.add_gift(sender["id"], state="FUNDED", recipient_email="bob@example.com")

        with pytest.raises(MismatchError):
            verify_user_and_associate_gift(gift_store, user_store, mallory["id"], gift["id"])

        assert fake_db.updates == []
        assert fake_db.row("poops", gift["id"])["state"] == "FUNDED"
        assert fake_db.row("poops", gift["id"])["recipient_user_id"] is None
        assert fake_db.row("users", mallory["id"])["verified"] is False

    @pytest.mark.parametrize("state", ["CREATED", "VERIFIED", "CLAIMED", "CANCELLED"])
    def test_requires_funded_state(self, gift_store, user_store, fake_db, sender, recipient, state):
        gift = fake_db.add_gift(sender["id"], state=state)

        with pytest.raises(InvalidStateError):
            verify_user_and_associate_gift(gift_store, user_store, recipient["id"], gift["id"])

        assert fake_db.updates == []

    def test_one_onboarding_per_identity(self, gift_store, user_store, fake_db, sender, recipient):
        fake_db.add_gift(sender["id"], state="CLAIMED", recipient_user_id=recipient["id"])
        second = fake_db.add_gift(sender["id"], state="FUNDED")

        with pytest.raises(MismatchError, match="already completed onboarding"):
            verify_user_and_associate_gift(gift_store, user_store, recipient["id"], second["id"])

        assert fake_db.row("poops", second["id"])["state"] == "FUNDED"

    def test_unknown_user(self, gift_store, user_store, fake_db, sender):
        gift = fake_db.add_gift(sender["id"], state="FUNDED")
        with pytest.raises(NotFoundError, match="User not found"):
            verify_user_and_associate_gift(gift_store, user_store, "missing-user", gift["id"])

    def test_unknown_gift(self, gift_store, user_store, recipient):
        with pytest.raises(NotFoundError, match="POOP not found"):
            verify_user_and_associate_gift(gift_store, user_store, recipient["id"], "missing-gift")

    def test_missing_ids(self, gift_store, user_store):
        with pytest.raises(ValidationError):
            verify_user_and_associate_gift(gift_store, user_store, "", "gift")
        with pytest.raises(ValidationError):
            verify_user_and_associate_gift(gift_store, user_store, "user", "")

    def test_gift_cancelled_between_check_and_write(self, gift_store, user_store, fake_db, sender, recipient):
        gift = fake_db.add_gift(sender["id"], state="FUNDED")

        def concurrent_cancel(db):
            db.row("poops", gift["id"])["state"] = "CANCELLED"

        fake_db.before_update["poops"] = concurrent_cancel
        with pytest.raises(InvalidStateError, match="CANCELLED"):
            verify_user_and_associate_gift(gift_store, user_store, recipient["id"], gift["id"])

        assert fake_db.row("poops", gift["id"])["recipient_user_id"] is None
