"""
Tests for the recipient set: confirmation triggers, de-duplication and
submit-time validation.
"""

from mail_relay.recipients import Recipient, RecipientSet, RejectedReason


class TestAdd:

    def test_valid_address_added(self):
        recipients = RecipientSet()
        result = recipients.add("a@x.com")

        assert result.ok
        assert result.recipient == Recipient("a@x.com")
        assert recipients.emails() == ["a@x.com"]

    def test_invalid_syntax_rejected(self):
        recipients = RecipientSet()
        result = recipients.add("not-an-email")

        assert result.reason is RejectedReason.INVALID_SYNTAX
        assert len(recipients) == 0
        assert recipients.error == "Invalid email address: not-an-email"

    def test_duplicate_rejected_case_insensitive(self):
        recipients = RecipientSet()
        recipients.add("a@x.com")
        result = recipients.add("A@X.com")

        assert result.reason is RejectedReason.DUPLICATE
        assert recipients.emails() == ["a@x.com"]

    def test_duplicate_rejection_is_idempotent(self):
        recipients = RecipientSet()
        recipients.add("a@x.com")
        for _ in range(3):
            assert recipients.add("a@x.com").reason is RejectedReason.DUPLICATE
        assert len(recipients) == 1

    def test_success_clears_previous_error(self):
        recipients = RecipientSet()
        recipients.add("bad")
        assert recipients.error
        recipients.add("good@x.com")
        assert recipients.error is None

    def test_display_name_kept(self):
        recipients = RecipientSet()
        recipients.add("dana@x.com", "Dana")
        assert list(recipients)[0].label() == "Dana <dana@x.com>"


class TestConfirmationTriggers:

    def test_scenario_duplicates_and_delimiters(self):
        recipients = RecipientSet()

        recipients.add("a@x.com")
        recipients.handle_input("a@x.com,")
        recipients.handle_input("b@x.com ")

        assert recipients.emails() == ["a@x.com", "b@x.com"]

    def test_delimiter_consumed_and_buffer_cleared(self):
        recipients = RecipientSet()
        buffer, result = recipients.handle_input("c@x.com,")

        assert buffer == ""
        assert result.ok

    def test_comma_then_space_confirms(self):
        recipients = RecipientSet()
        buffer, result = recipients.handle_input("a@x.com, ")

        assert buffer == ""
        assert result.ok
        assert recipients.emails() == ["a@x.com"]

    def test_rejected_token_stays_in_buffer(self):
        recipients = RecipientSet()
        buffer, result = recipients.handle_input("oops,")

        assert buffer == "oops"
        assert result.reason is RejectedReason.INVALID_SYNTAX
        assert len(recipients) == 0

    def test_partial_input_does_not_confirm(self):
        recipients = RecipientSet()
        buffer, result = recipients.handle_input("c@x")

        assert buffer == "c@x"
        assert result is None

    def test_enter_adds_valid_buffer(self):
        recipients = RecipientSet()
        buffer, result = recipients.handle_enter(" d@x.com ")

        assert buffer == ""
        assert result.ok
        assert "d@x.com" in recipients

    def test_enter_ignores_invalid_buffer(self):
        recipients = RecipientSet()
        buffer, result = recipients.handle_enter("d@x")

        assert buffer == "d@x"
        assert result is None
        assert recipients.error is None

    def test_select_suggestion_uses_add_rules(self):
        recipients = RecipientSet()
        recipients.add("e@x.com")

        result = recipients.select_suggestion(Recipient("e@x.com", "Eve"))

        assert result.reason is RejectedReason.DUPLICATE


class TestQueryCallback:

    def test_buffer_changes_reported(self):
        queries = []
        recipients = RecipientSet(on_query=queries.append)

        recipients.handle_input("f")
        recipients.handle_input("fo")
        recipients.handle_input("fo@x.com,")

        assert queries == ["f", "fo", ""]


class TestRemoveAndValidate:

    def test_remove(self):
        recipients = RecipientSet()
        recipients.add("a@x.com")
        recipients.add("b@x.com")

        recipients.remove("A@x.com")

        assert recipients.emails() == ["b@x.com"]
        assert recipients.to_field() == "b@x.com"

    def test_remove_missing_is_noop(self):
        recipients = RecipientSet()
        recipients.remove("ghost@x.com")
        assert len(recipients) == 0

    def test_validate_all_clean(self):
        recipients = RecipientSet()
        recipients.add("a@x.com")
        assert recipients.validate_all().ok

    def test_validate_all_catches_corrupted_entries(self):
        recipients = RecipientSet()
        recipients.add("a@x.com")
        recipients._recipients.append(Recipient("broken"))
        recipients._recipients.append(Recipient("also@bad"))

        outcome = recipients.validate_all()

        assert outcome.invalid == ["broken", "also@bad"]
        assert outcome.message == "Invalid email(s): broken, also@bad"

    def test_paste_list(self):
        recipients = RecipientSet()
        recipients.add("a@x.com")

        results = recipients.paste("a@x.com; b@x.com\nwrong, c@x.com")

        assert [r.ok for r in results] == [False, True, True]
        assert recipients.emails() == ["a@x.com", "b@x.com", "c@x.com"]
        assert recipients.error == "Invalid email(s): wrong"

    def test_to_field_comma_joined(self):
        recipients = RecipientSet()
        recipients.add("a@x.com")
        recipients.add("b@x.com")
        assert recipients.to_field() == "a@x.com,b@x.com"
