"""Test issuance request validation."""

from datetime import datetime, timedelta, timezone

import pytest

from selfca import (
    DEFAULT_KEY_BITS,
    CARequest,
    InvalidRequestError,
    LeafRequest,
    SigningMaterialError,
    check_validity_window,
)

NOT_BEFORE = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
NOT_AFTER = NOT_BEFORE + timedelta(days=10)


class TestCARequest:
    def test_is_ca_and_has_no_hosts(self):
        request = CARequest(not_before=NOT_BEFORE, not_after=NOT_AFTER)
        assert request.is_ca is True
        assert request.hosts == ()

    @pytest.mark.parametrize("key_bits", [0, -1, None])
    def test_non_positive_key_bits_default(self, key_bits):
        request = CARequest(not_before=NOT_BEFORE, not_after=NOT_AFTER, key_bits=key_bits)
        assert request.key_bits == DEFAULT_KEY_BITS

    def test_naive_timestamps_are_utc(self):
        request = CARequest(not_before=datetime(2024, 6, 1), not_after=datetime(2024, 6, 2))
        assert request.not_before == datetime(2024, 6, 1, tzinfo=timezone.utc)

    def test_reversed_window_rejected(self):
        with pytest.raises(InvalidRequestError, match="ends before it starts"):
            CARequest(not_before=NOT_AFTER, not_after=NOT_BEFORE)

    def test_request_is_immutable(self):
        request = CARequest(not_before=NOT_BEFORE, not_after=NOT_AFTER)
        with pytest.raises(AttributeError):
            request.common_name = "changed"  # type: ignore[misc]


class TestLeafRequest:
    def test_hosts_become_tuple(self, ca):
        request = LeafRequest(
            not_before=NOT_BEFORE,
            not_after=NOT_AFTER,
            hosts=["a.example", "b.example"],
            signing_material=ca.signing_material(),
        )
        assert request.hosts == ("a.example", "b.example")
        assert request.is_ca is False

    def test_empty_hosts_rejected(self, ca):
        with pytest.raises(InvalidRequestError, match="At least one host"):
            LeafRequest(
                not_before=NOT_BEFORE,
                not_after=NOT_AFTER,
                hosts=[],
                signing_material=ca.signing_material(),
            )

    def test_blank_host_rejected(self, ca):
        with pytest.raises(InvalidRequestError, match="Invalid host entry"):
            LeafRequest(
                not_before=NOT_BEFORE,
                not_after=NOT_AFTER,
                hosts=["example.com", "  "],
                signing_material=ca.signing_material(),
            )

    def test_missing_signing_material_rejected(self):
        with pytest.raises(SigningMaterialError):
            LeafRequest(
                not_before=NOT_BEFORE,
                not_after=NOT_AFTER,
                hosts=["example.com"],
                signing_material=None,  # type: ignore[arg-type]
            )

    def test_invalid_request_error_is_value_error(self, ca):
        with pytest.raises(ValueError):
            LeafRequest(
                not_before=NOT_BEFORE,
                not_after=NOT_AFTER,
                hosts=(),
                signing_material=ca.signing_material(),
            )


class TestValidityWindow:
    def test_zero_length_window_is_allowed(self):
        check_validity_window(NOT_BEFORE, NOT_BEFORE)

    def test_reversed_window(self):
        with pytest.raises(InvalidRequestError, match="ends before it starts"):
            check_validity_window(NOT_AFTER, NOT_BEFORE)

    def test_naive_and_aware_timestamps_compare(self):
        with pytest.raises(InvalidRequestError):
            check_validity_window(NOT_BEFORE, datetime(2024, 6, 1, 11, 0, 0))
