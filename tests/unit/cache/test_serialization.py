"""Tests for the distributed tier payload codec."""

import pytest

from storecache.cache.serialization import decode, encode
from storecache.domain import Store
from storecache.errors import SerializationError


class TestEncode:
    """Test value encoding."""

    def test_model_is_dumped_as_json(self) -> None:
        """Pydantic models are encoded through their JSON form."""
        store = Store(id="1", name="Main", hosts=["a.example.com"])

        payload = encode("k", store)

        assert b'"hosts":["a.example.com"]' in payload

    def test_unsupported_value(self) -> None:
        """Values with no JSON form raise SerializationError."""
        with pytest.raises(SerializationError) as exc_info:
            encode("ns.k", {1, 2})
        assert exc_info.value.key == "ns.k"


class TestDecode:
    """Test payload decoding."""

    def test_untyped(self) -> None:
        """Without a type, plain JSON shapes come back."""
        assert decode("k", b'{"a": [1, 2.5, "x"]}') == {"a": [1, 2.5, "x"]}

    def test_typed(self) -> None:
        """With a type, the payload is validated into it."""
        store = decode("k", b'{"id": "1", "name": "Main", "display_order": 3}', Store)

        assert isinstance(store, Store)
        assert store.display_order == 3

    @pytest.mark.parametrize("payload", [b"", b"{", b"\xff\xfe"])
    def test_unreadable_payload(self, payload: bytes) -> None:
        """Empty and malformed payloads raise SerializationError."""
        with pytest.raises(SerializationError):
            decode("k", payload)

    def test_wrong_shape(self) -> None:
        """Payloads that don't fit the type raise SerializationError."""
        with pytest.raises(SerializationError):
            decode("k", b'[1, 2]', Store)
