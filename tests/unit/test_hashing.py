"""
Unit tests for artifact content hashing.
"""

import hashlib

import pytest
from hypothesis import given
from hypothesis import strategies as st

from mismo_conformance.utils.hashing import content_hash, is_duplicate, verify


class TestContentHash:
    """Tests for content_hash"""

    def test_prefixed_sha256(self):
        """Test the algorithm prefix and digest"""
        data = b"<MESSAGE/>"

        assert content_hash(data) == "sha256:" + hashlib.sha256(data).hexdigest()

    def test_text_rejected(self):
        """Test that text must be encoded before hashing"""
        with pytest.raises(TypeError, match="requires bytes"):
            content_hash("<MESSAGE/>")

    def test_bytearray_accepted(self):
        """Test that byte buffers hash like bytes"""
        assert content_hash(bytearray(b"abc")) == content_hash(b"abc")

    def test_single_byte_changes_hash(self):
        """Test that whitespace differences are significant"""
        assert content_hash(b"<a/>") != content_hash(b"<a/>\n")

    @given(st.binary())
    def test_deterministic(self, data):
        """Property: hashing is a pure function of the bytes"""
        assert content_hash(data) == content_hash(bytes(data))
        assert verify(data, content_hash(data))


class TestDuplicates:
    """Tests for is_duplicate and verify"""

    def test_identical_hashes(self):
        """Test that equal hashes are duplicates"""
        h = content_hash(b"x")

        assert is_duplicate(h, h)

    @pytest.mark.parametrize("a,b", [(None, None), ("", ""), (None, "sha256:00"), ("sha256:00", "sha256:01")])
    def test_not_duplicates(self, a, b):
        """Test that missing or different hashes never match"""
        assert not is_duplicate(a, b)

    def test_verify_mismatch(self):
        """Test verify against a hash of other content"""
        assert not verify(b"x", content_hash(b"y"))
