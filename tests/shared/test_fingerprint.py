"""Tests for error fingerprinting."""

from __future__ import annotations

import hashlib

from shared.fingerprint import FINGERPRINT_LENGTH, generate_fingerprint


def test_length_is_sixteen_hex_chars():
    fp = generate_fingerprint("NPE")
    assert len(fp) == FINGERPRINT_LENGTH == 16
    int(fp, 16)  # valid hex


def test_deterministic():
    assert generate_fingerprint("NPE", "at Foo.bar") == generate_fingerprint("NPE", "at Foo.bar")
    assert generate_fingerprint("NPE") == generate_fingerprint("NPE", None)


def test_matches_sha256_prefix_of_concatenation():
    expected = hashlib.sha256(b"NPEat Foo.bar").hexdigest()[:16]
    assert generate_fingerprint("NPE", "at Foo.bar") == expected


def test_differs_when_message_differs():
    assert generate_fingerprint("NPE", "trace") != generate_fingerprint("OOM", "trace")


def test_differs_when_stack_trace_differs():
    assert generate_fingerprint("NPE", "trace a") != generate_fingerprint("NPE", "trace b")
    assert generate_fingerprint("NPE") != generate_fingerprint("NPE", "trace")


def test_empty_stack_trace_same_as_absent():
    # Concatenating an empty string adds nothing to the hashed data.
    assert generate_fingerprint("NPE", "") == generate_fingerprint("NPE")
