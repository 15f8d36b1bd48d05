"""Tests for signature correction.

Tests cover:
- Bodies already signed by the sender
- Another participant's signature block replaced in place
- Another participant's name in the tail cut at the sign-off
- Missing signatures appended, replacing a bare sign-off
- Senders without a signature block
"""

from __future__ import annotations

import dataclasses

from src.threadgen.generation.signatures import correct_signature


class TestCorrectSignature:
    """Tests for correct_signature()."""

    def test_already_signed(self, characters) -> None:
        alice = characters[0]
        body = f"Hi Bob,\n\nDone.\n\n{alice.signature_block}"
        assert correct_signature(body, alice, characters) == body

    def test_wrong_signature_block_replaced(self, characters) -> None:
        alice, bob, _ = characters
        body = f"Hi Carla,\n\nNumbers attached.\n\n{bob.signature_block}"

        result = correct_signature(body, alice, characters)

        assert result == f"Hi Carla,\n\nNumbers attached.\n\n{alice.signature_block}"

    def test_wrong_name_cut_at_sign_off(self, characters) -> None:
        alice = characters[0]
        body = "Hi Carla,\n\nPlease review.\n\nBest,\nBob Okafor\nEngineering"

        result = correct_signature(body, alice, characters)

        assert result == f"Hi Carla,\n\nPlease review.\n\n{alice.signature_block}"

    def test_missing_signature_replaces_sign_off(self, characters) -> None:
        alice = characters[0]
        body = "Hi Bob,\n\nSee below.\n\nThanks,"

        result = correct_signature(body, alice, characters)

        assert result == f"Hi Bob,\n\nSee below.\n\n{alice.signature_block}"

    def test_missing_signature_appended(self, characters) -> None:
        alice = characters[0]
        body = "Hi Bob,\n\nSee below."

        result = correct_signature(body, alice, characters)

        assert result == f"Hi Bob,\n\nSee below.\n\n{alice.signature_block}"

    def test_sender_name_present_left_alone(self, characters) -> None:
        alice = characters[0]
        body = "Hi Bob,\n\nSee below.\n\nAlice"
        assert correct_signature(body, alice, characters) == body

    def test_sender_without_signature_block(self, characters) -> None:
        alice = dataclasses.replace(characters[0], signature_block="")
        body = "Hi Bob,\n\nSee below.\n\nBob Okafor\nSoftware Engineer"
        assert correct_signature(body, alice, characters) == body

    def test_empty_body(self, characters) -> None:
        assert correct_signature("", characters[0], characters) == ""
