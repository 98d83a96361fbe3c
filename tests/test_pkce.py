"""
Tests for the PKCE helpers.
"""

import re

from connectors.pkce import derive_challenge, generate_verifier

_URL_SAFE = re.compile(r"^[A-Za-z0-9_-]+$")


class TestPkce:
    def test_verifier_is_url_safe_and_long_enough(self):
        verifier = generate_verifier()
        # 32 random bytes encode to 43 base64url characters
        assert len(verifier) >= 43
        assert _URL_SAFE.match(verifier)

    def test_verifiers_are_unique(self):
        assert len({generate_verifier() for _ in range(50)}) == 50

    def test_challenge_matches_rfc7636_vector(self):
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert derive_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_challenge_is_deterministic_and_unpadded(self):
        verifier = generate_verifier()
        challenge = derive_challenge(verifier)
        assert challenge == derive_challenge(verifier)
        assert "=" not in challenge
        assert challenge != verifier
