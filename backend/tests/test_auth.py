import base64

import base58
import pytest
from nacl.signing import SigningKey

from haygame import db
from haygame.errors import AuthError
from haygame.models import Challenge, PlaySession
from haygame.services.auth import (
    AcceptAllVerifier,
    ClientAttestationVerifier,
    Ed25519Verifier,
    LoginProof,
    make_verifier,
)

WALLET = 'HayWallet1111111111111111111111111111111111'


def test_issue_challenge_sets_five_minute_expiry(services, clock):
    challenge = services.authenticator.issue_challenge()
    assert challenge.expires_at == clock.now + 5 * 60 * 1000
    assert challenge.message == f'Sign to login: {challenge.id}'
    assert isinstance(db.session.get(Challenge, challenge.id), Challenge)


def test_challenge_is_single_use(services):
    challenge = services.authenticator.issue_challenge()
    proof = LoginProof(wallet_address=WALLET, signed=True)
    assert services.authenticator.consume_challenge(challenge.id, proof) == WALLET
    assert db.session.get(Challenge, challenge.id) is None
    with pytest.raises(AuthError) as excinfo:
        services.authenticator.consume_challenge(challenge.id, proof)
    assert excinfo.value.reason == AuthError.NOT_FOUND


def test_expired_challenge_is_rejected(services, clock):
    challenge = services.authenticator.issue_challenge()
    clock.advance(5 * 60 * 1000 + 1)
    with pytest.raises(AuthError) as excinfo:
        services.authenticator.consume_challenge(challenge.id, LoginProof(WALLET, signed=True))
    assert excinfo.value.reason == AuthError.EXPIRED


def test_unverified_proof_leaves_challenge_usable(services):
    challenge = services.authenticator.issue_challenge()
    with pytest.raises(AuthError) as excinfo:
        services.authenticator.consume_challenge(challenge.id, LoginProof(WALLET, signed=False))
    assert excinfo.value.reason == AuthError.UNVERIFIED
    assert excinfo.value.message == 'Signature verification failed'
    assert services.authenticator.consume_challenge(challenge.id, LoginProof(WALLET, signed=True)) == WALLET


def test_play_session_id_is_not_a_challenge(services):
    session = services.sessions.start_session(WALLET)
    with pytest.raises(AuthError) as excinfo:
        services.authenticator.consume_challenge(session.id, LoginProof(WALLET, signed=True))
    assert excinfo.value.reason == AuthError.WRONG_VARIANT
    assert db.session.get(PlaySession, session.id) is not None


def test_login_consumes_challenge_and_opens_session(services):
    challenge = services.authenticator.issue_challenge()
    session, user = services.sessions.login(challenge.id, LoginProof(WALLET, signed=True))
    assert session.wallet_address == WALLET
    assert session.is_alive is True
    assert user.wallet_address == WALLET
    assert db.session.get(Challenge, challenge.id) is None


def test_purge_expired_challenges(services, clock):
    old = services.authenticator.issue_challenge()
    clock.advance(4 * 60 * 1000)
    young = services.authenticator.issue_challenge()
    clock.advance(2 * 60 * 1000)
    assert services.authenticator.purge_expired_challenges() == 1
    assert db.session.get(Challenge, old.id) is None
    assert db.session.get(Challenge, young.id) is not None


def test_ed25519_verifier_checks_the_challenge_signature(services):
    services.authenticator.verifier = Ed25519Verifier()
    key = SigningKey.generate()
    wallet = base58.b58encode(bytes(key.verify_key)).decode()

    challenge = services.authenticator.issue_challenge()
    signature = key.sign(challenge.message.encode()).signature
    forged = SigningKey.generate().sign(challenge.message.encode()).signature

    with pytest.raises(AuthError):
        services.authenticator.consume_challenge(challenge.id, LoginProof(wallet, signed=True))
    with pytest.raises(AuthError):
        services.authenticator.consume_challenge(
            challenge.id, LoginProof(wallet, signature=base58.b58encode(forged).decode())
        )
    proof = LoginProof(wallet, signature=base58.b58encode(signature).decode())
    assert services.authenticator.consume_challenge(challenge.id, proof) == wallet


def test_ed25519_verifier_accepts_base64_signatures(flask_app):
    key = SigningKey.generate()
    wallet = base58.b58encode(bytes(key.verify_key)).decode()
    challenge = Challenge(id='abc', created_at=0, expires_at=1)
    signature = base64.b64encode(key.sign(challenge.message.encode()).signature).decode()
    assert Ed25519Verifier().verify(challenge, LoginProof(wallet, signature=signature))
    assert not Ed25519Verifier().verify(challenge, LoginProof('not-a-key', signature=signature))


def test_make_verifier_strategies():
    assert isinstance(make_verifier('ed25519'), Ed25519Verifier)
    assert isinstance(make_verifier('attestation'), ClientAttestationVerifier)
    assert isinstance(make_verifier('accept_all'), AcceptAllVerifier)
    with pytest.raises(ValueError):
        make_verifier('env-flag')
