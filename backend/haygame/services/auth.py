"""Nonce-based login challenges and the signature verifiers that gate them."""

import base64
import binascii
import uuid
from dataclasses import dataclass
from typing import Optional

import base58
from flask import current_app
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from haygame.errors import AuthError
from haygame.models import Challenge
from haygame.services import clock


@dataclass
class LoginProof:
    """What the client presents when redeeming a challenge."""

    wallet_address: str
    signed: bool = False
    signature: Optional[str] = None


class SignatureVerifier:
    name = 'base'

    def verify(self, challenge: Challenge, proof: LoginProof) -> bool:
        raise NotImplementedError


class Ed25519Verifier(SignatureVerifier):
    """Checks a detached ed25519 signature of the challenge message.

    The wallet address is the base58 public key (Solana style); the
    signature may be base58 or base64 encoded.
    """

    name = 'ed25519'

    def verify(self, challenge: Challenge, proof: LoginProof) -> bool:
        if not proof.signature:
            return False
        public_key = _decode_bytes(proof.wallet_address, 32)
        signature = _decode_bytes(proof.signature, 64)
        if public_key is None or signature is None:
            return False
        try:
            VerifyKey(public_key).verify(challenge.message.encode('utf-8'), signature)
        except BadSignatureError:
            return False
        return True


class ClientAttestationVerifier(SignatureVerifier):
    """Trusts the client's own claim that the wallet signed the message."""

    name = 'attestation'

    def verify(self, challenge: Challenge, proof: LoginProof) -> bool:
        return bool(proof.signed)


class AcceptAllVerifier(SignatureVerifier):
    name = 'accept_all'

    def verify(self, challenge: Challenge, proof: LoginProof) -> bool:
        return True


VERIFIERS = {cls.name: cls for cls in (Ed25519Verifier, ClientAttestationVerifier, AcceptAllVerifier)}


def make_verifier(name: str) -> SignatureVerifier:
    try:
        return VERIFIERS[name]()
    except KeyError:
        raise ValueError(f"Unknown SIGNATURE_VERIFIER {name!r}; expected one of {sorted(VERIFIERS)}")


def _decode_bytes(value: str, size: int) -> Optional[bytes]:
    if not isinstance(value, str):
        return None
    try:
        raw = base58.b58decode(value)
        if len(raw) == size:
            return raw
    except ValueError:
        pass
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return None
    return raw if len(raw) == size else None


class NonceAuthenticator:
    def __init__(self, store, verifier: SignatureVerifier, ttl_ms: int = 5 * 60 * 1000):
        self.store = store
        self.verifier = verifier
        self.ttl_ms = ttl_ms

    def issue_challenge(self) -> Challenge:
        now = clock.now_ms()
        challenge_id = str(uuid.uuid4())
        with self.store.transaction() as uow:
            challenge = Challenge(id=challenge_id, created_at=now, expires_at=now + self.ttl_ms)
            uow.add(challenge)
        return challenge

    def consume_challenge(self, challenge_id: str, proof: LoginProof) -> str:
        with self.store.transaction() as uow:
            return self.consume_in(uow, challenge_id, proof)

    def consume_in(self, uow, challenge_id: str, proof: LoginProof) -> str:
        """Consume inside an open unit of work; the caller commits."""
        record = uow.lock_session(challenge_id)
        if record is None:
            raise AuthError(AuthError.NOT_FOUND)
        if not isinstance(record, Challenge):
            current_app.logger.warning(f"[connect] id={challenge_id} is not a login challenge")
            raise AuthError(AuthError.WRONG_VARIANT)
        if record.is_expired(clock.now_ms()):
            current_app.logger.warning(f"[connect] nonce={challenge_id} expired at={record.expires_at}")
            raise AuthError(AuthError.EXPIRED)
        if not self.verifier.verify(record, proof):
            current_app.logger.warning(
                f"[connect] nonce={challenge_id} wallet={proof.wallet_address[:8]}... rejected by {self.verifier.name}"
            )
            raise AuthError(AuthError.UNVERIFIED)
        uow.delete(record)
        return proof.wallet_address

    def purge_expired_challenges(self) -> int:
        now = clock.now_ms()
        expired_ids = [c.id for c in Challenge.query.filter(Challenge.expires_at < now).all()]
        purged = 0
        for challenge_id in expired_ids:
            with self.store.transaction() as uow:
                record = uow.lock_session(challenge_id)
                if isinstance(record, Challenge) and record.is_expired(now):
                    uow.delete(record)
                    purged += 1
        if purged:
            current_app.logger.info(f"[sweep] purged {purged} expired challenges")
        return purged
