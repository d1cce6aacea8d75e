"""
Identity checks over encrypted personal data.

A user submits age, country code and credit score encrypted. Verifiers get encrypted booleans
("is this user at least 18?") that only they and the user can decrypt, so the underlying data is
never disclosed. An age check can also be publicly revealed to the user through the two-phase
reveal.
"""

import logging

import attr

from fhereveal.types import EncryptedType

logger = logging.getLogger(__name__)

MIN_AGE = 18
ADULT_AGE = 21
GOOD_CREDIT = 700


@attr.s(frozen=True)
class Identity:
    """
    Encrypted identity record of one user.

    Args:
        age: ``euint8`` handle.
        country: ``euint8`` handle to the country code.
        credit_score: ``euint16`` handle.
        verified_at (float): Submission time.
    """

    age = attr.ib()
    country = attr.ib()
    credit_score = attr.ib()
    verified_at = attr.ib()

    @property
    def handles(self):
        return (self.age, self.country, self.credit_score)


_FIELD_TYPES = (EncryptedType.EUINT8, EncryptedType.EUINT8, EncryptedType.EUINT16)


class PrivateKYC:
    """
    Args:
        engine (:py:class:`engine.Engine`): Engine of the host.
        owner: Address managing the country allowlist.
        allowed_countries: Initially allowed country codes.
    """

    def __init__(self, engine, owner, allowed_countries=()):
        self.engine = engine
        self.owner = owner
        self.allowed_countries = set(allowed_countries)
        self.identities = {}
        self.age_checks = {}
        self._age_requests = {}

    def _set_item(self, mapping, key, value):
        missing = object()
        previous = mapping.get(key, missing)
        mapping[key] = value

        def undo():
            if previous is missing:
                del mapping[key]
            else:
                mapping[key] = previous

        self.engine.journal.record(undo)

    def _identity(self, user):
        identity = self.identities.get(user)
        self.engine.require(identity is not None, "No KYC submitted")
        return identity

    # Submission.

    def has_submitted_kyc(self, user):
        return user in self.identities

    def submit_kyc(self, sender, encrypted_input):
        """
        Store an identity.

        Args:
            sender: User address.
            encrypted_input (:py:class:`inputs.EncryptedInput`): Batch of ``[age (euint8),
                country (euint8), credit score (euint16)]``.
        """
        with self.engine.execution(sender):
            self.engine.require(not self.has_submitted_kyc(sender), "Already verified")
            self.engine.require(len(encrypted_input) == 3, "Expected 3 encrypted fields")

            handles = []
            for index, enc_type in enumerate(_FIELD_TYPES):
                handle = self.engine.from_external(encrypted_input, index)
                self.engine.require(
                    handle.type is enc_type,
                    "Field {} must be an {}".format(index, enc_type.label),
                )
                self.engine.grant_self(handle)
                self.engine.grant_permanent(handle, sender)
                handles.append(handle)

            self._set_item(
                self.identities, sender, Identity(*handles, verified_at=self.engine.now())
            )
        logger.info("KYC submitted by %s", sender)

    def revoke_kyc(self, sender):
        """Delete the identity of the sender and garbage collect its handles."""
        with self.engine.execution(sender):
            identity = self._identity(sender)
            for handle in identity.handles:
                self.engine.collect(handle)
            del self.identities[sender]
            self.engine.journal.record(
                lambda: self.identities.__setitem__(sender, identity)
            )
        logger.info("KYC revoked by %s", sender)

    def get_identity(self, sender):
        """Handles of the sender's own identity, for user decryption."""
        return self._identity(sender)

    def verification_time(self, user):
        identity = self.identities.get(user)
        return identity.verified_at if identity is not None else 0

    # Encrypted predicates, readable by the caller and the user.

    def _share(self, result, sender, user):
        self.engine.grant_self(result)
        self.engine.grant_permanent(result, user)
        if sender is not None and sender != user:
            self.engine.grant_permanent(result, sender)
        return result

    def verify_age(self, sender, user, min_age=MIN_AGE):
        """
        Returns:
            :py:class:`handles.Handle`: ``ebool`` telling whether ``user`` is at least
            ``min_age``.
        """
        with self.engine.execution(sender):
            identity = self._identity(user)
            result = self.engine.fhe.ge(identity.age, min_age)
            return self._share(result, sender, user)

    def verify_credit(self, sender, user, min_score=GOOD_CREDIT):
        with self.engine.execution(sender):
            identity = self._identity(user)
            result = self.engine.fhe.ge(identity.credit_score, min_score)
            return self._share(result, sender, user)

    def verify_country(self, sender, user):
        """Encrypted boolean telling whether the user's country is on the allowlist."""
        with self.engine.execution(sender):
            identity = self._identity(user)
            result = self.engine.fhe.any_equal(
                identity.country, sorted(self.allowed_countries)
            )
            return self._share(result, sender, user)

    def verify_adult_with_good_credit(self, sender, user):
        with self.engine.execution(sender):
            identity = self._identity(user)
            fhe = self.engine.fhe
            result = fhe.and_(
                fhe.ge(identity.age, MIN_AGE),
                fhe.ge(identity.credit_score, GOOD_CREDIT),
            )
            return self._share(result, sender, user)

    # Publicly revealed age check.

    def request_age_verification(self, sender, user, min_age=MIN_AGE):
        """
        Request the public reveal of an age check, for ``user``.

        Returns:
            :py:class:`registry.RevealKey`
        """
        with self.engine.execution(sender):
            result = self.verify_age(sender, user, min_age)
            key = self.engine.request_reveal(
                [result], receiver=user, context={"min_age": min_age}
            )
            self._set_item(self._age_requests, key, (user, min_age))
        logger.info("Age verification of %s over %d requested", user, min_age)
        return key

    def finalize_age_verification(self, key, clear_values, proof):
        """
        Record the revealed outcome of an age check.

        Returns:
            bool: Whether the user passed.
        """
        with self.engine.execution():
            self.engine.require(key in self._age_requests, "Unknown age verification")
            result = self.engine.finalize(key, clear_values, proof)
            passed = bool(result.plaintexts[0])
            self._set_item(self.age_checks, self._age_requests[key], passed)
        return passed

    def age_check(self, user, min_age=MIN_AGE):
        """Revealed outcome of an age check, None if not revealed yet."""
        return self.age_checks.get((user, min_age))

    # Allowlist.

    def is_country_allowed(self, country):
        return country in self.allowed_countries

    def set_country_allowed(self, sender, country, allowed):
        self.set_countries_allowed(sender, [country], allowed)

    def set_countries_allowed(self, sender, countries, allowed):
        with self.engine.execution(sender):
            self.engine.require(sender == self.owner, "Only owner")
            previous = set(self.allowed_countries)
            if allowed:
                self.allowed_countries.update(countries)
            else:
                self.allowed_countries.difference_update(countries)

            def undo():
                self.allowed_countries.clear()
                self.allowed_countries.update(previous)

            self.engine.journal.record(undo)
        logger.info("Country allowlist updated: %s -> %s", sorted(countries), allowed)
