"""Identity cross-validation.

Compares the identity asserted by token verification (or an ID token)
with the identity returned by the user-info endpoint and with the
configured client ID. Providers emit either OAuth2-style claim names
(``user_id``, ``issued_to``) or OpenID-Connect-style ones (``sub``,
``aud``); both are normalized into ``IdentityClaims`` before comparison.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import jwt


class ValidationStatus(StrEnum):
    """Status of a validation check."""

    VALID = "valid"
    INVALID = "invalid"


@dataclass
class ValidationCheck:
    """Result of a single cross-validation check."""

    name: str
    description: str
    status: ValidationStatus
    expected: str | None = None
    actual: str | None = None
    message: str = ""


@dataclass
class IdentityClaims:
    """Canonical identity claims asserted about a token."""

    user_id: str | None = None
    email: str | None = None
    issued_to: str | list[str] | None = None
    email_verified: bool | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> IdentityClaims:
        """Normalize OAuth2 or OpenID-Connect claim names.

        ``sub`` takes precedence over ``user_id`` and ``aud`` over
        ``issued_to`` when both are present.
        """
        user_id = data.get("sub")
        if user_id is None:
            user_id = data.get("user_id")

        issued_to = data.get("aud")
        if issued_to is None:
            issued_to = data.get("issued_to")

        email_verified = data.get("email_verified")
        if email_verified is None:
            email_verified = data.get("verified_email")

        return cls(
            user_id=str(user_id) if user_id is not None else None,
            email=data.get("email"),
            issued_to=issued_to,
            email_verified=_to_bool(email_verified),
        )

    def has_audience(self, client_id: str) -> bool:
        """Check whether the claims were issued to ``client_id``."""
        if isinstance(self.issued_to, list):
            return client_id in self.issued_to
        return self.issued_to == client_id


@dataclass
class CrossValidationResult:
    """Outcome of comparing claims with a user profile."""

    is_valid: bool = False
    checks: list[ValidationCheck] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def mismatches(self) -> list[ValidationCheck]:
        """Checks that compared two present values and failed."""
        return [c for c in self.checks if c.status == ValidationStatus.INVALID]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "is_valid": self.is_valid,
            "checks": [
                {
                    "name": c.name,
                    "description": c.description,
                    "status": c.status.value,
                    "expected": c.expected,
                    "actual": c.actual,
                    "message": c.message,
                }
                for c in self.checks
            ],
            "errors": list(self.errors),
        }


def _to_bool(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes")
    return bool(value)


def _present(value: Any) -> bool:
    return value is not None and value != ""


def cross_validate(
    claims: Mapping[str, Any] | IdentityClaims | None,
    profile: Mapping[str, Any] | None,
    client_id: str,
) -> CrossValidationResult:
    """Cross-validate verified claims against a user profile.

    Every missing key and every mismatch is reported, not only the first.

    Args:
        claims: Verification response or ID token claims.
        profile: User-info response with ``id`` and ``email``. Build a
            ``UserProfile`` first to accept an OpenID ``sub`` as the ID.
        client_id: The configured OAuth2 client ID.

    Returns:
        CrossValidationResult with one check per compared pair.
    """
    result = CrossValidationResult()

    if not claims:
        result.errors.append("verification claims are missing")
    if not profile:
        result.errors.append("user profile is missing")

    identity: IdentityClaims | None = None
    if claims:
        identity = claims if isinstance(claims, IdentityClaims) else IdentityClaims.from_mapping(claims)
        if not _present(identity.user_id):
            result.errors.append("key 'user_id' or 'sub' missing from verification claims")
        if not _present(identity.email):
            result.errors.append("key 'email' missing from verification claims")
        if not _present(identity.issued_to):
            result.errors.append("key 'issued_to' or 'aud' missing from verification claims")

    profile_id: str | None = None
    profile_email: str | None = None
    if profile:
        raw_id = profile.get("id")
        profile_id = str(raw_id) if raw_id is not None else None
        profile_email = profile.get("email")
        if not _present(profile_id):
            result.errors.append("key 'id' missing from user profile")
        if not _present(profile_email):
            result.errors.append("key 'email' missing from user profile")

    if result.errors or identity is None:
        return result

    result.checks.append(
        _compare("user_id", "Verified user ID matches profile ID", profile_id, identity.user_id)
    )
    result.checks.append(
        _compare("email", "Verified email matches profile email", profile_email, identity.email)
    )

    audience_ok = identity.has_audience(client_id)
    result.checks.append(
        ValidationCheck(
            name="issued_to",
            description="Token was issued to this client",
            status=ValidationStatus.VALID if audience_ok else ValidationStatus.INVALID,
            expected=client_id,
            actual=str(identity.issued_to),
            message="" if audience_ok else "application id mismatch",
        )
    )

    for check in result.mismatches:
        result.errors.append(f"{check.name} mismatch: expected {check.expected!r}, got {check.actual!r}")

    result.is_valid = not result.errors
    return result


def _compare(name: str, description: str, expected: str | None, actual: str | None) -> ValidationCheck:
    ok = expected == actual
    return ValidationCheck(
        name=name,
        description=description,
        status=ValidationStatus.VALID if ok else ValidationStatus.INVALID,
        expected=expected,
        actual=actual,
        message="" if ok else f"user's {name} mismatch",
    )


def decode_id_token(id_token: str) -> IdentityClaims | None:
    """Read the identity claims of an ID token without verifying it.

    The signature is not checked; the claims are only suitable for
    cross-validation against independently fetched data.

    Returns:
        IdentityClaims, or None if the token cannot be decoded.
    """
    if not id_token:
        return None
    try:
        payload = jwt.decode(id_token, options={"verify_signature": False})
    except jwt.exceptions.InvalidTokenError:
        return None
    return IdentityClaims.from_mapping(payload)
