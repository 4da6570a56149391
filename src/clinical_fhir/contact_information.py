"""Contact Information.

Builders and accessors for FHIR ContactPoint and Address values.
"""

import re
from typing import Optional, Sequence, Tuple, Union

from clinical_fhir.config import get_settings
from clinical_fhir.core.exceptions import FormatError
from clinical_fhir.fhir_types import (
    Address,
    AddressUse,
    ContactPoint,
    ContactPointSystem,
    ContactPointUse,
    Period,
)
from clinical_fhir.utils.logging import get_logger

# FHIR resource type for this module
__fhir_resource__ = "ContactPoint"

logger = get_logger(__name__)

# Preferred use when no rank decides between contact points
PRIMARY_USE_PRECEDENCE = (ContactPointUse.HOME, ContactPointUse.WORK)


class ContactValidator:
    """Validates contact point values."""

    EMAIL_PATTERN = re.compile(r"^[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,}$")
    PHONE_PATTERN = re.compile(r"^\+?[\d\s\-().]+$")

    @classmethod
    def validate_email(cls, email: str) -> Tuple[bool, Optional[str]]:
        """Validate email address.

        Args:
            email: Email address to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not email:
            return False, "Email address cannot be empty"

        if email.count("@") != 1:
            return False, "Email must contain exactly one @ symbol"

        if not cls.EMAIL_PATTERN.match(email.lower()):
            return False, "Invalid email format"

        local, domain = email.split("@")

        # Check local part
        if len(local) > 64:
            return False, "Email local part too long"

        # Check domain
        if len(domain) > 255:
            return False, "Email domain too long"

        return True, None

    @classmethod
    def validate_phone_number(cls, number: str) -> Tuple[bool, Optional[str]]:
        """Validate phone number characters and length.

        Args:
            number: Phone number to validate

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not cls.PHONE_PATTERN.match(number):
            return False, "Invalid characters in phone number"

        # Basic validation: must have at least 5 digits
        if len(re.sub(r"[^\d]", "", number)) < 5:
            return False, "Phone number too short"

        return True, None


def create_contact_point(
    system: Union[ContactPointSystem, str],
    value: str,
    use: Union[ContactPointUse, str, None] = None,
    rank: Optional[int] = None,
    period: Optional[Period] = None,
) -> ContactPoint:
    """Create a ContactPoint.

    Email and phone values are checked for a plausible shape.

    Raises:
        FormatError: If an email or phone value is malformed
    """
    system_code = getattr(system, "value", system)
    if system_code == ContactPointSystem.EMAIL.value:
        valid, error = ContactValidator.validate_email(value)
        if not valid:
            raise FormatError("email", value, path="ContactPoint.value", message=error)
    elif system_code in (ContactPointSystem.PHONE.value, ContactPointSystem.SMS.value,
                         ContactPointSystem.FAX.value):
        valid, error = ContactValidator.validate_phone_number(value)
        if not valid:
            raise FormatError("phone", value, path="ContactPoint.value", message=error)
    return ContactPoint(system=system, value=value, use=use, rank=rank, period=period)


def _primary(telecom: Optional[Sequence[ContactPoint]], system: ContactPointSystem) -> Optional[ContactPoint]:
    candidates = [point for point in telecom or [] if point.system == system and point.value]
    if not candidates:
        return None

    ranked = [point for point in candidates if point.rank is not None]
    if ranked:
        return min(ranked, key=lambda point: int(point.rank))

    for use in PRIMARY_USE_PRECEDENCE:
        for point in candidates:
            if point.use == use:
                return point
    return candidates[0]


def get_primary_contact(
    telecom: Optional[Sequence[ContactPoint]], system: Union[ContactPointSystem, str]
) -> Optional[ContactPoint]:
    """Return the preferred contact point of ``system``.

    Lowest explicit rank wins; otherwise home before work before the first match.
    """
    return _primary(telecom, ContactPointSystem(getattr(system, "value", system)))


def get_primary_phone(telecom: Optional[Sequence[ContactPoint]]) -> Optional[str]:
    """Return the preferred phone number, or None when there is none."""
    point = _primary(telecom, ContactPointSystem.PHONE)
    return str(point.value) if point is not None else None


def get_primary_email(telecom: Optional[Sequence[ContactPoint]]) -> Optional[str]:
    """Return the preferred email address, or None when there is none."""
    point = _primary(telecom, ContactPointSystem.EMAIL)
    return str(point.value) if point is not None else None


def create_address(
    line: Optional[Sequence[str]],
    city: Optional[str],
    state: Optional[str],
    postal_code: Optional[str],
    country: Optional[str] = None,
    use: Union[AddressUse, str] = AddressUse.HOME,
    period: Optional[Period] = None,
) -> Address:
    """Create an Address with a one-line ``text`` rendering.

    ``country`` defaults to the configured default country.
    """
    if country is None:
        country = get_settings().default_country
    lines = [entry for entry in line or [] if entry]

    locality = " ".join(part for part in (state, postal_code) if part)
    text = ", ".join(part for part in (*lines, city, locality, country) if part)

    return Address(
        use=use,
        line=lines,
        city=city,
        state=state,
        postalCode=postal_code,
        country=country,
        period=period,
        text=text or None,
    )
