"""Human Name Structures.

Builders and accessors for FHIR HumanName values. Handles FHIR HumanName
construction and the choice of a display name among several entries.
"""

from typing import List, Optional, Sequence, Union

from clinical_fhir.core.exceptions import CardinalityError
from clinical_fhir.fhir_types import HumanName, NameUse, Period

# FHIR resource type for this module
__fhir_resource__ = "HumanName"

# Order in which name uses are preferred for display
DISPLAY_NAME_PRECEDENCE = (NameUse.OFFICIAL, NameUse.USUAL)


def create_human_name(
    family: Optional[str],
    given: Optional[Sequence[str]] = None,
    use: Union[NameUse, str] = NameUse.OFFICIAL,
    prefix: Optional[Sequence[str]] = None,
    suffix: Optional[Sequence[str]] = None,
    period: Optional[Period] = None,
) -> HumanName:
    """Create FHIR HumanName structure.

    Args:
        family: Family/surname
        given: Given names, in order
        use: Name use code
        prefix: Name prefixes (Dr., Mr., etc.)
        suffix: Name suffixes (Jr., III, etc.)
        period: When the name was in use

    Returns:
        HumanName with ``text`` assembled from its parts

    Raises:
        CardinalityError: If neither a family nor a given name is supplied
    """
    given_names = [name for name in (given or []) if name]
    if not family and not given_names:
        raise CardinalityError("a name requires a family or given name", path="HumanName")

    text_parts: List[str] = []
    text_parts.extend(prefix or [])
    text_parts.extend(given_names)
    if family:
        text_parts.append(family)
    text_parts.extend(suffix or [])

    return HumanName(
        use=use,
        family=family,
        given=given_names,
        prefix=list(prefix or []),
        suffix=list(suffix or []),
        period=period,
        text=" ".join(text_parts),
    )


def format_name(name: HumanName) -> Optional[str]:
    """Render a name as given tokens followed by the family name.

    Falls back to ``text`` when neither part is present.
    """
    parts = [str(given) for given in name.given or []]
    if name.family:
        parts.append(str(name.family))
    if parts:
        return " ".join(parts)
    return str(name.text) if name.text else None


def select_name(names: Union[HumanName, Sequence[HumanName], None]) -> Optional[HumanName]:
    """Pick the name to display: official, then usual, then the first entry."""
    if names is None:
        return None
    if isinstance(names, HumanName):
        return names
    candidates = list(names)
    for use in DISPLAY_NAME_PRECEDENCE:
        for name in candidates:
            if name.use == use:
                return name
    return candidates[0] if candidates else None


def get_display_name(names: Union[HumanName, Sequence[HumanName], None]) -> Optional[str]:
    """Return the display string for one name or a list of names.

    Returns:
        ``"Given Family"`` of the preferred name, or None when nothing is usable
    """
    name = select_name(names)
    return format_name(name) if name is not None else None


class NameBuilder:
    """Builder for constructing HumanName values step by step."""

    def __init__(self) -> None:
        """Initialize name builder."""
        self.given_names: List[str] = []
        self.family_name: Optional[str] = None
        self.prefixes: List[str] = []
        self.suffixes: List[str] = []
        self.use: Union[NameUse, str] = NameUse.OFFICIAL
        self.period: Optional[Period] = None

    def with_given_names(self, *names: str) -> "NameBuilder":
        """Add given names."""
        self.given_names.extend(names)
        return self

    def with_family_name(self, name: str) -> "NameBuilder":
        """Set family name."""
        self.family_name = name
        return self

    def with_prefix(self, prefix: str) -> "NameBuilder":
        """Add prefix."""
        self.prefixes.append(prefix)
        return self

    def with_suffix(self, suffix: str) -> "NameBuilder":
        """Add suffix."""
        self.suffixes.append(suffix)
        return self

    def with_use(self, use: Union[NameUse, str]) -> "NameBuilder":
        """Set name use."""
        self.use = use
        return self

    def with_period(self, period: Period) -> "NameBuilder":
        """Set the period the name was in use."""
        self.period = period
        return self

    def build(self) -> HumanName:
        """Build the HumanName."""
        return create_human_name(
            self.family_name,
            self.given_names,
            use=self.use,
            prefix=self.prefixes,
            suffix=self.suffixes,
            period=self.period,
        )
