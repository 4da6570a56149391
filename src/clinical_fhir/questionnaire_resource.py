"""Questionnaire and QuestionnaireResponse FHIR Resources.

This module implements the FHIR R4 Questionnaire resource with its recursive
item tree, the QuestionnaireResponse resource, and validation of a response
against the questionnaire it answers: answer types, answer options,
repetition, maximum length, enableWhen conditions and required items.
"""

import operator
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Literal, Mapping, Optional, Set, Tuple, Union

from pydantic import model_validator

from clinical_fhir.coding_systems import hl7_code_systems as hl7
from clinical_fhir.coding_systems.loinc_implementation import LOINC_SYSTEM
from clinical_fhir.coding_systems.registry import BindingStrength, ValueSetBinding
from clinical_fhir.core.exceptions import BindingError, CardinalityError, FormatError, join_path
from clinical_fhir.factories import create_reference
from clinical_fhir.fhir_base import DomainResource, register_resource
from clinical_fhir.fhir_types import (
    Attachment,
    BackboneElement,
    Coding,
    Identifier,
    Period,
    Quantity,
    Reference,
)
from clinical_fhir.primitives import (
    INTEGER_PATTERN,
    FhirBoolean,
    FhirCanonical,
    FhirCode,
    FhirDate,
    FhirDateTime,
    FhirDecimal,
    FhirInteger,
    FhirMarkdown,
    FhirString,
    FhirTime,
    FhirUri,
)
from clinical_fhir.references import R4_RESOURCE_TYPES
from clinical_fhir.utils.logging import get_logger
from clinical_fhir.validation.fhir_validators import (
    ValidationIssue,
    ValidationOutcome,
    ValidationSeverity,
    ValidationType,
)

logger = get_logger(__name__)

# FHIR resource type for this module
__fhir_resource__ = "Questionnaire"


class PublicationStatus(str, Enum):
    """Lifecycle status of a questionnaire."""

    DRAFT = "draft"
    ACTIVE = "active"
    RETIRED = "retired"
    UNKNOWN = "unknown"


class QuestionnaireItemType(str, Enum):
    """Kind of question or grouping an item represents."""

    GROUP = "group"
    DISPLAY = "display"
    BOOLEAN = "boolean"
    DECIMAL = "decimal"
    INTEGER = "integer"
    DATE = "date"
    DATETIME = "dateTime"
    TIME = "time"
    STRING = "string"
    TEXT = "text"
    URL = "url"
    CHOICE = "choice"
    OPEN_CHOICE = "open-choice"
    ATTACHMENT = "attachment"
    REFERENCE = "reference"
    QUANTITY = "quantity"


class EnableWhenOperator(str, Enum):
    """Comparison used by an enableWhen condition."""

    EXISTS = "exists"
    EQUALS = "="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_OR_EQUAL = ">="
    LESS_OR_EQUAL = "<="


class EnableBehavior(str, Enum):
    """How several enableWhen conditions combine."""

    ALL = "all"
    ANY = "any"


class QuestionnaireResponseStatus(str, Enum):
    """Lifecycle status of a questionnaire response."""

    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    AMENDED = "amended"
    ENTERED_IN_ERROR = "entered-in-error"
    STOPPED = "stopped"


CHOICE_TYPES = frozenset({QuestionnaireItemType.CHOICE, QuestionnaireItemType.OPEN_CHOICE})
NON_QUESTION_TYPES = frozenset({QuestionnaireItemType.GROUP, QuestionnaireItemType.DISPLAY})

# Item types that may declare maxLength
MAX_LENGTH_TYPES = frozenset(
    {
        QuestionnaireItemType.BOOLEAN,
        QuestionnaireItemType.DECIMAL,
        QuestionnaireItemType.INTEGER,
        QuestionnaireItemType.STRING,
        QuestionnaireItemType.TEXT,
        QuestionnaireItemType.URL,
        QuestionnaireItemType.OPEN_CHOICE,
    }
)

# value[x] variant each item type is answered with
ANSWER_VARIANTS: Dict[QuestionnaireItemType, Tuple[str, ...]] = {
    QuestionnaireItemType.GROUP: (),
    QuestionnaireItemType.DISPLAY: (),
    QuestionnaireItemType.BOOLEAN: ("valueBoolean",),
    QuestionnaireItemType.DECIMAL: ("valueDecimal",),
    QuestionnaireItemType.INTEGER: ("valueInteger",),
    QuestionnaireItemType.DATE: ("valueDate",),
    QuestionnaireItemType.DATETIME: ("valueDateTime",),
    QuestionnaireItemType.TIME: ("valueTime",),
    QuestionnaireItemType.STRING: ("valueString",),
    QuestionnaireItemType.TEXT: ("valueString",),
    QuestionnaireItemType.URL: ("valueUri",),
    QuestionnaireItemType.CHOICE: ("valueCoding",),
    QuestionnaireItemType.OPEN_CHOICE: ("valueCoding", "valueString"),
    QuestionnaireItemType.ATTACHMENT: ("valueAttachment",),
    QuestionnaireItemType.REFERENCE: ("valueReference",),
    QuestionnaireItemType.QUANTITY: ("valueQuantity",),
}

_ANSWER_CHOICE = (
    "answerBoolean",
    "answerDecimal",
    "answerInteger",
    "answerDate",
    "answerDateTime",
    "answerTime",
    "answerString",
    "answerCoding",
    "answerQuantity",
    "answerReference",
)

_VALUE_CHOICE = (
    "valueBoolean",
    "valueDecimal",
    "valueInteger",
    "valueDate",
    "valueDateTime",
    "valueTime",
    "valueString",
    "valueUri",
    "valueAttachment",
    "valueCoding",
    "valueQuantity",
    "valueReference",
)


class QuestionnaireItemEnableWhen(BackboneElement):
    """A condition that must hold for an item to be shown."""

    __choice_groups__ = {"answer": (_ANSWER_CHOICE, True)}

    question: FhirString
    operator: EnableWhenOperator
    answerBoolean: Optional[FhirBoolean] = None
    answerDecimal: Optional[FhirDecimal] = None
    answerInteger: Optional[FhirInteger] = None
    answerDate: Optional[FhirDate] = None
    answerDateTime: Optional[FhirDateTime] = None
    answerTime: Optional[FhirTime] = None
    answerString: Optional[FhirString] = None
    answerCoding: Optional[Coding] = None
    answerQuantity: Optional[Quantity] = None
    answerReference: Optional[Reference] = None

    @model_validator(mode="after")
    def _check_exists_operand(self) -> "QuestionnaireItemEnableWhen":
        if self.operator is EnableWhenOperator.EXISTS and self.answerBoolean is None:
            raise BindingError("the exists operator takes a boolean answer", path="answerBoolean")
        return self


class QuestionnaireItemAnswerOption(BackboneElement):
    """A permitted answer for a choice item."""

    __choice_groups__ = {
        "value": (("valueInteger", "valueDate", "valueTime", "valueString", "valueCoding", "valueReference"), True)
    }

    valueInteger: Optional[FhirInteger] = None
    valueDate: Optional[FhirDate] = None
    valueTime: Optional[FhirTime] = None
    valueString: Optional[FhirString] = None
    valueCoding: Optional[Coding] = None
    valueReference: Optional[Reference] = None
    initialSelected: Optional[FhirBoolean] = None


class QuestionnaireItemInitial(BackboneElement):
    """A value pre-filled when the item is first rendered."""

    __choice_groups__ = {"value": (_VALUE_CHOICE, True)}

    valueBoolean: Optional[FhirBoolean] = None
    valueDecimal: Optional[FhirDecimal] = None
    valueInteger: Optional[FhirInteger] = None
    valueDate: Optional[FhirDate] = None
    valueDateTime: Optional[FhirDateTime] = None
    valueTime: Optional[FhirTime] = None
    valueString: Optional[FhirString] = None
    valueUri: Optional[FhirUri] = None
    valueAttachment: Optional[Attachment] = None
    valueCoding: Optional[Coding] = None
    valueQuantity: Optional[Quantity] = None
    valueReference: Optional[Reference] = None


class QuestionnaireItem(BackboneElement):
    """A question, group or display text within a questionnaire."""

    linkId: FhirString
    definition: Optional[FhirUri] = None
    code: Optional[List[Coding]] = None
    prefix: Optional[FhirString] = None
    text: Optional[FhirString] = None
    type: QuestionnaireItemType
    enableWhen: Optional[List[QuestionnaireItemEnableWhen]] = None
    enableBehavior: Optional[EnableBehavior] = None
    required: Optional[FhirBoolean] = None
    repeats: Optional[FhirBoolean] = None
    readOnly: Optional[FhirBoolean] = None
    maxLength: Optional[FhirInteger] = None
    answerValueSet: Optional[FhirCanonical] = None
    answerOption: Optional[List[QuestionnaireItemAnswerOption]] = None
    initial: Optional[List[QuestionnaireItemInitial]] = None
    item: Optional[List["QuestionnaireItem"]] = None

    @model_validator(mode="after")
    def _check_item_rules(self) -> "QuestionnaireItem":
        item_type = self.type
        # que-1
        if item_type is QuestionnaireItemType.GROUP and not self.item:
            raise CardinalityError("group items must have nested items", path="item")
        if item_type is QuestionnaireItemType.DISPLAY:
            if self.item:
                raise CardinalityError("display items cannot have nested items", path="item")
            # que-6, que-9
            for name in ("required", "repeats", "readOnly"):
                if getattr(self, name) is not None:
                    raise CardinalityError(f"display items cannot declare {name}", path=name)
        # que-4
        if self.answerOption and self.answerValueSet is not None:
            raise CardinalityError("answerOption and answerValueSet are mutually exclusive", path="answerValueSet")
        # que-5
        if (self.answerOption or self.answerValueSet is not None) and item_type not in CHOICE_TYPES:
            path = "answerOption" if self.answerOption else "answerValueSet"
            raise CardinalityError("only choice and open-choice items can have answer options", path=path)
        # que-8
        if self.initial and item_type in NON_QUESTION_TYPES:
            raise CardinalityError("group and display items cannot have initial values", path="initial")
        # que-10
        if self.maxLength is not None and item_type not in MAX_LENGTH_TYPES:
            raise CardinalityError(f"maxLength is not allowed on {item_type.value} items", path="maxLength")
        # que-11
        if self.initial and self.answerOption:
            raise CardinalityError("initial and answerOption are mutually exclusive", path="initial")
        # que-12
        if self.enableWhen and len(self.enableWhen) > 1 and self.enableBehavior is None:
            raise CardinalityError("several enableWhen conditions require enableBehavior", path="enableBehavior")
        # que-13
        if self.initial and len(self.initial) > 1 and not self.repeats:
            raise CardinalityError("only repeating items can have more than one initial value", path="initial")

        allowed = self.answer_variants()
        for index, initial in enumerate(self.initial or []):
            attribute, _ = initial.choice("value")
            if attribute not in allowed:
                raise BindingError(
                    f"{attribute} does not match item type {item_type.value}",
                    path=f"initial[{index}].{attribute}",
                )
        return self

    def answer_variants(self) -> Tuple[str, ...]:
        """value[x] variants an answer to this item may use."""
        variants = ANSWER_VARIANTS[self.type]
        if self.type in CHOICE_TYPES:
            extra = tuple(option.choice("value")[0] for option in self.answerOption or [])
            variants = variants + tuple(name for name in extra if name not in variants)
        return variants


@register_resource
class Questionnaire(DomainResource):
    """An organized collection of questions for gathering information."""

    __bindings__ = {
        **DomainResource.__bindings__,
        "status": ValueSetBinding(hl7.PUBLICATION_STATUS),
        "code": ValueSetBinding(LOINC_SYSTEM, BindingStrength.PREFERRED),
    }

    resourceType: Literal["Questionnaire"] = "Questionnaire"
    url: Optional[FhirUri] = None
    identifier: Optional[List[Identifier]] = None
    version: Optional[FhirString] = None
    name: Optional[FhirString] = None
    title: Optional[FhirString] = None
    derivedFrom: Optional[List[FhirCanonical]] = None
    status: PublicationStatus
    experimental: Optional[FhirBoolean] = None
    subjectType: Optional[List[FhirCode]] = None
    date: Optional[FhirDateTime] = None
    publisher: Optional[FhirString] = None
    description: Optional[FhirMarkdown] = None
    purpose: Optional[FhirMarkdown] = None
    copyright: Optional[FhirMarkdown] = None
    approvalDate: Optional[FhirDate] = None
    lastReviewDate: Optional[FhirDate] = None
    effectivePeriod: Optional[Period] = None
    code: Optional[List[Coding]] = None
    item: Optional[List[QuestionnaireItem]] = None

    @model_validator(mode="after")
    def _check_item_tree(self) -> "Questionnaire":
        for index, subject_type in enumerate(self.subjectType or []):
            if subject_type not in R4_RESOURCE_TYPES:
                raise BindingError(f"{str(subject_type)!r} is not a resource type", path=f"subjectType[{index}]")

        seen: Dict[str, str] = {}
        for item, path in self.iter_items():
            link_id = str(item.linkId)
            if link_id in seen:
                raise CardinalityError(
                    f"linkId {link_id!r} is already used at {seen[link_id]}", path=f"{path}.linkId"
                )
            seen[link_id] = path

        for item, path in self.iter_items():
            for index, condition in enumerate(item.enableWhen or []):
                if str(condition.question) not in seen:
                    raise CardinalityError(
                        f"enableWhen refers to unknown linkId {str(condition.question)!r}",
                        path=f"{path}.enableWhen[{index}].question",
                    )
        return self

    def iter_items(self) -> Iterator[Tuple[QuestionnaireItem, str]]:
        """Yield every item in the tree, depth first, with its path."""
        return _iter_question_items(self.item, "item")

    def find_item(self, link_id: str) -> Optional[QuestionnaireItem]:
        """Return the item with ``link_id`` anywhere in the tree."""
        for item, _ in self.iter_items():
            if item.linkId == link_id:
                return item
        return None


def _iter_question_items(
    items: Optional[List[QuestionnaireItem]], path: str
) -> Iterator[Tuple[QuestionnaireItem, str]]:
    for index, item in enumerate(items or []):
        item_path = f"{path}[{index}]"
        yield item, item_path
        yield from _iter_question_items(item.item, f"{item_path}.item")


class QuestionnaireResponseAnswer(BackboneElement):
    """A single answer to a question."""

    __choice_groups__ = {"value": (_VALUE_CHOICE, False)}

    valueBoolean: Optional[FhirBoolean] = None
    valueDecimal: Optional[FhirDecimal] = None
    valueInteger: Optional[FhirInteger] = None
    valueDate: Optional[FhirDate] = None
    valueDateTime: Optional[FhirDateTime] = None
    valueTime: Optional[FhirTime] = None
    valueString: Optional[FhirString] = None
    valueUri: Optional[FhirUri] = None
    valueAttachment: Optional[Attachment] = None
    valueCoding: Optional[Coding] = None
    valueQuantity: Optional[Quantity] = None
    valueReference: Optional[Reference] = None
    item: Optional[List["QuestionnaireResponseItem"]] = None


class QuestionnaireResponseItem(BackboneElement):
    """A group or question answered in a response."""

    linkId: FhirString
    definition: Optional[FhirUri] = None
    text: Optional[FhirString] = None
    answer: Optional[List[QuestionnaireResponseAnswer]] = None
    item: Optional[List["QuestionnaireResponseItem"]] = None

    @model_validator(mode="after")
    def _check_answer_or_items(self) -> "QuestionnaireResponseItem":
        # qrs-1
        if self.answer and self.item:
            raise CardinalityError("an item cannot have both answers and nested items", path="item")
        return self


QuestionnaireResponseAnswer.model_rebuild()
QuestionnaireResponseItem.model_rebuild()


@register_resource
class QuestionnaireResponse(DomainResource):
    """A set of answers to the questions of a questionnaire."""

    __bindings__ = {
        **DomainResource.__bindings__,
        "status": ValueSetBinding(hl7.QUESTIONNAIRE_ANSWERS_STATUS),
    }
    __reference_targets__ = {
        "basedOn": ("CarePlan", "ServiceRequest"),
        "partOf": ("Observation", "Procedure"),
        "subject": ("Resource",),
        "encounter": ("Encounter",),
        "author": ("Device", "Practitioner", "PractitionerRole", "Patient", "RelatedPerson", "Organization"),
        "source": ("Patient", "Practitioner", "PractitionerRole", "RelatedPerson"),
    }

    resourceType: Literal["QuestionnaireResponse"] = "QuestionnaireResponse"
    identifier: Optional[Identifier] = None
    basedOn: Optional[List[Reference]] = None
    partOf: Optional[List[Reference]] = None
    questionnaire: Optional[FhirCanonical] = None
    status: QuestionnaireResponseStatus
    subject: Optional[Reference] = None
    encounter: Optional[Reference] = None
    authored: Optional[FhirDateTime] = None
    author: Optional[Reference] = None
    source: Optional[Reference] = None
    item: Optional[List[QuestionnaireResponseItem]] = None

    def iter_items(self) -> Iterator[Tuple[QuestionnaireResponseItem, str]]:
        """Yield every item, including those nested under answers, with its path."""
        return _iter_response_items(self.item, "item")

    def answers_for(self, link_id: str) -> List[QuestionnaireResponseAnswer]:
        """All answers given to ``link_id``."""
        return [answer for item, _ in self.iter_items() if item.linkId == link_id for answer in item.answer or []]


def _iter_response_items(
    items: Optional[List[QuestionnaireResponseItem]], path: str
) -> Iterator[Tuple[QuestionnaireResponseItem, str]]:
    for index, item in enumerate(items or []):
        item_path = f"{path}[{index}]"
        yield item, item_path
        yield from _iter_response_items(item.item, f"{item_path}.item")
        for answer_index, answer in enumerate(item.answer or []):
            yield from _iter_response_items(answer.item, f"{item_path}.answer[{answer_index}].item")


# enableWhen evaluation

_ORDERING: Dict[EnableWhenOperator, Callable[[Any, Any], bool]] = {
    EnableWhenOperator.GREATER_THAN: operator.gt,
    EnableWhenOperator.LESS_THAN: operator.lt,
    EnableWhenOperator.GREATER_OR_EQUAL: operator.ge,
    EnableWhenOperator.LESS_OR_EQUAL: operator.le,
}
_NUMERIC_KINDS = frozenset({"Decimal", "Integer"})
_ORDERED_KINDS = frozenset({"Decimal", "Integer", "Date", "DateTime", "Time", "String", "Quantity"})

AnswerValue = Tuple[str, Any]


def _kind(attribute: str) -> str:
    for prefix in ("answer", "value"):
        if attribute.startswith(prefix):
            return attribute[len(prefix):]
    return attribute


def _same_kind(first: str, second: str) -> bool:
    return first == second or (first in _NUMERIC_KINDS and second in _NUMERIC_KINDS)


def _comparable(value: Any) -> Any:
    if isinstance(value, Quantity):
        return value.value
    if isinstance(value, Reference):
        return str(value.reference) if value.reference is not None else None
    if isinstance(value, (FhirDate, FhirDateTime)):
        return value.earliest()
    if isinstance(value, FhirTime):
        return value.to_time()
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    return str(value)


def _equals(value: Any, expected: Any) -> bool:
    if isinstance(expected, Coding):
        if not isinstance(value, Coding) or expected.code is None:
            return False
        return value.matches(str(expected.system) if expected.system is not None else None, str(expected.code))
    return _comparable(value) == _comparable(expected)


def condition_met(condition: QuestionnaireItemEnableWhen, answers: List[AnswerValue]) -> bool:
    """Evaluate one enableWhen condition against the answers to its question."""
    attribute, expected = condition.choice("answer")
    if condition.operator is EnableWhenOperator.EXISTS:
        return bool(answers) == bool(expected)

    kind = _kind(attribute)
    candidates = [value for answer_attribute, value in answers if _same_kind(_kind(answer_attribute), kind)]
    if condition.operator is EnableWhenOperator.EQUALS:
        return any(_equals(value, expected) for value in candidates)
    if condition.operator is EnableWhenOperator.NOT_EQUALS:
        return any(not _equals(value, expected) for value in candidates)
    if kind not in _ORDERED_KINDS:
        return False
    compare = _ORDERING[condition.operator]
    target = _comparable(expected)
    return any(
        _comparable(value) is not None and target is not None and compare(_comparable(value), target)
        for value in candidates
    )


def is_enabled(item: QuestionnaireItem, answers_by_link: Mapping[str, List[AnswerValue]]) -> bool:
    """Return True when an item's enableWhen conditions are satisfied."""
    if not item.enableWhen:
        return True
    results = [condition_met(condition, answers_by_link.get(str(condition.question), []))
               for condition in item.enableWhen]
    if item.enableBehavior is EnableBehavior.ANY:
        return any(results)
    return all(results)


# Response validation


def _issue(validation_type: ValidationType, path: str, message: str,
           severity: ValidationSeverity = ValidationSeverity.ERROR) -> ValidationIssue:
    return ValidationIssue(severity, validation_type, path, message)


def _option_matches(item: QuestionnaireItem, attribute: str, value: Any) -> bool:
    for option in item.answerOption or []:
        option_attribute, option_value = option.choice("value")
        if option_attribute == attribute and _equals(value, option_value):
            return True
    return False


def _answer_issues(item: QuestionnaireItem, response_item: QuestionnaireResponseItem, path: str) -> List[ValidationIssue]:
    issues = []
    answers = response_item.answer or []
    if answers and item.type in NON_QUESTION_TYPES:
        return [_issue(ValidationType.VALUE_SET, f"{path}.answer",
                       f"{item.type.value} item {str(item.linkId)!r} cannot be answered")]
    if len(answers) > 1 and not item.repeats:
        issues.append(_issue(ValidationType.CARDINALITY, f"{path}.answer",
                             f"item {str(item.linkId)!r} does not repeat but has {len(answers)} answers"))

    allowed = item.answer_variants()
    for index, answer in enumerate(answers):
        attribute, value = answer.choice("value")
        if attribute is None:
            continue
        answer_path = f"{path}.answer[{index}].{attribute}"
        if attribute not in allowed:
            issues.append(_issue(ValidationType.VALUE_SET, answer_path,
                                 f"{attribute} does not match item type {item.type.value}"))
            continue
        free_text = item.type is QuestionnaireItemType.OPEN_CHOICE and attribute == "valueString"
        if item.answerOption and not free_text and not _option_matches(item, attribute, value):
            issues.append(_issue(ValidationType.VALUE_SET, answer_path,
                                 f"answer is not one of the options of item {str(item.linkId)!r}"))
        if attribute == "valueString" and item.maxLength is not None and len(value) > item.maxLength:
            issues.append(_issue(ValidationType.CARDINALITY, answer_path,
                                 f"answer is longer than maxLength {int(item.maxLength)}"))
    return issues


def _missing_required(
    items: Optional[List[QuestionnaireItem]],
    answered: Set[str],
    answers_by_link: Mapping[str, List[AnswerValue]],
) -> Iterator[QuestionnaireItem]:
    for item in items or []:
        if not is_enabled(item, answers_by_link):
            continue
        link_id = str(item.linkId)
        if link_id not in answered:
            if item.required:
                yield item
            continue
        yield from _missing_required(item.item, answered, answers_by_link)


def response_issues(questionnaire: Questionnaire, response: QuestionnaireResponse) -> List[ValidationIssue]:
    """Every issue found checking ``response`` against ``questionnaire``."""
    root = "QuestionnaireResponse"
    items_by_link = {str(item.linkId): item for item, _ in questionnaire.iter_items()}
    answers_by_link: Dict[str, List[AnswerValue]] = defaultdict(list)
    answered: Set[str] = set()
    issues: List[ValidationIssue] = []

    for response_item, path in response.iter_items():
        link_id = str(response_item.linkId)
        item_path = join_path(root, path)
        item = items_by_link.get(link_id)
        if item is None:
            issues.append(_issue(ValidationType.VALUE_SET, f"{item_path}.linkId",
                                 f"linkId {link_id!r} is not defined by the questionnaire"))
            continue
        issues.extend(_answer_issues(item, response_item, item_path))
        for answer in response_item.answer or []:
            attribute, value = answer.choice("value")
            if attribute is not None:
                answers_by_link[link_id].append((attribute, value))
                answered.add(link_id)
        if response_item.item:
            answered.add(link_id)

    if response.status in (QuestionnaireResponseStatus.COMPLETED, QuestionnaireResponseStatus.AMENDED):
        for item in _missing_required(questionnaire.item, answered, answers_by_link):
            issues.append(_issue(ValidationType.CARDINALITY, f"{root}.item",
                                 f"required item {str(item.linkId)!r} is not answered"))

    if response.questionnaire is not None and questionnaire.url is not None:
        if response.questionnaire.url != str(questionnaire.url):
            issues.append(_issue(ValidationType.REFERENCE, f"{root}.questionnaire",
                                 f"response answers {str(response.questionnaire)!r}, not {str(questionnaire.url)!r}",
                                 ValidationSeverity.WARNING))
    return issues


def validate_response(questionnaire: Questionnaire, response: QuestionnaireResponse) -> ValidationOutcome:
    """Validate a response against the questionnaire it answers.

    Returns:
        Outcome holding the response and any warnings

    Raises:
        BindingError: If an answer has the wrong type or is not an allowed option
        CardinalityError: If answers repeat, overflow maxLength or a required item is unanswered
    """
    issues = response_issues(questionnaire, response)
    errors = [issue.to_error() for issue in issues if issue.is_error]
    if errors:
        errors[0].issues = errors
        raise errors[0]
    logger.debug("questionnaire_response_validated", questionnaire=questionnaire.url, warnings=len(issues))
    return ValidationOutcome(response, issues)


# Building responses


def _option_answer(item: QuestionnaireItem, value: Any) -> Optional[Dict[str, Any]]:
    for option in item.answerOption or []:
        attribute, option_value = option.choice("value")
        if attribute == "valueCoding" and option_value.code is not None and str(option_value.code) == str(value):
            return {attribute: option_value}
        if attribute == "valueInteger" and isinstance(value, int) and int(option_value) == value:
            return {attribute: option_value}
        if attribute == "valueString" and str(option_value) == value:
            return {attribute: option_value}
    return None


def answer_value(value: Any, item: Optional[QuestionnaireItem] = None) -> QuestionnaireResponseAnswer:
    """Build an answer from a Python value.

    Without an item: booleans, integers and floats map to their FHIR
    variants, all-digit strings to a bare Coding code, other strings to
    valueString. With a choice item, a value naming one of its options
    answers with that option; with a string item, strings stay strings.

    Raises:
        FormatError: If the value has no FHIR answer form
    """
    if isinstance(value, QuestionnaireResponseAnswer):
        return value
    if item is not None and item.type in CHOICE_TYPES and not isinstance(value, (bool, Coding)):
        option = _option_answer(item, value)
        if option is not None:
            return QuestionnaireResponseAnswer(**option)

    if isinstance(value, bool):
        return QuestionnaireResponseAnswer(valueBoolean=value)
    if isinstance(value, int):
        return QuestionnaireResponseAnswer(valueInteger=value)
    if isinstance(value, (float, Decimal)):
        return QuestionnaireResponseAnswer(valueDecimal=FhirDecimal(value))
    if isinstance(value, Coding):
        return QuestionnaireResponseAnswer(valueCoding=value)
    if isinstance(value, Quantity):
        return QuestionnaireResponseAnswer(valueQuantity=value)
    if isinstance(value, Reference):
        return QuestionnaireResponseAnswer(valueReference=value)
    if isinstance(value, Attachment):
        return QuestionnaireResponseAnswer(valueAttachment=value)
    if isinstance(value, datetime):
        return QuestionnaireResponseAnswer(valueDateTime=FhirDateTime.from_datetime(value))
    if isinstance(value, date):
        return QuestionnaireResponseAnswer(valueDate=FhirDate.from_date(value))
    if isinstance(value, time):
        return QuestionnaireResponseAnswer(valueTime=FhirTime(value.isoformat()))
    if isinstance(value, str):
        textual = item is not None and item.type in (QuestionnaireItemType.STRING, QuestionnaireItemType.TEXT)
        if value.isdigit() and not textual:
            return QuestionnaireResponseAnswer(valueCoding=Coding(code=value))
        return QuestionnaireResponseAnswer(valueString=value)
    raise FormatError("answer", value, message=f"cannot answer with a {type(value).__name__}")


@dataclass
class QuestionnaireResponseInput:
    """Answers keyed by linkId plus who answered them, and when."""

    patient_id: str
    answers: Mapping[str, Any]
    questionnaire: Union[Questionnaire, str, None] = None
    id: Optional[str] = None
    status: Union[QuestionnaireResponseStatus, str] = QuestionnaireResponseStatus.COMPLETED
    patient_display: Optional[str] = None
    encounter_id: Optional[str] = None
    author_id: Optional[str] = None
    author_type: Optional[str] = None
    author_display: Optional[str] = None
    authored: Union[str, datetime, None] = None


def create_questionnaire_response(data: QuestionnaireResponseInput) -> QuestionnaireResponse:
    """Create a QuestionnaireResponse from answers keyed by linkId.

    When ``data.questionnaire`` is a Questionnaire, answers are shaped by
    the item types and the response is validated against it.

    Raises:
        FHIRValidationError: If the response is malformed or does not fit the questionnaire
    """
    definition = data.questionnaire if isinstance(data.questionnaire, Questionnaire) else None
    if definition is not None:
        canonical = str(definition.url) if definition.url is not None else None
    else:
        canonical = data.questionnaire

    items = []
    for link_id, value in data.answers.items():
        item = definition.find_item(link_id) if definition is not None else None
        values = value if isinstance(value, (list, tuple)) else [value]
        items.append(
            QuestionnaireResponseItem(
                linkId=link_id,
                text=item.text if item is not None else None,
                answer=[answer_value(entry, item) for entry in values],
            )
        )

    authored = data.authored or datetime.now(timezone.utc)
    if isinstance(authored, datetime):
        authored = FhirDateTime.from_datetime(authored)

    response = QuestionnaireResponse(
        id=data.id,
        questionnaire=canonical,
        status=data.status,
        subject=create_reference("Patient", data.patient_id, data.patient_display),
        encounter=create_reference("Encounter", data.encounter_id) if data.encounter_id else None,
        author=(
            create_reference(data.author_type, data.author_id, data.author_display)
            if data.author_id and data.author_type
            else None
        ),
        authored=authored,
        item=items,
    )
    if definition is not None:
        validate_response(definition, response)
    return response


def calculate_questionnaire_score(response: QuestionnaireResponse, link_ids: Optional[Iterable[str]] = None) -> int:
    """Sum integer answers and integer-valued coding codes.

    Args:
        response: Response to score
        link_ids: Restrict the sum to these items; all items when None
    """
    wanted = set(link_ids) if link_ids is not None else None
    total = 0
    for item, _ in response.iter_items():
        if wanted is not None and str(item.linkId) not in wanted:
            continue
        for answer in item.answer or []:
            if answer.valueInteger is not None:
                total += int(answer.valueInteger)
            elif answer.valueCoding is not None and answer.valueCoding.code is not None:
                code = str(answer.valueCoding.code)
                if INTEGER_PATTERN.fullmatch(code):
                    total += int(code)
    return total
