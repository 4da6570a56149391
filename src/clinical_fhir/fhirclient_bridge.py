"""Conversion to and from ``fhirclient`` models.

Lets code built on the SMART ``fhirclient`` package consume resources made
here and hand its own models back. No server is contacted.
"""

import importlib
import json
from typing import Any

from fhirclient.models.fhirabstractbase import FHIRValidationError as FHIRClientValidationError

from clinical_fhir.core.exceptions import BindingError, FormatError
from clinical_fhir.fhir_base import Resource
from clinical_fhir.fhir_converter import dumps, parse_resource
from clinical_fhir.primitives import FhirDecimal
from clinical_fhir.utils.logging import get_logger

logger = get_logger(__name__)


def fhirclient_class(resource_type: str) -> Any:
    """Return the ``fhirclient.models`` class for ``resource_type``.

    Raises:
        BindingError: If fhirclient has no model of that name
    """
    try:
        module = importlib.import_module(f"fhirclient.models.{resource_type.lower()}")
        return getattr(module, resource_type)
    except (ImportError, AttributeError):
        raise BindingError(f"fhirclient has no {resource_type} model", path="resourceType") from None


def to_fhirclient(resource: Resource, strict: bool = True) -> Any:
    """Convert a resource into the matching ``fhirclient`` model instance.

    Args:
        resource: Resource to convert
        strict: Let fhirclient reject elements it does not know

    Raises:
        FormatError: If fhirclient refuses the JSON
    """
    model_class = fhirclient_class(resource.resourceType)
    try:
        model = model_class(jsondict=json.loads(dumps(resource)), strict=strict)
    except FHIRClientValidationError as exc:
        raise FormatError("fhirclient", resource.resourceType, path=resource.resourceType, message=str(exc)) from exc
    logger.debug("converted_to_fhirclient", resource_type=resource.resourceType, resource_id=resource.id)
    return model


def from_fhirclient(model: Any) -> Resource:
    """Convert a ``fhirclient`` model instance back into a validated resource.

    fhirclient holds decimals as floats, so a decimal comes back as the
    shortest literal for that float (``1.50`` returns as ``1.5``).

    Raises:
        FHIRValidationError: If the model does not form a valid resource
    """
    data = json.loads(json.dumps(model.as_json()), parse_float=FhirDecimal)
    return parse_resource(data)
