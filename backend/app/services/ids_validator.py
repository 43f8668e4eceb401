"""
IDS Validator Service
Parses Information Delivery Specification (IDS) XML documents and checks
BIM elements against them.

Only the facets used by the platform are supported: entity applicability
plus entity, attribute, property, classification and material requirements
with ``required`` / ``prohibited`` / ``optional`` cardinality.
A specification without applicability facets applies to every element.
"""
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from workflow_engine.node_executors import element_properties

logger = logging.getLogger(__name__)

FACET_TYPES = ('entity', 'attribute', 'property', 'classification', 'material')
CARDINALITIES = ('required', 'prohibited', 'optional')

# IFC attributes that live on the element row rather than in its property sets
ELEMENT_ATTRIBUTES = {'name': 'name', 'globalid': 'guid', 'type': 'type'}


class IdsParseError(ValueError):
    """Raised when an IDS document cannot be parsed."""


@dataclass
class IdsFacet:
    type: str
    name: str
    value: Optional[str] = None
    property_set: Optional[str] = None
    cardinality: str = 'required'


@dataclass
class IdsSpecification:
    name: str
    description: Optional[str] = None
    applicability: List[IdsFacet] = field(default_factory=list)
    requirements: List[IdsFacet] = field(default_factory=list)


@dataclass
class IdsDocument:
    version: str
    title: Optional[str]
    specifications: List[IdsSpecification]


def _local(tag: str) -> str:
    return tag.rsplit('}', 1)[-1]


def _child(elem: ET.Element, name: str) -> Optional[ET.Element]:
    return next((c for c in elem if _local(c.tag) == name), None)


def _children(elem: ET.Element, name: str) -> List[ET.Element]:
    return [c for c in elem if _local(c.tag) == name]


def _simple_value(elem: Optional[ET.Element]) -> Optional[str]:
    """Text of ``<x><simpleValue>v</simpleValue></x>`` or of ``<x>v</x>``."""
    if elem is None:
        return None
    simple = _child(elem, 'simpleValue')
    if simple is not None:
        return (simple.text or '').strip()
    text = (elem.text or '').strip()
    return text or None


def _parse_facet(elem: ET.Element) -> IdsFacet:
    facet_type = _local(elem.tag)
    if facet_type == 'property':
        name = _simple_value(_child(elem, 'baseName')) or _simple_value(_child(elem, 'name'))
        property_set = _simple_value(_child(elem, 'propertySet'))
    elif facet_type == 'classification':
        name = _simple_value(_child(elem, 'system')) or _simple_value(_child(elem, 'value'))
        property_set = None
    else:
        name = _simple_value(_child(elem, 'name'))
        property_set = None

    cardinality = elem.get('cardinality')
    if cardinality is None:
        # IDS 0.9 expressed cardinality through minOccurs/maxOccurs
        if elem.get('maxOccurs') == '0':
            cardinality = 'prohibited'
        elif elem.get('minOccurs') == '0':
            cardinality = 'optional'
        else:
            cardinality = 'required'
    if cardinality not in CARDINALITIES:
        raise IdsParseError(f"Invalid cardinality '{cardinality}' on {facet_type} facet")

    value = None if facet_type == 'classification' else _simple_value(_child(elem, 'value'))
    return IdsFacet(
        type=facet_type,
        name=name or '',
        value=value,
        property_set=property_set,
        cardinality=cardinality,
    )


def _parse_facets(section: Optional[ET.Element]) -> List[IdsFacet]:
    if section is None:
        return []
    return [_parse_facet(c) for c in section if _local(c.tag) in FACET_TYPES]


class IdsValidator:
    """
    Spec validator collaborator for ``ids-validator`` nodes.
    """

    def parse(self, content: str) -> IdsDocument:
        """
        Parse IDS XML text.

        Raises:
            IdsParseError: If the XML is malformed or has no ``ids`` root
        """
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise IdsParseError(f"Invalid IDS file: {e}") from e

        if _local(root.tag).lower() != 'ids':
            raise IdsParseError("Invalid IDS file: missing root element")

        info = _child(root, 'info')
        title = _simple_value(_child(info, 'title')) if info is not None else None

        specifications = []
        spec_section = _child(root, 'specifications')
        for spec in _children(spec_section, 'specification') if spec_section is not None else []:
            specifications.append(IdsSpecification(
                name=spec.get('name') or 'Unnamed Specification',
                description=spec.get('description'),
                applicability=_parse_facets(_child(spec, 'applicability')),
                requirements=_parse_facets(_child(spec, 'requirements')),
            ))

        logger.debug("Parsed IDS document with %d specifications", len(specifications))
        return IdsDocument(version=root.get('version', '1.0'), title=title, specifications=specifications)

    def validate(self, elements: List[Dict[str, Any]], document: IdsDocument) -> Dict[str, Any]:
        """
        Check every applicable element against every specification.

        ``complianceRate`` is the share (0-100) of element/specification checks
        that passed.
        """
        element_results: List[Dict[str, Any]] = []
        specification_results: List[Dict[str, Any]] = []

        for spec in document.specifications:
            applicable = [el for el in elements if self._is_applicable(el, spec)]
            spec_results = [self._check_element(el, spec) for el in applicable]
            passed = sum(1 for r in spec_results if r['passed'])

            specification_results.append({
                'name': spec.name,
                'description': spec.description,
                'totalApplicable': len(applicable),
                'passed': passed,
                'failed': len(spec_results) - passed,
                'complianceRate': passed / len(applicable) * 100 if applicable else 0,
            })
            element_results.extend(spec_results)

        passed_checks = sum(1 for r in element_results if r['passed'])
        validated = {r['elementId'] for r in element_results}
        failed = {r['elementId'] for r in element_results if not r['passed']}

        return {
            'totalElements': len(elements),
            'validatedElements': len(validated),
            'passedElements': len(validated - failed),
            'failedElements': len(failed),
            'complianceRate': passed_checks / len(element_results) * 100 if element_results else 0,
            'specificationResults': specification_results,
            'elementResults': element_results,
        }

    def _is_applicable(self, element: Dict[str, Any], spec: IdsSpecification) -> bool:
        if not spec.applicability:
            return True
        return all(self._facet_present(element, facet) for facet in spec.applicability)

    def _check_element(self, element: Dict[str, Any], spec: IdsSpecification) -> Dict[str, Any]:
        failures = []
        for requirement in spec.requirements:
            message = self._check_requirement(element, requirement)
            if message:
                failures.append({'requirement': requirement.type, 'name': requirement.name, 'message': message})

        return {
            'elementId': element.get('id', element.get('expressId')),
            'elementType': element.get('type'),
            'elementName': element.get('name'),
            'specificationName': spec.name,
            'passed': not failures,
            'failures': failures,
        }

    def _check_requirement(self, element: Dict[str, Any], facet: IdsFacet) -> Optional[str]:
        found, actual = self._lookup(element, facet)
        label = f"{facet.type} '{facet.name}'"

        if facet.cardinality == 'prohibited':
            if found and (facet.value is None or self._matches(actual, facet.value)):
                return f"Prohibited {label} is present"
            return None

        if not found:
            return f"Required {label} is missing" if facet.cardinality == 'required' else None

        if facet.value is not None and not self._matches(actual, facet.value):
            return f"{label} has value '{actual}', expected '{facet.value}'"
        return None

    def _facet_present(self, element: Dict[str, Any], facet: IdsFacet) -> bool:
        found, actual = self._lookup(element, facet)
        if not found:
            return False
        return facet.value is None or self._matches(actual, facet.value)

    @staticmethod
    def _lookup(element: Dict[str, Any], facet: IdsFacet):
        """Return ``(found, value)`` for the facet on the element."""
        props = element_properties(element)

        if facet.type == 'entity':
            ifc_type = str(element.get('type') or '')
            return ifc_type.upper() == facet.name.upper(), ifc_type

        if facet.type == 'attribute':
            key = ELEMENT_ATTRIBUTES.get(facet.name.lower())
            if key and element.get(key) not in (None, ''):
                return True, element.get(key)
            if facet.name in props:
                return True, props[facet.name]
            return False, None

        if facet.type == 'property':
            scoped = props.get(facet.property_set) if facet.property_set else None
            if isinstance(scoped, dict) and facet.name in scoped:
                return True, scoped[facet.name]
            if facet.name in props and not isinstance(props[facet.name], dict):
                return True, props[facet.name]
            return False, None

        if facet.type == 'classification':
            bsdd_class = element.get('bsddClass')
            if bsdd_class:
                return True, bsdd_class.get('code') or bsdd_class.get('name')
            if props.get('Classification'):
                return True, props['Classification']
            return False, None

        if facet.type == 'material':
            material = props.get('Material')
            return material not in (None, ''), material

        return False, None

    @staticmethod
    def _matches(actual: Any, expected: str) -> bool:
        # IDS values compare as case-insensitive text: "TRUE" matches True
        return str(actual).strip().lower() == expected.strip().lower()
