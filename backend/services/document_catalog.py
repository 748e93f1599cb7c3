"""
Property Document Tracker - Document Type Catalog

Static, ordered document-type definitions for every transaction workflow.

Workflow Variants:
- DIRECT_ADDITION: Property added directly to the portfolio (regular catalog)
- PURCHASE_PIPELINE: Property acquired through the purchase pipeline (regular catalog)
- HANDOVER: Property being handed over to a client (regular catalog)
- SUBDIVISION: Titled property being subdivided (subdivision catalog)

The regular catalog occupies actual stages 1-10. The subdivision catalog occupies
actual stages 10-16 and is displayed as 1-7; `registered_title` (stage 10) is the
only document type present in both, as the prerequisite for subdividing.

Document types sharing a `group_key` collapse into one multi-document stage
with its own internal ordering (see stage_gate.py).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, List, Tuple


# =============================================================================
# WORKFLOW VARIANTS
# =============================================================================

class WorkflowVariant(str, Enum):
    """Transaction pathway that determines which catalog applies."""
    DIRECT_ADDITION = "direct_addition"
    PURCHASE_PIPELINE = "purchase_pipeline"
    SUBDIVISION = "subdivision"
    HANDOVER = "handover"


WORKFLOW_LABELS: Dict[str, str] = {
    WorkflowVariant.DIRECT_ADDITION.value: "Direct Addition",
    WorkflowVariant.PURCHASE_PIPELINE.value: "Purchase Pipeline",
    WorkflowVariant.HANDOVER.value: "Property Handover",
    WorkflowVariant.SUBDIVISION.value: "Subdivision Process",
}


# =============================================================================
# DOCUMENT TYPE DEFINITIONS
# =============================================================================

@dataclass(frozen=True)
class DocumentTypeDefinition:
    """A named category of required or optional evidence with a catalog position."""
    key: str
    label: str
    required: bool
    order_index: int
    group_key: Optional[str] = None
    description: str = ""

    def to_dict(self) -> Dict:
        return {
            "key": self.key,
            "label": self.label,
            "description": self.description,
            "required": self.required,
            "group_key": self.group_key,
            "order_index": self.order_index,
        }


AGREEMENT_GROUP = "agreement"

# Label shown for a collapsed multi-document stage
GROUP_LABELS: Dict[str, str] = {
    AGREEMENT_GROUP: "Agreement with Seller Documents",
}

GROUP_DESCRIPTIONS: Dict[str, str] = {
    AGREEMENT_GROUP: "Complete set of seller agreement and verification documents",
}


def _definition(
    order_index: int,
    key: str,
    label: str,
    description: str,
    required: bool = True,
    group_key: Optional[str] = None
) -> DocumentTypeDefinition:
    return DocumentTypeDefinition(
        key=key,
        label=label,
        required=required,
        order_index=order_index,
        group_key=group_key,
        description=description,
    )


# Master list in catalog order. Variant catalogs are ordered subsets of it.
DOCUMENT_TYPES: Tuple[DocumentTypeDefinition, ...] = (
    # Regular workflow (actual stages 1-10)
    _definition(1, "title_copy", "Copy of Title / Title Number",
                "Original title deed or certified copy with title number"),
    _definition(2, "property_images", "Property Images",
                "Photographs of the property (exterior, interior, boundaries)"),
    _definition(3, "search_certificate", "Search Certificate",
                "Official property search from the Ministry of Lands"),
    _definition(4, "minutes_decision", "Minutes / Decision to Buy",
                "Meeting minutes or documentation of the decision to buy"),
    _definition(5, "original_title_deed", "Original Title Deed",
                "Seller's original title deed", group_key=AGREEMENT_GROUP),
    _definition(6, "seller_id_passport", "Seller ID / Passport",
                "Identity document of the seller", group_key=AGREEMENT_GROUP),
    _definition(7, "spousal_consent", "Spousal Consent",
                "Consent of the seller's spouse to the sale", group_key=AGREEMENT_GROUP),
    _definition(8, "spouse_id_kra", "Spouse ID & KRA PIN",
                "Identity document and KRA PIN of the seller's spouse", group_key=AGREEMENT_GROUP),
    _definition(9, "signed_lra33", "Signed LRA 33 Transfer Form",
                "Transfer form signed by the seller", group_key=AGREEMENT_GROUP),
    _definition(10, "lcb_consent", "LCB Consent",
                "Land Control Board consent for the transaction"),
    _definition(11, "valuation_report", "Valuation Report",
                "Professional property valuation report"),
    _definition(12, "assessment", "Assessment",
                "Property assessment documentation"),
    _definition(13, "stamp_duty", "Stamp Duty Payment",
                "Stamp duty payment receipts and confirmation"),
    _definition(14, "registered_title", "Registered Title",
                "Final registered title deed after transfer completion", required=False),

    # Subdivision workflow (actual stages 11-16, after the shared registered title)
    _definition(15, "minutes_decision_subdivision", "Minutes / Decision to Subdivide",
                "Meeting minutes recording the decision to subdivide"),
    _definition(16, "search_certificate_subdivision", "Search Certificate (Subdivision)",
                "Official search on the mother title before subdivision"),
    _definition(17, "lcb_consent_subdivision", "LCB Consent (Subdivision)",
                "Land Control Board consent to subdivide"),
    _definition(18, "mutation_forms", "Mutation Forms",
                "Approved mutation forms and drawings"),
    _definition(19, "beaconing_docs", "Beaconing Documents",
                "Survey beaconing records for the new plots"),
    _definition(20, "title_registration_subdivision", "New Title Registration",
                "Registered titles for the subdivided plots"),
)

DEFINITIONS_BY_KEY: Dict[str, DocumentTypeDefinition] = {d.key: d for d in DOCUMENT_TYPES}

# Subdivision keys, prerequisite first. registered_title is shared with the regular catalog.
SUBDIVISION_DOC_KEYS: Tuple[str, ...] = (
    "registered_title",
    "minutes_decision_subdivision",
    "search_certificate_subdivision",
    "lcb_consent_subdivision",
    "mutation_forms",
    "beaconing_docs",
    "title_registration_subdivision",
)

SHARED_DOC_KEYS: Tuple[str, ...] = ("registered_title",)

REGULAR_DOC_KEYS: Tuple[str, ...] = tuple(
    d.key for d in DOCUMENT_TYPES
    if d.key not in SUBDIVISION_DOC_KEYS or d.key in SHARED_DOC_KEYS
)


def _ordered(keys) -> Tuple[DocumentTypeDefinition, ...]:
    return tuple(sorted((DEFINITIONS_BY_KEY[k] for k in keys), key=lambda d: d.order_index))


_REGULAR_CATALOG = _ordered(REGULAR_DOC_KEYS)
_SUBDIVISION_CATALOG = _ordered(SUBDIVISION_DOC_KEYS)

# Format: {variant: ordered definitions}
DOCUMENT_TYPE_CATALOG: Dict[str, Tuple[DocumentTypeDefinition, ...]] = {
    WorkflowVariant.DIRECT_ADDITION.value: _REGULAR_CATALOG,
    WorkflowVariant.PURCHASE_PIPELINE.value: _REGULAR_CATALOG,
    WorkflowVariant.HANDOVER.value: _REGULAR_CATALOG,
    WorkflowVariant.SUBDIVISION.value: _SUBDIVISION_CATALOG,
}

# Actual stage ranges; displayed stage = actual stage - offset
STAGE_RANGES: Dict[str, Tuple[int, int]] = {
    WorkflowVariant.DIRECT_ADDITION.value: (1, 10),
    WorkflowVariant.PURCHASE_PIPELINE.value: (1, 10),
    WorkflowVariant.HANDOVER.value: (1, 10),
    WorkflowVariant.SUBDIVISION.value: (10, 16),
}

DISPLAY_OFFSETS: Dict[str, int] = {
    WorkflowVariant.DIRECT_ADDITION.value: 0,
    WorkflowVariant.PURCHASE_PIPELINE.value: 0,
    WorkflowVariant.HANDOVER.value: 0,
    WorkflowVariant.SUBDIVISION.value: 9,
}


# =============================================================================
# CATALOG LOOKUPS
# =============================================================================

def _variant_value(variant) -> str:
    if isinstance(variant, WorkflowVariant):
        return variant.value
    if variant in DOCUMENT_TYPE_CATALOG:
        return variant
    return WorkflowVariant.DIRECT_ADDITION.value


def get_catalog(variant) -> Tuple[DocumentTypeDefinition, ...]:
    """Ordered definitions for a variant. Unknown variants get the direct-addition catalog."""
    return DOCUMENT_TYPE_CATALOG[_variant_value(variant)]


def get_definition(key: str) -> Optional[DocumentTypeDefinition]:
    return DEFINITIONS_BY_KEY.get(key)


def is_doc_type_allowed(key: str, variant) -> bool:
    """Check whether a document type belongs to the variant's catalog."""
    return any(d.key == key for d in get_catalog(variant))


def get_group_members(
    group_key: str,
    catalog: Optional[Tuple[DocumentTypeDefinition, ...]] = None
) -> List[DocumentTypeDefinition]:
    """Members of a group in catalog order, restricted to `catalog` when given."""
    source = catalog if catalog is not None else DOCUMENT_TYPES
    return [d for d in source if d.group_key == group_key]


def get_group_label(group_key: str) -> str:
    return GROUP_LABELS.get(group_key, group_key.replace("_", " ").title())


def get_stage_range(variant) -> Tuple[int, int]:
    return STAGE_RANGES[_variant_value(variant)]


def get_stage_numbers(variant) -> List[int]:
    low, high = get_stage_range(variant)
    return list(range(low, high + 1))


def is_stage_visible(stage_number: int, variant) -> bool:
    low, high = get_stage_range(variant)
    return low <= stage_number <= high


def get_display_offset(variant) -> int:
    return DISPLAY_OFFSETS[_variant_value(variant)]


def get_display_stage_number(actual_stage: int, variant) -> int:
    """Map an actual stage number to the number shown to users (subdivision 10-16 -> 1-7)."""
    return actual_stage - get_display_offset(variant)


def get_actual_stage_number(display_stage: int, variant) -> int:
    return display_stage + get_display_offset(variant)
