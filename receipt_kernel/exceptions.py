"""
Typed Exception Hierarchy for the Goods-Receipt Engine.

===============================================================================
WHEN THESE ARE RAISED
===============================================================================

Engines never raise for business-rule violations: validation problems come
back as lists of messages, and edits that cannot be applied come back as a
rejected ``EditResult``. The exceptions below exist so that a caller who
prefers exceptions can ask for one:

    result = service.update_line(document, product_id=7, unit_price="12.50")
    result.raise_for_error()        # DocumentApprovedError, LineNotFoundError ...
    document = result.document

Configuration loading is the one place that raises directly
(``ConfigurationError``), because a bad configuration is an operator error
that must stop start-up.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReceiptEngineError (base)
    |
    +-- DocumentError
    |   +-- DocumentApprovedError
    |   +-- DocumentValidationError
    |
    +-- LineError
    |   +-- DuplicateProductError
    |   +-- LineNotFoundError
    |
    +-- LookupFailedError
    |   +-- ProductNotFoundError
    |   +-- PurchaseOrderNotFoundError
    |
    +-- AllocationError
    |   +-- AllocationRejectedError
    |   +-- AllocationNotFoundError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES
===============================================================================

Category        | Code                        | When
----------------|-----------------------------|-----------------------------------
Document        | DOCUMENT_APPROVED           | Mutation attempted after approval
                | DOCUMENT_INVALID            | Submission failed validation
----------------|-----------------------------|-----------------------------------
Line            | DUPLICATE_PRODUCT           | Product already on the document
                | LINE_NOT_FOUND              | No line for the product id
----------------|-----------------------------|-----------------------------------
Lookup          | PRODUCT_NOT_FOUND           | Catalog has no such product
                | PURCHASE_ORDER_NOT_FOUND    | PO lookup returned nothing
----------------|-----------------------------|-----------------------------------
Allocation      | ALLOCATION_REJECTED         | Request fails allocation checks
                | ALLOCATION_NOT_FOUND        | No request with the given id
----------------|-----------------------------|-----------------------------------
Configuration   | CONFIGURATION_ERROR         | Malformed engine configuration
"""


class ReceiptEngineError(Exception):
    """
    Base exception for all goods-receipt engine errors.

    Every subclass carries a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "RECEIPT_ENGINE_ERROR"


# Document-level exceptions


class DocumentError(ReceiptEngineError):
    """Base exception for document-level errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentApprovedError(DocumentError):
    """The document is approved and can no longer be changed."""

    code: str = "DOCUMENT_APPROVED"

    def __init__(self, document_id: str | int | None = None):
        self.document_id = document_id
        super().__init__(
            f"Document approved: {document_id}" if document_id else "Document approved"
        )


class DocumentValidationError(DocumentError):
    """Submission was blocked by validation errors."""

    code: str = "DOCUMENT_INVALID"

    def __init__(self, errors: list[str] | tuple[str, ...]):
        self.errors = tuple(errors)
        super().__init__(
            f"Document failed validation with {len(self.errors)} error(s): "
            + "; ".join(self.errors)
        )


# Line-level exceptions


class LineError(ReceiptEngineError):
    """Base exception for received-line errors."""

    code: str = "LINE_ERROR"


class DuplicateProductError(LineError):
    """Product is already present on the document."""

    code: str = "DUPLICATE_PRODUCT"

    def __init__(self, product_id: int, message: str | None = None):
        self.product_id = product_id
        super().__init__(message or f"Product {product_id} is already added")


class LineNotFoundError(LineError):
    """No received line exists for the product."""

    code: str = "LINE_NOT_FOUND"

    def __init__(self, product_id: int, message: str | None = None):
        self.product_id = product_id
        super().__init__(message or f"No received line for product {product_id}")


# Collaborator lookups


class LookupFailedError(ReceiptEngineError):
    """Base exception for external lookups that returned nothing."""

    code: str = "LOOKUP_FAILED"


class ProductNotFoundError(LookupFailedError):
    """Product catalog has no entry for the id."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int, message: str | None = None):
        self.product_id = product_id
        super().__init__(message or f"Product not found in catalog: {product_id}")


class PurchaseOrderNotFoundError(LookupFailedError):
    """Purchase-order lookup returned nothing."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, po_id: int, message: str | None = None):
        self.po_id = po_id
        super().__init__(message or f"Purchase order not found: {po_id}")


# Allocation exceptions


class AllocationError(ReceiptEngineError):
    """Base exception for department-allocation errors."""

    code: str = "ALLOCATION_ERROR"


class AllocationRejectedError(AllocationError):
    """Allocation request failed validation."""

    code: str = "ALLOCATION_REJECTED"

    def __init__(self, message: str, errors: tuple[str, ...] = ()):
        self.errors = errors or (message,)
        super().__init__(message)


class AllocationNotFoundError(AllocationError):
    """No allocation request with the given id."""

    code: str = "ALLOCATION_NOT_FOUND"

    def __init__(self, request_id: str, message: str | None = None):
        self.request_id = request_id
        super().__init__(message or f"Allocation request not found: {request_id}")


# Configuration


class ConfigurationError(ReceiptEngineError):
    """Engine configuration is malformed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)
