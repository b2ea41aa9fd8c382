"""
Usage Recording Engine - Material usage validation and stock reconciliation.

Recording a batch of material lines for a site:
1. Validate every line against a catalog snapshot (product, quantity, stock)
2. If ANY line fails: reject the whole batch, nothing is written
3. Insert one usage event per line in a single batched ledger write
4. If the ledger write fails: abort, no stock is touched
5. Set each line's stock to snapshot stock - quantity, never re-reading the store
6. A failed stock update is reported and the remaining lines still run

Steps 3 and 5 are separate writes with no transaction around them. A batch
can end with the ledger fully written and stock only partly decremented;
the result reports which products were not updated. Concurrent batches on
the same product can overwrite each other's decrement (last write wins), and
so can two lines of one batch that name the same product.
"""
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from django.core.exceptions import ObjectDoesNotExist
from django.db import DatabaseError
from django.utils import timezone

from inventory.models import Product
from .models import UsageEvent
from .stores import UsageStore, get_store

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

# Ledger and stock columns hold two decimal places
QUANTITY_DECIMAL_PLACES = 2

Catalog = Mapping[int, Product]


def format_quantity(value: Decimal) -> str:
    """Render a quantity without trailing zeros, e.g. 10.00 -> '10'."""
    text = f"{Decimal(value):f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def to_quantity(value) -> Decimal:
    """Parse user input into a quantity; unparseable input becomes 0."""
    if isinstance(value, Decimal):
        return value
    try:
        quantity = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not quantity.is_finite():
        return ZERO
    return quantity


def decimal_places(value: Decimal) -> int:
    """Number of significant decimal places, e.g. 1.50 -> 1, 0.004 -> 3."""
    exponent = to_quantity(value).normalize().as_tuple().exponent
    return max(0, -exponent)


# =============================================================================
# Errors
# =============================================================================

class UsageError(Exception):
    """Base class for material usage recording errors."""


class ProductNotFound(UsageError):
    """Raised when a line references a product missing from the catalog."""
    def __init__(self, product_id: Optional[int]):
        self.product_id = product_id
        if product_id is None:
            message = "No product selected"
        else:
            message = f"Product {product_id} not found"
        super().__init__(message)


class NonPositiveQuantity(UsageError):
    """Raised when a line's quantity is zero or negative."""
    def __init__(self, product_name: str, quantity: Decimal):
        self.product_name = product_name
        self.quantity = quantity
        super().__init__(f"Quantity for {product_name} must be greater than 0")


class QuantityTooPrecise(UsageError):
    """Raised when a quantity has more decimal places than the ledger stores."""
    def __init__(self, product_name: str, quantity: Decimal):
        self.product_name = product_name
        self.quantity = quantity
        super().__init__(
            f"Quantity for {product_name} can have at most "
            f"{QUANTITY_DECIMAL_PLACES} decimal places"
        )


class InsufficientStock(UsageError):
    """Raised when a line asks for more than the product has in stock."""
    def __init__(self, product_id: int, product_name: str, requested: Decimal,
                 available: Decimal, unit: str):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        self.unit = unit
        super().__init__(
            f"Only {format_quantity(available)} {unit} of {product_name} available in stock"
        )


class BatchValidationFailed(UsageError):
    """Raised when a batch is empty or any of its lines is invalid."""
    def __init__(self, failures: List[Tuple[int, UsageError]]):
        self.failures = failures
        if not failures:
            message = "Please add at least one material"
        else:
            message = "; ".join(
                f"Material {index + 1}: {error}" for index, error in failures
            )
        super().__init__(message)

    @property
    def line_indices(self) -> List[int]:
        return [index for index, _ in self.failures]


class LedgerWriteFailed(UsageError):
    """Raised when usage events could not be written. No stock was changed."""
    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Failed to record material usage: {cause}")


class StockUnderflow(UsageError):
    """
    Raised when a stock decrement would go below zero.

    Usage events for the batch are already written and are not rolled back;
    stock updates for earlier lines stay applied.
    """
    def __init__(self, product_id: int, product_name: str, available: Decimal,
                 requested: Decimal):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {product_name}: "
            f"requested {format_quantity(requested)}, available {format_quantity(available)}"
        )


class StockUpdateFailed(UsageError):
    """A single product's stock update failed. Not fatal to the batch."""
    def __init__(self, product_id: int, product_name: str, cause: Exception):
        self.product_id = product_id
        self.product_name = product_name
        self.cause = cause
        super().__init__(f"Failed to update stock for {product_name}: {cause}")


# =============================================================================
# Line items
# =============================================================================

@dataclass
class MaterialLineItem:
    """One proposed material line in a recording session.

    Unit and rate are copied from the product when it is selected.
    """
    product_id: Optional[int] = None
    quantity: Decimal = ZERO
    unit: str = ''
    rate_per_unit: Decimal = ZERO


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: Optional[UsageError] = None

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ''


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a batch that reached the ledger."""
    events_written: int
    total_cost: Decimal
    stock_update_failures: List[StockUpdateFailed] = field(default_factory=list)
    low_stock_product_ids: List[int] = field(default_factory=list)

    @property
    def fully_applied(self) -> bool:
        return not self.stock_update_failures

    @property
    def warning(self) -> str:
        if self.fully_applied:
            return ''
        names = ", ".join(failure.product_name for failure in self.stock_update_failures)
        return f"Usage recorded but stock was not updated for: {names}"


def load_catalog(store: Optional[UsageStore] = None) -> Dict[int, Product]:
    """Take a point-in-time snapshot of the catalog keyed by product id."""
    store = store or get_store()
    return {product.id: product for product in store.list_products()}


def validate_line(line: MaterialLineItem, catalog: Catalog) -> ValidationResult:
    """
    Check one line against the catalog snapshot.

    Checks run in order: product present, quantity positive, quantity fits
    two decimal places, stock sufficient.
    The first failing check decides the error.
    """
    product = catalog.get(line.product_id) if line.product_id is not None else None
    if product is None:
        return ValidationResult(False, ProductNotFound(line.product_id))

    if line.quantity <= ZERO:
        return ValidationResult(False, NonPositiveQuantity(product.name, line.quantity))

    if decimal_places(line.quantity) > QUANTITY_DECIMAL_PLACES:
        return ValidationResult(False, QuantityTooPrecise(product.name, line.quantity))

    if line.quantity > product.stock_quantity:
        return ValidationResult(False, InsufficientStock(
            product_id=product.id,
            product_name=product.name,
            requested=line.quantity,
            available=product.stock_quantity,
            unit=product.unit
        ))

    return ValidationResult(True)


def line_for_product(product_id: Optional[int], quantity, catalog: Catalog) -> MaterialLineItem:
    """Build a line for ``product_id`` with unit and rate taken from the catalog."""
    product = catalog.get(product_id) if product_id is not None else None
    if product is None:
        return MaterialLineItem(product_id=product_id, quantity=to_quantity(quantity))
    return MaterialLineItem(
        product_id=product.id,
        quantity=to_quantity(quantity),
        unit=product.unit,
        rate_per_unit=product.rate_per_unit
    )


def add_line(lines: List[MaterialLineItem]) -> MaterialLineItem:
    """Append an empty line to the session."""
    line = MaterialLineItem()
    lines.append(line)
    return line


def remove_line(lines: List[MaterialLineItem], line_index: int) -> MaterialLineItem:
    return lines.pop(line_index)


def select_product(lines: List[MaterialLineItem], line_index: int, product_id: int,
                   catalog: Catalog) -> MaterialLineItem:
    """
    Point a line at a different product.

    Copies the product's unit and rate and resets the quantity to 0, since a
    quantity entered for the old product may not make sense for the new one.

    Raises:
        ProductNotFound: If the product is not in the catalog; the line is left as is
    """
    product = catalog.get(product_id)
    if product is None:
        raise ProductNotFound(product_id)

    lines[line_index] = replace(
        lines[line_index],
        product_id=product.id,
        unit=product.unit,
        rate_per_unit=product.rate_per_unit,
        quantity=ZERO
    )
    return lines[line_index]


def set_quantity(lines: List[MaterialLineItem], line_index: int, quantity,
                 catalog: Catalog) -> ValidationResult:
    """Set a line's quantity, only if the new quantity validates."""
    candidate = replace(lines[line_index], quantity=to_quantity(quantity))
    result = validate_line(candidate, catalog)
    if result.is_valid:
        lines[line_index] = candidate
    return result


def compute_line_cost(line: MaterialLineItem) -> Decimal:
    return line.quantity * line.rate_per_unit


def compute_batch_cost(lines: Iterable[MaterialLineItem]) -> Decimal:
    return sum((compute_line_cost(line) for line in lines), ZERO)


def validate_batch(lines: List[MaterialLineItem], catalog: Catalog) -> None:
    """
    Validate every line of a batch.

    Raises:
        BatchValidationFailed: If the batch is empty or any line is invalid
    """
    if not lines:
        raise BatchValidationFailed([])

    failures = []
    for index, line in enumerate(lines):
        result = validate_line(line, catalog)
        if not result.is_valid:
            failures.append((index, result.error))

    if failures:
        raise BatchValidationFailed(failures)


def submit_batch(lines: List[MaterialLineItem], site_id: int, catalog: Catalog,
                 store: Optional[UsageStore] = None,
                 notes: Optional[str] = None) -> SubmitResult:
    """
    Record a batch of material usage for a site and decrement stock.

    Args:
        lines: Proposed material lines
        site_id: Site the materials were used at
        catalog: Snapshot the lines were validated against
        store: Store to write to (defaults to the process-wide store)
        notes: Optional note stored on every event of the batch

    Returns:
        SubmitResult; check ``fully_applied`` for partial stock updates

    Raises:
        BatchValidationFailed: Nothing was written
        LedgerWriteFailed: Nothing was written
        StockUnderflow: Events were written, stock updates stopped at this product
    """
    store = store or get_store()

    try:
        validate_batch(lines, catalog)
    except BatchValidationFailed as e:
        logger.warning(f"Usage batch for site {site_id} rejected: {e}")
        raise

    usage_date = timezone.now()
    events = [
        UsageEvent(
            site_id=site_id,
            product_id=line.product_id,
            quantity_used=line.quantity,
            usage_date=usage_date,
            notes=notes or None
        )
        for line in lines
    ]

    try:
        store.insert_usage_events(events)
    except DatabaseError as e:
        logger.error(f"Ledger write failed for site {site_id}: {e}")
        raise LedgerWriteFailed(e) from e

    logger.info(f"Recorded {len(events)} usage events for site {site_id}")

    # Each line is applied against the snapshot stock. Several lines naming
    # the same product each write snapshot - quantity, so the last one wins.
    failures: List[StockUpdateFailed] = []
    low_stock: List[int] = []

    for line in lines:
        product = catalog[line.product_id]
        new_stock = product.stock_quantity - line.quantity
        if new_stock < ZERO:
            logger.error(
                f"Stock underflow for {product.name} at site {site_id}: "
                f"available {product.stock_quantity}, requested {line.quantity}"
            )
            raise StockUnderflow(product.id, product.name, product.stock_quantity, line.quantity)

        try:
            store.update_product_stock(product.id, new_stock)
        except (DatabaseError, ObjectDoesNotExist) as e:
            logger.error(f"Stock update failed for {product.name}: {e}")
            failures.append(StockUpdateFailed(product.id, product.name, e))
            continue

        logger.debug(
            f"Site {site_id}: used {line.quantity} {product.unit} of {product.name}, "
            f"remaining stock: {new_stock}"
        )
        if new_stock <= product.low_stock_threshold and product.id not in low_stock:
            low_stock.append(product.id)

    total_cost = compute_batch_cost(lines)
    result = SubmitResult(
        events_written=len(events),
        total_cost=total_cost,
        stock_update_failures=failures,
        low_stock_product_ids=low_stock
    )

    if failures:
        logger.warning(f"Site {site_id}: {result.warning}")
    else:
        logger.info(f"Site {site_id} usage batch applied: total cost {total_cost}")

    if low_stock:
        try:
            from .tasks import notify_low_stock
            notify_low_stock.delay(low_stock)
        except Exception as e:
            # Alerts are best effort; the batch is already recorded
            logger.error(f"Failed to queue low stock alert: {e}")

    return result
