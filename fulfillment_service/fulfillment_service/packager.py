"""Bin packing of shippable quantities into weight-bounded packages."""

from pydantic import BaseModel, ConfigDict, Field

from .errors import OversizedUnitError
from .logger import logger
from .models import MAX_SHIPMENT_WEIGHT_G


class PackageLine(BaseModel):
    """Units of one product to be packed, with their unit weight."""

    model_config = ConfigDict(frozen=True)

    product_id: int = Field(..., ge=0)
    quantity: int = Field(..., gt=0)
    unit_weight_g: int = Field(..., gt=0)

    @property
    def total_weight_g(self) -> int:
        return self.quantity * self.unit_weight_g


class Package:
    """A group of lines shipped together.

    Attributes:
        lines: Lines placed in the package, in placement order.
        total_weight_g: Sum of the lines' total weights.
    """

    def __init__(self) -> None:
        self.lines: list[PackageLine] = []
        self.total_weight_g = 0

    def can_add(self, line: PackageLine) -> bool:
        return self.total_weight_g + line.total_weight_g <= MAX_SHIPMENT_WEIGHT_G

    def add(self, line: PackageLine) -> None:
        self.lines.append(line)
        self.total_weight_g += line.total_weight_g

    def __repr__(self) -> str:
        return f"Package(total_weight_g={self.total_weight_g}, lines={self.lines!r})"


def is_valid_shipment_weight(total_weight_g: int) -> bool:
    """Check a shipment weight against the ceiling."""
    return total_weight_g <= MAX_SHIPMENT_WEIGHT_G


def can_fit_in_single_shipment(unit_weight_g: int, quantity: int) -> bool:
    """Check whether ``quantity`` units fit in one package without splitting."""
    return unit_weight_g * quantity <= MAX_SHIPMENT_WEIGHT_G


def split_oversized_line(line: PackageLine) -> list[PackageLine]:
    """Split a line heavier than the ceiling into sub-lines that each fit.

    Every sub-line carries the maximum number of units a package can hold,
    except the last one which carries the remainder.

    Args:
        line: Line whose total weight exceeds the ceiling.

    Returns:
        list[PackageLine]: ``ceil(quantity / max_units)`` sub-lines.

    Raises:
        OversizedUnitError: If a single unit alone exceeds the ceiling.
    """
    max_units = MAX_SHIPMENT_WEIGHT_G // line.unit_weight_g
    if max_units == 0:
        raise OversizedUnitError(line.product_id, line.unit_weight_g, MAX_SHIPMENT_WEIGHT_G)

    full, remainder = divmod(line.quantity, max_units)
    sub_lines = [line.model_copy(update={"quantity": max_units}) for _ in range(full)]
    if remainder:
        sub_lines.append(line.model_copy(update={"quantity": remainder}))
    return sub_lines


def optimize_packaging(lines: list[PackageLine]) -> list[Package]:
    """Pack lines into as few packages as the first-fit-decreasing heuristic finds.

    Lines heavier than the ceiling are split first. The resulting lines are
    sorted by total weight, heaviest first (ties keep input order), and each
    one goes into the first package with room left, or into a new package.

    Args:
        lines: Lines to pack.

    Returns:
        list[Package]: Packages in creation order, each within the ceiling.

    Raises:
        OversizedUnitError: If any single unit exceeds the ceiling.
    """
    prepared: list[PackageLine] = []
    for line in lines:
        if line.total_weight_g <= MAX_SHIPMENT_WEIGHT_G:
            prepared.append(line)
            continue
        sub_lines = split_oversized_line(line)
        logger.debug(f"Split product {line.product_id} (qty: {line.quantity}) into {len(sub_lines)} package lines")
        prepared.extend(sub_lines)

    prepared.sort(key=lambda line: line.total_weight_g, reverse=True)

    packages: list[Package] = []
    for line in prepared:
        package = next((candidate for candidate in packages if candidate.can_add(line)), None)
        if package is None:
            package = Package()
            packages.append(package)
        package.add(line)

    logger.info(f"Packed {len(lines)} lines ({len(prepared)} after splitting) into {len(packages)} packages")
    return packages
