from surfgrid.arrays.binned import BinnedArrayXD
from surfgrid.log import logger
from surfgrid.util._type import DetectorElementLike

__all__ = ["register_neighbourhood", "neighbour_elements"]


def neighbour_elements(surface_array: BinnedArrayXD, bin_triple) -> list[DetectorElementLike]:
    """
    Elements behind the surfaces around ``bin_triple``, excluding the cell's own.

    The cell's own surface and element are skipped, as are empty cells and
    surfaces without an element. Each element appears once, in the order its
    first surface is met in the box neighbourhood.
    """
    own = surface_array.object_at(bin_triple)
    own_element = None if own is None else own.associated_detector_element
    seen: set[int] = set()
    out: list[DetectorElementLike] = []
    for other in surface_array.object_cluster(bin_triple):
        if other is None or other is own:
            continue
        element = other.associated_detector_element
        if element is None or element is own_element or id(element) in seen:
            continue
        seen.add(id(element))
        out.append(element)
    return out


def register_neighbourhood(surface_array: BinnedArrayXD) -> int:
    """
    Tell every element behind an occupied cell which elements surround it.

    Cells are walked in bin-index order. An element reached from several
    cells (a surface spread over several bins by completion, or several
    surfaces sharing an element) gets the union of the neighbours found
    around all of them. Every such element receives exactly one
    ``register_neighbours`` call, with a possibly empty list.

    Returns
    -------
    int
        Number of neighbour relations set.
    """
    logger.debug("Register neighbours to the elements.")
    collected: dict[int, tuple[DetectorElementLike, list[DetectorElementLike], set[int]]] = {}
    for bin_triple, surface in surface_array:
        if surface is None:
            continue
        element = surface.associated_detector_element
        if element is None:
            continue
        _, found, seen = collected.setdefault(id(element), (element, [], set()))
        for other in neighbour_elements(surface_array, bin_triple):
            if id(other) not in seen:
                seen.add(id(other))
                found.append(other)

    neighbours_set = 0
    for element, found, _ in collected.values():
        element.register_neighbours(found)
        neighbours_set += len(found)
    logger.debug("Neighbours set for this layer: %d", neighbours_set)
    return neighbours_set
