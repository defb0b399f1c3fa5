"""
Display-order helpers shared by banners and homepage sections.

A move swaps an item with its neighbour and renumbers the whole list
0..N-1, so orders never have gaps or duplicates afterwards.
"""
import logging

from django.db import transaction

logger = logging.getLogger(__name__)

DIRECTION_UP = 'up'
DIRECTION_DOWN = 'down'
DIRECTIONS = (DIRECTION_UP, DIRECTION_DOWN)


class ReorderError(ValueError):
    pass


def _item_id(item, key):
    if isinstance(item, dict):
        return item[key]
    return getattr(item, key)


def move_item(items, item_id, direction, key='id'):
    """
    Return (new_list, moved). The input list is not modified.

    Moving the first item up or the last item down is a no-op.
    Raises ReorderError for an unknown direction or an id not in the list.
    """
    if direction not in DIRECTIONS:
        raise ReorderError(f"Invalid direction: {direction}. Must be 'up' or 'down'")

    items = list(items)
    index = next((i for i, item in enumerate(items) if _item_id(item, key) == item_id), None)
    if index is None:
        raise ReorderError(f'Item {item_id} not found')

    target = index - 1 if direction == DIRECTION_UP else index + 1
    if target < 0 or target >= len(items):
        return items, False

    items[index], items[target] = items[target], items[index]
    return items, True


def sequential_orders(items, key='id'):
    """[(id, order)] numbering the list 0..N-1"""
    return [(_item_id(item, key), position) for position, item in enumerate(items)]


def parse_order_payload(payload):
    """
    Validate a client-computed reorder array [{id, order}, ...].

    Returns [(id, order)]. Raises ReorderError on an empty array, a missing
    or non-integer field, or a repeated id.
    """
    if isinstance(payload, dict):
        payload = payload.get('orders', payload.get('items'))
    if not isinstance(payload, list) or not payload:
        raise ReorderError('A non-empty array of {id, order} entries is required')

    orders = []
    seen = set()
    for entry in payload:
        if not isinstance(entry, dict) or 'id' not in entry or 'order' not in entry:
            raise ReorderError('Each entry needs an id and an order')
        try:
            item_id, order = int(entry['id']), int(entry['order'])
        except (TypeError, ValueError):
            raise ReorderError('id and order must be integers')
        if order < 0:
            raise ReorderError('order must not be negative')
        if item_id in seen:
            raise ReorderError(f'Duplicate id {item_id}')
        seen.add(item_id)
        orders.append((item_id, order))
    return orders


def apply_orders(model, orders, field='order'):
    """
    Persist [(id, order)] in one transaction. Every id must exist.
    Returns the number of rows updated.
    """
    orders = dict(orders)
    with transaction.atomic():
        objects = list(model.objects.select_for_update().filter(pk__in=list(orders)))
        missing = set(orders) - {obj.pk for obj in objects}
        if missing:
            raise ReorderError(f'{model.__name__} not found: {sorted(missing)}')
        for obj in objects:
            setattr(obj, field, orders[obj.pk])
        model.objects.bulk_update(objects, [field])
    logger.info(f"Reordered {len(objects)} {model.__name__} rows")
    return len(objects)


def move_and_persist(model, item_id, direction, queryset=None, field='order'):
    """
    Move one row up or down within queryset (default: every row of model in
    its Meta ordering) and renumber the whole list.
    Returns (ordered_objects, moved).
    """
    queryset = queryset if queryset is not None else model.objects.all()
    with transaction.atomic():
        items = list(queryset.select_for_update())
        items, moved = move_item(items, item_id, direction, key='pk')
        if moved:
            for obj, (_, position) in zip(items, sequential_orders(items, key='pk')):
                setattr(obj, field, position)
            model.objects.bulk_update(items, [field])
    return items, moved
