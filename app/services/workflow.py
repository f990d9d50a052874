"""
Status transition tables.

Each entity lists, for every status, the statuses it may move to. Writing
the current status again is a no-op and always allowed; any other move
not in the table is rejected before anything is persisted.
"""
from app.errors import InvalidTransitionError, ValidationError

TRANSITIONS = {
    'request': {
        'pending': {'assigned', 'quoted', 'cancelled'},
        'assigned': {'in-progress', 'quoted', 'completed', 'cancelled'},
        'quoted': {'assigned', 'in-progress', 'completed', 'cancelled'},
        'in-progress': {'completed', 'cancelled'},
        'completed': set(),
        'cancelled': set(),
    },
    'quote': {
        'draft': {'sent', 'expired'},
        'sent': {'accepted', 'rejected', 'expired', 'draft'},
        'accepted': {'mission_assigned', 'paid'},
        'rejected': set(),
        'expired': {'draft'},
        'mission_assigned': {'paid'},
        'paid': set(),
    },
    'mission': {
        'pending': {'accepted', 'in-progress', 'completed', 'cancelled'},
        'accepted': {'in-progress', 'completed', 'cancelled'},
        'in-progress': {'completed', 'cancelled'},
        'completed': set(),
        'cancelled': set(),
    },
    'report': {
        'draft': {'pending', 'completed'},
        'pending': {'draft', 'completed'},
        'completed': {'sent'},
        'sent': set(),
    },
    'invoice': {
        'pending': {'paid', 'cancelled', 'overdue'},
        'overdue': {'paid', 'cancelled'},
        'paid': set(),
        'cancelled': set(),
    },
}


def can_transition(entity, current, new):
    if current == new:
        return True
    return new in TRANSITIONS[entity].get(current, set())


def check_status(entity, status):
    """Reject values outside the entity's status set"""
    if status not in TRANSITIONS[entity]:
        raise ValidationError(errors=[{
            'field': 'status',
            'message': 'Status must be one of: {}'.format(', '.join(sorted(TRANSITIONS[entity]))),
        }])


def apply_transition(entity, obj, new_status):
    """
    Validate and set obj.status

    Returns:
        str or None: the previous status when it changed, else None
    """
    check_status(entity, new_status)
    current = obj.status
    if not can_transition(entity, current, new_status):
        raise InvalidTransitionError(entity, current, new_status)
    if current == new_status:
        return None
    obj.status = new_status
    return current
