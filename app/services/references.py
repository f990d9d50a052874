"""
Human-readable reference numbers.

Yearly sequences count the rows created since January 1st and step past
any number already taken, so sequential creation never collides even after
deletions. Concurrent creations can still race on the count; the unique
constraints on each column turn that race into an IntegrityError.
"""
import random
import time

from app.models import Invoice, Mission, Quote, Report, ServiceRequest
from app.utils.helpers import start_of_year, utcnow

MAX_REFERENCE_ATTEMPTS = 5


def _yearly_sequence(model, column, prefix, width):
    now = utcnow()
    count = model.query.filter(model.created_at >= start_of_year(now)).count()
    seq = count + 1
    while True:
        candidate = f'{prefix}-{now.year}-{seq:0{width}d}'
        if not model.query.filter(column == candidate).first():
            return candidate
        seq += 1


def next_request_reference():
    """REQ-<year>-0001"""
    return _yearly_sequence(ServiceRequest, ServiceRequest.reference, 'REQ', 4)


def next_quote_reference():
    """DEV-<year>-001"""
    return _yearly_sequence(Quote, Quote.reference, 'DEV', 3)


def next_invoice_number():
    """INV-<year>-00001"""
    return _yearly_sequence(Invoice, Invoice.invoice_number, 'INV', 5)


def next_mission_number():
    """MISS-<milliseconds since epoch>"""
    stamp = int(time.time() * 1000)
    while Mission.query.filter_by(mission_number=f'MISS-{stamp}').first():
        stamp += 1
    return f'MISS-{stamp}'


def next_intervention_reference():
    """INT-<milliseconds>-<0..9999>, retried until unused"""
    for _ in range(MAX_REFERENCE_ATTEMPTS):
        candidate = f'INT-{int(time.time() * 1000)}-{random.randint(0, 9999)}'
        if not Report.query.filter_by(intervention_reference=candidate).first():
            return candidate
    raise RuntimeError('Could not allocate a unique intervention reference')
