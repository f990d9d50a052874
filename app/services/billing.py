"""
Invoice generation and payment accounting.

Functions here stage changes in the current session and leave the commit
to the caller, so a mission, its quote update and its invoice land in one
transaction.
"""
import logging
from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from app import db
from app.models import Company, Invoice, Mission, Payment
from app.utils.helpers import utcnow
from .references import next_invoice_number
from .workflow import can_transition

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.005


def resolve_client_company(client):
    """The client's company record: linked id first, then a name lookup"""
    if client.company_id:
        company = db.session.get(Company, client.company_id)
        if company:
            return company
    if client.company:
        company = Company.query.filter(func.lower(Company.name) == client.company.strip().lower()).first()
        if company:
            return company
    logger.warning('No company found for client %s (company=%r); invoicing without company',
                   client.id, client.company)
    return None


def invoice_items_from_quote(quote):
    items = []
    for item in quote.items or []:
        quantity = float(item.get('quantity') or 0)
        unit_price = float(item.get('unitPrice') or 0)
        items.append({
            'description': item.get('description'),
            'quantity': quantity,
            'unitPrice': unit_price,
            'total': round(quantity * unit_price, 2),
        })
    return items


def generate_invoice_for_mission(mission):
    """
    Create the invoice for a completed mission and backfill mission.invoice_id

    Returns the existing invoice when the mission already has one.
    """
    if mission.invoice_id:
        return db.session.get(Invoice, mission.invoice_id)

    quote = mission.quote
    client = mission.client
    company = resolve_client_company(client)
    now = utcnow()

    invoice = Invoice(
        invoice_number=next_invoice_number(),
        client_id=client.id,
        company_id=company.id if company else None,
        issue_date=now,
        due_date=now + timedelta(days=current_app.config['INVOICE_DUE_DAYS']),
        items=invoice_items_from_quote(quote),
        total_amount=quote.total,
        status='pending',
        payment_status='unpaid',
        related_quotes=[quote.id],
        related_missions=[mission.id],
    )
    db.session.add(invoice)
    db.session.flush()

    mission.invoice_id = invoice.id
    logger.info('Invoice %s generated for mission %s', invoice.invoice_number, mission.mission_number)
    return invoice


def paid_total(quote_id):
    total = db.session.query(func.coalesce(func.sum(Payment.amount), 0.0)).filter(
        Payment.quote_id == quote_id,
        Payment.status == 'completed',
    ).scalar()
    return float(total or 0.0)


def invoices_for_quote(quote):
    candidates = Invoice.query.filter_by(client_id=quote.client_id).all()
    return [invoice for invoice in candidates if quote.id in (invoice.related_quotes or [])]


def reopened_quote_status(quote):
    """Status a paid quote falls back to once its payments no longer cover it"""
    if Mission.query.filter_by(quote_id=quote.id).count():
        return 'mission_assigned'
    return 'accepted'


def reopened_invoice_status(invoice):
    if invoice.due_date and invoice.due_date < utcnow():
        return 'overdue'
    return 'pending'


def apply_payments(quote):
    """
    Reconcile a quote and its invoices with the completed payments recorded so far

    The quote becomes 'paid' only once payments cover its total; related
    invoices move to partially_paid / paid accordingly. A refund or deletion
    that leaves the quote short reopens it and its paid invoices. Manual
    updates still treat 'paid' as final; only this reconciliation reverses it.
    """
    received = paid_total(quote.id)
    fully_paid = received + AMOUNT_TOLERANCE >= (quote.total or 0)

    if fully_paid and quote.status != 'paid':
        if can_transition('quote', quote.status, 'paid'):
            quote.status = 'paid'
        else:
            logger.warning('Quote %s fully paid while in status %s; status left unchanged',
                           quote.reference, quote.status)
    elif not fully_paid and quote.status == 'paid':
        quote.status = reopened_quote_status(quote)
        logger.info('Quote %s reopened as %s (%.2f received of %.2f)',
                    quote.reference, quote.status, received, quote.total)

    for invoice in invoices_for_quote(quote):
        if invoice.status == 'cancelled':
            continue
        if fully_paid:
            invoice.payment_status = 'paid'
            if can_transition('invoice', invoice.status, 'paid'):
                invoice.status = 'paid'
        else:
            invoice.payment_status = 'partially_paid' if received > 0 else 'unpaid'
            if invoice.status == 'paid':
                invoice.status = reopened_invoice_status(invoice)
                logger.info('Invoice %s reopened as %s', invoice.invoice_number, invoice.status)
        details = dict(invoice.payment_details or {})
        details['amountPaid'] = round(received, 2)
        details['lastPaymentAt'] = utcnow().isoformat()
        invoice.payment_details = details

    return received
