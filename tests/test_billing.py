"""
Invoice and payment tests
"""
import json
import re

import pytest

from app import db
from app.models import Invoice, Mission, Payment
from app.services.billing import apply_payments, generate_invoice_for_mission
from app.services.references import next_invoice_number


@pytest.fixture
def invoiced_mission(make_mission):
    mission = make_mission(status='completed')
    generate_invoice_for_mission(mission)
    db.session.commit()
    return mission


class TestInvoiceGeneration:

    def test_invoice_mirrors_quote(self, invoiced_mission):
        invoice = db.session.get(Invoice, invoiced_mission.invoice_id)

        assert invoice.total_amount == 60
        assert invoice.items == [{'description': 'Cable', 'quantity': 10.0, 'unitPrice': 5.0, 'total': 50.0}]
        assert invoice.related_missions == [invoiced_mission.id]
        assert invoice.status == 'pending'
        assert (invoice.due_date - invoice.issue_date).days == 30

    def test_generation_is_idempotent(self, invoiced_mission):
        again = generate_invoice_for_mission(invoiced_mission)

        assert again.id == invoiced_mission.invoice_id
        assert Invoice.query.count() == 1

    def test_invoice_without_company(self, make_mission):
        mission = make_mission(status='completed')

        invoice = generate_invoice_for_mission(mission)

        assert invoice.company_id is None

    def test_invoice_number_format(self):
        assert re.match(r'^INV-\d{4}-00001$', next_invoice_number())


class TestInvoiceRoutes:

    def test_admin_creates_invoice(self, client, admin_headers, client_user, company):
        response = client.post('/api/invoices', headers=admin_headers, json={
            'client': client_user.id,
            'company': company.id,
            'dueDate': '2026-12-31',
            'items': [{'description': 'Audit', 'quantity': 2, 'unitPrice': 150},
                      {'description': 'Deplacement', 'quantity': 1, 'unitPrice': 45.5}],
        })

        assert response.status_code == 201
        invoice = json.loads(response.data)['data']['invoice']
        assert invoice['totalAmount'] == 345.5
        assert invoice['paymentStatus'] == 'unpaid'
        assert invoice['company']['name'] == 'Dupont SARL'

    def test_item_prices_must_be_positive(self, client, admin_headers, client_user):
        response = client.post('/api/invoices', headers=admin_headers, json={
            'client': client_user.id, 'dueDate': '2026-12-31',
            'items': [{'description': 'Audit', 'quantity': 1, 'unitPrice': 0}],
        })

        assert response.status_code == 400
        assert json.loads(response.data)['errors'][0]['field'] == 'items[0].unitPrice'

    def test_client_sees_only_own_invoices(self, client, client_headers, other_client_headers, invoiced_mission):
        own = json.loads(client.get('/api/invoices', headers=client_headers).data)['data']['invoices']
        other = json.loads(client.get('/api/invoices', headers=other_client_headers).data)['data']['invoices']

        assert [i['id'] for i in own] == [invoiced_mission.invoice_id]
        assert other == []

    def test_client_cannot_read_foreign_invoice(self, client, other_client_headers, invoiced_mission):
        response = client.get(f'/api/invoices/{invoiced_mission.invoice_id}', headers=other_client_headers)

        assert response.status_code == 403

    def test_technician_has_no_invoice_access(self, client, technician_headers):
        assert client.get('/api/invoices', headers=technician_headers).status_code == 403

    def test_paid_invoice_is_final(self, client, admin_headers, invoiced_mission):
        invoice_id = invoiced_mission.invoice_id
        client.put(f'/api/invoices/{invoice_id}', headers=admin_headers, json={'status': 'paid'})

        response = client.put(f'/api/invoices/{invoice_id}', headers=admin_headers, json={'status': 'pending'})

        assert response.status_code == 400

    def test_delete_unlinks_mission(self, client, admin_headers, invoiced_mission):
        response = client.delete(f'/api/invoices/{invoiced_mission.invoice_id}', headers=admin_headers)

        assert response.status_code == 200
        db.session.expire_all()
        assert db.session.get(Mission, invoiced_mission.id).invoice_id is None

    def test_pdf(self, client, client_headers, invoiced_mission):
        invoice = db.session.get(Invoice, invoiced_mission.invoice_id)

        response = client.get(f'/api/invoices/{invoice.id}/pdf', headers=client_headers)

        assert response.status_code == 200
        assert response.data.startswith(b'%PDF')
        assert f'facture-{invoice.invoice_number}.pdf' in response.headers['Content-Disposition']


class TestPayments:

    def test_partial_then_full_payment(self, client, admin_headers, invoiced_mission):
        quote_id = invoiced_mission.quote_id

        client.post('/api/payments', headers=admin_headers,
                    json={'quoteId': quote_id, 'amount': 20, 'paymentMethod': 'transfer'})
        invoice = db.session.get(Invoice, invoiced_mission.invoice_id)
        db.session.refresh(invoice)
        assert invoice.payment_status == 'partially_paid'
        assert invoiced_mission.quote.status == 'mission_assigned'

        response = client.post('/api/payments', headers=admin_headers,
                               json={'quoteId': quote_id, 'amount': 40, 'paymentMethod': 'card'})

        assert response.status_code == 201
        db.session.refresh(invoice)
        db.session.refresh(invoiced_mission.quote)
        assert invoice.payment_status == 'paid'
        assert invoice.status == 'paid'
        assert invoice.payment_details['amountPaid'] == 60
        assert invoiced_mission.quote.status == 'paid'

    def test_pending_payments_do_not_count(self, make_quote):
        quote = make_quote(status='accepted')
        db.session.add(Payment(quote_id=quote.id, amount=60, payment_method='check',
                               payment_date=quote.created_at, status='pending'))
        db.session.flush()

        assert apply_payments(quote) == 0
        assert quote.status == 'accepted'

    def test_client_pays_own_quote(self, client, client_headers, make_quote):
        quote = make_quote(status='accepted')

        response = client.post('/api/payments', headers=client_headers,
                               json={'quoteId': quote.id, 'amount': 60, 'paymentMethod': 'card'})

        assert response.status_code == 201
        assert json.loads(response.data)['data']['quote']['status'] == 'paid'

    def test_client_cannot_pay_foreign_quote(self, client, other_client_headers, make_quote):
        quote = make_quote(status='accepted')

        response = client.post('/api/payments', headers=other_client_headers,
                               json={'quoteId': quote.id, 'amount': 60, 'paymentMethod': 'card'})

        assert response.status_code == 403
        assert Payment.query.count() == 0

    def test_amount_validated(self, client, admin_headers, make_quote):
        quote = make_quote(status='accepted')

        response = client.post('/api/payments', headers=admin_headers,
                               json={'quoteId': quote.id, 'amount': -5})

        assert response.status_code == 400
        fields = {e['field'] for e in json.loads(response.data)['errors']}
        assert fields == {'amount', 'paymentMethod'}

    def test_duplicate_transaction_id(self, client, admin_headers, make_quote):
        quote = make_quote(status='accepted')
        body = {'quoteId': quote.id, 'amount': 10, 'paymentMethod': 'card', 'transactionId': 'txn_1'}

        client.post('/api/payments', headers=admin_headers, json=body)
        response = client.post('/api/payments', headers=admin_headers, json=body)

        assert response.status_code == 400
        assert Payment.query.count() == 1

    def test_refund_reopens_invoice_balance(self, client, admin_headers, invoiced_mission):
        created = client.post('/api/payments', headers=admin_headers, json={
            'quoteId': invoiced_mission.quote_id, 'amount': 30, 'paymentMethod': 'card'})
        payment_id = json.loads(created.data)['data']['id']

        client.put(f'/api/payments/{payment_id}', headers=admin_headers, json={'status': 'refunded'})

        invoice = db.session.get(Invoice, invoiced_mission.invoice_id)
        db.session.refresh(invoice)
        assert invoice.payment_status == 'unpaid'

    def test_refund_of_full_payment_reopens_quote_and_invoice(self, client, admin_headers, invoiced_mission):
        created = client.post('/api/payments', headers=admin_headers, json={
            'quoteId': invoiced_mission.quote_id, 'amount': 60, 'paymentMethod': 'card'})
        payment_id = json.loads(created.data)['data']['id']
        invoice = db.session.get(Invoice, invoiced_mission.invoice_id)
        db.session.refresh(invoice)
        assert invoice.status == 'paid'

        response = client.put(f'/api/payments/{payment_id}', headers=admin_headers, json={'status': 'refunded'})

        assert response.status_code == 200
        db.session.refresh(invoice)
        db.session.refresh(invoiced_mission.quote)
        assert invoiced_mission.quote.status == 'mission_assigned'
        assert invoice.status == 'pending'
        assert invoice.payment_status == 'unpaid'
        assert invoice.payment_details['amountPaid'] == 0

    def test_deleting_part_of_full_payment_leaves_balance_open(self, client, admin_headers, make_quote):
        quote = make_quote(status='accepted')
        client.post('/api/payments', headers=admin_headers,
                    json={'quoteId': quote.id, 'amount': 20, 'paymentMethod': 'cash'})
        created = client.post('/api/payments', headers=admin_headers,
                              json={'quoteId': quote.id, 'amount': 40, 'paymentMethod': 'card'})
        db.session.refresh(quote)
        assert quote.status == 'paid'

        response = client.delete(f"/api/payments/{json.loads(created.data)['data']['id']}",
                                 headers=admin_headers)

        assert response.status_code == 200
        db.session.refresh(quote)
        assert quote.status == 'accepted'

    def test_manual_update_cannot_reopen_paid_quote(self, client, admin_headers, make_quote):
        quote = make_quote(status='paid')

        response = client.put(f'/api/quotes/{quote.id}', headers=admin_headers, json={'status': 'accepted'})

        assert response.status_code == 400

    def test_stats(self, client, admin_headers, make_quote):
        quote = make_quote(status='accepted')
        client.post('/api/payments', headers=admin_headers,
                    json={'quoteId': quote.id, 'amount': 25, 'paymentMethod': 'cash'})

        data = json.loads(client.get('/api/payments/stats/overview', headers=admin_headers).data)['data']

        assert data['totalRevenue'] == 25
        assert data['thisMonth'] == 25
        assert data['count'] == 1

    def test_my_payments_for_client(self, client, client_headers, admin_headers, make_quote):
        quote = make_quote(status='accepted')
        client.post('/api/payments', headers=admin_headers,
                    json={'quoteId': quote.id, 'amount': 25, 'paymentMethod': 'cash'})

        data = json.loads(client.get('/api/payments/my', headers=client_headers).data)['data']

        assert [p['amount'] for p in data] == [25]
