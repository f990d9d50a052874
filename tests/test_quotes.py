"""
Quote tests: totals, references, transitions, client answers and PDF export
"""
import json
import re

import pytest

from app import db
from app.models import Notification, Quote, ServiceRequest
from app.services.references import next_request_reference
from app.utils import generate_access_token, utcnow

CABLE = [{'description': 'Cable', 'quantity': 10, 'unitPrice': 5}]


class TestQuoteCreation:

    def test_totals_computed_from_items(self, client, admin_headers, client_user, published):
        response = client.post('/api/quotes', headers=admin_headers,
                               json={'clientId': client_user.id, 'items': CABLE})

        assert response.status_code == 201
        quote = json.loads(response.data)['data']
        assert quote['subtotal'] == 50
        assert quote['taxAmount'] == 10
        assert quote['total'] == 60
        assert quote['taxRate'] == 20
        assert quote['status'] == 'draft'

    def test_client_supplied_totals_ignored(self, client, admin_headers, client_user):
        response = client.post('/api/quotes', headers=admin_headers, json={
            'clientId': client_user.id, 'items': CABLE, 'total': 1, 'subtotal': 1, 'taxAmount': 0,
        })

        assert json.loads(response.data)['data']['total'] == 60

    def test_reference_format_and_sequence(self, client, admin_headers, client_user):
        first = json.loads(client.post('/api/quotes', headers=admin_headers,
                                       json={'clientId': client_user.id, 'items': CABLE}).data)['data']
        second = json.loads(client.post('/api/quotes', headers=admin_headers,
                                        json={'clientId': client_user.id, 'items': CABLE}).data)['data']

        year = utcnow().year
        assert first['reference'] == f'DEV-{year}-001'
        assert second['reference'] == f'DEV-{year}-002'

    def test_item_validation(self, client, admin_headers, client_user):
        response = client.post('/api/quotes', headers=admin_headers, json={
            'clientId': client_user.id,
            'items': [{'description': 'Borne', 'quantity': 0, 'unitPrice': -3, 'itemType': 'gift'}],
        })

        assert response.status_code == 400
        fields = {e['field'] for e in json.loads(response.data)['errors']}
        assert fields == {'items[0].quantity', 'items[0].unitPrice', 'items[0].itemType'}

    def test_empty_items_rejected(self, client, admin_headers, client_user):
        response = client.post('/api/quotes', headers=admin_headers, json={'clientId': client_user.id, 'items': []})

        assert response.status_code == 400

    def test_client_cannot_create(self, client, client_headers, client_user):
        response = client.post('/api/quotes', headers=client_headers,
                               json={'clientId': client_user.id, 'items': CABLE})

        assert response.status_code == 403

    def test_technician_creation_notifies_client_only(self, client, technician_headers, technician,
                                                      client_user, published):
        response = client.post('/api/quotes', headers=technician_headers,
                               json={'clientId': client_user.id, 'items': CABLE})

        quote = json.loads(response.data)['data']
        assert quote['technicianId'] == technician.id
        assert [n['type'] for n in published.for_user(client_user.id)] == ['quote_created']
        assert published.for_user(technician.id) == []

    def test_quote_from_request_marks_request_quoted(self, client, admin_headers, client_user, service_type):
        service_request = ServiceRequest(
            reference=next_request_reference(), title='Borne', description='Pose', type='installation',
            service_type_id=service_type.id, contact_phone='0612345678', address={'full': 'Paris'},
            client_id=client_user.id,
        )
        db.session.add(service_request)
        db.session.commit()

        client.post('/api/quotes', headers=admin_headers,
                    json={'clientId': client_user.id, 'items': CABLE, 'requestId': service_request.id})

        db.session.refresh(service_request)
        assert service_request.status == 'quoted'


class TestQuoteUpdate:

    def test_totals_recomputed_on_update(self, client, admin_headers, make_quote):
        quote = make_quote()

        response = client.put(f'/api/quotes/{quote.id}', headers=admin_headers, json={
            'items': [{'description': 'Borne', 'quantity': 1, 'unitPrice': 1000}], 'taxRate': 10,
        })

        data = json.loads(response.data)['data']
        assert (data['subtotal'], data['taxAmount'], data['total']) == (1000, 100, 1100)

    @pytest.mark.parametrize('status', ['accepted', 'mission_assigned', 'paid'])
    def test_pricing_locked_after_acceptance(self, client, admin_headers, make_quote, status):
        quote = make_quote(status=status)

        response = client.put(f'/api/quotes/{quote.id}', headers=admin_headers, json={
            'items': [{'description': 'Borne', 'quantity': 1, 'unitPrice': 1000}], 'taxRate': 10,
        })

        assert response.status_code == 400
        fields = {e['field'] for e in json.loads(response.data)['errors']}
        assert fields == {'items', 'taxRate'}
        db.session.refresh(quote)
        assert quote.total == 60

    def test_title_still_editable_after_acceptance(self, client, admin_headers, make_quote):
        quote = make_quote(status='mission_assigned')

        response = client.put(f'/api/quotes/{quote.id}', headers=admin_headers, json={'title': 'Borne 22kW'})

        assert response.status_code == 200
        assert json.loads(response.data)['data']['title'] == 'Borne 22kW'

    def test_status_change_notifies_client(self, client, admin_headers, make_quote, client_user,
                                           technician, published):
        quote = make_quote()

        response = client.put(f'/api/quotes/{quote.id}', headers=admin_headers, json={'status': 'sent'})

        assert response.status_code == 200
        assert [n['type'] for n in published.for_user(client_user.id)] == ['status_update']
        assert [n['type'] for n in published.for_user(technician.id)] == ['status_update']

    def test_invalid_transition_rejected(self, client, admin_headers, make_quote):
        quote = make_quote(status='draft')

        response = client.put(f'/api/quotes/{quote.id}', headers=admin_headers, json={'status': 'paid'})

        assert response.status_code == 400
        assert 'transition' in json.loads(response.data)['message']
        db.session.refresh(quote)
        assert quote.status == 'draft'

    def test_unassigned_technician_forbidden(self, client, other_technician_headers, make_quote):
        quote = make_quote()

        response = client.put(f'/api/quotes/{quote.id}', headers=other_technician_headers, json={'title': 'x'})

        assert response.status_code == 403

    def test_send_quote(self, client, technician_headers, make_quote, client_user, published):
        quote = make_quote()

        response = client.post(f'/api/quotes/{quote.id}/send', headers=technician_headers)

        data = json.loads(response.data)['data']
        assert data['status'] == 'sent'
        assert data['sentDate'] is not None
        assert [n['type'] for n in published.for_user(client_user.id)] == ['quote_sent']


class TestQuoteResponse:

    def test_owner_accepts(self, client, client_headers, make_quote, admin, technician, published):
        quote = make_quote(status='sent')

        response = client.post(f'/api/quotes/{quote.id}/respond', headers=client_headers,
                               json={'accepted': True, 'comments': 'Parfait'})

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['status'] == 'accepted'
        assert data['clientResponse']['accepted'] is True
        assert data['clientResponse']['comments'] == 'Parfait'
        assert data['respondedDate'] is not None
        assert [n['type'] for n in published.for_user(technician.id)] == ['quote_response']
        assert [n['type'] for n in published.for_user(admin.id)] == ['quote_response']

    def test_owner_rejects(self, client, client_headers, make_quote):
        quote = make_quote(status='sent')

        response = client.post(f'/api/quotes/{quote.id}/respond', headers=client_headers, json={'accepted': False})

        assert json.loads(response.data)['data']['status'] == 'rejected'

    def test_non_owner_forbidden(self, client, other_client_headers, make_quote):
        quote = make_quote(status='sent')

        response = client.post(f'/api/quotes/{quote.id}/respond', headers=other_client_headers,
                               json={'accepted': True})

        assert response.status_code == 403
        db.session.refresh(quote)
        assert quote.status == 'sent'

    def test_same_name_other_client_forbidden(self, client, make_user, make_quote, client_user):
        """Ownership is decided by id, never by display name or company"""
        twin = make_user('client', first_name=client_user.first_name, last_name=client_user.last_name,
                         company=client_user.company)
        quote = make_quote(status='sent')
        headers = {'Authorization': f'Bearer {generate_access_token(twin.id, "client")}'}

        response = client.post(f'/api/quotes/{quote.id}/respond', headers=headers, json={'accepted': True})

        assert response.status_code == 403

    def test_accepted_must_be_boolean(self, client, client_headers, make_quote):
        quote = make_quote(status='sent')

        response = client.post(f'/api/quotes/{quote.id}/respond', headers=client_headers, json={'accepted': 'yes'})

        assert response.status_code == 400

    def test_only_sent_quotes_can_be_answered(self, client, client_headers, make_quote):
        quote = make_quote(status='draft')

        response = client.post(f'/api/quotes/{quote.id}/respond', headers=client_headers, json={'accepted': True})

        assert response.status_code == 400

    def test_technician_cannot_respond(self, client, technician_headers, make_quote):
        quote = make_quote(status='sent')

        response = client.post(f'/api/quotes/{quote.id}/respond', headers=technician_headers,
                               json={'accepted': True})

        assert response.status_code == 403


class TestQuoteAccess:

    def test_client_lists_only_own_quotes(self, client, client_headers, make_quote, other_client):
        own = make_quote()
        make_quote(client=other_client)

        response = client.get('/api/quotes', headers=client_headers)

        quotes = json.loads(response.data)['data']['quotes']
        assert [q['id'] for q in quotes] == [own.id]

    def test_client_cannot_read_other_quote(self, client, other_client_headers, make_quote):
        quote = make_quote()

        assert client.get(f'/api/quotes/{quote.id}', headers=other_client_headers).status_code == 403

    def test_unknown_quote(self, client, admin_headers):
        response = client.get('/api/quotes/does-not-exist', headers=admin_headers)

        assert response.status_code == 404
        assert json.loads(response.data)['success'] is False

    def test_pdf_export(self, client, client_headers, make_quote):
        quote = make_quote(status='sent')

        response = client.get(f'/api/quotes/{quote.id}/pdf', headers=client_headers)

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
        assert f'devis-{quote.reference}.pdf' in response.headers['Content-Disposition']

    def test_delete_blocked_when_mission_exists(self, client, admin_headers, make_mission):
        mission = make_mission()

        response = client.delete(f'/api/quotes/{mission.quote_id}', headers=admin_headers)

        assert response.status_code == 400
        assert db.session.get(Quote, mission.quote_id) is not None

    def test_stats(self, client, admin_headers, make_quote):
        make_quote(status='sent')
        make_quote(status='accepted')
        make_quote(status='draft')

        data = json.loads(client.get('/api/quotes/stats/overview', headers=admin_headers).data)['data']

        assert data['total'] == 3
        assert data['byStatus']['sent'] == 1
        assert data['acceptedValue'] == 60
        assert data['conversionRate'] == 50


class TestPublicQuoteRequest:

    def test_public_request_accepted(self, client):
        response = client.post('/api/quotes/request', json={
            'firstName': 'Jean', 'lastName': 'Visiteur', 'email': 'jean@example.com',
            'message': 'Je voudrais une borne 11kW',
        })

        assert response.status_code == 200
        assert Notification.query.count() == 0

    def test_public_request_validated(self, client):
        response = client.post('/api/quotes/request', json={'email': 'bad'})

        assert response.status_code == 400


def test_reference_pattern(make_quote):
    assert re.match(r'^DEV-\d{4}-\d{3}$', make_quote().reference)
