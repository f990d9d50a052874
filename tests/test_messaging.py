"""
Messaging tests: conversations, unread counters and attachments
"""
import io
import json

import pytest

from app import db
from app.models import Conversation, Message


@pytest.fixture
def conversation(client, client_headers, technician, admin):
    response = client.post('/api/messages/conversations', headers=client_headers, json={
        'recipients': [technician.id, admin.id],
        'subject': 'Borne en panne',
        'content': 'La borne ne charge plus',
    })
    return json.loads(response.data)['data']['conversation']


class TestConversations:

    def test_create_conversation(self, client, conversation, client_user, technician, admin):
        assert conversation['subject'] == 'Borne en panne'
        assert conversation['unreadCount'] == 0
        assert conversation['lastMessage']['content'] == 'La borne ne charge plus'
        assert conversation['lastMessage']['sender']['id'] == client_user.id
        assert conversation['unreadCounts'] == {client_user.id: 0, technician.id: 1, admin.id: 1}
        assert sorted(p['role'] for p in conversation['participants']) == ['admin', 'client', 'technician']

    def test_recipients_notified(self, client, client_headers, technician, published):
        client.post('/api/messages/conversations', headers=client_headers,
                    json={'recipients': [technician.id], 'content': 'Bonjour'})

        assert [n['type'] for n in published.for_user(technician.id)] == ['new_message']

    def test_unknown_recipient(self, client, client_headers):
        response = client.post('/api/messages/conversations', headers=client_headers,
                               json={'recipients': ['ghost'], 'content': 'Bonjour'})

        assert response.status_code == 400
        assert json.loads(response.data)['errors'][0]['field'] == 'recipients[0]'

    def test_empty_content(self, client, client_headers, technician):
        response = client.post('/api/messages/conversations', headers=client_headers,
                               json={'recipients': [technician.id], 'content': '   '})

        assert response.status_code == 400
        assert Conversation.query.count() == 0

    def test_reply_bumps_other_counters(self, client, technician_headers, conversation, client_user,
                                        technician, admin):
        response = client.post(f'/api/messages/conversations/{conversation["id"]}', headers=technician_headers,
                               json={'content': 'Je passe demain'})

        assert response.status_code == 201
        stored = db.session.get(Conversation, conversation['id'])
        db.session.refresh(stored)
        assert stored.unread_counts == {client_user.id: 1, technician.id: 1, admin.id: 2}
        assert stored.last_message['sender']['name'] == 'Thomas Martin'

    def test_read_resets_only_caller(self, client, technician_headers, conversation, client_user,
                                     technician, admin):
        response = client.patch(f'/api/messages/conversations/{conversation["id"]}/read',
                                headers=technician_headers)

        assert response.status_code == 200
        stored = db.session.get(Conversation, conversation['id'])
        db.session.refresh(stored)
        assert stored.unread_counts == {client_user.id: 0, technician.id: 0, admin.id: 1}

    def test_outsider_forbidden(self, client, other_client_headers, conversation):
        conversation_id = conversation['id']

        assert client.get(f'/api/messages/conversations/{conversation_id}',
                          headers=other_client_headers).status_code == 403
        assert client.post(f'/api/messages/conversations/{conversation_id}', headers=other_client_headers,
                           json={'content': 'Hello'}).status_code == 403
        assert client.patch(f'/api/messages/conversations/{conversation_id}/read',
                            headers=other_client_headers).status_code == 403

    def test_list_only_participating(self, client, other_client_headers, technician_headers, conversation):
        mine = json.loads(client.get('/api/messages/conversations', headers=technician_headers).data)
        theirs = json.loads(client.get('/api/messages/conversations', headers=other_client_headers).data)

        assert [c['id'] for c in mine['data']['conversations']] == [conversation['id']]
        assert mine['data']['conversations'][0]['unreadCount'] == 1
        assert theirs['data']['conversations'] == []

    def test_get_includes_messages(self, client, admin_headers, conversation):
        response = client.get(f'/api/messages/conversations/{conversation["id"]}', headers=admin_headers)

        messages = json.loads(response.data)['data']['conversation']['messages']
        assert [m['content'] for m in messages] == ['La borne ne charge plus']

    def test_reply_with_attachment(self, client, technician_headers, conversation):
        response = client.post(
            f'/api/messages/conversations/{conversation["id"]}',
            headers=technician_headers,
            data={'content': 'Devis en PJ', 'attachments': [(io.BytesIO(b'%PDF-1.4'), 'devis.pdf')]},
            content_type='multipart/form-data',
        )

        assert response.status_code == 201
        attachments = json.loads(response.data)['data']['message']['attachments']
        assert attachments[0]['name'] == 'devis.pdf'
        assert attachments[0]['url'].startswith('/uploads/attachments/')


class TestDirectMessages:

    def test_send_about_mission(self, client, technician_headers, client_headers, client_user, make_mission):
        mission = make_mission()

        response = client.post('/api/messages/send', headers=technician_headers, json={
            'recipients': [client_user.id], 'content': 'Arrivée vers 10h', 'mission': mission.id,
        })

        assert response.status_code == 201
        assert json.loads(response.data)['data']['message']['mission']['missionNumber'] == mission.mission_number
        inbox = json.loads(client.get('/api/messages/my', headers=client_headers).data)['data']['messages']
        assert [m['content'] for m in inbox] == ['Arrivée vers 10h']

    def test_unknown_mission(self, client, technician_headers, client_user):
        response = client.post('/api/messages/send', headers=technician_headers, json={
            'recipients': [client_user.id], 'content': 'Bonjour', 'mission': 'missing',
        })

        assert response.status_code == 400
        assert Message.query.count() == 0

    def test_sending_only_to_self_rejected(self, client, technician_headers, technician, published):
        response = client.post('/api/messages/send', headers=technician_headers, json={
            'recipients': [technician.id], 'content': 'Note perso',
        })

        assert response.status_code == 400
        assert Message.query.count() == 0
        assert published.for_user(technician.id) == []
