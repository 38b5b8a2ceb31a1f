"""
Tests for the chat hub and the direct/group messaging routes
"""
import pytest

from models import Message
from services.chat_hub import ChatHub


class Collector:
    """Listener recording every event it receives"""

    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))

    @property
    def names(self):
        return [event for event, _ in self.events]


@pytest.fixture
def hub(flask_app):
    return flask_app.extensions['chat_hub']


class TestChatHub:
    def test_broadcast_reaches_subscribed_room_only(self):
        hub = ChatHub()
        inside, outside = Collector(), Collector()
        hub.subscribe('user:1', inside)
        hub.subscribe('user:2', outside)

        delivered = hub.broadcast('user:1', 'receiveMessage', {'id': 1})

        assert delivered == 1
        assert inside.events == [('receiveMessage', {'id': 1})]
        assert outside.events == []

    def test_unsubscribe_and_empty_rooms(self):
        hub = ChatHub()
        listener = Collector()
        hub.subscribe('group:3', listener)
        hub.subscribe('group:3', listener)
        assert hub.listener_count('group:3') == 1

        hub.unsubscribe('group:3', listener)
        assert hub.listener_count('group:3') == 0
        assert hub.broadcast('group:3', 'receiveGroupMessage', {}) == 0

    def test_failing_listener_dropped(self):
        hub = ChatHub()
        healthy = Collector()

        def broken(event, payload):
            raise ConnectionError('socket closed')

        hub.subscribe('user:1', broken)
        hub.subscribe('user:1', healthy)

        assert hub.broadcast('user:1', 'receiveMessage', {}) == 1
        assert hub.listener_count('user:1') == 1
        assert healthy.names == ['receiveMessage']


class TestDirectMessages:
    def test_send_persists_then_broadcasts(self, login, hub, player, player2):
        receiver_socket, sender_socket = Collector(), Collector()
        hub.subscribe(f'user:{player2.id}', receiver_socket)
        hub.subscribe(f'user:{player.id}', sender_socket)

        response = login(player).post('/chat/messages', json={'receiverId': player2.id, 'message': 'Training at 6?'})

        assert response.status_code == 201
        assert Message.query.count() == 1
        assert receiver_socket.names == ['receiveMessage']
        assert receiver_socket.events[0][1]['message'] == 'Training at 6?'
        assert sender_socket.names == ['messageSent']

    def test_absent_receiver_gets_nothing_live(self, login, hub, player, player2, coach):
        bystander = Collector()
        hub.subscribe(f'user:{coach.id}', bystander)

        login(player).post('/chat/messages', json={'receiverId': player2.id, 'message': 'hello'})

        assert bystander.events == []
        history = login(player2).get(f'/chat/conversations/{player.id}').get_json()
        assert [m['message'] for m in history] == ['hello']

    def test_conversations_and_unread(self, login, player, player2, coach):
        login(player).post('/chat/messages', json={'receiverId': player2.id, 'message': 'one'})
        login(coach).post('/chat/messages', json={'receiverId': player2.id, 'message': 'two'})
        login(coach).post('/chat/messages', json={'receiverId': player2.id, 'message': 'three'})

        client = login(player2)
        assert client.get('/chat/unread-count').get_json() == {'count': 3}

        overview = client.get('/chat/conversations').get_json()
        assert [c['partner']['id'] for c in overview] == [coach.id, player.id]
        assert overview[0]['lastMessage']['message'] == 'three'
        assert overview[0]['unreadCount'] == 2

        assert client.post(f'/chat/conversations/{coach.id}/read').get_json() == {'updated': 2}
        assert client.get('/chat/unread-count').get_json() == {'count': 1}

    def test_only_sender_deletes(self, login, hub, player, player2):
        sent = login(player).post('/chat/messages', json={'receiverId': player2.id, 'message': 'oops'}).get_json()

        assert login(player2).delete(f"/chat/messages/{sent['id']}").status_code == 403

        receiver_socket = Collector()
        hub.subscribe(f'user:{player2.id}', receiver_socket)
        assert login(player).delete(f"/chat/messages/{sent['id']}").status_code == 200
        assert receiver_socket.events == [('messageDeleted', {'messageId': sent['id']})]
        assert login(player2).get(f'/chat/conversations/{player.id}').get_json() == []

    def test_cannot_message_self(self, login, player):
        response = login(player).post('/chat/messages', json={'receiverId': player.id, 'message': 'me'})
        assert response.status_code == 400

    def test_empty_message(self, login, player, player2):
        response = login(player).post('/chat/messages', json={'receiverId': player2.id, 'message': '   '})
        assert response.status_code == 400


class TestGroups:
    @pytest.fixture
    def group(self, login, coach, player):
        response = login(coach).post('/chat/groups', json={'name': 'Seniors', 'memberIds': [player.id]})
        assert response.status_code == 201
        return response.get_json()

    def test_creator_is_admin(self, login, coach, player, group):
        members = login(coach).get(f"/chat/groups/{group['id']}/members").get_json()
        roles = {m['userId']: m['role'] for m in members}
        assert roles == {coach.id: 'admin', player.id: 'member'}
        assert group['memberCount'] == 2

    def test_group_message_broadcast_and_read_tracking(self, login, hub, coach, player, group):
        room = Collector()
        hub.subscribe(f"group:{group['id']}", room)

        sent = login(coach).post(f"/chat/groups/{group['id']}/messages", json={'message': 'Match day!'}).get_json()
        assert sent['readBy'] == [coach.id]
        assert room.names == ['receiveGroupMessage']

        listing = login(player).get('/chat/groups').get_json()
        assert listing[0]['unreadCount'] == 1
        assert listing[0]['lastMessage']['message'] == 'Match day!'

        assert login(player).post(f"/chat/groups/{group['id']}/read").get_json() == {'updated': 1}
        assert login(player).get('/chat/groups').get_json()[0]['unreadCount'] == 0

    def test_non_member_cannot_post(self, login, player2, group):
        response = login(player2).post(f"/chat/groups/{group['id']}/messages", json={'message': 'hi'})
        assert response.status_code == 403

    def test_admin_manages_members(self, login, coach, player, player2, group):
        assert login(player).post(f"/chat/groups/{group['id']}/members",
                                  json={'userId': player2.id}).status_code == 403

        client = login(coach)
        assert client.post(f"/chat/groups/{group['id']}/members", json={'userId': player2.id}).status_code == 201
        assert client.post(f"/chat/groups/{group['id']}/members", json={'userId': player2.id}).status_code == 409
        assert client.delete(f"/chat/groups/{group['id']}/members/{player2.id}").status_code == 200

    def test_member_can_leave(self, login, player, group):
        assert login(player).delete(f"/chat/groups/{group['id']}/members/{player.id}").status_code == 200
        assert login(player).get('/chat/groups').get_json() == []

    def test_only_sender_deletes_group_message(self, login, hub, coach, player, group):
        sent = login(player).post(f"/chat/groups/{group['id']}/messages", json={'message': 'late'}).get_json()
        room = Collector()
        hub.subscribe(f"group:{group['id']}", room)

        assert login(coach).delete(f"/chat/groups/{group['id']}/messages/{sent['id']}").status_code == 403
        assert login(player).delete(f"/chat/groups/{group['id']}/messages/{sent['id']}").status_code == 200
        assert room.names == ['groupMessageDeleted']
        assert login(coach).get(f"/chat/groups/{group['id']}/messages").get_json() == []
