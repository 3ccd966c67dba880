"""
HTTP API tests: routing, authentication, camelCase payloads and the error envelope.
"""

from datetime import timedelta

from ticketdesk.models import UserRole, UserStatus
from ticketdesk.services.booking_service import BookingService


class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "ticketdesk"}
        assert "X-Request-ID" in response.headers

    async def test_incoming_request_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    async def test_chatbot_health(self, client):
        response = await client.get("/api/chatbot/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "chatbot"}


class TestBookingEndpoints:

    async def test_create_booking(self, client, make_user, make_event, make_ticket_type, auth_headers):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event, price="25.00", capacity=10)

        # When
        response = await client.post(
            "/api/attendee/bookings",
            json={"eventId": str(event.id), "ticketTypeId": str(ticket_type.id), "quantity": 2},
            headers=auth_headers(user),
        )

        # Then
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Booking created successfully"
        booking = body["booking"]
        assert booking["status"] == "confirmed"
        assert booking["quantity"] == 2
        assert booking["totalPrice"] == 50.0
        assert booking["bookingReference"].startswith("EVT-")
        assert booking["event"]["title"] == "Jazz Night"
        assert booking["ticketType"]["name"] == "General"

    async def test_missing_token(self, client):
        response = await client.get("/api/attendee/bookings")

        assert response.status_code == 401
        assert response.json()["error"]["error_code"] == "UNAUTHORIZED"

    async def test_invalid_token(self, client):
        response = await client.get("/api/attendee/bookings", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    async def test_blocked_user(self, client, make_user, auth_headers):
        user = await make_user(status=UserStatus.BLOCKED)

        response = await client.get("/api/attendee/bookings", headers=auth_headers(user))

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Inactive user"

    async def test_organizer_cannot_book(self, client, make_user, make_event, make_ticket_type, auth_headers):
        # Given
        organizer = await make_user(role=UserRole.ORGANIZER)
        event = await make_event()
        ticket_type = await make_ticket_type(event)

        # When
        response = await client.post(
            "/api/attendee/bookings",
            json={"eventId": str(event.id), "ticketTypeId": str(ticket_type.id), "quantity": 1},
            headers=auth_headers(organizer),
        )

        # Then
        assert response.status_code == 403
        assert response.json()["error"]["error_code"] == "FORBIDDEN"

    async def test_invalid_body_uses_error_envelope(self, client, make_user, auth_headers):
        user = await make_user()

        response = await client.post(
            "/api/attendee/bookings",
            json={"eventId": "not-a-uuid", "quantity": 0},
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["error_code"] == "VALIDATION_ERROR"
        assert "field_errors" in body["error"]["details"]
        assert body["error_id"]
        assert body["timestamp"].endswith("Z")

    async def test_insufficient_capacity(self, client, make_user, make_event, make_ticket_type, auth_headers):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event, capacity=2)

        # When
        response = await client.post(
            "/api/attendee/bookings",
            json={"eventId": str(event.id), "ticketTypeId": str(ticket_type.id), "quantity": 3},
            headers=auth_headers(user),
        )

        # Then
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["error_code"] == "INSUFFICIENT_CAPACITY"
        assert error["details"]["available"] == 2

    async def test_list_get_and_cancel(
        self, client, make_user, make_event, make_ticket_type, auth_headers
    ):
        # Given
        user = await make_user()
        waiter = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        headers = auth_headers(user)
        created = await client.post(
            "/api/attendee/bookings",
            json={"eventId": str(event.id), "ticketTypeId": str(ticket_type.id), "quantity": 1},
            headers=headers,
        )
        booking_id = created.json()["booking"]["id"]
        await client.post(
            f"/api/attendee/events/{event.id}/waitlist",
            json={"ticketTypeId": str(ticket_type.id)},
            headers=auth_headers(waiter),
        )

        # When
        listing = await client.get("/api/attendee/bookings", headers=headers)
        detail = await client.get(f"/api/attendee/bookings/{booking_id}", headers=headers)
        cancelled = await client.delete(f"/api/attendee/bookings/{booking_id}", headers=headers)
        again = await client.delete(f"/api/attendee/bookings/{booking_id}", headers=headers)

        # Then
        assert listing.json()["total"] == 1
        assert detail.json()["booking"]["id"] == booking_id
        assert cancelled.status_code == 200
        assert cancelled.json()["booking"]["status"] == "cancelled"
        assert cancelled.json()["waitlistNotified"] == 1
        assert again.status_code == 400

    async def test_other_users_booking_is_not_found(
        self, client, make_user, make_event, make_ticket_type, auth_headers
    ):
        # Given
        owner = await make_user()
        stranger = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        created = await client.post(
            "/api/attendee/bookings",
            json={"eventId": str(event.id), "ticketTypeId": str(ticket_type.id), "quantity": 1},
            headers=auth_headers(owner),
        )

        # When
        response = await client.get(
            f"/api/attendee/bookings/{created.json()['booking']['id']}",
            headers=auth_headers(stranger),
        )

        # Then
        assert response.status_code == 404
        assert response.json()["error"]["error_code"] == "NOT_FOUND"

    async def test_attend(
        self, client, make_user, make_event, make_ticket_type, move_event_start, auth_headers
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        headers = auth_headers(user)
        created = await client.post(
            "/api/attendee/bookings",
            json={"eventId": str(event.id), "ticketTypeId": str(ticket_type.id), "quantity": 1},
            headers=headers,
        )
        booking_id = created.json()["booking"]["id"]
        early = await client.post(f"/api/attendee/bookings/{booking_id}/attend", headers=headers)
        await move_event_start(event.id, timedelta(minutes=-10))

        # When
        response = await client.post(f"/api/attendee/bookings/{booking_id}/attend", headers=headers)

        # Then
        assert early.status_code == 400
        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "attended"
        assert response.json()["booking"]["attendedAt"] is not None


class TestWaitlistEndpoints:

    async def test_join_list_and_leave(self, client, make_user, make_event, auth_headers):
        # Given
        first = await make_user()
        second = await make_user()
        event = await make_event()

        # When
        joined_first = await client.post(f"/api/attendee/events/{event.id}/waitlist", headers=auth_headers(first))
        joined_second = await client.post(
            f"/api/attendee/events/{event.id}/waitlist", json={}, headers=auth_headers(second)
        )
        duplicate = await client.post(f"/api/attendee/events/{event.id}/waitlist", headers=auth_headers(first))
        mine = await client.get("/api/attendee/waitlist", headers=auth_headers(second))
        left = await client.delete(f"/api/attendee/events/{event.id}/waitlist", headers=auth_headers(first))
        left_again = await client.delete(f"/api/attendee/events/{event.id}/waitlist", headers=auth_headers(first))

        # Then
        assert joined_first.status_code == 201
        assert joined_first.json()["position"] == 1
        assert joined_second.json()["position"] == 2
        assert joined_second.json()["message"] == "Added to waitlist at position 2"
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["error_code"] == "ALREADY_ON_WAITLIST"
        assert mine.json()["total"] == 1
        assert mine.json()["waitlists"][0]["position"] == 2
        assert left.status_code == 200
        assert left.json()["removed"] == 1
        assert left_again.status_code == 404


class TestReviewEndpoints:

    async def test_review_flow(
        self, client, session, make_user, make_event, make_ticket_type, move_event_start, auth_headers
    ):
        # Given
        user = await make_user()
        event = await make_event()
        ticket_type = await make_ticket_type(event)
        booking = await BookingService(session).book_ticket(user.id, event.id, ticket_type.id, 1)
        headers = auth_headers(user)
        url = f"/api/attendee/events/{event.id}/reviews"

        # When
        before_attending = await client.post(url, json={"rating": 5}, headers=headers)
        await move_event_start(event.id, timedelta(minutes=-10))
        await BookingService(session).mark_attendance(user.id, booking.id)
        created = await client.post(url, json={"rating": 4, "comment": "Lovely"}, headers=headers)
        duplicate = await client.post(url, json={"rating": 3}, headers=headers)
        review_id = created.json()["review"]["id"]
        updated = await client.put(f"/api/attendee/reviews/{review_id}", json={"rating": 5}, headers=headers)
        listing = await client.get(f"/api/events/{event.id}/reviews")

        # Then
        assert before_attending.status_code == 403
        assert before_attending.json()["error"]["error_code"] == "NOT_ATTENDED"
        assert created.status_code == 201
        assert created.json()["review"]["isVerifiedAttendee"] is True
        assert duplicate.status_code == 409
        assert updated.json()["review"]["rating"] == 5
        assert updated.json()["review"]["comment"] == "Lovely"
        body = listing.json()
        assert body["averageRating"] == 5.0
        assert body["pagination"]["totalPages"] == 1
        assert body["reviews"][0]["user"]["firstName"] == "Test"

    async def test_invalid_rating(self, client, make_user, make_event, auth_headers):
        user = await make_user()
        event = await make_event()

        response = await client.post(
            f"/api/attendee/events/{event.id}/reviews", json={"rating": 9}, headers=auth_headers(user)
        )

        assert response.status_code == 400

    async def test_reviews_of_unknown_event(self, client, make_user):
        user = await make_user()

        response = await client.get(f"/api/events/{user.id}/reviews")

        assert response.status_code == 404

    async def test_delete_review_of_other_user(self, client, make_user, auth_headers):
        user = await make_user()

        response = await client.delete(f"/api/attendee/reviews/{user.id}", headers=auth_headers(user))

        assert response.status_code == 404


class TestChatbotEndpoint:

    async def test_anonymous_search_then_login_prompt(self, client, make_event, make_ticket_type):
        # Given
        event = await make_event(title="Jazz Night")
        await make_ticket_type(event)

        # When
        search = await client.post("/api/chatbot/chat", json={"message": "show me events"})
        book = await client.post("/api/chatbot/chat", json={"message": "book Jazz Night"})

        # Then
        assert search.status_code == 200
        state = search.json()["conversationState"]
        assert state["intent"] == "booking"
        assert state["step"] == "select_event"
        assert state["searchResults"][0]["title"] == "Jazz Night"
        assert book.json()["message"].startswith("**Login Required**")

    async def test_state_round_trip(self, client, make_user, make_event, make_ticket_type, auth_headers):
        # Given
        user = await make_user()
        event = await make_event(title="Jazz Night")
        await make_ticket_type(event, name="General", price="25.00")
        headers = auth_headers(user)
        first = await client.post("/api/chatbot/chat", json={"message": "book Jazz Night"}, headers=headers)

        # When
        second = await client.post(
            "/api/chatbot/chat",
            json={"message": "General", "conversationState": first.json()["conversationState"]},
            headers=headers,
        )

        # Then
        state = second.json()["conversationState"]
        assert state["step"] == "select_quantity"
        assert state["ticketTypeName"] == "General"
        assert state["eventName"] == "Jazz Night"

    async def test_empty_message(self, client):
        response = await client.post("/api/chatbot/chat", json={"message": ""})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Message cannot be empty"
