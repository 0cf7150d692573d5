"""Tests for the booking request status machine."""

import pytest

from booking_engine.errors import AuthorizationError, ConflictError
from booking_engine.lifecycle.request_machine import BookingRequestStateMachine, RequestTrigger
from booking_engine.lifecycle.transitions import Actor
from booking_engine.schemas.booking_schema import BookingRequestStatus

S = BookingRequestStatus
T = RequestTrigger


@pytest.fixture
def machine():
    return BookingRequestStateMachine(S.PENDING)


class TestInitialState:
    def test_starts_pending(self, machine):
        assert machine.current_state == S.PENDING
        assert not machine.is_terminal()

    def test_initial_history_has_one_entry(self, machine):
        assert len(machine.get_history()) == 1

    def test_valid_triggers_from_pending(self, machine):
        assert set(machine.get_valid_triggers()) == {
            T.ACCEPT, T.REJECT, T.CANCEL, T.EXPIRE, T.COUNTER_OFFER,
        }


class TestProviderResponse:
    def test_accept(self, machine):
        assert machine.transition(T.ACCEPT, Actor.PROVIDER) == S.ACCEPTED

    def test_reject(self, machine):
        assert machine.transition(T.REJECT, Actor.PROVIDER) == S.REJECTED

    @pytest.mark.parametrize("trigger", [T.ACCEPT, T.REJECT])
    def test_requester_cannot_respond(self, machine, trigger):
        with pytest.raises(AuthorizationError):
            machine.transition(trigger, Actor.REQUESTER)
        assert machine.current_state == S.PENDING


class TestCancellationAndExpiry:
    def test_requester_cancels(self, machine):
        assert machine.transition(T.CANCEL, Actor.REQUESTER) == S.CANCELLED

    def test_provider_cannot_cancel(self, machine):
        with pytest.raises(AuthorizationError):
            machine.transition(T.CANCEL, Actor.PROVIDER)

    def test_only_system_expires(self, machine):
        for actor in (Actor.PROVIDER, Actor.REQUESTER, Actor.OPERATOR):
            with pytest.raises(AuthorizationError):
                machine.transition(T.EXPIRE, actor)
        assert machine.transition(T.EXPIRE, Actor.SYSTEM) == S.EXPIRED


class TestNegotiationLoop:
    def test_counter_offer_and_acknowledge(self, machine):
        machine.transition(T.COUNTER_OFFER, Actor.PROVIDER)
        assert machine.current_state == S.NEGOTIATING
        machine.transition(T.ACKNOWLEDGE, Actor.REQUESTER)
        assert machine.current_state == S.PENDING
        assert machine.get_state_trace() == ["pending", "negotiating", "pending"]

    @pytest.mark.parametrize("trigger,actor,expected", [
        (T.ACCEPT, Actor.PROVIDER, S.ACCEPTED),
        (T.REJECT, Actor.PROVIDER, S.REJECTED),
        (T.CANCEL, Actor.REQUESTER, S.CANCELLED),
    ])
    def test_negotiating_can_finish(self, trigger, actor, expected):
        m = BookingRequestStateMachine(S.NEGOTIATING)
        assert m.transition(trigger, actor) == expected

    def test_negotiating_does_not_expire(self):
        m = BookingRequestStateMachine(S.NEGOTIATING)
        with pytest.raises(ConflictError):
            m.transition(T.EXPIRE, Actor.SYSTEM)

    def test_acknowledge_needs_open_offer(self, machine):
        with pytest.raises(ConflictError):
            machine.transition(T.ACKNOWLEDGE, Actor.REQUESTER)


class TestTerminalStates:
    @pytest.mark.parametrize("terminal", [S.ACCEPTED, S.REJECTED, S.CANCELLED, S.EXPIRED])
    @pytest.mark.parametrize("trigger", list(RequestTrigger))
    def test_no_transition_out_of_terminal(self, terminal, trigger):
        m = BookingRequestStateMachine(terminal)
        assert m.is_terminal()
        assert m.get_valid_triggers() == []
        with pytest.raises(ConflictError):
            m.transition(trigger, Actor.SYSTEM)
        assert m.current_state == terminal

    def test_expired_then_accept_conflicts(self, machine):
        machine.transition(T.EXPIRE, Actor.SYSTEM)
        with pytest.raises(ConflictError, match="expired"):
            machine.transition(T.ACCEPT, Actor.PROVIDER)

    def test_history_records_trigger_and_actor(self, machine):
        machine.transition(T.ACCEPT, Actor.PROVIDER)
        last = machine.get_history()[-1]
        assert last.trigger == T.ACCEPT
        assert last.actor == Actor.PROVIDER
        assert last.state == S.ACCEPTED
