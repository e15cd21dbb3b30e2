import json
import unittest
from eventproof.config import HOUR_MS
from eventproof.errors import AbortCode
from eventproof.models import AttendanceState, EventState
from eventproof.services import (
    attendance_service,
    event_service,
    identity_service,
    ledger_service,
    nft_service,
    rating_service,
)
from tests.base import ORGANIZER, STRANGER, EventproofTestCase, attendees, wallet

ALICE = wallet(0x1111)
BOB = wallet(0x2222)


class TestEventLifecycle(EventproofTestCase):
    def test_create_and_activate(self):
        event_id = self.make_event(activate=False)
        self.assertEqual(event_service.require_event(event_id).state, EventState.CREATED)
        self.assertAborts(AbortCode.NOT_ORGANIZER, event_service.activate_event, STRANGER, event_id, self.now)
        event_service.activate_event(ORGANIZER, event_id, self.now)
        self.assertEqual(event_service.require_event(event_id).state, EventState.ACTIVE)

    def test_create_validation(self):
        profile = event_service.create_organizer_profile(ORGANIZER, 'Org', '', self.now)
        profile_id = profile.profile_id
        self.assertAborts(AbortCode.INVALID_CAPACITY, event_service.create_event,
                          ORGANIZER, profile_id, 'x', self.now + 1, self.now + 2, 0, self.now)
        self.assertAborts(AbortCode.INVALID_TIMESTAMP, event_service.create_event,
                          ORGANIZER, profile_id, 'x', self.now + 2, self.now + 1, 10, self.now)
        self.assertAborts(AbortCode.NOT_ORGANIZER, event_service.create_event,
                          STRANGER, profile_id, 'x', self.now + 1, self.now + 2, 10, self.now)
        self.assertAborts(AbortCode.PROFILE_NOT_FOUND, event_service.create_event,
                          ORGANIZER, wallet(0x99), 'x', self.now + 1, self.now + 2, 10, self.now)

    def test_complete_waits_for_end_time(self):
        event_id = self.make_event()
        self.assertAborts(AbortCode.INVALID_TIMESTAMP, event_service.complete_event, ORGANIZER, event_id, self.now)
        self.finish(event_id)
        self.assertEqual(event_service.require_event(event_id).state, EventState.COMPLETED)
        self.assertAborts(AbortCode.EVENT_ALREADY_COMPLETED, event_service.complete_event,
                          ORGANIZER, event_id, self.now)

    def test_complete_requires_active(self):
        event_id = self.make_event(activate=False)
        self.advance(4 * HOUR_MS)
        self.assertAborts(AbortCode.EVENT_NOT_ACTIVE, event_service.complete_event, ORGANIZER, event_id, self.now)


class TestRegistration(EventproofTestCase):
    def test_register_issues_verifiable_pass(self):
        event_id = self.make_event()
        registration = self.register(event_id, ALICE)
        self.assertEqual(registration.pass_hash, identity_service.verify_pass(
            identity_service.payload_for(registration, self.now)).pass_hash)
        record = attendance_service.get_record(event_id, ALICE)
        self.assertEqual(record.state, AttendanceState.REGISTERED)
        self.assertEqual(event_service.require_event(event_id).current_attendees, 1)

    def test_register_twice(self):
        event_id = self.make_event()
        self.register(event_id, ALICE)
        self.assertAborts(AbortCode.ALREADY_REGISTERED, self.register, event_id, ALICE)
        self.assertEqual(event_service.require_event(event_id).current_attendees, 1)

    def test_register_requires_active_event(self):
        event_id = self.make_event(activate=False)
        self.assertAborts(AbortCode.EVENT_NOT_ACTIVE, self.register, event_id, ALICE)

    def test_capacity_is_enforced(self):
        event_id = self.make_event(capacity=1)
        self.register(event_id, ALICE)
        self.assertAborts(AbortCode.INVALID_CAPACITY, self.register, event_id, BOB)

    def test_unknown_event(self):
        self.assertAborts(AbortCode.EVENT_NOT_FOUND, self.register, wallet(0x404), ALICE)

    def test_pass_ids_are_unique(self):
        event_id = self.make_event()
        ids = {self.register(event_id, address).pass_id for address in attendees(5)}
        self.assertEqual(len(ids), 5)


class TestPassVerification(EventproofTestCase):
    def setUp(self):
        super().setUp()
        self.event_id = self.make_event()
        registration = self.register(self.event_id, ALICE)
        self.payload = identity_service.payload_for(registration, self.now)
        self.register(self.event_id, BOB)

    def test_tampered_pass_id(self):
        payload = dict(self.payload, p=self.payload['p'] + 1)
        self.assertAborts(AbortCode.INVALID_CAPABILITY, attendance_service.check_in, ORGANIZER, payload, self.now)

    def test_pass_presented_for_another_wallet(self):
        payload = dict(self.payload, u=BOB)
        self.assertAborts(AbortCode.INVALID_CAPABILITY, attendance_service.check_in, ORGANIZER, payload, self.now)

    def test_unregistered_wallet(self):
        payload = dict(self.payload, u=STRANGER)
        self.assertAborts(AbortCode.INVALID_CAPABILITY, attendance_service.check_in, ORGANIZER, payload, self.now)

    def test_pass_presented_at_another_event(self):
        other_event_id = self.make_event()
        payload = dict(self.payload, e=other_event_id)
        self.assertAborts(AbortCode.INVALID_CAPABILITY, attendance_service.check_in, ORGANIZER, payload, self.now)
        self.assertAborts(AbortCode.INVALID_CAPABILITY, identity_service.verify_pass, payload)

    def test_tampered_legacy_hash(self):
        registration = identity_service.get_registration(self.event_id, ALICE)
        legacy = identity_service.payload_for(registration, self.now, legacy=True)
        identity_service.verify_pass(legacy)

        flipped = bytearray(registration.pass_hash)
        flipped[0] ^= 0x01
        legacy['pass_hash'] = '0x' + bytes(flipped).hex()
        self.assertAborts(AbortCode.INVALID_CAPABILITY, identity_service.verify_pass, legacy)

    def test_rotated_pass_invalidates_old_payload(self):
        attendance_service.generate_new_pass(ALICE, self.event_id, self.now)
        self.assertAborts(AbortCode.INVALID_CAPABILITY, attendance_service.check_in,
                          ORGANIZER, self.payload, self.now)
        registration = identity_service.get_registration(self.event_id, ALICE)
        fresh = identity_service.payload_for(registration, self.now)
        record, _ = attendance_service.check_in(ORGANIZER, json.dumps(fresh), self.now)
        self.assertEqual(record.state, AttendanceState.CHECKED_IN)

    def test_only_organizer_checks_in(self):
        self.assertAborts(AbortCode.NOT_ORGANIZER, attendance_service.check_in, STRANGER, self.payload, self.now)


class TestAttendanceStateMachine(EventproofTestCase):
    def setUp(self):
        super().setUp()
        self.event_id = self.make_event()
        self.register(self.event_id, ALICE)

    def test_happy_path_and_duration(self):
        self.check_in(self.event_id, ALICE)
        self.advance(2 * HOUR_MS + 5)
        self.check_out(self.event_id, ALICE)
        record = attendance_service.get_record(self.event_id, ALICE)
        self.assertEqual(record.state, AttendanceState.CHECKED_OUT)
        self.assertEqual(attendance_service.duration_ms(record), 2 * HOUR_MS + 5)
        self.assertEqual(attendance_service.attendance_counts(self.event_id),
                         {'registered': 1, 'checked_in': 0, 'checked_out': 1, 'attended': 1})

    def test_cannot_skip_check_in(self):
        self.assertAborts(AbortCode.INVALID_STATE_TRANSITION, attendance_service.check_out,
                          ORGANIZER, self.event_id, ALICE, self.now)
        self.assertEqual(attendance_service.get_record(self.event_id, ALICE).state, AttendanceState.REGISTERED)

    def test_double_check_in_leaves_record_unchanged(self):
        self.check_in(self.event_id, ALICE)
        first_time = self.now
        self.advance(1000)
        registration = identity_service.get_registration(self.event_id, ALICE)
        payload = identity_service.payload_for(registration, self.now)
        self.assertAborts(AbortCode.INVALID_STATE_TRANSITION, attendance_service.check_in,
                          ORGANIZER, payload, self.now)
        record = attendance_service.get_record(self.event_id, ALICE)
        self.assertEqual(record.state, AttendanceState.CHECKED_IN)
        self.assertEqual(record.check_in_time, first_time)
        self.assertEqual(len(ledger_service.audit_trail(self.event_id, 'AttendeeCheckedIn')), 1)

    def test_check_out_is_terminal(self):
        self.check_in(self.event_id, ALICE)
        self.check_out(self.event_id, ALICE)
        self.assertAborts(AbortCode.INVALID_STATE_TRANSITION, attendance_service.check_out,
                          ORGANIZER, self.event_id, ALICE, self.now)

    def test_check_out_after_event_completed(self):
        self.check_in(self.event_id, ALICE)
        self.finish(self.event_id)
        self.check_out(self.event_id, ALICE)
        self.assertEqual(attendance_service.get_record(self.event_id, ALICE).state, AttendanceState.CHECKED_OUT)

    def test_new_pass_refused_after_check_in(self):
        self.check_in(self.event_id, ALICE)
        self.assertAborts(AbortCode.INVALID_STATE_TRANSITION, attendance_service.generate_new_pass,
                          ALICE, self.event_id, self.now)


class TestCapabilities(EventproofTestCase):
    def setUp(self):
        super().setUp()
        self.event_id = self.make_event()
        self.register(self.event_id, ALICE)
        self.capability_id = self.check_in(self.event_id, ALICE)

    def test_mint_poa_once(self):
        nft = nft_service.mint_poa(ALICE, self.capability_id, self.now)
        self.assertEqual(nft.owner, ALICE)
        self.assertTrue(nft_service.has_poa(self.event_id, ALICE))
        self.assertAborts(AbortCode.INVALID_CAPABILITY, nft_service.mint_poa, ALICE, self.capability_id, self.now)
        self.assertEqual(len(nft_service.nfts_of(ALICE)), 1)

    def test_capability_is_not_transferable(self):
        self.assertAborts(AbortCode.INVALID_CAPABILITY, nft_service.mint_poa, BOB, self.capability_id, self.now)
        self.assertFalse(nft_service.has_poa(self.event_id, BOB))

    def test_capability_kind_must_match(self):
        self.assertAborts(AbortCode.INVALID_CAPABILITY, nft_service.mint_completion,
                          ALICE, self.capability_id, self.now)

    def test_discarded_capability_cannot_mint(self):
        attendance_service.discard_capability(ALICE, self.capability_id, self.now)
        self.assertAborts(AbortCode.INVALID_CAPABILITY, nft_service.mint_poa, ALICE, self.capability_id, self.now)


class TestRatings(EventproofTestCase):
    def setUp(self):
        super().setUp()
        self.event_id = self.make_event()
        self.attend(self.event_id, [ALICE], check_out=False)
        self.register(self.event_id, BOB)

    def test_attendee_rates_once(self):
        rating_service.submit_rating(ALICE, self.event_id, 450, self.now)
        self.assertTrue(rating_service.has_rated(self.event_id, ALICE))
        self.assertEqual(rating_service.average_rating(self.event_id), 450)
        self.assertAborts(AbortCode.ALREADY_RATED, rating_service.submit_rating, ALICE, self.event_id, 300, self.now)
        self.assertEqual(rating_service.rating_count(self.event_id), 1)

    def test_registered_only_cannot_rate(self):
        self.assertAborts(AbortCode.NOT_ELIGIBLE, rating_service.submit_rating, BOB, self.event_id, 400, self.now)

    def test_rating_range(self):
        for bad in (99, 501, 0, True):
            self.assertAborts(AbortCode.INVALID_RATING, rating_service.submit_rating,
                              ALICE, self.event_id, bad, self.now)

    def test_average_floors(self):
        self.attend(self.event_id, [STRANGER], check_out=False)
        rating_service.submit_rating(ALICE, self.event_id, 400, self.now)
        rating_service.submit_rating(STRANGER, self.event_id, 451, self.now)
        self.assertEqual(rating_service.average_rating(self.event_id), 425)


if __name__ == '__main__':
    unittest.main()
