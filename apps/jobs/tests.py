from datetime import timedelta
from decimal import Decimal
import threading
from unittest import mock

import requests
from django.core import mail
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APITestCase, APITransactionTestCase

from apps.users.models import User
from core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .models import Bid, Job
from . import services
from .allocation import accept_bid, reject_bid
from .utils import resolve_bidding_deadline, send_notification


def make_user(username, role):
    return User.objects.create_user(
        username=username, password="pass12345", role=role, email=f"{username}@example.com"
    )


def make_job(employer, **kwargs):
    defaults = dict(
        title="Backend Developer",
        company="ACME",
        location="Remote",
        description="Build the API",
        bidding_deadline=timezone.now() + timedelta(hours=1),
    )
    defaults.update(kwargs)
    return Job.objects.create(posted_by=employer, **defaults)


class BiddingDeadlineTests(TestCase):
    def test_duration_is_added_to_now(self):
        now = timezone.now()
        deadline, duration = resolve_bidding_deadline(duration=6, now=now)
        self.assertEqual(duration, 6)
        self.assertEqual(deadline, now + timedelta(hours=6))

    def test_default_duration_is_24_hours(self):
        now = timezone.now()
        deadline, duration = resolve_bidding_deadline(now=now)
        self.assertEqual(duration, 24)
        self.assertEqual(deadline, now + timedelta(hours=24))

    def test_explicit_deadline_wins(self):
        now = timezone.now()
        wanted = now + timedelta(days=2)
        deadline, duration = resolve_bidding_deadline(deadline=wanted, duration=5, now=now)
        self.assertEqual(deadline, wanted)
        self.assertIsNone(duration)

    def test_past_deadline_is_rejected(self):
        with self.assertRaises(ValidationError):
            resolve_bidding_deadline(deadline=timezone.now() - timedelta(minutes=1))

    def test_unparseable_deadline_is_rejected(self):
        with self.assertRaises(ValidationError):
            resolve_bidding_deadline(deadline="next tuesday")

    def test_duration_bounds(self):
        for bad in (0, 721, "abc"):
            with self.assertRaises(ValidationError):
                resolve_bidding_deadline(duration=bad)
        resolve_bidding_deadline(duration=1)
        resolve_bidding_deadline(duration=720)


class JobRegistryTests(TestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.other_employer = make_user("emp2", "employer")
        self.freelancer = make_user("free", "freelancer")

    def test_create_job_with_duration(self):
        job = services.create_job(self.employer, {
            "title": "API", "company": "ACME", "location": "Remote",
            "description": "Build it", "bidding_duration": 1,
        })
        self.assertEqual(job.status, "open")
        self.assertEqual(job.bidding_duration, 1)
        self.assertEqual(job.salary, "Not specified")
        self.assertTrue(job.is_bidding_open)
        self.assertLess(job.bidding_deadline, timezone.now() + timedelta(hours=1, seconds=5))

    def test_create_job_requires_fields(self):
        with self.assertRaises(ValidationError):
            services.create_job(self.employer, {"title": "API", "company": "ACME", "location": " "})

    def test_freelancer_cannot_create_job(self):
        with self.assertRaises(AuthorizationError):
            services.create_job(self.freelancer, {
                "title": "API", "company": "ACME", "location": "Remote", "description": "x",
            })

    def test_public_listing_hides_expired_and_closed_jobs(self):
        live = make_job(self.employer, title="Live")
        make_job(self.employer, title="Expired", bidding_deadline=timezone.now() - timedelta(hours=1))
        make_job(self.employer, title="Cancelled", status="cancelled")

        self.assertEqual(list(services.list_jobs(self.freelancer)), [live])
        self.assertEqual(list(services.list_jobs(None)), [live])
        self.assertEqual(services.list_jobs(self.employer).count(), 3)
        self.assertEqual(services.list_jobs(self.employer, status="cancelled").count(), 1)

    def test_update_by_non_owner_is_forbidden(self):
        job = make_job(self.employer)
        with self.assertRaises(AuthorizationError):
            services.update_job(job.id, self.other_employer, {"title": "Hijacked"})

    def test_update_cancelled_job_conflicts(self):
        job = make_job(self.employer, status="cancelled")
        with self.assertRaises(ConflictError):
            services.update_job(job.id, self.employer, {"title": "Again"})

    def test_cancel_stamps_closed_at_without_allocation(self):
        job = make_job(self.employer)
        job = services.update_job(job.id, self.employer, {"status": "cancelled"})
        self.assertEqual(job.status, "cancelled")
        self.assertIsNotNone(job.closed_at)
        self.assertIsNone(job.allocated_to)

    def test_update_revalidates_bidding_window(self):
        job = make_job(self.employer)
        original_deadline = job.bidding_deadline
        for data in (
            {"bidding_deadline": timezone.now() - timedelta(minutes=5)},
            {"bidding_duration": 0},
            {"bidding_duration": 721},
        ):
            with self.assertRaises(ValidationError):
                services.update_job(job.id, self.employer, data)
        job.refresh_from_db()
        self.assertEqual(job.bidding_deadline, original_deadline)

    def test_update_extends_bidding_window(self):
        job = make_job(self.employer)
        job = services.update_job(job.id, self.employer, {"bidding_duration": 48})
        self.assertEqual(job.bidding_duration, 48)
        self.assertGreater(job.bidding_deadline, timezone.now() + timedelta(hours=47))

    def test_employer_cannot_close_job_directly(self):
        job = make_job(self.employer)
        with self.assertRaises(ValidationError):
            services.update_job(job.id, self.employer, {"status": "closed"})

    def test_get_missing_job(self):
        with self.assertRaises(NotFoundError):
            services.get_job(9999)


class BidLedgerTests(TestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.job = make_job(self.employer)

    def test_place_bid_copies_recruiter(self):
        bid = services.place_bid(self.job.id, self.freelancer, "150.00", "I can do this")
        self.assertEqual(bid.status, "pending")
        self.assertEqual(bid.recruiter, self.employer)
        self.assertEqual(bid.bid_amount, Decimal("150.00"))

    def test_employer_cannot_bid(self):
        with self.assertRaises(AuthorizationError):
            services.place_bid(self.job.id, self.employer, 100, "letter")

    def test_missing_job(self):
        with self.assertRaises(NotFoundError):
            services.place_bid(9999, self.freelancer, 100, "letter")

    def test_duplicate_bid_conflicts(self):
        services.place_bid(self.job.id, self.freelancer, 100, "letter")
        with self.assertRaises(ConflictError):
            services.place_bid(self.job.id, self.freelancer, 90, "cheaper")
        self.assertEqual(Bid.objects.filter(job=self.job).count(), 1)

    def test_bid_after_deadline_conflicts(self):
        Job.objects.filter(pk=self.job.pk).update(bidding_deadline=timezone.now() - timedelta(seconds=1))
        with self.assertRaises(ConflictError):
            services.place_bid(self.job.id, self.freelancer, 100, "letter")

    def test_bid_on_cancelled_job_conflicts(self):
        Job.objects.filter(pk=self.job.pk).update(status="cancelled")
        with self.assertRaises(ConflictError):
            services.place_bid(self.job.id, self.freelancer, 100, "letter")

    def test_status_is_checked_before_input(self):
        Job.objects.filter(pk=self.job.pk).update(status="cancelled")
        with self.assertRaises(ConflictError):
            services.place_bid(self.job.id, self.freelancer, -5, "")

    def test_invalid_input(self):
        with self.assertRaises(ValidationError):
            services.place_bid(self.job.id, self.freelancer, -1, "letter")
        with self.assertRaises(ValidationError):
            services.place_bid(self.job.id, self.freelancer, 10, "   ")
        with self.assertRaises(ValidationError):
            services.place_bid(self.job.id, self.freelancer, 10, "x" * 1001)

    def test_employer_is_notified_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            services.place_bid(self.job.id, self.freelancer, 100, "letter")
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.employer.email])

    def test_bid_listings(self):
        services.place_bid(self.job.id, self.freelancer, 100, "letter")
        self.assertEqual(services.list_bids_for_freelancer(self.freelancer).count(), 1)
        self.assertEqual(services.list_bids_for_recruiter(self.employer).count(), 1)
        self.assertEqual(services.list_bids_for_job(self.job.id, self.employer).count(), 1)
        with self.assertRaises(AuthorizationError):
            services.list_bids_for_job(self.job.id, self.freelancer)


class AllocationTests(TestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.alice = make_user("alice", "freelancer")
        self.bob = make_user("bob", "freelancer")
        self.job = services.create_job(self.employer, {
            "title": "API", "company": "ACME", "location": "Remote",
            "description": "Build it", "bidding_duration": 1,
        })
        self.bid_a = services.place_bid(self.job.id, self.alice, 100, "Alice's letter")
        self.bid_b = services.place_bid(self.job.id, self.bob, 120, "Bob's letter")

    def assertUnallocated(self):
        self.job.refresh_from_db()
        self.assertIsNone(self.job.allocated_to)
        self.assertIsNone(self.job.accepted_bid)
        self.assertNotEqual(self.job.status, "closed")
        self.assertEqual(
            set(Bid.objects.filter(job=self.job).values_list("status", flat=True)), {"pending"}
        )

    def test_accept_allocates_and_rejects_siblings(self):
        accepted = accept_bid(self.bid_a.id, self.employer)

        self.assertEqual(accepted.status, "accepted")
        self.bid_b.refresh_from_db()
        self.assertEqual(self.bid_b.status, "rejected")
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, "closed")
        self.assertEqual(self.job.allocated_to, self.alice)
        self.assertEqual(self.job.accepted_bid, self.bid_a)
        self.assertIsNotNone(self.job.allocated_at)
        self.assertIsNotNone(self.job.closed_at)
        self.assertTrue(self.job.is_allocated)

    def test_second_accept_conflicts(self):
        accept_bid(self.bid_a.id, self.employer)
        with self.assertRaises(ConflictError):
            accept_bid(self.bid_b.id, self.employer)

        self.job.refresh_from_db()
        self.assertEqual(self.job.allocated_to, self.alice)
        self.assertEqual(Bid.objects.filter(job=self.job, status="accepted").count(), 1)

    def test_only_poster_can_accept(self):
        other = make_user("emp2", "employer")
        with self.assertRaises(AuthorizationError):
            accept_bid(self.bid_a.id, other)
        self.assertUnallocated()

    def test_missing_bid(self):
        with self.assertRaises(NotFoundError):
            accept_bid(9999, self.employer)

    def test_lost_claim_conflicts_and_changes_nothing(self):
        with mock.patch("apps.jobs.allocation._claim_job", return_value=False):
            with self.assertRaises(ConflictError):
                accept_bid(self.bid_a.id, self.employer)
        self.assertUnallocated()

    def test_failure_mid_allocation_rolls_back(self):
        with mock.patch("apps.jobs.allocation._reject_siblings", side_effect=RuntimeError("db gone")):
            with self.assertRaises(RuntimeError):
                accept_bid(self.bid_a.id, self.employer)
        self.assertUnallocated()

    def test_no_notifications_for_rolled_back_allocation(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with mock.patch("apps.jobs.allocation._reject_siblings", side_effect=RuntimeError("db gone")):
                with self.assertRaises(RuntimeError):
                    accept_bid(self.bid_a.id, self.employer)
        self.assertEqual(callbacks, [])
        self.assertEqual(len(mail.outbox), 0)

    def test_accept_notifies_both_sides(self):
        with self.captureOnCommitCallbacks(execute=True):
            accept_bid(self.bid_a.id, self.employer)
        recipients = sorted(message.to[0] for message in mail.outbox)
        self.assertEqual(recipients, [self.alice.email, self.employer.email])

    def test_no_bids_after_allocation(self):
        accept_bid(self.bid_a.id, self.employer)
        carol = make_user("carol", "freelancer")
        with self.assertRaises(ConflictError):
            services.place_bid(self.job.id, carol, 90, "late")

    def test_reject_bid(self):
        rejected = reject_bid(self.bid_b.id, self.employer)
        self.assertEqual(rejected.status, "rejected")
        with self.assertRaises(ConflictError):
            reject_bid(self.bid_b.id, self.employer)
        with self.assertRaises(ConflictError):
            accept_bid(self.bid_b.id, self.employer)

    def test_reject_by_non_poster_is_forbidden(self):
        with self.assertRaises(AuthorizationError):
            reject_bid(self.bid_b.id, self.alice)


class JobApiTests(APITestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")

    def test_public_job_list(self):
        make_job(self.employer)
        resp = self.client.get(reverse("job_list"))
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["success"])
        self.assertEqual(resp.data["count"], 1)

    def test_create_requires_authentication(self):
        resp = self.client.post(reverse("job_list"), {"title": "x"}, format="json")
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(resp.data["success"])

    def test_freelancer_cannot_post_job(self):
        self.client.force_authenticate(self.freelancer)
        resp = self.client.post(reverse("job_list"), {
            "title": "API", "company": "ACME", "location": "Remote", "description": "x",
        }, format="json")
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.data["error"], "Only employers can perform this action")

    def test_employer_posts_job(self):
        self.client.force_authenticate(self.employer)
        resp = self.client.post(reverse("job_list"), {
            "title": "API", "company": "ACME", "location": "Remote",
            "description": "Build it", "bidding_duration": 48, "budget": "1000.00",
        }, format="json")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["data"]["bidding_duration"], 48)
        self.assertEqual(resp.data["data"]["posted_by"]["id"], self.employer.id)

    def test_invalid_duration_is_400(self):
        self.client.force_authenticate(self.employer)
        resp = self.client.post(reverse("job_list"), {
            "title": "API", "company": "ACME", "location": "Remote",
            "description": "Build it", "bidding_duration": 1000,
        }, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.data["success"])
        self.assertIn("bidding_duration", resp.data["details"])

    def test_bid_and_accept_flow(self):
        job = make_job(self.employer)
        self.client.force_authenticate(self.freelancer)
        resp = self.client.post(reverse("bid_create"), {
            "job_id": job.id, "bid_amount": "250.00", "cover_letter": "Hire me",
        }, format="json")
        self.assertEqual(resp.status_code, 201)
        bid_id = resp.data["data"]["id"]

        resp = self.client.post(reverse("bid_create"), {
            "job_id": job.id, "bid_amount": "200.00", "cover_letter": "Again",
        }, format="json")
        self.assertEqual(resp.status_code, 409)
        self.assertFalse(resp.data["success"])

        self.client.force_authenticate(self.employer)
        resp = self.client.put(reverse("bid_accept", args=[bid_id]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["status"], "accepted")

        resp = self.client.put(reverse("bid_accept", args=[bid_id]))
        self.assertEqual(resp.status_code, 409)

    def test_bid_on_missing_job_is_404(self):
        self.client.force_authenticate(self.freelancer)
        resp = self.client.post(reverse("bid_create"), {
            "job_id": 9999, "bid_amount": "10", "cover_letter": "Hi",
        }, format="json")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.data, {"success": False, "error": "Job not found"})


class ConcurrentAllocationTests(TransactionTestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.alice = make_user("alice", "freelancer")
        self.bob = make_user("bob", "freelancer")
        self.job = make_job(self.employer)
        self.bid_a = services.place_bid(self.job.id, self.alice, 100, "Alice's letter")
        self.bid_b = services.place_bid(self.job.id, self.bob, 120, "Bob's letter")

    def test_simultaneous_accepts_allocate_once(self):
        barrier = threading.Barrier(2)
        outcomes = []

        def accept(bid_id):
            try:
                barrier.wait(timeout=5)
                outcomes.append(accept_bid(bid_id, self.employer))
            except Exception as e:
                outcomes.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=accept, args=(bid.id,)) for bid in (self.bid_a, self.bid_b)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
        accepted = [o for o in outcomes if isinstance(o, Bid)]
        self.assertEqual(len(outcomes), 2)
        self.assertEqual((len(accepted), len(conflicts)), (1, 1), outcomes)

        winner = accepted[0]
        self.job.refresh_from_db()
        self.assertEqual(self.job.allocated_to_id, winner.freelancer_id)
        self.assertEqual(self.job.accepted_bid_id, winner.id)
        self.assertEqual(Bid.objects.filter(job=self.job, status="accepted").count(), 1)
        self.assertEqual(
            Bid.objects.filter(job=self.job, status="rejected").get().freelancer_id,
            ({self.alice.id, self.bob.id} - {winner.freelancer_id}).pop(),
        )


@override_settings(TWILIO_ACCOUNT_SID="AC00000000000000000000000000000000", TWILIO_AUTH_TOKEN="token")
class NotificationFailureTests(APITransactionTestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.freelancer.phone_number = "+15550001111"
        self.freelancer.save(update_fields=["phone_number"])
        self.job = make_job(self.employer)
        self.bid = Bid.objects.create(
            job=self.job, freelancer=self.freelancer, recruiter=self.employer,
            bid_amount=Decimal("250.00"), cover_letter="Hire me",
        )

    @mock.patch("apps.jobs.utils.TwilioClient")
    def test_sms_network_error_does_not_fail_allocation(self, twilio_client):
        twilio_client.return_value.messages.create.side_effect = requests.exceptions.ConnectionError("unreachable")
        self.client.force_authenticate(self.employer)

        resp = self.client.put(reverse("bid_accept", args=[self.bid.id]))

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["status"], "accepted")
        self.job.refresh_from_db()
        self.assertEqual(self.job.allocated_to, self.freelancer)
        twilio_client.return_value.messages.create.assert_called_once()
        self.assertEqual(
            sorted(message.to[0] for message in mail.outbox),
            [self.employer.email, self.freelancer.email],
        )

    def test_send_notification_swallows_unexpected_errors(self):
        with mock.patch("apps.jobs.utils.send_mail", side_effect=ConnectionRefusedError("smtp down")), \
                mock.patch("apps.jobs.utils.TwilioClient", side_effect=RuntimeError("bad config")):
            send_notification(self.freelancer, "Subject", "Body", "SMS")
