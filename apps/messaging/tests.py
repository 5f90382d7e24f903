from datetime import timedelta
from unittest import mock

from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.jobs.allocation import accept_bid
from apps.jobs.models import Job
from apps.jobs.services import place_bid
from apps.users.models import User
from core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from . import services
from .models import Message
from .signals import message_sent


def make_user(username, role):
    return User.objects.create_user(
        username=username, password="pass12345", role=role, email=f"{username}@example.com"
    )


def make_job(employer, title="Landing Page"):
    return Job.objects.create(
        posted_by=employer, title=title, company="ACME", location="Remote",
        description="Design it", bidding_deadline=timezone.now() + timedelta(hours=1),
    )


def allocate(job, freelancer, amount="300.00"):
    bid = place_bid(job.id, freelancer, amount, "Pick me")
    accept_bid(bid.id, job.posted_by)
    job.refresh_from_db()
    return job


class MessagingTests(TestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.outsider = make_user("other", "freelancer")
        self.job = allocate(make_job(self.employer), self.freelancer)

    def test_send_and_read_history(self):
        services.send_message(self.job.id, self.employer, self.freelancer.id, "Welcome aboard")
        services.send_message(self.job.id, self.freelancer, self.employer.id, "Thanks!")

        history = services.get_job_messages(self.job.id, self.freelancer)

        self.assertEqual([m.content for m in history], ["Welcome aboard", "Thanks!"])

    def test_reading_marks_counterpart_messages_read(self):
        services.send_message(self.job.id, self.employer, self.freelancer.id, "Hello")
        services.send_message(self.job.id, self.freelancer, self.employer.id, "Hi")
        self.assertEqual(services.get_unread_count(self.freelancer), 1)

        services.get_job_messages(self.job.id, self.freelancer)

        self.assertEqual(services.get_unread_count(self.freelancer), 0)
        self.assertEqual(services.get_unread_count(self.employer), 1)
        read = Message.objects.get(content="Hello")
        self.assertTrue(read.is_read)
        self.assertIsNotNone(read.read_at)

    def test_paging_returns_newest_window_oldest_first(self):
        for i in range(5):
            Message.objects.create(
                job=self.job, sender=self.employer, receiver=self.freelancer,
                content=f"m{i}", timestamp=timezone.now() + timedelta(seconds=i),
            )
        page = services.get_job_messages(self.job.id, self.freelancer, limit=2, skip=1)
        self.assertEqual([m.content for m in page], ["m2", "m3"])

    def test_deleted_messages_are_hidden(self):
        services.send_message(self.job.id, self.employer, self.freelancer.id, "Keep")
        gone = services.send_message(self.job.id, self.employer, self.freelancer.id, "Oops")
        Message.objects.filter(pk=gone.pk).update(is_deleted=True, deleted_at=timezone.now())

        history = services.get_job_messages(self.job.id, self.freelancer)

        self.assertEqual([m.content for m in history], ["Keep"])

    def test_deleted_messages_are_not_counted_unread(self):
        services.send_message(self.job.id, self.employer, self.freelancer.id, "Keep")
        gone = services.send_message(self.job.id, self.employer, self.freelancer.id, "Oops")
        Message.objects.filter(pk=gone.pk).update(is_deleted=True, deleted_at=timezone.now())

        self.assertEqual(services.get_unread_count(self.freelancer), 1)
        self.assertEqual(services.get_conversations(self.freelancer)[0]["unread_count"], 1)

    def test_outsider_is_forbidden(self):
        with self.assertRaises(AuthorizationError):
            services.get_job_messages(self.job.id, self.outsider)
        with self.assertRaises(AuthorizationError):
            services.send_message(self.job.id, self.outsider, self.employer.id, "Let me in")

    def test_unallocated_job_conflicts(self):
        job = make_job(self.employer, title="Still open")
        with self.assertRaises(ConflictError):
            services.get_job_messages(job.id, self.employer)
        with self.assertRaises(ConflictError):
            services.send_message(job.id, self.employer, self.freelancer.id, "Early")

    def test_missing_job(self):
        with self.assertRaises(NotFoundError):
            services.get_job_messages(9999, self.employer)

    def test_receiver_must_be_counterpart(self):
        with self.assertRaises(ValidationError):
            services.send_message(self.job.id, self.employer, self.outsider.id, "Wrong person")

    def test_content_rules(self):
        with self.assertRaises(ValidationError):
            services.send_message(self.job.id, self.employer, self.freelancer.id, "   ")
        with self.assertRaises(ValidationError):
            services.send_message(self.job.id, self.employer, self.freelancer.id, "x" * 2001)
        with self.assertRaises(ValidationError):
            services.send_message(self.job.id, self.employer, self.freelancer.id, "hi", message_type="video")

    def test_invalid_paging(self):
        with self.assertRaises(ValidationError):
            services.get_job_messages(self.job.id, self.employer, limit="ten")
        with self.assertRaises(ValidationError):
            services.get_job_messages(self.job.id, self.employer, limit=0)

    def test_message_sent_signal_fires_on_commit(self):
        handler = mock.Mock()
        message_sent.connect(handler, weak=False)
        self.addCleanup(message_sent.disconnect, handler)

        with self.captureOnCommitCallbacks(execute=True):
            message = services.send_message(self.job.id, self.employer, self.freelancer.id, "Ping")

        handler.assert_called_once()
        self.assertEqual(handler.call_args.kwargs["message"], message)

    def test_mark_conversation_read(self):
        services.send_message(self.job.id, self.employer, self.freelancer.id, "One")
        services.send_message(self.job.id, self.employer, self.freelancer.id, "Two")
        self.assertEqual(services.mark_conversation_read(self.job.id, self.freelancer), 2)
        self.assertEqual(services.mark_conversation_read(self.job.id, self.freelancer), 0)

    def test_conversations(self):
        other_job = allocate(make_job(self.employer, title="Logo"), self.outsider, amount="80.00")
        services.send_message(self.job.id, self.employer, self.freelancer.id, "First")
        services.send_message(self.job.id, self.employer, self.freelancer.id, "Latest")
        make_job(self.employer, title="Unallocated")

        employer_view = services.get_conversations(self.employer)
        self.assertEqual({c["job"].id for c in employer_view}, {self.job.id, other_job.id})

        freelancer_view = services.get_conversations(self.freelancer)
        self.assertEqual(len(freelancer_view), 1)
        conversation = freelancer_view[0]
        self.assertEqual(conversation["other_user"], self.employer)
        self.assertEqual(conversation["latest_message"].content, "Latest")
        self.assertEqual(conversation["unread_count"], 2)
        self.assertEqual(str(conversation["bid_amount"]), "300.00")


class MessagingApiTests(APITestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.job = allocate(make_job(self.employer), self.freelancer)

    def test_send_and_list(self):
        self.client.force_authenticate(self.employer)
        resp = self.client.post(reverse("send_message"), {
            "job_id": self.job.id, "receiver_id": self.freelancer.id, "content": "Kickoff at 10?",
        }, format="json")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["data"]["sender"]["id"], self.employer.id)

        self.client.force_authenticate(self.freelancer)
        resp = self.client.get(reverse("unread_count"))
        self.assertEqual(resp.data["data"], {"unread_count": 1})

        resp = self.client.get(reverse("conversations"))
        self.assertEqual(resp.data["count"], 1)
        self.assertEqual(resp.data["data"][0]["latest_message"]["content"], "Kickoff at 10?")

        resp = self.client.get(reverse("job_messages", args=[self.job.id]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["count"], 1)

        resp = self.client.put(reverse("mark_read", args=[self.job.id]))
        self.assertEqual(resp.data["data"], {"modified_count": 0})

    def test_unallocated_job_is_409(self):
        job = make_job(self.employer, title="Open")
        self.client.force_authenticate(self.employer)
        resp = self.client.get(reverse("job_messages", args=[job.id]))
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["error"], "Messaging is only available after job allocation")

    def test_requires_authentication(self):
        resp = self.client.get(reverse("unread_count"))
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(resp.data["success"])
