from datetime import timedelta
from unittest import mock

from django.core import mail
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


def make_user(username, role):
    return User.objects.create_user(
        username=username, password="pass12345", role=role, email=f"{username}@example.com"
    )


def make_allocated_job(employer, freelancer, **kwargs):
    job = Job.objects.create(
        posted_by=employer, title="Mobile App", company="ACME", location="Remote",
        description="Ship it", bidding_deadline=timezone.now() + timedelta(hours=1), **kwargs
    )
    bid = place_bid(job.id, freelancer, "500.00", "I build apps")
    accept_bid(bid.id, employer)
    job.refresh_from_db()
    return job


class ProgressTrackerTests(TestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.outsider = make_user("other", "freelancer")
        self.job = make_allocated_job(self.employer, self.freelancer)

    def test_progress_levels(self):
        levels = services.get_progress_levels()
        self.assertEqual(sorted(levels), [0, 1, 2, 3, 4, 5])
        self.assertEqual(levels[3], {"status": "Midway Completed", "percentage": 60})

    def test_advance_progress(self):
        job = services.update_progress(self.job.id, self.freelancer, 2)
        self.assertEqual(job.progress_level, 2)
        self.assertEqual(job.completion_percentage, 40)
        self.assertEqual(job.project_status, "Initial Development")

    def test_levels_can_be_skipped(self):
        job = services.update_progress(self.job.id, self.freelancer, 4)
        self.assertEqual(job.completion_percentage, 80)

    def test_same_level_is_rejected(self):
        with self.assertRaises(ConflictError):
            services.update_progress(self.job.id, self.freelancer, 0)

    def test_cannot_move_backwards(self):
        services.update_progress(self.job.id, self.freelancer, 3)
        with self.assertRaises(ConflictError):
            services.update_progress(self.job.id, self.freelancer, 2)
        self.job.refresh_from_db()
        self.assertEqual(self.job.progress_level, 3)

    def test_completed_project_is_final(self):
        services.update_progress(self.job.id, self.freelancer, 5)
        with self.assertRaises(ConflictError) as ctx:
            services.update_progress(self.job.id, self.freelancer, 5)
        self.assertIn("already completed", str(ctx.exception.detail))

    def test_other_freelancer_is_forbidden(self):
        with self.assertRaises(AuthorizationError) as ctx:
            services.update_progress(self.job.id, self.outsider, 1)
        self.assertIn("another freelancer", str(ctx.exception.detail))

    def test_unallocated_job_is_forbidden(self):
        job = Job.objects.create(
            posted_by=self.employer, title="Open", company="ACME", location="Remote",
            description="x", bidding_deadline=timezone.now() + timedelta(hours=1)
        )
        with self.assertRaises(AuthorizationError) as ctx:
            services.update_progress(job.id, self.freelancer, 1)
        self.assertIn("not allocated", str(ctx.exception.detail))

    def test_authorization_is_checked_before_level(self):
        open_job = Job.objects.create(
            posted_by=self.employer, title="Open", company="ACME", location="Remote",
            description="x", bidding_deadline=timezone.now() + timedelta(hours=1)
        )
        for job_id, user in ((self.job.id, self.outsider), (open_job.id, self.freelancer)):
            with self.assertRaises(AuthorizationError):
                services.update_progress(job_id, user, 9)

    def test_invalid_levels(self):
        for bad in (-1, 6, "two", None, True):
            with self.assertRaises(ValidationError):
                services.update_progress(self.job.id, self.freelancer, bad)

    def test_unknown_project(self):
        with self.assertRaises(NotFoundError):
            services.update_progress(9999, self.freelancer, 1)

    def test_lost_race_conflicts(self):
        # Another request advanced the job between the read and the guarded write
        original_filter = Job.objects.filter

        def advanced_elsewhere(*args, **kwargs):
            if "progress_level__lt" in kwargs:
                original_filter(pk=self.job.pk).update(progress_level=4)
            return original_filter(*args, **kwargs)

        with mock.patch.object(Job.objects, "filter", side_effect=advanced_elsewhere):
            with self.assertRaises(ConflictError):
                services.update_progress(self.job.id, self.freelancer, 2)

        self.job.refresh_from_db()
        self.assertNotEqual(self.job.progress_level, 2)

    def test_employer_is_notified(self):
        with self.captureOnCommitCallbacks(execute=True):
            services.update_progress(self.job.id, self.freelancer, 1)
        self.assertEqual([m.to for m in mail.outbox], [[self.employer.email]])

    def test_project_access(self):
        self.assertEqual(services.get_project(self.job.id, self.employer), self.job)
        self.assertEqual(services.get_project(self.job.id, self.freelancer), self.job)
        with self.assertRaises(AuthorizationError):
            services.get_project(self.job.id, self.outsider)

    def test_active_and_recent_listings(self):
        self.assertEqual(list(services.list_freelancer_active_projects(self.freelancer)), [self.job])
        self.assertEqual(list(services.list_recruiter_active_projects(self.employer)), [self.job])

        services.update_progress(self.job.id, self.freelancer, 5)

        self.assertEqual(list(services.list_freelancer_active_projects(self.freelancer)), [])
        self.assertEqual(list(services.list_recruiter_active_projects(self.employer)), [])
        self.assertEqual(list(services.list_freelancer_recent_projects(self.freelancer)), [self.job])


class ProgressApiTests(APITestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.job = make_allocated_job(self.employer, self.freelancer, budget="1000.00")

    def test_update_progress_endpoint(self):
        self.client.force_authenticate(self.freelancer)
        resp = self.client.put(reverse("project_progress", args=[self.job.id]), {"progress_level": 1}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["success"])
        self.assertEqual(resp.data["data"]["completion_percentage"], 20)
        self.assertEqual(resp.data["message"], "Project progress updated successfully")

    def test_completion_message(self):
        self.client.force_authenticate(self.freelancer)
        resp = self.client.put(reverse("project_progress", args=[self.job.id]), {"progress_level": 5}, format="json")
        self.assertEqual(resp.data["message"], "Project completed successfully!")

    def test_employer_cannot_update_progress(self):
        self.client.force_authenticate(self.employer)
        resp = self.client.put(reverse("project_progress", args=[self.job.id]), {"progress_level": 1}, format="json")
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(resp.data["success"])

    def test_backwards_is_409(self):
        self.client.force_authenticate(self.freelancer)
        resp = self.client.put(reverse("project_progress", args=[self.job.id]), {"progress_level": 0}, format="json")
        self.assertEqual(resp.status_code, 409)

    def test_invalid_level_is_400(self):
        self.client.force_authenticate(self.freelancer)
        resp = self.client.put(reverse("project_progress", args=[self.job.id]), {"progress_level": 9}, format="json")
        self.assertEqual(resp.status_code, 400)

    def test_project_detail_includes_total(self):
        self.client.force_authenticate(self.employer)
        resp = self.client.get(reverse("project_detail", args=[self.job.id]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["project_total"], "1000.00")
        self.assertEqual(resp.data["data"]["allocated_to"]["id"], self.freelancer.id)
