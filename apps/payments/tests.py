from datetime import timedelta
from decimal import Decimal
from unittest import mock

import requests
from django.db import transaction
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.jobs.allocation import accept_bid
from apps.jobs.models import Job
from apps.jobs.services import place_bid
from apps.projects.services import update_progress
from apps.users.models import User
from core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from . import services
from .gateways import GatewayOrder, OfflineGateway, PaymentGatewayError, RazorpayGateway, get_gateway
from .models import Milestone, Payment


def make_user(username, role):
    return User.objects.create_user(
        username=username, password="pass12345", role=role, email=f"{username}@example.com"
    )


def make_allocated_job(employer, freelancer, budget=None, bid_amount="500.00"):
    job = Job.objects.create(
        posted_by=employer, title="Data Pipeline", company="ACME", location="Remote",
        description="Move the data", budget=budget,
        bidding_deadline=timezone.now() + timedelta(hours=1),
    )
    bid = place_bid(job.id, freelancer, bid_amount, "I move data")
    accept_bid(bid.id, employer)
    job.refresh_from_db()
    return job


class MilestoneTests(TestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.job = make_allocated_job(self.employer, self.freelancer, budget=Decimal("1000.00"))

    def test_initialize_creates_one_milestone_per_level(self):
        milestones = services.initialize_milestones(self.job.id, self.employer)
        self.assertEqual([m.level for m in milestones], [0, 1, 2, 3, 4, 5])
        self.assertEqual(
            [m.amount for m in milestones],
            [Decimal("0.00"), Decimal("200.00"), Decimal("400.00"),
             Decimal("600.00"), Decimal("800.00"), Decimal("1000.00")]
        )
        self.assertEqual(milestones[2].status, "Initial Development")
        self.assertTrue(all(m.payment_status == "PENDING" for m in milestones))

    def test_second_initialize_conflicts_and_creates_nothing(self):
        services.initialize_milestones(self.job.id, self.employer)
        with self.assertRaises(ConflictError):
            services.initialize_milestones(self.job.id, self.employer)
        self.assertEqual(Milestone.objects.filter(project=self.job).count(), 6)

    def test_only_poster_initializes(self):
        with self.assertRaises(AuthorizationError):
            services.initialize_milestones(self.job.id, self.freelancer)

    def test_total_falls_back_to_accepted_bid(self):
        other = make_allocated_job(self.employer, self.freelancer, budget=None, bid_amount="250.00")
        milestones = services.initialize_milestones(other.id, self.employer)
        self.assertEqual(milestones[-1].amount, Decimal("250.00"))
        self.assertEqual(milestones[1].amount, Decimal("50.00"))

    def test_amounts_are_fixed_at_creation(self):
        services.initialize_milestones(self.job.id, self.employer)
        Job.objects.filter(pk=self.job.pk).update(budget=Decimal("9999.00"))
        self.assertEqual(Milestone.objects.get(project=self.job, level=5).amount, Decimal("1000.00"))

    def test_reached_levels_start_completed(self):
        update_progress(self.job.id, self.freelancer, 2)
        milestones = services.initialize_milestones(self.job.id, self.employer)
        self.assertEqual([m.is_completed for m in milestones], [True, True, True, False, False, False])

    def test_progress_completes_milestones(self):
        services.initialize_milestones(self.job.id, self.employer)
        update_progress(self.job.id, self.freelancer, 3)
        completed = Milestone.objects.filter(project=self.job, is_completed=True)
        self.assertEqual(sorted(completed.values_list("level", flat=True)), [0, 1, 2, 3])


class PayableAmountTests(TestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.outsider = make_user("nosy", "employer")
        self.job = make_allocated_job(self.employer, self.freelancer, budget=Decimal("1000.00"))

    def test_payable_amount_uses_current_level(self):
        update_progress(self.job.id, self.freelancer, 3)
        data = services.get_payable_amount(self.job.id, self.employer)
        self.assertEqual(data["current_level"], 3)
        self.assertEqual(data["percentage"], 60)
        self.assertEqual(data["payable_amount"], "600.00")
        self.assertEqual(data["project_total"], "1000.00")
        self.assertFalse(data["payment_exists"])
        self.assertIsNone(data["payment_status"])
        self.assertFalse(data["is_completed"])

    def test_payable_amount_reports_existing_payment(self):
        services.create_payment_order(self.job.id, 0, self.employer)
        data = services.get_payable_amount(self.job.id, self.freelancer)
        self.assertTrue(data["payment_exists"])
        self.assertEqual(data["payment_status"], "CREATED")

    def test_outsider_is_forbidden(self):
        with self.assertRaises(AuthorizationError):
            services.get_payable_amount(self.job.id, self.outsider)

    def test_missing_project(self):
        with self.assertRaises(NotFoundError):
            services.get_payable_amount(9999, self.employer)


class PaymentOrderTests(TestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.job = make_allocated_job(self.employer, self.freelancer, budget=Decimal("1000.00"))

    def test_create_order_lazily_creates_milestone(self):
        result = services.create_payment_order(self.job.id, 2, self.employer)
        payment = result["payment"]
        self.assertEqual(payment.amount, Decimal("400.00"))
        self.assertEqual(payment.transaction_status, "CREATED")
        self.assertEqual(payment.freelancer, self.freelancer)
        self.assertEqual(payment.currency, "INR")
        self.assertTrue(payment.gateway_order_id.startswith("ORDER_"))
        self.assertEqual(result["milestone"].level, 2)
        self.assertEqual(result["project"]["project_total"], "1000.00")

    def test_second_order_for_same_level_conflicts(self):
        services.create_payment_order(self.job.id, 1, self.employer)
        with self.assertRaises(ConflictError):
            services.create_payment_order(self.job.id, 1, self.employer)
        self.assertEqual(Payment.objects.filter(project=self.job).count(), 1)

    def test_order_ids_are_unique(self):
        first = services.create_payment_order(self.job.id, 1, self.employer)["payment"]
        second = services.create_payment_order(self.job.id, 2, self.employer)["payment"]
        self.assertNotEqual(first.gateway_order_id, second.gateway_order_id)

    def test_invalid_level(self):
        for bad in (-1, 6, "x", None):
            with self.assertRaises(ValidationError):
                services.create_payment_order(self.job.id, bad, self.employer)

    def test_unallocated_project_conflicts(self):
        job = Job.objects.create(
            posted_by=self.employer, title="Open", company="ACME", location="Remote",
            description="x", bidding_deadline=timezone.now() + timedelta(hours=1),
        )
        with self.assertRaises(ConflictError):
            services.create_payment_order(job.id, 1, self.employer)

    def test_freelancer_cannot_create_order(self):
        with self.assertRaises(AuthorizationError):
            services.create_payment_order(self.job.id, 1, self.freelancer)

    def test_gateway_failure_leaves_no_payment(self):
        gateway = mock.Mock()
        gateway.create_order.side_effect = PaymentGatewayError("down")
        with mock.patch("apps.payments.services.get_gateway", return_value=gateway):
            with self.assertRaises(PaymentGatewayError):
                services.create_payment_order(self.job.id, 1, self.employer)
        self.assertFalse(Payment.objects.filter(project=self.job).exists())
        self.assertFalse(Milestone.objects.filter(project=self.job).exists())

    def test_order_recorded_first_wins(self):
        def rival_recorded_meanwhile(amount, currency, **kwargs):
            milestone = services._milestone_for_payment(self.job, 1, self.job.project_total())
            Payment.objects.create(
                project=self.job, milestone=milestone, recruiter=self.employer,
                freelancer=self.freelancer, amount=amount, currency=currency,
                gateway_order_id="order_rival",
            )
            return GatewayOrder(id="order_late", amount=amount, currency=currency)

        gateway = mock.Mock()
        gateway.create_order.side_effect = rival_recorded_meanwhile
        with mock.patch("apps.payments.services.get_gateway", return_value=gateway):
            with self.assertRaises(ConflictError):
                services.create_payment_order(self.job.id, 1, self.employer)

        self.assertEqual(
            list(Payment.objects.filter(project=self.job).values_list("gateway_order_id", flat=True)),
            ["order_rival"],
        )
        self.assertEqual(Milestone.objects.filter(project=self.job, level=1).count(), 1)

    def test_list_project_payments(self):
        services.initialize_milestones(self.job.id, self.employer)
        services.create_payment_order(self.job.id, 1, self.employer)
        ledger = services.list_project_payments(self.job.id, self.freelancer)
        self.assertEqual([m.level for m in ledger["milestones"]], [0, 1, 2, 3, 4, 5])
        self.assertEqual(len(ledger["payments"]), 1)
        self.assertEqual(ledger["project"]["current_level"], 0)


class PaymentOrderLockingTests(TransactionTestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.job = make_allocated_job(self.employer, self.freelancer, budget=Decimal("1000.00"))

    def test_gateway_is_called_outside_a_transaction(self):
        seen = {}

        def create_order(amount, currency, **kwargs):
            seen["in_atomic_block"] = transaction.get_connection().in_atomic_block
            return GatewayOrder(id="order_1", amount=amount, currency=currency)

        gateway = mock.Mock()
        gateway.create_order.side_effect = create_order
        with mock.patch("apps.payments.services.get_gateway", return_value=gateway):
            result = services.create_payment_order(self.job.id, 1, self.employer)

        self.assertEqual(seen, {"in_atomic_block": False})
        self.assertEqual(result["payment"].gateway_order_id, "order_1")
        self.assertEqual(result["payment"].amount, Decimal("200.00"))


class ConfirmPaymentTests(TestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.job = make_allocated_job(self.employer, self.freelancer, budget=Decimal("1000.00"))
        self.payment = services.create_payment_order(self.job.id, 1, self.employer)["payment"]

    def confirm_with(self, outcome, payment_id="pay_123"):
        gateway = mock.Mock()
        gateway.confirm_order.return_value = (outcome, payment_id)
        with mock.patch("apps.payments.services.get_gateway", return_value=gateway):
            return services.confirm_payment_order(self.payment.id, self.employer)

    def test_success_marks_milestone_paid(self):
        payment = self.confirm_with("SUCCESS")
        self.assertEqual(payment.transaction_status, "SUCCESS")
        self.assertEqual(payment.gateway_payment_id, "pay_123")
        self.assertEqual(payment.milestone.payment_status, "PAID")

    def test_failure_is_recorded(self):
        payment = self.confirm_with("FAILED")
        self.assertEqual(payment.transaction_status, "FAILED")
        self.assertEqual(payment.milestone.payment_status, "PENDING")

    def test_pending_order_is_unchanged(self):
        payment = self.confirm_with("CREATED", None)
        self.assertEqual(payment.transaction_status, "CREATED")

    def test_settled_payment_conflicts(self):
        self.confirm_with("SUCCESS")
        with self.assertRaises(ConflictError):
            self.confirm_with("SUCCESS")

    def test_only_poster_confirms(self):
        with self.assertRaises(AuthorizationError):
            services.confirm_payment_order(self.payment.id, self.freelancer)

    def test_offline_gateway_never_settles(self):
        payment = services.confirm_payment_order(self.payment.id, self.employer)
        self.assertEqual(payment.transaction_status, "CREATED")


class GatewayTests(TestCase):
    def test_offline_order_ids(self):
        order = OfflineGateway().create_order(Decimal("10.00"), "INR", receipt="r1")
        self.assertRegex(order.id, r"^ORDER_\d+_[a-z0-9]{9}$")
        self.assertEqual(order.to_dict()["amount_minor"], 1000)

    @override_settings(PAYMENT_GATEWAY="apps.payments.gateways.RazorpayGateway")
    def test_gateway_from_settings(self):
        self.assertIsInstance(get_gateway(), RazorpayGateway)

    @mock.patch("apps.payments.gateways.requests.request")
    def test_razorpay_create_order_in_paise(self, mock_request):
        mock_request.return_value.json.return_value = {"id": "order_abc", "currency": "INR", "status": "created"}
        gateway = RazorpayGateway(key_id="key", key_secret="secret", base_url="https://example.test/v1")

        order = gateway.create_order(Decimal("123.45"), "INR", receipt="project-1-level-1", notes={"project_id": 1})

        self.assertEqual(order, GatewayOrder(id="order_abc", amount=Decimal("123.45"), currency="INR",
                                             status="created", notes={"project_id": "1"}))
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ("POST", "https://example.test/v1/orders"))
        self.assertEqual(kwargs["json"]["amount"], 12345)
        self.assertEqual(kwargs["auth"], ("key", "secret"))

    @mock.patch("apps.payments.gateways.requests.request")
    def test_razorpay_confirm_order(self, mock_request):
        gateway = RazorpayGateway(key_id="key", key_secret="secret", base_url="https://example.test/v1")

        mock_request.return_value.json.return_value = {
            "items": [{"id": "pay_1", "status": "failed"}, {"id": "pay_2", "status": "captured"}]
        }
        self.assertEqual(gateway.confirm_order("order_abc"), ("SUCCESS", "pay_2"))

        mock_request.return_value.json.return_value = {"items": [{"id": "pay_1", "status": "failed"}]}
        self.assertEqual(gateway.confirm_order("order_abc"), ("FAILED", "pay_1"))

        mock_request.return_value.json.return_value = {"items": []}
        self.assertEqual(gateway.confirm_order("order_abc"), ("CREATED", None))

    @mock.patch("apps.payments.gateways.requests.request")
    def test_razorpay_network_error(self, mock_request):
        mock_request.side_effect = requests.exceptions.ConnectionError("no route")
        gateway = RazorpayGateway(key_id="key", key_secret="secret", base_url="https://example.test/v1")
        with self.assertRaises(PaymentGatewayError):
            gateway.create_order(Decimal("1.00"), "INR", receipt="r")


class PaymentApiTests(APITestCase):
    def setUp(self):
        self.employer = make_user("emp", "employer")
        self.freelancer = make_user("free", "freelancer")
        self.job = make_allocated_job(self.employer, self.freelancer, budget=Decimal("1000.00"))

    def test_initialize_then_conflict(self):
        self.client.force_authenticate(self.employer)
        url = reverse("initialize_milestones", args=[self.job.id])
        resp = self.client.post(url)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["count"], 6)
        resp = self.client.post(url)
        self.assertEqual(resp.status_code, 409)
        self.assertFalse(resp.data["success"])

    def test_create_order_twice(self):
        self.client.force_authenticate(self.employer)
        body = {"project_id": self.job.id, "milestone_level": 1}
        resp = self.client.post(reverse("create_payment_order"), body, format="json")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["data"]["payment"]["amount"], "200.00")
        self.assertEqual(resp.data["data"]["order"]["amount_minor"], 20000)

        resp = self.client.post(reverse("create_payment_order"), body, format="json")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(Payment.objects.count(), 1)

    def test_freelancer_sees_ledger(self):
        self.client.force_authenticate(self.freelancer)
        resp = self.client.get(reverse("project_payments", args=[self.job.id]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["milestones"], [])
        self.assertEqual(resp.data["data"]["project"]["title"], "Data Pipeline")

    def test_freelancer_cannot_create_order(self):
        self.client.force_authenticate(self.freelancer)
        resp = self.client.post(
            reverse("create_payment_order"), {"project_id": self.job.id, "milestone_level": 1}, format="json"
        )
        self.assertEqual(resp.status_code, 403)
