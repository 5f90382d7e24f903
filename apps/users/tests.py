from django.test import TestCase
from django.urls import reverse
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from .models import User

STRONG_PASSWORD = "Tr1cky-Passphrase!"


class RoleTests(TestCase):
    def test_role_aliases(self):
        self.assertEqual(User.normalize_role("recruiter"), "employer")
        self.assertEqual(User.normalize_role(" Client "), "employer")
        self.assertEqual(User.normalize_role("freelancer"), "freelancer")
        self.assertEqual(User.normalize_role("wizard"), "freelancer")
        self.assertEqual(User.normalize_role(None), "freelancer")

    def test_superuser_counts_as_admin(self):
        root = User.objects.create_superuser(username="root", password="pass12345", email="root@example.com")
        self.assertTrue(root.is_admin)
        self.assertFalse(root.is_employer)

    def test_display_name(self):
        user = User(username="jdoe", first_name="Jane", last_name="Doe")
        self.assertEqual(user.display_name, "Jane Doe")
        self.assertEqual(User(username="anon").display_name, "anon")


class AuthApiTests(APITestCase):
    def test_signup_normalizes_recruiter_role(self):
        resp = self.client.post(reverse("auth_signup"), {
            "username": "acme", "email": "HR@Acme.com", "password": STRONG_PASSWORD, "role": "recruiter",
        }, format="json")
        self.assertEqual(resp.status_code, 201)
        self.assertTrue(resp.data["success"])
        self.assertEqual(resp.data["data"]["user"]["role"], "employer")
        self.assertEqual(resp.data["data"]["user"]["email"], "hr@acme.com")
        self.assertTrue(Token.objects.filter(key=resp.data["data"]["token"]).exists())

    def test_signup_as_admin_is_rejected(self):
        resp = self.client.post(reverse("auth_signup"), {
            "username": "sneaky", "email": "sneaky@example.com", "password": STRONG_PASSWORD, "role": "admin",
        }, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.data["success"])
        self.assertFalse(User.objects.filter(username="sneaky").exists())

    def test_duplicate_email(self):
        User.objects.create_user(username="first", password="pass12345", email="dup@example.com")
        resp = self.client.post(reverse("auth_signup"), {
            "username": "second", "email": "dup@example.com", "password": STRONG_PASSWORD,
        }, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("email", resp.data["details"])

    def test_login_with_email_or_username(self):
        User.objects.create_user(username="dev", password=STRONG_PASSWORD, email="dev@example.com")
        for identifier in ("dev@example.com", "dev"):
            resp = self.client.post(reverse("auth_login"), {
                "identifier": identifier, "password": STRONG_PASSWORD,
            }, format="json")
            self.assertEqual(resp.status_code, 200)
            self.assertIn("token", resp.data["data"])

    def test_login_with_wrong_password(self):
        User.objects.create_user(username="dev2", password=STRONG_PASSWORD, email="dev2@example.com")
        resp = self.client.post(reverse("auth_login"), {
            "identifier": "dev2", "password": "nope",
        }, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["error"], "Invalid credentials.")

    def test_profile_requires_token(self):
        resp = self.client.get(reverse("user_profile"))
        self.assertEqual(resp.status_code, 401)

        user = User.objects.create_user(username="me", password="pass12345", email="me@example.com")
        token = Token.objects.create(user=user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")
        resp = self.client.get(reverse("user_profile"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["username"], "me")
