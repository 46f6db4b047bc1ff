from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from .tokens import InvalidToken, issue_token, read_token

User = get_user_model()


class TokenTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="ada@example.com", full_name="Ada", password="pw-123456")

    def test_round_trip(self):
        self.assertEqual(read_token(issue_token(self.user)), self.user.pk)

    def test_tampered_token_is_rejected(self):
        token = issue_token(self.user)
        with self.assertRaises(InvalidToken):
            read_token(token[:-2] + ("aa" if not token.endswith("aa") else "bb"))

    def test_expired_token_is_rejected(self):
        with self.assertRaises(InvalidToken):
            read_token(issue_token(self.user), max_age=-1)

    def test_password_is_hashed(self):
        self.assertNotEqual(self.user.password, "pw-123456")
        self.assertTrue(self.user.check_password("pw-123456"))


class AuthApiTests(APITestCase):
    signup_payload = {"full_name": "Ada Lovelace", "email": "ada@example.com", "password": "analytical"}

    def test_signup_returns_user_and_token(self):
        response = self.client.post("/api/auth/signup", self.signup_payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["message"], "User created successfully")
        self.assertEqual(response.data["user_data"]["email"], "ada@example.com")
        self.assertNotIn("password", response.data["user_data"])

        user = User.objects.get(email="ada@example.com")
        self.assertEqual(read_token(response.data["token"]), user.pk)

    def test_signup_requires_all_fields(self):
        response = self.client.post("/api/auth/signup", {"email": "ada@example.com"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "All fields are required")

    def test_signup_rejects_existing_email(self):
        User.objects.create_user(email="ada@example.com", full_name="Ada", password="x")
        payload = dict(self.signup_payload, email="ADA@example.com")
        response = self.client.post("/api/auth/signup", payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "User already exists")
        self.assertEqual(User.objects.count(), 1)

    def test_login(self):
        User.objects.create_user(email="ada@example.com", full_name="Ada", password="analytical")
        response = self.client.post(
            "/api/auth/login", {"email": "ada@example.com", "password": "analytical"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Login successful")
        self.assertIn("token", response.data)
        self.assertIsNotNone(User.objects.get(email="ada@example.com").last_login)

    def test_login_wrong_password_and_unknown_email_look_alike(self):
        User.objects.create_user(email="ada@example.com", full_name="Ada", password="analytical")
        wrong = self.client.post("/api/auth/login", {"email": "ada@example.com", "password": "nope"}, format="json")
        unknown = self.client.post("/api/auth/login", {"email": "bob@example.com", "password": "nope"}, format="json")
        for response in (wrong, unknown):
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data, {"success": False, "message": "Invalid credentials"})

    def test_login_requires_email_and_password(self):
        response = self.client.post("/api/auth/login", {"email": "ada@example.com"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Email and password are required")

    def test_check_with_token(self):
        user = User.objects.create_user(email="ada@example.com", full_name="Ada", password="analytical")
        self.client.credentials(HTTP_TOKEN=issue_token(user))
        response = self.client.get("/api/auth/check")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["user"]["id"], user.pk)
        self.assertEqual(response.data["message"], "User is authenticated")

    def test_check_without_token(self):
        response = self.client.get("/api/auth/check")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["message"], "Not authorized")

    def test_check_for_deleted_user(self):
        user = User.objects.create_user(email="ada@example.com", full_name="Ada", password="analytical")
        token = issue_token(user)
        user.delete()
        self.client.credentials(HTTP_TOKEN=token)
        response = self.client.get("/api/auth/check")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["message"], "Not authorized, user not found")

    def test_index(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.content, b"Hello from Server")
