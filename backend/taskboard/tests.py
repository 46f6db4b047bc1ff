from django.test import SimpleTestCase
from rest_framework import exceptions

from .exceptions import api_exception_handler


class ExceptionHandlerTests(SimpleTestCase):
    def test_unexpected_error_becomes_500(self):
        with self.assertLogs("taskboard.exceptions", level="ERROR"):
            response = api_exception_handler(RuntimeError("boom"), {"view": None})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {"success": False, "message": "Internal server error"})

    def test_validation_error_keeps_field_detail(self):
        exc = exceptions.ValidationError({"title": ["This field is required."]})
        response = api_exception_handler(exc, {})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["message"], "This field is required.")
        self.assertEqual(response.data["errors"]["title"], ["This field is required."])

    def test_plain_api_exception(self):
        response = api_exception_handler(exceptions.NotFound("Task not found"), {})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {"success": False, "message": "Task not found"})
