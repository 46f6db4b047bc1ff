from datetime import datetime, timedelta, timezone as dt_timezone
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import IntegrityError
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.tokens import issue_token

from .models import Task
from .scoring import CompletionScore, calculate_completion_score, round_half_up
from .task_ids import (
    TaskIdConflict,
    allocate_task_id,
    create_with_task_id,
    date_prefix,
    find_task_ids_with_prefix,
    next_task_id,
)

User = get_user_model()

MARCH_5 = datetime(2024, 3, 5, 12, 0, tzinfo=dt_timezone.utc)
JAN_1 = datetime(2024, 1, 1, tzinfo=dt_timezone.utc)


def make_user(email="ada@example.com", name="Ada Lovelace"):
    return User.objects.create_user(email=email, full_name=name, password="s3cret-pass")


def make_task(owner, task_id="", **kwargs):
    fields = {
        "title": "Write report",
        "description": "Quarterly numbers",
        "deadline": MARCH_5 + timedelta(days=7),
    }
    fields.update(kwargs)
    return Task.objects.create(owner=owner, task_id=task_id, **fields)


class CompletionScoreTests(TestCase):
    def test_unfinished_task_has_no_score(self):
        self.assertIsNone(calculate_completion_score(JAN_1, JAN_1 + timedelta(days=10), None))

    def test_halfway_completion_scores_fifty_early(self):
        score = calculate_completion_score(
            JAN_1, datetime(2024, 1, 11, tzinfo=dt_timezone.utc), datetime(2024, 1, 6, tzinfo=dt_timezone.utc)
        )
        self.assertEqual(score, CompletionScore(percentage=50, is_early=True, time_status="early", days_early=5))

    def test_late_completion_is_negative(self):
        score = calculate_completion_score(JAN_1, JAN_1 + timedelta(days=10), JAN_1 + timedelta(days=15))
        self.assertEqual(score.percentage, -50)
        self.assertFalse(score.is_early)
        self.assertEqual(score.time_status, "late")
        self.assertEqual(score.days_early, 5)

    def test_completed_exactly_at_deadline_is_late_with_zero(self):
        deadline = JAN_1 + timedelta(days=4)
        score = calculate_completion_score(JAN_1, deadline, deadline)
        self.assertEqual(score.percentage, 0)
        self.assertEqual(score.time_status, "late")
        self.assertEqual(score.days_early, 0)

    def test_zero_length_window_scores_zero(self):
        """deadline == created_at must not divide by zero."""
        score = calculate_completion_score(JAN_1, JAN_1, JAN_1 + timedelta(days=1))
        self.assertEqual(score.percentage, 0)
        self.assertFalse(score.is_early)
        self.assertEqual(score.days_early, 1)

    def test_inverted_window_is_scored_not_rejected(self):
        score = calculate_completion_score(JAN_1, JAN_1 - timedelta(days=2), JAN_1 + timedelta(days=2))
        # total = -2d, taken = 2d -> (-2 - 2) / -2 = 200%
        self.assertEqual(score.percentage, 200)
        self.assertEqual(score.time_status, "late")
        self.assertEqual(score.days_early, 4)

    def test_accepts_iso_strings(self):
        score = calculate_completion_score("2024-01-01T00:00:00Z", "2024-01-11T00:00:00Z", "2024-01-06T00:00:00Z")
        self.assertEqual(score.percentage, 50)
        self.assertTrue(score.is_early)

    def test_rejects_garbage_timestamps(self):
        with self.assertRaises(ValueError):
            calculate_completion_score("yesterday", JAN_1, JAN_1)
        with self.assertRaises(ValueError):
            calculate_completion_score(JAN_1, 12345, JAN_1)

    def test_naive_timestamps_are_read_as_utc(self):
        """A timestamp without an offset can be mixed with aware ones."""
        score = calculate_completion_score(JAN_1, JAN_1 + timedelta(days=10), "2024-01-06T00:00:00")
        self.assertEqual(score, CompletionScore(percentage=50, is_early=True, time_status="early", days_early=5))
        score = calculate_completion_score(datetime(2024, 1, 1), "2024-01-11T00:00:00Z", JAN_1 + timedelta(days=5))
        self.assertEqual(score.percentage, 50)

    def test_halves_round_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(-2.5), -2)
        self.assertEqual(round_half_up(0.49), 0)
        # largest double below one half must not be pushed up to 1
        self.assertEqual(round_half_up(0.49999999999999994), 0)
        self.assertEqual(round_half_up(-0.5), 0)
        # 7 of 8 seconds used: 12.5% rounds to 13
        score = calculate_completion_score(JAN_1, JAN_1 + timedelta(seconds=8), JAN_1 + timedelta(seconds=7))
        self.assertEqual(score.percentage, 13)
        # 2.5 days before the deadline
        score = calculate_completion_score(JAN_1, JAN_1 + timedelta(days=10), JAN_1 + timedelta(days=7.5))
        self.assertEqual(score.days_early, 3)
        # 2.5 days past the deadline rounds the absolute gap: 3, not 2
        score = calculate_completion_score(JAN_1, JAN_1 + timedelta(days=10), JAN_1 + timedelta(days=12.5))
        self.assertEqual(score.days_early, 3)

    def test_as_dict(self):
        score = calculate_completion_score(JAN_1, JAN_1 + timedelta(days=10), JAN_1 + timedelta(days=5))
        self.assertEqual(
            score.as_dict(),
            {"percentage": 50, "is_early": True, "time_status": "early", "days_early": 5},
        )


class TaskIdFormatTests(TestCase):
    def test_prefix_is_day_month_year(self):
        self.assertEqual(date_prefix(MARCH_5), "05032024")
        self.assertEqual(date_prefix(datetime(2024, 12, 31).date()), "31122024")

    def test_prefix_follows_configured_time_zone(self):
        late_evening_utc = datetime(2024, 3, 5, 23, 30, tzinfo=dt_timezone.utc)
        with self.settings(TIME_ZONE="Asia/Tokyo"):
            self.assertEqual(date_prefix(late_evening_utc), "06032024")
        self.assertEqual(date_prefix(late_evening_utc), "05032024")

    def test_first_id_of_the_day(self):
        self.assertEqual(next_task_id("05032024", []), "05032024-001")

    def test_max_suffix_plus_one_not_count(self):
        existing = ["05032024-001", "05032024-003", "05032024-002"]
        self.assertEqual(next_task_id("05032024", existing), "05032024-004")
        self.assertEqual(next_task_id("05032024", ["05032024-007"]), "05032024-008")

    def test_ignores_other_days_and_bad_suffixes(self):
        existing = ["04032024-009", "05032024-abc", "05032024-002", "junk"]
        self.assertEqual(next_task_id("05032024", existing), "05032024-003")

    def test_suffix_grows_past_three_digits(self):
        self.assertEqual(next_task_id("05032024", ["05032024-999"]), "05032024-1000")

    def test_allocate_uses_finder_for_user_and_prefix(self):
        finder = mock.Mock(return_value=["05032024-001", "05032024-003", "05032024-002"])
        self.assertEqual(allocate_task_id(42, MARCH_5, finder), "05032024-004")
        finder.assert_called_once_with(42, "05032024")


class TaskIdAllocationTests(TestCase):
    def setUp(self):
        self.ada = make_user()
        self.bob = make_user("bob@example.com", "Bob")

    def create_for(self, user, now=MARCH_5, **kwargs):
        return create_with_task_id(
            user.pk,
            lambda task_id: make_task(user, task_id=task_id),
            now=now,
            **kwargs,
        )

    def test_sequential_allocations_count_up(self):
        ids = [self.create_for(self.ada).task_id for _ in range(5)]
        self.assertEqual(ids, [f"05032024-00{n}" for n in range(1, 6)])

    def test_users_have_independent_sequences(self):
        self.create_for(self.ada)
        self.create_for(self.ada)
        self.assertEqual(self.create_for(self.bob).task_id, "05032024-001")
        self.assertEqual(self.create_for(self.ada).task_id, "05032024-003")

    def test_new_day_restarts_sequence(self):
        self.create_for(self.ada)
        self.create_for(self.ada)
        next_day = MARCH_5 + timedelta(days=1)
        self.assertEqual(self.create_for(self.ada, now=next_day).task_id, "06032024-001")

    def test_next_id_after_unordered_stored_ids(self):
        for task_id in ["05032024-001", "05032024-003", "05032024-002"]:
            make_task(self.ada, task_id=task_id)
        self.assertEqual(allocate_task_id(self.ada.pk, MARCH_5), "05032024-004")

    def test_finder_only_sees_own_tasks_for_that_day(self):
        make_task(self.ada, task_id="05032024-001")
        make_task(self.ada, task_id="06032024-001")
        make_task(self.bob, task_id="05032024-002")
        self.assertEqual(find_task_ids_with_prefix(self.ada.pk, "05032024"), ["05032024-001"])

    def test_stale_scan_is_retried(self):
        """A scan that misses a concurrently stored id collides once, then succeeds."""
        make_task(self.ada, task_id="05032024-001")
        calls = []

        def stale_then_fresh(user_id, prefix):
            calls.append(prefix)
            if len(calls) == 1:
                return []
            return find_task_ids_with_prefix(user_id, prefix)

        task = self.create_for(self.ada, find_identifiers_with_prefix=stale_then_fresh)
        self.assertEqual(task.task_id, "05032024-002")
        self.assertEqual(len(calls), 2)
        self.assertEqual(Task.objects.filter(owner=self.ada).count(), 2)

    def test_persistent_collision_raises_conflict(self):
        make_task(self.ada, task_id="05032024-001")
        attempts = []

        def create(task_id):
            attempts.append(task_id)
            return make_task(self.ada, task_id=task_id)

        with self.assertRaises(TaskIdConflict) as ctx:
            create_with_task_id(
                self.ada.pk, create, now=MARCH_5,
                find_identifiers_with_prefix=lambda user_id, prefix: [],
                max_attempts=3,
            )
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(attempts, ["05032024-001"] * 3)
        self.assertEqual(Task.objects.filter(owner=self.ada).count(), 1)

    def test_retry_limit_comes_from_settings(self):
        make_task(self.ada, task_id="05032024-001")
        create = mock.Mock(side_effect=lambda task_id: make_task(self.ada, task_id=task_id))
        with self.settings(TASKBOARD={"TOKEN_MAX_AGE": 60, "TASK_ID_MAX_RETRIES": 5}):
            with self.assertRaises(TaskIdConflict):
                create_with_task_id(self.ada.pk, create, now=MARCH_5,
                                    find_identifiers_with_prefix=lambda user_id, prefix: [])
        self.assertEqual(create.call_count, 5)

    def test_unrelated_integrity_error_is_not_retried(self):
        create = mock.Mock(side_effect=IntegrityError("NOT NULL constraint failed: tasks_task.title"))
        with self.assertRaises(IntegrityError):
            create_with_task_id(self.ada.pk, create, now=MARCH_5, max_attempts=3)
        create.assert_called_once_with("05032024-001")
        self.assertFalse(Task.objects.filter(owner=self.ada).exists())

    def test_blank_ids_do_not_collide(self):
        make_task(self.ada)
        make_task(self.ada)
        self.assertEqual(Task.objects.filter(owner=self.ada, task_id="").count(), 2)


class TaskStatusTests(TestCase):
    def setUp(self):
        self.task = make_task(make_user(), task_id="05032024-001")

    def test_completing_stamps_completed_at(self):
        self.task.set_status(Task.Status.COMPLETED, now=MARCH_5)
        self.assertEqual(self.task.completed_at, MARCH_5)

    def test_completing_twice_keeps_first_stamp(self):
        self.task.set_status(Task.Status.COMPLETED, now=MARCH_5)
        self.task.set_status(Task.Status.COMPLETED, now=MARCH_5 + timedelta(days=1))
        self.assertEqual(self.task.completed_at, MARCH_5)

    def test_leaving_completed_clears_stamp(self):
        for other in (Task.Status.PENDING, Task.Status.IN_PROGRESS):
            self.task.set_status(Task.Status.COMPLETED, now=MARCH_5)
            self.task.set_status(other)
            self.assertIsNone(self.task.completed_at)
            self.assertEqual(self.task.status, other)

    def test_completion_score_property(self):
        self.assertIsNone(self.task.completion_score)
        self.task.created_at = JAN_1
        self.task.deadline = JAN_1 + timedelta(days=10)
        self.task.set_status(Task.Status.COMPLETED, now=JAN_1 + timedelta(days=5))
        self.assertEqual(self.task.completion_score.percentage, 50)


class TaskApiTests(APITestCase):
    def setUp(self):
        self.user = make_user()
        self.client.credentials(HTTP_TOKEN=issue_token(self.user))

    def test_requires_token(self):
        self.client.credentials()
        response = self.client.get("/api/tasks/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data, {"success": False, "message": "Not authorized"})

    def test_rejects_bad_token(self):
        self.client.credentials(HTTP_TOKEN="not-a-token")
        response = self.client.get("/api/tasks/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data["success"])

    def test_accepts_bearer_header(self):
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {issue_token(self.user)}")
        response = self.client.get("/api/tasks/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_create_allocates_task_id(self):
        payload = {"title": "Ship it", "description": "Release 1.0", "deadline": "2030-01-01T00:00:00Z"}
        first = self.client.post("/api/tasks/", payload, format="json")
        second = self.client.post("/api/tasks/", payload, format="json")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertTrue(first.data["success"])
        self.assertEqual(first.data["message"], "Task created successfully")
        task = first.data["task"]
        self.assertEqual(task["status"], "pending")
        self.assertIsNone(task["completed_at"])
        self.assertIsNone(task["completion_score"])
        self.assertRegex(task["task_id"], r"^\d{8}-001$")
        self.assertEqual(second.data["task"]["task_id"][-4:], "-002")

    def test_create_requires_all_fields(self):
        response = self.client.post("/api/tasks/", {"title": "No body", "description": ""}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["message"], "Title, description, and deadline are required")
        self.assertIn("deadline", response.data["errors"])
        self.assertFalse(Task.objects.exists())

    def test_create_reports_conflict(self):
        with mock.patch("tasks.views.create_with_task_id", side_effect=TaskIdConflict()):
            response = self.client.post(
                "/api/tasks/",
                {"title": "Race", "description": "lost", "deadline": "2030-01-01T00:00:00Z"},
                format="json",
            )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data["success"])

    def test_list_only_own_tasks_newest_first(self):
        older = make_task(self.user, task_id="05032024-001", created_at=MARCH_5)
        newer = make_task(self.user, task_id="05032024-002", created_at=MARCH_5 + timedelta(hours=1))
        make_task(make_user("eve@example.com", "Eve"), task_id="05032024-001")

        response = self.client.get("/api/tasks/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t["id"] for t in response.data["tasks"]], [newer.pk, older.pk])

    def test_list_filters_by_status_and_counts(self):
        make_task(self.user, task_id="05032024-001")
        make_task(self.user, task_id="05032024-002", status=Task.Status.IN_PROGRESS)
        make_task(self.user, task_id="05032024-003", status=Task.Status.COMPLETED, completed_at=MARCH_5)

        response = self.client.get("/api/tasks/", {"status": "in-progress"})
        self.assertEqual([t["task_id"] for t in response.data["tasks"]], ["05032024-002"])
        self.assertEqual(
            response.data["counts"],
            {"pending": 1, "in-progress": 1, "completed": 1, "all": 3},
        )

    def test_list_rejects_unknown_status_filter(self):
        response = self.client.get("/api/tasks/", {"status": "archived"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Invalid status")

    def test_list_includes_completion_score(self):
        make_task(
            self.user,
            task_id="01012024-001",
            created_at=JAN_1,
            deadline=JAN_1 + timedelta(days=10),
            status=Task.Status.COMPLETED,
            completed_at=JAN_1 + timedelta(days=5),
        )
        response = self.client.get("/api/tasks/")
        self.assertEqual(
            response.data["tasks"][0]["completion_score"],
            {"percentage": 50, "is_early": True, "time_status": "early", "days_early": 5},
        )

    def test_status_update_round_trip(self):
        task = make_task(self.user, task_id="05032024-001")
        url = f"/api/tasks/{task.pk}/"

        response = self.client.put(url, {"status": "completed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["message"], "Task status updated successfully")
        task.refresh_from_db()
        self.assertEqual(task.status, Task.Status.COMPLETED)
        self.assertIsNotNone(task.completed_at)
        self.assertIsNotNone(response.data["task"]["completion_score"])

        response = self.client.patch(url, {"status": "in-progress"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        task.refresh_from_db()
        self.assertEqual(task.status, Task.Status.IN_PROGRESS)
        self.assertIsNone(task.completed_at)

    def test_status_update_rejects_unknown_status(self):
        task = make_task(self.user, task_id="05032024-001")
        response = self.client.put(f"/api/tasks/{task.pk}/", {"status": "done"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Invalid status")

    def test_other_users_task_is_not_found(self):
        theirs = make_task(make_user("eve@example.com", "Eve"), task_id="05032024-001")
        url = f"/api/tasks/{theirs.pk}/"

        response = self.client.put(url, {"status": "completed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {"success": False, "message": "Task not found"})
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Task.objects.filter(pk=theirs.pk).exists())

    def test_delete(self):
        task = make_task(self.user, task_id="05032024-001")
        response = self.client.delete(f"/api/tasks/{task.pk}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {"success": True, "message": "Task deleted successfully"})
        self.assertFalse(Task.objects.filter(pk=task.pk).exists())
