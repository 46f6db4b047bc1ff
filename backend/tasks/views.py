# views.py
import logging
from typing import Dict

from django.db.models import Count
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Task
from .serializers import (
    STATUS_CHOICES,
    StatusFilterSerializer,
    StatusUpdateSerializer,
    TaskInputSerializer,
    TaskSerializer,
)
from .task_ids import create_with_task_id

logger = logging.getLogger(__name__)


def status_counts(user) -> Dict[str, int]:
    """Number of the user's tasks per status, every status present (0 if none)."""
    counts = {s: 0 for s in STATUS_CHOICES}
    rows = (
        Task.objects.filter(owner=user)
        .order_by()
        .values("status")
        .annotate(n=Count("id"))
    )
    for row in rows:
        counts[row["status"]] = row["n"]
    counts["all"] = sum(counts[s] for s in STATUS_CHOICES)
    return counts


def get_owned_task(user, pk) -> Task:
    """Return the user's task ``pk``; other users' tasks are reported as missing."""
    try:
        return Task.objects.get(pk=pk, owner=user)
    except Task.DoesNotExist:
        raise NotFound("Task not found")


class TaskList(APIView):
    """
    GET  /api/tasks/?status=<all|pending|in-progress|completed>
         Lists the caller's tasks (newest first) with per-status counts.
    POST /api/tasks/
         Creates a task with a freshly allocated DDMMYYYY-NNN task id.
    """

    def get(self, request):
        query = StatusFilterSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        wanted = query.validated_data["status"]

        tasks = Task.objects.filter(owner=request.user).order_by("-created_at")
        if wanted != "all":
            tasks = tasks.filter(status=wanted)

        return Response(
            {
                "success": True,
                "tasks": TaskSerializer(tasks, many=True).data,
                "counts": status_counts(request.user),
            },
            status=status.HTTP_200_OK,
        )

    def post(self, request):
        serializer = TaskInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        now = timezone.now()

        def create(task_id: str) -> Task:
            return Task.objects.create(
                task_id=task_id,
                owner=request.user,
                title=data["title"],
                description=data["description"],
                deadline=data["deadline"],
                created_at=now,
                status=Task.Status.PENDING,
            )

        task = create_with_task_id(request.user.pk, create, now=now)
        logger.info("User %s created task %s", request.user.pk, task.task_id)

        return Response(
            {"success": True, "task": TaskSerializer(task).data, "message": "Task created successfully"},
            status=status.HTTP_201_CREATED,
        )


class TaskDetail(APIView):
    """
    PUT/PATCH /api/tasks/<id>/  body {"status": ...}
    DELETE    /api/tasks/<id>/
    """

    def put(self, request, pk):
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        task = get_owned_task(request.user, pk)
        previous = task.status
        task.set_status(serializer.validated_data["status"])
        task.save(update_fields=["status", "completed_at"])
        logger.info("Task %s status %s -> %s", task.pk, previous, task.status)

        return Response(
            {"success": True, "task": TaskSerializer(task).data, "message": "Task status updated successfully"},
            status=status.HTTP_200_OK,
        )

    def patch(self, request, pk):
        return self.put(request, pk)

    def delete(self, request, pk):
        task = get_owned_task(request.user, pk)
        task.delete()
        logger.info("User %s deleted task %s", request.user.pk, pk)
        return Response({"success": True, "message": "Task deleted successfully"}, status=status.HTTP_200_OK)
