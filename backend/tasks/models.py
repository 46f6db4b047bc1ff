from django.conf import settings
from django.db import models
from django.utils import timezone

from .scoring import calculate_completion_score


class Task(models.Model):
    """
    A unit of work owned by one user.

    completed_at is set exactly while status is "completed"; change status
    through set_status() to keep it that way.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        IN_PROGRESS = "in-progress", "In progress"
        COMPLETED = "completed", "Completed"

    task_id = models.CharField(max_length=32, blank=True, default="")  # DDMMYYYY-NNN
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="tasks",
    )
    title = models.CharField(max_length=255)
    description = models.TextField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    created_at = models.DateTimeField(default=timezone.now, editable=False)
    deadline = models.DateTimeField()
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "task_id"],
                condition=~models.Q(task_id=""),
                name="unique_task_id_per_owner",
            ),
        ]
        indexes = [
            models.Index(fields=["owner", "status"], name="task_owner_status_idx"),
        ]

    def __str__(self):
        return f"{self.task_id or self.pk}: {self.title}"

    def set_status(self, status, now=None):
        """Move to ``status`` and stamp or clear completed_at. Does not save."""
        self.status = status
        if status == self.Status.COMPLETED:
            if self.completed_at is None:
                self.completed_at = now or timezone.now()
        else:
            self.completed_at = None

    @property
    def completion_score(self):
        return calculate_completion_score(self.created_at, self.deadline, self.completed_at)
