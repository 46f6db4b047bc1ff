from rest_framework import serializers

from .models import Task

REQUIRED = {
    "required": "Title, description, and deadline are required",
    "blank": "Title, description, and deadline are required",
    "null": "Title, description, and deadline are required",
}
STATUS_CHOICES = [value for value, _ in Task.Status.choices]
FILTER_CHOICES = ["all"] + STATUS_CHOICES


class TaskInputSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, error_messages=REQUIRED)
    description = serializers.CharField(error_messages=REQUIRED)
    deadline = serializers.DateTimeField(error_messages=REQUIRED)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=STATUS_CHOICES,
        error_messages={
            "invalid_choice": "Invalid status",
            "required": "Invalid status",
            "null": "Invalid status",
        },
    )


class StatusFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=FILTER_CHOICES,
        default="all",
        error_messages={"invalid_choice": "Invalid status"},
    )


class TaskSerializer(serializers.ModelSerializer):
    completion_score = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            "id",
            "task_id",
            "title",
            "description",
            "status",
            "created_at",
            "deadline",
            "completed_at",
            "completion_score",
        ]
        read_only_fields = fields[:-1]

    def get_completion_score(self, obj):
        score = obj.completion_score
        return score.as_dict() if score is not None else None
