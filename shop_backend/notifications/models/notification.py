# notifications/models/notification.py

import uuid

from django.db import models


class Notification(models.Model):
    """
    In-app notification written by the database sink.

    Delivery (sockets, e-mail, push) is somebody else's job; this row is
    the record that something happened.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    event = models.CharField(max_length=64)
    title = models.CharField(max_length=200)
    message = models.TextField(blank=True, default="")
    payload = models.JSONField(default=dict, blank=True)

    party = models.ForeignKey(
        "parties.Party",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
    )

    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_read", "created_at"], name="notif_unread_idx"),
        ]

    def __str__(self):
        return f"{self.event} | {self.title}"
