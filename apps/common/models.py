from django.db import models


class SequenceCounter(models.Model):
    name = models.CharField(max_length=64, unique=True)
    last_value = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name}={self.last_value}"
