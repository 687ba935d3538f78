from django.db import models


class Repository(models.Model):
    name = models.CharField(max_length=100, unique=True)

    def __str__(self):
        return self.name


class GitObject(models.Model):
    """Raw object bytes, header included, exactly as hashed."""
    repo = models.ForeignKey(Repository, on_delete=models.CASCADE)
    sha1 = models.CharField(max_length=40, db_index=True)
    type = models.CharField(max_length=10, choices=[('blob', 'Blob'), ('tree', 'Tree'), ('commit', 'Commit')])
    data = models.BinaryField()

    class Meta:
        unique_together = ('repo', 'sha1')

    def __str__(self):
        return f"{self.type} {self.sha1[:7]}"


class Reference(models.Model):
    """Stores branch pointers like 'refs/heads/main'"""
    repo = models.ForeignKey(Repository, on_delete=models.CASCADE, related_name="refs")
    name = models.CharField(max_length=255)
    commit_hash = models.CharField(max_length=40)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('repo', 'name')

    @staticmethod
    def qualify(ref_name: str) -> str:
        """'heads/main' and 'refs/heads/main' both map to 'refs/heads/main'."""
        ref_name = ref_name.strip("/")
        return ref_name if ref_name.startswith("refs/") else f"refs/{ref_name}"

    def __str__(self):
        return f"{self.name} -> {self.commit_hash[:7]}"
