from django.db import models
import uuid
from django.core.validators import MinLengthValidator
from django.utils import timezone
from datetime import timedelta

MAX_FAILED_LOGIN_ATTEMPTS = 5
LOCKOUT_MINUTES = 30


class User(models.Model):
    user_id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False
    )
    username = models.CharField(
        max_length=150,
        unique=True
    )
    password = models.CharField(
        max_length=255,
        validators=[MinLengthValidator(8)]
    )
    display_name = models.CharField(
        max_length=150
    )
    email = models.EmailField(
        unique=True
    )
    avatar_url = models.URLField(
        max_length=500,
        blank=True,
        default=""
    )
    last_accessed = models.DateTimeField(
        auto_now=True
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Security fields for failed login attempts
    failed_login_attempts = models.IntegerField(default=0)
    account_locked_until = models.DateTimeField(null=True, blank=True)

    USERNAME_FIELD = 'username'
    REQUIRED_FIELDS = ['email']

    def __str__(self):
        return self.username

    @property
    def is_anonymous(self):
        return False

    @property
    def is_authenticated(self):
        """
        A user is authenticated when the record exists, is active and is not
        locked out after repeated failed logins.
        """
        if not getattr(self, 'user_id', None):
            return False
        if not self.is_active:
            return False
        if self.is_account_locked():
            return False
        return True

    def is_account_locked(self):
        """Check if account is currently locked due to failed login attempts"""
        if not self.account_locked_until:
            return False

        # Lock period expired: auto-unlock
        if timezone.now() >= self.account_locked_until:
            self.account_locked_until = None
            self.failed_login_attempts = 0
            self.save(update_fields=['account_locked_until', 'failed_login_attempts'])
            return False

        return True

    def increment_failed_login(self):
        """Increment failed login attempts and lock account if limit reached"""
        self.failed_login_attempts += 1

        if self.failed_login_attempts >= MAX_FAILED_LOGIN_ATTEMPTS:
            self.account_locked_until = timezone.now() + timedelta(minutes=LOCKOUT_MINUTES)
            self.save(update_fields=['failed_login_attempts', 'account_locked_until'])
            return True
        self.save(update_fields=['failed_login_attempts'])
        return False

    def reset_failed_login_attempts(self):
        """Reset failed login attempts and unlock account on successful login"""
        self.failed_login_attempts = 0
        self.account_locked_until = None
        self.save(update_fields=['failed_login_attempts', 'account_locked_until'])

    def get_remaining_login_attempts(self):
        return max(0, MAX_FAILED_LOGIN_ATTEMPTS - self.failed_login_attempts)

    def to_dict(self):
        """Public representation returned by the profile and session endpoints."""
        return {
            "id": str(self.user_id),
            "username": self.username,
            "name": self.display_name,
            "email": self.email,
            "image": self.avatar_url or None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
