# authentication/forms.py
from django import forms
from django.contrib.auth.hashers import check_password
from authentication.models import User
from authentication.validators import (validate_username, validate_password, validate_display_name, validate_email)


class LoginForm(forms.Form):
    username = forms.CharField(
        max_length=150,
        strip=True,
        required=True,
        error_messages={
            'required': 'Username is required.',
            'max_length': 'Username must be 150 characters or less.'
        }
    )
    password = forms.CharField(
        max_length=255,
        strip=False,
        required=True,
        error_messages={
            'required': 'Password is required.',
            'max_length': 'Password must be 255 characters or less.'
        }
    )

    def authenticate(self):
        """Return the matching user, or None when the credentials do not check out."""
        if not self.is_valid():
            return None
        user = User.objects.filter(username=self.cleaned_data['username']).first()
        if user is None:
            return None
        if check_password(self.cleaned_data['password'], user.password):
            return user
        return None


class RegistrationForm(forms.Form):
    username = forms.CharField(
        max_length=150,
        strip=True,
        required=True,
        error_messages={
            'required': 'Username is required.',
            'max_length': 'Username must be 150 characters or less.'
        }
    )
    password = forms.CharField(
        max_length=255,
        strip=False,
        required=True,
        error_messages={
            'required': 'Password is required.',
            'max_length': 'Password must be 255 characters or less.'
        }
    )
    confirm_password = forms.CharField(
        max_length=255,
        strip=False,
        required=True,
        error_messages={
            'required': 'Password confirmation is required.',
            'max_length': 'Password must be 255 characters or less.'
        }
    )
    display_name = forms.CharField(
        max_length=150,
        strip=True,
        required=True,
        error_messages={
            'required': 'Name is required.',
        }
    )
    email = forms.EmailField(
        required=True,
        error_messages={
            'required': 'Email is required.',
            'invalid': 'Please enter a valid email address.'
        }
    )

    # camelCase keys sent by the web client
    FIELD_ALIASES = {
        'confirmPassword': 'confirm_password',
        'displayName': 'display_name',
        'name': 'display_name',
    }

    @classmethod
    def from_payload(cls, payload):
        data = {}
        for key, value in payload.items():
            data[cls.FIELD_ALIASES.get(key, key)] = value
        return cls(data)

    def clean_username(self):
        username = validate_username(self.cleaned_data.get('username'))
        if User.objects.filter(username=username).exists():
            raise forms.ValidationError("This username is already taken.")
        return username

    def clean_password(self):
        return validate_password(self.cleaned_data.get('password'))

    def clean_display_name(self):
        return validate_display_name(self.cleaned_data.get('display_name'))

    def clean_email(self):
        return validate_email(self.cleaned_data.get('email'), User)

    def clean(self):
        cleaned_data = super().clean()
        password = cleaned_data.get('password')
        confirm_password = cleaned_data.get('confirm_password')
        if password and confirm_password and password != confirm_password:
            raise forms.ValidationError("Passwords do not match.")
        return cleaned_data
