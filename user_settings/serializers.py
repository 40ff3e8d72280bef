from django import forms
from authentication.validators import validate_display_name, DISPLAY_NAME_MAX_LENGTH


class ProfileUpdateSerializer(forms.Form):
    """
    Serializer for profile edits. Only the display name is editable; it is
    trimmed and must be 1-50 characters.
    """
    name = forms.CharField(
        max_length=255,
        strip=False,
        required=True,
        error_messages={
            'required': 'Name is required.',
        },
        help_text=f"Display name (1-{DISPLAY_NAME_MAX_LENGTH} characters)"
    )

    def clean_name(self):
        return validate_display_name(self.cleaned_data.get('name'))
