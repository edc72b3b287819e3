"""
Sample values typed into form fields during demos.
"""
from typing import Optional

# Checked against the input's declared type first
TYPE_VALUES = {
    "email": "demo@example.com",
    "password": "SecurePass123!",
    "search": "test search",
    "tel": "(555) 123-4567",
    "date": "2024-01-15",
    "number": "42",
}

# Then against the label/placeholder, in this order
KEYWORD_VALUES = [
    ("email", "demo@example.com"),
    ("password", "SecurePass123!"),
    ("search", "test search"),
    ("phone", "(555) 123-4567"),
    ("date", "2024-01-15"),
    ("name", "John Smith"),
    ("number", "42"),
    ("numeric", "42"),
    ("amount", "42"),
    ("quantity", "42"),
]

DEFAULT_VALUE = "Sample text"


def generate_sample_value(hint: Optional[str], input_type: Optional[str] = None) -> str:
    """Pick a plausible value for a field from its type and label."""
    if input_type and input_type.lower() in TYPE_VALUES:
        return TYPE_VALUES[input_type.lower()]

    lowered = (hint or "").lower()
    for keyword, value in KEYWORD_VALUES:
        if keyword in lowered:
            return value
    return DEFAULT_VALUE
