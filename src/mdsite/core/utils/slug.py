"""Slug and identifier case conversion helpers"""

import re


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphen-separated URL-safe slug."""
    text = text.lower()
    text = re.sub(r'[^\w\s-]', '', text)
    text = re.sub(r'[\s_]+', '-', text)
    return re.sub(r'-+', '-', text).strip('-')


def pascal_to_kebab(name: str) -> str:
    """'CounterWidget' -> 'counter-widget'."""
    return re.sub(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])', '-', name).lower()


def pascal_to_title(name: str) -> str:
    """'AboutMe' -> 'About Me'."""
    return re.sub(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])', ' ', name)


def upper_first(text: str) -> str:
    return text[:1].upper() + text[1:]
