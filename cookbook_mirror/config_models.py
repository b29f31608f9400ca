"""
Configuration model classes for cookbook mirroring.

These classes provide structured access to different configuration sections.
"""


class CookbookSpec:
    """A single cookbook entry: where it comes from and where it is mirrored."""

    def __init__(self, name: str, data: dict):
        """
        Initialize a cookbook entry.

        Args:
            name: Cookbook name, substituted into both URL templates
            data: Mapping with optional 'local_url' and 'source_url' templates
        """
        self.name = name
        if not isinstance(data, dict):
            data = {}
        self.local_url_template = data.get("local_url", "") or ""
        self.source_url_template = data.get("source_url", "") or ""

    @property
    def local_url(self) -> str:
        """URL of the Gerrit-hosted mirror."""
        return resolve_url(self.local_url_template, self.name)

    @property
    def source_url(self) -> str:
        """URL of the externally hosted source repository."""
        return resolve_url(self.source_url_template, self.name)

    def __repr__(self):
        return f"CookbookSpec({self.name!r})"


def resolve_url(template: str, name: str) -> str:
    """Substitute the cookbook name into a '%s' URL template.

    An empty template stays empty; the clone that uses it fails later.

    Raises:
        ValueError: If the template has placeholders other than a single %s
    """
    if not template:
        return ""
    if "%s" not in template:
        return template
    try:
        return template % name
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid URL template '{template}' for cookbook '{name}': {e}") from e
