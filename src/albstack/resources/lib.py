import re

from albstack.errors import GroupConfigError

_AWS_TAG_KEY_MAX_LENGTH = 128
_AWS_TAG_VALUE_MAX_LENGTH = 256
_AWS_TAG_ALLOWED_CHARS = re.compile(r"^[\w\s.:/+\-@]*$")


def validate_lb_tags(tags: dict[str, str]) -> dict[str, str]:
    """Validate tags requested through the ``tags`` annotation before they reach the load balancer spec.

    Tag values may be empty, matching what AWS accepts; keys may not.
    """
    for key, value in tags.items():
        if not key:
            msg = "LB tag key must not be empty"
            raise GroupConfigError(msg)
        if key.startswith("aws:"):
            msg = f"LB tag key uses reserved 'aws:' prefix: {key!r}"
            raise GroupConfigError(msg)
        if len(key) > _AWS_TAG_KEY_MAX_LENGTH:
            msg = f"LB tag key exceeds AWS 128-character limit ({len(key)} chars): {key!r}"
            raise GroupConfigError(msg)
        if not _AWS_TAG_ALLOWED_CHARS.match(key):
            msg = f"LB tag key contains invalid characters: {key!r}"
            raise GroupConfigError(msg)
        if len(value) > _AWS_TAG_VALUE_MAX_LENGTH:
            msg = f"LB tag value exceeds AWS 256-character limit ({len(value)} chars): key={key}"
            raise GroupConfigError(msg)
        if not _AWS_TAG_ALLOWED_CHARS.match(value):
            msg = f"LB tag value contains invalid characters: {key}={value!r}"
            raise GroupConfigError(msg)
    return tags
