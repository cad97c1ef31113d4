from __future__ import annotations


class ModelBuildError(ValueError):
    """Base class for errors caused by the Ingress group's own declarations."""

    def with_member(self, member_key: str) -> ModelBuildError:
        """Prefix the message with the Ingress that triggered it and return self for re-raising."""
        self.args = (f"ingress: {member_key}: {self.args[0] if self.args else ''}", *self.args[1:])
        return self


class AnnotationError(ModelBuildError):
    def __init__(self, key: str, value: str, reason: str):
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"failed to parse annotation {key}={value!r}: {reason}")


class ServiceReferenceError(ModelBuildError):
    pass


class SSLRedirectError(ModelBuildError):
    pass


class ListenerConfigError(ModelBuildError):
    pass


class GroupConfigError(ModelBuildError):
    pass


class StackIntegrityError(RuntimeError):
    """Raised when the resource graph itself is malformed.

    This always indicates a defect in the builder (duplicate resource keys,
    references to resources that were never added, reference cycles), never a
    problem with user input.
    """
