# backend-server/app/core/errors.py
# Exceptions raised by the lifecycle and document services.


class TemplateError(Exception):
    """Base class for everything that can go wrong between a template and a buffer."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.message = message
        self.source = source


class TemplateLoadError(TemplateError):
    """The template resource could not be fetched."""


class TemplateFormatError(TemplateError):
    """The resource was fetched but is not a usable template."""


class RenderError(TemplateError):
    """The document library failed while producing the output."""


class LifecycleError(ValueError):
    pass


class PermissionDenied(LifecycleError):
    pass


class InvalidTransition(LifecycleError):
    pass


class ValidationError(LifecycleError):
    pass
