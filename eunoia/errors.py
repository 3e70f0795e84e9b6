# -*- coding: utf-8 -*-
"""Error taxonomy for nugget allocation, generation and storage."""

from __future__ import annotations

from typing import Optional


class NuggetServiceError(Exception):
    """Base class; `status_code` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotAuthenticated(NuggetServiceError):
    status_code = 401


class InvalidCategory(NuggetServiceError):
    status_code = 422

    def __init__(self, value: object) -> None:
        super().__init__(f"Unknown category: {value!r}")
        self.value = value


class NuggetNotFound(NuggetServiceError):
    status_code = 404

    def __init__(self, nugget_id: str) -> None:
        super().__init__(f"Nugget not found: {nugget_id}")
        self.nugget_id = nugget_id


class NoContentAvailable(NuggetServiceError):
    """No unseen nugget is left, even after one refill attempt.

    This is a data-unavailability condition; clients present an empty state.
    """

    status_code = 404


class GenerationFailed(NuggetServiceError):
    status_code = 502

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class StorageError(NuggetServiceError):
    status_code = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class NuggetNotDelivered(NuggetServiceError):
    """The nugget exists but was never delivered to the user."""

    status_code = 409

    def __init__(self, nugget_id: str) -> None:
        super().__init__(f"Nugget {nugget_id} was not delivered to this user")
        self.nugget_id = nugget_id


class GenerationInProgress(NuggetServiceError):
    status_code = 409
