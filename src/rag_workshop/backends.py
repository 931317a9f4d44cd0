"""Translation of model-backend failures into the application error taxonomy.

Both Ollama (via ``httpx``) and OpenAI-compatible clients raise their own
exception families.  Wrapping every remote call in :func:`model_call`
lets the rest of the code base deal only with :class:`ModelUnavailable`
and :class:`ModelTimeout`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import httpx
import ollama
import openai

from rag_workshop.exceptions import ModelTimeout, ModelUnavailable

logger = logging.getLogger(__name__)

_TIMEOUT_ERRORS = (httpx.TimeoutException, openai.APITimeoutError, TimeoutError)
_UNAVAILABLE_ERRORS = (
    httpx.HTTPError,
    ConnectionError,
    ollama.ResponseError,
    openai.APIConnectionError,
    openai.APIStatusError,
)


@contextmanager
def model_call(operation: str) -> Iterator[None]:
    """Re-raise backend transport errors as typed application errors.

    Parameters
    ----------
    operation:
        Short label used in the error message, e.g. ``"embedding"``.
    """
    try:
        yield
    except _TIMEOUT_ERRORS as exc:
        logger.warning("%s call timed out: %s", operation, exc)
        raise ModelTimeout(f"{operation} call timed out", {"operation": operation}) from exc
    except _UNAVAILABLE_ERRORS as exc:
        logger.warning("%s backend unavailable: %s", operation, exc)
        raise ModelUnavailable(
            f"{operation} backend unavailable: {exc}", {"operation": operation}
        ) from exc
